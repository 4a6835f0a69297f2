from __future__ import annotations

import asyncio

import pytest
from aiohttp import test_utils, web

from snappack_cli.exceptions import TransferInterruptedError, TransportError
from snappack_cli.media.fetcher import FetchResult, Fetcher

PAYLOAD = b"x" * 5000


async def _photo(request: web.Request) -> web.Response:
    return web.Response(body=PAYLOAD, content_type="image/jpeg")


async def _missing(request: web.Request) -> web.Response:
    return web.Response(status=404, text="Not Found")


async def _tiny(request: web.Request) -> web.Response:
    return web.Response(body=b"<html></html>", content_type="text/html")


async def _slow(request: web.Request) -> web.Response:
    await asyncio.sleep(1)
    return web.Response(body=PAYLOAD)


async def _redirect(request: web.Request) -> web.Response:
    raise web.HTTPFound("/photo")


async def _start_server() -> test_utils.TestServer:
    app = web.Application()
    app.router.add_get("/photo", _photo)
    app.router.add_get("/missing", _missing)
    app.router.add_get("/tiny", _tiny)
    app.router.add_get("/slow", _slow)
    app.router.add_get("/redirect", _redirect)
    server = test_utils.TestServer(app)
    await server.start_server()
    return server


def test_usable_requires_success_status_and_size() -> None:
    assert FetchResult(body=b"x" * 1001, status=200).is_usable()
    assert FetchResult(body=b"x" * 1001, status=299).is_usable()
    assert not FetchResult(body=b"x" * 1000, status=200).is_usable()
    assert not FetchResult(body=b"x" * 5000, status=404).is_usable()
    assert not FetchResult(body=b"x" * 5000, status=300).is_usable()
    assert FetchResult(body=b"x" * 11, status=200).is_usable(min_bytes=10)


@pytest.mark.asyncio
async def test_fetch_returns_body_and_status() -> None:
    server = await _start_server()
    try:
        async with Fetcher(timeout=5) as fetcher:
            result = await fetcher.fetch(str(server.make_url("/photo")))
            missing = await fetcher.fetch(str(server.make_url("/missing")))
            tiny = await fetcher.fetch(str(server.make_url("/tiny")))
            redirected = await fetcher.fetch(str(server.make_url("/redirect")))
    finally:
        await server.close()

    assert result.status == 200
    assert result.body == PAYLOAD
    assert result.is_usable()
    assert missing.status == 404
    assert not missing.is_usable()
    assert tiny.status == 200
    assert not tiny.is_usable()
    assert redirected.body == PAYLOAD


@pytest.mark.asyncio
async def test_fetch_timeout_raises_transport_error() -> None:
    server = await _start_server()
    try:
        async with Fetcher(timeout=0.2) as fetcher:
            with pytest.raises(TransportError) as excinfo:
                await fetcher.fetch(str(server.make_url("/slow")))
    finally:
        await server.close()

    assert not isinstance(excinfo.value, TransferInterruptedError)


@pytest.mark.asyncio
async def test_fetch_connection_failure_raises_transport_error() -> None:
    server = await _start_server()
    url = str(server.make_url("/photo"))
    await server.close()

    async with Fetcher(timeout=2) as fetcher:
        with pytest.raises(TransportError):
            await fetcher.fetch(url)


@pytest.mark.asyncio
async def test_cleared_gate_suspends_transfer_in_place() -> None:
    server = await _start_server()
    gate = asyncio.Event()
    try:
        async with Fetcher(timeout=5) as fetcher:
            task = asyncio.create_task(
                fetcher.fetch(str(server.make_url("/photo")), gate=gate)
            )
            await asyncio.sleep(0.2)
            assert not task.done()

            gate.set()
            result = await asyncio.wait_for(task, timeout=5)
    finally:
        await server.close()

    assert result.body == PAYLOAD


@pytest.mark.asyncio
async def test_close_is_idempotent() -> None:
    fetcher = Fetcher()
    await fetcher.close()
    await fetcher.close()
