"""
Handles the low-level retrieval of media payloads over HTTP, with a pause gate
checked between body chunks so an in-flight request can be suspended in place.
"""

import asyncio
import logging
from dataclasses import dataclass

import aiohttp

from snappack_cli.exceptions import TransferInterruptedError, TransportError

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
DEFAULT_MIN_PAYLOAD_BYTES = 1000


@dataclass(frozen=True)
class FetchResult:
    """The body and HTTP status of one completed request."""

    body: bytes
    status: int

    @property
    def is_success_status(self) -> bool:
        return 200 <= self.status <= 299

    def is_usable(self, min_bytes: int = DEFAULT_MIN_PAYLOAD_BYTES) -> bool:
        """
        A response is usable only with a 2xx status and a body strictly larger
        than the integrity threshold; error pages served with a 200 are small.
        """
        return self.is_success_status and len(self.body) > min_bytes


class Fetcher:
    """A single-attempt HTTP fetcher with no internal retry."""

    CHUNK_SIZE = 131072  # 128 KB

    def __init__(self, timeout: float = DEFAULT_TIMEOUT):
        self.timeout = timeout
        self._session: aiohttp.ClientSession | None = None
        self._session_lock = asyncio.Lock()

    async def _get_session(self) -> aiohttp.ClientSession:
        """Gets or lazily creates the aiohttp session used for all requests."""
        async with self._session_lock:
            if self._session and not self._session.closed:
                return self._session

            # One request at a time, so a single connection per host is enough
            connector = aiohttp.TCPConnector(
                limit=2,
                limit_per_host=1,
                ttl_dns_cache=600,
                enable_cleanup_closed=True,
            )
            timeout = aiohttp.ClientTimeout(
                total=None, sock_connect=self.timeout, sock_read=self.timeout
            )
            self._session = aiohttp.ClientSession(connector=connector, timeout=timeout)
            log.debug(f"Created fetch session with timeout={self.timeout}s")
        return self._session

    async def close(self) -> None:
        """Closes the underlying session."""
        async with self._session_lock:
            if self._session and not self._session.closed:
                await self._session.close()
                log.debug("Fetch session closed.")
            self._session = None

    async def __aenter__(self) -> "Fetcher":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def fetch(self, url: str, gate: asyncio.Event | None = None) -> FetchResult:
        """
        Retrieves a URL in full.

        Args:
            url: Absolute http(s) URL.
            gate: Pause gate. While it is cleared, reading stops and the request
                stays open; reading continues once it is set again.

        Returns:
            The body and status. Non-2xx responses are returned, not raised.

        Raises:
            TransportError: On timeout or connection failure.
            TransferInterruptedError: If the transport failed after the
                transfer had been suspended.
        """
        suspended = False
        try:
            session = await self._get_session()
            async with session.get(url, allow_redirects=True) as response:
                body = bytearray()
                while True:
                    if gate is not None and not gate.is_set():
                        suspended = True
                        log.debug(f"Transfer suspended: {url}")
                        await gate.wait()
                        log.debug(f"Transfer resumed: {url}")
                    chunk = await response.content.read(self.CHUNK_SIZE)
                    if not chunk:
                        break
                    body.extend(chunk)
                return FetchResult(body=bytes(body), status=response.status)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            message = str(e) or type(e).__name__
            if suspended:
                raise TransferInterruptedError(
                    f"Suspended transfer was dropped: {message}"
                ) from e
            raise TransportError(message) from e
