from __future__ import annotations

from pathlib import Path

import pytest

from snappack_cli.exceptions import PersistenceError
from snappack_cli.models.media import FailureReason, MediaKind
from snappack_cli.storage.sink import StorageSink


@pytest.mark.asyncio
async def test_persist_writes_file_with_kind_extension(media_dir: Path) -> None:
    sink = StorageSink(media_dir)

    photo_ref = await sink.persist(b"photo-bytes", MediaKind.PHOTO)
    video_ref = await sink.persist(b"video-bytes", MediaKind.VIDEO)

    assert photo_ref.endswith(".jpg")
    assert video_ref.endswith(".mp4")
    assert sink.resolve(photo_ref).read_bytes() == b"photo-bytes"
    assert sink.resolve(video_ref).read_bytes() == b"video-bytes"
    assert sorted(p.name for p in media_dir.iterdir()) == sorted([photo_ref, video_ref])


@pytest.mark.asyncio
async def test_persist_never_reuses_a_name(media_dir: Path) -> None:
    sink = StorageSink(media_dir)

    refs = {await sink.persist(b"same", MediaKind.PHOTO) for _ in range(5)}

    assert len(refs) == 5


@pytest.mark.asyncio
async def test_persist_failure_raises_persistence_error(tmp_path: Path) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("file in the way")
    sink = StorageSink(blocker)

    with pytest.raises(PersistenceError) as excinfo:
        await sink.persist(b"data", MediaKind.PHOTO)

    assert excinfo.value.reason is FailureReason.PERSISTENCE


@pytest.mark.asyncio
async def test_remove_deletes_and_tolerates_missing(media_dir: Path) -> None:
    sink = StorageSink(media_dir)
    ref = await sink.persist(b"data", MediaKind.PHOTO)

    await sink.remove(ref)
    await sink.remove(ref)

    assert not sink.resolve(ref).exists()
