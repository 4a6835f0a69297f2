"""
Writes accepted payloads into the media directory under collision-free names.
"""

import asyncio
import logging
import uuid
from pathlib import Path

import aiofiles
import aiofiles.os

from snappack_cli.exceptions import PersistenceError
from snappack_cli.models.media import MediaKind
from snappack_cli.utils.path import create_dir

log = logging.getLogger(__name__)


class StorageSink:
    """Persists payloads atomically and hands back a relative storage reference."""

    def __init__(self, media_dir: Path):
        self.media_dir = Path(media_dir)

    def resolve(self, storage_ref: str) -> Path:
        """Maps a storage reference back to an absolute file path."""
        return self.media_dir / storage_ref

    async def persist(self, data: bytes, kind: MediaKind) -> str:
        """
        Writes the payload to a temporary file next to its final location and
        renames it into place, so a reader never observes a partial file.

        Returns:
            The file name relative to the media directory.

        Raises:
            PersistenceError: If the directory or file cannot be written.
        """
        storage_ref = f"{uuid.uuid4().hex}.{kind.extension}"
        final_path = self.resolve(storage_ref)
        temp_path = final_path.with_name(f".{storage_ref}.part")

        try:
            create_dir(self.media_dir)
            async with aiofiles.open(temp_path, "wb") as f:
                await f.write(data)
            await aiofiles.os.replace(temp_path, final_path)
        except OSError as e:
            await self._discard(temp_path)
            raise PersistenceError(f"Could not write '{storage_ref}': {e}") from e
        except asyncio.CancelledError:
            await self._discard(temp_path)
            raise

        log.debug(f"Stored {len(data)} bytes as '{storage_ref}'")
        return storage_ref

    async def remove(self, storage_ref: str) -> None:
        """Deletes a stored file; a missing file is not an error."""
        await self._discard(self.resolve(storage_ref))

    async def _discard(self, path: Path) -> None:
        try:
            if await aiofiles.os.path.exists(path):
                await aiofiles.os.remove(path)
        except OSError as e:
            log.debug(f"Could not remove partial file '{path.name}': {e}")
