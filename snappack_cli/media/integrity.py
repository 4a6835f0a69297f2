"""
Provides probes for checking that downloaded bytes really decode as the media
kind they claim to be.
"""

import asyncio
import io
import logging
import os
import tempfile
from pathlib import Path
from typing import Protocol

from PIL import Image, UnidentifiedImageError

from snappack_cli.models.media import MediaKind

log = logging.getLogger(__name__)


class MediaProbe(Protocol):
    """Decides whether a payload decodes as one particular media kind."""

    async def probe(self, data: bytes) -> bool: ...


class ImageProbe:
    """Checks that bytes decode as a still image Pillow understands."""

    @staticmethod
    def check_image(data: bytes) -> bool:
        """
        Opens and fully decodes the image. A truncated or corrupt body fails on
        load even when its header is intact.
        """
        try:
            with Image.open(io.BytesIO(data)) as image:
                image.load()
                width, height = image.size
            if width > 0 and height > 0:
                return True
            log.warning("Image integrity check failed: empty dimensions.")
            return False
        except UnidentifiedImageError:
            log.debug("Image integrity check failed: unrecognized image format.")
            return False
        except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as e:
            log.debug(f"Image integrity check failed: {e}")
            return False

    @classmethod
    def check_file(cls, path: Path) -> bool:
        try:
            return cls.check_image(path.read_bytes())
        except OSError as e:
            log.debug(f"Could not read '{path}' for an image check: {e}")
            return False

    async def probe(self, data: bytes) -> bool:
        return await asyncio.to_thread(self.check_image, data)


class VideoProbe:
    """
    Checks that bytes hold a decodable video by asking ffmpeg for a single
    frame at offset zero from a scratch copy of the payload.
    """

    def __init__(
        self,
        ffmpeg_binary: str = "ffmpeg",
        timeout: float = 60.0,
        scratch_dir: Path | None = None,
    ):
        self.ffmpeg_binary = ffmpeg_binary
        self.timeout = timeout
        self.scratch_dir = scratch_dir

    def _write_scratch_file(self, data: bytes) -> str:
        fd, path = tempfile.mkstemp(
            prefix="snappack-probe-", suffix=".mp4", dir=self.scratch_dir
        )
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        return path

    async def _extract_first_frame(self, path: str) -> bool:
        process = await asyncio.create_subprocess_exec(
            self.ffmpeg_binary,
            "-v",
            "error",
            "-nostdin",
            "-ss",
            "0",
            "-i",
            path,
            "-frames:v",
            "1",
            "-f",
            "null",
            "-",
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            _, stderr = await asyncio.wait_for(process.communicate(), self.timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            log.warning(f"Video probe timed out after {self.timeout:.0f}s.")
            return False
        except asyncio.CancelledError:
            process.kill()
            await process.wait()
            raise

        if process.returncode != 0:
            detail = stderr.decode(errors="replace").strip().splitlines()
            log.debug(
                f"Video integrity check failed (ffmpeg exit {process.returncode}): "
                f"{detail[-1] if detail else 'no output'}"
            )
            return False
        return True

    async def probe(self, data: bytes) -> bool:
        path = await asyncio.to_thread(self._write_scratch_file, data)
        try:
            return await self._extract_first_frame(path)
        except FileNotFoundError:
            log.warning(
                f"[yellow]ffmpeg not found at '{self.ffmpeg_binary}'; "
                "videos cannot be validated.[/yellow]"
            )
            return False
        except OSError as e:
            log.warning(f"Video probe could not run: {e}")
            return False
        finally:
            try:
                os.remove(path)
            except OSError:
                log.debug(f"Scratch file already gone: {path}")


class MediaValidator:
    """Routes a payload to the probe registered for its media kind."""

    def __init__(self, probes: dict[MediaKind, MediaProbe] | None = None):
        self._probes: dict[MediaKind, MediaProbe] = dict(probes or {})

    @classmethod
    def default(cls, ffmpeg_binary: str = "ffmpeg") -> "MediaValidator":
        return cls(
            {
                MediaKind.PHOTO: ImageProbe(),
                MediaKind.VIDEO: VideoProbe(ffmpeg_binary),
            }
        )

    def register(self, kind: MediaKind, probe: MediaProbe) -> None:
        self._probes[kind] = probe

    async def validate(self, data: bytes, kind: MediaKind) -> bool:
        probe = self._probes.get(kind)
        if probe is None:
            log.warning(f"No integrity probe registered for {kind.value}.")
            return False
        return await probe.probe(data)
