"""
Manages the SQLite database of accepted media: the long-term record of what was
downloaded, the vault flag, storage usage, and the broken-file sweep.
"""

import asyncio
import logging
import shutil
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable

from snappack_cli.exceptions import LibraryError
from snappack_cli.media.integrity import ImageProbe
from snappack_cli.models.config import MIN_STORED_BYTES
from snappack_cli.models.media import AcceptedMedia, MediaKind

log = logging.getLogger(__name__)


class MediaLibrary:
    """
    A thread-safe SQLite store for accepted media, with the files themselves
    kept under the media directory.
    """

    def __init__(self, config_dir_path: Path, media_dir: Path, pool_size: int = 5):
        self.db_path = Path(config_dir_path) / "library.sqlite"
        self.media_dir = Path(media_dir)
        self._connection_semaphore = asyncio.Semaphore(pool_size)
        self._initialize_db()

    def _get_connection(self) -> sqlite3.Connection:
        """Gets a new database connection with WAL journaling."""
        try:
            conn = sqlite3.connect(self.db_path, timeout=30, check_same_thread=False)
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=NORMAL;")
            return conn
        except sqlite3.Error as e:
            raise LibraryError(f"Failed to open media library database: {e}") from e

    def _initialize_db(self) -> None:
        """Creates the database and tables if they don't exist."""
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            with self._get_connection() as conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS media (
                        id TEXT PRIMARY KEY NOT NULL,
                        captured_at TEXT NOT NULL,
                        media_kind TEXT NOT NULL,
                        location TEXT,
                        source_url TEXT,
                        storage_ref TEXT NOT NULL,
                        size_bytes INTEGER DEFAULT 0,
                        is_archived INTEGER DEFAULT 0,
                        added_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    );
                    """
                )
                conn.execute(
                    "CREATE INDEX IF NOT EXISTS idx_archived ON media(is_archived);"
                )
                conn.execute(
                    "CREATE TABLE IF NOT EXISTS meta"
                    " (key TEXT PRIMARY KEY NOT NULL, value TEXT);"
                )
                conn.commit()
        except (OSError, sqlite3.Error) as e:
            raise LibraryError(
                f"Failed to initialize media library at '{self.db_path}': {e}"
            ) from e

    async def _run_in_executor(self, func, *args):
        """Runs a synchronous database function within the connection semaphore."""
        async with self._connection_semaphore:
            return await asyncio.to_thread(func, *args)

    def resolve(self, media: AcceptedMedia) -> Path:
        return self.media_dir / media.storage_ref

    @staticmethod
    def _row_to_media(row: tuple) -> AcceptedMedia:
        (id_, captured_at, kind, location, source_url, ref, size, archived) = row
        return AcceptedMedia(
            id=id_,
            captured_at=datetime.fromisoformat(captured_at),
            media_kind=MediaKind(kind),
            location_label=location or "",
            source_url=source_url or "",
            storage_ref=ref,
            size_bytes=size or 0,
            is_archived=bool(archived),
        )

    # --- Writes ---

    def _add_batch_sync(self, items: list[AcceptedMedia]) -> int:
        records = [
            (
                m.id,
                m.captured_at.isoformat(),
                m.media_kind.value,
                m.location_label,
                m.source_url,
                m.storage_ref,
                m.size_bytes,
                int(m.is_archived),
            )
            for m in items
        ]
        if not records:
            return 0
        try:
            with self._get_connection() as conn:
                cursor = conn.executemany(
                    "INSERT OR IGNORE INTO media (id, captured_at, media_kind, location,"
                    " source_url, storage_ref, size_bytes, is_archived)"
                    " VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                    records,
                )
                conn.commit()
                return cursor.rowcount
        except sqlite3.Error as e:
            raise LibraryError(
                f"Batch insert into library failed for {len(records)} items: {e}"
            ) from e

    async def add_media(self, items: Iterable[AcceptedMedia]) -> int:
        """Adds accepted items to the library and refreshes the storage total."""
        added = await self._run_in_executor(self._add_batch_sync, list(items))
        await self.calculate_used_storage()
        log.debug(f"Added {added} items to the media library.")
        return added

    def _delete_sync(self, ids: list[str]) -> list[AcceptedMedia]:
        items = self._get_sync(ids)
        for item in items:
            path = self.resolve(item)
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                log.warning(f"Could not delete '{path.name}': {e}")
        try:
            with self._get_connection() as conn:
                conn.executemany(
                    "DELETE FROM media WHERE id = ?", [(item.id,) for item in items]
                )
                conn.commit()
        except sqlite3.Error as e:
            raise LibraryError(f"Failed to delete library items: {e}") from e
        return items

    async def delete_media(self, ids: Iterable[str]) -> int:
        """Deletes items and their files. Returns the number removed."""
        removed = await self._run_in_executor(self._delete_sync, list(ids))
        await self.calculate_used_storage()
        return len(removed)

    def _set_archived_sync(self, ids: list[str], archived: bool) -> int:
        try:
            with self._get_connection() as conn:
                cursor = conn.executemany(
                    "UPDATE media SET is_archived = ? WHERE id = ?",
                    [(int(archived), id_) for id_ in ids],
                )
                conn.commit()
                return cursor.rowcount
        except sqlite3.Error as e:
            raise LibraryError(f"Failed to update vault flag: {e}") from e

    async def set_archived(self, ids: Iterable[str], archived: bool) -> int:
        """Moves items into (or out of) the private vault."""
        return await self._run_in_executor(self._set_archived_sync, list(ids), archived)

    # --- Reads ---

    _COLUMNS = (
        "id, captured_at, media_kind, location, source_url, storage_ref,"
        " size_bytes, is_archived"
    )

    def _list_sync(self, archived: bool | None) -> list[AcceptedMedia]:
        query = f"SELECT {self._COLUMNS} FROM media"  # noqa: S608
        params: tuple[Any, ...] = ()
        if archived is not None:
            query += " WHERE is_archived = ?"
            params = (int(archived),)
        query += " ORDER BY captured_at DESC"
        try:
            with self._get_connection() as conn:
                rows = conn.execute(query, params).fetchall()
        except sqlite3.Error as e:
            raise LibraryError(f"Failed to read media library: {e}") from e
        return [self._row_to_media(row) for row in rows]

    async def list_media(self, archived: bool | None = None) -> list[AcceptedMedia]:
        """All items, or only vault (True) / gallery (False) items, newest first."""
        return await self._run_in_executor(self._list_sync, archived)

    def _get_sync(self, ids: list[str]) -> list[AcceptedMedia]:
        if not ids:
            return []
        placeholders = ",".join("?" * len(ids))
        query = f"SELECT {self._COLUMNS} FROM media WHERE id IN ({placeholders})"  # noqa: S608
        try:
            with self._get_connection() as conn:
                rows = conn.execute(query, ids).fetchall()
        except sqlite3.Error as e:
            raise LibraryError(f"Failed to read media library: {e}") from e
        return [self._row_to_media(row) for row in rows]

    async def get_media(self, ids: Iterable[str]) -> list[AcceptedMedia]:
        return await self._run_in_executor(self._get_sync, list(ids))

    # --- Storage accounting ---

    def _calculate_used_storage_sync(self) -> int:
        total = 0
        for item in self._list_sync(None):
            try:
                total += self.resolve(item).stat().st_size
            except OSError:
                continue
        try:
            with self._get_connection() as conn:
                conn.execute(
                    "INSERT OR REPLACE INTO meta (key, value) VALUES ('used_storage', ?)",
                    (str(total),),
                )
                conn.commit()
        except sqlite3.Error as e:
            log.error(f"Failed to save storage usage: {e}")
        return total

    async def calculate_used_storage(self) -> int:
        """Recomputes the total size of all library files and stores it."""
        return await self._run_in_executor(self._calculate_used_storage_sync)

    def _used_storage_sync(self) -> int:
        try:
            with self._get_connection() as conn:
                row = conn.execute(
                    "SELECT value FROM meta WHERE key = 'used_storage'"
                ).fetchone()
        except sqlite3.Error as e:
            log.error(f"Failed to read storage usage: {e}")
            return 0
        return int(row[0]) if row else 0

    async def used_storage(self) -> int:
        """The storage total as of the last recomputation."""
        return await self._run_in_executor(self._used_storage_sync)

    def available_disk_space(self) -> int:
        """Free bytes on the filesystem holding the media directory."""
        target = self.media_dir
        while not target.exists() and target != target.parent:
            target = target.parent
        try:
            return shutil.disk_usage(target).free
        except OSError:
            return 0

    # --- Integrity sweep ---

    def _is_broken(self, item: AcceptedMedia) -> bool:
        path = self.resolve(item)
        try:
            size = path.stat().st_size
        except OSError:
            return True
        if size < MIN_STORED_BYTES.get(item.media_kind.value, 0):
            return True
        if item.media_kind is MediaKind.PHOTO:
            return not ImageProbe.check_file(path)
        return False

    def _clean_broken_sync(self) -> list[AcceptedMedia]:
        broken = [item for item in self._list_sync(None) if self._is_broken(item)]
        if not broken:
            return []
        return self._delete_sync([item.id for item in broken])

    async def clean_broken_media(self) -> list[AcceptedMedia]:
        """
        Removes items whose file vanished, shrank below the minimum size for its
        kind, or (for photos) no longer decodes. Returns the removed items.
        """
        removed = await self._run_in_executor(self._clean_broken_sync)
        if removed:
            log.info(f"[yellow]Removed {len(removed)} broken items from the library.[/yellow]")
            await self.calculate_used_storage()
        return removed

    def _get_stats_sync(self) -> dict[str, Any]:
        try:
            with self._get_connection() as conn:
                rows = conn.execute(
                    "SELECT media_kind, is_archived, COUNT(*) FROM media"
                    " GROUP BY media_kind, is_archived"
                ).fetchall()
        except sqlite3.Error as e:
            raise LibraryError(f"Failed to get library stats: {e}") from e
        counts = {"Photo": 0, "Video": 0, "vault": 0, "total": 0}
        for kind, archived, count in rows:
            counts[kind] = counts.get(kind, 0) + count
            counts["total"] += count
            if archived:
                counts["vault"] += count
        return counts

    async def get_stats(self) -> dict[str, Any]:
        """Item counts per kind plus storage figures."""
        counts = await self._run_in_executor(self._get_stats_sync)
        counts["used_storage"] = await self.used_storage()
        counts["available_space"] = await asyncio.to_thread(self.available_disk_space)
        return counts
