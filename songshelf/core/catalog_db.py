"""
Music catalog database access layer.

Goals:
- SQLite + aiosqlite, async/await friendly.
- The table layout is fixed for compatibility with existing catalogs; evolve
  it only through `user_version` migrations.
- Constraint violations surface as the engine's own `IntegrityError`.

This module is intentionally independent of the CLI.

Note:
- Models/DTOs and normalization helpers live in `songshelf.core.db.models`
- Schema/migrations live in `songshelf.core.db.schema`
- Query functions live in `songshelf.core.db.queries_*` modules
- `CatalogDb` remains the public facade used by the rest of the codebase
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Mapping, Sequence

import aiosqlite

from songshelf.core.db import queries_songs, queries_tags
from songshelf.core.db.models import (
    FileRow,
    NewSong,
    SongLink,
    SongRow,
    TagKind,
    TagRow,
    normalize_int,
    normalize_text,
)
from songshelf.core.db.schema import ensure_schema as ensure_schema_sql

logger = logging.getLogger(__name__)

__all__ = ["CatalogDb", "FileRow", "NewSong", "SongLink", "SongRow", "TagRow"]


class CatalogDb:
    """
    Async access layer for the music catalog DB.

    Usage:
        db = CatalogDb("database.db")
        await db.open()
        await db.ensure_schema()
        ... queries ...
        await db.close()

    Notes:
    - Connections are not pooled; we keep a single connection.
    - Writes are not committed implicitly; call `commit()`. The exceptions are
      the multi-statement deletes, which run inside a savepoint.
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = str(db_path)
        self._conn: aiosqlite.Connection | None = None

    @property
    def path(self) -> str:
        return self._db_path

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    async def open(self) -> None:
        if self._conn is not None:
            return
        self._conn = await aiosqlite.connect(self._db_path)
        self._conn.row_factory = aiosqlite.Row

        # SQLite leaves foreign keys off unless asked; the catalog relies on them.
        await self._conn.execute("PRAGMA foreign_keys = ON;")
        await self._conn.execute("PRAGMA journal_mode = WAL;")
        await self._conn.execute("PRAGMA synchronous = NORMAL;")
        await self._conn.execute("PRAGMA temp_store = MEMORY;")
        logger.debug("Opened catalog database %s", self._db_path)

    async def close(self) -> None:
        if self._conn is None:
            return
        await self._conn.close()
        self._conn = None

    def _require_conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("CatalogDb is not open. Call await db.open() first.")
        return self._conn

    async def ensure_schema(self) -> None:
        """Create or migrate schema to current version."""
        conn = self._require_conn()
        await ensure_schema_sql(conn)

    async def execute(self, sql: str, params: Sequence[Any] | Mapping[str, Any] = ()) -> None:
        conn = self._require_conn()
        await conn.execute(sql, params)

    async def commit(self) -> None:
        conn = self._require_conn()
        await conn.commit()

    async def rollback(self) -> None:
        conn = self._require_conn()
        await conn.rollback()

    @asynccontextmanager
    async def savepoint(self, name: str) -> AsyncIterator[None]:
        """
        Run a block atomically. On error, roll back to the savepoint and re-raise.

        `name` must be a static identifier, never user input.
        """
        conn = self._require_conn()
        await conn.execute(f"SAVEPOINT {name};")
        try:
            yield
        except Exception:
            await conn.execute(f"ROLLBACK TO SAVEPOINT {name};")
            await conn.execute(f"RELEASE SAVEPOINT {name};")
            raise
        await conn.execute(f"RELEASE SAVEPOINT {name};")

    # ===========================================================================
    # Files
    # ===========================================================================

    async def insert_file(self, relative_path: str) -> int:
        """
        Insert a file. Raises IntegrityError if the path is already catalogued.

        The path is stripped; a blank path is rejected by the NOT NULL constraint.
        """
        relative_path = normalize_text(relative_path)  # type: ignore[assignment]
        file_id = await queries_songs.insert_file(self._require_conn(), relative_path)
        logger.debug("Inserted file %d: %s", file_id, relative_path)
        return file_id

    async def ensure_file(self, relative_path: str) -> int:
        """Insert a file, or return the id of the existing entry with the same path."""
        return await queries_songs.ensure_file(
            self._require_conn(), normalize_text(relative_path)  # type: ignore[arg-type]
        )

    async def get_file_by_id(self, file_id: int) -> FileRow | None:
        return await queries_songs.get_file_by_id(self._require_conn(), file_id)

    async def get_file_by_path(self, relative_path: str) -> FileRow | None:
        return await queries_songs.get_file_by_path(
            self._require_conn(), normalize_text(relative_path)  # type: ignore[arg-type]
        )

    async def list_files(self, *, limit: int = 500, offset: int = 0) -> list[FileRow]:
        return await queries_songs.list_files(self._require_conn(), limit=limit, offset=offset)

    async def list_unclaimed_files(self, *, limit: int = 500, offset: int = 0) -> list[FileRow]:
        return await queries_songs.list_unclaimed_files(
            self._require_conn(), limit=limit, offset=offset
        )

    async def count_files(self) -> int:
        return await queries_songs.count_files(self._require_conn())

    async def delete_file(self, file_id: int) -> bool:
        """Delete a file. A file still claimed by a song is refused by the foreign key."""
        return await queries_songs.delete_file(self._require_conn(), file_id)

    # ===========================================================================
    # Songs
    # ===========================================================================

    async def insert_song(self, song: NewSong) -> int:
        """
        Insert a song and return its id.

        Text fields are normalized; a title that normalizes to nothing is
        rejected by the NOT NULL constraint.
        """
        song_id = await queries_songs.insert_song(self._require_conn(), _normalize_song(song))
        logger.debug("Inserted song %d: %s", song_id, song.title)
        return song_id

    async def get_song_by_id(self, song_id: int) -> SongRow | None:
        return await queries_songs.get_song_by_id(self._require_conn(), song_id)

    async def get_song_by_file_id(self, file_id: int) -> SongRow | None:
        return await queries_songs.get_song_by_file_id(self._require_conn(), file_id)

    async def list_songs(
        self, *, limit: int = 500, offset: int = 0, order_by: str = "title"
    ) -> list[SongRow]:
        return await queries_songs.list_songs(
            self._require_conn(), limit=limit, offset=offset, order_by=order_by
        )

    async def count_songs(self) -> int:
        return await queries_songs.count_songs(self._require_conn())

    async def search_songs(self, query: str, *, limit: int = 100, offset: int = 0) -> list[SongRow]:
        return await queries_songs.search_songs(
            self._require_conn(), query, limit=limit, offset=offset
        )

    async def update_song(self, song_id: int, song: NewSong) -> bool:
        return await queries_songs.update_song(
            self._require_conn(), song_id, _normalize_song(song)
        )

    async def set_song_file(self, song_id: int, file_id: int | None) -> bool:
        """
        Link a song to a file, or unlink it with None.

        Raises IntegrityError if another song already holds the file or the file
        does not exist.
        """
        return await queries_songs.set_song_file(
            self._require_conn(), song_id, normalize_int(file_id)
        )

    async def delete_song(self, song_id: int) -> bool:
        """
        Delete a song and its artist/album/genre links. The file row is kept.

        Returns False if the song does not exist.
        """
        conn = self._require_conn()
        async with self.savepoint("delete_song_sp"):
            links = await queries_tags.delete_links_for_song(conn, song_id)
            deleted = await queries_songs.delete_song(conn, song_id)
        if deleted:
            logger.debug("Deleted song %d (%d links)", song_id, links)
        return deleted

    # ===========================================================================
    # Artists / albums / genres (shared shape)
    # ===========================================================================

    async def insert_tag(self, kind: TagKind, name: str) -> int:
        """Insert a tag. Names are stripped; a blank name fails the NOT NULL constraint."""
        name = normalize_text(name)  # type: ignore[assignment]
        tag_id = await queries_tags.insert_tag(self._require_conn(), kind, name)
        logger.debug("Inserted %s %d: %s", kind, tag_id, name)
        return tag_id

    async def ensure_tag(self, kind: TagKind, name: str) -> int:
        return await queries_tags.ensure_tag(
            self._require_conn(), kind, normalize_text(name)  # type: ignore[arg-type]
        )

    async def get_tag_by_id(self, kind: TagKind, tag_id: int) -> TagRow | None:
        return await queries_tags.get_tag_by_id(self._require_conn(), kind, tag_id)

    async def get_tag_by_name(self, kind: TagKind, name: str) -> TagRow | None:
        return await queries_tags.get_tag_by_name(
            self._require_conn(), kind, normalize_text(name)  # type: ignore[arg-type]
        )

    async def list_tags(
        self, kind: TagKind, *, limit: int = 500, offset: int = 0, order_by: str = "name"
    ) -> list[TagRow]:
        return await queries_tags.list_tags(
            self._require_conn(), kind, limit=limit, offset=offset, order_by=order_by
        )

    async def count_tags(self, kind: TagKind) -> int:
        return await queries_tags.count_tags(self._require_conn(), kind)

    async def delete_tag(self, kind: TagKind, tag_id: int) -> bool:
        """Delete an artist/album/genre and every link to it."""
        async with self.savepoint("delete_tag_sp"):
            return await queries_tags.delete_tag(self._require_conn(), kind, tag_id)

    async def link_song(self, kind: TagKind, song_id: int, tag_id: int) -> None:
        await queries_tags.link(self._require_conn(), kind, song_id, tag_id)

    async def unlink_song(self, kind: TagKind, song_id: int, tag_id: int) -> bool:
        return await queries_tags.unlink(self._require_conn(), kind, song_id, tag_id)

    async def list_links(self, kind: TagKind) -> list[SongLink]:
        return await queries_tags.list_links(self._require_conn(), kind)

    async def list_tags_for_song(self, kind: TagKind, song_id: int) -> list[TagRow]:
        return await queries_tags.list_tags_for_song(self._require_conn(), kind, song_id)

    async def list_songs_for_tag(
        self,
        kind: TagKind,
        tag_id: int,
        *,
        limit: int = 500,
        offset: int = 0,
        order_by: str = "title",
    ) -> list[SongRow]:
        return await queries_tags.list_songs_for_tag(
            self._require_conn(), kind, tag_id, limit=limit, offset=offset, order_by=order_by
        )

    async def count_songs_for_tag(self, kind: TagKind, tag_id: int) -> int:
        return await queries_tags.count_songs_for_tag(self._require_conn(), kind, tag_id)

    # Artists
    async def insert_artist(self, name: str) -> int:
        return await self.insert_tag("artist", name)

    async def ensure_artist(self, name: str) -> int:
        """Insert an artist, or return the id of the existing entry with the same name."""
        return await self.ensure_tag("artist", name)

    async def get_artist_by_id(self, artist_id: int) -> TagRow | None:
        return await self.get_tag_by_id("artist", artist_id)

    async def get_artist_by_name(self, name: str) -> TagRow | None:
        return await self.get_tag_by_name("artist", name)

    async def list_artists(self, *, limit: int = 500, offset: int = 0) -> list[TagRow]:
        return await self.list_tags("artist", limit=limit, offset=offset)

    async def count_artists(self) -> int:
        return await self.count_tags("artist")

    async def delete_artist(self, artist_id: int) -> bool:
        return await self.delete_tag("artist", artist_id)

    async def link_song_artist(self, song_id: int, artist_id: int) -> None:
        await self.link_song("artist", song_id, artist_id)

    async def unlink_song_artist(self, song_id: int, artist_id: int) -> bool:
        return await self.unlink_song("artist", song_id, artist_id)

    async def list_artists_for_song(self, song_id: int) -> list[TagRow]:
        return await self.list_tags_for_song("artist", song_id)

    async def list_songs_for_artist(
        self, artist_id: int, *, limit: int = 500, offset: int = 0
    ) -> list[SongRow]:
        return await self.list_songs_for_tag("artist", artist_id, limit=limit, offset=offset)

    # Albums
    async def insert_album(self, name: str) -> int:
        return await self.insert_tag("album", name)

    async def ensure_album(self, name: str) -> int:
        """Insert an album, or return the id of the existing entry with the same name."""
        return await self.ensure_tag("album", name)

    async def get_album_by_id(self, album_id: int) -> TagRow | None:
        return await self.get_tag_by_id("album", album_id)

    async def get_album_by_name(self, name: str) -> TagRow | None:
        return await self.get_tag_by_name("album", name)

    async def list_albums(self, *, limit: int = 500, offset: int = 0) -> list[TagRow]:
        return await self.list_tags("album", limit=limit, offset=offset)

    async def count_albums(self) -> int:
        return await self.count_tags("album")

    async def delete_album(self, album_id: int) -> bool:
        return await self.delete_tag("album", album_id)

    async def link_song_album(self, song_id: int, album_id: int) -> None:
        await self.link_song("album", song_id, album_id)

    async def unlink_song_album(self, song_id: int, album_id: int) -> bool:
        return await self.unlink_song("album", song_id, album_id)

    async def list_albums_for_song(self, song_id: int) -> list[TagRow]:
        return await self.list_tags_for_song("album", song_id)

    async def list_songs_for_album(
        self, album_id: int, *, limit: int = 500, offset: int = 0
    ) -> list[SongRow]:
        return await self.list_songs_for_tag("album", album_id, limit=limit, offset=offset)

    # Genres
    async def insert_genre(self, name: str) -> int:
        return await self.insert_tag("genre", name)

    async def ensure_genre(self, name: str) -> int:
        """Insert a genre, or return the id of the existing entry with the same name."""
        return await self.ensure_tag("genre", name)

    async def get_genre_by_id(self, genre_id: int) -> TagRow | None:
        return await self.get_tag_by_id("genre", genre_id)

    async def get_genre_by_name(self, name: str) -> TagRow | None:
        return await self.get_tag_by_name("genre", name)

    async def list_genres(self, *, limit: int = 500, offset: int = 0) -> list[TagRow]:
        return await self.list_tags("genre", limit=limit, offset=offset)

    async def count_genres(self) -> int:
        return await self.count_tags("genre")

    async def delete_genre(self, genre_id: int) -> bool:
        return await self.delete_tag("genre", genre_id)

    async def link_song_genre(self, song_id: int, genre_id: int) -> None:
        await self.link_song("genre", song_id, genre_id)

    async def unlink_song_genre(self, song_id: int, genre_id: int) -> bool:
        return await self.unlink_song("genre", song_id, genre_id)

    async def list_genres_for_song(self, song_id: int) -> list[TagRow]:
        return await self.list_tags_for_song("genre", song_id)

    async def list_songs_for_genre(
        self, genre_id: int, *, limit: int = 500, offset: int = 0
    ) -> list[SongRow]:
        return await self.list_songs_for_tag("genre", genre_id, limit=limit, offset=offset)

    # ===========================================================================
    # Maintenance
    # ===========================================================================

    async def cleanup_orphans(self) -> dict[str, int]:
        """
        Remove artists, albums and genres that no song links to.

        Files are left alone: a file without a song is a valid catalog entry.

        Returns:
            Dict with counts of deleted orphans.
        """
        conn = self._require_conn()
        result: dict[str, int] = {}
        for kind in ("artist", "album", "genre"):
            result[f"orphan_{kind}s_deleted"] = await queries_tags.delete_orphan_tags(conn, kind)
        return result


def _normalize_song(song: NewSong) -> NewSong:
    return NewSong(
        title=normalize_text(song.title),  # type: ignore[arg-type]
        source=normalize_text(song.source),
        youtube_id=normalize_text(song.youtube_id),
        thumbnail_url=normalize_text(song.thumbnail_url),
        file_id=normalize_int(song.file_id),
    )
