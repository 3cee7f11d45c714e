from __future__ import annotations

import logging
import string
from dataclasses import dataclass
from typing import Iterable, NewType

from songshelf.core.catalog_db import CatalogDb
from songshelf.core.db.models import NewSong, SongRow, TagKind, TagRow, normalize_text

logger = logging.getLogger(__name__)

# SQLite LIKE folds ASCII letters only.
_ASCII_LOWER = str.maketrans(string.ascii_uppercase, string.ascii_lowercase)

SongId = NewType("SongId", int)
FileId = NewType("FileId", int)
TagId = NewType("TagId", int)


@dataclass(frozen=True, slots=True)
class Tag:
    id: TagId
    name: str


@dataclass(frozen=True, slots=True)
class Song:
    id: SongId
    title: str
    source: str | None = None
    youtube_id: str | None = None
    thumbnail_url: str | None = None
    file_id: FileId | None = None
    file_path: str | None = None
    artists: tuple[Tag, ...] = ()
    albums: tuple[Tag, ...] = ()
    genres: tuple[Tag, ...] = ()


@dataclass(frozen=True, slots=True)
class SongEntry:
    """
    A song as handed over by an importer: plain names instead of ids.

    `file_path` is the path relative to the library root; the file row is
    created on demand.
    """

    title: str
    source: str | None = None
    youtube_id: str | None = None
    thumbnail_url: str | None = None
    file_path: str | None = None
    artists: tuple[str, ...] = ()
    albums: tuple[str, ...] = ()
    genres: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class SearchResult:
    songs: tuple[Song, ...]
    artists: tuple[Tag, ...]
    albums: tuple[Tag, ...]
    genres: tuple[Tag, ...]


class CatalogError(RuntimeError):
    """Base error for Catalog operations."""


class CatalogNotReadyError(CatalogError):
    """Raised when operations are attempted before the catalog is initialized."""


class Catalog:
    """
    High-level facade for the songshelf catalog.

    Writes whole songs (row + file + links) in one step and reads them back
    with every association resolved. Constraint violations are not wrapped:
    callers see the engine's IntegrityError.

    Dependencies:
    - `CatalogDb` for persistence
    """

    def __init__(self, *, db: CatalogDb) -> None:
        self._db = db
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def db(self) -> CatalogDb:
        return self._db

    async def initialize(self) -> None:
        """
        Prepare the catalog.

        Contract:
        - `CatalogDb` must already be open.
        - schema/migrations are ensured here for convenience.
        """
        if not self._db.is_open:
            raise CatalogError("CatalogDb is not open. Open it before initializing Catalog.")

        await self._db.ensure_schema()
        self._initialized = True

    # ---- Writes ----

    async def add_song(self, entry: SongEntry) -> Song:
        """
        Record a song with its file and artist/album/genre names.

        Names are get-or-create; the file path is get-or-create too, but a
        file already held by another song makes the whole entry fail. Nothing
        is written unless everything is.
        """
        self._require_initialized()

        async with self._db.savepoint("add_song_sp"):
            file_id: int | None = None
            path = normalize_text(entry.file_path)
            if path is not None:
                file_id = await self._db.ensure_file(path)

            song_id = await self._db.insert_song(
                NewSong(
                    title=entry.title,
                    source=entry.source,
                    youtube_id=entry.youtube_id,
                    thumbnail_url=entry.thumbnail_url,
                    file_id=file_id,
                )
            )

            for kind, names in (
                ("artist", entry.artists),
                ("album", entry.albums),
                ("genre", entry.genres),
            ):
                for name in _unique_names(names):
                    tag_id = await self._db.ensure_tag(kind, name)
                    await self._db.link_song(kind, song_id, tag_id)

        await self._db.commit()
        logger.info("Added song %d: %s", song_id, entry.title)

        song = await self.get_song(SongId(song_id))
        if song is None:
            raise CatalogError(f"Song {song_id} vanished after insert.")
        return song

    async def remove_song(self, song_id: SongId, *, cleanup_orphans: bool = False) -> bool:
        """
        Remove a song and its links. The file entry stays in the catalog.

        With `cleanup_orphans`, artists/albums/genres left without songs are
        removed as well.
        """
        self._require_initialized()
        removed = await self._db.delete_song(int(song_id))
        if removed and cleanup_orphans:
            counts = await self._db.cleanup_orphans()
            logger.debug("Orphan cleanup: %s", counts)
        await self._db.commit()
        if removed:
            logger.info("Removed song %d", song_id)
        return removed

    # ---- Reads ----

    async def get_song(self, song_id: SongId) -> Song | None:
        self._require_initialized()
        row = await self._db.get_song_by_id(int(song_id))
        if row is None:
            return None
        return await self._to_song(row)

    async def get_songs(
        self, *, offset: int = 0, limit: int = 100, order_by: str = "title"
    ) -> tuple[Song, ...]:
        self._require_initialized()
        self._validate_paging(offset=offset, limit=limit)
        rows = await self._db.list_songs(limit=limit, offset=offset, order_by=order_by)
        return tuple([await self._to_song(r) for r in rows])

    async def get_songs_for(
        self, kind: TagKind, tag_id: TagId, *, offset: int = 0, limit: int = 100
    ) -> tuple[Song, ...]:
        """Songs linked to one artist, album or genre."""
        self._require_initialized()
        self._validate_paging(offset=offset, limit=limit)
        rows = await self._db.list_songs_for_tag(kind, int(tag_id), limit=limit, offset=offset)
        return tuple([await self._to_song(r) for r in rows])

    async def get_artists(self, *, offset: int = 0, limit: int = 100) -> tuple[Tag, ...]:
        return await self._get_tags("artist", offset=offset, limit=limit)

    async def get_albums(self, *, offset: int = 0, limit: int = 100) -> tuple[Tag, ...]:
        return await self._get_tags("album", offset=offset, limit=limit)

    async def get_genres(self, *, offset: int = 0, limit: int = 100) -> tuple[Tag, ...]:
        return await self._get_tags("genre", offset=offset, limit=limit)

    async def search(self, query: str, *, limit: int = 50) -> SearchResult:
        """
        Find songs by title or by a linked artist/album/genre name.

        The query is a literal substring. Case is ignored for ASCII letters
        only, for songs and for the returned tag matches alike.
        """
        self._require_initialized()
        self._validate_paging(offset=0, limit=limit)
        q = query.strip()
        if not q:
            return SearchResult(songs=(), artists=(), albums=(), genres=())

        rows = await self._db.search_songs(q, limit=limit, offset=0)
        songs = tuple([await self._to_song(r) for r in rows])

        # Name matches come from the songs' own tags; unlinked names are not searched.
        needle = _ascii_lower(q)
        return SearchResult(
            songs=songs,
            artists=_matching_tags((s.artists for s in songs), needle),
            albums=_matching_tags((s.albums for s in songs), needle),
            genres=_matching_tags((s.genres for s in songs), needle),
        )

    # ---- Internals ----

    async def _get_tags(self, kind: TagKind, *, offset: int, limit: int) -> tuple[Tag, ...]:
        self._require_initialized()
        self._validate_paging(offset=offset, limit=limit)
        rows = await self._db.list_tags(kind, limit=limit, offset=offset)
        return _to_tags(rows)

    async def _to_song(self, row: SongRow) -> Song:
        file_path: str | None = None
        if row.file_id is not None:
            file_row = await self._db.get_file_by_id(row.file_id)
            file_path = file_row.relative_path if file_row else None

        return Song(
            id=SongId(row.id),
            title=row.title,
            source=row.source,
            youtube_id=row.youtube_id,
            thumbnail_url=row.thumbnail_url,
            file_id=FileId(row.file_id) if row.file_id is not None else None,
            file_path=file_path,
            artists=_to_tags(await self._db.list_artists_for_song(row.id)),
            albums=_to_tags(await self._db.list_albums_for_song(row.id)),
            genres=_to_tags(await self._db.list_genres_for_song(row.id)),
        )

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise CatalogNotReadyError(
                "Catalog is not initialized. Call await Catalog.initialize() first."
            )

    @staticmethod
    def _validate_paging(*, offset: int, limit: int) -> None:
        if offset < 0:
            raise ValueError("offset must be >= 0")
        if limit <= 0:
            raise ValueError("limit must be > 0")
        if limit > 10_000:
            raise ValueError("limit is unreasonably large")


def _to_tags(rows: Iterable[TagRow]) -> tuple[Tag, ...]:
    return tuple(Tag(id=TagId(r.id), name=r.name) for r in rows)


def _unique_names(names: Iterable[str]) -> list[str]:
    """Normalize names, drop empties and repeats, keep first-seen order."""
    seen: set[str] = set()
    result: list[str] = []
    for raw in names:
        name = normalize_text(raw)
        if name is None or name in seen:
            continue
        seen.add(name)
        result.append(name)
    return result


def _ascii_lower(text: str) -> str:
    return text.translate(_ASCII_LOWER)


def _matching_tags(groups: Iterable[tuple[Tag, ...]], needle: str) -> tuple[Tag, ...]:
    found: dict[int, Tag] = {}
    for group in groups:
        for tag in group:
            if needle in _ascii_lower(tag.name):
                found.setdefault(int(tag.id), tag)
    return tuple(sorted(found.values(), key=lambda t: (t.name.casefold(), t.id)))
