"""
DB models (DTOs) and small normalization helpers for the catalog tables.

This module is intentionally lightweight:
- No DB connection knowledge
- No SQL
- Pure dataclasses + helper functions
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

# Artist, album and genre tables share one shape (id, unique name).
TagKind = Literal["artist", "album", "genre"]

TAG_KINDS: tuple[TagKind, ...] = ("artist", "album", "genre")


@dataclass(frozen=True, slots=True)
class FileRow:
    """File record as stored in SQLite."""

    id: int
    relative_path: str


@dataclass(frozen=True, slots=True)
class SongRow:
    """
    Song record as stored in SQLite.

    Notes:
    - `file_id` is unique across songs: a file belongs to at most one song.
    - A song without a file is a metadata-only entry.
    """

    id: int
    title: str
    source: str | None = None
    youtube_id: str | None = None
    thumbnail_url: str | None = None
    file_id: int | None = None


@dataclass(frozen=True, slots=True)
class TagRow:
    """Artist, album or genre record as stored in SQLite."""

    id: int
    name: str


@dataclass(frozen=True, slots=True)
class NewSong:
    """
    Input record used by importers and the CLI.

    `title` is required; everything else is optional.
    """

    title: str
    source: str | None = None
    youtube_id: str | None = None
    thumbnail_url: str | None = None
    file_id: int | None = None


@dataclass(frozen=True, slots=True)
class SongLink:
    """One junction row: a song paired with an artist, album or genre."""

    song_id: int
    tag_id: int


def normalize_text(value: str | None) -> str | None:
    """
    Normalize optional text fields:
    - strip whitespace
    - coerce empty strings to None
    """
    if value is None:
        return None
    v = value.strip()
    return v if v else None


def normalize_int(value: int | None) -> int | None:
    """Normalize optional integer fields (coerce to int, keep None)."""
    if value is None:
        return None
    return int(value)
