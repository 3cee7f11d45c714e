"""
Internal DB subpackage for songshelf.

Models, schema/migrations and query groups live here, while `CatalogDb`
remains the single public interface the rest of the codebase imports.

External code should import `CatalogDb` from `songshelf.core.catalog_db`.
"""

from __future__ import annotations

# Models / DTOs
from .models import TAG_KINDS, FileRow, NewSong, SongLink, SongRow, TagKind, TagRow

# Schema / migrations
from .schema import SCHEMA_VERSION, TABLE_NAMES, ensure_schema, migrate

__all__ = [
    # models
    "FileRow",
    "SongRow",
    "TagRow",
    "NewSong",
    "SongLink",
    "TagKind",
    "TAG_KINDS",
    # schema
    "SCHEMA_VERSION",
    "TABLE_NAMES",
    "ensure_schema",
    "migrate",
]
