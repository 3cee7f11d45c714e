"""
Database schema + migrations for songshelf.

- Connection management and the public `CatalogDb` facade live in `catalog_db.py`
- Schema creation, schema versioning, and forward-only migrations live here

Design notes:
- We use SQLite `PRAGMA user_version` as the schema version.
- Migrations are forward-only (no downgrade support).
- The v1 layout must stay column-for-column compatible with catalogs that were
  created before versioning existed. Those databases report user_version 0,
  so every statement uses IF NOT EXISTS and v1 adopts them in place.
- Foreign keys carry no ON DELETE action. Junction cleanup is done by the
  access layer (see `CatalogDb.delete_song`).
"""

from __future__ import annotations

import logging
from typing import Final

import aiosqlite

logger = logging.getLogger(__name__)

# Bump when you change the schema and add a migration in `migrate()`.
SCHEMA_VERSION: Final[int] = 1

TABLE_NAMES: Final[tuple[str, ...]] = (
    "song",
    "artist",
    "album",
    "genre",
    "file",
    "songs_artists",
    "songs_albums",
    "songs_genres",
)


async def ensure_schema(conn: aiosqlite.Connection) -> None:
    """
    Create or migrate schema to current version.

    This function assumes:
    - `conn` is an open aiosqlite connection
    - foreign_keys pragma is enabled by the caller
    """
    cursor = await conn.execute("PRAGMA user_version;")
    row = await cursor.fetchone()
    current = int(row[0]) if row is not None else 0

    if current > SCHEMA_VERSION:
        raise RuntimeError(
            f"Database schema version {current} is newer than supported {SCHEMA_VERSION}."
        )

    if current == SCHEMA_VERSION:
        return

    logger.info("Migrating catalog schema from v%d to v%d", current, SCHEMA_VERSION)
    await migrate(conn, from_version=current, to_version=SCHEMA_VERSION)
    await conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION};")
    await conn.commit()


async def migrate(conn: aiosqlite.Connection, *, from_version: int, to_version: int) -> None:
    """
    Perform forward-only migrations.

    Keep migrations small. If you need a big refactor, create a new DB.
    """
    # v0 -> v1
    if from_version == 0 and to_version >= 1:
        # `song` references `file` before it exists; SQLite resolves FKs lazily.
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS "song" (
                "id" INTEGER NOT NULL PRIMARY KEY,
                "title" TEXT NOT NULL,
                "source" TEXT,
                "youtube_id" TEXT,
                "thumbnail_url" TEXT,
                "file_id" INTEGER UNIQUE,
                FOREIGN KEY("file_id") REFERENCES file("id")
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS "artist" (
                "id" INTEGER NOT NULL PRIMARY KEY,
                "name" TEXT NOT NULL UNIQUE
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS "album" (
                "id" INTEGER NOT NULL PRIMARY KEY,
                "name" TEXT NOT NULL UNIQUE
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS "genre" (
                "id" INTEGER NOT NULL PRIMARY KEY,
                "name" TEXT NOT NULL UNIQUE
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS "file" (
                "id" INTEGER NOT NULL PRIMARY KEY,
                "relative_path" TEXT NOT NULL UNIQUE
            )
            """
        )

        # Junction tables: the pair is the identity.
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS "songs_artists" (
                "song_id" INTEGER NOT NULL,
                "artist_id" INTEGER NOT NULL,
                FOREIGN KEY("song_id") REFERENCES song("id"),
                FOREIGN KEY("artist_id") REFERENCES artist("id"),
                UNIQUE("song_id", "artist_id"),
                PRIMARY KEY("song_id", "artist_id")
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS "songs_albums" (
                "song_id" INTEGER NOT NULL,
                "album_id" INTEGER NOT NULL,
                FOREIGN KEY("song_id") REFERENCES song("id"),
                FOREIGN KEY("album_id") REFERENCES album("id"),
                UNIQUE("song_id", "album_id"),
                PRIMARY KEY("song_id", "album_id")
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS "songs_genres" (
                "song_id" INTEGER NOT NULL,
                "genre_id" INTEGER NOT NULL,
                FOREIGN KEY("song_id") REFERENCES song("id"),
                FOREIGN KEY("genre_id") REFERENCES genre("id"),
                UNIQUE("song_id", "genre_id"),
                PRIMARY KEY("song_id", "genre_id")
            )
            """
        )

        await conn.commit()
        from_version = 1

    if from_version != to_version:
        raise RuntimeError(f"No migration path from {from_version} to {to_version}.")


async def list_tables(conn: aiosqlite.Connection) -> list[str]:
    """Return user table names present in the database, sorted."""
    cursor = await conn.execute(
        """
        SELECT name FROM sqlite_master
        WHERE type = 'table' AND name NOT LIKE 'sqlite_%'
        ORDER BY name;
        """
    )
    rows = await cursor.fetchall()
    return [str(r[0]) for r in rows]
