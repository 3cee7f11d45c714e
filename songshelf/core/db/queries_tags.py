"""
Artist, album and genre DB queries, including their song junction tables.

The three tables share one shape (`id`, unique `name`) and each has a junction
table keyed by (song_id, <kind>_id). Every function takes the kind as its
first argument after the connection.

Design:
- Functions are *pure DB helpers*: they take an open `aiosqlite.Connection`
  and return materialized dataclasses.
- These functions assume `conn.row_factory = aiosqlite.Row`.
- Nothing here commits. Transaction boundaries belong to the caller.

Important:
- Do NOT interpolate user input into SQL. Table and column names come from
  the `_TABLES` whitelist; ORDER BY fragments come from `ordering`.
"""

from __future__ import annotations

from typing import NamedTuple

import aiosqlite

from songshelf.core.db.models import SongLink, SongRow, TagKind, TagRow
from songshelf.core.db.ordering import songs_order_clause, tags_order_clause
from songshelf.core.db.queries_songs import _row_to_song


class _TagTables(NamedTuple):
    table: str
    junction: str
    column: str


_TABLES: dict[str, _TagTables] = {
    "artist": _TagTables("artist", "songs_artists", "artist_id"),
    "album": _TagTables("album", "songs_albums", "album_id"),
    "genre": _TagTables("genre", "songs_genres", "genre_id"),
}


def _tables(kind: TagKind) -> _TagTables:
    try:
        return _TABLES[kind]
    except KeyError:
        raise ValueError(f"Unknown tag kind: {kind!r}") from None


def _row_to_tag(row: aiosqlite.Row) -> TagRow:
    return TagRow(id=int(row["id"]), name=str(row["name"]))


# ---------------------------------------------------------------------------
# Basic insert/get/list/count
# ---------------------------------------------------------------------------


async def insert_tag(conn: aiosqlite.Connection, kind: TagKind, name: str) -> int:
    """Insert a row. Raises IntegrityError if the name already exists."""
    t = _tables(kind)
    cursor = await conn.execute(f'INSERT INTO "{t.table}" (name) VALUES (?);', (name,))
    return int(cursor.lastrowid)


async def ensure_tag(conn: aiosqlite.Connection, kind: TagKind, name: str) -> int:
    """Get or create a row by name, return ID."""
    existing = await get_tag_by_name(conn, kind, name)
    if existing is not None:
        return existing.id
    return await insert_tag(conn, kind, name)


async def get_tag_by_id(conn: aiosqlite.Connection, kind: TagKind, tag_id: int) -> TagRow | None:
    t = _tables(kind)
    cursor = await conn.execute(
        f'SELECT id, name FROM "{t.table}" WHERE id = ?;',
        (int(tag_id),),
    )
    row = await cursor.fetchone()
    return _row_to_tag(row) if row else None


async def get_tag_by_name(conn: aiosqlite.Connection, kind: TagKind, name: str) -> TagRow | None:
    t = _tables(kind)
    cursor = await conn.execute(
        f'SELECT id, name FROM "{t.table}" WHERE name = ?;',
        (name,),
    )
    row = await cursor.fetchone()
    return _row_to_tag(row) if row else None


async def list_tags(
    conn: aiosqlite.Connection,
    kind: TagKind,
    *,
    limit: int,
    offset: int,
    order_by: str = "name",
) -> list[TagRow]:
    t = _tables(kind)
    order_clause = tags_order_clause(order_by)
    cursor = await conn.execute(
        f"""
        SELECT t.id, t.name FROM "{t.table}" t
        {order_clause}
        LIMIT ? OFFSET ?;
        """,
        (int(limit), int(offset)),
    )
    rows = await cursor.fetchall()
    return [_row_to_tag(r) for r in rows]


async def count_tags(conn: aiosqlite.Connection, kind: TagKind) -> int:
    t = _tables(kind)
    cursor = await conn.execute(f'SELECT COUNT(*) AS c FROM "{t.table}";')
    row = await cursor.fetchone()
    return int(row["c"]) if row else 0


async def delete_tag(conn: aiosqlite.Connection, kind: TagKind, tag_id: int) -> bool:
    """Delete a row together with its junction rows. Returns False if not found."""
    t = _tables(kind)
    await conn.execute(f'DELETE FROM "{t.junction}" WHERE {t.column} = ?;', (int(tag_id),))
    cursor = await conn.execute(f'DELETE FROM "{t.table}" WHERE id = ?;', (int(tag_id),))
    return cursor.rowcount > 0


# ---------------------------------------------------------------------------
# Junctions
# ---------------------------------------------------------------------------


async def link(conn: aiosqlite.Connection, kind: TagKind, song_id: int, tag_id: int) -> None:
    """
    Insert a junction row.

    Raises IntegrityError when the pair already exists or either id is unknown.
    """
    t = _tables(kind)
    await conn.execute(
        f'INSERT INTO "{t.junction}" (song_id, {t.column}) VALUES (?, ?);',
        (int(song_id), int(tag_id)),
    )


async def unlink(conn: aiosqlite.Connection, kind: TagKind, song_id: int, tag_id: int) -> bool:
    t = _tables(kind)
    cursor = await conn.execute(
        f'DELETE FROM "{t.junction}" WHERE song_id = ? AND {t.column} = ?;',
        (int(song_id), int(tag_id)),
    )
    return cursor.rowcount > 0


async def list_links(conn: aiosqlite.Connection, kind: TagKind) -> list[SongLink]:
    """All junction rows of one kind, ordered by (song_id, tag_id)."""
    t = _tables(kind)
    cursor = await conn.execute(
        f"""
        SELECT song_id, {t.column} AS tag_id FROM "{t.junction}"
        ORDER BY song_id ASC, tag_id ASC;
        """
    )
    rows = await cursor.fetchall()
    return [SongLink(song_id=int(r["song_id"]), tag_id=int(r["tag_id"])) for r in rows]


async def delete_links_for_song(conn: aiosqlite.Connection, song_id: int) -> int:
    """Remove every artist/album/genre link of a song. Returns count of rows removed."""
    removed = 0
    for t in _TABLES.values():
        cursor = await conn.execute(
            f'DELETE FROM "{t.junction}" WHERE song_id = ?;',
            (int(song_id),),
        )
        removed += cursor.rowcount
    return removed


async def list_tags_for_song(
    conn: aiosqlite.Connection, kind: TagKind, song_id: int
) -> list[TagRow]:
    """Rows linked to one song, in link (insertion) order."""
    t = _tables(kind)
    cursor = await conn.execute(
        f"""
        SELECT t.id, t.name
        FROM "{t.junction}" j
        JOIN "{t.table}" t ON t.id = j.{t.column}
        WHERE j.song_id = ?
        ORDER BY j.rowid ASC;
        """,
        (int(song_id),),
    )
    rows = await cursor.fetchall()
    return [_row_to_tag(r) for r in rows]


async def list_songs_for_tag(
    conn: aiosqlite.Connection,
    kind: TagKind,
    tag_id: int,
    *,
    limit: int,
    offset: int,
    order_by: str = "title",
) -> list[SongRow]:
    t = _tables(kind)
    order_clause = songs_order_clause(order_by)
    cursor = await conn.execute(
        f"""
        SELECT s.*
        FROM song s
        JOIN "{t.junction}" j ON j.song_id = s.id
        WHERE j.{t.column} = ?
        {order_clause}
        LIMIT ? OFFSET ?;
        """,
        (int(tag_id), int(limit), int(offset)),
    )
    rows = await cursor.fetchall()
    return [_row_to_song(r) for r in rows]


async def count_songs_for_tag(conn: aiosqlite.Connection, kind: TagKind, tag_id: int) -> int:
    t = _tables(kind)
    cursor = await conn.execute(
        f'SELECT COUNT(*) AS c FROM "{t.junction}" WHERE {t.column} = ?;',
        (int(tag_id),),
    )
    row = await cursor.fetchone()
    return int(row["c"]) if row else 0


async def delete_orphan_tags(conn: aiosqlite.Connection, kind: TagKind) -> int:
    """Delete rows no song links to. Returns count of deleted rows."""
    t = _tables(kind)
    cursor = await conn.execute(
        f"""
        DELETE FROM "{t.table}"
        WHERE id NOT IN (SELECT DISTINCT {t.column} FROM "{t.junction}")
        """
    )
    return cursor.rowcount
