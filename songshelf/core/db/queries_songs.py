"""
Song and file DB queries used by `songshelf.core.catalog_db.CatalogDb`.

Design:
- Functions are *pure DB helpers*: they take an open `aiosqlite.Connection`
  and return materialized dataclasses.
- Ordering is centralized via `songshelf.core.db.ordering.songs_order_clause`.
- These functions assume `conn.row_factory = aiosqlite.Row`.
- Nothing here commits. Transaction boundaries belong to the caller.

Important:
- Do NOT interpolate user input into SQL. Any dynamic SQL here is limited to
  ORDER BY clauses selected from a small whitelist in `songs_order_clause`.
"""

from __future__ import annotations

import aiosqlite

from songshelf.core.db.models import FileRow, NewSong, SongRow
from songshelf.core.db.ordering import songs_order_clause


def _row_to_song(row: aiosqlite.Row) -> SongRow:
    """Convert an aiosqlite Row to a SongRow dataclass."""
    file_id = row["file_id"]
    return SongRow(
        id=int(row["id"]),
        title=str(row["title"]),
        source=row["source"],
        youtube_id=row["youtube_id"],
        thumbnail_url=row["thumbnail_url"],
        file_id=int(file_id) if file_id is not None else None,
    )


def _row_to_file(row: aiosqlite.Row) -> FileRow:
    return FileRow(id=int(row["id"]), relative_path=str(row["relative_path"]))


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so `value` matches literally (use with ESCAPE '\\')."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------


async def insert_file(conn: aiosqlite.Connection, relative_path: str) -> int:
    """Insert a file row. Raises IntegrityError if the path already exists."""
    cursor = await conn.execute(
        'INSERT INTO "file" (relative_path) VALUES (?);',
        (relative_path,),
    )
    return int(cursor.lastrowid)


async def ensure_file(conn: aiosqlite.Connection, relative_path: str) -> int:
    """Get or create a file by path, return ID."""
    existing = await get_file_by_path(conn, relative_path)
    if existing is not None:
        return existing.id
    return await insert_file(conn, relative_path)


async def get_file_by_id(conn: aiosqlite.Connection, file_id: int) -> FileRow | None:
    cursor = await conn.execute(
        'SELECT id, relative_path FROM "file" WHERE id = ?;',
        (int(file_id),),
    )
    row = await cursor.fetchone()
    return _row_to_file(row) if row else None


async def get_file_by_path(conn: aiosqlite.Connection, relative_path: str) -> FileRow | None:
    cursor = await conn.execute(
        'SELECT id, relative_path FROM "file" WHERE relative_path = ?;',
        (relative_path,),
    )
    row = await cursor.fetchone()
    return _row_to_file(row) if row else None


async def list_files(
    conn: aiosqlite.Connection,
    *,
    limit: int,
    offset: int,
) -> list[FileRow]:
    cursor = await conn.execute(
        """
        SELECT id, relative_path FROM "file"
        ORDER BY relative_path ASC, id ASC
        LIMIT ? OFFSET ?;
        """,
        (int(limit), int(offset)),
    )
    rows = await cursor.fetchall()
    return [_row_to_file(r) for r in rows]


async def list_unclaimed_files(
    conn: aiosqlite.Connection,
    *,
    limit: int,
    offset: int,
) -> list[FileRow]:
    """List files that no song links to."""
    cursor = await conn.execute(
        """
        SELECT f.id, f.relative_path
        FROM "file" f
        LEFT JOIN song s ON s.file_id = f.id
        WHERE s.id IS NULL
        ORDER BY f.relative_path ASC, f.id ASC
        LIMIT ? OFFSET ?;
        """,
        (int(limit), int(offset)),
    )
    rows = await cursor.fetchall()
    return [_row_to_file(r) for r in rows]


async def count_files(conn: aiosqlite.Connection) -> int:
    cursor = await conn.execute('SELECT COUNT(*) AS c FROM "file";')
    row = await cursor.fetchone()
    return int(row["c"]) if row else 0


async def delete_file(conn: aiosqlite.Connection, file_id: int) -> bool:
    """
    Delete a file row. Returns True if deleted, False if not found.

    A file still claimed by a song raises IntegrityError (foreign key).
    """
    cursor = await conn.execute('DELETE FROM "file" WHERE id = ?;', (int(file_id),))
    return cursor.rowcount > 0


# ---------------------------------------------------------------------------
# Songs
# ---------------------------------------------------------------------------


async def insert_song(conn: aiosqlite.Connection, song: NewSong) -> int:
    cursor = await conn.execute(
        """
        INSERT INTO song (title, source, youtube_id, thumbnail_url, file_id)
        VALUES (:title, :source, :youtube_id, :thumbnail_url, :file_id);
        """,
        {
            "title": song.title,
            "source": song.source,
            "youtube_id": song.youtube_id,
            "thumbnail_url": song.thumbnail_url,
            "file_id": song.file_id,
        },
    )
    return int(cursor.lastrowid)


async def get_song_by_id(conn: aiosqlite.Connection, song_id: int) -> SongRow | None:
    cursor = await conn.execute("SELECT * FROM song WHERE id = ?;", (int(song_id),))
    row = await cursor.fetchone()
    return _row_to_song(row) if row else None


async def get_song_by_file_id(conn: aiosqlite.Connection, file_id: int) -> SongRow | None:
    cursor = await conn.execute("SELECT * FROM song WHERE file_id = ?;", (int(file_id),))
    row = await cursor.fetchone()
    return _row_to_song(row) if row else None


async def list_songs(
    conn: aiosqlite.Connection,
    *,
    limit: int,
    offset: int,
    order_by: str,
) -> list[SongRow]:
    order_clause = songs_order_clause(order_by)
    cursor = await conn.execute(
        f"""
        SELECT * FROM song s
        {order_clause}
        LIMIT ? OFFSET ?;
        """,
        (int(limit), int(offset)),
    )
    rows = await cursor.fetchall()
    return [_row_to_song(r) for r in rows]


async def count_songs(conn: aiosqlite.Connection) -> int:
    cursor = await conn.execute("SELECT COUNT(*) AS c FROM song;")
    row = await cursor.fetchone()
    return int(row["c"]) if row else 0


async def search_songs(
    conn: aiosqlite.Connection,
    query: str,
    *,
    limit: int,
    offset: int,
) -> list[SongRow]:
    """
    Match the query against song titles and linked artist/album/genre names.

    The query is a literal substring: `%`, `_` and backslash are not wildcards.
    Case is ignored for ASCII letters only, as SQLite's LIKE does.
    """
    like_pattern = f"%{escape_like(query)}%"
    cursor = await conn.execute(
        r"""
        SELECT s.* FROM song s
        WHERE s.title LIKE :q ESCAPE '\'
           OR s.id IN (
                SELECT sa.song_id FROM songs_artists sa
                JOIN artist a ON a.id = sa.artist_id
                WHERE a.name LIKE :q ESCAPE '\'
           )
           OR s.id IN (
                SELECT sb.song_id FROM songs_albums sb
                JOIN album b ON b.id = sb.album_id
                WHERE b.name LIKE :q ESCAPE '\'
           )
           OR s.id IN (
                SELECT sg.song_id FROM songs_genres sg
                JOIN genre g ON g.id = sg.genre_id
                WHERE g.name LIKE :q ESCAPE '\'
           )
        ORDER BY s.title COLLATE NOCASE ASC, s.id ASC
        LIMIT :limit OFFSET :offset;
        """,
        {"q": like_pattern, "limit": int(limit), "offset": int(offset)},
    )
    rows = await cursor.fetchall()
    return [_row_to_song(r) for r in rows]


async def update_song(conn: aiosqlite.Connection, song_id: int, song: NewSong) -> bool:
    """Overwrite every column of a song. Returns False if the song does not exist."""
    cursor = await conn.execute(
        """
        UPDATE song SET
            title         = :title,
            source        = :source,
            youtube_id    = :youtube_id,
            thumbnail_url = :thumbnail_url,
            file_id       = :file_id
        WHERE id = :id;
        """,
        {
            "id": int(song_id),
            "title": song.title,
            "source": song.source,
            "youtube_id": song.youtube_id,
            "thumbnail_url": song.thumbnail_url,
            "file_id": song.file_id,
        },
    )
    return cursor.rowcount > 0


async def set_song_file(conn: aiosqlite.Connection, song_id: int, file_id: int | None) -> bool:
    """Claim (or release, with None) a file for a song."""
    cursor = await conn.execute(
        "UPDATE song SET file_id = ? WHERE id = ?;",
        (file_id, int(song_id)),
    )
    return cursor.rowcount > 0


async def delete_song(conn: aiosqlite.Connection, song_id: int) -> bool:
    """
    Delete the song row only. Junction rows must be gone first, otherwise the
    foreign keys reject the delete.
    """
    cursor = await conn.execute("DELETE FROM song WHERE id = ?;", (int(song_id),))
    return cursor.rowcount > 0
