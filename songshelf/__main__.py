"""
songshelf - Entry Point

Run with: python -m songshelf <command>
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

import aiosqlite

from songshelf.config import CatalogConfig, get_config, reload_config
from songshelf.core.catalog import Catalog, Song, SongEntry, SongId, Tag
from songshelf.core.catalog_db import CatalogDb
from songshelf.core.db.ordering import SongsOrderBy
from songshelf.core.db.schema import SCHEMA_VERSION

logger = logging.getLogger("songshelf")

SONG_ORDERS: tuple[SongsOrderBy, ...] = ("title", "source", "id")


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Reduce noise from third-party libraries
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser."""
    parser = argparse.ArgumentParser(
        prog="songshelf",
        description="songshelf - manage a SQLite music catalog",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose (debug) logging",
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to a TOML config file (default: packaged defaults)",
    )

    parser.add_argument(
        "--db",
        type=str,
        default=None,
        help="Database file, overrides the configured one",
    )

    parser.add_argument(
        "--version",
        action="version",
        version="%(prog)s 0.1.0",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init", help="Create or migrate the catalog database")

    add = sub.add_parser("add", help="Add a song")
    add.add_argument("title")
    add.add_argument("--artist", action="append", default=[], help="May be repeated")
    add.add_argument("--album", action="append", default=[], help="May be repeated")
    add.add_argument("--genre", action="append", default=[], help="May be repeated")
    add.add_argument("--file", dest="file_path", default=None, help="Relative file path")
    add.add_argument("--source", default=None)
    add.add_argument("--youtube-id", default=None)
    add.add_argument("--thumbnail-url", default=None)

    show = sub.add_parser("show", help="Show one song")
    show.add_argument("song_id", type=int)

    ls = sub.add_parser("list", help="List songs")
    ls.add_argument("--limit", type=int, default=None)
    ls.add_argument("--offset", type=int, default=0)
    ls.add_argument("--order-by", choices=SONG_ORDERS, default="title")

    search = sub.add_parser("search", help="Search songs by title, artist, album or genre")
    search.add_argument("query")
    search.add_argument("--limit", type=int, default=50)

    remove = sub.add_parser("remove", help="Remove a song and its links")
    remove.add_argument("song_id", type=int)
    remove.add_argument(
        "--cleanup",
        action="store_true",
        help="Also remove artists/albums/genres left without songs",
    )

    for name in ("artists", "albums", "genres"):
        p = sub.add_parser(name, help=f"List {name}")
        p.add_argument("--limit", type=int, default=None)
        p.add_argument("--offset", type=int, default=0)

    return parser


def resolve_db_path(args: argparse.Namespace, config: CatalogConfig) -> str:
    """Pick the database file and make sure its directory exists."""
    if args.db:
        return str(args.db)
    path = config.database_path
    if str(path) != ":memory:":
        path.parent.mkdir(parents=True, exist_ok=True)
    return str(path)


def format_song(song: Song) -> str:
    def names(tags: tuple[Tag, ...]) -> str:
        return ", ".join(t.name for t in tags) or "-"

    lines = [
        f"[{song.id}] {song.title}",
        f"  artists:   {names(song.artists)}",
        f"  albums:    {names(song.albums)}",
        f"  genres:    {names(song.genres)}",
        f"  file:      {song.file_path or '-'}",
    ]
    if song.source:
        lines.append(f"  source:    {song.source}")
    if song.youtube_id:
        lines.append(f"  youtube:   {song.youtube_id}")
    if song.thumbnail_url:
        lines.append(f"  thumbnail: {song.thumbnail_url}")
    return "\n".join(lines)


def format_song_line(song: Song) -> str:
    artists = ", ".join(t.name for t in song.artists)
    return f"{song.id:>6}  {song.title}" + (f"  ({artists})" if artists else "")


async def run_command(args: argparse.Namespace, config: CatalogConfig) -> int:
    """Open the catalog, run one command, close the catalog."""
    db = CatalogDb(resolve_db_path(args, config))
    await db.open()
    try:
        catalog = Catalog(db=db)
        await catalog.initialize()
        return await dispatch(catalog, args, config)
    finally:
        await db.close()


async def dispatch(catalog: Catalog, args: argparse.Namespace, config: CatalogConfig) -> int:
    limit = getattr(args, "limit", None)
    page_size = limit if limit is not None else config.default_page_size

    if args.command == "init":
        logger.info("Catalog ready at %s (schema v%d)", catalog.db.path, SCHEMA_VERSION)
        return 0

    if args.command == "add":
        song = await catalog.add_song(
            SongEntry(
                title=args.title,
                source=args.source,
                youtube_id=args.youtube_id,
                thumbnail_url=args.thumbnail_url,
                file_path=args.file_path,
                artists=tuple(args.artist),
                albums=tuple(args.album),
                genres=tuple(args.genre),
            )
        )
        print(format_song(song))
        return 0

    if args.command == "show":
        song = await catalog.get_song(SongId(args.song_id))
        if song is None:
            logger.error("No song with id %d", args.song_id)
            return 1
        print(format_song(song))
        return 0

    if args.command == "list":
        songs = await catalog.get_songs(offset=args.offset, limit=page_size, order_by=args.order_by)
        for song in songs:
            print(format_song_line(song))
        return 0

    if args.command == "search":
        result = await catalog.search(args.query, limit=args.limit)
        for song in result.songs:
            print(format_song_line(song))
        return 0

    if args.command == "remove":
        removed = await catalog.remove_song(SongId(args.song_id), cleanup_orphans=args.cleanup)
        if not removed:
            logger.error("No song with id %d", args.song_id)
            return 1
        return 0

    if args.command in ("artists", "albums", "genres"):
        getter = {
            "artists": catalog.get_artists,
            "albums": catalog.get_albums,
            "genres": catalog.get_genres,
        }[args.command]
        for tag in await getter(offset=args.offset, limit=page_size):
            print(f"{tag.id:>6}  {tag.name}")
        return 0

    logger.error("Unknown command: %s", args.command)
    return 1


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the application."""
    args = build_parser().parse_args(argv)
    setup_logging(verbose=args.verbose)

    try:
        config = reload_config(args.config) if args.config else get_config()
        return asyncio.run(run_command(args, config))
    except aiosqlite.IntegrityError as e:
        logger.error("Constraint violation: %s", e)
        return 1
    except ValueError as e:
        logger.error("%s", e)
        return 1
    except Exception as e:
        logger.exception("Fatal error: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
