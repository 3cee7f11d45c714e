"""
Shared ORDER BY clause helpers for CatalogDb queries.

Important:
- The returned strings are *static SQL fragments* selected from a small
  whitelist. Do NOT concatenate user input into ORDER BY.
- Unknown sort keys fall back to a sensible default.
"""

from __future__ import annotations

from typing import Literal

SongsOrderBy = Literal[
    "title",
    "source",
    "id",
]

TagsOrderBy = Literal[
    "name",
    "id",
]


def songs_order_clause(order_by: str) -> str:
    """
    Return an ORDER BY clause for song list queries (table alias `s`).

    Uses stable tie-breakers to avoid flickering pagination.
    """
    if order_by == "source":
        # Songs without a source sort last.
        return (
            "ORDER BY "
            "s.source IS NULL ASC, "
            "s.source COLLATE NOCASE ASC, "
            "s.title COLLATE NOCASE ASC, "
            "s.id ASC"
        )
    if order_by == "id":
        return "ORDER BY s.id ASC"

    # Default: title
    return "ORDER BY s.title COLLATE NOCASE ASC, s.id ASC"


def tags_order_clause(order_by: str) -> str:
    """Return an ORDER BY clause for artist/album/genre queries (table alias `t`)."""
    if order_by == "id":
        return "ORDER BY t.id ASC"

    # Default: name
    return "ORDER BY t.name COLLATE NOCASE ASC, t.id ASC"
