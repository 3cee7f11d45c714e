"""
Core domain package.

This package contains the catalog storage and its facade, independent of the
CLI. Consumers should usually import from the specific module they need
(e.g. `songshelf.core.catalog_db`).
"""

from __future__ import annotations

__all__: list[str] = []
