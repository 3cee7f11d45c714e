"""
songshelf - a SQLite music catalog.

songshelf keeps songs, the files they were downloaded to, and their artists,
albums and genres in a small relational schema, with an async access layer
and a command line for managing it.
"""

__version__ = "0.1.0"
__author__ = "songshelf Contributors"
__license__ = "GPL-2.0"

from songshelf.core.catalog import Catalog
from songshelf.core.catalog_db import CatalogDb

__all__ = ["Catalog", "CatalogDb", "__version__"]
