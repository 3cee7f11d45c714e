"""
Configuration management for songshelf.

Settings come from TOML: the packaged `defaults.toml`, or a file given on the
command line. Only the `[catalog]` table is read.
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

# Path to the config directory
CONFIG_DIR = Path(__file__).parent

DEFAULT_DATABASE_NAME = "database.db"


@dataclass(frozen=True)
class CatalogConfig:
    """Loaded catalog configuration."""

    data_dir: Path
    database_name: str = DEFAULT_DATABASE_NAME
    default_page_size: int = 100

    def __post_init__(self) -> None:
        if not self.database_name.strip():
            raise ValueError("database_name must not be empty")
        if self.default_page_size <= 0:
            raise ValueError("default_page_size must be > 0")

    @property
    def database_path(self) -> Path:
        """Full path of the SQLite file. `:memory:` is passed through untouched."""
        if self.database_name == ":memory:":
            return Path(self.database_name)
        return self.data_dir / self.database_name


def load_config(config_path: Path | None = None) -> CatalogConfig:
    """
    Load catalog configuration from a TOML file.

    Args:
        config_path: Path to a TOML file. If None, uses the packaged defaults.

    Returns:
        Loaded CatalogConfig instance.
    """
    if config_path is None:
        config_path = CONFIG_DIR / "defaults.toml"

    logger.debug("Loading catalog config from %s", config_path)

    with config_path.open("rb") as f:
        data = tomllib.load(f)

    section = data.get("catalog", {})
    data_dir = Path(str(section.get("data_dir", "."))).expanduser()
    if not data_dir.is_absolute():
        # Relative data dirs are anchored at the config file, not the cwd.
        data_dir = config_path.parent / data_dir

    return CatalogConfig(
        data_dir=data_dir,
        database_name=str(section.get("database_name", DEFAULT_DATABASE_NAME)),
        default_page_size=int(section.get("default_page_size", 100)),
    )


# Global singleton instance (lazy loaded)
_config: CatalogConfig | None = None


def get_config() -> CatalogConfig:
    """
    Get the global catalog configuration (lazy loaded singleton).

    Returns:
        The CatalogConfig instance.
    """
    global _config

    if _config is None:
        _config = load_config()

    return _config


def reload_config(config_path: Path | None = None) -> CatalogConfig:
    """
    Force reload of the catalog configuration.

    Returns:
        The newly loaded CatalogConfig instance.
    """
    global _config
    _config = load_config(config_path)
    return _config
