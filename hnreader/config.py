"""
Configuration from the environment.
"""

import os
from pathlib import Path
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from .exceptions import HNReaderError

if TYPE_CHECKING:
    import logging

    from .client import HNClient
    from .database import Database
    from .database.models import FeedCategory
    from .tasks import FeedRefresher

# Load environment variables
load_dotenv()


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """Parse boolean from environment variable."""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _default_data_dir() -> Path:
    base = os.getenv("XDG_CACHE_HOME") or str(Path.home() / ".cache")
    return Path(base) / "hnreader"


class Config:
    """Application configuration from environment."""
    DB_PATH: Path = Path(os.getenv("HN_DB_PATH", str(_default_data_dir() / "cache.db")))
    LOG_PATH: Path = Path(os.getenv("HN_LOG_PATH", str(_default_data_dir() / "hnreader.log")))
    LOG_LEVEL: str = os.getenv("HN_LOG_LEVEL", "INFO")
    VERBOSE: bool = _parse_bool(os.getenv("HN_VERBOSE"))

    # Remote service
    API_BASE: str = os.getenv("HN_API_BASE", "https://hacker-news.firebaseio.com/v0")
    HTTP_TIMEOUT: int = int(os.getenv("HN_HTTP_TIMEOUT", "10"))
    ITEM_CACHE_TTL: int = int(os.getenv("HN_ITEM_CACHE_TTL", "60"))
    PAGE_SIZE: int = int(os.getenv("HN_PAGE_SIZE", "30"))
    COMMENT_DEPTH: int = int(os.getenv("HN_COMMENT_DEPTH", "10"))

    # Seconds before a cached feed listing is refetched
    FEED_TTL: int = int(os.getenv("HN_FEED_TTL", "300"))

    @classmethod
    def feed_ttl(cls, category: "FeedCategory") -> int:
        """TTL for a category: HN_FEED_TTL_<NAME> if set, else HN_FEED_TTL."""
        override = os.getenv(f"HN_FEED_TTL_{category.name}")
        if override:
            return int(override)
        return cls.FEED_TTL


config = Config()


class AppState:
    """Shared application state."""
    db: "Database | None" = None
    client: "HNClient | None" = None
    refresher: "FeedRefresher | None" = None
    log_handler: "logging.Handler | None" = None


state = AppState()


def get_db() -> "Database":
    """Get the open database instance."""
    if not state.db:
        raise HNReaderError("Database not initialized")
    return state.db
