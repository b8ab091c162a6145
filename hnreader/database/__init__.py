"""
Database module - SQLite cache for feed listings, stories, comments and favorites.

Uses repository pattern for better separation of concerns.
"""

from .connection import DatabaseConnection
from .models import DBComment, DBFeed, DBStory, Favoritable, FeedAge, FeedCategory, ItemKind
from .feed_repository import FeedRepository
from .story_repository import StoryRepository
from .comment_repository import CommentRepository
from .favorites_repository import FavoritesRepository
from .database import Database

__all__ = [
    "Database",
    "DatabaseConnection",
    "DBComment",
    "DBFeed",
    "DBStory",
    "Favoritable",
    "FeedAge",
    "FeedCategory",
    "ItemKind",
    "FeedRepository",
    "StoryRepository",
    "CommentRepository",
    "FavoritesRepository",
]
