"""
Database facade - provides unified access to all repositories.

This is the contract the renderer and the fetch pipeline use; repositories
stay reachable as attributes for anything more specific.
"""

from datetime import datetime
from pathlib import Path

from ..staleness import Clock, SystemClock
from .connection import DatabaseConnection
from .comment_repository import CommentRepository
from .favorites_repository import FavoritesRepository
from .feed_repository import FeedRepository
from .models import DBComment, DBFeed, DBStory, Favoritable, FeedAge, FeedCategory, ItemKind
from .story_repository import StoryRepository


class Database:
    """
    Unified database access facade.

    Opening it brings the schema up to date; a SchemaError from here is fatal.
    """

    def __init__(self, db_path: Path, clock: Clock | None = None):
        self.clock = clock or SystemClock()
        self._connection = DatabaseConnection(db_path)

        # Initialize repositories
        self.feeds = FeedRepository(self._connection, self.clock)
        self.stories = StoryRepository(self._connection, self.clock)
        self.comments = CommentRepository(self._connection, self.clock)
        self.favorites = FavoritesRepository(self._connection, self.clock)

    # ─────────────────────────────────────────────────────────────
    # Feed operations (delegated to FeedRepository)
    # ─────────────────────────────────────────────────────────────

    def record_fetch(self, category: FeedCategory):
        return self.feeds.record_fetch(category)

    def replace_membership(self, category: FeedCategory, story_ids: list[int]):
        return self.feeds.replace_membership(category, story_ids)

    def store_listing(self, category: FeedCategory, story_ids: list[int]):
        return self.feeds.store_listing(category, story_ids)

    def get_membership(self, category: FeedCategory) -> list[int]:
        """Story ids of a listing. The local Favorites feed lists favorited stories."""
        if category is FeedCategory.FAVORITES:
            return self.favorites.ids(ItemKind.STORY)
        return self.feeds.get_membership(category)

    def get_page(self, category: FeedCategory, page: int, page_size: int = 30) -> list[int]:
        if category is FeedCategory.FAVORITES:
            return [story.id for story in self.favorites.get_all(ItemKind.STORY, page_size, page * page_size)]
        return self.feeds.get_page(category, page, page_size)

    def get_fetched_at(self, category: FeedCategory) -> int | None:
        return self.feeds.get_fetched_at(category)

    def get_feed(self, category: FeedCategory) -> DBFeed | None:
        return self.feeds.get(category)

    def get_feeds(self) -> list[DBFeed]:
        return self.feeds.get_all()

    def get_feed_age(self, category: FeedCategory) -> FeedAge:
        return self.feeds.get_age(category)

    def get_feed_ages(self) -> list[FeedAge]:
        return self.feeds.get_ages()

    def get_feed_ages_view(self) -> list[FeedAge]:
        """Ages as computed by the feeds_age view (wall clock)."""
        return self.feeds.get_ages_view()

    def should_refetch(self, category: FeedCategory, ttl: int) -> bool:
        return self.feeds.should_refetch(category, ttl)

    # ─────────────────────────────────────────────────────────────
    # Story and comment operations
    # ─────────────────────────────────────────────────────────────

    def upsert_stories(self, stories: list[DBStory]):
        return self.stories.upsert_many(stories)

    def get_story(self, story_id: int) -> DBStory | None:
        return self.stories.get(story_id)

    def get_stories(self, story_ids: list[int]) -> list[DBStory]:
        return self.stories.get_many(story_ids)

    def get_feed_stories(self, category: FeedCategory, page: int = 0, page_size: int = 30) -> list[DBStory]:
        """Cached stories for one page of a listing, in listing order."""
        return self.stories.get_many(self.get_page(category, page, page_size))

    def upsert_comments(self, comments: list[DBComment]):
        return self.comments.upsert_many(comments)

    def replace_thread(self, story_id: int, comments: list[DBComment]):
        return self.comments.replace_thread(story_id, comments)

    def get_comment(self, comment_id: int) -> DBComment | None:
        return self.comments.get(comment_id)

    def get_thread(self, story_id: int) -> list[DBComment]:
        return self.comments.get_thread(story_id)

    # ─────────────────────────────────────────────────────────────
    # Favorites operations (delegated to FavoritesRepository)
    # ─────────────────────────────────────────────────────────────

    def toggle_favorite(self, item_id: int, kind: ItemKind) -> datetime | None:
        return self.favorites.toggle(item_id, kind)

    def is_favorite(self, item_id: int, kind: ItemKind) -> bool:
        return self.favorites.is_favorite(item_id, kind)

    def list_favorites(self, kind: ItemKind, limit: int = 50, offset: int = 0) -> list[Favoritable]:
        return self.favorites.get_all(kind, limit, offset)

    def count_favorites(self, kind: ItemKind) -> int:
        return self.favorites.count(kind)
