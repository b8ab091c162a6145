"""
Feed repository - cached feed listings per category.

A listing is an ordered list of story ids keyed by (category, position).
Replacing it is a bulk delete-and-reinsert inside one transaction, so a reader
sees either the old list or the new one, never a mix.
"""

import logging

from ..exceptions import ConstraintViolation, store_errors
from ..staleness import Clock, SystemClock, classify, should_refetch
from .connection import DatabaseConnection
from .converters import row_to_feed
from .models import DBFeed, FeedAge, FeedCategory

logger = logging.getLogger(__name__)


def _validate_story_ids(story_ids: list[int]) -> list[int]:
    ids = list(story_ids)
    for story_id in ids:
        if isinstance(story_id, bool) or not isinstance(story_id, int) or story_id < 0:
            raise ConstraintViolation(f"Invalid story id in feed listing: {story_id!r}")
    return ids


def _require_remote(category: FeedCategory):
    # Local categories are derived from other tables, never stored
    if not category.is_remote:
        raise ConstraintViolation(f"{category.label} listing cannot be stored")


class FeedRepository:
    """Repository for feed listings and their fetch timestamps."""

    def __init__(self, db: DatabaseConnection, clock: Clock | None = None):
        self._db = db
        self._clock = clock or SystemClock()

    def _now(self) -> int:
        return int(self._clock.now())

    def _record_fetch(self, conn, category: FeedCategory):
        conn.execute(
            """INSERT INTO feeds (feed_type, fetched_at) VALUES (?, ?)
               ON CONFLICT(feed_type) DO UPDATE SET fetched_at = excluded.fetched_at""",
            (category.value, self._now())
        )

    def _replace_membership(self, conn, category: FeedCategory, story_ids: list[int]):
        # The listing hangs off its feed row; create it without a fetch time if needed
        conn.execute(
            "INSERT OR IGNORE INTO feeds (feed_type, fetched_at) VALUES (?, NULL)",
            (category.value,)
        )
        conn.execute("DELETE FROM feed_stories WHERE feed_type = ?", (category.value,))
        conn.executemany(
            "INSERT INTO feed_stories (feed_type, position, story_id) VALUES (?, ?, ?)",
            [(category.value, position, story_id) for position, story_id in enumerate(story_ids)]
        )

    def record_fetch(self, category: FeedCategory):
        """Set the category's fetch time to now. Does not touch the listing."""
        _require_remote(category)
        with store_errors("record_fetch", category=category.value):
            with self._db.transaction() as conn:
                self._record_fetch(conn, category)

    def replace_membership(self, category: FeedCategory, story_ids: list[int]):
        """Atomically replace the category's listing with story_ids, in order."""
        _require_remote(category)
        ids = _validate_story_ids(story_ids)
        with store_errors("replace_membership", category=category.value):
            with self._db.transaction() as conn:
                self._replace_membership(conn, category, ids)
        logger.debug(f"Replaced {category.value} listing ({len(ids)} stories)")

    def store_listing(self, category: FeedCategory, story_ids: list[int]):
        """Replace the listing and record the fetch as one unit."""
        _require_remote(category)
        ids = _validate_story_ids(story_ids)
        with store_errors("store_listing", category=category.value):
            with self._db.transaction() as conn:
                self._replace_membership(conn, category, ids)
                self._record_fetch(conn, category)
        logger.debug(f"Stored {category.value} listing ({len(ids)} stories)")

    def get_membership(self, category: FeedCategory) -> list[int]:
        """Story ids in position order; empty if never fetched."""
        with store_errors("get_membership", category=category.value):
            with self._db.conn() as conn:
                rows = conn.execute(
                    "SELECT story_id FROM feed_stories WHERE feed_type = ? ORDER BY position",
                    (category.value,)
                ).fetchall()
                return [row["story_id"] for row in rows]

    def get_page(self, category: FeedCategory, page: int, page_size: int = 30) -> list[int]:
        """One page of the listing (page numbers start at 0)."""
        if page < 0 or page_size <= 0:
            raise ConstraintViolation(f"Invalid page {page} / page size {page_size}")
        with store_errors("get_page", category=category.value, page=page):
            with self._db.conn() as conn:
                rows = conn.execute(
                    """SELECT story_id FROM feed_stories
                       WHERE feed_type = ?
                       ORDER BY position
                       LIMIT ? OFFSET ?""",
                    (category.value, page_size, page * page_size)
                ).fetchall()
                return [row["story_id"] for row in rows]

    def get_fetched_at(self, category: FeedCategory) -> int | None:
        """Unix time of the last successful fetch, None if never fetched."""
        with store_errors("get_fetched_at", category=category.value):
            with self._db.conn() as conn:
                row = conn.execute(
                    "SELECT fetched_at FROM feeds WHERE feed_type = ?", (category.value,)
                ).fetchone()
                return row["fetched_at"] if row else None

    def get(self, category: FeedCategory) -> DBFeed | None:
        with store_errors("get_feed", category=category.value):
            with self._db.conn() as conn:
                row = conn.execute(
                    """SELECT f.feed_type, f.fetched_at, COUNT(fs.story_id) AS story_count
                       FROM feeds f
                       LEFT JOIN feed_stories fs ON fs.feed_type = f.feed_type
                       WHERE f.feed_type = ?
                       GROUP BY f.feed_type""",
                    (category.value,)
                ).fetchone()
                return row_to_feed(row) if row else None

    def get_all(self) -> list[DBFeed]:
        """All cached feeds, in category declaration order."""
        with store_errors("get_feeds"):
            with self._db.conn() as conn:
                rows = conn.execute("""
                    SELECT f.feed_type, f.fetched_at, COUNT(fs.story_id) AS story_count
                    FROM feeds f
                    LEFT JOIN feed_stories fs ON fs.feed_type = f.feed_type
                    GROUP BY f.feed_type
                """).fetchall()
        known = {category.value for category in FeedCategory}
        feeds = {row["feed_type"]: row_to_feed(row) for row in rows if row["feed_type"] in known}
        return [feeds[category.value] for category in FeedCategory if category.value in feeds]

    def get_age(self, category: FeedCategory) -> FeedAge:
        fetched_at = self.get_fetched_at(category)
        staleness = classify(fetched_at, self._clock.now())
        return FeedAge(
            category=category,
            fetched_at=fetched_at,
            seconds_ago=staleness.seconds_ago,
            label=staleness.label,
        )

    def get_ages(self) -> list[FeedAge]:
        """Age of every category, including never-fetched ones."""
        with store_errors("get_ages"):
            with self._db.conn() as conn:
                rows = conn.execute("SELECT feed_type, fetched_at FROM feeds").fetchall()
        fetched = {row["feed_type"]: row["fetched_at"] for row in rows}
        now = self._clock.now()

        ages = []
        for category in FeedCategory:
            staleness = classify(fetched.get(category.value), now)
            ages.append(FeedAge(
                category=category,
                fetched_at=fetched.get(category.value),
                seconds_ago=staleness.seconds_ago,
                label=staleness.label,
            ))
        return ages

    def get_ages_view(self) -> list[FeedAge]:
        """Read the feeds_age view (computed by SQLite against the wall clock)."""
        with store_errors("get_ages_view"):
            with self._db.conn() as conn:
                rows = conn.execute(
                    "SELECT feed_type, fetched_at, seconds_ago, age FROM feeds_age"
                ).fetchall()
        known = {category.value for category in FeedCategory}
        return [
            FeedAge(
                category=FeedCategory(row["feed_type"]),
                fetched_at=row["fetched_at"],
                seconds_ago=row["seconds_ago"],
                label=row["age"],
            )
            for row in rows
            if row["feed_type"] in known
        ]

    def should_refetch(self, category: FeedCategory, ttl: int) -> bool:
        return should_refetch(self.get_fetched_at(category), ttl, self._clock.now())
