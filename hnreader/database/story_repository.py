"""
Story repository - cached story content.
"""

import json
import logging

from ..exceptions import store_errors
from ..staleness import Clock, SystemClock
from .connection import DatabaseConnection
from .converters import row_to_story
from .models import DBStory

logger = logging.getLogger(__name__)

# Content columns only: refreshing a story never touches favorited_at
_UPSERT_SQL = """
    INSERT INTO stories (id, title, url, score, by, time, descendants, kids, fetched_at)
    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
    ON CONFLICT(id) DO UPDATE SET
        title = excluded.title,
        url = excluded.url,
        score = excluded.score,
        by = excluded.by,
        time = excluded.time,
        descendants = excluded.descendants,
        kids = excluded.kids,
        fetched_at = excluded.fetched_at
"""


class StoryRepository:
    """Repository for story operations."""

    def __init__(self, db: DatabaseConnection, clock: Clock | None = None):
        self._db = db
        self._clock = clock or SystemClock()

    def _params(self, story: DBStory, fetched_at: int) -> tuple:
        return (
            story.id, story.title, story.url, story.score, story.by,
            story.time, story.descendants, json.dumps(story.kids), fetched_at,
        )

    def upsert(self, story: DBStory):
        """Insert or refresh a story's content."""
        self.upsert_many([story])

    def upsert_many(self, stories: list[DBStory]):
        if not stories:
            return
        fetched_at = int(self._clock.now())
        with store_errors("upsert_stories", count=len(stories)):
            with self._db.transaction() as conn:
                conn.executemany(_UPSERT_SQL, [self._params(story, fetched_at) for story in stories])
        logger.debug(f"Upserted {len(stories)} stories")

    def get(self, story_id: int) -> DBStory | None:
        """Get single story by ID."""
        with store_errors("get_story", story_id=story_id):
            with self._db.conn() as conn:
                row = conn.execute(
                    "SELECT * FROM stories WHERE id = ?", (story_id,)
                ).fetchone()
                return row_to_story(row) if row else None

    def get_many(self, story_ids: list[int]) -> list[DBStory]:
        """Stories in the order of story_ids. Ids not cached are skipped."""
        if not story_ids:
            return []
        placeholders = ",".join("?" * len(story_ids))
        with store_errors("get_stories", count=len(story_ids)):
            with self._db.conn() as conn:
                rows = conn.execute(
                    f"SELECT * FROM stories WHERE id IN ({placeholders})", list(story_ids)
                ).fetchall()
        by_id = {row["id"]: row_to_story(row) for row in rows}
        return [by_id[story_id] for story_id in story_ids if story_id in by_id]

    def get_missing(self, story_ids: list[int]) -> list[int]:
        """Ids from story_ids with no cached content yet."""
        if not story_ids:
            return []
        placeholders = ",".join("?" * len(story_ids))
        with store_errors("get_missing_stories", count=len(story_ids)):
            with self._db.conn() as conn:
                rows = conn.execute(
                    f"""SELECT id FROM stories
                        WHERE id IN ({placeholders}) AND fetched_at IS NOT NULL""",
                    list(story_ids)
                ).fetchall()
        cached = {row["id"] for row in rows}
        return [story_id for story_id in story_ids if story_id not in cached]

    def count(self) -> int:
        with store_errors("count_stories"):
            with self._db.conn() as conn:
                return conn.execute("SELECT COUNT(*) AS cnt FROM stories").fetchone()["cnt"]
