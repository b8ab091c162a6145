"""
Comment repository - cached comment threads.

Threads are stored flat in render order (position) with their nesting depth.
"""

import json
import logging
from dataclasses import replace

from ..exceptions import store_errors
from ..staleness import Clock, SystemClock
from .connection import DatabaseConnection
from .converters import row_to_comment
from .models import DBComment

logger = logging.getLogger(__name__)

# Position of a comment that dropped out of its story's latest thread
DETACHED = -1

_UPSERT_SQL = """
    INSERT INTO comments (id, story_id, parent_id, by, text, time, depth, position, kids, fetched_at)
    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
    ON CONFLICT(id) DO UPDATE SET
        story_id = excluded.story_id,
        parent_id = excluded.parent_id,
        by = excluded.by,
        text = excluded.text,
        time = excluded.time,
        depth = excluded.depth,
        position = excluded.position,
        kids = excluded.kids,
        fetched_at = excluded.fetched_at
"""


class CommentRepository:
    """Repository for comment operations."""

    def __init__(self, db: DatabaseConnection, clock: Clock | None = None):
        self._db = db
        self._clock = clock or SystemClock()

    def _params(self, comment: DBComment, fetched_at: int) -> tuple:
        return (
            comment.id, comment.story_id, comment.parent_id, comment.by, comment.text,
            comment.time, comment.depth, comment.position, json.dumps(comment.kids), fetched_at,
        )

    def upsert_many(self, comments: list[DBComment]):
        """Insert or refresh comments as given (positions untouched)."""
        if not comments:
            return
        fetched_at = int(self._clock.now())
        with store_errors("upsert_comments", count=len(comments)):
            with self._db.transaction() as conn:
                conn.executemany(_UPSERT_SQL, [self._params(c, fetched_at) for c in comments])

    def replace_thread(self, story_id: int, comments: list[DBComment]):
        """
        Store a story's flattened thread in the given order.

        Comments that are no longer part of the thread are detached, not
        deleted, so their favorites survive.
        """
        fetched_at = int(self._clock.now())
        thread = [
            replace(comment, story_id=story_id, position=position)
            for position, comment in enumerate(comments)
        ]
        with store_errors("replace_thread", story_id=story_id):
            with self._db.transaction() as conn:
                conn.execute(
                    "UPDATE comments SET position = ? WHERE story_id = ?",
                    (DETACHED, story_id)
                )
                conn.executemany(_UPSERT_SQL, [self._params(c, fetched_at) for c in thread])
        logger.debug(f"Stored thread for story {story_id} ({len(thread)} comments)")

    def get(self, comment_id: int) -> DBComment | None:
        """Get single comment by ID."""
        with store_errors("get_comment", comment_id=comment_id):
            with self._db.conn() as conn:
                row = conn.execute(
                    "SELECT * FROM comments WHERE id = ?", (comment_id,)
                ).fetchone()
                return row_to_comment(row) if row else None

    def get_thread(self, story_id: int) -> list[DBComment]:
        """A story's cached thread in render order."""
        with store_errors("get_thread", story_id=story_id):
            with self._db.conn() as conn:
                rows = conn.execute(
                    """SELECT * FROM comments
                       WHERE story_id = ? AND position >= 0
                       ORDER BY position""",
                    (story_id,)
                ).fetchall()
                return [row_to_comment(row) for row in rows]
