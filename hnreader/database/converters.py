"""
Database row converters - convert SQLite rows to dataclasses.
"""

import json
import logging
import sqlite3
from datetime import datetime, timezone

from .models import DBComment, DBFeed, DBStory, FeedCategory

logger = logging.getLogger(__name__)


def to_datetime(value: float | None) -> datetime | None:
    """Stored Unix seconds to an aware UTC datetime."""
    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


def from_datetime(value: datetime | None) -> float | None:
    if value is None:
        return None
    return value.timestamp()


def _kids(raw: str | None, table: str, item_id: int) -> list[int]:
    if not raw:
        return []
    try:
        return [int(kid) for kid in json.loads(raw)]
    except (json.JSONDecodeError, TypeError, ValueError) as e:
        logger.warning(f"Ignoring malformed kids in {table} row {item_id}: {e}")
        return []


def row_to_story(row: sqlite3.Row) -> DBStory:
    """Convert a database row to a DBStory."""
    return DBStory(
        id=row["id"],
        title=row["title"],
        url=row["url"],
        score=row["score"] or 0,
        by=row["by"],
        time=row["time"] or 0,
        descendants=row["descendants"] or 0,
        kids=_kids(row["kids"], "stories", row["id"]),
        fetched_at=to_datetime(row["fetched_at"]),
        favorited_at=to_datetime(row["favorited_at"]),
    )


def row_to_comment(row: sqlite3.Row) -> DBComment:
    """Convert a database row to a DBComment."""
    return DBComment(
        id=row["id"],
        story_id=row["story_id"],
        parent_id=row["parent_id"],
        by=row["by"],
        text=row["text"] or "",
        time=row["time"] or 0,
        depth=row["depth"] or 0,
        position=row["position"] or 0,
        kids=_kids(row["kids"], "comments", row["id"]),
        fetched_at=to_datetime(row["fetched_at"]),
        favorited_at=to_datetime(row["favorited_at"]),
    )


def row_to_feed(row: sqlite3.Row) -> DBFeed:
    """Convert a database row to a DBFeed."""
    # story_count is only present in the listing queries
    try:
        story_count = row["story_count"] or 0
    except (IndexError, KeyError):
        story_count = 0

    return DBFeed(
        category=FeedCategory(row["feed_type"]),
        fetched_at=row["fetched_at"],
        story_count=story_count,
    )
