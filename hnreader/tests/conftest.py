"""
Pytest fixtures for cache tests.
"""

import sqlite3
import tempfile
from pathlib import Path

import pytest

from hnreader.database import Database, DBComment, DBStory
from hnreader.staleness import FixedClock

NOW = 1_700_000_000


@pytest.fixture
def temp_db_path():
    """Create a temporary database file path."""
    with tempfile.TemporaryDirectory() as d:
        yield Path(d) / "cache.db"


@pytest.fixture
def clock():
    """A clock that only moves when a test advances it."""
    return FixedClock(NOW)


@pytest.fixture
def test_db(temp_db_path, clock):
    """Create a test database instance."""
    db = Database(temp_db_path, clock=clock)
    yield db


@pytest.fixture
def raw_conn(temp_db_path):
    """Autocommit connection straight to the store file."""
    conn = sqlite3.connect(temp_db_path, isolation_level=None)
    conn.row_factory = sqlite3.Row
    yield conn
    conn.close()


def make_story(story_id: int, **overrides) -> DBStory:
    fields = {
        "id": story_id,
        "title": f"Story {story_id}",
        "url": f"https://example.com/{story_id}",
        "score": 10,
        "by": "pg",
        "time": NOW - 600,
    }
    fields.update(overrides)
    return DBStory(**fields)


def make_comment(comment_id: int, story_id: int = 1, **overrides) -> DBComment:
    fields = {
        "id": comment_id,
        "story_id": story_id,
        "parent_id": story_id,
        "by": "dang",
        "text": f"Comment {comment_id}",
        "time": NOW - 300,
    }
    fields.update(overrides)
    return DBComment(**fields)
