"""
Tests for favorites on stories and comments.
"""

import logging
from datetime import datetime, timezone

import pytest

from conftest import NOW, make_comment, make_story
from hnreader.database import Database, ItemKind
from hnreader.exceptions import ConstraintViolation, ItemNotFoundError
from hnreader.staleness import FixedClock


@pytest.fixture
def cached_items(test_db):
    """Stories 40-44 and comments 7-9 in the cache."""
    test_db.upsert_stories([make_story(story_id) for story_id in range(40, 45)])
    test_db.upsert_comments([make_comment(comment_id, story_id=42) for comment_id in (7, 8, 9)])
    return test_db


class TestToggle:
    """Tests for toggling favorites."""

    def test_favorite_then_unfavorite(self, cached_items):
        """Should set the timestamp, then clear it."""
        favorited_at = cached_items.toggle_favorite(42, ItemKind.STORY)

        assert favorited_at == datetime.fromtimestamp(NOW, tz=timezone.utc)
        assert cached_items.is_favorite(42, ItemKind.STORY)
        assert cached_items.get_story(42).favorited_at == favorited_at

        assert cached_items.toggle_favorite(42, ItemKind.STORY) is None
        assert not cached_items.is_favorite(42, ItemKind.STORY)
        assert cached_items.get_story(42).favorited_at is None

    def test_kinds_are_separate(self, cached_items):
        """Favoriting story 42 and comment 7, then unfavoriting 42."""
        cached_items.toggle_favorite(42, ItemKind.STORY)
        cached_items.toggle_favorite(7, ItemKind.COMMENT)

        assert [s.id for s in cached_items.list_favorites(ItemKind.STORY)] == [42]
        assert [c.id for c in cached_items.list_favorites(ItemKind.COMMENT)] == [7]

        cached_items.toggle_favorite(42, ItemKind.STORY)

        assert cached_items.list_favorites(ItemKind.STORY) == []
        assert [c.id for c in cached_items.list_favorites(ItemKind.COMMENT)] == [7]

    def test_same_id_different_kind(self, test_db):
        """A story and a comment sharing an id are favorited independently."""
        test_db.upsert_stories([make_story(5)])
        test_db.upsert_comments([make_comment(5, story_id=5)])

        test_db.toggle_favorite(5, ItemKind.COMMENT)

        assert test_db.is_favorite(5, ItemKind.COMMENT)
        assert not test_db.is_favorite(5, ItemKind.STORY)

    def test_uncached_item(self, test_db):
        """Should refuse to favorite an item that is not cached."""
        with pytest.raises(ItemNotFoundError):
            test_db.toggle_favorite(999, ItemKind.STORY)
        assert not test_db.is_favorite(999, ItemKind.STORY)

    def test_refresh_keeps_favorite(self, cached_items, clock):
        """Should keep favorited_at when the story is refetched."""
        favorited_at = cached_items.toggle_favorite(43, ItemKind.STORY)
        clock.advance(600)

        cached_items.upsert_stories([make_story(43, title="Edited", score=99)])

        story = cached_items.get_story(43)
        assert story.title == "Edited"
        assert story.favorited_at == favorited_at

    def test_thread_refresh_keeps_favorite(self, cached_items):
        cached_items.toggle_favorite(8, ItemKind.COMMENT)
        cached_items.replace_thread(42, [make_comment(9, story_id=42)])
        assert cached_items.is_favorite(8, ItemKind.COMMENT)


class TestListing:
    """Tests for listing favorites."""

    def test_most_recent_first(self, cached_items, clock):
        for story_id in (41, 44, 40):
            cached_items.toggle_favorite(story_id, ItemKind.STORY)
            clock.advance(10)

        assert [s.id for s in cached_items.list_favorites(ItemKind.STORY)] == [40, 44, 41]

    def test_same_clock_reading_stays_ordered(self, cached_items):
        """Should keep favorites strictly ordered when the clock does not move."""
        stamps = [cached_items.toggle_favorite(story_id, ItemKind.STORY) for story_id in (40, 41, 42, 43)]

        assert stamps == sorted(stamps)
        assert len(set(stamps)) == 4
        assert [s.id for s in cached_items.list_favorites(ItemKind.STORY)] == [43, 42, 41, 40]

    def test_clock_behind_latest(self, cached_items, clock):
        """Should still place a new favorite first if the clock went backwards."""
        cached_items.toggle_favorite(40, ItemKind.STORY)
        clock.advance(-100)
        cached_items.toggle_favorite(41, ItemKind.STORY)

        assert [s.id for s in cached_items.list_favorites(ItemKind.STORY)] == [41, 40]

    def test_refavorite_moves_to_front(self, cached_items, clock):
        cached_items.toggle_favorite(40, ItemKind.STORY)
        clock.advance(1)
        cached_items.toggle_favorite(41, ItemKind.STORY)
        clock.advance(1)
        cached_items.toggle_favorite(40, ItemKind.STORY)
        cached_items.toggle_favorite(40, ItemKind.STORY)

        assert [s.id for s in cached_items.list_favorites(ItemKind.STORY)] == [40, 41]

    def test_pagination(self, cached_items, clock):
        """Should page with limit and offset."""
        for story_id in range(40, 45):
            cached_items.toggle_favorite(story_id, ItemKind.STORY)
            clock.advance(1)

        first = cached_items.list_favorites(ItemKind.STORY, limit=2)
        second = cached_items.list_favorites(ItemKind.STORY, limit=2, offset=2)
        rest = cached_items.list_favorites(ItemKind.STORY, limit=2, offset=4)

        assert [s.id for s in first] == [44, 43]
        assert [s.id for s in second] == [42, 41]
        assert [s.id for s in rest] == [40]
        assert cached_items.count_favorites(ItemKind.STORY) == 5

    def test_negative_paging_rejected(self, cached_items):
        with pytest.raises(ConstraintViolation):
            cached_items.list_favorites(ItemKind.STORY, limit=-1)

    def test_comment_favorites_carry_content(self, cached_items):
        cached_items.toggle_favorite(9, ItemKind.COMMENT)

        [comment] = cached_items.list_favorites(ItemKind.COMMENT)

        assert comment.text == "Comment 9"
        assert comment.story_id == 42
        assert comment.is_favorite


class TestEpochTimestamps:

    def test_favorite_at_epoch(self, temp_db_path, caplog, monkeypatch):
        """A zero timestamp is still a favorite."""
        monkeypatch.setattr(logging.getLogger("hnreader"), "propagate", True)
        db = Database(temp_db_path, clock=FixedClock(0))
        db.upsert_stories([make_story(1)])

        with caplog.at_level(logging.DEBUG, logger="hnreader.database.favorites_repository"):
            favorited_at = db.toggle_favorite(1, ItemKind.STORY)

        assert favorited_at == datetime.fromtimestamp(0, tz=timezone.utc)
        assert db.is_favorite(1, ItemKind.STORY)
        assert [s.id for s in db.list_favorites(ItemKind.STORY)] == [1]
        assert "Favorited story 1" in caplog.text
