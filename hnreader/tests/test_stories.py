"""
Tests for cached stories and comment threads.
"""

import logging
from datetime import datetime, timezone

from conftest import NOW, make_comment, make_story
from hnreader.database.comment_repository import DETACHED
from hnreader.schemas import HNItem


class TestStoryRepository:
    """Tests for story content."""

    def test_upsert_and_get(self, test_db):
        test_db.upsert_stories([make_story(1, kids=[10, 11], descendants=2)])

        story = test_db.get_story(1)

        assert story.title == "Story 1"
        assert story.kids == [10, 11]
        assert story.descendants == 2
        assert story.fetched_at == datetime.fromtimestamp(NOW, tz=timezone.utc)
        assert not story.is_favorite

    def test_get_missing(self, test_db):
        assert test_db.get_story(404) is None

    def test_upsert_refreshes_content(self, test_db, clock):
        test_db.upsert_stories([make_story(1, score=1)])
        clock.advance(120)
        test_db.upsert_stories([make_story(1, score=200, title="Renamed")])

        story = test_db.get_story(1)
        assert story.score == 200
        assert story.title == "Renamed"
        assert story.fetched_at == datetime.fromtimestamp(NOW + 120, tz=timezone.utc)
        assert test_db.stories.count() == 1

    def test_get_many_keeps_order(self, test_db):
        test_db.upsert_stories([make_story(i) for i in (1, 2, 3)])
        assert [s.id for s in test_db.get_stories([3, 99, 1, 2])] == [3, 1, 2]
        assert test_db.get_stories([]) == []

    def test_get_missing_ids(self, test_db, raw_conn):
        test_db.upsert_stories([make_story(1), make_story(3)])
        raw_conn.execute("INSERT INTO stories (id) VALUES (5)")

        assert test_db.stories.get_missing([1, 2, 3, 5]) == [2, 5]

    def test_feed_stories(self, test_db):
        from hnreader.database import FeedCategory

        test_db.upsert_stories([make_story(i) for i in range(1, 6)])
        test_db.store_listing(FeedCategory.TOP, [5, 4, 3, 2, 1])

        page = test_db.get_feed_stories(FeedCategory.TOP, page=1, page_size=2)

        assert [s.id for s in page] == [3, 2]


class TestCommentRepository:
    """Tests for comment threads."""

    def test_replace_thread_sets_positions(self, test_db):
        comments = [
            make_comment(10),
            make_comment(11, parent_id=10, depth=1),
            make_comment(12),
        ]
        test_db.replace_thread(1, comments)

        thread = test_db.get_thread(1)
        assert [(c.id, c.position, c.depth) for c in thread] == [(10, 0, 0), (11, 1, 1), (12, 2, 0)]
        assert thread[1].parent_id == 10

    def test_dropped_comments_are_detached(self, test_db):
        test_db.replace_thread(1, [make_comment(10), make_comment(11)])
        test_db.replace_thread(1, [make_comment(11)])

        assert [c.id for c in test_db.get_thread(1)] == [11]
        assert test_db.get_comment(10).position == DETACHED

    def test_threads_are_per_story(self, test_db):
        test_db.replace_thread(1, [make_comment(10)])
        test_db.replace_thread(2, [make_comment(20, story_id=2)])
        test_db.replace_thread(1, [])

        assert test_db.get_thread(1) == []
        assert [c.id for c in test_db.get_thread(2)] == [20]

    def test_upsert_comments(self, test_db):
        test_db.upsert_comments([make_comment(30, kids=[31])])
        comment = test_db.get_comment(30)
        assert comment.kids == [31]
        assert comment.text == "Comment 30"
        assert test_db.get_comment(31) is None


class TestItemConversion:
    """Tests for turning API payloads into records."""

    def test_story(self):
        item = HNItem.model_validate({"id": 1, "type": "story", "title": "Hello", "kids": [2]})
        story = item.to_story()
        assert story.title == "Hello"
        assert story.kids == [2]
        assert story.url is None

    def test_story_without_title(self):
        assert HNItem(id=1, type="story").to_story() is None

    def test_removed_items(self):
        assert HNItem(id=1, type="story", title="x", dead=True).to_story() is None
        assert HNItem(id=2, type="comment", deleted=True).to_comment(1, 0) is None

    def test_comment(self):
        item = HNItem(id=5, type="comment", parent=1, text="<p>hi</p>", by="pg")
        comment = item.to_comment(story_id=1, depth=0)
        assert comment.parent_id == 1
        assert comment.text == "<p>hi</p>"
        assert item.to_story() is None


class TestMalformedRows:
    """Rows damaged outside the cache are read back with a warning."""

    def test_malformed_kids_logged(self, test_db, raw_conn, caplog, monkeypatch):
        monkeypatch.setattr(logging.getLogger("hnreader"), "propagate", True)
        test_db.upsert_stories([make_story(1, kids=[10])])
        raw_conn.execute("UPDATE stories SET kids = 'not json' WHERE id = 1")

        with caplog.at_level(logging.WARNING, logger="hnreader.database.converters"):
            story = test_db.get_story(1)

        assert story.kids == []
        assert "stories row 1" in caplog.text
