"""
Tests for concurrent readers and writers against one store file.
"""

import threading
from concurrent.futures import ThreadPoolExecutor

from conftest import make_story
from hnreader.database import FeedCategory, ItemKind

LIST_A = list(range(1, 31))
LIST_B = list(range(1000, 970, -1))


class TestListingAtomicity:
    """Readers never see a half-replaced listing."""

    def test_readers_see_whole_lists(self, test_db):
        test_db.replace_membership(FeedCategory.TOP, LIST_A)
        stop = threading.Event()
        seen = []

        def writer():
            for i in range(40):
                test_db.replace_membership(FeedCategory.TOP, LIST_B if i % 2 == 0 else LIST_A)
            stop.set()

        def reader():
            while True:
                seen.append(test_db.get_membership(FeedCategory.TOP))
                if stop.is_set():
                    break

        threads = [threading.Thread(target=writer)] + [threading.Thread(target=reader) for _ in range(3)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert seen
        assert all(listing in (LIST_A, LIST_B) for listing in seen)
        assert test_db.get_membership(FeedCategory.TOP) == LIST_A

    def test_concurrent_writers_to_different_categories(self, test_db):
        categories = FeedCategory.remote()

        def store(category):
            test_db.store_listing(category, [len(category.value)] * 5)

        with ThreadPoolExecutor(max_workers=len(categories)) as pool:
            list(pool.map(store, categories))

        for category in categories:
            assert test_db.get_membership(category) == [len(category.value)] * 5


class TestConcurrentToggles:
    """Toggles from several threads never lose an update."""

    def test_toggles_on_different_items(self, test_db):
        test_db.upsert_stories([make_story(story_id) for story_id in range(1, 21)])

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(lambda story_id: test_db.toggle_favorite(story_id, ItemKind.STORY), range(1, 21)))

        favorites = test_db.list_favorites(ItemKind.STORY)
        assert sorted(story.id for story in favorites) == list(range(1, 21))
        stamps = [story.favorited_at for story in favorites]
        assert stamps == sorted(stamps, reverse=True)
        assert len(set(stamps)) == 20

    def test_even_number_of_toggles_on_one_item(self, test_db):
        test_db.upsert_stories([make_story(42)])

        with ThreadPoolExecutor(max_workers=4) as pool:
            list(pool.map(lambda _: test_db.toggle_favorite(42, ItemKind.STORY), range(10)))

        assert not test_db.is_favorite(42, ItemKind.STORY)

    def test_listing_stays_ordered_during_toggles(self, test_db):
        test_db.upsert_stories([make_story(story_id) for story_id in range(1, 11)])
        done = threading.Event()
        snapshots = []

        def toggler():
            for _ in range(3):
                for story_id in range(1, 11):
                    test_db.toggle_favorite(story_id, ItemKind.STORY)
            done.set()

        def reader():
            while not done.is_set():
                snapshots.append(test_db.list_favorites(ItemKind.STORY))

        threads = [threading.Thread(target=toggler), threading.Thread(target=reader)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        for snapshot in snapshots:
            stamps = [story.favorited_at for story in snapshot]
            assert stamps == sorted(stamps, reverse=True)
        assert test_db.count_favorites(ItemKind.STORY) == 10
