"""
Background fetch pipeline.

Fetches run as independent asyncio tasks and never touch the store. Each
completed fetch is put on a queue; a single writer task drains the queue and
applies results in short transactions. Cancelling a fetch therefore leaves the
store exactly as it was.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable

from .client import HNClient
from .config import config
from .database import Database
from .database.models import DBComment, DBStory, FeedCategory
from .exceptions import ConstraintViolation, FetchError, HNReaderError, StoreError

logger = logging.getLogger(__name__)


@dataclass
class FeedResult:
    """A completed feed fetch, ready to be written."""
    category: FeedCategory
    story_ids: list[int]
    stories: list[DBStory] = field(default_factory=list)


@dataclass
class ThreadResult:
    """A completed comment thread fetch."""
    story_id: int
    comments: list[DBComment]


class FeedRefresher:
    """
    Refreshes cached feeds in the background.

    Only the writer task calls the store's write operations; everything else
    talks to it through the queue.
    """

    def __init__(
        self,
        db: Database,
        client: HNClient,
        ttl: Callable[[FeedCategory], int] = config.feed_ttl,
        prefetch: int | None = None,
    ):
        self.db = db
        self.client = client
        self.ttl = ttl
        self.prefetch = prefetch if prefetch is not None else client.page_size
        self._queue: asyncio.Queue[FeedResult | ThreadResult | None] = asyncio.Queue()
        self._fetches: dict[FeedCategory | int, asyncio.Task] = {}
        self._writer: asyncio.Task | None = None
        self.applied = 0
        self.write_failures = 0
        self.fetch_failures = 0

    @property
    def running(self) -> bool:
        return self._writer is not None and not self._writer.done()

    async def start(self):
        """Start the writer task."""
        if self.running:
            return
        self._writer = asyncio.create_task(self._write_loop())
        logger.info("Feed refresher started")

    async def stop(self):
        """Abandon in-flight fetches, apply what is queued, stop the writer."""
        for key in list(self._fetches):
            self._cancel(key)

        if self._writer:
            await self._queue.put(None)
            try:
                await self._writer
            finally:
                self._writer = None

        logger.info("Feed refresher stopped")

    def refresh(self, category: FeedCategory, force: bool = False) -> asyncio.Task | None:
        """
        Start fetching a feed unless its cached listing is still fresh.

        Returns the fetch task, or None if nothing was started. A fetch
        already in flight for the category is reused.
        """
        if not category.is_remote:
            return None
        if not force and not self.db.should_refetch(category, self.ttl(category)):
            logger.debug(f"{category.value} listing is fresh, not refetching")
            return None
        return self._spawn(category, self._fetch_feed(category))

    def refresh_thread(self, story: DBStory) -> asyncio.Task:
        """Fetch a story's comments in the background."""
        return self._spawn(story.id, self._fetch_thread(story))

    def cancel(self, category: FeedCategory) -> bool:
        """Abandon an in-flight feed fetch. Nothing it fetched is written."""
        return self._cancel(category)

    def in_flight(self, category: FeedCategory) -> bool:
        task = self._fetches.get(category)
        return task is not None and not task.done()

    async def drain(self):
        """Wait until every started fetch has finished and its result is applied."""
        while True:
            pending = [task for task in self._fetches.values() if not task.done()]
            if not pending:
                break
            await asyncio.gather(*pending, return_exceptions=True)

        writer = self._writer
        join = asyncio.create_task(self._queue.join())
        await asyncio.wait({join, writer} if writer else {join}, return_when=asyncio.FIRST_COMPLETED)
        finished = join.done()
        join.cancel()
        if finished or self._queue.empty():
            return

        # The writer is gone and results are still queued
        cause = None if writer.cancelled() else writer.exception()
        raise HNReaderError("Writer stopped with results still queued") from cause

    def _spawn(self, key: FeedCategory | int, coro) -> asyncio.Task:
        existing = self._fetches.get(key)
        if existing is not None and not existing.done():
            coro.close()
            return existing

        task = asyncio.create_task(coro)
        self._fetches[key] = task
        task.add_done_callback(lambda done, key=key: self._forget(key, done))
        return task

    def _forget(self, key: FeedCategory | int, task: asyncio.Task):
        if self._fetches.get(key) is task:
            del self._fetches[key]

    def _cancel(self, key: FeedCategory | int) -> bool:
        task = self._fetches.pop(key, None)
        if task is None or task.done():
            return False
        task.cancel()
        logger.info(f"Cancelled fetch for {getattr(key, 'value', key)}")
        return True

    async def _fetch_feed(self, category: FeedCategory):
        try:
            story_ids = await self.client.fetch_feed_ids(category)
            stories = await self.client.fetch_stories_by_ids(story_ids[:self.prefetch])
        except FetchError as e:
            self.fetch_failures += 1
            logger.warning(f"Fetching {category.value} feed failed: {e}")
            return
        await self._queue.put(FeedResult(category=category, story_ids=story_ids, stories=stories))

    async def _fetch_thread(self, story: DBStory):
        try:
            comments = await self.client.fetch_comments_flat(story)
        except FetchError as e:
            self.fetch_failures += 1
            logger.warning(f"Fetching comments for story {story.id} failed: {e}")
            return
        await self._queue.put(ThreadResult(story_id=story.id, comments=comments))

    def _apply(self, result: FeedResult | ThreadResult):
        if isinstance(result, FeedResult):
            # Stories first, so the new listing points at cached content
            self.db.upsert_stories(result.stories)
            self.db.store_listing(result.category, result.story_ids)
            logger.info(f"Stored {result.category.value} feed ({len(result.story_ids)} stories)")
        else:
            self.db.replace_thread(result.story_id, result.comments)
            logger.info(f"Stored thread for story {result.story_id} ({len(result.comments)} comments)")

    async def _write_loop(self):
        """Main writer loop."""
        while True:
            result = await self._queue.get()
            try:
                if result is None:
                    break
                self._apply(result)
                self.applied += 1
            except StoreError as e:
                # Discarded; the next refresh cycle fetches it again
                self.write_failures += 1
                logger.exception(f"Could not store fetch result: {e}")
            except ConstraintViolation as e:
                self.write_failures += 1
                logger.error(f"Rejected malformed fetch result: {e}")
            finally:
                self._queue.task_done()
