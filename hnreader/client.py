"""
HN Client - async client for the Hacker News API.

Handles:
- Feed listings (ranked story ids per category)
- Items with a short-lived in-memory cache
- Concurrent story and comment fetching
- Retries with exponential backoff on transient network errors

The client never touches the SQLite store; the fetch pipeline applies its
results.
"""

import asyncio
import logging
from typing import Any

import aiohttp
from pydantic import ValidationError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from .cache import MemoryCache
from .config import config
from .database.models import DBComment, DBStory, FeedCategory
from .exceptions import FetchError
from .schemas import HNItem

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = (aiohttp.ClientConnectionError, aiohttp.ServerTimeoutError, asyncio.TimeoutError)


class HNClient:
    """Fetches feed listings, stories and comments."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: int | None = None,
        item_ttl: int | None = None,
        page_size: int | None = None,
        session: aiohttp.ClientSession | None = None,
    ):
        self.base_url = (base_url or config.API_BASE).rstrip("/")
        self.timeout = timeout or config.HTTP_TIMEOUT
        self.page_size = page_size or config.PAGE_SIZE
        self.item_cache: MemoryCache[int, HNItem] = MemoryCache(ttl=item_ttl or config.ITEM_CACHE_TTL)
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "HNClient":
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers={"User-Agent": "hnreader"},
            )
            self._owns_session = True
        return self._session

    async def close(self):
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    @retry(
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        reraise=True,
    )
    async def _request(self, path: str) -> Any:
        url = f"{self.base_url}/{path}.json"
        async with self._get_session().get(url) as resp:
            resp.raise_for_status()
            return await resp.json(content_type=None)

    async def _get_json(self, path: str) -> Any:
        try:
            return await self._request(path)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.warning(f"Request for {path} failed: {e}")
            raise FetchError(f"Failed to fetch {path}: {e}") from e

    async def fetch_feed_ids(self, category: FeedCategory) -> list[int]:
        """Ranked story ids for a remote feed category."""
        if not category.is_remote:
            raise FetchError(f"{category.label} is not a remote feed")

        data = await self._get_json(category.endpoint)
        if not isinstance(data, list):
            raise FetchError(f"Unexpected payload for {category.value} feed")
        try:
            story_ids = [int(story_id) for story_id in data]
        except (TypeError, ValueError) as e:
            raise FetchError(f"Failed to parse {category.value} feed ids: {e}") from e
        if any(story_id < 0 for story_id in story_ids):
            raise FetchError(f"Negative story id in {category.value} feed")
        return story_ids

    async def fetch_item(self, item_id: int) -> HNItem | None:
        """A single item, None if the API has no such item."""
        cached = self.item_cache.get(item_id)
        if cached is not None:
            return cached

        data = await self._get_json(f"item/{item_id}")
        if data is None:
            return None
        try:
            item = HNItem.model_validate(data)
        except ValidationError as e:
            raise FetchError(f"Failed to parse item {item_id}: {e}") from e

        self.item_cache.set(item_id, item)
        return item

    async def _fetch_items(self, item_ids: list[int]) -> list[HNItem | None]:
        """Fetch concurrently; failed items come back as None."""
        results = await asyncio.gather(
            *(self.fetch_item(item_id) for item_id in item_ids),
            return_exceptions=True,
        )
        items: list[HNItem | None] = []
        for item_id, result in zip(item_ids, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, Exception):
                logger.debug(f"Skipping item {item_id}: {result}")
                items.append(None)
            else:
                items.append(result)
        return items

    async def fetch_stories_by_ids(self, story_ids: list[int]) -> list[DBStory]:
        """Stories in the order given; missing, failed and removed items are skipped."""
        items = await self._fetch_items(story_ids)
        stories = []
        for item in items:
            story = item.to_story() if item else None
            if story is not None:
                stories.append(story)
        return stories

    async def fetch_stories(self, category: FeedCategory, page: int = 0) -> list[DBStory]:
        """One page of a feed's stories (page numbers start at 0)."""
        ids = await self.fetch_feed_ids(category)
        start = page * self.page_size
        if start >= len(ids):
            return []
        return await self.fetch_stories_by_ids(ids[start:start + self.page_size])

    async def fetch_comments_flat(self, story: DBStory, max_depth: int | None = None) -> list[DBComment]:
        """
        A story's comment thread flattened into render order.

        Fetches one depth level at a time, all comments of a level in
        parallel, then walks the tree depth-first so each comment is followed
        by its replies. Children of removed comments are not fetched.
        """
        if max_depth is None:
            max_depth = config.COMMENT_DEPTH

        comments: dict[int, DBComment] = {}
        current_level: list[int] = list(story.kids)
        depth = 0
        while current_level:
            items = await self._fetch_items(current_level)
            next_level = []
            for item in items:
                comment = item.to_comment(story.id, depth) if item else None
                if comment is None:
                    continue
                comments[comment.id] = comment
                if depth < max_depth:
                    next_level.extend(comment.kids)
            current_level = next_level
            depth += 1

        ordered: list[DBComment] = []
        stack = [kid for kid in reversed(story.kids) if kid in comments]
        while stack:
            comment = comments[stack.pop()]
            ordered.append(comment)
            stack.extend(kid for kid in reversed(comment.kids) if kid in comments)
        return ordered
