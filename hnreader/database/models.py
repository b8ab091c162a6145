"""
Database models - dataclasses for cached entities and feed listings.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import ClassVar, Protocol


class FeedCategory(str, Enum):
    """Remote listing types. The value is the stored feed key."""
    TOP = "top"
    NEW = "new"
    BEST = "best"
    ASK = "ask"
    SHOW = "show"
    JOBS = "jobs"
    FAVORITES = "favorites"

    @property
    def label(self) -> str:
        return self.name.title()

    @property
    def endpoint(self) -> str | None:
        """Remote endpoint name, None for local-only categories."""
        if self is FeedCategory.FAVORITES:
            return None
        return f"{self.value}stories"

    @property
    def is_remote(self) -> bool:
        return self.endpoint is not None

    @classmethod
    def remote(cls) -> list["FeedCategory"]:
        return [category for category in cls if category.is_remote]


class ItemKind(str, Enum):
    STORY = "story"
    COMMENT = "comment"


class Favoritable(Protocol):
    """Anything that can carry a user-set favorited timestamp."""
    kind: ClassVar[ItemKind]
    id: int
    favorited_at: datetime | None


@dataclass
class DBStory:
    kind: ClassVar[ItemKind] = ItemKind.STORY

    id: int
    title: str
    url: str | None
    score: int
    by: str | None
    time: int
    descendants: int = 0
    kids: list[int] = field(default_factory=list)
    fetched_at: datetime | None = None
    favorited_at: datetime | None = None

    @property
    def is_favorite(self) -> bool:
        return self.favorited_at is not None


@dataclass
class DBComment:
    kind: ClassVar[ItemKind] = ItemKind.COMMENT

    id: int
    story_id: int | None
    parent_id: int | None
    by: str | None
    text: str
    time: int
    depth: int = 0
    position: int = 0
    kids: list[int] = field(default_factory=list)
    fetched_at: datetime | None = None
    favorited_at: datetime | None = None

    @property
    def is_favorite(self) -> bool:
        return self.favorited_at is not None


@dataclass
class DBFeed:
    """One cached listing per category. fetched_at is None until the first fetch."""
    category: FeedCategory
    fetched_at: int | None
    story_count: int = 0


@dataclass
class FeedAge:
    """Row of the feed age view: elapsed time and its display label."""
    category: FeedCategory
    fetched_at: int | None
    seconds_ago: int | None
    label: str
