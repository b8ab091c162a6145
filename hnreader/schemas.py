"""
Pydantic models for remote item payloads.
"""

from pydantic import BaseModel, Field

from .database.models import DBComment, DBStory

STORY_TYPES = ("story", "job", "poll")


class HNItem(BaseModel):
    """An item as returned by the remote API (story, comment, job, ...)."""
    id: int
    type: str | None = None
    by: str | None = None
    time: int = 0
    text: str | None = None
    url: str | None = None
    score: int = 0
    title: str | None = None
    descendants: int = 0
    kids: list[int] = Field(default_factory=list)
    parent: int | None = None
    deleted: bool = False
    dead: bool = False

    @property
    def is_visible(self) -> bool:
        return not (self.deleted or self.dead)

    def to_story(self) -> DBStory | None:
        """Story record, or None for comments and removed items."""
        if self.type not in STORY_TYPES or not self.is_visible or not self.title:
            return None
        return DBStory(
            id=self.id,
            title=self.title,
            url=self.url,
            score=self.score,
            by=self.by,
            time=self.time,
            descendants=self.descendants,
            kids=list(self.kids),
        )

    def to_comment(self, story_id: int, depth: int) -> DBComment | None:
        """Comment record, or None for other item types and removed comments."""
        if self.type != "comment" or not self.is_visible:
            return None
        return DBComment(
            id=self.id,
            story_id=story_id,
            parent_id=self.parent,
            by=self.by,
            text=self.text or "",
            time=self.time,
            depth=depth,
            kids=list(self.kids),
        )
