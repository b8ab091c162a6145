"""
Favorites repository - favorites over stories and comments.

A favorite is the favorited_at timestamp on the entity row itself. Toggle and
list logic is written once against the Favoritable mapping below; each item
kind only supplies its table and row converter.
"""

import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from ..exceptions import ConstraintViolation, ItemNotFoundError, store_errors
from ..staleness import Clock, SystemClock
from .connection import DatabaseConnection
from .converters import row_to_comment, row_to_story, to_datetime
from .models import Favoritable, ItemKind

logger = logging.getLogger(__name__)

# Minimum gap between two assigned favorite timestamps, in seconds
TIMESTAMP_STEP = 0.001


@dataclass(frozen=True)
class FavoritableTable:
    """Where one item kind keeps its favorited_at."""
    kind: ItemKind
    table: str
    from_row: Callable[[sqlite3.Row], Favoritable]


FAVORITABLE_TABLES: dict[ItemKind, FavoritableTable] = {
    ItemKind.STORY: FavoritableTable(ItemKind.STORY, "stories", row_to_story),
    ItemKind.COMMENT: FavoritableTable(ItemKind.COMMENT, "comments", row_to_comment),
}


class FavoritesRepository:
    """Repository for toggling and listing favorites."""

    def __init__(self, db: DatabaseConnection, clock: Clock | None = None):
        self._db = db
        self._clock = clock or SystemClock()

    def _next_timestamp(self, conn: sqlite3.Connection) -> float:
        """Now, or just after the latest favorite if the clock has not moved past it."""
        selects = " UNION ALL ".join(
            f"SELECT MAX(favorited_at) AS latest FROM {mapping.table}"
            for mapping in FAVORITABLE_TABLES.values()
        )
        latest = conn.execute(f"SELECT MAX(latest) AS latest FROM ({selects})").fetchone()["latest"]
        now = self._clock.now()
        if latest is not None and now <= latest:
            return latest + TIMESTAMP_STEP
        return now

    def toggle(self, item_id: int, kind: ItemKind) -> datetime | None:
        """
        Favorite an item, or clear its favorite if it has one.

        Returns the new favorited_at (None when cleared). Raises
        ItemNotFoundError if the item is not cached.
        """
        mapping = FAVORITABLE_TABLES[kind]
        with store_errors("toggle_favorite", item_id=item_id, kind=kind.value):
            with self._db.transaction() as conn:
                row = conn.execute(
                    f"SELECT favorited_at FROM {mapping.table} WHERE id = ?", (item_id,)
                ).fetchone()
                if row is None:
                    raise ItemNotFoundError(f"{kind.value} {item_id} is not cached")

                favorited_at = self._next_timestamp(conn) if row["favorited_at"] is None else None
                conn.execute(
                    f"UPDATE {mapping.table} SET favorited_at = ? WHERE id = ?",
                    (favorited_at, item_id)
                )

        logger.debug(f"{'Favorited' if favorited_at is not None else 'Unfavorited'} {kind.value} {item_id}")
        return to_datetime(favorited_at)

    def is_favorite(self, item_id: int, kind: ItemKind) -> bool:
        mapping = FAVORITABLE_TABLES[kind]
        with store_errors("is_favorite", item_id=item_id, kind=kind.value):
            with self._db.conn() as conn:
                row = conn.execute(
                    f"SELECT favorited_at FROM {mapping.table} WHERE id = ?", (item_id,)
                ).fetchone()
                return row is not None and row["favorited_at"] is not None

    def get_all(self, kind: ItemKind, limit: int = 50, offset: int = 0) -> list[Favoritable]:
        """Favorited items of one kind, most recently favorited first."""
        if limit < 0 or offset < 0:
            raise ConstraintViolation(f"Invalid limit {limit} / offset {offset}")
        mapping = FAVORITABLE_TABLES[kind]
        with store_errors("list_favorites", kind=kind.value, limit=limit, offset=offset):
            with self._db.conn() as conn:
                rows = conn.execute(
                    f"""SELECT * FROM {mapping.table}
                        WHERE favorited_at IS NOT NULL
                        ORDER BY favorited_at DESC, id DESC
                        LIMIT ? OFFSET ?""",
                    (limit, offset)
                ).fetchall()
                return [mapping.from_row(row) for row in rows]

    def ids(self, kind: ItemKind) -> list[int]:
        """Ids of all favorited items of one kind, most recent first."""
        mapping = FAVORITABLE_TABLES[kind]
        with store_errors("favorite_ids", kind=kind.value):
            with self._db.conn() as conn:
                rows = conn.execute(
                    f"""SELECT id FROM {mapping.table}
                        WHERE favorited_at IS NOT NULL
                        ORDER BY favorited_at DESC, id DESC"""
                ).fetchall()
                return [row["id"] for row in rows]

    def count(self, kind: ItemKind) -> int:
        mapping = FAVORITABLE_TABLES[kind]
        with store_errors("count_favorites", kind=kind.value):
            with self._db.conn() as conn:
                return conn.execute(
                    f"SELECT COUNT(*) AS cnt FROM {mapping.table} WHERE favorited_at IS NOT NULL"
                ).fetchone()["cnt"]
