"""
Schema migrations - forward-only, applied once, safe to re-run.

Applied versions are recorded in _schema. A step runs when its version is above
the recorded maximum, inside its own BEGIN IMMEDIATE transaction together with
its _schema row, so a failed step leaves nothing behind.

Steps never assume a fresh store. Table and index creation is "if not exists";
steps that restructure the feed tables first detect the shape they convert
from (see feed_shape) and do nothing on any other shape, building the target
in a shadow table that is renamed into place.

History of the feed tables:
    1  feeds(feed_type, position, story_id, fetched_at)      denormalized
    2  feeds(feed_type PK) + feed_stories(feed_type, ...)     normalized
    3  feeds(id PK, feed_type UNIQUE) + feed_stories(feed_id)  surrogate key
    6  feeds(feed_type PK, fetched_at NULL) + feed_stories     category as key
Favorites lived in their own table (5) until they moved onto the entities (7).
"""

import logging
import sqlite3
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from ..exceptions import SchemaError

logger = logging.getLogger(__name__)


class FeedShape(str, Enum):
    ABSENT = "absent"
    DENORMALIZED = "denormalized"
    NORMALIZED = "normalized"
    SYNTHETIC_ID = "synthetic_id"
    CATEGORY_KEY = "category_key"


@dataclass(frozen=True)
class Migration:
    version: int
    name: str
    apply: Callable[[sqlite3.Connection], None]


def _table_exists(conn: sqlite3.Connection, name: str) -> bool:
    row = conn.execute(
        "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?", (name,)
    ).fetchone()
    return row is not None


def _columns(conn: sqlite3.Connection, table: str) -> dict[str, bool]:
    """Column name -> NOT NULL flag."""
    return {row[1]: bool(row[3]) for row in conn.execute(f"PRAGMA table_info({table})")}


def _add_column(conn: sqlite3.Connection, table: str, column: str, column_type: str):
    """Add a column to a table if it doesn't exist."""
    if column not in _columns(conn, table):
        conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {column_type}")


def feed_shape(conn: sqlite3.Connection) -> FeedShape:
    """Identify which historical layout the feed tables are in."""
    if not _table_exists(conn, "feeds"):
        return FeedShape.ABSENT
    feeds = _columns(conn, "feeds")
    if "position" in feeds:
        return FeedShape.DENORMALIZED
    if "id" in feeds:
        return FeedShape.SYNTHETIC_ID
    if feeds.get("fetched_at", False):
        return FeedShape.NORMALIZED
    return FeedShape.CATEGORY_KEY


def _initial(conn: sqlite3.Connection):
    conn.execute("""
        CREATE TABLE IF NOT EXISTS stories (
            id INTEGER PRIMARY KEY,
            title TEXT NOT NULL DEFAULT '',
            url TEXT,
            score INTEGER NOT NULL DEFAULT 0,
            by TEXT,
            time INTEGER NOT NULL DEFAULT 0,
            descendants INTEGER NOT NULL DEFAULT 0,
            kids TEXT NOT NULL DEFAULT '[]',
            fetched_at INTEGER
        )
    """)
    conn.execute("""
        CREATE TABLE IF NOT EXISTS comments (
            id INTEGER PRIMARY KEY,
            story_id INTEGER,
            parent_id INTEGER,
            by TEXT,
            text TEXT NOT NULL DEFAULT '',
            time INTEGER NOT NULL DEFAULT 0,
            depth INTEGER NOT NULL DEFAULT 0,
            position INTEGER NOT NULL DEFAULT 0,
            kids TEXT NOT NULL DEFAULT '[]',
            fetched_at INTEGER
        )
    """)
    conn.execute("CREATE INDEX IF NOT EXISTS idx_comments_story ON comments(story_id, position)")

    # Later steps restructure feeds; only a store without feed tables gets the original layout
    if feed_shape(conn) is FeedShape.ABSENT and not _table_exists(conn, "feed_stories"):
        conn.execute("""
            CREATE TABLE feeds (
                feed_type TEXT NOT NULL,
                position INTEGER NOT NULL,
                story_id INTEGER NOT NULL,
                fetched_at INTEGER NOT NULL,
                PRIMARY KEY (feed_type, position)
            )
        """)
        conn.execute("CREATE INDEX IF NOT EXISTS idx_feeds_story ON feeds(story_id)")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_feeds_fetched ON feeds(fetched_at)")


def _normalize_feeds(conn: sqlite3.Connection):
    if feed_shape(conn) is not FeedShape.DENORMALIZED:
        return
    conn.execute("DROP TABLE IF EXISTS feeds_new")
    conn.execute("""
        CREATE TABLE feeds_new (
            feed_type TEXT PRIMARY KEY,
            fetched_at INTEGER NOT NULL
        )
    """)
    conn.execute("""
        CREATE TABLE IF NOT EXISTS feed_stories (
            feed_type TEXT NOT NULL,
            position INTEGER NOT NULL,
            story_id INTEGER NOT NULL,
            PRIMARY KEY (feed_type, position)
        )
    """)
    conn.execute("""
        INSERT OR REPLACE INTO feeds_new (feed_type, fetched_at)
        SELECT feed_type, MAX(fetched_at) FROM feeds GROUP BY feed_type
    """)
    conn.execute("""
        INSERT OR REPLACE INTO feed_stories (feed_type, position, story_id)
        SELECT feed_type, position, story_id FROM feeds
    """)
    conn.execute("DROP TABLE feeds")
    conn.execute("ALTER TABLE feeds_new RENAME TO feeds")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_feed_stories_story ON feed_stories(story_id)")


def _feeds_synthetic_id(conn: sqlite3.Connection):
    if feed_shape(conn) is not FeedShape.NORMALIZED:
        return
    conn.execute("DROP TABLE IF EXISTS feeds_new")
    conn.execute("DROP TABLE IF EXISTS feed_stories_new")
    conn.execute("""
        CREATE TABLE feeds_new (
            id INTEGER PRIMARY KEY,
            feed_type TEXT NOT NULL UNIQUE,
            fetched_at INTEGER NOT NULL
        )
    """)
    conn.execute("""
        CREATE TABLE feed_stories_new (
            feed_id INTEGER NOT NULL,
            position INTEGER NOT NULL,
            story_id INTEGER NOT NULL,
            PRIMARY KEY (feed_id, position)
        )
    """)
    conn.execute("INSERT INTO feeds_new (feed_type, fetched_at) SELECT feed_type, fetched_at FROM feeds")
    conn.execute("""
        INSERT INTO feed_stories_new (feed_id, position, story_id)
        SELECT f.id, fs.position, fs.story_id
        FROM feed_stories fs
        JOIN feeds_new f ON f.feed_type = fs.feed_type
    """)
    conn.execute("DROP TABLE feed_stories")
    conn.execute("DROP TABLE feeds")
    conn.execute("ALTER TABLE feeds_new RENAME TO feeds")
    conn.execute("ALTER TABLE feed_stories_new RENAME TO feed_stories")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_feed_stories_story ON feed_stories(story_id)")


def _age_expression(unit_seconds: int, suffix: str) -> str:
    return f"((CAST(strftime('%s', 'now') AS INTEGER) - fetched_at) / {unit_seconds}) || '{suffix}'"


_AGE_COLUMNS = f"""
    fetched_at,
    CAST(strftime('%s', 'now') AS INTEGER) - fetched_at AS seconds_ago,
    CASE
        WHEN fetched_at IS NULL THEN 'never'
        WHEN CAST(strftime('%s', 'now') AS INTEGER) - fetched_at < 60
            THEN {_age_expression(1, 's ago')}
        WHEN CAST(strftime('%s', 'now') AS INTEGER) - fetched_at < 3600
            THEN {_age_expression(60, 'm ago')}
        ELSE {_age_expression(3600, 'h ago')}
    END AS age
"""


def _feeds_age_view(conn: sqlite3.Connection):
    # This version of the view exposes the surrogate id; step 6 replaces it
    if feed_shape(conn) is not FeedShape.SYNTHETIC_ID:
        return
    conn.execute(f"CREATE VIEW IF NOT EXISTS feeds_age AS SELECT id, feed_type, {_AGE_COLUMNS} FROM feeds")


def _favorites_table(conn: sqlite3.Connection):
    conn.execute("""
        CREATE TABLE IF NOT EXISTS favorites (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            item_id INTEGER NOT NULL,
            item_type TEXT NOT NULL CHECK(item_type IN ('story', 'comment')),
            favorited_at INTEGER NOT NULL,
            UNIQUE(item_id, item_type)
        )
    """)
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_favorites_type_time ON favorites(item_type, favorited_at DESC)"
    )


def _feeds_category_key(conn: sqlite3.Connection):
    """Drop the surrogate id again: one category has at most one cached listing."""
    if feed_shape(conn) is FeedShape.SYNTHETIC_ID:
        # Renaming tables fails while a view points at a dropped table
        conn.execute("DROP VIEW IF EXISTS feeds_age")
        conn.execute("DROP TABLE IF EXISTS feeds_new")
        conn.execute("DROP TABLE IF EXISTS feed_stories_new")
        conn.execute("""
            CREATE TABLE feeds_new (
                feed_type TEXT PRIMARY KEY,
                fetched_at INTEGER
            )
        """)
        conn.execute("""
            CREATE TABLE feed_stories_new (
                feed_type TEXT NOT NULL REFERENCES feeds(feed_type) ON DELETE CASCADE,
                position INTEGER NOT NULL CHECK(position >= 0),
                story_id INTEGER NOT NULL,
                PRIMARY KEY (feed_type, position)
            )
        """)
        conn.execute("INSERT INTO feeds_new (feed_type, fetched_at) SELECT feed_type, fetched_at FROM feeds")
        conn.execute("""
            INSERT INTO feed_stories_new (feed_type, position, story_id)
            SELECT f.feed_type, fs.position, fs.story_id
            FROM feed_stories fs
            JOIN feeds f ON f.id = fs.feed_id
        """)
        conn.execute("DROP TABLE feed_stories")
        conn.execute("DROP TABLE feeds")
        conn.execute("ALTER TABLE feeds_new RENAME TO feeds")
        conn.execute("ALTER TABLE feed_stories_new RENAME TO feed_stories")

    if feed_shape(conn) is FeedShape.ABSENT:
        conn.execute("""
            CREATE TABLE feeds (
                feed_type TEXT PRIMARY KEY,
                fetched_at INTEGER
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS feed_stories (
                feed_type TEXT NOT NULL REFERENCES feeds(feed_type) ON DELETE CASCADE,
                position INTEGER NOT NULL CHECK(position >= 0),
                story_id INTEGER NOT NULL,
                PRIMARY KEY (feed_type, position)
            )
        """)

    if feed_shape(conn) is FeedShape.CATEGORY_KEY:
        conn.execute("CREATE INDEX IF NOT EXISTS idx_feed_stories_story ON feed_stories(story_id)")
        conn.execute(f"CREATE VIEW IF NOT EXISTS feeds_age AS SELECT feed_type, {_AGE_COLUMNS} FROM feeds")


def _favorites_on_entities(conn: sqlite3.Connection):
    """Move favorites from the join table onto the entities themselves."""
    _add_column(conn, "stories", "favorited_at", "REAL")
    _add_column(conn, "comments", "favorited_at", "REAL")

    if _table_exists(conn, "favorites"):
        for kind, table in (("story", "stories"), ("comment", "comments")):
            # Favorites of items that were never cached become stub rows
            orphans = conn.execute(
                f"INSERT OR IGNORE INTO {table} (id) SELECT item_id FROM favorites WHERE item_type = ?",
                (kind,)
            ).rowcount
            moved = conn.execute(
                f"""UPDATE {table} SET favorited_at = (
                        SELECT f.favorited_at FROM favorites f
                        WHERE f.item_type = ? AND f.item_id = {table}.id
                    )
                    WHERE favorited_at IS NULL
                      AND id IN (SELECT item_id FROM favorites WHERE item_type = ?)""",
                (kind, kind)
            ).rowcount
            logger.info(f"Moved {moved} {kind} favorites ({orphans} stub rows)")
        conn.execute("DROP TABLE favorites")

    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_stories_favorited "
        "ON stories(favorited_at DESC) WHERE favorited_at IS NOT NULL"
    )
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_comments_favorited "
        "ON comments(favorited_at DESC) WHERE favorited_at IS NOT NULL"
    )


MIGRATIONS: list[Migration] = [
    Migration(1, "initial", _initial),
    Migration(2, "normalize_feeds", _normalize_feeds),
    Migration(3, "feeds_synthetic_id", _feeds_synthetic_id),
    Migration(4, "feeds_age_view", _feeds_age_view),
    Migration(5, "favorites", _favorites_table),
    Migration(6, "feeds_category_key", _feeds_category_key),
    Migration(7, "favorites_on_entities", _favorites_on_entities),
]

LATEST_VERSION = MIGRATIONS[-1].version


def current_version(conn: sqlite3.Connection) -> int:
    """Highest applied version, 0 for an untracked store."""
    if not _table_exists(conn, "_schema"):
        return 0
    row = conn.execute("SELECT COALESCE(MAX(version), 0) FROM _schema").fetchone()
    return row[0]


def apply_all(conn: sqlite3.Connection, target: int | None = None) -> int:
    """
    Apply every pending migration up to target (default: all).

    The connection must be in autocommit mode (isolation_level=None); each
    step manages its own transaction. Raises SchemaError on the first failing
    step. Returns the resulting version.
    """
    if conn.isolation_level is not None:
        raise ValueError("apply_all needs an autocommit connection (isolation_level=None)")

    # Table rebuilds must not trip foreign key actions; this pragma is a no-op inside a transaction
    conn.execute("PRAGMA foreign_keys = OFF")
    try:
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS _schema (
                    version INTEGER PRIMARY KEY,
                    applied_at INTEGER NOT NULL
                )
            """)
            current = current_version(conn)
        except sqlite3.Error as e:
            raise SchemaError(0, str(e)) from e

        for migration in MIGRATIONS:
            if target is not None and migration.version > target:
                break
            if migration.version <= current:
                continue

            try:
                conn.execute("BEGIN IMMEDIATE")
                migration.apply(conn)
                conn.execute(
                    "INSERT OR REPLACE INTO _schema (version, applied_at) VALUES (?, ?)",
                    (migration.version, int(time.time()))
                )
                conn.execute("COMMIT")
            except sqlite3.Error as e:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                logger.error(f"Migration {migration.version} ({migration.name}) failed: {e}")
                raise SchemaError(migration.version, str(e)) from e

            current = migration.version
            logger.info(f"Applied migration {migration.version} ({migration.name})")

        return current
    finally:
        conn.execute("PRAGMA foreign_keys = ON")
