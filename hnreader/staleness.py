"""
Staleness - how old a cached feed listing is.

Pure functions over (fetched_at, now), both Unix timestamps in seconds:
- age_seconds / classify: elapsed time and its display bucket
- format_age: "42s ago", "5m ago", "2h ago" (integer division, no rounding)
- should_refetch: age strictly greater than a caller-supplied TTL
- format_relative: coarser "m/h/d ago" labels for story and comment times

Clocks are injected so callers and tests can control "now".
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

MINUTE = 60
HOUR = 3600
DAY = 86400

NEVER_LABEL = "never"


class Clock(Protocol):
    def now(self) -> float:
        """Current Unix time in seconds."""
        ...


class SystemClock:
    """Wall clock."""

    def now(self) -> float:
        return time.time()


class FixedClock:
    """Clock that only moves when told to."""

    def __init__(self, timestamp: float):
        self.timestamp = timestamp

    def now(self) -> float:
        return self.timestamp

    def advance(self, seconds: float):
        self.timestamp += seconds


class AgeBucket(str, Enum):
    NEVER = "never"
    SECONDS = "seconds"
    MINUTES = "minutes"
    HOURS = "hours"


@dataclass(frozen=True)
class Staleness:
    """Age of a feed listing and its display classification."""
    seconds_ago: int | None
    bucket: AgeBucket
    label: str

    @property
    def never_fetched(self) -> bool:
        return self.bucket is AgeBucket.NEVER


def age_seconds(fetched_at: int | None, now: float) -> int | None:
    """Whole seconds since fetched_at, or None if never fetched."""
    if fetched_at is None:
        return None
    return int(now) - int(fetched_at)


def format_age(seconds: int | None) -> str:
    """Label an age: <60s in seconds, <1h in minutes, otherwise hours."""
    if seconds is None:
        return NEVER_LABEL
    if seconds < MINUTE:
        return f"{seconds}s ago"
    if seconds < HOUR:
        return f"{seconds // MINUTE}m ago"
    return f"{seconds // HOUR}h ago"


def classify(fetched_at: int | None, now: float) -> Staleness:
    seconds = age_seconds(fetched_at, now)
    if seconds is None:
        bucket = AgeBucket.NEVER
    elif seconds < MINUTE:
        bucket = AgeBucket.SECONDS
    elif seconds < HOUR:
        bucket = AgeBucket.MINUTES
    else:
        bucket = AgeBucket.HOURS
    return Staleness(seconds_ago=seconds, bucket=bucket, label=format_age(seconds))


def should_refetch(fetched_at: int | None, ttl: int, now: float) -> bool:
    """A never-fetched listing is always stale; otherwise stale once age > ttl."""
    seconds = age_seconds(fetched_at, now)
    if seconds is None:
        return True
    return seconds > ttl


def format_relative(timestamp: int, now: float) -> str:
    """Relative label for an item's creation time."""
    diff = int(now) - int(timestamp)
    if diff < HOUR:
        return f"{max(diff, 0) // MINUTE}m ago"
    if diff < DAY:
        return f"{diff // HOUR}h ago"
    return f"{diff // DAY}d ago"
