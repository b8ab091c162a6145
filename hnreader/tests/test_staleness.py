"""
Tests for feed age labels and refetch decisions.
"""

import pytest

from hnreader.staleness import (
    AgeBucket,
    FixedClock,
    age_seconds,
    classify,
    format_age,
    format_relative,
    should_refetch,
)

NOW = 1_700_000_000


class TestFormatAge:
    """Tests for the age label."""

    @pytest.mark.parametrize("seconds,label", [
        (0, "0s ago"),
        (1, "1s ago"),
        (59, "59s ago"),
        (60, "1m ago"),
        (119, "1m ago"),
        (3599, "59m ago"),
        (3600, "1h ago"),
        (3700, "1h ago"),
        (7199, "1h ago"),
        (86400 * 3, "72h ago"),
    ])
    def test_buckets(self, seconds, label):
        assert format_age(seconds) == label

    def test_never(self):
        assert format_age(None) == "never"


class TestClassify:

    def test_never_fetched(self):
        staleness = classify(None, NOW)
        assert staleness.never_fetched
        assert staleness.seconds_ago is None
        assert staleness.label == "never"

    @pytest.mark.parametrize("age,bucket", [
        (0, AgeBucket.SECONDS),
        (59, AgeBucket.SECONDS),
        (60, AgeBucket.MINUTES),
        (3599, AgeBucket.MINUTES),
        (3600, AgeBucket.HOURS),
    ])
    def test_bucket_boundaries(self, age, bucket):
        staleness = classify(NOW - age, NOW)
        assert staleness.bucket is bucket
        assert staleness.seconds_ago == age

    def test_fractional_now_is_truncated(self):
        assert age_seconds(NOW, NOW + 0.9) == 0


class TestShouldRefetch:
    """Tests for the refetch decision."""

    def test_never_fetched_always_refetches(self):
        assert should_refetch(None, ttl=10**9, now=NOW)

    def test_age_equal_to_ttl_is_fresh(self):
        assert not should_refetch(NOW - 300, ttl=300, now=NOW)

    def test_age_past_ttl_is_stale(self):
        assert should_refetch(NOW - 301, ttl=300, now=NOW)

    def test_zero_ttl(self):
        assert not should_refetch(NOW, ttl=0, now=NOW)
        assert should_refetch(NOW - 1, ttl=0, now=NOW)


class TestFormatRelative:

    @pytest.mark.parametrize("diff,label", [
        (0, "0m ago"),
        (59, "0m ago"),
        (600, "10m ago"),
        (3600, "1h ago"),
        (86399, "23h ago"),
        (86400, "1d ago"),
        (86400 * 10, "10d ago"),
    ])
    def test_labels(self, diff, label):
        assert format_relative(NOW - diff, NOW) == label

    def test_future_timestamp(self):
        assert format_relative(NOW + 30, NOW) == "0m ago"


class TestFixedClock:

    def test_advance(self):
        clock = FixedClock(NOW)
        clock.advance(3700)
        assert clock.now() == NOW + 3700
