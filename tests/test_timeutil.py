"""Tests for time reference parsing and formatting."""

from datetime import datetime, timedelta, timezone

import pytest

from vibegraph.timeutil import format_relative_time, parse_time_reference


NOW = datetime(2026, 3, 15, 14, 30, tzinfo=timezone.utc)


class TestParseTimeReference:
    def test_iso_date(self):
        assert parse_time_reference("2026-01-15") == datetime(2026, 1, 15, tzinfo=timezone.utc)

    def test_iso_with_offset(self):
        parsed = parse_time_reference("2026-01-15T10:00:00+02:00")
        assert parsed == datetime(2026, 1, 15, 8, 0, tzinfo=timezone.utc)

    @pytest.mark.parametrize(
        "ref,delta",
        [
            ("30 minutes ago", timedelta(minutes=30)),
            ("1 hour ago", timedelta(hours=1)),
            ("3 days ago", timedelta(days=3)),
            ("2 weeks ago", timedelta(weeks=2)),
        ],
    )
    def test_relative(self, ref, delta):
        assert parse_time_reference(ref, now=NOW) == NOW - delta

    def test_months_ago(self):
        assert parse_time_reference("1 month ago", now=NOW) == datetime(2026, 2, 15, 14, 30, tzinfo=timezone.utc)

    def test_named(self):
        assert parse_time_reference("today", now=NOW) == datetime(2026, 3, 15, tzinfo=timezone.utc)
        assert parse_time_reference("Yesterday", now=NOW) == datetime(2026, 3, 14, tzinfo=timezone.utc)
        assert parse_time_reference("last week", now=NOW) == NOW - timedelta(weeks=1)

    def test_unparseable(self):
        with pytest.raises(ValueError):
            parse_time_reference("whenever the vibes shift")


class TestFormatRelativeTime:
    @pytest.mark.parametrize(
        "delta,expected",
        [
            (timedelta(seconds=10), "just now"),
            (timedelta(minutes=1), "1 minute ago"),
            (timedelta(hours=5), "5 hours ago"),
            (timedelta(days=3), "3 days ago"),
            (timedelta(days=15), "2 weeks ago"),
            (timedelta(days=400), "1 year ago"),
        ],
    )
    def test_formats(self, delta, expected):
        assert format_relative_time(NOW - delta, now=NOW) == expected

    def test_future(self):
        assert format_relative_time(NOW + timedelta(hours=1), now=NOW) == "in the future"
