"""Tests for JSON-lines event import."""

import json

import pytest

from activity_analytics.errors import ValidationError
from activity_analytics.importer import import_events, parse_events
from activity_analytics.normalization import extract_url_domain


def test_import_derives_domain_and_trims_precision(conn):
    lines = [
        json.dumps(
            {
                "timestamp": "2026-03-01T09:00:00.750",
                "duration": 42.5,
                "app": "Safari",
                "title": "Pull  Request #42 ",
                "url": "https://github.com/org/repo/pull/42",
            }
        ),
        "",
        json.dumps({"timestamp": "2026-03-01T09:01:00", "duration": 300, "is_afk": True}),
    ]

    assert import_events(conn, lines) == 2

    rows = list(conn.execute("SELECT * FROM events ORDER BY id"))
    assert rows[0]["timestamp"] == "2026-03-01T09:00:00"
    assert rows[0]["url_domain"] == "github.com"
    assert rows[0]["title"] == "Pull Request #42"
    assert rows[0]["category_id"] is None
    assert rows[1]["is_afk"] == 1
    assert rows[1]["app"] is None


def test_invalid_line_rejects_whole_import(conn):
    lines = [
        json.dumps({"timestamp": "2026-03-01T09:00:00", "duration": 10}),
        json.dumps({"timestamp": "2026-03-01T09:01:00", "duration": -5}),
    ]
    with pytest.raises(ValidationError, match="line 2"):
        import_events(conn, lines)
    assert conn.execute("SELECT COUNT(*) FROM events").fetchone()[0] == 0


def test_explicit_domain_is_kept():
    [event] = parse_events(
        [json.dumps({"timestamp": "2026-03-01T09:00:00", "duration": 1, "url_domain": "a.b"})]
    )
    assert event.url_domain == "a.b"


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("https://www.YouTube.com/watch?v=1", "www.youtube.com"),
        ("http://user:pw@localhost:8080/x", "localhost"),
        ("github.com/org", "github.com"),
        ("", None),
        (None, None),
    ],
)
def test_extract_url_domain(url, expected):
    assert extract_url_domain(url) == expected
