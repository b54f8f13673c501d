"""Shared fixtures for the analytics test-suite."""

from datetime import datetime

import pytest

from activity_analytics.db import (
    fetch_category_by_name,
    insert_events,
    open_database,
    seed_builtin_categories,
)
from activity_analytics.models import ActivityEvent


def make_event(
    timestamp: str = "2026-03-01T09:00:00",
    duration: float = 60.0,
    **fields,
) -> ActivityEvent:
    """Build an event from an ISO timestamp string."""
    return ActivityEvent(
        timestamp=datetime.fromisoformat(timestamp),
        duration=duration,
        **fields,
    )


@pytest.fixture
def conn():
    connection = open_database(":memory:")
    seed_builtin_categories(connection)
    yield connection
    connection.close()


@pytest.fixture
def category_id(conn):
    """Resolve a category name to its id."""

    def resolve(name: str) -> int:
        category = fetch_category_by_name(conn, name)
        assert category is not None, name
        return category.id

    return resolve


@pytest.fixture
def add_events(conn):
    """Insert events built by :func:`make_event`."""

    def add(*fields: dict) -> None:
        insert_events(conn, [make_event(**event) for event in fields])

    return add


@pytest.fixture
def event_categories(conn):
    """Stored category ids of the events matching a WHERE clause, by id."""

    def fetch(where: str = "1 = 1", params: tuple = ()) -> list:
        return [
            row["category_id"]
            for row in conn.execute(
                f"SELECT category_id FROM events WHERE {where} ORDER BY id", params
            )
        ]

    return fetch
