"""CSV and JSON export of recorded events with their category names."""

from __future__ import annotations

import csv
import json
import logging
import sqlite3
from typing import Any, Callable, Dict, Iterable, TextIO

from .aggregation import DateRange
from .db import storage_errors
from .errors import ValidationError

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = (
    "timestamp",
    "duration",
    "app",
    "title",
    "url",
    "url_domain",
    "category",
    "is_afk",
)


def fetch_export_rows(conn: sqlite3.Connection, period: DateRange) -> list[Dict[str, Any]]:
    """Every event in ``period``, AFK included, oldest first."""
    with storage_errors("exporting events"):
        rows = conn.execute(
            """
            SELECT e.timestamp, e.duration, e.app, e.title, e.url, e.url_domain,
                   c.name AS category, e.is_afk
            FROM events e
            LEFT JOIN categories c ON e.category_id = c.id
            WHERE e.timestamp >= ? AND e.timestamp <= ?
            ORDER BY e.timestamp ASC, e.id ASC
            """,
            period.params,
        ).fetchall()
    return [{**dict(row), "is_afk": bool(row["is_afk"])} for row in rows]


def write_csv(rows: Iterable[Dict[str, Any]], stream: TextIO) -> None:
    writer = csv.DictWriter(stream, fieldnames=EXPORT_COLUMNS, lineterminator="\n")
    writer.writeheader()
    for row in rows:
        writer.writerow({**row, "is_afk": "true" if row["is_afk"] else "false"})


def write_json(rows: Iterable[Dict[str, Any]], stream: TextIO) -> None:
    json.dump(list(rows), stream, indent=2)
    stream.write("\n")


EXPORT_FORMATS: Dict[str, Callable[[Iterable[Dict[str, Any]], TextIO], None]] = {
    "csv": write_csv,
    "json": write_json,
}


def export_events(
    conn: sqlite3.Connection, period: DateRange, fmt: str, stream: TextIO
) -> int:
    writer = EXPORT_FORMATS.get(fmt)
    if writer is None:
        raise ValidationError(f"format must be one of: {', '.join(EXPORT_FORMATS)}")
    rows = fetch_export_rows(conn, period)
    writer(rows, stream)
    logger.debug("Exported %d events as %s.", len(rows), fmt)
    return len(rows)
