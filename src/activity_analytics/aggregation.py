"""Range-scoped summaries, breakdowns, trends, focus and productivity scoring."""

from __future__ import annotations

import logging
import sqlite3
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Optional

from .builtin import UNCATEGORIZED
from .config import AnalyticsSettings
from .db import DATETIME_FMT, storage_errors
from .errors import ValidationError
from .formatting import (
    format_duration,
    percentage,
    productivity_score,
    round_half_up,
    round_seconds,
)

logger = logging.getLogger(__name__)

GROUP_BY_VALUES = ("category", "app")

BUCKET_EXPRESSIONS = {
    "hour": "strftime('%Y-%m-%dT%H:00', e.timestamp)",
    "day": "date(e.timestamp)",
    "week": "strftime('%Y-W%W', e.timestamp)",
    "month": "strftime('%Y-%m', e.timestamp)",
}

_ACTIVE_IN_RANGE = "e.timestamp >= ? AND e.timestamp <= ? AND e.is_afk = 0"

# Deep-work blocks: consecutive productive events in one category.
DEEP_WORK_MAX_GAP = 65
DEEP_WORK_MIN_SECONDS = 300
TOP_DISTRACTIONS = 5


@dataclass(frozen=True, slots=True)
class DateRange:
    """Inclusive range of calendar days."""

    start_day: date
    end_day: date

    @classmethod
    def parse(
        cls,
        start: Optional[str] = None,
        end: Optional[str] = None,
        *,
        today: Optional[date] = None,
    ) -> "DateRange":
        """Build a range from ``YYYY-MM-DD`` strings.

        Missing or unparseable values fall back to ``today``.
        """
        today = today or date.today()
        return cls(_parse_day(start, today), _parse_day(end, today))

    @property
    def start(self) -> str:
        return f"{self.start_day.isoformat()}T00:00:00"

    @property
    def end(self) -> str:
        return f"{self.end_day.isoformat()}T23:59:59"

    @property
    def params(self) -> tuple[str, str]:
        return (self.start, self.end)


def _parse_day(value: Optional[str], today: date) -> date:
    if not value:
        return today
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except ValueError:
        logger.warning("Ignoring malformed date %r; using %s.", value, today.isoformat())
        return today


@dataclass(slots=True)
class _FocusBlock:
    category: str
    start: str
    end: str
    seconds: float
    apps: list[str] = field(default_factory=list)

    def extend(self, row: sqlite3.Row) -> None:
        self.end = row["timestamp"]
        self.seconds += row["duration"]
        if row["app"] not in self.apps:
            self.apps.append(row["app"])


class AggregationEngine:
    """Answers reporting queries from the categories stored on events.

    Every query is a single SELECT, so each result reflects one consistent
    snapshot even while a rule change is being written.
    """

    def __init__(
        self, conn: sqlite3.Connection, settings: Optional[AnalyticsSettings] = None
    ) -> None:
        self._conn = conn
        self._settings = settings or AnalyticsSettings()

    def summary(self, period: DateRange, group_by: str = "category") -> Dict[str, Any]:
        if group_by not in GROUP_BY_VALUES:
            raise ValidationError(f"groupBy must be one of: {', '.join(GROUP_BY_VALUES)}")
        if group_by == "app":
            sql = f"""
                SELECT COALESCE(e.app, 'Unknown') AS name, SUM(e.duration) AS total_seconds
                FROM events e
                WHERE {_ACTIVE_IN_RANGE}
                GROUP BY COALESCE(e.app, 'Unknown')
                ORDER BY total_seconds DESC, name
            """
        else:
            sql = f"""
                SELECT COALESCE(c.name, '{UNCATEGORIZED}') AS name,
                       SUM(e.duration) AS total_seconds
                FROM events e
                LEFT JOIN categories c ON e.category_id = c.id
                WHERE {_ACTIVE_IN_RANGE}
                GROUP BY COALESCE(c.name, '{UNCATEGORIZED}')
                ORDER BY total_seconds DESC, name
            """
        rows = self._fetch(sql, period.params, "summarizing activity")
        total = sum(row["total_seconds"] for row in rows)
        return {
            "period_from": period.start,
            "period_to": period.end,
            "total_active": format_duration(total),
            "total_active_seconds": round_seconds(total),
            "groups": [
                {
                    "name": row["name"],
                    "seconds": round_seconds(row["total_seconds"]),
                    "time": format_duration(row["total_seconds"]),
                    "pct": percentage(row["total_seconds"], total),
                }
                for row in rows
            ],
        }

    def app_breakdown(self, period: DateRange, limit: Optional[int] = None) -> list[Dict[str, Any]]:
        limit = _check_limit(limit, self._settings.apps_limit)
        # category is a bare column: SQLite reports it from one row of each app group.
        rows = self._fetch(
            f"""
            SELECT
                COALESCE(e.app, 'Unknown') AS app,
                COALESCE(c.name, '{UNCATEGORIZED}') AS category,
                SUM(e.duration) AS total_seconds,
                COUNT(*) AS event_count
            FROM events e
            LEFT JOIN categories c ON e.category_id = c.id
            WHERE {_ACTIVE_IN_RANGE}
            GROUP BY COALESCE(e.app, 'Unknown')
            ORDER BY total_seconds DESC, app
            LIMIT ?
            """,
            (*period.params, limit),
            "building app breakdown",
        )
        total = sum(row["total_seconds"] for row in rows)
        return [
            {
                "app": row["app"],
                "category": row["category"],
                "seconds": round_seconds(row["total_seconds"]),
                "time": format_duration(row["total_seconds"]),
                "pct": percentage(row["total_seconds"], total),
                "events": row["event_count"],
            }
            for row in rows
        ]

    def app_sessions(
        self, name: str, period: DateRange, limit: Optional[int] = None
    ) -> Dict[str, Any]:
        """Individual events recorded for an app name or a site domain."""
        limit = _check_limit(limit, self._settings.sessions_limit)
        rows = self._fetch(
            f"""
            SELECT e.timestamp, e.duration, e.app, e.title, e.url,
                   COALESCE(c.name, '{UNCATEGORIZED}') AS category
            FROM events e
            LEFT JOIN categories c ON e.category_id = c.id
            WHERE {_ACTIVE_IN_RANGE}
                AND e.duration > 0
                AND (e.app = ? OR e.url_domain = ?)
            ORDER BY e.timestamp ASC, e.id ASC
            LIMIT ?
            """,
            (*period.params, name, name, limit),
            "loading app sessions",
        )
        return {
            "app": name,
            "sessions": [
                {
                    "timestamp": row["timestamp"],
                    "duration": row["duration"],
                    "app": row["app"],
                    "title": row["title"],
                    "url": row["url"],
                    "category": row["category"],
                }
                for row in rows
            ],
        }

    def timeline(self, period: DateRange, limit: Optional[int] = None) -> list[Dict[str, Any]]:
        limit = _check_limit(limit, self._settings.timeline_limit)
        rows = self._fetch(
            f"""
            SELECT e.timestamp, e.duration, e.app, e.title, e.url,
                   COALESCE(c.name, '{UNCATEGORIZED}') AS category,
                   e.is_afk
            FROM events e
            LEFT JOIN categories c ON e.category_id = c.id
            WHERE {_ACTIVE_IN_RANGE}
            ORDER BY e.timestamp ASC, e.id ASC
            LIMIT ?
            """,
            (*period.params, limit),
            "loading timeline",
        )
        return [
            {
                "timestamp": row["timestamp"],
                "duration": row["duration"],
                "app": row["app"],
                "title": row["title"],
                "url": row["url"],
                "category": row["category"],
                "is_afk": bool(row["is_afk"]),
            }
            for row in rows
        ]

    def productivity(self, period: DateRange) -> Dict[str, Any]:
        rows = self._fetch(
            f"""
            SELECT COALESCE(c.productivity_score, 0) AS weight,
                   SUM(e.duration) AS total_seconds
            FROM events e
            LEFT JOIN categories c ON e.category_id = c.id
            WHERE {_ACTIVE_IN_RANGE}
            GROUP BY COALESCE(c.productivity_score, 0)
            """,
            period.params,
            "scoring productivity",
        )
        productive = neutral = distracting = 0.0
        weighted_sum = 0.0
        total = 0.0
        for row in rows:
            seconds = row["total_seconds"]
            weight = row["weight"]
            total += seconds
            weighted_sum += seconds * weight
            if weight > 0:
                productive += seconds
            elif weight < 0:
                distracting += seconds
            else:
                neutral += seconds
        return {
            "score": productivity_score(weighted_sum, total),
            "productive": round_seconds(productive),
            "neutral": round_seconds(neutral),
            "distracting": round_seconds(distracting),
            "total": round_seconds(total),
        }

    def trends(self, period: DateRange, interval: str = "day") -> list[Dict[str, Any]]:
        bucket_expr = BUCKET_EXPRESSIONS.get(interval)
        if bucket_expr is None:
            raise ValidationError(
                f"interval must be one of: {', '.join(BUCKET_EXPRESSIONS)}"
            )
        rows = self._fetch(
            f"""
            SELECT
                {bucket_expr} AS bucket,
                COALESCE(c.name, '{UNCATEGORIZED}') AS category,
                COALESCE(c.productivity_score, 0) AS weight,
                SUM(e.duration) AS total_seconds
            FROM events e
            LEFT JOIN categories c ON e.category_id = c.id
            WHERE {_ACTIVE_IN_RANGE}
            GROUP BY bucket, category
            ORDER BY bucket ASC, category ASC
            """,
            period.params,
            "building trends",
        )

        totals: dict[str, float] = defaultdict(float)
        weighted: dict[str, float] = defaultdict(float)
        categories: dict[str, dict[str, float]] = defaultdict(lambda: defaultdict(float))
        for row in rows:
            bucket = row["bucket"]
            seconds = row["total_seconds"]
            totals[bucket] += seconds
            weighted[bucket] += seconds * row["weight"]
            categories[bucket][row["category"]] += seconds

        return [
            {
                "bucket": bucket,
                "total_seconds": round_seconds(total),
                "total_hours": round_half_up(total / 3600, 1),
                "productivity": productivity_score(weighted[bucket], total),
                "categories": {
                    name: round_seconds(seconds)
                    for name, seconds in categories[bucket].items()
                },
            }
            for bucket, total in totals.items()
        ]

    def focus(self, period: DateRange) -> Dict[str, Any]:
        """Context switching and deep-work analysis of the active events in ``period``.

        A context switch is a category change between consecutive active
        events. A deep-work block is a run of productive events sharing one
        category, with at most ``DEEP_WORK_MAX_GAP`` seconds between the end of
        one event and the start of the next, lasting ``DEEP_WORK_MIN_SECONDS``
        or more. Distractions are switches from a productive event to a
        neutral or distracting one, counted per destination app.
        """
        rows = self._fetch(
            f"""
            SELECT e.timestamp, e.duration,
                   COALESCE(e.app, 'Unknown') AS app,
                   COALESCE(c.name, '{UNCATEGORIZED}') AS category,
                   COALESCE(c.productivity_score, 0) AS weight
            FROM events e
            LEFT JOIN categories c ON e.category_id = c.id
            WHERE {_ACTIVE_IN_RANGE}
            ORDER BY e.timestamp ASC, e.id ASC
            """,
            period.params,
            "analyzing focus",
        )
        total = sum(row["duration"] for row in rows)
        pairs = list(zip(rows, rows[1:]))
        switches = sum(1 for prev, curr in pairs if prev["category"] != curr["category"])
        hours = total / 3600
        switches_per_hour = round_half_up(switches / hours, 1) if hours > 0 else 0.0

        blocks = _deep_work_blocks(rows)
        deep_seconds = sum(block.seconds for block in blocks)
        longest = max((block.seconds for block in blocks), default=0.0)

        distractions: dict[str, list] = {}
        for prev, curr in pairs:
            if prev["weight"] > 0 and curr["weight"] <= 0:
                entry = distractions.setdefault(curr["app"], [0, 0.0])
                entry[0] += 1
                entry[1] += curr["duration"]
        top = sorted(distractions.items(), key=lambda item: (-item[1][0], -item[1][1], item[0]))

        if total > 0:
            penalty = min(switches_per_hour / 30, 1.0)
            raw_score = (deep_seconds / total * 0.7 + (1 - penalty) * 0.3) * 100
            score = max(0, min(100, int(round_half_up(raw_score))))
        else:
            score = 0

        return {
            "period_from": period.start,
            "period_to": period.end,
            "total_active_seconds": round_seconds(total),
            "total_active": format_duration(total),
            "focus_score": score,
            "context_switches": switches,
            "switches_per_hour": switches_per_hour,
            "deep_work_blocks": [
                {
                    "start": block.start,
                    "end": block.end,
                    "seconds": round_seconds(block.seconds),
                    "time": format_duration(block.seconds),
                    "category": block.category,
                    "apps": block.apps,
                }
                for block in blocks
            ],
            "longest_focus_minutes": round_half_up(longest / 60, 1),
            "top_distractions": [
                {"app": app, "switches_to": count, "seconds": round_seconds(seconds)}
                for app, (count, seconds) in top[:TOP_DISTRACTIONS]
            ],
        }

    def current(self) -> Optional[Dict[str, Any]]:
        """Most recent event, AFK or not; ``None`` when nothing was recorded."""
        rows = self._fetch(
            f"""
            SELECT e.app, e.title, e.url,
                   COALESCE(c.name, '{UNCATEGORIZED}') AS category,
                   e.duration, e.is_afk, e.timestamp
            FROM events e
            LEFT JOIN categories c ON e.category_id = c.id
            ORDER BY e.timestamp DESC, e.id DESC
            LIMIT 1
            """,
            (),
            "loading current activity",
        )
        if not rows:
            return None
        row = rows[0]
        return {
            "app": row["app"],
            "title": row["title"],
            "url": row["url"],
            "category": row["category"],
            "duration_seconds": row["duration"],
            "is_afk": bool(row["is_afk"]),
            "since": row["timestamp"],
        }

    def _fetch(self, sql: str, params: tuple, action: str) -> list[sqlite3.Row]:
        with storage_errors(action):
            rows = self._conn.execute(sql, params).fetchall()
        logger.debug("%s: %d rows", action, len(rows))
        return rows


def _check_limit(limit: Optional[int], default: int) -> int:
    if limit is None:
        return default
    if limit < 1:
        raise ValidationError("limit must be a positive integer")
    return limit


def _deep_work_blocks(rows: list[sqlite3.Row]) -> list[_FocusBlock]:
    blocks: list[_FocusBlock] = []
    current: Optional[_FocusBlock] = None
    previous: Optional[sqlite3.Row] = None
    for row in rows:
        productive = row["weight"] > 0
        if current is not None:
            if (
                productive
                and row["category"] == current.category
                and _gap_seconds(previous, row) <= DEEP_WORK_MAX_GAP
            ):
                current.extend(row)
                previous = row
                continue
            if current.seconds >= DEEP_WORK_MIN_SECONDS:
                blocks.append(current)
            current = None
        if productive:
            current = _FocusBlock(
                category=row["category"],
                start=row["timestamp"],
                end=row["timestamp"],
                seconds=row["duration"],
                apps=[row["app"]],
            )
        previous = row
    if current is not None and current.seconds >= DEEP_WORK_MIN_SECONDS:
        blocks.append(current)
    return blocks


def _gap_seconds(previous: sqlite3.Row, row: sqlite3.Row) -> float:
    """Seconds between the end of ``previous`` and the start of ``row``."""
    started = datetime.strptime(previous["timestamp"], DATETIME_FMT)
    following = datetime.strptime(row["timestamp"], DATETIME_FMT)
    return (following - started).total_seconds() - previous["duration"]
