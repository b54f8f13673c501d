"""Console reports for the CLI."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from .aggregation import AggregationEngine, DateRange
from .db import database_connection
from .formatting import format_duration


class SummaryPrinter:
    """Render human-readable summaries in the console."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)

    def print_summary(self, period: DateRange, group_by: str = "category") -> None:
        with database_connection(self.db_path) as conn:
            engine = AggregationEngine(conn)
            summary = engine.summary(period, group_by=group_by)
            productivity = engine.productivity(period)

        if not summary["groups"]:
            print("No activity recorded for the selected period.")
            return

        print(f"Summary for {_label(period)}")
        print("-" * 40)
        print(f"Active time:  {summary['total_active']}")
        print(f"Productivity: {productivity['score']}/100")
        print(f"  productive  {format_duration(productivity['productive'])}")
        print(f"  neutral     {format_duration(productivity['neutral'])}")
        print(f"  distracting {format_duration(productivity['distracting'])}")
        print()

        heading = "Top apps:" if group_by == "app" else "Top categories:"
        print(heading)
        for group in summary["groups"][:10]:
            print(f"  {group['name']:<30} {group['time']:>8} {group['pct']:>6.1f}%")

    def print_trends(self, period: DateRange, interval: str = "day") -> None:
        with database_connection(self.db_path) as conn:
            buckets = AggregationEngine(conn).trends(period, interval=interval)

        if not buckets:
            print("No activity recorded for the selected period.")
            return

        print(f"{'Bucket':<18} {'Hours':>6} {'Score':>6}  Top category")
        for bucket in buckets:
            top = max(bucket["categories"].items(), key=lambda item: item[1])[0]
            print(
                f"{bucket['bucket']:<18} {bucket['total_hours']:>6.1f} "
                f"{bucket['productivity']:>6}  {top}"
            )

    def print_timeline(self, period: DateRange, limit: Optional[int] = None) -> None:
        with database_connection(self.db_path) as conn:
            entries = AggregationEngine(conn).timeline(period, limit=limit)

        print(f"Timeline for {_label(period)}")
        print("-" * 70)
        for entry in entries:
            print(
                f"{entry['timestamp'][11:19]} {format_duration(entry['duration']):>8}  "
                f"{_truncate(entry['app'] or 'Unknown', 20):<20} "
                f"{_truncate(entry['title'] or '', 30):<30} {entry['category']}"
            )
        print()
        print(f"{len(entries)} entries")

    def print_focus(self, period: DateRange) -> None:
        with database_connection(self.db_path) as conn:
            focus = AggregationEngine(conn).focus(period)

        if not focus["total_active_seconds"]:
            print("No activity recorded for the selected period.")
            return

        print(f"Focus for {_label(period)}")
        print(
            f"Active: {focus['total_active']} | Focus score: {focus['focus_score']} | "
            f"Switches: {focus['context_switches']} ({focus['switches_per_hour']}/hr)"
        )
        print("-" * 60)
        blocks = focus["deep_work_blocks"]
        if blocks:
            print(f"Deep work blocks ({len(blocks)}, longest: {focus['longest_focus_minutes']}m):")
            for block in blocks:
                print(
                    f"  {block['start']}  {block['time']:>7}  "
                    f"[{block['category']}: {', '.join(block['apps'])}]"
                )
        else:
            print("No deep work blocks (minimum 5 minutes).")

        if focus["top_distractions"]:
            print()
            print("Top distractions:")
            for entry in focus["top_distractions"]:
                print(
                    f"  {entry['app']:<20} {entry['switches_to']} switches, "
                    f"{format_duration(entry['seconds'])} total"
                )

    def print_current(self) -> None:
        with database_connection(self.db_path) as conn:
            current = AggregationEngine(conn).current()

        if current is None:
            print("No activity recorded yet.")
            return

        state = "away" if current["is_afk"] else (current["app"] or "Unknown")
        print(f"{state} [{current['category']}] since {current['since']}")
        if current["title"]:
            print(f"  {current['title'][:70]}")
        print(f"  {format_duration(current['duration_seconds'])}")


def _label(period: DateRange) -> str:
    if period.start_day == period.end_day:
        return period.start_day.isoformat()
    return f"{period.start_day.isoformat()} to {period.end_day.isoformat()}"


def _truncate(value: str, width: int) -> str:
    if len(value) <= width:
        return value
    return value[: width - 3] + "..."
