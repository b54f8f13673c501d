"""Command-line interface for the activity analytics engine."""

from __future__ import annotations

import logging
import sqlite3
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import typer

from .aggregation import DateRange
from .categories import CategoryStore
from .config import AnalyticsSettings
from .db import database_connection, prepare_database, seed_builtin_categories
from .errors import AnalyticsError, ValidationError
from .paths import get_db_path
from .recategorize import RecategorizationExecutor
from .rules import RuleEngine

app = typer.Typer(help="Categorized productivity analytics for recorded activity.")
rules_app = typer.Typer(help="List and edit category rules.")
app.add_typer(rules_app, name="rules")

DB_OPTION = typer.Option(
    None,
    "--db",
    path_type=Path,
    help="Location of the activity SQLite database.",
)
FROM_OPTION = typer.Option(None, "--from", help="Start date (YYYY-MM-DD). Defaults to today.")
TO_OPTION = typer.Option(None, "--to", help="End date (YYYY-MM-DD). Defaults to today.")


@app.callback(no_args_is_help=True)
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs.")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def _prepared_path(db_path: Optional[Path]) -> Path:
    path = db_path or get_db_path()
    prepare_database(path)
    return path


@contextmanager
def _seeded_connection(db_path: Optional[Path]) -> Iterator[sqlite3.Connection]:
    with database_connection(db_path or get_db_path()) as conn:
        seed_builtin_categories(conn)
        yield conn


def _rule_engine(conn: sqlite3.Connection) -> RuleEngine:
    return RuleEngine(conn, RecategorizationExecutor())


@contextmanager
def _reported_errors() -> Iterator[None]:
    try:
        yield
    except AnalyticsError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


@app.command()
def summary(
    start: Optional[str] = FROM_OPTION,
    end: Optional[str] = TO_OPTION,
    group_by: str = typer.Option("category", "--group-by", help="Group by 'category' or 'app'."),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Print active time and productivity for a date range."""
    from .reporting import SummaryPrinter

    with _reported_errors():
        SummaryPrinter(db_path=_prepared_path(db_path)).print_summary(
            DateRange.parse(start, end), group_by=group_by
        )


@app.command()
def trends(
    start: Optional[str] = FROM_OPTION,
    end: Optional[str] = TO_OPTION,
    interval: str = typer.Option("day", "--interval", help="hour, day, week or month."),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Print per-bucket totals and productivity scores."""
    from .reporting import SummaryPrinter

    with _reported_errors():
        SummaryPrinter(db_path=_prepared_path(db_path)).print_trends(
            DateRange.parse(start, end), interval=interval
        )


@app.command()
def timeline(
    start: Optional[str] = FROM_OPTION,
    end: Optional[str] = TO_OPTION,
    limit: Optional[int] = typer.Option(None, "--limit", min=1, help="Maximum entries to show."),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Print active events in chronological order."""
    from .reporting import SummaryPrinter

    with _reported_errors():
        SummaryPrinter(db_path=_prepared_path(db_path)).print_timeline(
            DateRange.parse(start, end), limit=limit
        )


@app.command()
def focus(
    start: Optional[str] = FROM_OPTION,
    end: Optional[str] = TO_OPTION,
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Print context switches, deep-work blocks and top distractions."""
    from .reporting import SummaryPrinter

    with _reported_errors():
        SummaryPrinter(db_path=_prepared_path(db_path)).print_focus(DateRange.parse(start, end))


@app.command()
def export(
    start: Optional[str] = FROM_OPTION,
    end: Optional[str] = TO_OPTION,
    fmt: str = typer.Option("json", "--format", help="json or csv."),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="File to write. Writes stdout when omitted."
    ),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Export events with their category names."""
    from .exporter import EXPORT_FORMATS, export_events

    period = DateRange.parse(start, end)
    with _reported_errors(), _seeded_connection(db_path) as conn:
        if fmt not in EXPORT_FORMATS:
            raise ValidationError(f"format must be one of: {', '.join(EXPORT_FORMATS)}")
        if output is None:
            export_events(conn, period, fmt, sys.stdout)
        else:
            with output.open("w", encoding="utf-8", newline="") as handle:
                count = export_events(conn, period, fmt, handle)
            typer.echo(f"Exported {count} events to {output}")


@app.command()
def now(db_path: Optional[Path] = DB_OPTION) -> None:
    """Show the most recently recorded activity."""
    from .reporting import SummaryPrinter

    with _reported_errors():
        SummaryPrinter(db_path=_prepared_path(db_path)).print_current()


@app.command()
def categories(db_path: Optional[Path] = DB_OPTION) -> None:
    """List the category catalog."""
    with _reported_errors(), _seeded_connection(db_path) as conn:
        rows = CategoryStore(conn).list_categories()
    for category in rows:
        typer.echo(f"{category.id:<5} {category.name:<28} {category.productivity_score:>3}")


@app.command("import")
def import_events_command(
    source: Optional[Path] = typer.Argument(
        None, help="JSON-lines file of events. Reads stdin when omitted."
    ),
    categorize_new: bool = typer.Option(
        True, "--categorize/--no-categorize", help="Classify imported events with the current rules."
    ),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Import completed events written by the capture process."""
    from .importer import import_events

    with _reported_errors(), _seeded_connection(db_path) as conn:
        if source is None:
            imported = import_events(conn, sys.stdin)
        else:
            with source.open(encoding="utf-8") as handle:
                imported = import_events(conn, handle)
        typer.echo(f"Imported {imported} events")
        if categorize_new and imported:
            typer.echo(f"Categorized {_rule_engine(conn).categorize_pending()} events")


@app.command()
def categorize(db_path: Optional[Path] = DB_OPTION) -> None:
    """Classify events that have no category yet."""
    with _reported_errors(), _seeded_connection(db_path) as conn:
        count = _rule_engine(conn).categorize_pending()
    typer.echo(f"Categorized {count} events")


@rules_app.command("list")
def list_rules(db_path: Optional[Path] = DB_OPTION) -> None:
    """List rules in evaluation order."""
    with _reported_errors(), _seeded_connection(db_path) as conn:
        rules = _rule_engine(conn).list_rules()
    typer.echo(f"{'ID':<6} {'Builtin':<8} {'Field':<11} {'Pattern':<25} {'Category':<25} Priority")
    typer.echo("-" * 90)
    for rule in rules:
        typer.echo(
            f"{rule.id:<6} {'yes' if rule.is_builtin else 'no':<8} {rule.field.value:<11} "
            f"{rule.pattern:<25} {rule.category_name or '-':<25} {rule.priority}"
        )


@rules_app.command("set")
def set_rule(
    pattern: str = typer.Argument(..., help="Value to match."),
    category: str = typer.Argument(..., help="Category id or name."),
    field: str = typer.Option("app", "--field", help="app, title or url_domain."),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Create or retarget a user rule and recategorize matching events."""
    with _reported_errors(), _seeded_connection(db_path) as conn:
        category_id = _resolve_category(conn, category)
        updated = _rule_engine(conn).upsert_rule(field, pattern, category_id)
    typer.echo(f"Rule saved: {field} {pattern!r} -> {category}; {updated} events updated")


@rules_app.command("update")
def update_rule(
    rule_id: int = typer.Argument(...),
    category: str = typer.Argument(..., help="Category id or name."),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Point an existing user rule at another category."""
    with _reported_errors(), _seeded_connection(db_path) as conn:
        category_id = _resolve_category(conn, category)
        updated = _rule_engine(conn).update_rule_category(rule_id, category_id)
    typer.echo(f"Rule {rule_id} updated; {updated} events updated")


@rules_app.command("delete")
def delete_rule(
    rule_id: int = typer.Argument(...),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Delete a user rule and move its events to the fallback category."""
    with _reported_errors(), _seeded_connection(db_path) as conn:
        recategorized = _rule_engine(conn).delete_rule(rule_id)
    typer.echo(f"Rule {rule_id} deleted; {recategorized} events recategorized")


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind the API."),
    port: int = typer.Option(
        8765, "--port", min=1, max=65535, help="TCP port for the API."
    ),
    db_path: Optional[Path] = DB_OPTION,
    open_browser: bool = typer.Option(
        False,
        "--open-browser/--no-open-browser",
        help="Open the interactive API docs in your default browser.",
    ),
    apps_limit: Optional[int] = typer.Option(
        None, "--apps-limit", min=1, help="Default number of apps in the breakdown."
    ),
    timeline_limit: Optional[int] = typer.Option(
        None, "--timeline-limit", min=1, help="Default number of timeline entries."
    ),
    busy_timeout: Optional[float] = typer.Option(
        None, "--busy-timeout", min=0.1, help="Seconds to wait for a locked database."
    ),
) -> None:
    """Serve the analytics and rule API over HTTP."""
    from .server_runner import run_dashboard

    settings = AnalyticsSettings.from_options(
        apps_limit=apps_limit,
        timeline_limit=timeline_limit,
        busy_timeout=busy_timeout,
    )
    run_dashboard(
        host=host,
        port=port,
        db_path=db_path or get_db_path(),
        settings=settings,
        open_browser=open_browser,
    )


def _resolve_category(conn: sqlite3.Connection, value: str) -> int:
    if value.isdigit():
        return int(value)
    category = CategoryStore(conn).get_by_name(value)
    if category is None:
        raise ValidationError(f"Unknown category: {value}")
    return category.id
