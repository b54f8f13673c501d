"""SQLite database layer for events, categories and category rules."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator, Optional, Union

from .builtin import BUILTIN_CATEGORIES, BUILTIN_RULES, UNCATEGORIZED
from .errors import StorageError
from .models import ActivityEvent, Category, CategoryRule, RuleField

logger = logging.getLogger(__name__)

DATETIME_FMT = "%Y-%m-%dT%H:%M:%S"

RULE_COLUMNS = "r.id, r.category_id, c.name AS category_name, r.field, r.pattern, r.is_builtin, r.priority"


def open_database(
    path: Union[Path, str],
    *,
    check_same_thread: bool = True,
    timeout: float = 5.0,
) -> sqlite3.Connection:
    """Open the SQLite database without writing to it.

    The schema is created by :func:`prepare_database` (or
    :func:`seed_builtin_categories`), so opening a connection never needs the
    write lock a rule change may be holding.
    """
    with storage_errors("opening database"):
        conn = sqlite3.connect(
            path,
            isolation_level=None,
            check_same_thread=check_same_thread,
            timeout=timeout,
        )
        conn.row_factory = sqlite3.Row
        enable_foreign_keys(conn)
    return conn


@contextmanager
def database_connection(
    path: Union[Path, str], *, check_same_thread: bool = True, timeout: float = 5.0
) -> Iterator[sqlite3.Connection]:
    conn = open_database(path, check_same_thread=check_same_thread, timeout=timeout)
    try:
        yield conn
    finally:
        conn.close()


def prepare_database(path: Union[Path, str], *, builtin_priority: int = 50) -> None:
    """Create the schema and built-in catalog once, before serving reads."""
    with database_connection(path) as conn:
        seed_builtin_categories(conn, priority=builtin_priority)


@contextmanager
def storage_errors(action: str) -> Iterator[None]:
    """Re-raise ``sqlite3.Error`` as :class:`StorageError`."""
    try:
        yield
    except sqlite3.Error as exc:
        logger.error("Storage failure while %s: %s", action, exc)
        raise StorageError(f"Storage failure while {action}: {exc}") from exc


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Run the block in a write transaction that commits or rolls back as a unit.

    ``BEGIN IMMEDIATE`` takes the database write lock up front, so writers on
    other connections wait instead of interleaving their updates.
    """
    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
    except BaseException:
        if conn.in_transaction:
            conn.execute("ROLLBACK")
        raise
    conn.execute("COMMIT")


def enable_foreign_keys(conn: sqlite3.Connection) -> None:
    conn.execute("PRAGMA foreign_keys = ON;")


def initialize_schema(conn: sqlite3.Connection) -> None:
    conn.execute("PRAGMA journal_mode = WAL;")
    conn.executescript(
        f"""
        CREATE TABLE IF NOT EXISTS categories (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL UNIQUE,
            parent_id INTEGER REFERENCES categories(id),
            productivity_score INTEGER NOT NULL DEFAULT 0
                CHECK (productivity_score BETWEEN -2 AND 2)
        );

        CREATE TABLE IF NOT EXISTS category_rules (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            category_id INTEGER NOT NULL REFERENCES categories(id),
            field TEXT NOT NULL CHECK (field IN ('app', 'title', 'url_domain')),
            pattern TEXT NOT NULL,
            is_builtin INTEGER NOT NULL DEFAULT 0,
            priority INTEGER NOT NULL DEFAULT 0
        );

        CREATE TABLE IF NOT EXISTS events (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            timestamp TEXT NOT NULL,
            duration REAL NOT NULL DEFAULT 0 CHECK (duration >= 0),
            app TEXT,
            title TEXT,
            url TEXT,
            url_domain TEXT,
            is_afk INTEGER NOT NULL DEFAULT 0,
            category_id INTEGER REFERENCES categories(id)
        );

        CREATE INDEX IF NOT EXISTS idx_events_timestamp ON events(timestamp);
        CREATE INDEX IF NOT EXISTS idx_events_category ON events(category_id);
        CREATE INDEX IF NOT EXISTS idx_category_rules_field
            ON category_rules(field, pattern);

        INSERT OR IGNORE INTO categories (name, productivity_score)
            VALUES ('{UNCATEGORIZED}', 0);
        """
    )


def insert_events(conn: sqlite3.Connection, events: Iterable[ActivityEvent]) -> int:
    rows = [
        (
            event.timestamp.strftime(DATETIME_FMT),
            event.duration,
            event.app,
            event.title,
            event.url,
            event.url_domain,
            1 if event.is_afk else 0,
            event.category_id,
        )
        for event in events
    ]
    with storage_errors("inserting events"):
        conn.executemany(
            """
            INSERT INTO events (
                timestamp,
                duration,
                app,
                title,
                url,
                url_domain,
                is_afk,
                category_id
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            rows,
        )
    return len(rows)


def fetch_pending_events(conn: sqlite3.Connection) -> list[sqlite3.Row]:
    """Active events that have never been assigned a category."""
    return list(
        conn.execute(
            """
            SELECT id, app, title, url_domain
            FROM events
            WHERE category_id IS NULL AND is_afk = 0
            ORDER BY id;
            """
        )
    )


def set_event_categories(
    conn: sqlite3.Connection, assignments: Iterable[tuple[int, int]]
) -> int:
    """Apply ``(event_id, category_id)`` pairs; returns the number of rows written."""
    cur = conn.executemany(
        "UPDATE events SET category_id = ? WHERE id = ?",
        [(category_id, event_id) for event_id, category_id in assignments],
    )
    return cur.rowcount


def insert_category(
    conn: sqlite3.Connection,
    name: str,
    parent_id: Optional[int] = None,
    productivity_score: int = 0,
) -> int:
    conn.execute(
        """
        INSERT OR IGNORE INTO categories (name, parent_id, productivity_score)
        VALUES (?, ?, ?)
        """,
        (name, parent_id, productivity_score),
    )
    row = conn.execute("SELECT id FROM categories WHERE name = ?", (name,)).fetchone()
    return int(row["id"])


def fetch_categories(conn: sqlite3.Connection) -> list[Category]:
    rows = conn.execute(
        """
        SELECT id, name, parent_id, productivity_score
        FROM categories
        ORDER BY name;
        """
    )
    return [_row_to_category(row) for row in rows]


def fetch_category_by_id(conn: sqlite3.Connection, category_id: int) -> Optional[Category]:
    row = conn.execute(
        "SELECT id, name, parent_id, productivity_score FROM categories WHERE id = ?",
        (category_id,),
    ).fetchone()
    return _row_to_category(row) if row else None


def fetch_category_by_name(conn: sqlite3.Connection, name: str) -> Optional[Category]:
    row = conn.execute(
        "SELECT id, name, parent_id, productivity_score FROM categories WHERE name = ?",
        (name,),
    ).fetchone()
    return _row_to_category(row) if row else None


def insert_rule(
    conn: sqlite3.Connection,
    category_id: int,
    field: RuleField,
    pattern: str,
    *,
    is_builtin: bool,
    priority: int,
) -> int:
    cur = conn.execute(
        """
        INSERT INTO category_rules (category_id, field, pattern, is_builtin, priority)
        VALUES (?, ?, ?, ?, ?)
        """,
        (category_id, field.value, pattern, 1 if is_builtin else 0, priority),
    )
    return int(cur.lastrowid)


def fetch_rules(conn: sqlite3.Connection) -> list[CategoryRule]:
    rows = conn.execute(
        f"""
        SELECT {RULE_COLUMNS}
        FROM category_rules r
        LEFT JOIN categories c ON c.id = r.category_id
        ORDER BY r.priority DESC, r.id;
        """
    )
    return [_row_to_rule(row) for row in rows]


def fetch_rule(conn: sqlite3.Connection, rule_id: int) -> Optional[CategoryRule]:
    row = conn.execute(
        f"""
        SELECT {RULE_COLUMNS}
        FROM category_rules r
        LEFT JOIN categories c ON c.id = r.category_id
        WHERE r.id = ?
        """,
        (rule_id,),
    ).fetchone()
    return _row_to_rule(row) if row else None


def fetch_rule_for_pattern(
    conn: sqlite3.Connection, field: RuleField, pattern: str, *, builtin: bool
) -> Optional[CategoryRule]:
    """Return the first built-in or user rule declared for ``(field, pattern)``."""
    row = conn.execute(
        f"""
        SELECT {RULE_COLUMNS}
        FROM category_rules r
        LEFT JOIN categories c ON c.id = r.category_id
        WHERE r.field = ? AND r.pattern = ? AND r.is_builtin = ?
        ORDER BY r.priority DESC, r.id
        LIMIT 1
        """,
        (field.value, pattern, 1 if builtin else 0),
    ).fetchone()
    return _row_to_rule(row) if row else None


def update_rule_category(conn: sqlite3.Connection, rule_id: int, category_id: int) -> None:
    cur = conn.execute(
        "UPDATE category_rules SET category_id = ? WHERE id = ?",
        (category_id, rule_id),
    )
    if cur.rowcount == 0:
        raise ValueError(f"No rule found for id={rule_id}")


def delete_rule(conn: sqlite3.Connection, rule_id: int) -> None:
    conn.execute("DELETE FROM category_rules WHERE id = ?", (rule_id,))


def seed_builtin_categories(conn: sqlite3.Connection, *, priority: int = 50) -> None:
    """Insert the built-in catalog and rules; safe to run on every start."""
    canonical = {(field, pattern) for _, field, pattern in BUILTIN_RULES}
    with storage_errors("creating schema"):
        initialize_schema(conn)
    with storage_errors("seeding built-in categories"), transaction(conn):
        for name, parent_name, score in BUILTIN_CATEGORIES:
            parent = fetch_category_by_name(conn, parent_name) if parent_name else None
            insert_category(conn, name, parent.id if parent else None, score)

        stale = [
            row["id"]
            for row in conn.execute(
                "SELECT id, field, pattern FROM category_rules WHERE is_builtin = 1"
            )
            if (row["field"], row["pattern"]) not in canonical
        ]
        for rule_id in stale:
            delete_rule(conn, rule_id)
        if stale:
            logger.info("Removed %d stale built-in rules.", len(stale))

        inserted = 0
        for category_name, field, pattern in BUILTIN_RULES:
            rule_field = RuleField(field)
            if fetch_rule_for_pattern(conn, rule_field, pattern, builtin=True):
                continue
            category = fetch_category_by_name(conn, category_name)
            if category is None:
                continue
            insert_rule(conn, category.id, rule_field, pattern, is_builtin=True, priority=priority)
            inserted += 1
        if inserted:
            logger.debug("Seeded %d built-in rules.", inserted)


def _row_to_category(row: sqlite3.Row) -> Category:
    return Category(
        id=row["id"],
        name=row["name"],
        parent_id=row["parent_id"],
        productivity_score=int(row["productivity_score"]),
    )


def _row_to_rule(row: sqlite3.Row) -> CategoryRule:
    return CategoryRule(
        id=row["id"],
        category_id=row["category_id"],
        category_name=row["category_name"],
        field=RuleField(row["field"]),
        pattern=row["pattern"],
        is_builtin=bool(row["is_builtin"]),
        priority=row["priority"],
    )
