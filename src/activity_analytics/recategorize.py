"""Retroactive repair of event categories after a rule change."""

from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from .db import storage_errors, transaction
from .models import RuleField

logger = logging.getLogger(__name__)


class RecategorizationExecutor:
    """Applies rule changes to historical events.

    Categories are stored on events rather than computed when reading, so every
    rule mutation must rewrite the matching events in the same transaction as
    the rule row. One executor is shared by all writers in a process; its lock
    plus ``BEGIN IMMEDIATE`` keeps rule mutations strictly sequential, and the
    last one to commit wins.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()

    @contextmanager
    def rule_change(self, conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
        """Open the write transaction that a rule mutation and :meth:`apply` share."""
        with self._lock, storage_errors("applying rule change"), transaction(conn):
            yield conn

    def apply(
        self,
        conn: sqlite3.Connection,
        field: RuleField,
        pattern: str,
        category_id: Optional[int],
    ) -> int:
        """Point every active event matching ``(field, pattern)`` at ``category_id``.

        Returns the number of events whose category actually changed.
        """
        if not conn.in_transaction:
            raise RuntimeError("apply() must run inside rule_change()")
        cur = conn.execute(
            f"""
            UPDATE events
            SET category_id = ?
            WHERE {field.sql_predicate()}
                AND is_afk = 0
                AND category_id IS NOT ?
            """,
            (category_id, pattern, category_id),
        )
        affected = cur.rowcount
        logger.debug(
            "Recategorized %d events: %s=%r -> category %s",
            affected,
            field.value,
            pattern,
            category_id,
        )
        return affected
