"""Category rules: classification and rule lifecycle."""

from __future__ import annotations

import logging
import sqlite3
from typing import Iterable, Mapping, Optional

from .categories import CategoryStore
from .config import AnalyticsSettings
from .db import (
    delete_rule,
    fetch_category_by_id,
    fetch_pending_events,
    fetch_rule,
    fetch_rule_for_pattern,
    fetch_rules,
    insert_rule,
    set_event_categories,
    storage_errors,
    update_rule_category,
)
from .errors import InvalidOperation, NotFound, ValidationError
from .models import CategoryRule, RuleField
from .recategorize import RecategorizationExecutor

logger = logging.getLogger(__name__)


def classify(
    attributes: Mapping[str, Optional[str]], rules: Iterable[CategoryRule]
) -> Optional[int]:
    """Return the category of the first rule matching ``attributes``.

    ``rules`` must already be ordered by priority, highest first (as
    :func:`fetch_rules` returns them). ``attributes`` is anything indexable by
    field name, such as an events row.
    """
    for rule in rules:
        if rule.field.matches(attributes[rule.field.value], rule.pattern):
            return rule.category_id
    return None


def parse_field(value: object) -> RuleField:
    try:
        return RuleField.parse(value)
    except (TypeError, ValueError) as exc:
        allowed = ", ".join(sorted(field.value for field in RuleField))
        raise ValidationError(f"field must be one of: {allowed}") from exc


class RuleEngine:
    """Lists and mutates category rules, keeping event categories in sync."""

    def __init__(
        self,
        conn: sqlite3.Connection,
        executor: RecategorizationExecutor,
        settings: Optional[AnalyticsSettings] = None,
    ) -> None:
        self._conn = conn
        self._executor = executor
        self._settings = settings or AnalyticsSettings()

    def list_rules(self) -> list[CategoryRule]:
        with storage_errors("listing rules"):
            return fetch_rules(self._conn)

    def upsert_rule(self, field: object, pattern: Optional[str], category_id: object) -> int:
        """Create or retarget the user rule for ``(field, pattern)``.

        Returns the number of events moved to ``category_id``.
        """
        rule_field = parse_field(field)
        if not pattern:
            raise ValidationError("Missing required field: pattern")
        target = _require_category_id(category_id)

        with self._executor.rule_change(self._conn) as conn:
            self._require_category(target)
            existing = fetch_rule_for_pattern(conn, rule_field, pattern, builtin=False)
            if existing:
                update_rule_category(conn, existing.id, target)
                rule_id = existing.id
            else:
                rule_id = insert_rule(
                    conn,
                    target,
                    rule_field,
                    pattern,
                    is_builtin=False,
                    priority=self._settings.user_rule_priority,
                )
            updated = self._executor.apply(conn, rule_field, pattern, target)

        logger.info(
            "Rule %d (%s=%r) -> category %d; %d events updated.",
            rule_id,
            rule_field.value,
            pattern,
            target,
            updated,
        )
        return updated

    def update_rule_category(self, rule_id: int, category_id: object) -> int:
        target = _require_category_id(category_id)
        with self._executor.rule_change(self._conn) as conn:
            rule = self._require_user_rule(rule_id, "modify")
            self._require_category(target)
            update_rule_category(conn, rule.id, target)
            updated = self._executor.apply(conn, rule.field, rule.pattern, target)

        logger.info("Rule %d retargeted to category %d; %d events updated.", rule_id, target, updated)
        return updated

    def delete_rule(self, rule_id: int) -> int:
        """Remove a user rule and move its events to the fallback category.

        The fallback is the category of a built-in rule declared for the same
        ``(field, pattern)``, or ``uncategorized`` when there is none.
        """
        with self._executor.rule_change(self._conn) as conn:
            rule = self._require_user_rule(rule_id, "delete")
            builtin = fetch_rule_for_pattern(conn, rule.field, rule.pattern, builtin=True)
            if builtin:
                fallback_id = builtin.category_id
            else:
                fallback_id = CategoryStore(conn).uncategorized().id
            recategorized = self._executor.apply(conn, rule.field, rule.pattern, fallback_id)
            delete_rule(conn, rule.id)

        logger.info(
            "Rule %d deleted; %d events moved to category %d.",
            rule_id,
            recategorized,
            fallback_id,
        )
        return recategorized

    def categorize_pending(self) -> int:
        """Classify active events that have no category yet."""
        with self._executor.rule_change(self._conn) as conn:
            rules = fetch_rules(conn)
            assignments = []
            for row in fetch_pending_events(conn):
                category_id = classify(row, rules)
                if category_id is not None:
                    assignments.append((row["id"], category_id))
            categorized = set_event_categories(conn, assignments) if assignments else 0

        logger.info("Categorized %d pending events.", categorized)
        return categorized

    def _require_user_rule(self, rule_id: int, action: str) -> CategoryRule:
        rule = fetch_rule(self._conn, rule_id)
        if rule is None:
            raise NotFound(f"Rule not found: {rule_id}")
        if rule.is_builtin:
            raise InvalidOperation(f"Cannot {action} builtin rules")
        return rule

    def _require_category(self, category_id: int) -> None:
        if fetch_category_by_id(self._conn, category_id) is None:
            raise ValidationError(f"Unknown category_id: {category_id}")


def _require_category_id(value: object) -> int:
    if value is None:
        raise ValidationError("Missing required field: category_id")
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value)
    raise ValidationError("category_id must be an integer")
