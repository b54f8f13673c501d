"""Tests for the SQLite schema, seeding and the category store."""

import sqlite3

import pytest

from activity_analytics.builtin import BUILTIN_CATEGORIES, BUILTIN_RULES
from activity_analytics.categories import CategoryStore
from activity_analytics.db import (
    database_connection,
    fetch_rules,
    initialize_schema,
    insert_category,
    insert_rule,
    open_database,
    prepare_database,
    seed_builtin_categories,
)
from activity_analytics.errors import StorageError
from activity_analytics.models import RuleField


class TestSchema:
    """Tests for schema initialization."""

    def test_uncategorized_exists_without_seeding(self):
        conn = open_database(":memory:")
        try:
            initialize_schema(conn)
            assert CategoryStore(conn).uncategorized().name == "uncategorized"
        finally:
            conn.close()

    def test_productivity_score_is_bounded(self, conn):
        with pytest.raises(sqlite3.IntegrityError):
            conn.execute(
                "INSERT INTO categories (name, productivity_score) VALUES ('too-good', 3)"
            )

    def test_rule_field_is_constrained(self, conn, category_id):
        with pytest.raises(sqlite3.IntegrityError):
            conn.execute(
                "INSERT INTO category_rules (category_id, field, pattern) VALUES (?, 'url', 'x')",
                (category_id("work/coding"),),
            )


class TestSeeding:
    """Tests for the built-in catalog."""

    def test_seeds_catalog_and_rules(self, conn):
        store = CategoryStore(conn)
        assert len(store.list_categories()) == len(BUILTIN_CATEGORIES)
        rules = fetch_rules(conn)
        assert len(rules) == len(BUILTIN_RULES)
        assert all(rule.is_builtin and rule.priority == 50 for rule in rules)

    def test_seeding_is_idempotent(self, conn):
        seed_builtin_categories(conn)
        seed_builtin_categories(conn)
        assert len(fetch_rules(conn)) == len(BUILTIN_RULES)

    def test_children_reference_parents(self, conn):
        store = CategoryStore(conn)
        coding = store.get_by_name("work/coding")
        assert coding.parent_id == store.get_by_name("work").id
        assert coding.productivity_score == 2

    def test_stale_builtin_rules_are_removed(self, conn, category_id):
        insert_rule(
            conn,
            category_id("work/coding"),
            RuleField.APP,
            "Retired IDE",
            is_builtin=True,
            priority=50,
        )
        seed_builtin_categories(conn)
        assert "Retired IDE" not in {rule.pattern for rule in fetch_rules(conn)}


class TestCategoryStore:
    """Tests for category lookups."""

    def test_list_is_ordered_by_name(self, conn):
        names = [category.name for category in CategoryStore(conn).list_categories()]
        assert names == sorted(names)

    def test_lookup_by_id_and_name(self, conn):
        store = CategoryStore(conn)
        by_name = store.get_by_name("reference/docs")
        assert store.get_by_id(by_name.id) == by_name
        assert store.get_by_name("nope") is None
        assert store.get_by_id(99999) is None

    def test_insert_category_returns_existing_id(self, conn, category_id):
        assert insert_category(conn, "work/coding") == category_id("work/coding")

    def test_storage_failure_is_translated(self, conn):
        store = CategoryStore(conn)
        conn.close()
        with pytest.raises(StorageError):
            store.list_categories()


class TestConnections:
    """Tests for opening connections on prepared and fresh files."""

    def test_opening_does_not_write(self, tmp_path):
        db_path = tmp_path / "activity.sqlite3"
        with database_connection(db_path) as conn:
            tables = conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
        assert tables == []

    def test_prepare_database_is_repeatable(self, tmp_path):
        db_path = tmp_path / "activity.sqlite3"
        prepare_database(db_path)
        prepare_database(db_path)
        with database_connection(db_path) as conn:
            assert len(fetch_rules(conn)) == len(BUILTIN_RULES)
            mode = conn.execute("PRAGMA journal_mode").fetchone()[0]
        assert mode == "wal"
