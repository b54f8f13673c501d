"""Tests for rule listing, classification and the rule lifecycle."""

import pytest

from activity_analytics.db import fetch_rule_for_pattern, fetch_rules
from activity_analytics.errors import InvalidOperation, NotFound, ValidationError
from activity_analytics.models import RuleField
from activity_analytics.recategorize import RecategorizationExecutor
from activity_analytics.rules import RuleEngine, classify


@pytest.fixture
def engine(conn):
    return RuleEngine(conn, RecategorizationExecutor())


def user_rules(conn, field, pattern):
    return [
        row["id"]
        for row in conn.execute(
            "SELECT id FROM category_rules WHERE field = ? AND pattern = ? AND is_builtin = 0",
            (field, pattern),
        )
    ]


class TestListRules:
    """Tests for rule ordering and enrichment."""

    def test_ordered_by_priority_then_id(self, engine, category_id):
        engine.upsert_rule("app", "Figma", category_id("work/documentation"))
        rules = engine.list_rules()

        keys = [(-rule.priority, rule.id) for rule in rules]
        assert keys == sorted(keys)
        assert rules[0].pattern == "Figma"
        assert rules[0].priority == 100
        assert not rules[0].is_builtin

    def test_rules_carry_category_name(self, engine):
        rules = {(rule.field, rule.pattern): rule for rule in engine.list_rules()}
        assert rules[(RuleField.APP, "Code")].category_name == "work/coding"
        assert rules[(RuleField.URL_DOMAIN, "github.com")].category_name == "reference/docs"

    def test_to_dict_shape(self, engine):
        payload = engine.list_rules()[0].to_dict()
        assert set(payload) == {
            "id",
            "category_id",
            "category_name",
            "field",
            "pattern",
            "is_builtin",
            "priority",
        }
        assert payload["is_builtin"] is True


class TestRuleField:
    """Tests for the closed set of matchable attributes."""

    @pytest.mark.parametrize("field", list(RuleField))
    def test_every_field_has_matcher_and_predicate(self, field):
        assert field.matches("x", "x") is True
        assert field.matches(None, "x") is False
        assert field.sql_predicate().count("?") == 1

    def test_matching_semantics(self):
        assert RuleField.APP.matches("Code", "Code")
        assert not RuleField.APP.matches("Code - Insiders", "Code")
        assert RuleField.TITLE.matches("Review Pull Request", "Pull Request")


class TestClassify:
    """Tests for first-match classification of event attributes."""

    def test_builtin_app_rule(self, conn, category_id):
        attrs = {"app": "Code", "title": "main.py", "url_domain": None}
        assert classify(attrs, fetch_rules(conn)) == category_id("work/coding")

    def test_builtin_domain_rule(self, conn, category_id):
        attrs = {"app": "Safari", "title": "YouTube", "url_domain": "www.youtube.com"}
        assert classify(attrs, fetch_rules(conn)) == category_id("entertainment/video")

    def test_unknown_app_returns_none(self, conn):
        attrs = {"app": "SomeRandomApp", "title": "Unknown Window", "url_domain": None}
        assert classify(attrs, fetch_rules(conn)) is None

    def test_user_rule_overrides_builtin(self, conn, engine, category_id):
        engine.upsert_rule("url_domain", "github.com", category_id("work/review"))
        attrs = {"app": "Google Chrome", "title": "PR Review", "url_domain": "github.com"}
        assert classify(attrs, fetch_rules(conn)) == category_id("work/review")

    def test_title_rule_matches_substring(self, conn, engine, category_id):
        engine.upsert_rule("title", "Pull Request", category_id("work/review"))
        rules = fetch_rules(conn)
        matching = {"app": "Firefox", "title": "Review Pull Request #42", "url_domain": None}
        other_case = {"app": "Firefox", "title": "review pull request #42", "url_domain": None}
        assert classify(matching, rules) == category_id("work/review")
        assert classify(other_case, rules) is None


class TestUpsertRule:
    """Tests for creating and retargeting user rules."""

    def test_creates_rule_and_recategorizes(
        self, conn, engine, add_events, category_id, event_categories
    ):
        add_events(
            {"app": "Figma", "duration": 600},
            {"app": "Figma", "duration": 300, "is_afk": True},
            {"app": "Slack", "duration": 120},
        )

        updated = engine.upsert_rule("app", "Figma", category_id("work/documentation"))

        assert updated == 1
        assert event_categories("app = 'Figma'") == [category_id("work/documentation"), None]
        assert event_categories("app = 'Slack'") == [None]
        assert len(user_rules(conn, "app", "Figma")) == 1

    def test_upsert_is_idempotent(self, conn, engine, add_events, category_id):
        add_events({"app": "Figma"}, {"app": "Figma"})
        target = category_id("work/documentation")

        assert engine.upsert_rule("app", "Figma", target) == 2
        assert engine.upsert_rule("app", "Figma", target) == 0
        assert len(user_rules(conn, "app", "Figma")) == 1

    def test_second_upsert_updates_in_place(
        self, conn, engine, add_events, category_id, event_categories
    ):
        add_events({"app": "Figma"})
        engine.upsert_rule("app", "Figma", category_id("work/documentation"))
        [rule_id] = user_rules(conn, "app", "Figma")

        updated = engine.upsert_rule("app", "Figma", category_id("work/coding"))

        assert updated == 1
        assert user_rules(conn, "app", "Figma") == [rule_id]
        assert event_categories() == [category_id("work/coding")]

    def test_user_rule_coexists_with_builtin(self, conn, engine, category_id):
        engine.upsert_rule("app", "Code", category_id("work/review"))
        builtin = fetch_rule_for_pattern(conn, RuleField.APP, "Code", builtin=True)
        user = fetch_rule_for_pattern(conn, RuleField.APP, "Code", builtin=False)
        assert builtin.category_id == category_id("work/coding")
        assert user.category_id == category_id("work/review")

    def test_title_recategorizes_by_substring(
        self, engine, add_events, category_id, event_categories
    ):
        add_events(
            {"app": "Firefox", "title": "Review Pull Request #42"},
            {"app": "Firefox", "title": "Inbox"},
            {"app": "Firefox", "title": None},
        )

        assert engine.upsert_rule("title", "Pull Request", category_id("work/review")) == 1
        assert event_categories() == [category_id("work/review"), None, None]

    def test_title_pattern_is_literal(self, engine, add_events, category_id):
        add_events({"title": "progress 100%"}, {"title": "progress 1000"})
        assert engine.upsert_rule("title", "100%", category_id("work/review")) == 1

    @pytest.mark.parametrize("field", ["process", "", None])
    def test_rejects_unknown_field(self, engine, category_id, field):
        with pytest.raises(ValidationError, match="field must be one of"):
            engine.upsert_rule(field, "Figma", category_id("work/coding"))

    def test_rejects_missing_category(self, engine):
        with pytest.raises(ValidationError, match="category_id"):
            engine.upsert_rule("app", "Figma", None)

    @pytest.mark.parametrize("value", ["work/coding", 1.5, True, [1]])
    def test_rejects_non_integer_category(self, engine, value):
        with pytest.raises(ValidationError, match="integer"):
            engine.upsert_rule("app", "Figma", value)

    def test_rejects_unknown_category(self, conn, engine):
        with pytest.raises(ValidationError, match="Unknown category_id"):
            engine.upsert_rule("app", "Figma", 99999)
        assert user_rules(conn, "app", "Figma") == []

    def test_rejects_empty_pattern(self, engine, category_id):
        with pytest.raises(ValidationError, match="pattern"):
            engine.upsert_rule("app", "", category_id("work/coding"))


class TestUpdateRuleCategory:
    """Tests for retargeting a rule by id."""

    def test_updates_and_recategorizes(
        self, conn, engine, add_events, category_id, event_categories
    ):
        add_events({"url_domain": "news.ycombinator.com"})
        engine.upsert_rule("url_domain", "news.ycombinator.com", category_id("reference/docs"))
        [rule_id] = user_rules(conn, "url_domain", "news.ycombinator.com")

        updated = engine.update_rule_category(rule_id, category_id("entertainment/social"))

        assert updated == 1
        assert event_categories() == [category_id("entertainment/social")]

    def test_unknown_rule(self, engine, category_id):
        with pytest.raises(NotFound):
            engine.update_rule_category(99999, category_id("work/coding"))

    def test_builtin_rule_is_immutable(self, conn, engine, category_id):
        builtin = fetch_rule_for_pattern(conn, RuleField.APP, "Slack", builtin=True)
        with pytest.raises(InvalidOperation):
            engine.update_rule_category(builtin.id, category_id("work/coding"))
        unchanged = fetch_rule_for_pattern(conn, RuleField.APP, "Slack", builtin=True)
        assert unchanged.category_id == builtin.category_id

    def test_missing_category_id(self, engine):
        with pytest.raises(ValidationError):
            engine.update_rule_category(1, None)


class TestDeleteRule:
    """Tests for deleting user rules and falling events back."""

    def test_falls_back_to_shadowed_builtin(
        self, conn, engine, add_events, category_id, event_categories
    ):
        add_events({"app": "Chrome", "url_domain": "github.com"})
        engine.upsert_rule("url_domain", "github.com", category_id("work/review"))
        [rule_id] = user_rules(conn, "url_domain", "github.com")

        recategorized = engine.delete_rule(rule_id)

        assert recategorized == 1
        assert event_categories() == [category_id("reference/docs")]
        assert user_rules(conn, "url_domain", "github.com") == []
        assert fetch_rule_for_pattern(conn, RuleField.URL_DOMAIN, "github.com", builtin=True)

    def test_falls_back_to_uncategorized(
        self, conn, engine, add_events, category_id, event_categories
    ):
        add_events({"app": "Figma"}, {"app": "Figma", "is_afk": True})
        engine.upsert_rule("app", "Figma", category_id("work/documentation"))
        [rule_id] = user_rules(conn, "app", "Figma")

        assert engine.delete_rule(rule_id) == 1
        assert event_categories() == [category_id("uncategorized"), None]

    def test_unknown_rule(self, engine):
        with pytest.raises(NotFound):
            engine.delete_rule(99999)

    def test_builtin_rule_is_undeletable(self, conn, engine):
        builtin = fetch_rule_for_pattern(conn, RuleField.APP, "Code", builtin=True)
        with pytest.raises(InvalidOperation):
            engine.delete_rule(builtin.id)
        assert fetch_rule_for_pattern(conn, RuleField.APP, "Code", builtin=True)


class TestCategorizePending:
    """Tests for classifying events that were never categorized."""

    def test_classifies_uncategorized_active_events(
        self, engine, add_events, category_id, event_categories
    ):
        add_events(
            {"app": "Code"},
            {"app": "Safari", "url_domain": "www.youtube.com"},
            {"app": "SomeRandomApp"},
            {"app": "Code", "is_afk": True},
        )

        assert engine.categorize_pending() == 2
        assert event_categories() == [
            category_id("work/coding"),
            category_id("entertainment/video"),
            None,
            None,
        ]

    def test_leaves_categorized_events_alone(
        self, engine, add_events, category_id, event_categories
    ):
        add_events({"app": "Code", "category_id": category_id("work/review")})
        assert engine.categorize_pending() == 0
        assert event_categories() == [category_id("work/review")]
