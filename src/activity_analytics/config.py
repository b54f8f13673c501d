"""Configuration models and helpers for the analytics engine."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class AnalyticsSettings:
    """Runtime configuration shared by the rule engine and query layer."""

    apps_limit: int = 20
    timeline_limit: int = 200
    sessions_limit: int = 200
    user_rule_priority: int = 100
    builtin_rule_priority: int = 50
    busy_timeout: float = 5.0

    @classmethod
    def from_options(
        cls,
        apps_limit: int | None = None,
        timeline_limit: int | None = None,
        busy_timeout: float | None = None,
    ) -> "AnalyticsSettings":
        defaults = cls()
        return cls(
            apps_limit=apps_limit if apps_limit is not None else defaults.apps_limit,
            timeline_limit=(
                timeline_limit if timeline_limit is not None else defaults.timeline_limit
            ),
            busy_timeout=busy_timeout if busy_timeout is not None else defaults.busy_timeout,
        )
