"""Domain models for recorded activity and its classification."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Optional


class RuleField(str, Enum):
    """Event attribute a category rule matches against."""

    APP = "app"
    URL_DOMAIN = "url_domain"
    TITLE = "title"

    @classmethod
    def parse(cls, value: object) -> "RuleField":
        """Return the member for ``value`` or raise ``ValueError``."""
        if isinstance(value, cls):
            return value
        return cls(value)

    def matches(self, value: Optional[str], pattern: str) -> bool:
        if value is None:
            return False
        return _MATCHERS[self](value, pattern)

    def sql_predicate(self) -> str:
        """SQL condition on the events table taking the pattern as one parameter."""
        return _SQL_PREDICATES[self]


def _equals(value: str, pattern: str) -> bool:
    return value == pattern


def _contains(value: str, pattern: str) -> bool:
    return pattern in value


_MATCHERS: dict[RuleField, Callable[[str, str], bool]] = {
    RuleField.APP: _equals,
    RuleField.URL_DOMAIN: _equals,
    RuleField.TITLE: _contains,
}

# instr() is case-sensitive and treats the pattern literally, unlike LIKE.
_SQL_PREDICATES: dict[RuleField, str] = {
    RuleField.APP: "app = ?",
    RuleField.URL_DOMAIN: "url_domain = ?",
    RuleField.TITLE: "instr(title, ?) > 0",
}

@dataclass(slots=True)
class ActivityEvent:
    """A completed block of time spent in a single activity."""

    timestamp: datetime
    duration: float
    app: Optional[str] = None
    title: Optional[str] = None
    url: Optional[str] = None
    url_domain: Optional[str] = None
    is_afk: bool = False
    category_id: Optional[int] = None
    id: Optional[int] = None


@dataclass(slots=True)
class Category:
    id: int
    name: str
    parent_id: Optional[int]
    productivity_score: int


@dataclass(slots=True)
class CategoryRule:
    id: int
    category_id: int
    field: RuleField
    pattern: str
    is_builtin: bool
    priority: int
    category_name: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "category_id": self.category_id,
            "category_name": self.category_name,
            "field": self.field.value,
            "pattern": self.pattern,
            "is_builtin": self.is_builtin,
            "priority": self.priority,
        }
