"""Display colors for categories."""

from __future__ import annotations

from typing import Mapping, Optional, Sequence

DEFAULT_COLORS: dict[str, str] = {
    "work/coding": "#3b82f6",
    "work/communication": "#06b6d4",
    "work/documentation": "#8b5cf6",
    "work/devops": "#6366f1",
    "entertainment/video": "#ef4444",
    "entertainment/social": "#f97316",
    "entertainment/music": "#ec4899",
    "productivity/reading": "#10b981",
    "productivity/finance": "#14b8a6",
    "uncategorized": "#9ca3af",
}

FALLBACK_COLORS: tuple[str, ...] = (
    "#0ea5e9",
    "#a855f7",
    "#f59e0b",
    "#22c55e",
    "#e11d48",
    "#64748b",
    "#84cc16",
    "#d946ef",
    "#0891b2",
    "#dc2626",
)


class CategoryPalette:
    """Resolves a stable color for any category name.

    Known names use their configured color, names sharing a top-level segment
    with a configured one borrow its color, and anything else gets a color
    picked from ``fallback`` by a hash of the name. Resolved colors are cached
    per instance; build one per application and pass it where needed.
    """

    def __init__(
        self,
        colors: Optional[Mapping[str, str]] = None,
        fallback: Sequence[str] = FALLBACK_COLORS,
    ) -> None:
        if not fallback:
            raise ValueError("fallback palette must not be empty")
        self._configured = dict(DEFAULT_COLORS if colors is None else colors)
        self._fallback = tuple(fallback)
        self._cache: dict[str, str] = {}

    def color_for(self, category: str) -> str:
        cached = self._cache.get(category)
        if cached is not None:
            return cached
        color = self._resolve(category)
        self._cache[category] = color
        return color

    def _resolve(self, category: str) -> str:
        if category in self._configured:
            return self._configured[category]
        for name, color in self._configured.items():
            if name.startswith(category + "/") or category.startswith(name.split("/", 1)[0] + "/"):
                return color
        return self._fallback[_hash_code(category) % len(self._fallback)]


def _hash_code(value: str) -> int:
    """32-bit string hash compatible with the dashboard's JavaScript palette."""
    result = 0
    for char in value:
        result = (result * 31 + ord(char)) & 0xFFFFFFFF
    if result >= 2**31:
        result -= 2**32
    return abs(result)
