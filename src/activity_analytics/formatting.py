"""Number and duration formatting shared by every report."""

from __future__ import annotations

import math


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round like a dashboard would, with .5 always going up."""
    factor = 10**ndigits
    return math.floor(value * factor + 0.5) / factor


def round_seconds(value: float) -> int:
    return int(round_half_up(value))


def format_duration(seconds: float) -> str:
    """Render ``seconds`` as ``"{h}h {m}m"``, or ``"{m}m"`` under an hour.

    Minutes are rounded before hours are split off, so 3599 seconds renders
    as ``1h 0m`` and never as ``60m``.
    """
    total_minutes = int(round_half_up(max(seconds, 0) / 60))
    hours, minutes = divmod(total_minutes, 60)
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def percentage(part: float, total: float) -> float:
    if total <= 0:
        return 0.0
    return round_half_up(part / total * 100, 1)


def productivity_score(weighted_sum: float, total_seconds: float) -> int:
    """Map a duration-weighted average weight in [-2, 2] onto [0, 100]."""
    average = weighted_sum / total_seconds if total_seconds > 0 else 0.0
    score = int(round_half_up((average + 2) / 4 * 100))
    return max(0, min(100, score))
