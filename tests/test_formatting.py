"""Tests for duration and number formatting."""

import pytest

from activity_analytics.formatting import (
    format_duration,
    percentage,
    productivity_score,
    round_half_up,
)


@pytest.mark.parametrize(
    ("seconds", "expected"),
    [
        (0, "0m"),
        (29, "0m"),
        (30, "1m"),
        (1800, "30m"),
        (3599, "1h 0m"),
        (3600, "1h 0m"),
        (5400, "1h 30m"),
        (7199, "2h 0m"),
        (7260, "2h 1m"),
    ],
)
def test_format_duration(seconds, expected):
    assert format_duration(seconds) == expected


def test_minutes_never_reach_sixty():
    for seconds in range(0, 4 * 3600, 7):
        minutes = format_duration(seconds).split()[-1]
        assert 0 <= int(minutes.rstrip("m")) <= 59


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(66.666, 1) == 66.7
    assert round_half_up(0.25, 1) == 0.3


def test_percentage_of_zero_total():
    assert percentage(10, 0) == 0.0
    assert percentage(1, 3) == 33.3


@pytest.mark.parametrize(
    ("weighted_sum", "total", "expected"),
    [
        (0, 0, 50),
        (5400, 5400, 75),
        (2 * 100, 100, 100),
        (-2 * 100, 100, 0),
        (-1 * 100, 100, 25),
    ],
)
def test_productivity_score(weighted_sum, total, expected):
    assert productivity_score(weighted_sum, total) == expected
