from __future__ import annotations

import datetime as dt

import pytest
from card_reconciliation.cycles import (
    candidate_window,
    cycle_bounds,
    cycle_of,
    parse_cycle,
    window_contains,
)
from card_reconciliation.errors import InvalidCycleError


def test_cycle_of_pads_month() -> None:
    assert cycle_of(dt.date(2025, 3, 9)) == "2025-03"


def test_window_spans_month_plus_fifteen_days() -> None:
    assert candidate_window("2025-12") == (dt.date(2025, 11, 16), dt.date(2026, 1, 15))


def test_window_handles_leap_february() -> None:
    assert cycle_bounds("2024-02") == (dt.date(2024, 2, 1), dt.date(2024, 2, 29))
    assert candidate_window("2024-02") == (dt.date(2024, 1, 17), dt.date(2024, 3, 15))


def test_window_boundaries_are_inclusive() -> None:
    assert window_contains("2025-12", dt.date(2025, 11, 16))
    assert window_contains("2025-12", dt.date(2026, 1, 15))
    assert not window_contains("2025-12", dt.date(2025, 11, 15))
    assert not window_contains("2025-12", dt.date(2026, 1, 16))


def test_window_days_is_configurable() -> None:
    assert candidate_window("2025-06", days=0) == (dt.date(2025, 6, 1), dt.date(2025, 6, 30))


@pytest.mark.parametrize("bad", ["2025-13", "2025-00", "2025/12", "25-12", "", "2025-1"])
def test_parse_cycle_rejects_malformed(bad: str) -> None:
    with pytest.raises(InvalidCycleError):
        parse_cycle(bad)


def test_invalid_cycle_is_a_value_error() -> None:
    with pytest.raises(ValueError):
        candidate_window("december")
