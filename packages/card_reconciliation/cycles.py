"""Billing cycle helpers.

A billing cycle is a ``YYYY-MM`` key. The bill paying a statement usually
lands near the statement month, so the search window for bills spans the
calendar month widened by ``window_days`` on both sides (inclusive).
"""

from __future__ import annotations

import calendar
import datetime as dt
import re

from .errors import InvalidCycleError

_CYCLE_RE = re.compile(r"^(\d{4})-(\d{2})$")

DEFAULT_WINDOW_DAYS = 15


def cycle_of(day: dt.date) -> str:
    return f"{day.year:04d}-{day.month:02d}"


def parse_cycle(cycle: str) -> tuple[int, int]:
    """Return ``(year, month)`` for a ``YYYY-MM`` string or raise ``InvalidCycleError``."""

    m = _CYCLE_RE.match(cycle.strip()) if isinstance(cycle, str) else None
    if not m:
        raise InvalidCycleError(f"invalid billing cycle {cycle!r}; expected YYYY-MM")
    year, month = int(m.group(1)), int(m.group(2))
    if not 1 <= month <= 12 or year < 1:
        raise InvalidCycleError(f"invalid billing cycle {cycle!r}; month out of range")
    return year, month


def cycle_bounds(cycle: str) -> tuple[dt.date, dt.date]:
    """First and last calendar day of the cycle month."""

    year, month = parse_cycle(cycle)
    last = calendar.monthrange(year, month)[1]
    return dt.date(year, month, 1), dt.date(year, month, last)


def candidate_window(cycle: str, days: int = DEFAULT_WINDOW_DAYS) -> tuple[dt.date, dt.date]:
    first, last = cycle_bounds(cycle)
    pad = dt.timedelta(days=days)
    return first - pad, last + pad


def window_contains(cycle: str, day: dt.date, days: int = DEFAULT_WINDOW_DAYS) -> bool:
    start, end = candidate_window(cycle, days)
    return start <= day <= end


__all__ = [
    "cycle_of",
    "parse_cycle",
    "cycle_bounds",
    "candidate_window",
    "window_contains",
    "DEFAULT_WINDOW_DAYS",
]
