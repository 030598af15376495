"""Tolerance settings for bill matching.

Defaults are the product's fixed thresholds. They can be overridden through
environment variables for operations purposes; they are not a per-user
setting.

Environment
-----------
- ``CCR_HIGH_PCT`` / ``CCR_HIGH_FLOOR``: high-confidence band (fraction of the
  bill amount / absolute floor).
- ``CCR_MEDIUM_PCT`` / ``CCR_MEDIUM_FLOOR``: medium-confidence band.
- ``CCR_WINDOW_DAYS``: days added on each side of the cycle month when
  searching for bills.
- ``CCR_BILL_LOCALE``: vocabulary used by the bill-description heuristic.

Malformed values are ignored and the default stands.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from decimal import Decimal, InvalidOperation

from .logging_setup import get_logger

logger = get_logger("card_reconciliation.config")


@dataclass(frozen=True, slots=True)
class ToleranceSettings:
    high_pct: Decimal = Decimal("0.005")
    high_floor: Decimal = Decimal("5.00")
    medium_pct: Decimal = Decimal("0.02")
    medium_floor: Decimal = Decimal("20.00")
    window_days: int = 15
    bill_locale: str = "pt_BR"

    def __post_init__(self) -> None:
        for name in ("high_pct", "high_floor", "medium_pct", "medium_floor"):
            if getattr(self, name) < 0:
                raise ValueError(f"ToleranceSettings.{name} must be non-negative")
        if self.window_days < 0:
            raise ValueError("ToleranceSettings.window_days must be non-negative")


DEFAULT_SETTINGS = ToleranceSettings()


def _env_decimal(name: str) -> Decimal | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    try:
        value = Decimal(raw.strip())
    except InvalidOperation:
        logger.warning("Ignoring malformed %s=%r", name, raw)
        return None
    if value < 0 or not value.is_finite():
        logger.warning("Ignoring out-of-range %s=%r", name, raw)
        return None
    return value


def _env_int(name: str) -> int | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    try:
        value = int(raw.strip())
    except ValueError:
        logger.warning("Ignoring malformed %s=%r", name, raw)
        return None
    return value if value >= 0 else None


def load_settings(base: ToleranceSettings = DEFAULT_SETTINGS) -> ToleranceSettings:
    """Return ``base`` with any valid ``CCR_*`` environment overrides applied."""

    overrides: dict[str, object] = {}
    for field, env_name in (
        ("high_pct", "CCR_HIGH_PCT"),
        ("high_floor", "CCR_HIGH_FLOOR"),
        ("medium_pct", "CCR_MEDIUM_PCT"),
        ("medium_floor", "CCR_MEDIUM_FLOOR"),
    ):
        value = _env_decimal(env_name)
        if value is not None:
            overrides[field] = value

    window = _env_int("CCR_WINDOW_DAYS")
    if window is not None:
        overrides["window_days"] = window

    locale = (os.getenv("CCR_BILL_LOCALE") or "").strip()
    if locale:
        overrides["bill_locale"] = locale

    return replace(base, **overrides) if overrides else base


__all__ = ["ToleranceSettings", "DEFAULT_SETTINGS", "load_settings"]
