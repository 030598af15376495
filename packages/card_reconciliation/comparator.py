"""Amount comparison between a card statement total and a bill payment.

Tiers (``b`` is the bill amount, ``d`` the absolute difference):

- ``EXACT``    d == 0
- ``HIGH``     d <= max(0.5% of b, 5.00)
- ``MEDIUM``   d <= max(2% of b, 20.00)
- ``NO_MATCH`` otherwise, or when b is zero

Both inputs are reduced to absolute values first; the function never raises.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from .config import DEFAULT_SETTINGS, ToleranceSettings
from .models import Comparison, ConfidenceTier

_CENT = Decimal("0.01")
_ZERO = Decimal("0.00")


def to_money(value: Decimal | int | str | float) -> Decimal:
    """Quantize ``value`` to cents (half-up), going through ``str`` for floats."""

    d = value if isinstance(value, Decimal) else Decimal(str(value))
    return d.quantize(_CENT, rounding=ROUND_HALF_UP)


def compare(
    cc_total: Decimal,
    bill_amount: Decimal,
    settings: ToleranceSettings = DEFAULT_SETTINGS,
) -> Comparison:
    total = abs(to_money(cc_total))
    bill = abs(to_money(bill_amount))
    delta = abs(total - bill)

    if bill == 0:
        return Comparison(delta_abs=delta, delta_pct=Decimal(0), tier=ConfidenceTier.NO_MATCH)

    pct = delta / bill
    if delta == 0:
        tier = ConfidenceTier.EXACT
    elif delta <= max(bill * settings.high_pct, settings.high_floor):
        tier = ConfidenceTier.HIGH
    elif delta <= max(bill * settings.medium_pct, settings.medium_floor):
        tier = ConfidenceTier.MEDIUM
    else:
        tier = ConfidenceTier.NO_MATCH
    return Comparison(delta_abs=delta, delta_pct=pct, tier=tier)


__all__ = ["compare", "to_money"]
