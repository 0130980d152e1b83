"""
Rate-deviation circuit breaker kernel.

This module is intentionally small and pure:
- The functional core computes the deviation and trip decision.
- The pool state machine owns ``last_rate`` and the frozen flag.

Every check resets the baseline, so only a single large jump between two
consecutive checks trips the breaker; slow drift across many checks does
not accumulate.
"""

from __future__ import annotations

from dataclasses import dataclass

from .fixed_point import BPS_DENOM, div, require_uint

DEFAULT_FREEZE_THRESHOLD_BPS = 3000


@dataclass(frozen=True)
class SafetyReading:
    current_rate: int
    last_rate: int
    deviation_bps: int
    tripped: bool


def pool_rate(base_reserve: int, asset_reserve: int) -> int:
    """Base per asset, scaled by 1e18."""
    return div(base_reserve, asset_reserve)


def deviation_bps(current_rate: int, last_rate: int) -> int:
    """``|current - last| * 10_000 / max(current, last)``, floor-rounded."""
    require_uint("current_rate", current_rate)
    require_uint("last_rate", last_rate)
    hi = max(current_rate, last_rate)
    if hi == 0:
        return 0
    return (abs(current_rate - last_rate) * BPS_DENOM) // hi


def check(
    current_rate: int,
    last_rate: int,
    threshold_bps: int = DEFAULT_FREEZE_THRESHOLD_BPS,
) -> SafetyReading:
    """
    Compare the current rate with the baseline from the previous check.

    A zero baseline means no rate has been recorded yet; the reading only
    establishes it.
    """
    require_uint("threshold_bps", threshold_bps)
    if last_rate == 0:
        return SafetyReading(current_rate=current_rate, last_rate=0, deviation_bps=0, tripped=False)
    bps = deviation_bps(current_rate, last_rate)
    return SafetyReading(
        current_rate=current_rate,
        last_rate=last_rate,
        deviation_bps=bps,
        tripped=bps > threshold_bps,
    )
