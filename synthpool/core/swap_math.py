"""
Single-leg swap pricing for the slip-fee constant-product curve.

Algorithm Design:
- Type: Fixed-Point Integer Arithmetic / Deterministic Rounding
- Time Complexity: O(1) per swap leg
- Space Complexity: O(1) auxiliary

The fee is embedded in the curve rather than skimmed from the input:

    output = x * X * Y / (x + X)^2
    fee    = x * x * Y / (x + X)^2

where x is the input, X the input-side reserve and Y the output-side reserve.
Numerators are multiplied out in full before the single floor division so
rounding loss is bounded by one base unit. ``output + fee`` equals the naive
``x * Y / (x + X)`` quote up to rounding, so the fee is the slip the trader
pays for moving the price.
"""

from __future__ import annotations

from dataclasses import dataclass

from .errors import EmptyPoolError
from .fixed_point import require_uint


@dataclass(frozen=True)
class SwapLeg:
    amount_in: int
    amount_out: int
    fee: int
    reserve_in: int
    reserve_out: int
    new_reserve_in: int
    new_reserve_out: int


def _check_reserves(reserve_in: int, reserve_out: int) -> None:
    require_uint("reserve_in", reserve_in)
    require_uint("reserve_out", reserve_out)
    if reserve_in == 0 or reserve_out == 0:
        raise EmptyPoolError(f"cannot swap against an empty reserve: ({reserve_in}, {reserve_out})")


def swap_output(amount_in: int, reserve_in: int, reserve_out: int) -> int:
    """
    Output of one swap leg.

    Args:
        amount_in: Input amount (x)
        reserve_in: Reserve of the input asset (X)
        reserve_out: Reserve of the output asset (Y)

    Returns:
        floor(x * X * Y / (x + X)^2); 0 when ``amount_in == 0``

    Raises:
        EmptyPoolError: If either reserve is zero
    """
    require_uint("amount_in", amount_in)
    _check_reserves(reserve_in, reserve_out)
    if amount_in == 0:
        return 0
    numerator = amount_in * reserve_in * reserve_out
    denominator = (amount_in + reserve_in) ** 2
    return numerator // denominator


def swap_fee(amount_in: int, reserve_in: int, reserve_out: int) -> int:
    """
    Fee component of one swap leg, denominated in the output asset.

    Reporting only: reserves are never adjusted by this amount.
    """
    require_uint("amount_in", amount_in)
    _check_reserves(reserve_in, reserve_out)
    if amount_in == 0:
        return 0
    numerator = amount_in * amount_in * reserve_out
    denominator = (amount_in + reserve_in) ** 2
    return numerator // denominator


def swap_leg(amount_in: int, reserve_in: int, reserve_out: int) -> SwapLeg:
    """Quote a swap leg together with its post-trade reserves."""
    amount_out = swap_output(amount_in, reserve_in, reserve_out)
    fee = swap_fee(amount_in, reserve_in, reserve_out)
    return SwapLeg(
        amount_in=amount_in,
        amount_out=amount_out,
        fee=fee,
        reserve_in=reserve_in,
        reserve_out=reserve_out,
        new_reserve_in=reserve_in + amount_in,
        new_reserve_out=reserve_out - amount_out,
    )
