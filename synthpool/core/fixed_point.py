"""
Fixed-point arithmetic over non-negative integers scaled by 10**18.

Rounding rule (consensus-critical): every division truncates toward zero,
which for the non-negative domain used here is floor division. Parity tests
against recorded numeric expectations depend on this exact direction.

There is no floating point anywhere in the engine.
"""

from __future__ import annotations

import math

from .errors import DivideByZeroError, EmptyPoolError, UnderflowError

# One whole token.
SCALE = 10**18
ONE = SCALE

BPS_DENOM = 10_000


def require_uint(name: str, value: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int")
    if value < 0:
        raise ValueError(f"{name} must be non-negative: {value}")


def add(a: int, b: int) -> int:
    require_uint("a", a)
    require_uint("b", b)
    return a + b


def sub(a: int, b: int) -> int:
    """Unsigned subtraction. Raises UnderflowError if ``b > a``."""
    require_uint("a", a)
    require_uint("b", b)
    if b > a:
        raise UnderflowError(f"underflow: {a} - {b}")
    return a - b


def mul(a: int, b: int) -> int:
    """Fixed-point product: ``a * b // SCALE``."""
    require_uint("a", a)
    require_uint("b", b)
    return (a * b) // SCALE


def div(a: int, b: int) -> int:
    """Fixed-point quotient: ``a * SCALE // b``."""
    require_uint("a", a)
    require_uint("b", b)
    if b == 0:
        raise DivideByZeroError(f"division by zero: {a} / 0")
    return (a * SCALE) // b


def to_units(whole: int) -> int:
    """Scale a whole-token count to base units."""
    require_uint("whole", whole)
    return whole * SCALE


def isqrt(value: int) -> int:
    require_uint("value", value)
    return math.isqrt(value)


def geometric_mean(a: int, b: int) -> int:
    """
    ``floor(sqrt(a * b))``.

    For two 1e18-scaled quantities the result is itself 1e18-scaled.
    Uses the integer square root so large reserves never lose precision.
    """
    require_uint("a", a)
    require_uint("b", b)
    return math.isqrt(a * b)


def bps_of(amount: int, bps: int) -> int:
    """``floor(amount * bps / 10_000)``."""
    require_uint("amount", amount)
    require_uint("bps", bps)
    if bps > BPS_DENOM:
        raise ValueError(f"bps must be in [0, {BPS_DENOM}]: {bps}")
    return (amount * bps) // BPS_DENOM


def value_in_base(asset_amount: int, base_reserve: int, asset_reserve: int) -> int:
    """Price ``asset_amount`` in base units at the pool's spot ratio."""
    require_uint("asset_amount", asset_amount)
    require_uint("base_reserve", base_reserve)
    require_uint("asset_reserve", asset_reserve)
    if asset_reserve == 0:
        raise EmptyPoolError("cannot value against an empty asset reserve")
    return (asset_amount * base_reserve) // asset_reserve
