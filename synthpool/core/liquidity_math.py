"""
Liquidity-unit issuance and withdrawal math.

All functions are pure and integer-only, with floor rounding on every
division, so the pool (never the depositor) keeps rounding dust.
"""

from __future__ import annotations

from .errors import EmptyPoolError, InsufficientLiquidityError, InsufficientUnitsError
from .fixed_point import ONE, geometric_mean, require_uint

# Units withheld from the first depositor and locked forever, so a pool can
# never return to zero supply with non-zero reserves.
MIN_UNITS_LOCK = 100 * ONE

GENESIS_GEOMETRIC = "geometric"
GENESIS_BASE = "base"
GENESIS_MODES = (GENESIS_GEOMETRIC, GENESIS_BASE)


def genesis_units(
    base_in: int,
    asset_in: int,
    lock: int = MIN_UNITS_LOCK,
    mode: str = GENESIS_GEOMETRIC,
) -> int:
    """
    Units issued to the first depositor of an empty pool.

    ``geometric``: floor(sqrt(base_in * asset_in)) - lock
    ``base``:      base_in - lock (units denominated in the base asset)

    The caller mints ``lock`` additional units to the lock holder, so the
    opening supply is the pre-lock amount.

    Raises:
        InsufficientLiquidityError: If the pre-lock amount does not exceed ``lock``
    """
    require_uint("base_in", base_in)
    require_uint("asset_in", asset_in)
    require_uint("lock", lock)
    if base_in == 0 or asset_in == 0:
        raise InsufficientLiquidityError(f"first deposit must seed both sides: ({base_in}, {asset_in})")
    if mode == GENESIS_GEOMETRIC:
        gross = geometric_mean(base_in, asset_in)
    elif mode == GENESIS_BASE:
        gross = base_in
    else:
        raise ValueError(f"unsupported genesis mode: {mode!r}")
    if gross <= lock:
        raise InsufficientLiquidityError(f"insufficient initial liquidity: {gross} <= lock {lock}")
    return gross - lock


def liquidity_units(
    base_in: int,
    base_reserve: int,
    asset_in: int,
    asset_reserve: int,
    unit_supply: int,
) -> int:
    """
    Units issued for a (balanced) two-sided deposit into a live pool.

        units = S * (b*T + t*B) / (2 * B * T)

    Balancing the deposit to the pool ratio is the caller's job; an
    unbalanced deposit is credited at the average of its two sides.
    """
    for name, v in (
        ("base_in", base_in),
        ("base_reserve", base_reserve),
        ("asset_in", asset_in),
        ("asset_reserve", asset_reserve),
        ("unit_supply", unit_supply),
    ):
        require_uint(name, v)
    if base_reserve == 0 or asset_reserve == 0:
        raise EmptyPoolError("cannot price units against an empty pool")
    numerator = unit_supply * (base_in * asset_reserve + asset_in * base_reserve)
    denominator = 2 * base_reserve * asset_reserve
    return numerator // denominator


def asymmetric_units(amount_in: int, side_reserve: int, unit_supply: int) -> int:
    """
    Units issued for a single-sided deposit.

        units = S * a / (2 * A)

    Half the input is treated as swapped to the other side and both halves
    deposited at the resulting ratio. This is a small-deposit approximation
    of the curve-exact single-sided formula; it is the accepted pricing and
    recorded expectations are built against it.
    """
    require_uint("amount_in", amount_in)
    require_uint("side_reserve", side_reserve)
    require_uint("unit_supply", unit_supply)
    if side_reserve == 0:
        raise EmptyPoolError("cannot price units against an empty reserve")
    return (unit_supply * amount_in) // (2 * side_reserve)


def withdrawal_amounts(
    units_in: int,
    base_reserve: int,
    asset_reserve: int,
    unit_supply: int,
) -> tuple[int, int]:
    """
    Proportional claim of ``units_in`` on both reserves.

    Returns:
        (base_out, asset_out) = (B * u // S, T * u // S)
    """
    require_uint("units_in", units_in)
    require_uint("base_reserve", base_reserve)
    require_uint("asset_reserve", asset_reserve)
    require_uint("unit_supply", unit_supply)
    if units_in > unit_supply:
        raise InsufficientUnitsError(f"cannot burn more units than supply: {units_in} > {unit_supply}")
    if unit_supply == 0:
        return 0, 0
    base_out = (base_reserve * units_in) // unit_supply
    asset_out = (asset_reserve * units_in) // unit_supply
    return base_out, asset_out


def balanced_base_for(asset_in: int, base_reserve: int, asset_reserve: int) -> int:
    """Base amount matching ``asset_in`` at the current pool ratio (floor)."""
    require_uint("asset_in", asset_in)
    require_uint("base_reserve", base_reserve)
    require_uint("asset_reserve", asset_reserve)
    if asset_reserve == 0:
        raise EmptyPoolError("cannot balance against an empty asset reserve")
    return (asset_in * base_reserve) // asset_reserve
