"""
Pool state machine: one base/asset reserve pair and its liquidity units.

States: ACTIVE -> FROZEN (one-way). The safety check runs after every
committed state change (when ``PoolParams.check_on_commit`` is set) and on
demand; once it trips, every state-changing operation raises
``PoolFrozenError`` until an external governance action clears the pool.

Pricing is delegated to the pure modules (``swap_math``, ``liquidity_math``,
``safety``); this module only validates, commits, and records unit balances
in the shared ``LPTable``.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterator, Optional

from ..state.balances import Account, Amount, TokenId
from ..state.lp import LOCKED_UNITS_HOLDER, LPTable
from . import safety
from .errors import (
    EmptyPoolError,
    InsufficientLiquidityError,
    InsufficientOutputError,
    InsufficientUnitsError,
    PoolFrozenError,
)
from .fixed_point import require_uint, sub
from .liquidity_math import (
    GENESIS_GEOMETRIC,
    GENESIS_MODES,
    MIN_UNITS_LOCK,
    asymmetric_units,
    genesis_units,
    liquidity_units,
    withdrawal_amounts,
)
from .safety import DEFAULT_FREEZE_THRESHOLD_BPS, SafetyReading, pool_rate
from .swap_math import SwapLeg, swap_leg

logger = logging.getLogger(__name__)


class PoolStatus(Enum):
    """Pool status enumeration."""
    ACTIVE = "ACTIVE"
    FROZEN = "FROZEN"


class Side(Enum):
    BASE = "BASE"
    ASSET = "ASSET"


class Direction(Enum):
    BASE_TO_ASSET = "BASE_TO_ASSET"
    ASSET_TO_BASE = "ASSET_TO_BASE"


@dataclass(frozen=True)
class PoolParams:
    freeze_threshold_bps: int = DEFAULT_FREEZE_THRESHOLD_BPS
    min_units_lock: int = MIN_UNITS_LOCK
    genesis_mode: str = GENESIS_GEOMETRIC
    check_on_commit: bool = True

    def __post_init__(self) -> None:
        if not (0 <= self.freeze_threshold_bps <= 10_000):
            raise ValueError(f"freeze_threshold_bps must be in [0, 10000]: {self.freeze_threshold_bps}")
        if self.min_units_lock < 0:
            raise ValueError(f"min_units_lock must be non-negative: {self.min_units_lock}")
        if self.genesis_mode not in GENESIS_MODES:
            raise ValueError(f"unsupported genesis mode: {self.genesis_mode!r}")


@dataclass
class PoolState:
    """
    State of one base/asset pool.

    Attributes:
        pool_id: Pool identifier (hex string)
        asset: Paired asset identifier
        base_reserve: Base-asset units held
        asset_reserve: Paired-asset units held
        unit_supply: Outstanding liquidity units (including the genesis lock)
        last_rate: Base/asset rate (1e18-scaled) recorded by the last safety check
        status: ACTIVE or FROZEN
        created_at: Block height or timestamp when the pool was created
    """
    pool_id: str
    asset: TokenId
    base_reserve: Amount = 0
    asset_reserve: Amount = 0
    unit_supply: Amount = 0
    last_rate: int = 0
    status: PoolStatus = PoolStatus.ACTIVE
    created_at: int = 0

    def __post_init__(self) -> None:
        """Validate pool state invariants."""
        for name in ("base_reserve", "asset_reserve", "unit_supply", "last_rate"):
            require_uint(name, getattr(self, name))
        if self.unit_supply > 0 and (self.base_reserve == 0 or self.asset_reserve == 0):
            raise ValueError(
                f"live pool must hold both reserves: ({self.base_reserve}, {self.asset_reserve})"
            )
        if self.unit_supply == 0 and (self.base_reserve != 0 or self.asset_reserve != 0):
            raise ValueError(
                f"empty pool must hold no reserves: ({self.base_reserve}, {self.asset_reserve})"
            )

    @property
    def frozen(self) -> bool:
        return self.status is PoolStatus.FROZEN

    @property
    def is_empty(self) -> bool:
        return self.unit_supply == 0

    def __repr__(self) -> str:
        return (
            f"PoolState(pool_id={self.pool_id[:16]}..., asset={self.asset[:10]}..., "
            f"reserves=({self.base_reserve}, {self.asset_reserve}), "
            f"unit_supply={self.unit_supply}, status={self.status.value})"
        )


@dataclass(frozen=True)
class SwapReceipt:
    pool_id: str
    direction: Direction
    amount_in: Amount
    amount_out: Amount
    fee: Amount
    state: PoolState


@dataclass(frozen=True)
class LiquidityReceipt:
    pool_id: str
    holder: Account
    base_in: Amount
    asset_in: Amount
    units: Amount
    state: PoolState


@dataclass(frozen=True)
class WithdrawReceipt:
    pool_id: str
    holder: Account
    units: Amount
    base_out: Amount
    asset_out: Amount
    state: PoolState


class Pool:
    """
    Owns one ``PoolState`` and applies the pool operations to it.

    Unit balances live in the shared ``LPTable`` so a holder's claim (and a
    synthetic's collateral) is observable outside the pool. The sum of all
    holder balances for this pool always equals ``unit_supply``.
    """

    def __init__(
        self,
        pool_id: str,
        asset: TokenId,
        units: LPTable,
        params: PoolParams = PoolParams(),
        *,
        created_at: int = 0,
    ) -> None:
        self.state = PoolState(pool_id=pool_id, asset=asset, created_at=created_at)
        self.params = params
        self._units = units
        self._deferred = False

    @property
    def pool_id(self) -> str:
        return self.state.pool_id

    @property
    def asset(self) -> TokenId:
        return self.state.asset

    @property
    def frozen(self) -> bool:
        return self.state.frozen

    def units_of(self, holder: Account) -> Amount:
        return self._units.get(holder, self.pool_id)

    def snapshot(self) -> PoolState:
        return replace(self.state)

    # -- internals -----------------------------------------------------------

    def _require_active(self) -> None:
        if self.state.frozen:
            raise PoolFrozenError(self.pool_id)

    def _require_live(self) -> None:
        if self.state.is_empty:
            raise EmptyPoolError(f"pool {self.pool_id} has no liquidity")

    def _commit(self, **changes: object) -> None:
        self.state = replace(self.state, **changes)
        if self.params.check_on_commit and not self._deferred:
            self.safety_check()

    @contextmanager
    def deferred_safety_check(self) -> Iterator[None]:
        """Run one safety check after a multi-leg operation instead of one per leg."""
        outer = self._deferred
        self._deferred = True
        try:
            yield
        finally:
            self._deferred = outer
        if not outer and self.params.check_on_commit:
            self.safety_check()

    def _reserves(self, direction: Direction) -> tuple[Amount, Amount]:
        if direction is Direction.BASE_TO_ASSET:
            return self.state.base_reserve, self.state.asset_reserve
        return self.state.asset_reserve, self.state.base_reserve

    # -- safety --------------------------------------------------------------

    def safety_check(self) -> SafetyReading:
        """
        Compare the current rate with the last recorded one and trip the
        breaker on a jump above the threshold. Always records the current
        rate as the new baseline. Runs even when the pool is frozen.
        """
        s = self.state
        if s.asset_reserve == 0:
            return SafetyReading(current_rate=0, last_rate=s.last_rate, deviation_bps=0, tripped=False)
        reading = safety.check(
            pool_rate(s.base_reserve, s.asset_reserve),
            s.last_rate,
            self.params.freeze_threshold_bps,
        )
        status = s.status
        if reading.tripped and status is PoolStatus.ACTIVE:
            status = PoolStatus.FROZEN
            logger.warning(
                "Pool frozen by rate deviation",
                extra={
                    "event": "pool.frozen",
                    "pool": self.pool_id[:10],
                    "deviation_bps": reading.deviation_bps,
                    "current_rate": reading.current_rate,
                    "last_rate": reading.last_rate,
                },
            )
        self.state = replace(s, last_rate=reading.current_rate, status=status)
        return reading

    # -- swaps ---------------------------------------------------------------

    def quote_swap(self, amount_in: Amount, direction: Direction) -> SwapLeg:
        """Price a swap against current reserves without committing it."""
        reserve_in, reserve_out = self._reserves(direction)
        return swap_leg(amount_in, reserve_in, reserve_out)

    def swap(self, amount_in: Amount, direction: Direction, *, min_out: Amount = 0) -> SwapReceipt:
        """
        Swap ``amount_in`` across the pool.

        Commits ``reserve_in += amount_in`` and ``reserve_out -= amount_out``.

        Raises:
            PoolFrozenError: If the breaker has tripped
            EmptyPoolError: If either reserve is zero
            InsufficientLiquidityError: If the output would drain the reserve
            InsufficientOutputError: If the output is below ``min_out``
        """
        self._require_active()
        require_uint("min_out", min_out)
        leg = self.quote_swap(amount_in, direction)
        if leg.amount_out >= leg.reserve_out:
            raise InsufficientLiquidityError(
                f"output {leg.amount_out} would drain reserve {leg.reserve_out}"
            )
        if leg.amount_out < min_out:
            raise InsufficientOutputError(f"amount_out ({leg.amount_out}) < min_out ({min_out})")

        if direction is Direction.BASE_TO_ASSET:
            self._commit(base_reserve=leg.new_reserve_in, asset_reserve=leg.new_reserve_out)
        else:
            self._commit(asset_reserve=leg.new_reserve_in, base_reserve=leg.new_reserve_out)

        logger.info(
            "Swap executed",
            extra={
                "event": "pool.swap",
                "pool": self.pool_id[:10],
                "direction": direction.value,
                "amount_in": amount_in,
                "amount_out": leg.amount_out,
                "fee": leg.fee,
            },
        )
        return SwapReceipt(
            pool_id=self.pool_id,
            direction=direction,
            amount_in=amount_in,
            amount_out=leg.amount_out,
            fee=leg.fee,
            state=self.snapshot(),
        )

    # -- liquidity -----------------------------------------------------------

    def add_liquidity(
        self,
        base_in: Amount,
        asset_in: Amount,
        holder: Account,
        *,
        min_units: Amount = 0,
    ) -> LiquidityReceipt:
        """
        Deposit both sides and mint units to ``holder``.

        The first deposit into an empty pool mints ``genesis_units`` to the
        holder plus ``min_units_lock`` to the lock holder and records the
        opening rate as the breaker baseline. Later deposits mint
        ``liquidity_units``; balancing them to the pool ratio is the caller's
        responsibility.
        """
        self._require_active()
        require_uint("base_in", base_in)
        require_uint("asset_in", asset_in)
        require_uint("min_units", min_units)
        s = self.state

        if s.is_empty:
            lock = self.params.min_units_lock
            units = genesis_units(base_in, asset_in, lock, self.params.genesis_mode)
            if units < min_units:
                raise InsufficientOutputError(f"units ({units}) < min_units ({min_units})")
            self._units.add(holder, self.pool_id, units)
            self._units.add(LOCKED_UNITS_HOLDER, self.pool_id, lock)
            self._commit(
                base_reserve=base_in,
                asset_reserve=asset_in,
                unit_supply=units + lock,
                last_rate=pool_rate(base_in, asset_in),
            )
            logger.info(
                "Pool seeded",
                extra={
                    "event": "pool.genesis",
                    "pool": self.pool_id[:10],
                    "base_in": base_in,
                    "asset_in": asset_in,
                    "units": units,
                    "locked_units": lock,
                },
            )
        else:
            units = liquidity_units(base_in, s.base_reserve, asset_in, s.asset_reserve, s.unit_supply)
            if units == 0 or units < min_units:
                raise InsufficientOutputError(f"units ({units}) < min_units ({max(min_units, 1)})")
            self._units.add(holder, self.pool_id, units)
            self._commit(
                base_reserve=s.base_reserve + base_in,
                asset_reserve=s.asset_reserve + asset_in,
                unit_supply=s.unit_supply + units,
            )
            logger.info(
                "Liquidity added",
                extra={
                    "event": "pool.add_liquidity",
                    "pool": self.pool_id[:10],
                    "base_in": base_in,
                    "asset_in": asset_in,
                    "units": units,
                },
            )

        return LiquidityReceipt(
            pool_id=self.pool_id,
            holder=holder,
            base_in=base_in,
            asset_in=asset_in,
            units=units,
            state=self.snapshot(),
        )

    def remove_liquidity(
        self,
        units_in: Amount,
        holder: Account,
        *,
        min_base: Amount = 0,
        min_asset: Amount = 0,
    ) -> WithdrawReceipt:
        """
        Burn ``units_in`` held by ``holder`` for a proportional share of
        both reserves.

        Raises:
            InsufficientUnitsError: If ``units_in`` exceeds the supply or the holder's balance
            InsufficientOutputError: If either output is below its minimum
        """
        self._require_active()
        require_uint("units_in", units_in)
        if units_in == 0:
            raise ValueError("units_in must be positive")
        s = self.state
        base_out, asset_out = withdrawal_amounts(units_in, s.base_reserve, s.asset_reserve, s.unit_supply)
        held = self.units_of(holder)
        if units_in > held:
            raise InsufficientUnitsError(f"holder has {held} units, cannot burn {units_in}")
        if base_out < min_base:
            raise InsufficientOutputError(f"base_out ({base_out}) < min_base ({min_base})")
        if asset_out < min_asset:
            raise InsufficientOutputError(f"asset_out ({asset_out}) < min_asset ({min_asset})")

        self._units.subtract(holder, self.pool_id, units_in)
        self._commit(
            base_reserve=sub(s.base_reserve, base_out),
            asset_reserve=sub(s.asset_reserve, asset_out),
            unit_supply=sub(s.unit_supply, units_in),
        )
        logger.info(
            "Liquidity removed",
            extra={
                "event": "pool.remove_liquidity",
                "pool": self.pool_id[:10],
                "units": units_in,
                "base_out": base_out,
                "asset_out": asset_out,
            },
        )
        return WithdrawReceipt(
            pool_id=self.pool_id,
            holder=holder,
            units=units_in,
            base_out=base_out,
            asset_out=asset_out,
            state=self.snapshot(),
        )

    def add_liquidity_asymmetric(
        self,
        amount_in: Amount,
        side: Side,
        holder: Account,
        *,
        min_units: Amount = 0,
        priced_against: Optional[Amount] = None,
    ) -> LiquidityReceipt:
        """
        Single-sided deposit of only base or only asset.

        Half of the input is treated as swapped to the other side and both
        halves deposited, so the full input lands on ``side`` and the other
        reserve is unchanged. Units follow ``asymmetric_units`` (the
        half-split approximation, valid for small relative deposits).

        ``priced_against`` overrides the reserve depth used to price the
        units; composite operations pass the depth observed before an
        earlier leg of the same atomic operation.
        """
        self._require_active()
        self._require_live()
        require_uint("amount_in", amount_in)
        require_uint("min_units", min_units)
        s = self.state
        side_reserve = s.base_reserve if side is Side.BASE else s.asset_reserve
        depth = side_reserve if priced_against is None else priced_against
        units = asymmetric_units(amount_in, depth, s.unit_supply)
        if units == 0 or units < min_units:
            raise InsufficientOutputError(f"units ({units}) < min_units ({max(min_units, 1)})")

        self._units.add(holder, self.pool_id, units)
        if side is Side.BASE:
            self._commit(base_reserve=s.base_reserve + amount_in, unit_supply=s.unit_supply + units)
            base_in, asset_in = amount_in, 0
        else:
            self._commit(asset_reserve=s.asset_reserve + amount_in, unit_supply=s.unit_supply + units)
            base_in, asset_in = 0, amount_in

        logger.info(
            "Asymmetric liquidity added",
            extra={
                "event": "pool.add_liquidity_asym",
                "pool": self.pool_id[:10],
                "side": side.value,
                "amount_in": amount_in,
                "units": units,
            },
        )
        return LiquidityReceipt(
            pool_id=self.pool_id,
            holder=holder,
            base_in=base_in,
            asset_in=asset_in,
            units=units,
            state=self.snapshot(),
        )

    def release_collateral(
        self,
        units: Amount,
        holder: Account,
        *,
        base_out: Amount = 0,
        asset_out: Amount = 0,
    ) -> WithdrawReceipt:
        """
        Burn collateral units held by a synthetic and pay out reserves.

        The payout amounts are priced by the synthetic ledger; this method
        only enforces that the holder owns the units and that no reserve is
        drained.
        """
        self._require_active()
        self._require_live()
        for name, v in (("units", units), ("base_out", base_out), ("asset_out", asset_out)):
            require_uint(name, v)
        s = self.state
        held = self.units_of(holder)
        if units > held:
            raise InsufficientUnitsError(f"holder has {held} units, cannot release {units}")
        if base_out >= s.base_reserve or asset_out >= s.asset_reserve:
            raise InsufficientLiquidityError(
                f"payout ({base_out}, {asset_out}) would drain reserves ({s.base_reserve}, {s.asset_reserve})"
            )

        self._units.subtract(holder, self.pool_id, units)
        self._commit(
            base_reserve=sub(s.base_reserve, base_out),
            asset_reserve=sub(s.asset_reserve, asset_out),
            unit_supply=sub(s.unit_supply, units),
        )
        return WithdrawReceipt(
            pool_id=self.pool_id,
            holder=holder,
            units=units,
            base_out=base_out,
            asset_out=asset_out,
            state=self.snapshot(),
        )
