"""
Top-level exchange operations.

Path resolution is fixed by the pool topology: every pool pairs one asset
with the base asset, so any asset-to-asset trade is exactly two hops through
the base (asset -> base in the source pool, base -> asset in the target
pool) and any trade touching the base is one hop.

Every function here takes the ``ExchangeContext`` explicitly, runs inside
``ctx.atomic()``, and realizes its token movements through the context's
balance ledger: inputs via ``transfer_in``, outputs via ``transfer_out``.
A failure in any leg restores every pool and ledger to its pre-call state
and re-raises the first error unchanged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from ..state.balances import BASE_ASSET, Account, Amount, TokenId
from ..state.registry import compute_pool_id
from .errors import NotCuratedError, UnknownSynthError
from .exchange import ExchangeContext
from .fixed_point import require_uint, value_in_base
from .pool import (
    Direction,
    LiquidityReceipt,
    Pool,
    Side,
    SwapReceipt,
    WithdrawReceipt,
)
from .safety import SafetyReading
from .swap_math import SwapLeg
from .synth import SynthReceipt, SyntheticState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PathHop:
    pool_id: str
    asset: TokenId
    direction: Direction

    @property
    def token_in(self) -> TokenId:
        return BASE_ASSET if self.direction is Direction.BASE_TO_ASSET else self.asset

    @property
    def token_out(self) -> TokenId:
        return self.asset if self.direction is Direction.BASE_TO_ASSET else BASE_ASSET


@dataclass(frozen=True)
class RouteHop:
    pool_id: str
    token_in: TokenId
    token_out: TokenId
    amount_in: Amount
    amount_out: Amount
    fee: Amount


@dataclass(frozen=True)
class RouteQuote:
    token_in: TokenId
    token_out: TokenId
    amount_in: Amount
    amount_out: Amount
    fee_in_base: Amount
    hops: Tuple[RouteHop, ...]


@dataclass(frozen=True)
class SwapResult:
    token_in: TokenId
    token_out: TokenId
    account: Account
    amount_in: Amount
    amount_out: Amount
    fee_in_base: Amount
    legs: Tuple[SwapReceipt, ...]


@dataclass(frozen=True)
class ZapReceipt:
    account: Account
    units_in: Amount
    units_out: Amount
    base_moved: Amount
    withdraw: WithdrawReceipt
    swap: Optional[SwapReceipt]
    deposit: LiquidityReceipt


def _fee_in_base(fee: Amount, direction: Direction, base_reserve: Amount, asset_reserve: Amount) -> Amount:
    # base -> asset legs charge their fee in the asset
    if direction is Direction.ASSET_TO_BASE:
        return fee
    return value_in_base(fee, base_reserve, asset_reserve)


def _leg_fee_in_base(leg: SwapLeg, direction: Direction) -> Amount:
    if direction is Direction.BASE_TO_ASSET:
        return _fee_in_base(leg.fee, direction, leg.new_reserve_in, leg.new_reserve_out)
    return leg.fee


def _receipt_fee_in_base(r: SwapReceipt) -> Amount:
    return _fee_in_base(r.fee, r.direction, r.state.base_reserve, r.state.asset_reserve)


# ---------------------------------------------------------------------------
# Path resolution and quoting
# ---------------------------------------------------------------------------


def resolve_path(ctx: ExchangeContext, token_in: TokenId, token_out: TokenId) -> Tuple[PathHop, ...]:
    """
    Resolve the pools a trade from ``token_in`` to ``token_out`` crosses.

    Raises:
        ValueError: If both tokens are the same
        UnknownPoolError: If a non-base token has no pool
    """
    if token_in == token_out:
        raise ValueError(f"token_in and token_out must differ: {token_in}")
    if token_in == BASE_ASSET:
        pool = ctx.pool_for(token_out)
        return (PathHop(pool.pool_id, pool.asset, Direction.BASE_TO_ASSET),)
    if token_out == BASE_ASSET:
        pool = ctx.pool_for(token_in)
        return (PathHop(pool.pool_id, pool.asset, Direction.ASSET_TO_BASE),)
    src = ctx.pool_for(token_in)
    dst = ctx.pool_for(token_out)
    return (
        PathHop(src.pool_id, src.asset, Direction.ASSET_TO_BASE),
        PathHop(dst.pool_id, dst.asset, Direction.BASE_TO_ASSET),
    )


def quote(ctx: ExchangeContext, amount_in: Amount, token_in: TokenId, token_out: TokenId) -> RouteQuote:
    """Price a trade along its resolved path without mutating any pool."""
    require_uint("amount_in", amount_in)
    hops = []
    fee_in_base = 0
    carried = amount_in
    for hop in resolve_path(ctx, token_in, token_out):
        leg = ctx.pool_for(hop.asset).quote_swap(carried, hop.direction)
        hops.append(RouteHop(hop.pool_id, hop.token_in, hop.token_out, carried, leg.amount_out, leg.fee))
        fee_in_base += _leg_fee_in_base(leg, hop.direction)
        carried = leg.amount_out
    return RouteQuote(
        token_in=token_in,
        token_out=token_out,
        amount_in=amount_in,
        amount_out=carried,
        fee_in_base=fee_in_base,
        hops=tuple(hops),
    )


# ---------------------------------------------------------------------------
# Swaps
# ---------------------------------------------------------------------------


def direct_swap(
    ctx: ExchangeContext,
    pool: Pool,
    amount_in: Amount,
    direction: Direction,
    account: Account,
    *,
    min_out: Amount = 0,
) -> SwapResult:
    """Single-pool swap between the base and ``pool``'s asset."""
    hop = PathHop(pool.pool_id, pool.asset, direction)
    with ctx.atomic():
        ctx.balances.transfer_in(account, hop.token_in, amount_in)
        r = pool.swap(amount_in, direction, min_out=min_out)
        ctx.balances.transfer_out(account, hop.token_out, r.amount_out)
    return SwapResult(
        token_in=hop.token_in,
        token_out=hop.token_out,
        account=account,
        amount_in=amount_in,
        amount_out=r.amount_out,
        fee_in_base=_receipt_fee_in_base(r),
        legs=(r,),
    )


def composite_swap(
    ctx: ExchangeContext,
    pool_a: Pool,
    pool_b: Pool,
    amount_in: Amount,
    account: Account,
    *,
    min_out: Amount = 0,
) -> SwapResult:
    """
    Asset-to-asset swap: ``pool_a``'s asset -> base -> ``pool_b``'s asset.

    The slippage bound applies to the final output only. Both legs roll back
    together if either fails.
    """
    if pool_a.pool_id == pool_b.pool_id:
        raise ValueError("composite swap needs two distinct pools")
    with ctx.atomic():
        ctx.balances.transfer_in(account, pool_a.asset, amount_in)
        r1 = pool_a.swap(amount_in, Direction.ASSET_TO_BASE)
        r2 = pool_b.swap(r1.amount_out, Direction.BASE_TO_ASSET, min_out=min_out)
        ctx.balances.transfer_out(account, pool_b.asset, r2.amount_out)
    fee = r1.fee + _receipt_fee_in_base(r2)
    logger.info(
        "Composite swap executed",
        extra={
            "event": "router.composite_swap",
            "pool_in": pool_a.pool_id[:10],
            "pool_out": pool_b.pool_id[:10],
            "amount_in": amount_in,
            "base_carried": r1.amount_out,
            "amount_out": r2.amount_out,
            "fee_in_base": fee,
        },
    )
    return SwapResult(
        token_in=pool_a.asset,
        token_out=pool_b.asset,
        account=account,
        amount_in=amount_in,
        amount_out=r2.amount_out,
        fee_in_base=fee,
        legs=(r1, r2),
    )


def swap(
    ctx: ExchangeContext,
    amount_in: Amount,
    token_in: TokenId,
    token_out: TokenId,
    account: Account,
    *,
    min_out: Amount = 0,
) -> SwapResult:
    """Swap along the resolved path (one or two hops)."""
    path = resolve_path(ctx, token_in, token_out)
    if len(path) == 1:
        return direct_swap(ctx, ctx.pool_for(path[0].asset), amount_in, path[0].direction, account, min_out=min_out)
    return composite_swap(
        ctx, ctx.pool_for(path[0].asset), ctx.pool_for(path[1].asset), amount_in, account, min_out=min_out
    )


# ---------------------------------------------------------------------------
# Liquidity
# ---------------------------------------------------------------------------


def create_pool(
    ctx: ExchangeContext,
    asset: TokenId,
    base_in: Amount,
    asset_in: Amount,
    account: Account,
    *,
    min_units: Amount = 0,
    created_at: int = 0,
) -> LiquidityReceipt:
    """Register a pool for ``asset`` and seed it with its first deposit."""
    if asset == BASE_ASSET:
        raise ValueError("cannot pair the base asset with itself")
    if asset in ctx.pools:
        raise ValueError(f"pool for {asset} already exists")
    with ctx.atomic():
        pool_id = compute_pool_id(asset)
        pool = ctx.new_pool(pool_id, asset, created_at=created_at)
        ctx.pool_registry.add_pool(asset, pool_id)
        ctx.balances.transfer_in(account, BASE_ASSET, base_in)
        ctx.balances.transfer_in(account, asset, asset_in)
        receipt = pool.add_liquidity(base_in, asset_in, account, min_units=min_units)
    logger.info(
        "Pool created",
        extra={"event": "router.create_pool", "pool": pool_id[:10], "units": receipt.units},
    )
    return receipt


def add_liquidity(
    ctx: ExchangeContext,
    asset: TokenId,
    base_in: Amount,
    asset_in: Amount,
    account: Account,
    *,
    min_units: Amount = 0,
) -> LiquidityReceipt:
    pool = ctx.pool_for(asset)
    with ctx.atomic():
        ctx.balances.transfer_in(account, BASE_ASSET, base_in)
        ctx.balances.transfer_in(account, asset, asset_in)
        return pool.add_liquidity(base_in, asset_in, account, min_units=min_units)


def add_liquidity_asymmetric(
    ctx: ExchangeContext,
    asset: TokenId,
    amount_in: Amount,
    side: Side,
    account: Account,
    *,
    min_units: Amount = 0,
) -> LiquidityReceipt:
    pool = ctx.pool_for(asset)
    token = BASE_ASSET if side is Side.BASE else asset
    with ctx.atomic():
        ctx.balances.transfer_in(account, token, amount_in)
        return pool.add_liquidity_asymmetric(amount_in, side, account, min_units=min_units)


def remove_liquidity(
    ctx: ExchangeContext,
    asset: TokenId,
    units_in: Amount,
    account: Account,
    *,
    min_base: Amount = 0,
    min_asset: Amount = 0,
) -> WithdrawReceipt:
    pool = ctx.pool_for(asset)
    with ctx.atomic():
        receipt = pool.remove_liquidity(units_in, account, min_base=min_base, min_asset=min_asset)
        ctx.balances.transfer_out(account, BASE_ASSET, receipt.base_out)
        ctx.balances.transfer_out(account, asset, receipt.asset_out)
        return receipt


def zap_liquidity(
    ctx: ExchangeContext,
    asset_from: TokenId,
    asset_to: TokenId,
    units_in: Amount,
    account: Account,
    *,
    min_units: Amount = 0,
) -> ZapReceipt:
    """
    Move liquidity from ``asset_from``'s pool into ``asset_to``'s pool.

    The withdrawn asset is swapped back into base through the source pool,
    then all freed base is deposited single-sided into the target pool. No
    intermediate token reaches the account.
    """
    pool_from = ctx.pool_for(asset_from)
    pool_to = ctx.pool_for(asset_to)
    if pool_from.pool_id == pool_to.pool_id:
        raise ValueError("zap needs two distinct pools")
    with ctx.atomic():
        with pool_from.deferred_safety_check():
            w = pool_from.remove_liquidity(units_in, account)
            s = pool_from.swap(w.asset_out, Direction.ASSET_TO_BASE) if w.asset_out > 0 else None
        base_moved = w.base_out + (s.amount_out if s is not None else 0)
        d = pool_to.add_liquidity_asymmetric(base_moved, Side.BASE, account, min_units=min_units)
    logger.info(
        "Liquidity zapped",
        extra={
            "event": "router.zap",
            "pool_from": pool_from.pool_id[:10],
            "pool_to": pool_to.pool_id[:10],
            "units_in": units_in,
            "units_out": d.units,
            "base_moved": base_moved,
        },
    )
    return ZapReceipt(
        account=account,
        units_in=units_in,
        units_out=d.units,
        base_moved=base_moved,
        withdraw=w,
        swap=s,
        deposit=d,
    )


# ---------------------------------------------------------------------------
# Synthetics and curation
# ---------------------------------------------------------------------------


def create_synth(ctx: ExchangeContext, asset: TokenId) -> SyntheticState:
    """Create the synthetic backed by ``asset``'s pool."""
    pool = ctx.pool_for(asset)
    if ctx.config.require_curated_for_synths and not ctx.pool_registry.is_curated(asset):
        raise NotCuratedError(f"pool for {asset} is not curated")
    with ctx.atomic():
        synth_id = ctx.synth_registry.create_synth(asset)
        return ctx.synths.register(pool, synth_id)


def add_synth(ctx: ExchangeContext, asset: TokenId) -> SyntheticState:
    """Relist ``asset``'s previously delisted synthetic."""
    ctx.pool_for(asset)
    if ctx.config.require_curated_for_synths and not ctx.pool_registry.is_curated(asset):
        raise NotCuratedError(f"pool for {asset} is not curated")
    synth_id = ctx.synth_registry.get_synth(asset)
    if synth_id is None:
        raise UnknownSynthError(asset)
    with ctx.atomic():
        ctx.synth_registry.add_synth(synth_id)
        return ctx.synths.get(synth_id)


def mint_synth(
    ctx: ExchangeContext,
    asset: TokenId,
    amount_in: Amount,
    token_in: TokenId,
    account: Account,
    *,
    min_out: Amount = 0,
) -> SynthReceipt:
    """Mint ``asset``'s synthetic from either the base or the asset itself."""
    pool = ctx.pool_for(asset)
    synth_id = ctx.synth_registry.get_synth(asset)
    if synth_id is None or not ctx.synth_registry.is_synth(synth_id):
        raise UnknownSynthError(asset)
    with ctx.atomic():
        if token_in == BASE_ASSET:
            return ctx.synths.mint_from_base(pool, synth_id, amount_in, account, min_out=min_out)
        if token_in == asset:
            return ctx.synths.mint_from_asset(pool, synth_id, amount_in, account, min_out=min_out)
        raise ValueError(f"cannot mint {asset} synthetic from {token_in}")


def burn_synth(
    ctx: ExchangeContext,
    asset: TokenId,
    synth_in: Amount,
    token_out: TokenId,
    account: Account,
    *,
    min_out: Amount = 0,
) -> SynthReceipt:
    """Redeem ``asset``'s synthetic; delisted synthetics stay redeemable."""
    pool = ctx.pool_for(asset)
    state = ctx.synth_for(asset)
    with ctx.atomic():
        if token_out == BASE_ASSET:
            return ctx.synths.burn_to_base(pool, state.synth_id, synth_in, account, min_out=min_out)
        if token_out == asset:
            return ctx.synths.burn_to_asset(pool, state.synth_id, synth_in, account, min_out=min_out)
        raise ValueError(f"cannot redeem {asset} synthetic into {token_out}")


def curate_pool(ctx: ExchangeContext, asset: TokenId) -> None:
    ctx.pool_for(asset)
    with ctx.atomic():
        ctx.pool_registry.add_curated(asset)


def remove_curated_pool(ctx: ExchangeContext, asset: TokenId) -> None:
    """De-curate ``asset``'s pool and delist its synthetic (lookup is kept)."""
    ctx.pool_for(asset)
    with ctx.atomic():
        ctx.pool_registry.remove_curated(asset)
        ctx.synth_registry.remove_synth(asset)


def safety_check(ctx: ExchangeContext, asset: TokenId) -> SafetyReading:
    pool = ctx.pool_for(asset)
    with ctx.atomic():
        return pool.safety_check()
