"""Invariant checkers over a whole ``ExchangeContext``.

Each function returns True when the invariant holds, and ``check_all()``
returns the list of violated invariant IDs (empty = all pass).

Unlike the per-pool checks in ``PoolState.__post_init__``, these are global:
they cross-check pool aggregates against the unit and balance ledgers.
"""

from __future__ import annotations

from typing import Callable

from .exchange import ExchangeContext


def inv_reserves_positive_when_supply(ctx: ExchangeContext) -> bool:
    return all(
        p.state.base_reserve > 0 and p.state.asset_reserve > 0
        for p in ctx.pools.values()
        if p.state.unit_supply > 0
    )


def inv_empty_pool_iff_zero_supply(ctx: ExchangeContext) -> bool:
    for p in ctx.pools.values():
        s = p.state
        empty = s.base_reserve == 0 and s.asset_reserve == 0
        if empty != (s.unit_supply == 0):
            return False
    return True


def inv_unit_ledger_matches_supply(ctx: ExchangeContext) -> bool:
    return all(ctx.units.total_for_pool(p.pool_id) == p.state.unit_supply for p in ctx.pools.values())


def inv_synth_collateral_matches_units(ctx: ExchangeContext) -> bool:
    return all(ctx.units.get(s.synth_id, s.pool_id) == s.collateral for s in ctx.synths)


def inv_synth_debt_matches_supply(ctx: ExchangeContext) -> bool:
    return all(ctx.balances.total_supply(s.synth_id) == s.debt for s in ctx.synths)


def inv_pools_registered(ctx: ExchangeContext) -> bool:
    return all(ctx.pool_registry.get_pool(asset) == p.pool_id for asset, p in ctx.pools.items())


def inv_balances_non_negative(ctx: ExchangeContext) -> bool:
    return ctx.balances.verify_non_negative()


INVARIANT_REGISTRY: dict[str, Callable[[ExchangeContext], bool]] = {
    "inv_reserves_positive_when_supply": inv_reserves_positive_when_supply,
    "inv_empty_pool_iff_zero_supply": inv_empty_pool_iff_zero_supply,
    "inv_unit_ledger_matches_supply": inv_unit_ledger_matches_supply,
    "inv_synth_collateral_matches_units": inv_synth_collateral_matches_units,
    "inv_synth_debt_matches_supply": inv_synth_debt_matches_supply,
    "inv_pools_registered": inv_pools_registered,
    "inv_balances_non_negative": inv_balances_non_negative,
}


def check_all(ctx: ExchangeContext) -> list[str]:
    """Return list of violated invariant IDs (empty = all pass)."""
    return [
        inv_id
        for inv_id, check_fn in INVARIANT_REGISTRY.items()
        if not check_fn(ctx)
    ]
