from __future__ import annotations

import pytest

from synthpool.core.errors import (
    EmptyPoolError,
    InsufficientOutputError,
    InsufficientUnitsError,
    PoolFrozenError,
)
from synthpool.core.fixed_point import ONE
from synthpool.core.liquidity_math import GENESIS_BASE, balanced_base_for
from synthpool.core.pool import Direction, Pool, PoolParams, PoolState, PoolStatus, Side
from synthpool.core.safety import pool_rate
from synthpool.core.swap_math import swap_output
from synthpool.state.lp import LOCKED_UNITS_HOLDER, LPTable


def _seeded(base: int = 1_000 * ONE, asset: int = 1_000 * ONE, params: PoolParams = PoolParams()) -> Pool:
    pool = Pool("0x" + "aa" * 32, "0x" + "11" * 32, LPTable(), params)
    pool.add_liquidity(base, asset, "alice")
    return pool


def test_genesis_locks_minimum_units_and_records_rate() -> None:
    pool = _seeded()
    s = pool.state
    assert s.base_reserve == 1_000 * ONE
    assert s.asset_reserve == 1_000 * ONE
    assert s.unit_supply == 1_000 * ONE
    assert pool.units_of("alice") == 900 * ONE
    assert pool.units_of(LOCKED_UNITS_HOLDER) == 100 * ONE
    assert s.last_rate == ONE
    assert s.status is PoolStatus.ACTIVE


def test_genesis_base_mode() -> None:
    pool = _seeded(10_000 * ONE, 30 * ONE, PoolParams(genesis_mode=GENESIS_BASE))
    assert pool.units_of("alice") == 9_900 * ONE
    assert pool.state.unit_supply == 10_000 * ONE


def test_proportional_issuance_on_balanced_deposit() -> None:
    pool = _seeded()
    r = pool.add_liquidity(100 * ONE, 100 * ONE, "bob")
    assert r.units == 100 * ONE
    assert r.state.base_reserve == 1_100 * ONE
    assert r.state.asset_reserve == 1_100 * ONE
    assert r.state.unit_supply == 1_100 * ONE
    assert pool.units_of("bob") == 100 * ONE


def test_swap_conserves_reserves_exactly() -> None:
    pool = _seeded()
    before = pool.snapshot()
    r = pool.swap(10 * ONE, Direction.BASE_TO_ASSET)
    assert r.amount_out == swap_output(10 * ONE, before.base_reserve, before.asset_reserve)
    assert pool.state.base_reserve == before.base_reserve + 10 * ONE
    assert pool.state.asset_reserve == before.asset_reserve - r.amount_out
    assert pool.state.unit_supply == before.unit_supply


def test_asset_in_swap_against_deep_base_pool() -> None:
    pool = _seeded(10_000 * ONE, 30 * ONE)
    expected = swap_output(3 * ONE, 30 * ONE, 10_000 * ONE)
    r = pool.swap(3 * ONE, Direction.ASSET_TO_BASE)
    assert r.amount_out == expected
    assert pool.state.asset_reserve == 33 * ONE
    assert pool.state.base_reserve == 10_000 * ONE - expected
    assert not pool.frozen


def test_swap_below_min_out_leaves_state_untouched() -> None:
    pool = _seeded()
    before = pool.snapshot()
    with pytest.raises(InsufficientOutputError):
        pool.swap(10 * ONE, Direction.BASE_TO_ASSET, min_out=10 * ONE)
    assert pool.state == before


def test_large_rate_jump_freezes_pool() -> None:
    pool = _seeded()
    r = pool.swap(300 * ONE, Direction.BASE_TO_ASSET)
    # the trade that trips the breaker is still committed
    assert r.state.base_reserve == 1_300 * ONE
    assert r.state.status is PoolStatus.FROZEN
    assert pool.state.last_rate == pool_rate(r.state.base_reserve, r.state.asset_reserve)

    with pytest.raises(PoolFrozenError):
        pool.swap(1 * ONE, Direction.ASSET_TO_BASE)
    with pytest.raises(PoolFrozenError):
        pool.add_liquidity(1 * ONE, 1 * ONE, "bob")
    with pytest.raises(PoolFrozenError):
        pool.remove_liquidity(1 * ONE, "alice")
    with pytest.raises(PoolFrozenError):
        pool.add_liquidity_asymmetric(1 * ONE, Side.BASE, "bob")

    # the check itself keeps running on a frozen pool
    reading = pool.safety_check()
    assert reading.tripped is False
    assert pool.frozen


def test_small_swap_does_not_freeze() -> None:
    pool = _seeded()
    pool.swap(10 * ONE, Direction.BASE_TO_ASSET)
    assert not pool.frozen


def test_slow_drift_across_checks_does_not_accumulate() -> None:
    pool = _seeded()
    for _ in range(6):
        pool.swap(100 * ONE, Direction.BASE_TO_ASSET)
    assert not pool.frozen
    assert pool.state.last_rate > 2 * ONE


def test_commit_check_can_be_disabled() -> None:
    pool = _seeded(params=PoolParams(check_on_commit=False))
    pool.swap(300 * ONE, Direction.BASE_TO_ASSET)
    assert not pool.frozen
    assert pool.safety_check().tripped is True
    assert pool.frozen


def test_deferred_safety_check_runs_once_at_exit() -> None:
    pool = _seeded()
    with pool.deferred_safety_check():
        pool.swap(300 * ONE, Direction.BASE_TO_ASSET)
        assert not pool.frozen
    assert pool.frozen


def test_remove_liquidity_round_trip_never_returns_more() -> None:
    pool = _seeded()
    pool.swap(37 * ONE, Direction.ASSET_TO_BASE)
    asset_in = 103 * ONE
    base_in = balanced_base_for(asset_in, pool.state.base_reserve, pool.state.asset_reserve)
    added = pool.add_liquidity(base_in, asset_in, "bob")
    out = pool.remove_liquidity(added.units, "bob")
    assert out.base_out <= base_in
    assert out.asset_out <= asset_in
    assert pool.units_of("bob") == 0


def test_remove_liquidity_balanced_round_trip_is_exact() -> None:
    pool = _seeded()
    added = pool.add_liquidity(100 * ONE, 100 * ONE, "bob")
    out = pool.remove_liquidity(added.units, "bob")
    assert (out.base_out, out.asset_out) == (100 * ONE, 100 * ONE)
    assert pool.state.unit_supply == 1_000 * ONE


def test_remove_liquidity_unit_bounds() -> None:
    pool = _seeded()
    with pytest.raises(InsufficientUnitsError):
        pool.remove_liquidity(2_000 * ONE, "alice")
    with pytest.raises(InsufficientUnitsError):
        pool.remove_liquidity(1 * ONE, "mallory")
    with pytest.raises(InsufficientOutputError):
        pool.remove_liquidity(1 * ONE, "alice", min_base=2 * ONE)


def test_asymmetric_deposit_lands_on_one_side() -> None:
    pool = _seeded()
    r = pool.add_liquidity_asymmetric(10 * ONE, Side.BASE, "bob")
    assert r.units == 5 * ONE
    assert pool.state.base_reserve == 1_010 * ONE
    assert pool.state.asset_reserve == 1_000 * ONE
    assert pool.state.unit_supply == 1_005 * ONE

    r = pool.add_liquidity_asymmetric(10 * ONE, Side.ASSET, "bob")
    assert r.units == (1_005 * ONE * 10 * ONE) // (2 * 1_000 * ONE)
    assert pool.state.asset_reserve == 1_010 * ONE


def test_asymmetric_deposit_priced_against_earlier_depth() -> None:
    pool = _seeded()
    r = pool.add_liquidity_asymmetric(10 * ONE, Side.BASE, "bob", priced_against=500 * ONE)
    assert r.units == 10 * ONE
    assert pool.state.base_reserve == 1_010 * ONE


def test_asymmetric_deposit_into_empty_pool_raises() -> None:
    pool = Pool("p", "A", LPTable())
    with pytest.raises(EmptyPoolError):
        pool.add_liquidity_asymmetric(10 * ONE, Side.BASE, "bob")


def test_release_collateral_requires_held_units() -> None:
    pool = _seeded()
    with pytest.raises(InsufficientUnitsError):
        pool.release_collateral(1, "synth", base_out=1)
    r = pool.release_collateral(10 * ONE, "alice", base_out=5 * ONE)
    assert r.state.base_reserve == 995 * ONE
    assert r.state.unit_supply == 990 * ONE


def test_pool_state_rejects_inconsistent_reserves() -> None:
    with pytest.raises(ValueError):
        PoolState(pool_id="p", asset="A", unit_supply=1)
    with pytest.raises(ValueError):
        PoolState(pool_id="p", asset="A", base_reserve=1)
    with pytest.raises(ValueError):
        PoolState(pool_id="p", asset="A", base_reserve=-1)
