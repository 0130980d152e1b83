"""Tests for synthpool/core/commands.py: dispatch table and step function."""

from __future__ import annotations

import pytest

from synthpool.core import commands
from synthpool.core.commands import Action, Command, StepResult, step, step_or_raise
from synthpool.core.errors import InsufficientOutputError, PoolFrozenError, UnknownPoolError
from synthpool.core.exchange import ExchangeContext
from synthpool.core.fixed_point import ONE
from synthpool.state.balances import BASE_ASSET

TOKEN_A = "0x" + "11" * 32
TOKEN_B = "0x" + "22" * 32


def _funded() -> ExchangeContext:
    ctx = ExchangeContext()
    for token in (BASE_ASSET, TOKEN_A, TOKEN_B):
        ctx.balances.set("lp", token, 10_000 * ONE)
    return ctx


def _seed(ctx: ExchangeContext, token: str) -> StepResult:
    return step(
        ctx,
        Command(
            Action.CREATE_POOL,
            {"asset": token, "base_in": 1_000 * ONE, "asset_in": 1_000 * ONE, "account": "lp"},
        ),
    )


def test_dispatch_table_is_exhaustive() -> None:
    assert set(commands._DISPATCH) == set(Action)


def test_scenario_runs_end_to_end() -> None:
    ctx = _funded()
    assert _seed(ctx, TOKEN_A).accepted
    assert _seed(ctx, TOKEN_B).accepted

    script = [
        Command(Action.SWAP, {"amount_in": 10 * ONE, "token_in": TOKEN_A, "token_out": TOKEN_B, "account": "lp"}),
        Command(Action.ADD_LIQUIDITY_ASYM, {"asset": TOKEN_A, "amount_in": 5 * ONE, "side": "BASE", "account": "lp"}),
        Command(Action.ZAP_LIQUIDITY, {"asset_from": TOKEN_A, "asset_to": TOKEN_B, "units_in": 10 * ONE, "account": "lp"}),
        Command(Action.CURATE_POOL, {"asset": TOKEN_A}),
        Command(Action.CREATE_SYNTH, {"asset": TOKEN_A}),
        Command(Action.MINT_SYNTH, {"asset": TOKEN_A, "amount_in": 5 * ONE, "token_in": BASE_ASSET, "account": "lp"}),
        Command(Action.SAFETY_CHECK, {"asset": TOKEN_A}),
        Command(Action.REMOVE_CURATED_POOL, {"asset": TOKEN_A}),
        Command(Action.REMOVE_LIQUIDITY, {"asset": TOKEN_B, "units_in": 10 * ONE, "account": "lp"}),
    ]
    for cmd in script:
        result = step(ctx, cmd)
        assert result.accepted, (cmd.action, result.rejection)

    synth_id = ctx.synth_registry.get_synth(TOKEN_A)
    held = ctx.balances.get("lp", synth_id)
    result = step(
        ctx,
        Command(Action.BURN_SYNTH, {"asset": TOKEN_A, "synth_in": held, "token_out": TOKEN_A, "account": "lp"}),
    )
    assert result.accepted
    assert result.receipt.synth.debt == 0


def test_rejected_command_leaves_state_unchanged() -> None:
    ctx = _funded()
    _seed(ctx, TOKEN_A)
    before = ctx.pool_for(TOKEN_A).snapshot()
    balances_before = ctx.balances.get_all_balances()

    result = step(
        ctx,
        Command(
            Action.SWAP,
            {"amount_in": 10 * ONE, "token_in": BASE_ASSET, "token_out": TOKEN_A, "account": "lp", "min_out": ONE * 100},
        ),
    )
    assert not result.accepted
    assert result.rejection is not None and result.rejection.startswith("InsufficientOutputError")
    assert isinstance(result.error, InsufficientOutputError)
    assert ctx.pool_for(TOKEN_A).state == before
    assert ctx.balances.get_all_balances() == balances_before


def test_unknown_pool_is_a_rejection() -> None:
    ctx = _funded()
    result = step(ctx, Command(Action.SAFETY_CHECK, {"asset": TOKEN_A}))
    assert not result.accepted
    assert isinstance(result.error, UnknownPoolError)


def test_step_or_raise_reraises_engine_error() -> None:
    ctx = _funded()
    _seed(ctx, TOKEN_A)
    big = Command(Action.SWAP, {"amount_in": 300 * ONE, "token_in": BASE_ASSET, "token_out": TOKEN_A, "account": "lp"})
    assert step_or_raise(ctx, big).accepted
    assert ctx.pool_for(TOKEN_A).frozen
    with pytest.raises(PoolFrozenError):
        step_or_raise(ctx, big)


def test_invariant_violation_rolls_back(monkeypatch: pytest.MonkeyPatch) -> None:
    ctx = _funded()
    _seed(ctx, TOKEN_A)
    monkeypatch.setattr(commands, "check_all", lambda _ctx: ["inv_forced"])
    before = ctx.pool_for(TOKEN_A).snapshot()
    result = step(
        ctx,
        Command(Action.SWAP, {"amount_in": ONE, "token_in": BASE_ASSET, "token_out": TOKEN_A, "account": "lp"}),
    )
    assert not result.accepted
    assert "inv_forced" in (result.rejection or "")
    assert ctx.pool_for(TOKEN_A).state == before


def test_add_synth_command_relists() -> None:
    ctx = _funded()
    assert _seed(ctx, TOKEN_A).accepted
    assert step(ctx, Command(Action.CURATE_POOL, {"asset": TOKEN_A})).accepted
    assert step(ctx, Command(Action.CREATE_SYNTH, {"asset": TOKEN_A})).accepted
    assert step(ctx, Command(Action.REMOVE_CURATED_POOL, {"asset": TOKEN_A})).accepted
    assert step(ctx, Command(Action.CURATE_POOL, {"asset": TOKEN_A})).accepted

    result = step(ctx, Command(Action.ADD_SYNTH, {"asset": TOKEN_A}))
    assert result.accepted
    assert ctx.synth_registry.is_synth(result.receipt.synth_id)
    mint = step(
        ctx,
        Command(Action.MINT_SYNTH, {"asset": TOKEN_A, "amount_in": ONE, "token_in": BASE_ASSET, "account": "lp"}),
    )
    assert mint.accepted


def test_malformed_arguments_are_a_rejection() -> None:
    ctx = _funded()
    assert _seed(ctx, TOKEN_A).accepted
    before = ctx.pool_for(TOKEN_A).snapshot()

    result = step(ctx, Command(Action.SWAP, {"amount": ONE, "token_in": BASE_ASSET, "token_out": TOKEN_A}))
    assert not result.accepted
    assert isinstance(result.error, TypeError)
    assert result.rejection.startswith("TypeError:")
    assert ctx.pool_for(TOKEN_A).state == before
