"""Command dispatch for the exchange.

Each top-level operation is one ``Action`` member; a ``Command`` pairs the
action with its keyword arguments. ``step()`` executes a command:

1. Looks up the handler in the dispatch table.
2. Runs it inside ``ctx.atomic()``.
3. Checks every global invariant on the post-state; a violation rolls the
   command back.
4. Returns a ``StepResult`` (accepted with a receipt, or rejected with a
   reason).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, unique
from typing import Any, Callable, Mapping, Optional

from . import router
from .errors import EngineError, InvariantError
from .exchange import ExchangeContext
from .invariants import check_all
from .pool import Side

logger = logging.getLogger(__name__)


@unique
class Action(Enum):
    """One member per top-level exchange operation."""
    CREATE_POOL = "create_pool"
    ADD_LIQUIDITY = "add_liquidity"
    ADD_LIQUIDITY_ASYM = "add_liquidity_asym"
    REMOVE_LIQUIDITY = "remove_liquidity"
    SWAP = "swap"
    ZAP_LIQUIDITY = "zap_liquidity"
    CREATE_SYNTH = "create_synth"
    ADD_SYNTH = "add_synth"
    MINT_SYNTH = "mint_synth"
    BURN_SYNTH = "burn_synth"
    CURATE_POOL = "curate_pool"
    REMOVE_CURATED_POOL = "remove_curated_pool"
    SAFETY_CHECK = "safety_check"


@dataclass(frozen=True)
class Command:
    action: Action
    args: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class StepResult:
    """Result of a single command."""

    accepted: bool
    receipt: Any = None
    rejection: Optional[str] = None
    error: Optional[Exception] = None


Handler = Callable[..., Any]


def _add_liquidity_asym(ctx: ExchangeContext, *, side: Any, **kwargs: Any) -> Any:
    return router.add_liquidity_asymmetric(ctx, side=Side(side), **kwargs)


_DISPATCH: dict[Action, Handler] = {
    Action.CREATE_POOL: router.create_pool,
    Action.ADD_LIQUIDITY: router.add_liquidity,
    Action.ADD_LIQUIDITY_ASYM: _add_liquidity_asym,
    Action.REMOVE_LIQUIDITY: router.remove_liquidity,
    Action.SWAP: router.swap,
    Action.ZAP_LIQUIDITY: router.zap_liquidity,
    Action.CREATE_SYNTH: router.create_synth,
    Action.ADD_SYNTH: router.add_synth,
    Action.MINT_SYNTH: router.mint_synth,
    Action.BURN_SYNTH: router.burn_synth,
    Action.CURATE_POOL: router.curate_pool,
    Action.REMOVE_CURATED_POOL: router.remove_curated_pool,
    Action.SAFETY_CHECK: router.safety_check,
}

_missing = set(Action) - set(_DISPATCH)
if _missing:
    raise RuntimeError(f"actions without a handler: {sorted(a.value for a in _missing)}")


def step(ctx: ExchangeContext, cmd: Command) -> StepResult:
    """Execute one command against the context.

    Returns ``StepResult`` with ``accepted=True`` and the operation's receipt
    on success, or ``accepted=False`` with a ``rejection`` reason string. A
    rejected command leaves the context unchanged.
    """
    handler = _DISPATCH.get(cmd.action)
    if handler is None:
        return StepResult(accepted=False, rejection=f"unknown_action:{cmd.action}")

    try:
        with ctx.atomic():
            receipt = handler(ctx, **dict(cmd.args))
            violations = check_all(ctx)
            if violations:
                raise InvariantError(violations)
    except (EngineError, ValueError, TypeError) as exc:
        logger.info(
            "Command rejected",
            extra={"event": "command.rejected", "action": cmd.action.value, "error": type(exc).__name__},
        )
        return StepResult(accepted=False, rejection=f"{type(exc).__name__}:{exc}", error=exc)
    return StepResult(accepted=True, receipt=receipt)


def step_or_raise(ctx: ExchangeContext, cmd: Command) -> StepResult:
    """Like ``step()`` but re-raises the rejecting error instead of returning it."""
    result = step(ctx, cmd)
    if result.accepted:
        return result
    if result.error is not None:
        raise result.error
    raise EngineError(result.rejection or "rejected")
