"""
Core pricing and accounting engine
"""

from .fixed_point import ONE, SCALE, BPS_DENOM
from .swap_math import SwapLeg, swap_output, swap_fee, swap_leg
from .liquidity_math import (
    MIN_UNITS_LOCK,
    genesis_units,
    liquidity_units,
    asymmetric_units,
    withdrawal_amounts,
)
from .pool import Direction, Pool, PoolParams, PoolState, PoolStatus, Side
from .synth import SyntheticLedger, SyntheticState
from .exchange import ExchangeConfig, ExchangeContext
from .commands import Action, Command, StepResult, step, step_or_raise

__all__ = [
    "ONE",
    "SCALE",
    "BPS_DENOM",
    "SwapLeg",
    "swap_output",
    "swap_fee",
    "swap_leg",
    "MIN_UNITS_LOCK",
    "genesis_units",
    "liquidity_units",
    "asymmetric_units",
    "withdrawal_amounts",
    "Direction",
    "Pool",
    "PoolParams",
    "PoolState",
    "PoolStatus",
    "Side",
    "SyntheticLedger",
    "SyntheticState",
    "ExchangeConfig",
    "ExchangeContext",
    "Action",
    "Command",
    "StepResult",
    "step",
    "step_or_raise",
]
