"""
SynthPool: constant-product liquidity pools with synthetic assets
"""

from .core import (
    Action,
    Command,
    ExchangeConfig,
    ExchangeContext,
    StepResult,
    step,
    step_or_raise,
)
from .state import BASE_ASSET

__version__ = "0.1.0"

__all__ = [
    "Action",
    "Command",
    "ExchangeConfig",
    "ExchangeContext",
    "StepResult",
    "step",
    "step_or_raise",
    "BASE_ASSET",
]
