"""
Ledgers and registries consumed by the engine
"""

from .balances import BASE_ASSET, BalanceTable
from .lp import LOCKED_UNITS_HOLDER, LPTable
from .registry import PoolRegistry, SynthRegistry, compute_pool_id, compute_synth_id

__all__ = [
    "BASE_ASSET",
    "BalanceTable",
    "LOCKED_UNITS_HOLDER",
    "LPTable",
    "PoolRegistry",
    "SynthRegistry",
    "compute_pool_id",
    "compute_synth_id",
]
