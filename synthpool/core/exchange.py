"""
Exchange context: configuration plus every piece of mutable state.

The context is passed explicitly to each router and command function; there
are no module-level pools or ledgers. ``atomic()`` gives all-or-nothing
semantics for multi-step operations: it serializes writers on a re-entrant
lock, snapshots the pools, both ledgers and the registries, and restores
them if the block raises.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import Dict, Iterator, Optional

from ..state.balances import BalanceTable, TokenId
from ..state.lp import LPTable
from ..state.registry import PoolRegistry, SynthRegistry
from .errors import UnknownPoolError, UnknownSynthError
from .fixed_point import BPS_DENOM, ONE
from .liquidity_math import GENESIS_GEOMETRIC, GENESIS_MODES
from .pool import Pool, PoolParams
from .safety import DEFAULT_FREEZE_THRESHOLD_BPS
from .synth import DEFAULT_REDEMPTION_HAIRCUT_BPS, SyntheticLedger, SyntheticState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExchangeConfig:
    """Engine parameters. Defaults match the deployed system."""
    freeze_threshold_bps: int = DEFAULT_FREEZE_THRESHOLD_BPS
    redemption_haircut_bps: int = DEFAULT_REDEMPTION_HAIRCUT_BPS
    min_units_lock: int = 100 * ONE
    genesis_units: str = GENESIS_GEOMETRIC
    safety_check_on_commit: bool = True
    require_curated_for_synths: bool = True

    def __post_init__(self) -> None:
        for name in ("freeze_threshold_bps", "redemption_haircut_bps"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool):
                raise TypeError(f"{name} must be int")
            if not (0 <= value <= BPS_DENOM):
                raise ValueError(f"{name} must be in [0, {BPS_DENOM}]: {value}")
        if not isinstance(self.min_units_lock, int) or self.min_units_lock < 0:
            raise ValueError(f"min_units_lock must be a non-negative int: {self.min_units_lock}")
        if self.genesis_units not in GENESIS_MODES:
            raise ValueError(f"genesis_units must be one of {sorted(GENESIS_MODES)}: {self.genesis_units!r}")
        for name in ("safety_check_on_commit", "require_curated_for_synths"):
            if not isinstance(getattr(self, name), bool):
                raise TypeError(f"{name} must be bool: {getattr(self, name)!r}")

    def pool_params(self) -> PoolParams:
        return PoolParams(
            freeze_threshold_bps=self.freeze_threshold_bps,
            min_units_lock=self.min_units_lock,
            genesis_mode=self.genesis_units,
            check_on_commit=self.safety_check_on_commit,
        )


class ExchangeContext:
    """
    Holds the pools, the balance and unit ledgers, the synthetic ledger and
    the registries for one exchange instance.
    """

    def __init__(self, config: Optional[ExchangeConfig] = None) -> None:
        self.config = config or ExchangeConfig()
        self.balances = BalanceTable()
        self.units = LPTable()
        self.pools: Dict[TokenId, Pool] = {}
        self.synths = SyntheticLedger(self.balances, haircut_bps=self.config.redemption_haircut_bps)
        self.pool_registry = PoolRegistry()
        self.synth_registry = SynthRegistry()
        self._lock = threading.RLock()

    # -- lookup --------------------------------------------------------------

    def pool_for(self, asset: TokenId) -> Pool:
        try:
            return self.pools[asset]
        except KeyError:
            raise UnknownPoolError(asset) from None

    def synth_for(self, asset: TokenId) -> SyntheticState:
        """Resolve ``asset``'s synthetic, listed or not."""
        synth_id = self.synth_registry.get_synth(asset)
        if synth_id is None:
            raise UnknownSynthError(asset)
        return self.synths.get(synth_id)

    def new_pool(self, pool_id: str, asset: TokenId, *, created_at: int = 0) -> Pool:
        pool = Pool(pool_id, asset, self.units, self.config.pool_params(), created_at=created_at)
        self.pools[asset] = pool
        return pool

    # -- atomicity -----------------------------------------------------------

    def _snapshot(self) -> dict:
        return {
            "balances": self.balances.copy(),
            "units": self.units.copy(),
            "pools": {asset: (pool, replace(pool.state)) for asset, pool in self.pools.items()},
            "synths": self.synths.copy(),
            "pool_registry": self.pool_registry.copy(),
            "synth_registry": self.synth_registry.copy(),
        }

    def _restore(self, saved: dict) -> None:
        self.balances.restore(saved["balances"])
        self.units.restore(saved["units"])
        self.pools = {}
        for asset, (pool, state) in saved["pools"].items():
            pool.state = state
            self.pools[asset] = pool
        self.synths.restore(saved["synths"])
        self.pool_registry.restore(saved["pool_registry"])
        self.synth_registry.restore(saved["synth_registry"])

    @contextmanager
    def atomic(self) -> Iterator["ExchangeContext"]:
        """
        Run the block as one all-or-nothing operation.

        Any exception restores the state captured on entry and is re-raised
        unchanged. Nested blocks are allowed; an inner failure caught by the
        outer block rolls back only the inner block.
        """
        with self._lock:
            saved = self._snapshot()
            try:
                yield self
            except BaseException as exc:
                self._restore(saved)
                logger.debug(
                    "Rolled back failed operation",
                    extra={"event": "exchange.rollback", "error": type(exc).__name__},
                )
                raise
