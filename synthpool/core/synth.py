"""
Synthetic asset ledger.

Each synthetic is backed by liquidity units of one pool. The ledger holds
those units in the shared ``LPTable`` under the synthetic's id, so
``collateral`` always equals ``units.get(synth_id, pool_id)``, and it mints
and burns the synthetic token through the balance ledger, so ``debt`` always
equals the token's total supply.

Minting:
- from base: the base input is deposited single-sided; the synthetic amount
  is the base->asset swap output on the pre-mint reserves.
- from asset: the asset input is swapped to base through the pool, then that
  base is deposited single-sided; units are priced against the pre-swap
  base depth and the synthetic amount is a second base->asset leg on the
  post-swap reserves.

Burning releases ``collateral * synth_in / debt`` units and pays out the
synthetic's asset->base value less the redemption haircut, optionally
swapped on into the paired asset.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Dict, Iterator, Optional

from ..state.balances import BASE_ASSET, Account, Amount, BalanceLedger, TokenId
from ..state.registry import compute_synth_id
from .errors import (
    InsufficientLiquidityError,
    InsufficientOutputError,
    InsufficientUnitsError,
    PoolFrozenError,
    UnknownSynthError,
)
from .fixed_point import BPS_DENOM, bps_of, require_uint
from .liquidity_math import asymmetric_units
from .pool import Direction, Pool, PoolState, Side
from .swap_math import swap_output

logger = logging.getLogger(__name__)

DEFAULT_REDEMPTION_HAIRCUT_BPS = 500


@dataclass
class SyntheticState:
    synth_id: str
    pool_id: str
    asset: TokenId
    collateral: Amount = 0
    debt: Amount = 0

    def __post_init__(self) -> None:
        require_uint("collateral", self.collateral)
        require_uint("debt", self.debt)


@dataclass(frozen=True)
class SynthReceipt:
    """Result of a mint or burn: amounts moved and post-operation snapshots."""
    synth_id: str
    account: Account
    amount_in: Amount
    amount_out: Amount
    units: Amount
    synth: SyntheticState
    pool: PoolState


class SyntheticLedger:
    def __init__(
        self,
        balances: BalanceLedger,
        *,
        haircut_bps: int = DEFAULT_REDEMPTION_HAIRCUT_BPS,
    ) -> None:
        require_uint("haircut_bps", haircut_bps)
        if haircut_bps > BPS_DENOM:
            raise ValueError(f"haircut_bps must be <= {BPS_DENOM}: {haircut_bps}")
        self.haircut_bps = haircut_bps
        self._balances = balances
        self._synths: Dict[str, SyntheticState] = {}

    # -- lookup --------------------------------------------------------------

    def register(self, pool: Pool, synth_id: Optional[str] = None) -> SyntheticState:
        """Create zeroed state for ``pool``'s synthetic."""
        sid = synth_id if synth_id is not None else compute_synth_id(pool.asset)
        if sid in self._synths:
            raise ValueError(f"synthetic {sid} already registered")
        state = SyntheticState(synth_id=sid, pool_id=pool.pool_id, asset=pool.asset)
        self._synths[sid] = state
        logger.info(
            "Synthetic registered",
            extra={"event": "synth.register", "synth": sid[:10], "pool": pool.pool_id[:10]},
        )
        return state

    def get(self, synth_id: str) -> SyntheticState:
        try:
            return self._synths[synth_id]
        except KeyError:
            raise UnknownSynthError(synth_id) from None

    def __contains__(self, synth_id: object) -> bool:
        return synth_id in self._synths

    def __iter__(self) -> Iterator[SyntheticState]:
        return iter([self._synths[k] for k in sorted(self._synths)])

    def copy(self) -> "SyntheticLedger":
        copied = SyntheticLedger(self._balances, haircut_bps=self.haircut_bps)
        copied._synths = {k: replace(v) for k, v in self._synths.items()}
        return copied

    def restore(self, saved: "SyntheticLedger") -> None:
        self._synths = {k: replace(v) for k, v in saved._synths.items()}

    # -- internals -----------------------------------------------------------

    def _state_for(self, pool: Pool, synth_id: str) -> SyntheticState:
        state = self.get(synth_id)
        if state.pool_id != pool.pool_id:
            raise ValueError(f"synthetic {synth_id} is not backed by pool {pool.pool_id}")
        return state

    @staticmethod
    def _require_active(pool: Pool) -> None:
        if pool.frozen:
            raise PoolFrozenError(pool.pool_id)

    @staticmethod
    def _require_units(units: Amount) -> None:
        # checked before any transfer so a rejected mint moves nothing
        if units == 0:
            raise InsufficientOutputError("deposit too small to issue collateral units")

    def _receipt(
        self,
        state: SyntheticState,
        pool: Pool,
        account: Account,
        amount_in: Amount,
        amount_out: Amount,
        units: Amount,
    ) -> SynthReceipt:
        return SynthReceipt(
            synth_id=state.synth_id,
            account=account,
            amount_in=amount_in,
            amount_out=amount_out,
            units=units,
            synth=replace(state),
            pool=pool.snapshot(),
        )

    # -- minting -------------------------------------------------------------

    def mint_from_base(
        self,
        pool: Pool,
        synth_id: str,
        base_in: Amount,
        account: Account,
        *,
        min_out: Amount = 0,
    ) -> SynthReceipt:
        state = self._state_for(pool, synth_id)
        self._require_active(pool)
        require_uint("base_in", base_in)
        s = pool.state
        synth_out = swap_output(base_in, s.base_reserve, s.asset_reserve)
        if synth_out == 0 or synth_out < min_out:
            raise InsufficientOutputError(f"synthetic out ({synth_out}) < min_out ({max(min_out, 1)})")
        self._require_units(asymmetric_units(base_in, s.base_reserve, s.unit_supply))

        self._balances.transfer_in(account, BASE_ASSET, base_in)
        deposit = pool.add_liquidity_asymmetric(base_in, Side.BASE, synth_id)
        state.collateral += deposit.units
        state.debt += synth_out
        self._balances.mint_supply(synth_id, account, synth_out)

        logger.info(
            "Synthetic minted",
            extra={
                "event": "synth.mint",
                "synth": synth_id[:10],
                "source": "base",
                "amount_in": base_in,
                "amount_out": synth_out,
                "units": deposit.units,
            },
        )
        return self._receipt(state, pool, account, base_in, synth_out, deposit.units)

    def mint_from_asset(
        self,
        pool: Pool,
        synth_id: str,
        asset_in: Amount,
        account: Account,
        *,
        min_out: Amount = 0,
    ) -> SynthReceipt:
        state = self._state_for(pool, synth_id)
        self._require_active(pool)
        require_uint("asset_in", asset_in)
        s = pool.state
        depth = s.base_reserve
        base_in = swap_output(asset_in, s.asset_reserve, s.base_reserve)
        synth_out = swap_output(base_in, s.base_reserve - base_in, s.asset_reserve + asset_in)
        if synth_out == 0 or synth_out < min_out:
            raise InsufficientOutputError(f"synthetic out ({synth_out}) < min_out ({max(min_out, 1)})")
        self._require_units(asymmetric_units(base_in, depth, s.unit_supply))

        self._balances.transfer_in(account, pool.asset, asset_in)
        with pool.deferred_safety_check():
            pool.swap(asset_in, Direction.ASSET_TO_BASE)
            deposit = pool.add_liquidity_asymmetric(base_in, Side.BASE, synth_id, priced_against=depth)
        state.collateral += deposit.units
        state.debt += synth_out
        self._balances.mint_supply(synth_id, account, synth_out)

        logger.info(
            "Synthetic minted",
            extra={
                "event": "synth.mint",
                "synth": synth_id[:10],
                "source": "asset",
                "amount_in": asset_in,
                "amount_out": synth_out,
                "units": deposit.units,
            },
        )
        return self._receipt(state, pool, account, asset_in, synth_out, deposit.units)

    # -- burning -------------------------------------------------------------

    def _redemption(self, state: SyntheticState, pool: Pool, synth_in: Amount) -> tuple[Amount, Amount]:
        """Return ``(lp_share, base_value)`` for burning ``synth_in``."""
        require_uint("synth_in", synth_in)
        if synth_in == 0:
            raise ValueError("synth_in must be positive")
        if synth_in > state.debt:
            raise InsufficientUnitsError(f"burn {synth_in} exceeds outstanding debt {state.debt}")
        lp_share = state.collateral * synth_in // state.debt
        s = pool.state
        gross = swap_output(synth_in, s.asset_reserve, s.base_reserve)
        return lp_share, bps_of(gross, BPS_DENOM - self.haircut_bps)

    def _settle_burn(
        self,
        state: SyntheticState,
        pool: Pool,
        synth_in: Amount,
        lp_share: Amount,
        account: Account,
        *,
        base_out: Amount = 0,
        asset_out: Amount = 0,
    ) -> None:
        self._balances.burn_supply(state.synth_id, account, synth_in)
        pool.release_collateral(lp_share, state.synth_id, base_out=base_out, asset_out=asset_out)
        state.collateral -= lp_share
        state.debt -= synth_in

    def burn_to_base(
        self,
        pool: Pool,
        synth_id: str,
        synth_in: Amount,
        account: Account,
        *,
        min_out: Amount = 0,
    ) -> SynthReceipt:
        """Redeem ``synth_in`` for base; the haircut stays in the pool."""
        state = self._state_for(pool, synth_id)
        self._require_active(pool)
        lp_share, base_out = self._redemption(state, pool, synth_in)
        if base_out < min_out:
            raise InsufficientOutputError(f"base_out ({base_out}) < min_out ({min_out})")

        self._settle_burn(state, pool, synth_in, lp_share, account, base_out=base_out)
        self._balances.transfer_out(account, BASE_ASSET, base_out)

        logger.info(
            "Synthetic burned",
            extra={
                "event": "synth.burn",
                "synth": synth_id[:10],
                "target": "base",
                "amount_in": synth_in,
                "amount_out": base_out,
                "units": lp_share,
            },
        )
        return self._receipt(state, pool, account, synth_in, base_out, lp_share)

    def burn_to_asset(
        self,
        pool: Pool,
        synth_id: str,
        synth_in: Amount,
        account: Account,
        *,
        min_out: Amount = 0,
    ) -> SynthReceipt:
        """
        Redeem ``synth_in`` for the paired asset.

        The haircut base value is swapped into the asset against
        ``(base_reserve - base_value, asset_reserve)``; the base reserve is
        unchanged and the asset reserve pays the output.
        """
        state = self._state_for(pool, synth_id)
        self._require_active(pool)
        lp_share, base_value = self._redemption(state, pool, synth_in)
        s = pool.state
        if base_value >= s.base_reserve:
            raise InsufficientLiquidityError(
                f"redemption value {base_value} exceeds base reserve {s.base_reserve}"
            )
        asset_out = swap_output(base_value, s.base_reserve - base_value, s.asset_reserve)
        if asset_out < min_out:
            raise InsufficientOutputError(f"asset_out ({asset_out}) < min_out ({min_out})")

        self._settle_burn(state, pool, synth_in, lp_share, account, asset_out=asset_out)
        self._balances.transfer_out(account, pool.asset, asset_out)

        logger.info(
            "Synthetic burned",
            extra={
                "event": "synth.burn",
                "synth": synth_id[:10],
                "target": "asset",
                "amount_in": synth_in,
                "amount_out": asset_out,
                "units": lp_share,
            },
        )
        return self._receipt(state, pool, account, synth_in, asset_out, lp_share)
