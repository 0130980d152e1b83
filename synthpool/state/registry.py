"""
Pool and synthetic registries.

Registry membership and curation are independent states:
- A pool stays registered when it loses curated status.
- A synthetic stays resolvable through ``get_synth`` after it is delisted;
  only ``is_synth`` and ``synth_count`` change. Its collateral and debt are
  untouched so holders can still redeem.
"""

from __future__ import annotations

import hashlib
from typing import Dict, Optional, Set

from .balances import TokenId


def _derive_id(tag: bytes, asset: TokenId) -> str:
    if not isinstance(asset, str) or not asset:
        raise ValueError("asset must be a non-empty string")
    return "0x" + hashlib.sha256(tag + asset.encode("utf-8")).hexdigest()


def compute_pool_id(asset: TokenId) -> str:
    """Deterministic pool id: H("SynthPoolPool" || asset)."""
    return _derive_id(b"SynthPoolPool", asset)


def compute_synth_id(asset: TokenId) -> str:
    """Deterministic synthetic token id: H("SynthPoolSynth" || asset)."""
    return _derive_id(b"SynthPoolSynth", asset)


class PoolRegistry:
    """Maps each paired asset to its pool and tracks curation."""

    def __init__(self) -> None:
        self._pools: Dict[TokenId, str] = {}
        self._curated: Set[TokenId] = set()

    def add_pool(self, asset: TokenId, pool_id: str) -> None:
        existing = self._pools.get(asset)
        if existing is not None and existing != pool_id:
            raise ValueError(f"asset {asset} already has pool {existing}")
        self._pools[asset] = pool_id

    def get_pool(self, asset: TokenId) -> Optional[str]:
        return self._pools.get(asset)

    def is_pool(self, pool_id: str) -> bool:
        return pool_id in self._pools.values()

    def add_curated(self, asset: TokenId) -> None:
        if asset not in self._pools:
            raise ValueError(f"cannot curate unregistered asset {asset}")
        self._curated.add(asset)

    def remove_curated(self, asset: TokenId) -> None:
        self._curated.discard(asset)

    def is_curated(self, asset: TokenId) -> bool:
        return asset in self._curated

    @property
    def curated_count(self) -> int:
        return len(self._curated)

    def assets(self) -> list[TokenId]:
        return sorted(self._pools)

    def copy(self) -> "PoolRegistry":
        copied = PoolRegistry()
        copied._pools = dict(self._pools)
        copied._curated = set(self._curated)
        return copied

    def restore(self, saved: "PoolRegistry") -> None:
        self._pools = dict(saved._pools)
        self._curated = set(saved._curated)


class SynthRegistry:
    """Maps each paired asset to its synthetic token and tracks listing."""

    def __init__(self) -> None:
        self._by_asset: Dict[TokenId, str] = {}
        self._listed: Set[str] = set()

    def create_synth(self, asset: TokenId) -> str:
        if asset in self._by_asset:
            raise ValueError(f"synthetic for {asset} already exists: {self._by_asset[asset]}")
        synth_id = compute_synth_id(asset)
        self._by_asset[asset] = synth_id
        self._listed.add(synth_id)
        return synth_id

    def get_synth(self, asset: TokenId) -> Optional[str]:
        return self._by_asset.get(asset)

    def is_synth(self, synth_id: str) -> bool:
        return synth_id in self._listed

    def remove_synth(self, asset: TokenId) -> None:
        """Delist the asset's synthetic; the lookup mapping is kept."""
        synth_id = self._by_asset.get(asset)
        if synth_id is not None:
            self._listed.discard(synth_id)

    def add_synth(self, synth_id: str) -> None:
        """Relist a previously created synthetic."""
        if synth_id not in self._by_asset.values():
            raise ValueError(f"unknown synthetic {synth_id}")
        self._listed.add(synth_id)

    @property
    def synth_count(self) -> int:
        return len(self._listed)

    def copy(self) -> "SynthRegistry":
        copied = SynthRegistry()
        copied._by_asset = dict(self._by_asset)
        copied._listed = set(self._listed)
        return copied

    def restore(self, saved: "SynthRegistry") -> None:
        self._by_asset = dict(saved._by_asset)
        self._listed = set(saved._listed)
