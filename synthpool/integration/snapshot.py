"""
Exchange state snapshot encoding.

Goals:
- Deterministic JSON serialization for hashing / event emission.
- Round-trippable into a live ``ExchangeContext``.
- Explicit versioning.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from ..core.exchange import ExchangeConfig, ExchangeContext
from ..core.pool import PoolState, PoolStatus
from ..core.synth import SyntheticState

SNAPSHOT_VERSION = 1


def canonical_json_bytes(value: Any) -> bytes:
    """Sorted-key, whitespace-free UTF-8 JSON. Floats are rejected."""
    _reject_floats(value)
    text = json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
    return text.encode("utf-8")


def _reject_floats(value: Any) -> None:
    if isinstance(value, float):
        raise TypeError("floats are not allowed in canonical encoding")
    if isinstance(value, dict):
        for v in value.values():
            _reject_floats(v)
    elif isinstance(value, (list, tuple)):
        for item in value:
            _reject_floats(item)


def _require_str(value: Any, *, name: str) -> str:
    if not isinstance(value, str):
        raise TypeError(f"{name} must be a string")
    if not value:
        raise ValueError(f"{name} must be non-empty")
    return value


def _require_int(value: Any, *, name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int")
    if value < 0:
        raise ValueError(f"{name} must be non-negative")
    return int(value)


def _entries(snapshot: Mapping[str, Any], key: str) -> list:
    entries = snapshot.get(key)
    if entries is None:
        return []
    if not isinstance(entries, list):
        raise TypeError(f"snapshot.{key} must be a list")
    for entry in entries:
        if not isinstance(entry, Mapping):
            raise TypeError(f"snapshot.{key} entries must be objects")
    return entries


@dataclass(frozen=True)
class ExchangeSnapshot:
    """Deterministic, versioned snapshot of an ``ExchangeContext``."""

    version: int
    data: Dict[str, Any]

    def canonical_bytes(self) -> bytes:
        return canonical_json_bytes(self.data)

    def commitment_hex(self) -> str:
        return hashlib.sha256(b"synthpool_snapshot" + self.canonical_bytes()).hexdigest()


def pool_to_dict(state: PoolState) -> Dict[str, Any]:
    return {
        "pool_id": state.pool_id,
        "asset": state.asset,
        "base_reserve": int(state.base_reserve),
        "asset_reserve": int(state.asset_reserve),
        "unit_supply": int(state.unit_supply),
        "last_rate": int(state.last_rate),
        "status": state.status.value,
        "created_at": int(state.created_at),
    }


def synth_to_dict(state: SyntheticState) -> Dict[str, Any]:
    return {
        "synth_id": state.synth_id,
        "pool_id": state.pool_id,
        "asset": state.asset,
        "collateral": int(state.collateral),
        "debt": int(state.debt),
    }


def snapshot_from_context(ctx: ExchangeContext) -> ExchangeSnapshot:
    balances = [
        {"account": acct, "token": token, "amount": int(amount)}
        for (acct, token), amount in ctx.balances.get_all_balances().items()
    ]
    balances.sort(key=lambda e: (e["account"], e["token"]))

    units = [
        {"holder": holder, "pool_id": pool_id, "amount": int(amount)}
        for (holder, pool_id), amount in ctx.units.get_all_balances().items()
    ]
    units.sort(key=lambda e: (e["holder"], e["pool_id"]))

    pools = sorted((pool_to_dict(p.state) for p in ctx.pools.values()), key=lambda e: e["pool_id"])
    synths = [synth_to_dict(s) for s in ctx.synths]
    for entry in synths:
        entry["listed"] = ctx.synth_registry.is_synth(entry["synth_id"])
        entry["supply"] = int(ctx.balances.total_supply(entry["synth_id"]))

    data: Dict[str, Any] = {
        "version": SNAPSHOT_VERSION,
        "balances": balances,
        "units": units,
        "pools": pools,
        "curated": sorted(a for a in ctx.pool_registry.assets() if ctx.pool_registry.is_curated(a)),
        "synths": synths,
    }
    return ExchangeSnapshot(version=SNAPSHOT_VERSION, data=data)


def context_from_snapshot(
    snapshot: Mapping[str, Any],
    *,
    config: Optional[ExchangeConfig] = None,
) -> ExchangeContext:
    """Rebuild a context from ``ExchangeSnapshot.data``."""
    if not isinstance(snapshot, Mapping):
        raise TypeError("snapshot must be a mapping")
    version = snapshot.get("version", SNAPSHOT_VERSION)
    if version != SNAPSHOT_VERSION:
        raise ValueError(f"unsupported snapshot version: {version}")

    ctx = ExchangeContext(config)

    for entry in _entries(snapshot, "balances"):
        ctx.balances.set(
            _require_str(entry.get("account"), name="balance.account"),
            _require_str(entry.get("token"), name="balance.token"),
            _require_int(entry.get("amount"), name="balance.amount"),
        )

    for entry in _entries(snapshot, "units"):
        ctx.units.set(
            _require_str(entry.get("holder"), name="units.holder"),
            _require_str(entry.get("pool_id"), name="units.pool_id"),
            _require_int(entry.get("amount"), name="units.amount"),
        )

    for entry in _entries(snapshot, "pools"):
        asset = _require_str(entry.get("asset"), name="pool.asset")
        if asset in ctx.pools:
            raise ValueError(f"duplicate pool entry for asset {asset}")
        status_raw = entry.get("status", PoolStatus.ACTIVE.value)
        try:
            status = PoolStatus(str(status_raw))
        except ValueError as exc:
            raise ValueError(f"invalid pool status: {status_raw}") from exc
        pool_id = _require_str(entry.get("pool_id"), name="pool.pool_id")
        pool = ctx.new_pool(pool_id, asset)
        pool.state = PoolState(
            pool_id=pool_id,
            asset=asset,
            base_reserve=_require_int(entry.get("base_reserve", 0), name="base_reserve"),
            asset_reserve=_require_int(entry.get("asset_reserve", 0), name="asset_reserve"),
            unit_supply=_require_int(entry.get("unit_supply", 0), name="unit_supply"),
            last_rate=_require_int(entry.get("last_rate", 0), name="last_rate"),
            status=status,
            created_at=_require_int(entry.get("created_at", 0), name="created_at"),
        )
        ctx.pool_registry.add_pool(asset, pool_id)

    curated = snapshot.get("curated") or []
    if not isinstance(curated, list):
        raise TypeError("snapshot.curated must be a list")
    for asset in curated:
        ctx.pool_registry.add_curated(_require_str(asset, name="curated asset"))

    for entry in _entries(snapshot, "synths"):
        asset = _require_str(entry.get("asset"), name="synth.asset")
        synth_id = ctx.synth_registry.create_synth(asset)
        if synth_id != entry.get("synth_id"):
            raise ValueError(f"synth id mismatch for {asset}: {entry.get('synth_id')}")
        state = ctx.synths.register(ctx.pool_for(asset), synth_id)
        state.collateral = _require_int(entry.get("collateral", 0), name="synth.collateral")
        state.debt = _require_int(entry.get("debt", 0), name="synth.debt")
        ctx.balances.restore_supply(synth_id, _require_int(entry.get("supply", state.debt), name="synth.supply"))
        if not entry.get("listed", True):
            ctx.synth_registry.remove_synth(asset)

    return ctx
