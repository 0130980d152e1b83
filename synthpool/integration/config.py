"""
Configuration loading for deployments.

Precedence (lowest to highest): ``ExchangeConfig`` defaults, an optional YAML
file (flat mapping of field names), then ``SYNTHPOOL_*`` environment
variables. Integer variables are clamped to their valid range; malformed
values fall back to the lower-precedence value.
"""

from __future__ import annotations

import logging
import os
from dataclasses import fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from ..core.exchange import ExchangeConfig
from ..core.liquidity_math import GENESIS_MODES

ENV_PREFIX = "SYNTHPOOL_"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

_MAX_LOCK = 10**30
_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _env_int(
    name: str,
    default: int,
    *,
    lo: int,
    hi: int,
    env: Optional[Mapping[str, str]] = None,
) -> int:
    raw = (os.environ if env is None else env).get(name)
    if raw is None or not raw.strip():
        return int(default)
    try:
        v = int(raw.strip())
    except ValueError:
        return int(default)
    if v < lo:
        return int(lo)
    if v > hi:
        return int(hi)
    return int(v)


def _env_str(name: str, default: str, *, env: Optional[Mapping[str, str]] = None) -> str:
    raw = (os.environ if env is None else env).get(name)
    if raw is None:
        return default
    v = raw.strip()
    return v if v else default


def _env_bool(name: str, default: bool, *, env: Optional[Mapping[str, str]] = None) -> bool:
    v = _env_str(name, "", env=env).lower()
    if v in _TRUE:
        return True
    if v in _FALSE:
        return False
    return default


def _read_yaml(path: Union[str, Path]) -> Dict[str, Any]:
    obj = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    if obj is None:
        return {}
    if not isinstance(obj, Mapping):
        raise TypeError("config YAML must be a mapping")
    known = {f.name for f in fields(ExchangeConfig)}
    unknown = sorted(set(obj) - known)
    if unknown:
        raise ValueError(f"unknown config keys: {unknown}")
    return dict(obj)


def load_config(
    path: Optional[Union[str, Path]] = None,
    env: Optional[Mapping[str, str]] = None,
) -> ExchangeConfig:
    """
    Build an ``ExchangeConfig`` from YAML and the environment.

    ``path`` defaults to ``$SYNTHPOOL_CONFIG`` when set. ``env`` defaults to
    ``os.environ``.
    """
    environ = os.environ if env is None else env
    if path is None:
        path = environ.get(ENV_PREFIX + "CONFIG") or None
    values: Dict[str, Any] = _read_yaml(path) if path is not None else {}
    base = ExchangeConfig(**values)

    genesis = _env_str(ENV_PREFIX + "GENESIS_UNITS", base.genesis_units, env=environ)
    if genesis not in GENESIS_MODES:
        genesis = base.genesis_units

    return ExchangeConfig(
        freeze_threshold_bps=_env_int(
            ENV_PREFIX + "FREEZE_THRESHOLD_BPS", base.freeze_threshold_bps, lo=0, hi=10_000, env=environ
        ),
        redemption_haircut_bps=_env_int(
            ENV_PREFIX + "REDEMPTION_HAIRCUT_BPS", base.redemption_haircut_bps, lo=0, hi=10_000, env=environ
        ),
        min_units_lock=_env_int(ENV_PREFIX + "MIN_UNITS_LOCK", base.min_units_lock, lo=0, hi=_MAX_LOCK, env=environ),
        genesis_units=genesis,
        safety_check_on_commit=_env_bool(
            ENV_PREFIX + "SAFETY_CHECK_ON_COMMIT", base.safety_check_on_commit, env=environ
        ),
        require_curated_for_synths=_env_bool(
            ENV_PREFIX + "REQUIRE_CURATED_FOR_SYNTHS", base.require_curated_for_synths, env=environ
        ),
    )


def configure_logging(level: Optional[Union[int, str]] = None) -> int:
    """Configure root logging; ``level`` defaults to ``$SYNTHPOOL_LOG_LEVEL`` or WARNING."""
    if level is None:
        level = _env_str(ENV_PREFIX + "LOG_LEVEL", "WARNING")
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ValueError(f"unknown log level: {level}")
        level = resolved
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("synthpool").setLevel(level)
    return level
