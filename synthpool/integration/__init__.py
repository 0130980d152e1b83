"""
Deployment integration: configuration, logging and snapshots
"""

from .config import configure_logging, load_config
from .snapshot import ExchangeSnapshot, context_from_snapshot, snapshot_from_context

__all__ = [
    "configure_logging",
    "load_config",
    "ExchangeSnapshot",
    "context_from_snapshot",
    "snapshot_from_context",
]
