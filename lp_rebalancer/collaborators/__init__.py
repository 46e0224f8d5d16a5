"""
Collaborator interfaces and the in-package implementations of them.
"""

from .base import (
    CollaboratorError,
    MarketDataSource,
    Notifier,
    PositionSource,
    RebalanceExecutor,
    TransientSourceError,
)
from .notifications import FanOutNotifier, LoggingNotifier, create_notifier
from .volume_cache import CachedMarketData, create_volume_cache

__all__ = [
    "CollaboratorError",
    "TransientSourceError",
    "PositionSource",
    "MarketDataSource",
    "RebalanceExecutor",
    "Notifier",
    "LoggingNotifier",
    "FanOutNotifier",
    "create_notifier",
    "CachedMarketData",
    "create_volume_cache",
]
