"""
Storage layer for the rebalance monitor.

This module provides:
- Snapshot logs (JSON file per key, or in-memory) behind the SnapshotLog interface
- Retention-bounded snapshot stores for pool observations and position analytics
- The append-only rebalance history log
- TTL caches (Redis or in-memory) for short-lived market data

Usage:
    from lp_rebalancer.core.storage import JsonStorage, JsonSnapshotLog, SnapshotStore

    storage = JsonStorage({'base_path': settings.DATA_DIR})
    store = SnapshotStore(JsonSnapshotLog(storage, 'snapshots/hourly'), Snapshot,
                          retention=timedelta(days=7))
    store.record(snapshot)
    history = store.load(pool_id, timedelta(hours=12))
"""

from .base import (
    CacheInterface,
    ConnectionError,
    DataError,
    SnapshotLog,
    StorageBase,
    StorageError,
)
from .json_storage import JsonSnapshotLog, JsonStorage, MemorySnapshotLog
from .redis import MemoryCache, RedisStorage
from .snapshot_store import (
    ANALYTICS_RETENTION,
    INTRADAY_RETENTION,
    PositionAnalyticsStore,
    RebalanceHistoryStore,
    SnapshotRange,
    SnapshotStore,
)

__all__ = [
    "StorageBase",
    "StorageError",
    "ConnectionError",
    "DataError",
    "SnapshotLog",
    "CacheInterface",
    "JsonStorage",
    "JsonSnapshotLog",
    "MemorySnapshotLog",
    "RedisStorage",
    "MemoryCache",
    "SnapshotStore",
    "SnapshotRange",
    "PositionAnalyticsStore",
    "RebalanceHistoryStore",
    "INTRADAY_RETENTION",
    "ANALYTICS_RETENTION",
]
