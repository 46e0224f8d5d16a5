"""
Retention-bounded snapshot stores and the rebalance history log.

Snapshot stores are best-effort: write failures are logged and reported as a
False return value, read failures degrade to "no history". Neither ever
raises into the decision path.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Generic, Iterable, List, Optional, Type, TypeVar

from .base import SnapshotLog, StorageError
from .json_storage import JsonStorage
from ..models import PositionSnapshot, RebalanceHistoryEntry
from ...utils.clock import Clock, utc_now

logger = logging.getLogger(__name__)

T = TypeVar('T')

INTRADAY_RETENTION = timedelta(days=7)
ANALYTICS_RETENTION = timedelta(days=90)


@dataclass
class SnapshotRange(Generic[T]):
    """Earliest and latest record of a window plus the full sequence."""

    first: Optional[T] = None
    latest: Optional[T] = None
    records: List[T] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.records


class SnapshotStore(Generic[T]):
    """
    Append-only log of timestamped records keyed by pool or position.

    Every write prunes records older than the retention window for that key.
    """

    def __init__(
        self,
        log: SnapshotLog,
        record_type: Type[T],
        retention: timedelta,
        clock: Clock = utc_now,
        name: str = "snapshots",
    ):
        self.log = log
        self.record_type = record_type
        self.retention = retention
        self.clock = clock
        self.name = name

    def record(self, snapshot: T) -> bool:
        """
        Append one snapshot and prune the key's log to the retention window.

        Returns:
            True if the write succeeded, False if it failed (failure is logged)
        """
        key = snapshot.key
        cutoff = self.clock() - self.retention

        try:
            self.log.append(key, snapshot.to_dict(), retain_since=cutoff)
            logger.debug(f"Recorded {self.name} entry for {key}")
            return True
        except StorageError as e:
            logger.warning(f"Failed to record {self.name} entry for {key}: {e}")
            return False

    def load(self, key: str, window: timedelta) -> List[T]:
        """
        Records for key with timestamp >= now - window, oldest first.

        Missing and unreadable logs both yield an empty list.
        """
        since = self.clock() - window

        try:
            raw = self.log.load(key, since=since)
        except StorageError as e:
            logger.warning(f"Unreadable {self.name} log for {key}, treating as empty: {e}")
            return []

        records = []
        for item in raw:
            try:
                records.append(self.record_type.from_dict(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed {self.name} record for {key}: {e!r}")

        return sorted(records, key=lambda r: r.timestamp)

    def range(self, key: str, window: timedelta) -> SnapshotRange[T]:
        records = self.load(key, window)
        if not records:
            return SnapshotRange()
        return SnapshotRange(first=records[0], latest=records[-1], records=records)

    def prune(self, key: str) -> int:
        """Apply retention to a key outside of a write. Returns records removed."""
        try:
            return self.log.prune(key, self.clock() - self.retention)
        except StorageError as e:
            logger.warning(f"Failed to prune {self.name} log for {key}: {e}")
            return 0

    def keys(self) -> List[str]:
        try:
            return self.log.keys()
        except StorageError as e:
            logger.warning(f"Failed to list {self.name} logs: {e}")
            return []


class PositionAnalyticsStore(SnapshotStore[PositionSnapshot]):
    """Daily per-position analytics log with portfolio-level summaries."""

    def __init__(self, log: SnapshotLog, retention: timedelta = ANALYTICS_RETENTION,
                 clock: Clock = utc_now):
        super().__init__(log, PositionSnapshot, retention, clock=clock, name="analytics")

    def portfolio_stats(self, position_ids: Optional[Iterable[str]] = None,
                        days: int = 30) -> Dict[str, Any]:
        """
        Aggregate fees and costs over the last `days` days.

        Fees per position are the change between the first and latest snapshot
        in the window; gas cost is summed over every snapshot.
        """
        ids = list(position_ids) if position_ids is not None else self.keys()
        window = timedelta(days=days)

        total_fees = 0.0
        total_gas = 0.0
        tracked = 0

        for position_id in ids:
            span = self.range(position_id, window)
            if span.is_empty:
                continue
            tracked += 1
            total_fees += max(0.0, span.latest.fees_usd - span.first.fees_usd)
            total_gas += sum(s.gas_cost_usd for s in span.records)

        return {
            'position_count': tracked,
            'total_fees_usd': total_fees,
            'total_gas_cost_usd': total_gas,
            'net_usd': total_fees - total_gas,
            'average_daily_fees_usd': total_fees / days if days > 0 else 0.0,
            'days': days,
        }


class RebalanceHistoryStore:
    """
    Append-only audit log of executed rebalances, kept as a single JSON array.

    Entries are never pruned.
    """

    def __init__(self, storage: JsonStorage, filename: str = "rebalance_history"):
        self.storage = storage
        self.filename = filename

    def record(self, entry: RebalanceHistoryEntry) -> bool:
        try:
            entries = self.storage.load(self.filename) or []
            entries.append(entry.to_dict())
            self.storage.save(self.filename, entries)
            logger.info(
                f"Recorded rebalance {entry.old_position_id} -> {entry.new_position_id} "
                f"({entry.reason_code.value})"
            )
            return True
        except StorageError as e:
            logger.warning(f"Failed to record rebalance history: {e}")
            return False

    def load_all(self) -> List[RebalanceHistoryEntry]:
        try:
            raw = self.storage.load(self.filename) or []
            return [RebalanceHistoryEntry.from_dict(item) for item in raw]
        except (StorageError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Unreadable rebalance history, treating as empty: {e}")
            return []

    def for_position(self, position_id: str) -> List[RebalanceHistoryEntry]:
        """Entries where the position was either the old or the new one."""
        return [
            e for e in self.load_all()
            if position_id in (e.old_position_id, e.new_position_id)
        ]

    def last_rebalance_at(self, position_id: str) -> Optional[datetime]:
        """When position_id was created by a rebalance, if it was."""
        created = [e.timestamp for e in self.load_all() if e.new_position_id == position_id]
        return max(created) if created else None
