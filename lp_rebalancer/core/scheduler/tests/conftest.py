import pytest
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock

from lp_rebalancer.analysis.decision import CostBenefitPolicy, DecisionEngine
from lp_rebalancer.core.models import PoolInfo, Position, Snapshot, VolumeData
from lp_rebalancer.core.scheduler import MonitoringConfig, MonitoringJobs, MonitoringServices
from lp_rebalancer.core.storage import (
    JsonStorage,
    MemorySnapshotLog,
    PositionAnalyticsStore,
    RebalanceHistoryStore,
    SnapshotStore,
)


class FakeClock:
    """Settable UTC clock."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 10, 10, 17, tzinfo=timezone.utc))


@pytest.fixture
def settings():
    return SimpleNamespace(
        HOURLY_SNAPSHOT_MINUTES=60,
        QUICK_CHECK_MINUTES=30,
        TWELVE_HOUR_ANALYSIS_HOURS=[8, 20],
        DAILY_REVIEW_HOUR=0,
        FIRE_ON_START=True,
        FETCH_TIMEOUT_SECONDS=1.0,
        VOLATILITY_WINDOW_HOURS=6,
        INTRADAY_CONTEXT_HOURS=12,
        NOTIFY_MIN_URGENCY="HIGH",
        AUTO_APPLY=False,
        REBALANCE_BINS_PER_SIDE=12,
        REBALANCE_SLIPPAGE_BPS=100,
    )


@pytest.fixture
def make_position():
    def _make(active_bin=0, position_id="pos-1", lower_bin=-20, upper_bin=20, **kwargs):
        return Position(
            position_id=position_id,
            pool_id=kwargs.pop('pool_id', 'pool-a'),
            lower_bin=lower_bin,
            upper_bin=upper_bin,
            active_bin=active_bin,
            value_usd=kwargs.pop('value_usd', 1_000.0),
            **kwargs,
        )
    return _make


@pytest.fixture
def market_data():
    """$10/day of fees for a $1,000 position at a 1.1x volume ratio."""
    source = AsyncMock()
    source.get_volume.return_value = VolumeData(
        volume_24h=2_000_000.0, volume_ratio=1.1, fees_24h=1_000.0, total_liquidity=100_000.0)
    source.get_pool_info.return_value = PoolInfo(pool_id='pool-a', price=140.0, active_bin=0, apr=36.5)
    return source


@pytest.fixture
def position_source():
    source = AsyncMock()
    source.get_all_positions.return_value = []
    return source


@pytest.fixture
def notifier():
    return AsyncMock()


@pytest.fixture
def executor():
    return AsyncMock()


@pytest.fixture
def services(tmp_path, clock, settings, market_data, position_source, notifier, executor):
    return MonitoringServices(
        engine=DecisionEngine(market_data, CostBenefitPolicy(rebalance_cost=0.028), timeout=1.0),
        snapshots=SnapshotStore(MemorySnapshotLog(), Snapshot, retention=timedelta(days=7), clock=clock),
        analytics=PositionAnalyticsStore(MemorySnapshotLog(), clock=clock),
        history=RebalanceHistoryStore(JsonStorage({'base_path': tmp_path})),
        notifier=notifier,
        settings=settings,
        positions=position_source,
        executor=executor,
        clock=clock,
    )


@pytest.fixture
def config():
    return MonitoringConfig(owner="wallet-1", active_pools=["pool-a", "pool-b"])


@pytest.fixture
def jobs(config, services):
    return MonitoringJobs(config, services)


@pytest.fixture
def record_snapshot(services, clock):
    """Write a pool snapshot some hours before the current clock time."""
    def _record(hours_ago, price=140.0, volume_24h=1_000.0, pool_id="pool-a"):
        services.snapshots.record(Snapshot(
            timestamp=clock.now - timedelta(hours=hours_ago),
            pool_id=pool_id,
            price=price,
            volume_24h=volume_24h,
            volume_ratio=1.0,
            active_bin=0,
        ))
    return _record
