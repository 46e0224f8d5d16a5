"""
Assembling the monitoring services from environment configuration.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest

from lp_rebalancer.analysis import CostBenefitPolicy, ScoringPolicy
from lp_rebalancer.collaborators import CachedMarketData, LoggingNotifier
from lp_rebalancer.config import ConfigError, get_config
from lp_rebalancer.core.models import PoolInfo, RebalanceHistoryEntry, ReasonCode, VolumeData
from lp_rebalancer.core.scheduler import MonitoringConfig, build_services, start_monitoring
from lp_rebalancer.core.storage import ConnectionError, DataError, MemoryCache, RedisStorage

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def market_data():
    source = AsyncMock()
    source.get_pool_info.return_value = PoolInfo(pool_id="pool-a", price=140.0, active_bin=0, apr=36.5)
    source.get_volume.return_value = VolumeData(
        volume_24h=2_000_000.0, volume_ratio=1.1, fees_24h=1_000.0, total_liquidity=100_000.0)
    return source


class TestBuildServices:
    """Test cases for the composition of stores, cache, notifier and engine."""

    async def test_defaults(self, tmp_path, market_data):
        services = await build_services(get_config(), positions=None, market_data=market_data)

        assert (tmp_path / "data" / "snapshots" / "hourly").is_dir()
        assert (tmp_path / "data" / "analytics").is_dir()
        assert services.snapshots.retention == timedelta(days=7)
        assert services.analytics.retention == timedelta(days=90)
        assert isinstance(services.notifier, LoggingNotifier)
        assert isinstance(services.engine.market_data, CachedMarketData)
        assert isinstance(services.engine.market_data.cache, MemoryCache)
        assert isinstance(services.engine.policy, CostBenefitPolicy)
        assert services.engine.timeout == 5.0
        assert services.executor is None

    async def test_settings_flow_into_services(self, monkeypatch, market_data):
        monkeypatch.setenv("INTRADAY_RETENTION_DAYS", "3")
        monkeypatch.setenv("ANALYTICS_RETENTION_DAYS", "30")
        monkeypatch.setenv("DECISION_POLICY", "scoring")
        monkeypatch.setenv("VOLUME_CACHE_TTL", "60")

        services = await build_services(get_config(force_reload=True), None, market_data)

        assert services.snapshots.retention == timedelta(days=3)
        assert services.analytics.retention == timedelta(days=30)
        assert isinstance(services.engine.policy, ScoringPolicy)
        assert services.engine.market_data.ttl == 60

    async def test_stores_write_under_data_dir(self, tmp_path, market_data):
        services = await build_services(get_config(), None, market_data, clock=lambda: NOW)

        scheduler = start_monitoring(
            MonitoringConfig(owner="wallet-1", active_pools=["pool-a"], fire_immediately=False),
            services,
        )
        try:
            await scheduler.run_job("hourly_snapshots")
        finally:
            scheduler.stop()

        services.history.record(RebalanceHistoryEntry(
            old_position_id="pos-0",
            new_position_id="pos-1",
            pool_id="pool-a",
            reason_code=ReasonCode.OUT_OF_RANGE,
            reason="out of range",
            fees_claimed_usd=1.0,
            transaction_cost_usd=0.028,
            old_range=(-20, 20),
            new_range=(23, 47),
            timestamp=NOW,
        ))

        assert (tmp_path / "data" / "snapshots" / "hourly" / "pool-a.json").exists()
        assert (tmp_path / "data" / "analytics" / "rebalance_history.json").exists()
        assert len(services.snapshots.load("pool-a", timedelta(hours=1))) == 1

    async def test_unreachable_redis_falls_back_to_memory(self, monkeypatch, market_data):
        monkeypatch.setenv("CACHE_BACKEND", "redis")

        with patch.object(RedisStorage, "connect", AsyncMock(side_effect=DataError("refused"))):
            services = await build_services(get_config(force_reload=True), None, market_data)

        assert isinstance(services.engine.market_data.cache, MemoryCache)

    async def test_invalid_configuration_is_rejected(self, monkeypatch, market_data):
        monkeypatch.setenv("INTRADAY_CONTEXT_HOURS", "200")

        with pytest.raises(ConfigError):
            await build_services(get_config(force_reload=True), None, market_data)

    async def test_inaccessible_data_dir(self, market_data):
        with patch("lp_rebalancer.core.scheduler.services.JsonStorage.health_check",
                   AsyncMock(return_value=False)):
            with pytest.raises(ConnectionError):
                await build_services(get_config(), None, market_data)

    async def test_without_market_data(self):
        services = await build_services(get_config(), None, None)

        assert services.engine.market_data is None
