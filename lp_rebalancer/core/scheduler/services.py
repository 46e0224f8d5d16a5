"""
Assembles the monitoring services from configuration.

Position, market-data and execution collaborators are supplied by the caller;
stores, the volume cache, the alert channel and the decision engine are
built here from the settings.
"""

import logging
from datetime import timedelta
from typing import Optional

from .jobs import MonitoringServices
from ..models import Snapshot
from ..storage.base import ConnectionError
from ..storage.json_storage import JsonSnapshotLog, JsonStorage
from ..storage.snapshot_store import PositionAnalyticsStore, RebalanceHistoryStore, SnapshotStore
from ...analysis.decision import DecisionEngine
from ...collaborators.base import MarketDataSource, PositionSource, RebalanceExecutor
from ...collaborators.notifications import create_notifier
from ...collaborators.volume_cache import create_volume_cache
from ...utils.clock import Clock, utc_now

logger = logging.getLogger(__name__)


async def open_json_storage(base_path) -> JsonStorage:
    """
    Connect a JSON storage rooted at base_path.

    Raises:
        ConnectionError: If the directory is not usable after connecting
    """
    storage = JsonStorage({'base_path': base_path})
    await storage.connect()
    if not await storage.health_check():
        raise ConnectionError(f"JSON storage at {base_path} is not accessible")
    return storage


async def build_services(
    config_manager,
    positions: Optional[PositionSource],
    market_data: Optional[MarketDataSource],
    executor: Optional[RebalanceExecutor] = None,
    clock: Clock = utc_now,
) -> MonitoringServices:
    """
    Build everything the monitoring jobs need.

    Args:
        config_manager: ConfigManager with monitoring, cache and nats sections
        positions: Source of the owner's positions
        market_data: Pool and volume data source, wrapped in the volume cache
        executor: Rebalance executor; without one decisions are never applied
        clock: Time source shared by the stores and the jobs

    Raises:
        ConfigError: If the combined configuration is invalid
        ConnectionError: If a data directory cannot be used
    """
    config_manager.validate_configuration()
    settings = config_manager.monitoring
    settings.ensure_directories()

    snapshot_storage = await open_json_storage(settings.snapshot_dir)
    analytics_storage = await open_json_storage(settings.analytics_dir)

    snapshots = SnapshotStore(
        JsonSnapshotLog(snapshot_storage),
        Snapshot,
        retention=timedelta(days=settings.INTRADAY_RETENTION_DAYS),
        clock=clock,
    )
    analytics = PositionAnalyticsStore(
        JsonSnapshotLog(analytics_storage, "positions"),
        retention=timedelta(days=settings.ANALYTICS_RETENTION_DAYS),
        clock=clock,
    )
    history = RebalanceHistoryStore(analytics_storage, "rebalance_history")

    cached_market = None
    if market_data is not None:
        cached_market = await create_volume_cache(market_data, config_manager.cache)

    notifier = await create_notifier(config_manager)

    if settings.AUTO_APPLY and executor is None:
        logger.warning("AUTO_APPLY is enabled but no executor was supplied; decisions will only be reported")

    logger.info(
        f"Monitoring services ready: snapshots in {settings.snapshot_dir}, "
        f"analytics in {settings.analytics_dir}, policy {settings.DECISION_POLICY}"
    )

    return MonitoringServices(
        engine=DecisionEngine.from_settings(cached_market, settings),
        snapshots=snapshots,
        analytics=analytics,
        history=history,
        notifier=notifier,
        settings=settings,
        positions=positions,
        executor=executor,
        clock=clock,
    )
