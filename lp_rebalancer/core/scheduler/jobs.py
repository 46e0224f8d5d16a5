"""
The monitoring tiers and the shared analysis path.

Each tier iterates its pools or positions independently: a failure on one
is logged and the loop moves on. Every tier returns a small stats dict.
"""

import asyncio
import logging
import math
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, List, Optional

from .base import MonitoringConfig
from ..models import (
    ExecutionOptions,
    PositionSnapshot,
    Position,
    ReasonCode,
    RebalanceDecision,
    RebalanceHistoryEntry,
    Snapshot,
    Urgency,
)
from ..storage.snapshot_store import PositionAnalyticsStore, RebalanceHistoryStore, SnapshotStore
from ...analysis.bins import bin_utilization, compute_geometry
from ...analysis.decision import DecisionEngine, ScoringPolicy
from ...analysis.fees import fee_performance
from ...analysis.trend import analyze, calculate_volatility
from ...collaborators.base import Notifier, PositionSource, RebalanceExecutor, TransientSourceError
from ...utils.clock import Clock, parse_timestamp, utc_now

logger = logging.getLogger(__name__)

# Quick-check thresholds, in bins from the nearest edge
ESCALATE_EDGE_BINS = 3
URGENT_EDGE_BINS = 10
ESCALATE_VOLUME_RATIO = 1.5

# Twelve-hour trigger
TWELVE_HOUR_EDGE_BINS = 10
STALE_POSITION_HOURS = 12
VOLUME_MOMENTUM_TRIGGER = 50.0

URGENCY_SEVERITY = {
    Urgency.CRITICAL: "critical",
    Urgency.HIGH: "high",
    Urgency.MEDIUM: "medium",
    Urgency.LOW: "low",
    Urgency.NONE: "info",
}


@dataclass
class UrgencyCheck:
    """Outcome of the cheap 30-minute check for one position."""
    is_urgent: bool
    escalate: bool
    reason: str


@dataclass
class MonitoringServices:
    """Collaborators and stores the tiers operate on."""
    engine: DecisionEngine
    snapshots: SnapshotStore
    analytics: PositionAnalyticsStore
    history: RebalanceHistoryStore
    notifier: Notifier
    settings: Any
    positions: Optional[PositionSource] = None
    executor: Optional[RebalanceExecutor] = None
    clock: Clock = utc_now


class MonitoringJobs:
    """
    Hourly snapshots, 30-minute urgency checks, twelve-hour analysis and the
    daily review, plus the full analysis path they escalate into.
    """

    def __init__(self, config: MonitoringConfig, services: MonitoringServices):
        self.config = config
        self.services = services
        self.settings = services.settings

        self.min_notify_urgency = Urgency.from_name(self.settings.NOTIFY_MIN_URGENCY)
        self.timeout = self.settings.FETCH_TIMEOUT_SECONDS

    # ------------------------------------------------------------------
    # Hourly snapshots
    # ------------------------------------------------------------------

    async def hourly_snapshots(self) -> Dict[str, int]:
        """Record one Snapshot per active pool."""
        recorded = 0
        failed = 0

        for pool_id in self.config.active_pools:
            try:
                if await self.record_pool_snapshot(pool_id):
                    recorded += 1
                else:
                    failed += 1
            except Exception as e:
                failed += 1
                logger.warning(f"Snapshot for pool {pool_id} failed: {e}")

        logger.info(f"Hourly snapshots: {recorded} recorded, {failed} failed")
        return {'recorded': recorded, 'failed': failed, 'total': len(self.config.active_pools)}

    async def record_pool_snapshot(self, pool_id: str) -> bool:
        engine = self.services.engine

        pool, volume = await asyncio.gather(
            engine.fetch_pool_info(pool_id),
            engine.fetch_volume(pool_id),
        )
        if pool is None or volume is None:
            logger.warning(f"Skipping snapshot for {pool_id}: market data unavailable")
            return False

        window = timedelta(hours=self.settings.VOLATILITY_WINDOW_HOURS)
        recent = self.services.snapshots.load(pool_id, window)

        snapshot = Snapshot(
            timestamp=self.services.clock(),
            pool_id=pool_id,
            price=pool.price,
            volume_24h=volume.volume_24h,
            volume_ratio=volume.volume_ratio,
            active_bin=pool.active_bin,
            volatility=calculate_volatility(recent),
        )
        return self.services.snapshots.record(snapshot)

    # ------------------------------------------------------------------
    # Position loading
    # ------------------------------------------------------------------

    async def load_positions(self) -> Optional[List[Position]]:
        """
        Positions to evaluate this cycle.

        Returns None when no owner or position source is configured (the
        cycle is skipped). Source failures yield an empty list.
        """
        source = self.services.positions
        if source is None or not self.config.owner:
            logger.warning("No owner or position source configured, skipping cycle")
            return None

        try:
            positions = await asyncio.wait_for(
                source.get_all_positions(self.config.owner), timeout=self.timeout)
        except TransientSourceError as e:
            logger.warning(f"Position source reported a transient error, no positions this cycle: {e}")
            return []
        except asyncio.TimeoutError:
            logger.warning(f"Timed out loading positions after {self.timeout}s")
            return []
        except Exception as e:
            logger.error(f"Failed to load positions: {e}")
            return []

        if self.config.position_ids:
            wanted = set(self.config.position_ids)
            positions = [p for p in positions if p.position_id in wanted]
        return positions

    async def _for_each_position(self, tier: str, handler) -> Dict[str, int]:
        positions = await self.load_positions()
        if positions is None:
            return {'evaluated': 0, 'acted': 0, 'failed': 0, 'skipped': 1}

        acted = 0
        failed = 0
        for position in positions:
            try:
                if await handler(position):
                    acted += 1
            except Exception as e:
                failed += 1
                logger.error(f"{tier} failed for position {position.position_id}: {e}", exc_info=True)

        logger.info(f"{tier}: {len(positions)} positions, {acted} acted on, {failed} failed")
        return {'evaluated': len(positions), 'acted': acted, 'failed': failed, 'skipped': 0}

    # ------------------------------------------------------------------
    # 30-minute quick check
    # ------------------------------------------------------------------

    async def check_urgency(self, position: Position) -> UrgencyCheck:
        geometry = compute_geometry(position)

        if not geometry.in_range:
            return UrgencyCheck(True, True, "Position is out of range")
        if geometry.edge_distance < ESCALATE_EDGE_BINS:
            return UrgencyCheck(True, True, f"Within {geometry.edge_distance} bins of range edge")
        if geometry.edge_distance < URGENT_EDGE_BINS:
            return UrgencyCheck(True, False, f"Approaching range edge ({geometry.edge_distance} bins)")

        volume_ratio = await self.services.engine.fetch_volume_ratio(position.pool_id)
        if volume_ratio > ESCALATE_VOLUME_RATIO:
            return UrgencyCheck(True, True, f"Volume spike ({volume_ratio:.2f}x average)")

        return UrgencyCheck(False, False, "No urgent signal")

    async def quick_check(self) -> Dict[str, int]:
        """Cheap geometric check; escalates to full analysis when urgent."""

        async def handle(position: Position) -> bool:
            check = await self.check_urgency(position)
            if check.is_urgent:
                logger.info(f"{position.position_id}: {check.reason}")
            if not check.escalate:
                return False
            await self.full_analysis(position, trigger="quick_check")
            return True

        return await self._for_each_position("Quick check", handle)

    # ------------------------------------------------------------------
    # Twelve-hour analysis
    # ------------------------------------------------------------------

    def hours_since_rebalance(self, position: Position) -> float:
        """Age of the position since it was created by a rebalance; inf if unknown."""
        last = position.last_rebalance_at or self.services.history.last_rebalance_at(position.position_id)
        if last is None:
            return math.inf
        return (self.services.clock() - parse_timestamp(last)).total_seconds() / 3600

    def should_analyze(self, position: Position) -> bool:
        geometry = compute_geometry(position)
        if geometry.edge_distance < TWELVE_HOUR_EDGE_BINS:
            return True

        if self.hours_since_rebalance(position) <= STALE_POSITION_HOURS:
            return False

        context = self.intraday_context(position.pool_id)
        return context.momentum.volume > VOLUME_MOMENTUM_TRIGGER

    def intraday_context(self, pool_id: str):
        window = timedelta(hours=self.settings.INTRADAY_CONTEXT_HOURS)
        return analyze(self.services.snapshots.load(pool_id, window))

    async def twelve_hour_analysis(self) -> Dict[str, int]:
        """Full analysis for positions near an edge or stale in a rising market."""

        async def handle(position: Position) -> bool:
            if not self.should_analyze(position):
                return False
            await self.full_analysis(position, trigger="twelve_hour")
            return True

        return await self._for_each_position("Twelve-hour analysis", handle)

    # ------------------------------------------------------------------
    # Daily review
    # ------------------------------------------------------------------

    async def daily_review(self) -> Dict[str, int]:
        """Full analysis of every position plus a daily analytics record."""

        async def handle(position: Position) -> bool:
            pool = await self.services.engine.fetch_pool_info(position.pool_id)
            decision = await self.full_analysis(position, trigger="daily", pool_info=pool)
            self.record_analytics(position, decision, pool.apr if pool is not None else None)
            return True

        return await self._for_each_position("Daily review", handle)

    def record_analytics(self, position: Position, decision: RebalanceDecision,
                         pool_apr: Optional[float] = None) -> bool:
        apr = pool_apr if pool_apr is not None else position.pool_apr
        utilization = bin_utilization(position, position.bin_liquidity)
        performance = fee_performance(position, decision.current_daily_fees, apr)

        return self.services.analytics.record(PositionSnapshot(
            timestamp=self.services.clock(),
            position_id=position.position_id,
            pool_id=position.pool_id,
            value_usd=position.value_usd,
            fees_usd=position.unclaimed_fees_usd,
            active_bin=position.active_bin,
            in_range=position.in_range,
            pool_apr=apr or 0.0,
            utilization_percent=utilization.utilization_percent,
            liquidity_concentration=utilization.liquidity_concentration,
            expected_daily_fees_usd=performance.expected_daily_fees_usd,
            actual_daily_fees_usd=performance.actual_daily_fees_usd,
            fee_efficiency=performance.efficiency,
        ))

    # ------------------------------------------------------------------
    # Full analysis path
    # ------------------------------------------------------------------

    async def full_analysis(self, position: Position, trigger: str,
                            pool_info=None) -> RebalanceDecision:
        """Evaluate, notify above the configured urgency and optionally auto-apply."""
        decision = await self.services.engine.evaluate(position, pool_info=pool_info)

        if trigger in ("twelve_hour", "daily"):
            decision.signals['trend'] = self.intraday_context(position.pool_id).to_dict()
        decision.signals['trigger'] = trigger

        logger.info(
            f"{position.position_id} [{trigger}]: {decision.urgency.name}, "
            f"rebalance={decision.should_rebalance} - {decision.reason}"
        )

        if decision.urgency >= self.min_notify_urgency:
            await self._notify(
                "rebalance_signal",
                f"{decision.urgency.name} rebalance signal for {position.position_id}",
                decision.recommendation or decision.reason,
                URGENCY_SEVERITY[decision.urgency],
                {'position_id': position.position_id, 'pool_id': position.pool_id,
                 'decision': decision.to_dict()},
            )

        if self.settings.AUTO_APPLY and decision.should_rebalance:
            await self.apply_rebalance(position, decision)

        return decision

    def execution_options(self, position: Position, decision: RebalanceDecision) -> ExecutionOptions:
        policy = self.services.engine.policy
        if isinstance(policy, ScoringPolicy):
            bins_per_side = policy.preset.bins_per_side
        else:
            bins_per_side = self.settings.REBALANCE_BINS_PER_SIDE

        reason_code = ReasonCode.OUT_OF_RANGE if not position.in_range else ReasonCode.AUTOMATIC
        return ExecutionOptions(
            bins_per_side=bins_per_side,
            slippage_bps=self.settings.REBALANCE_SLIPPAGE_BPS,
            reason_code=reason_code,
            reason=decision.reason,
        )

    async def apply_rebalance(self, position: Position, decision: RebalanceDecision) -> bool:
        """Execute a rebalance and record it. Returns True on success."""
        executor = self.services.executor
        if executor is None:
            logger.warning(f"Auto-apply enabled but no executor configured, not rebalancing {position.position_id}")
            return False

        options = self.execution_options(position, decision)
        logger.info(f"Auto-applying rebalance for {position.position_id} ({options.reason_code.value})")

        try:
            result = await executor.execute_rebalance(position, options)
        except Exception as e:
            logger.error(f"Rebalance of {position.position_id} raised: {e}", exc_info=True)
            await self._notify("rebalance_failed", f"Rebalance failed for {position.position_id}",
                               str(e), "error", {'position_id': position.position_id})
            return False

        if not result.success:
            logger.error(f"Rebalance of {position.position_id} failed: {result.error}")
            await self._notify("rebalance_failed", f"Rebalance failed for {position.position_id}",
                               result.error or "unknown error", "error",
                               {'position_id': position.position_id})
            return False

        new_range = result.new_range or (
            position.active_bin - options.bins_per_side,
            position.active_bin + options.bins_per_side,
        )
        self.services.history.record(RebalanceHistoryEntry(
            old_position_id=position.position_id,
            new_position_id=result.new_position_id,
            pool_id=position.pool_id,
            reason_code=options.reason_code,
            reason=decision.reason,
            fees_claimed_usd=result.fees_claimed_usd,
            transaction_cost_usd=result.transaction_cost_usd,
            old_range=(position.lower_bin, position.upper_bin),
            new_range=new_range,
            timestamp=self.services.clock(),
            signatures=tuple(result.signatures),
        ))

        await self._notify(
            "rebalance_executed",
            f"Rebalanced {position.position_id}",
            f"New position {result.new_position_id} covering bins {new_range[0]}..{new_range[1]}",
            "info",
            {'old_position_id': position.position_id, 'new_position_id': result.new_position_id,
             'fees_claimed_usd': result.fees_claimed_usd},
        )
        return True

    async def _notify(self, kind: str, title: str, message: str, severity: str,
                      metadata: Optional[Dict[str, Any]] = None) -> None:
        try:
            await self.services.notifier.notify(kind, title, message, severity, metadata)
        except Exception as e:
            logger.error(f"Failed to send '{kind}' notification: {e}")
