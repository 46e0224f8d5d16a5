"""
Rebalance decisions.

Two policies share one interface:

- ``cost_benefit``: tiered priority from range geometry, overridden by
  break-even economics. Used for interactive analysis and scheduled reviews.
- ``scoring``: 0-100 point score over position status, volume ratio and
  weekly opportunity, tuned per automation preset. Used by always-on
  automation.

The DecisionEngine gathers pool and volume data for a position (with
timeouts and fallbacks) and hands everything to the selected policy.
"""

import asyncio
import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from .bins import PositionGeometry, compute_geometry, edge_priority
from .fees import (
    break_even_hours,
    estimate_daily_fees,
    estimate_projected_fees,
    format_hours,
    rebalance_cost_usd,
    share_based_daily_fees,
)
from ..collaborators.base import MarketDataSource
from ..core.models import PoolInfo, Position, RebalanceDecision, Urgency, VolumeData

logger = logging.getLogger(__name__)

HOURS_PER_DAY = 24


class DecisionError(ValueError):
    """Raised when a decision cannot be made because the position itself is missing or invalid."""
    pass


@dataclass(frozen=True)
class MarketContext:
    """
    Auxiliary data for one decision.

    volume and pool are None when their fetch failed; volume_ratio is then
    the neutral 1.0.
    """

    volume: Optional[VolumeData] = None
    pool: Optional[PoolInfo] = None
    volume_ratio: float = 1.0

    @property
    def degraded(self) -> bool:
        return self.volume is None or self.pool is None

    def apr_percent(self, position: Position) -> Optional[float]:
        if self.pool is not None and self.pool.apr:
            return self.pool.apr
        return position.pool_apr


class DecisionPolicy(ABC):
    """Turns a position and its market context into a RebalanceDecision."""

    name: str = ""

    @abstractmethod
    def decide(self, position: Position, geometry: PositionGeometry,
               context: MarketContext) -> RebalanceDecision:
        pass


class CostBenefitPolicy(DecisionPolicy):
    """
    Geometric priority tiers with a break-even override.

    Priority: CRITICAL out of range; HIGH under 40% of bins active or within
    5 bins of an edge; MEDIUM more than 10 bins off center or within 10 bins
    of an edge; LOW more than 5 bins off center.
    """

    name = "cost_benefit"

    def __init__(self, rebalance_cost: Optional[float] = None):
        self.rebalance_cost = rebalance_cost if rebalance_cost is not None else rebalance_cost_usd()

    @staticmethod
    def classify_priority(geometry: PositionGeometry) -> Tuple[Urgency, str]:
        if not geometry.in_range:
            return Urgency.CRITICAL, "Position completely out of range - not earning fees"
        if geometry.percent_active < 40:
            return Urgency.HIGH, "Less than 40% of bins active - earning suboptimal fees"
        if geometry.edge_distance <= 5:
            return Urgency.HIGH, f"Active bin {geometry.edge_distance} bins from range edge"
        if geometry.center_drift > 10:
            return Urgency.MEDIUM, "Price moved >10 bins from center - consider rebalancing"
        if geometry.edge_distance <= 10:
            return Urgency.MEDIUM, f"Active bin {geometry.edge_distance} bins from range edge"
        if geometry.center_drift > 5:
            return Urgency.LOW, "Price drifting (5-10 bins from center) - monitor"
        return Urgency.NONE, "Position centered"

    @staticmethod
    def recommend(priority: Urgency, hours: float) -> Tuple[Urgency, bool, str]:
        """Apply break-even economics to a geometric priority."""
        days = hours / HOURS_PER_DAY

        if priority == Urgency.CRITICAL:
            return priority, True, "REBALANCE IMMEDIATELY - position not earning any fees"

        if days > 365:
            downgraded = priority if priority == Urgency.NONE else Urgency.LOW
            label = "never" if math.isinf(days) else f"{round(days)} days"
            return downgraded, False, (
                f"HOLD - Break-even time is {label}. "
                "The fee improvement doesn't justify the rebalance cost."
            )

        if days > 30:
            return priority, False, (
                f"HOLD recommended - Break-even is {round(days)} days. "
                "Only rebalance if you plan to hold long-term."
            )

        if priority == Urgency.HIGH:
            if days <= 7:
                return priority, True, (
                    f"REBALANCE recommended - Position at risk, break-even in {round(days)} days"
                )
            return priority, False, (
                f"Consider rebalancing - Position approaching edge but break-even is {round(days)} days"
            )

        if priority == Urgency.MEDIUM:
            if days <= 3:
                return priority, True, (
                    f"REBALANCE - Quick break-even ({round(hours)} hours) makes this worthwhile"
                )
            if days <= 14:
                return priority, False, (
                    f"Optional rebalance - Break-even in {round(days)} days. "
                    "Worth it if you're actively managing."
                )
            return priority, False, (
                f"HOLD - Position shifted but break-even ({round(days)} days) doesn't justify action"
            )

        if priority == Urgency.LOW:
            return priority, False, "HOLD - Position is healthy. Monitor for changes."

        return priority, False, "HOLD - Position is optimal. No action needed."

    def _confidence(self, position: Position, context: MarketContext) -> int:
        if not position.in_range:
            return 100
        if share_based_daily_fees(position.value_usd, context.volume) is not None:
            confidence = 90
        elif context.apr_percent(position):
            confidence = 70
        else:
            confidence = 50
        if context.degraded:
            confidence -= 10
        return confidence

    def decide(self, position: Position, geometry: PositionGeometry,
               context: MarketContext) -> RebalanceDecision:
        apr = context.apr_percent(position)
        current = estimate_daily_fees(position, context.volume, apr)
        projected = estimate_projected_fees(current, position, context.volume, apr)
        increase = projected - current
        hours = break_even_hours(self.rebalance_cost, increase)

        priority, reason = self.classify_priority(geometry)
        urgency, should_rebalance, recommendation = self.recommend(priority, hours)

        return RebalanceDecision(
            should_rebalance=should_rebalance,
            urgency=urgency,
            confidence=self._confidence(position, context),
            projected_daily_fee_delta=increase,
            rebalance_cost=self.rebalance_cost,
            break_even_hours=hours,
            reason=reason,
            recommendation=recommendation,
            current_daily_fees=current,
            projected_daily_fees=projected,
            volume_ratio=context.volume_ratio,
            policy=self.name,
            signals={
                'edge_distance': geometry.edge_distance,
                'center_drift': geometry.center_drift,
                'percent_active': geometry.percent_active,
                'geometric_priority': priority.name,
                'edge_priority': edge_priority(geometry).name,
            },
        )


@dataclass(frozen=True)
class AutomationPreset:
    """Tuning of the scoring policy for one automation frequency."""

    name: str
    min_cost_benefit: float
    urgency_override: bool
    range_width_pct: float
    check_interval_hours: int
    enable_volume_check: bool = True

    @property
    def bins_per_side(self) -> int:
        # Roughly 0.5% per bin
        return int(self.range_width_pct // 0.5)


PRESETS: Dict[str, AutomationPreset] = {
    "aggressive": AutomationPreset("aggressive", 1.2, True, 8, 4),
    "balanced": AutomationPreset("balanced", 2.0, True, 12, 8),
    "conservative": AutomationPreset("conservative", 3.0, False, 18, 24),
}


def get_preset(name: str) -> AutomationPreset:
    try:
        return PRESETS[name]
    except KeyError:
        raise ValueError(f"Unknown automation preset: {name}. Available: {list(PRESETS)}")


class ScoringPolicy(DecisionPolicy):
    """
    Point score for unattended rebalancing.

    Position status (up to 40), volume ratio (-15 to 20) and weekly
    opportunity over cost (-20 to 20) add up to the score; execution also
    requires the preset's minimum return on cost.
    """

    name = "scoring"

    def __init__(self, preset: AutomationPreset = PRESETS["balanced"],
                 daily_fee_rate: float = 0.001,
                 recenter_multiplier: float = 1.5,
                 rebalance_cost: float = 0.04):
        self.preset = preset
        self.daily_fee_rate = daily_fee_rate
        self.recenter_multiplier = recenter_multiplier
        self.rebalance_cost = rebalance_cost

    @staticmethod
    def position_points(geometry: PositionGeometry) -> int:
        if not geometry.in_range:
            return 40
        if geometry.edge_distance < 3:
            return 30
        if geometry.percent_active < 50:
            return 20
        if geometry.edge_distance < 5:
            return 10
        return 0

    @staticmethod
    def volume_points(volume_ratio: float) -> int:
        if volume_ratio > 1.5:
            return 20
        if volume_ratio > 1.2:
            return 12
        if volume_ratio < 0.7:
            return -15
        return 5

    def opportunity_points(self, opportunity_ratio: float) -> int:
        if opportunity_ratio > 5.0:
            return 20
        if opportunity_ratio > 3.0:
            return 15
        if opportunity_ratio > self.preset.min_cost_benefit:
            return 10
        if opportunity_ratio < 0.5:
            return -20
        return 0

    def decide(self, position: Position, geometry: PositionGeometry,
               context: MarketContext) -> RebalanceDecision:
        volume_ratio = context.volume_ratio if self.preset.enable_volume_check else 1.0
        base_signals = {
            'preset': self.preset.name,
            'edge_distance': geometry.edge_distance,
            'percent_active': geometry.percent_active,
        }

        if self.preset.urgency_override and not geometry.in_range:
            return RebalanceDecision(
                should_rebalance=True,
                urgency=Urgency.CRITICAL,
                confidence=100,
                projected_daily_fee_delta=0.0,
                rebalance_cost=self.rebalance_cost,
                break_even_hours=0.0,
                reason="Position OUT OF RANGE - No fees being earned! Immediate rebalancing required.",
                recommendation="REBALANCE IMMEDIATELY - urgency override",
                volume_ratio=volume_ratio,
                policy=self.name,
                signals={**base_signals, 'override': True},
            )

        estimated = max(position.value_usd, 0.0) * self.daily_fee_rate
        projected = estimated * self.recenter_multiplier
        daily_gain = projected - estimated
        # Out of range earns nothing whatever the model estimate says
        current = estimated if geometry.in_range else 0.0
        hours = break_even_hours(self.rebalance_cost, daily_gain)
        opportunity_ratio = daily_gain * 7 / self.rebalance_cost if self.rebalance_cost > 0 else 0.0

        score = (
            self.position_points(geometry)
            + self.volume_points(volume_ratio)
            + self.opportunity_points(opportunity_ratio)
        )
        meets_min_roi = opportunity_ratio >= self.preset.min_cost_benefit

        if score >= 60 and meets_min_roi:
            urgency, should_rebalance = Urgency.HIGH, True
            reason = f"Strong rebalancing signal (score: {score}). Expected break-even: {hours:.1f}h"
        elif score >= 40 and meets_min_roi and hours < 48:
            urgency, should_rebalance = Urgency.MEDIUM, True
            reason = f"Moderate rebalancing opportunity (score: {score}). Break-even in {hours:.1f}h"
        elif not geometry.in_range:
            urgency, should_rebalance = Urgency.CRITICAL, False
            reason = (
                f"Out of range but poor ROI ({opportunity_ratio:.2f}x). "
                "Waiting for better conditions."
            )
        else:
            urgency, should_rebalance = Urgency.NONE, False
            reason = (
                f"Position optimal (score: {score}). Active: {geometry.percent_active:.0f}%, "
                f"Edge distance: {geometry.edge_distance} bins"
            )

        # CRITICAL is reserved for out-of-range positions and always reported for them
        if not geometry.in_range:
            urgency = Urgency.CRITICAL

        confidence = 50
        if volume_ratio > 1.3:
            confidence += 20
        if score > 50:
            confidence += 15
        if meets_min_roi:
            confidence += 15

        return RebalanceDecision(
            should_rebalance=should_rebalance,
            urgency=urgency,
            confidence=min(100, max(0, confidence)),
            projected_daily_fee_delta=daily_gain,
            rebalance_cost=self.rebalance_cost,
            break_even_hours=hours,
            reason=reason,
            recommendation="REBALANCE" if should_rebalance else "HOLD",
            current_daily_fees=current,
            projected_daily_fees=projected,
            volume_ratio=volume_ratio,
            policy=self.name,
            signals={
                **base_signals,
                'score': score,
                'opportunity_ratio': opportunity_ratio,
                'meets_min_roi': meets_min_roi,
                'estimated_weekly_gain': daily_gain * 7,
            },
        )


POLICIES = {
    CostBenefitPolicy.name: CostBenefitPolicy,
    ScoringPolicy.name: ScoringPolicy,
}


def get_policy(name: str, **kwargs) -> DecisionPolicy:
    """
    Get a decision policy instance by name.

    Args:
        name: Policy name ('cost_benefit' or 'scoring')
        **kwargs: Constructor arguments for the policy

    Raises:
        ValueError: If the policy name is unknown
    """
    if name not in POLICIES:
        raise ValueError(f"Unknown decision policy: {name}. Available: {list(POLICIES)}")
    return POLICIES[name](**kwargs)


def build_policy(settings, name: Optional[str] = None) -> DecisionPolicy:
    """Create the configured policy from MonitoringSettings."""
    name = name or settings.DECISION_POLICY
    if name == ScoringPolicy.name:
        return ScoringPolicy(preset=get_preset(settings.AUTOMATION_PRESET))
    return get_policy(name, rebalance_cost=settings.rebalance_cost_usd)


class DecisionEngine:
    """
    Evaluates positions against a decision policy.

    Pool and volume lookups are bounded by a timeout. Any failure there
    degrades to the documented fallback (APR fee estimate, neutral volume
    ratio); only a missing or malformed position raises DecisionError.
    """

    def __init__(self, market_data: Optional[MarketDataSource],
                 policy: Optional[DecisionPolicy] = None,
                 timeout: float = 5.0):
        self.market_data = market_data
        self.policy = policy or CostBenefitPolicy()
        self.timeout = timeout

    @classmethod
    def from_settings(cls, market_data: Optional[MarketDataSource], settings,
                      policy_name: Optional[str] = None) -> "DecisionEngine":
        return cls(
            market_data,
            policy=build_policy(settings, policy_name),
            timeout=settings.FETCH_TIMEOUT_SECONDS,
        )

    @staticmethod
    def validate_position(position: Any) -> Position:
        if position is None:
            raise DecisionError("Position data is required for analysis")
        if not isinstance(position, Position):
            raise DecisionError(f"Expected a Position, got {type(position).__name__}")
        if position.lower_bin > position.upper_bin:
            raise DecisionError(
                f"Invalid range for {position.position_id}: "
                f"lower bin {position.lower_bin} > upper bin {position.upper_bin}"
            )
        return position

    async def _fetch(self, label: str, pool_id: str, call):
        try:
            return await asyncio.wait_for(call(pool_id), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Timed out fetching {label} for {pool_id} after {self.timeout}s")
        except Exception as e:
            logger.warning(f"Failed to fetch {label} for {pool_id}: {e}")
        return None

    async def fetch_volume(self, pool_id: str) -> Optional[VolumeData]:
        if self.market_data is None:
            return None
        return await self._fetch("volume", pool_id, self.market_data.get_volume)

    async def fetch_pool_info(self, pool_id: str) -> Optional[PoolInfo]:
        if self.market_data is None:
            return None
        return await self._fetch("pool info", pool_id, self.market_data.get_pool_info)

    async def fetch_volume_ratio(self, pool_id: str) -> float:
        """Live volume ratio, neutral 1.0 when unavailable."""
        volume = await self.fetch_volume(pool_id)
        return volume.volume_ratio if volume is not None else 1.0

    async def fetch_context(self, position: Position,
                            volume_ratio: Optional[float] = None,
                            pool_info: Optional[PoolInfo] = None,
                            volume: Optional[VolumeData] = None) -> MarketContext:
        if volume is None:
            volume = await self.fetch_volume(position.pool_id)
        if pool_info is None:
            pool_info = await self.fetch_pool_info(position.pool_id)

        if volume_ratio is None:
            volume_ratio = volume.volume_ratio if volume is not None else 1.0

        return MarketContext(volume=volume, pool=pool_info, volume_ratio=volume_ratio)

    async def evaluate(self, position: Position,
                       volume_ratio: Optional[float] = None,
                       pool_info: Optional[PoolInfo] = None,
                       volume: Optional[VolumeData] = None,
                       policy: Optional[DecisionPolicy] = None) -> RebalanceDecision:
        """
        Produce a RebalanceDecision for one position.

        Pre-computed volume ratio, pool info or volume data skip the
        corresponding fetch.

        Raises:
            DecisionError: If the position is missing or invalid
        """
        position = self.validate_position(position)
        policy = policy or self.policy

        context = await self.fetch_context(position, volume_ratio, pool_info, volume)
        geometry = compute_geometry(position)
        decision = policy.decide(position, geometry, context)

        logger.debug(
            f"{position.position_id}: {decision.urgency.name} "
            f"(rebalance={decision.should_rebalance}, confidence={decision.confidence}, "
            f"policy={decision.policy})"
        )
        return decision

    async def cost_benefit(self, position: Position,
                           pool_info: Optional[PoolInfo] = None) -> Dict[str, Any]:
        """Fee and break-even summary under the cost-benefit policy."""
        policy = self.policy if isinstance(self.policy, CostBenefitPolicy) else CostBenefitPolicy()
        decision = await self.evaluate(position, pool_info=pool_info, policy=policy)

        return {
            'current_daily_fees': decision.current_daily_fees,
            'projected_daily_fees': decision.projected_daily_fees,
            'net_daily_gain': decision.projected_daily_fee_delta,
            'rebalance_cost_usd': decision.rebalance_cost,
            'break_even_hours': decision.break_even_hours,
            'break_even_label': format_hours(decision.break_even_hours),
        }
