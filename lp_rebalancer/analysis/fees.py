"""
Fee estimation and rebalance cost-benefit arithmetic.

All amounts are in the reference currency (USD). APR values are percentages
(e.g. 36.5 for 36.5%).
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, Optional, Sequence

from ..core.models import Position, VolumeData

logger = logging.getLogger(__name__)

# Re-centering a position that already earns is assumed to lift fees by 15%
RECENTER_IMPROVEMENT = 1.15


def share_based_daily_fees(value_usd: float, volume: Optional[VolumeData]) -> Optional[float]:
    """
    Position's share of the pool's trailing 24h fees.

    Returns None when the pool reports no usable fee or liquidity data so the
    caller can fall back to the APR estimate.
    """
    if volume is None or not volume.has_fee_data:
        return None
    if value_usd <= 0:
        return 0.0
    return value_usd / volume.total_liquidity * volume.fees_24h


def apr_daily_fees(value_usd: float, apr_percent: Optional[float]) -> float:
    if not apr_percent or value_usd <= 0:
        return 0.0
    return value_usd * (apr_percent / 100 / 365)


def in_range_daily_fees(position: Position, volume: Optional[VolumeData],
                        apr_percent: Optional[float]) -> float:
    """What the position earns (or would earn) while in range."""
    estimate = share_based_daily_fees(position.value_usd, volume)
    if estimate is not None:
        return estimate

    logger.debug(f"No pool fee data for {position.pool_id}, using APR estimate")
    return apr_daily_fees(position.value_usd, apr_percent)


def estimate_daily_fees(position: Position, volume: Optional[VolumeData],
                        apr_percent: Optional[float]) -> float:
    """Current daily fee accrual; exactly zero when out of range."""
    if not position.in_range:
        return 0.0
    return in_range_daily_fees(position, volume, apr_percent)


def estimate_projected_fees(current_daily_fees: float, position: Position,
                            volume: Optional[VolumeData],
                            apr_percent: Optional[float]) -> float:
    """Daily fees expected after re-centering the position."""
    if current_daily_fees > 0:
        return current_daily_fees * RECENTER_IMPROVEMENT
    return in_range_daily_fees(position, volume, apr_percent)


def rebalance_cost_usd(tx_count: int = 2, tx_cost_native: float = 0.0001,
                       native_price_usd: float = 140.0) -> float:
    """Fixed estimate of the on-chain cost of one rebalance."""
    return tx_count * tx_cost_native * native_price_usd


def break_even_hours(cost_usd: float, daily_increase: float) -> float:
    """Hours of extra fees needed to pay back the cost; infinite if no increase."""
    if daily_increase <= 0:
        return math.inf
    return cost_usd / daily_increase * 24


def format_hours(hours: float) -> str:
    """Short break-even label: N/A, minutes, hours, or days above 48h."""
    if not math.isfinite(hours):
        return 'N/A'
    if hours < 1:
        return f"{round(hours * 60)}m"
    if hours > 48:
        return f"{hours / 24:.1f}d"
    return f"{hours:.1f}h"


@dataclass(frozen=True)
class FeeProjection:
    current_daily_fees: float
    projected_daily_fees: float
    increase: float
    percent_active: float


def fee_projection(current_daily_fees: float, percent_active: float) -> FeeProjection:
    """
    Project fees if every bin were active.

    With no active bins there is nothing to scale, so the projection equals
    the current figure.
    """
    if percent_active <= 0:
        projected = current_daily_fees
    else:
        projected = current_daily_fees * 100 / percent_active

    return FeeProjection(
        current_daily_fees=current_daily_fees,
        projected_daily_fees=projected,
        increase=projected - current_daily_fees,
        percent_active=percent_active,
    )


@dataclass(frozen=True)
class FeePerformance:
    expected_daily_fees_usd: float
    actual_daily_fees_usd: float
    efficiency: float
    distance_to_edge: int

    def to_dict(self) -> Dict[str, float]:
        return {
            'expected_daily_fees_usd': self.expected_daily_fees_usd,
            'actual_daily_fees_usd': self.actual_daily_fees_usd,
            'efficiency': self.efficiency,
            'distance_to_edge': self.distance_to_edge,
        }


def fee_performance(position: Position, actual_daily_fees: float,
                    apr_percent: Optional[float]) -> FeePerformance:
    """Compare realised fees against what the pool APR implies."""
    expected = apr_daily_fees(position.value_usd, apr_percent)
    efficiency = actual_daily_fees / expected * 100 if expected > 0 else 0.0

    return FeePerformance(
        expected_daily_fees_usd=expected,
        actual_daily_fees_usd=actual_daily_fees,
        efficiency=efficiency,
        distance_to_edge=min(position.active_bin - position.lower_bin,
                             position.upper_bin - position.active_bin),
    )


def volume_ratio_from_history(volume_24h: float, daily_history: Sequence[float]) -> float:
    """
    Today's volume against the mean of the previous (up to) 7 days.

    Neutral 1.0 when there is no usable history.
    """
    previous = [v for v in daily_history[-7:] if v is not None]
    if not previous:
        return 1.0

    average = sum(previous) / len(previous)
    if average <= 0:
        return 1.0
    return volume_24h / average
