"""
Position geometry and bin-level liquidity analysis.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from ..core.models import Position, Urgency

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PositionGeometry:
    """
    Where the active bin sits relative to a position's range.

    edge_distance is min(active - lower, upper - active); it is negative when
    the active bin is outside the range.
    """

    in_range: bool
    edge_distance: int
    center_bin: int
    center_drift: int
    total_bins: int
    active_bins: int

    @property
    def percent_active(self) -> float:
        if self.total_bins <= 0:
            return 0.0
        return self.active_bins / self.total_bins * 100


def compute_geometry(position: Position) -> PositionGeometry:
    """Derive range geometry for a position from its current active bin."""
    lower, upper, active = position.lower_bin, position.upper_bin, position.active_bin
    center = (lower + upper) // 2

    utilization = bin_utilization(position)

    return PositionGeometry(
        in_range=position.in_range,
        edge_distance=min(active - lower, upper - active),
        center_bin=center,
        center_drift=abs(active - center),
        total_bins=position.total_bins,
        active_bins=utilization.active_bins,
    )


def edge_priority(geometry: PositionGeometry) -> Urgency:
    """
    Coarse priority from edge distance alone (5/10/15-bin bands).

    Used for quick status summaries; full decisions go through a policy.
    """
    if not geometry.in_range:
        return Urgency.CRITICAL
    if geometry.edge_distance <= 5:
        return Urgency.HIGH
    if geometry.edge_distance <= 10:
        return Urgency.MEDIUM
    if geometry.edge_distance <= 15:
        return Urgency.LOW
    return Urgency.NONE


def gini_coefficient(values: Sequence[float]) -> float:
    """
    Concentration of a liquidity distribution.

    0 means perfectly even, values near 1 mean liquidity sits in a few bins.
    Empty, single-value and zero-total inputs are 0.
    """
    n = len(values)
    if n <= 1:
        return 0.0

    ordered = sorted(values)
    total = sum(ordered)
    if total == 0:
        return 0.0

    weighted = sum((2 * (i + 1) - n - 1) * x for i, x in enumerate(ordered))
    return abs(weighted) / (n * total)


@dataclass(frozen=True)
class BinUtilization:
    """Liquidity usage across the bins of a position's range."""

    total_bins: int
    active_bins: int
    utilization_percent: float
    average_liquidity_per_bin: float
    liquidity_concentration: float

    def to_dict(self) -> Dict[str, float]:
        return {
            'total_bins': self.total_bins,
            'active_bins': self.active_bins,
            'utilization_percent': self.utilization_percent,
            'average_liquidity_per_bin': self.average_liquidity_per_bin,
            'liquidity_concentration': self.liquidity_concentration,
        }


def bin_utilization(position: Position,
                    liquidity: Optional[Dict[int, float]] = None) -> BinUtilization:
    """
    Count bins holding liquidity inside the range.

    Without a per-bin distribution the position is treated as uniform: every
    bin is active while the position is in range and none are otherwise.
    """
    total_bins = position.total_bins
    distribution = liquidity if liquidity is not None else position.bin_liquidity

    if distribution is None:
        active_bins = total_bins if position.in_range else 0
        return BinUtilization(
            total_bins=total_bins,
            active_bins=active_bins,
            utilization_percent=(active_bins / total_bins * 100) if total_bins > 0 else 0.0,
            average_liquidity_per_bin=0.0,
            liquidity_concentration=0.0,
        )

    in_range_amounts: List[float] = [
        amount for bin_id, amount in distribution.items()
        if position.lower_bin <= bin_id <= position.upper_bin
    ]
    active = [amount for amount in in_range_amounts if amount > 0]

    return BinUtilization(
        total_bins=total_bins,
        active_bins=len(active),
        utilization_percent=(len(active) / total_bins * 100) if total_bins > 0 else 0.0,
        average_liquidity_per_bin=(sum(active) / len(active)) if active else 0.0,
        liquidity_concentration=gini_coefficient(active),
    )
