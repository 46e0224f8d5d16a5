"""
Trend signals over chronological snapshot sequences.

Every function here is pure and degrades to neutral output when there is not
enough history: momentum needs 2 snapshots, signals need 6, volume trend
needs 3.
"""

import logging
import math
import statistics
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from ..core.models import Snapshot

logger = logging.getLogger(__name__)

MIN_MOMENTUM_SNAPSHOTS = 2
MIN_SIGNAL_SNAPSHOTS = 6
MIN_TREND_POINTS = 3

DIRECTION_THRESHOLD_PCT = 0.5
VOLUME_SPIKE_MULTIPLIER = 1.5
VOLATILITY_SHIFT_MULTIPLIER = 1.2
TREND_SLOPE_FRACTION = 0.10


@dataclass(frozen=True)
class Momentum:
    """Average per-step price change (%) and volume acceleration (%)."""

    price: float = 0.0
    volume: float = 0.0
    direction: str = "neutral"

    def to_dict(self) -> Dict[str, object]:
        return {'price': self.price, 'volume': self.volume, 'direction': self.direction}


@dataclass(frozen=True)
class Signals:
    price_breakout: bool = False
    volume_spike: bool = False
    volatility_shift: bool = False

    @property
    def any(self) -> bool:
        return self.price_breakout or self.volume_spike or self.volatility_shift

    def to_dict(self) -> Dict[str, bool]:
        return {
            'price_breakout': self.price_breakout,
            'volume_spike': self.volume_spike,
            'volatility_shift': self.volatility_shift,
        }


@dataclass(frozen=True)
class IntraDayContext:
    """Snapshots of a window together with the signals derived from them."""

    snapshots: List[Snapshot] = field(default_factory=list)
    momentum: Momentum = field(default_factory=Momentum)
    signals: Signals = field(default_factory=Signals)

    def to_dict(self) -> Dict[str, object]:
        return {
            'snapshot_count': len(self.snapshots),
            'momentum': self.momentum.to_dict(),
            'signals': self.signals.to_dict(),
        }


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def calculate_volatility(snapshots: Sequence[Snapshot]) -> float:
    """Population standard deviation of prices divided by their mean."""
    if len(snapshots) < 2:
        return 0.0

    prices = [s.price for s in snapshots]
    average = _mean(prices)
    if average <= 0:
        return 0.0
    return statistics.pstdev(prices) / average


def volume_acceleration(volumes: Sequence[float]) -> float:
    """
    Percent change of the mean of the last 3 volumes against the 3 before them.

    With fewer than 3 earlier readings the older mean is the recent mean, so
    the acceleration is 0.
    """
    if len(volumes) < 3:
        return 0.0

    recent = _mean(volumes[-3:])
    older = _mean(volumes[-6:-3]) if len(volumes) >= 6 else recent

    if older <= 0:
        return 0.0
    return (recent - older) / older * 100


def calculate_momentum(snapshots: Sequence[Snapshot]) -> Momentum:
    if len(snapshots) < MIN_MOMENTUM_SNAPSHOTS:
        return Momentum()

    changes = []
    for previous, current in zip(snapshots, snapshots[1:]):
        if previous.price > 0:
            changes.append((current.price - previous.price) / previous.price * 100)
        else:
            changes.append(0.0)
    price_change = _mean(changes)

    acceleration = volume_acceleration([s.volume_24h for s in snapshots])

    direction = "neutral"
    if price_change > DIRECTION_THRESHOLD_PCT and acceleration > 0:
        direction = "bullish"
    elif price_change < -DIRECTION_THRESHOLD_PCT and acceleration > 0:
        direction = "bearish"

    return Momentum(price=price_change, volume=acceleration, direction=direction)


def nearest_rank(sorted_values: Sequence[float], fraction: float) -> float:
    """Value at index floor(n * fraction) of an ascending sequence."""
    index = min(int(math.floor(len(sorted_values) * fraction)), len(sorted_values) - 1)
    return sorted_values[index]


def detect_signals(snapshots: Sequence[Snapshot]) -> Signals:
    if len(snapshots) < MIN_SIGNAL_SNAPSHOTS:
        return Signals()

    prices = [s.price for s in snapshots]
    volumes = [s.volume_24h for s in snapshots]
    volatilities = [s.volatility for s in snapshots]

    ordered = sorted(prices)
    p95 = nearest_rank(ordered, 0.95)
    p5 = nearest_rank(ordered, 0.05)
    latest_price = prices[-1]

    return Signals(
        price_breakout=latest_price > p95 or latest_price < p5,
        volume_spike=volumes[-1] > _mean(volumes[:-1]) * VOLUME_SPIKE_MULTIPLIER,
        volatility_shift=volatilities[-1] > _mean(volatilities[:-1]) * VOLATILITY_SHIFT_MULTIPLIER,
    )


def volume_trend(volumes: Sequence[float]) -> str:
    """Classify the last 3 volumes as increasing, decreasing or stable."""
    if len(volumes) < MIN_TREND_POINTS:
        return "stable"

    last = list(volumes[-3:])
    average = _mean(last)
    slope = (last[-1] - last[0]) / 2

    if slope > average * TREND_SLOPE_FRACTION:
        return "increasing"
    if slope < -average * TREND_SLOPE_FRACTION:
        return "decreasing"
    return "stable"


def analyze(snapshots: Sequence[Snapshot]) -> IntraDayContext:
    """Momentum and signals for a chronological window of snapshots."""
    ordered = list(snapshots)
    if len(ordered) < MIN_MOMENTUM_SNAPSHOTS:
        return IntraDayContext(snapshots=ordered)

    return IntraDayContext(
        snapshots=ordered,
        momentum=calculate_momentum(ordered),
        signals=detect_signals(ordered),
    )
