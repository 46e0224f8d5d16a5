"""
Core types for positions, pool observations and rebalance decisions.

Domain models shared by the storage layer, the analysis package and the
scheduler. Records that are persisted carry to_dict()/from_dict() helpers
producing plain JSON-compatible dictionaries.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional, Tuple

from ..utils.clock import parse_timestamp, utc_now


class Urgency(IntEnum):
    """Ordered rebalance urgency: NONE < LOW < MEDIUM < HIGH < CRITICAL."""
    NONE = 0
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4

    @classmethod
    def from_name(cls, name: str) -> "Urgency":
        try:
            return cls[name.upper()]
        except KeyError:
            raise ValueError(f"Unknown urgency level: {name}")


class ReasonCode(Enum):
    """Why a rebalance was executed."""
    OUT_OF_RANGE = "out_of_range"
    EFFICIENCY = "efficiency"
    MANUAL = "manual"
    AUTOMATIC = "automatic"
    OTHER = "other"


@dataclass(frozen=True)
class Position:
    """
    A liquidity range held in a specific pool.

    Attributes:
        position_id: Position identifier
        pool_id: Pool the liquidity is deposited in
        lower_bin: Lowest bin of the range (inclusive)
        upper_bin: Highest bin of the range (inclusive)
        active_bin: Bin holding the current market price
        value_usd: Mark-to-market value in the reference currency
        pool_apr: Pool APR in percent as reported with the position (optional)
        bin_liquidity: Liquidity per bin id inside the range (optional)
        unclaimed_fees_usd: Fees accrued but not yet claimed
        last_rebalance_at: When this position was created by a rebalance (optional)
    """

    position_id: str
    pool_id: str
    lower_bin: int
    upper_bin: int
    active_bin: int
    value_usd: float = 0.0
    pool_apr: Optional[float] = None
    bin_liquidity: Optional[Dict[int, float]] = None
    unclaimed_fees_usd: float = 0.0
    last_rebalance_at: Optional[datetime] = None

    @property
    def in_range(self) -> bool:
        """Active bin falls within [lower_bin, upper_bin]."""
        return self.lower_bin <= self.active_bin <= self.upper_bin

    @property
    def total_bins(self) -> int:
        return self.upper_bin - self.lower_bin + 1


@dataclass(frozen=True)
class PoolInfo:
    """Current pool state from the market data source. APR is in percent."""

    pool_id: str
    price: float
    active_bin: int
    apr: float = 0.0


@dataclass(frozen=True)
class VolumeData:
    """Trailing volume and fee data for a pool."""

    volume_24h: float = 0.0
    volume_ratio: float = 1.0
    fees_24h: float = 0.0
    total_liquidity: float = 0.0
    volume_7d: float = 0.0

    @classmethod
    def neutral(cls) -> "VolumeData":
        """Fallback used when volume data cannot be fetched."""
        return cls()

    @property
    def has_fee_data(self) -> bool:
        return self.fees_24h > 0 and self.total_liquidity > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'volume_24h': self.volume_24h,
            'volume_ratio': self.volume_ratio,
            'fees_24h': self.fees_24h,
            'total_liquidity': self.total_liquidity,
            'volume_7d': self.volume_7d,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VolumeData":
        return cls(
            volume_24h=float(data.get('volume_24h', 0.0)),
            volume_ratio=float(data.get('volume_ratio', 1.0)),
            fees_24h=float(data.get('fees_24h', 0.0)),
            total_liquidity=float(data.get('total_liquidity', 0.0)),
            volume_7d=float(data.get('volume_7d', 0.0)),
        )


@dataclass(frozen=True)
class Snapshot:
    """
    Immutable hourly observation of a pool.

    Attributes:
        timestamp: Observation time (UTC)
        pool_id: Observed pool
        price: Pool price at observation time
        volume_24h: Trailing 24h trade volume
        volume_ratio: Today's volume vs. trailing average
        active_bin: Active bin id at observation time
        volatility: Rolling price volatility (std / mean over a short window)
    """

    timestamp: datetime
    pool_id: str
    price: float
    volume_24h: float
    volume_ratio: float
    active_bin: int
    volatility: float = 0.0

    @property
    def key(self) -> str:
        return self.pool_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timestamp': self.timestamp.isoformat(),
            'pool_id': self.pool_id,
            'price': self.price,
            'volume_24h': self.volume_24h,
            'volume_ratio': self.volume_ratio,
            'active_bin': self.active_bin,
            'volatility': self.volatility,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Snapshot":
        return cls(
            timestamp=parse_timestamp(data['timestamp']),
            pool_id=data['pool_id'],
            price=float(data['price']),
            volume_24h=float(data['volume_24h']),
            volume_ratio=float(data['volume_ratio']),
            active_bin=int(data['active_bin']),
            volatility=float(data.get('volatility', 0.0)),
        )


@dataclass(frozen=True)
class PositionSnapshot:
    """Daily analytics observation of a single position."""

    timestamp: datetime
    position_id: str
    pool_id: str
    value_usd: float
    fees_usd: float
    active_bin: int
    in_range: bool
    pool_apr: float = 0.0
    gas_cost_usd: float = 0.0
    utilization_percent: float = 0.0
    liquidity_concentration: float = 0.0
    expected_daily_fees_usd: float = 0.0
    actual_daily_fees_usd: float = 0.0
    fee_efficiency: float = 0.0

    @property
    def key(self) -> str:
        return self.position_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timestamp': self.timestamp.isoformat(),
            'position_id': self.position_id,
            'pool_id': self.pool_id,
            'value_usd': self.value_usd,
            'fees_usd': self.fees_usd,
            'active_bin': self.active_bin,
            'in_range': self.in_range,
            'pool_apr': self.pool_apr,
            'gas_cost_usd': self.gas_cost_usd,
            'utilization_percent': self.utilization_percent,
            'liquidity_concentration': self.liquidity_concentration,
            'expected_daily_fees_usd': self.expected_daily_fees_usd,
            'actual_daily_fees_usd': self.actual_daily_fees_usd,
            'fee_efficiency': self.fee_efficiency,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PositionSnapshot":
        return cls(
            timestamp=parse_timestamp(data['timestamp']),
            position_id=data['position_id'],
            pool_id=data['pool_id'],
            value_usd=float(data['value_usd']),
            fees_usd=float(data['fees_usd']),
            active_bin=int(data['active_bin']),
            in_range=bool(data['in_range']),
            pool_apr=float(data.get('pool_apr', 0.0)),
            gas_cost_usd=float(data.get('gas_cost_usd', 0.0)),
            utilization_percent=float(data.get('utilization_percent', 0.0)),
            liquidity_concentration=float(data.get('liquidity_concentration', 0.0)),
            expected_daily_fees_usd=float(data.get('expected_daily_fees_usd', 0.0)),
            actual_daily_fees_usd=float(data.get('actual_daily_fees_usd', 0.0)),
            fee_efficiency=float(data.get('fee_efficiency', 0.0)),
        )


@dataclass
class RebalanceDecision:
    """Per-cycle rebalance recommendation. Never persisted on its own."""

    should_rebalance: bool
    urgency: Urgency
    confidence: int
    projected_daily_fee_delta: float
    rebalance_cost: float
    break_even_hours: float
    reason: str
    recommendation: str = ""
    current_daily_fees: float = 0.0
    projected_daily_fees: float = 0.0
    volume_ratio: float = 1.0
    policy: str = ""
    signals: Dict[str, Any] = field(default_factory=dict)

    @property
    def break_even_days(self) -> float:
        return self.break_even_hours / 24

    def to_dict(self) -> Dict[str, Any]:
        return {
            'should_rebalance': self.should_rebalance,
            'urgency': self.urgency.name,
            'confidence': self.confidence,
            'projected_daily_fee_delta': self.projected_daily_fee_delta,
            'rebalance_cost': self.rebalance_cost,
            'break_even_hours': self.break_even_hours,
            'reason': self.reason,
            'recommendation': self.recommendation,
            'current_daily_fees': self.current_daily_fees,
            'projected_daily_fees': self.projected_daily_fees,
            'volume_ratio': self.volume_ratio,
            'policy': self.policy,
            'signals': self.signals,
        }


@dataclass(frozen=True)
class RebalanceHistoryEntry:
    """Audit record of an executed rebalance. Append-only."""

    old_position_id: str
    new_position_id: str
    pool_id: str
    reason_code: ReasonCode
    reason: str
    fees_claimed_usd: float
    transaction_cost_usd: float
    old_range: Tuple[int, int]
    new_range: Tuple[int, int]
    timestamp: datetime = field(default_factory=utc_now)
    signatures: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timestamp': self.timestamp.isoformat(),
            'old_position_id': self.old_position_id,
            'new_position_id': self.new_position_id,
            'pool_id': self.pool_id,
            'reason_code': self.reason_code.value,
            'reason': self.reason,
            'fees_claimed_usd': self.fees_claimed_usd,
            'transaction_cost_usd': self.transaction_cost_usd,
            'old_range': {'min': self.old_range[0], 'max': self.old_range[1]},
            'new_range': {'min': self.new_range[0], 'max': self.new_range[1]},
            'signatures': list(self.signatures),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RebalanceHistoryEntry":
        return cls(
            timestamp=parse_timestamp(data['timestamp']),
            old_position_id=data['old_position_id'],
            new_position_id=data['new_position_id'],
            pool_id=data['pool_id'],
            reason_code=ReasonCode(data['reason_code']),
            reason=data.get('reason', ''),
            fees_claimed_usd=float(data.get('fees_claimed_usd', 0.0)),
            transaction_cost_usd=float(data.get('transaction_cost_usd', 0.0)),
            old_range=(int(data['old_range']['min']), int(data['old_range']['max'])),
            new_range=(int(data['new_range']['min']), int(data['new_range']['max'])),
            signatures=tuple(data.get('signatures', [])),
        )


@dataclass(frozen=True)
class ExecutionOptions:
    """Parameters handed to the execution collaborator."""

    bins_per_side: int = 12
    slippage_bps: int = 100
    strategy: str = "Spot"
    reason_code: ReasonCode = ReasonCode.MANUAL
    reason: str = ""


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome reported by the execution collaborator."""

    success: bool
    new_position_id: str = ""
    fees_claimed_usd: float = 0.0
    transaction_cost_usd: float = 0.0
    signatures: List[str] = field(default_factory=list)
    new_range: Optional[Tuple[int, int]] = None
    error: Optional[str] = None
