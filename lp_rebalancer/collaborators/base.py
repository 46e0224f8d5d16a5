"""
Interfaces of the external collaborators the monitor talks to.

Implementations (wallet custody, chain access, market data providers,
notification channels) live outside this package.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..core.models import ExecutionOptions, ExecutionResult, PoolInfo, Position, VolumeData


class CollaboratorError(Exception):
    """Base exception for failures reported by an external collaborator."""
    pass


class TransientSourceError(CollaboratorError):
    """
    Known transient defect of the upstream position SDK.

    Treated as "no positions" for the current cycle.
    """
    pass


class PositionSource(ABC):
    """Current on-chain positions of an owner."""

    @abstractmethod
    async def get_all_positions(self, owner: str) -> List[Position]:
        pass


class MarketDataSource(ABC):
    """Pool state and trailing volume data."""

    @abstractmethod
    async def get_pool_info(self, pool_id: str) -> PoolInfo:
        pass

    @abstractmethod
    async def get_volume(self, pool_id: str) -> VolumeData:
        pass


class RebalanceExecutor(ABC):
    """Closes a position and reopens it centered on the active bin."""

    @abstractmethod
    async def execute_rebalance(self, position: Position,
                                options: ExecutionOptions) -> ExecutionResult:
        pass


class Notifier(ABC):
    """Fire-and-forget alert delivery."""

    @abstractmethod
    async def notify(self, kind: str, title: str, message: str,
                     severity: str = "info",
                     metadata: Optional[Dict[str, Any]] = None) -> None:
        pass
