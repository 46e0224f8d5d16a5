"""
Base classes and interfaces for storage implementations.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional
import logging

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Base exception for storage-related errors."""
    pass


class ConnectionError(StorageError):
    """Raised when connection to storage backend fails."""
    pass


class DataError(StorageError):
    """Raised when data operations fail."""
    pass


class StorageBase(ABC):
    """
    Abstract base class for storage implementations.
    All storage backends must implement these methods.
    """

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize storage backend with configuration.

        Args:
            config: Configuration dictionary for the storage backend
        """
        self.config = config
        self.is_connected = False

    @abstractmethod
    async def connect(self) -> None:
        """Establish connection to the storage backend."""
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Close connection to the storage backend."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Check if the storage backend is healthy and accessible.

        Returns:
            bool: True if healthy, False otherwise
        """
        pass


class SnapshotLog(ABC):
    """
    Key-value log of timestamped records.

    Records are plain dictionaries carrying an ISO-8601 'timestamp' entry.
    Implementations raise StorageError subclasses on failure; callers decide
    whether to propagate them.
    """

    @abstractmethod
    def append(self, key: str, record: Dict[str, Any],
               retain_since: Optional[datetime] = None) -> None:
        """
        Append a record to the log for key.

        Args:
            key: Log key (pool or position identifier)
            record: Record to append
            retain_since: If given, drop records older than this in the same write
        """
        pass

    @abstractmethod
    def load(self, key: str, since: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """
        Load records for key, optionally only those at or after since.

        Returns:
            Records in stored order, empty list if the key has no log
        """
        pass

    @abstractmethod
    def prune(self, key: str, before: datetime) -> int:
        """
        Delete records older than before.

        Returns:
            Number of records removed
        """
        pass

    @abstractmethod
    def keys(self) -> List[str]:
        """List keys that currently have a log."""
        pass


class CacheInterface(ABC):
    """Interface for caching operations."""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """
        Set a cache value with optional TTL.

        Args:
            key: Cache key
            value: Value to cache
            ttl: Time-to-live in seconds (optional)

        Returns:
            bool: True if successful
        """
        pass

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """
        Get a cached value.

        Args:
            key: Cache key

        Returns:
            Cached value or None if not found
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """
        Delete a cached value.

        Args:
            key: Cache key

        Returns:
            bool: True if key existed and was deleted
        """
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Drop every cached value owned by this cache."""
        pass
