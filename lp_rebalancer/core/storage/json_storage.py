"""
JSON file storage implementation for snapshot logs and rebalance history.
"""

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional
from datetime import datetime

from .base import StorageBase, SnapshotLog, DataError
from ...utils.clock import parse_timestamp

logger = logging.getLogger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r'[^A-Za-z0-9_.-]')


class JsonStorage(StorageBase):
    """
    JSON file storage implementation for data persistence.

    Features:
    - Save/load JSON files
    - Atomic writes through a temporary file
    - Optional pretty printing
    """

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize JSON storage.

        Args:
            config: Configuration with keys:
                - base_path: Base directory for JSON storage
                - pretty: Whether to pretty-print JSON (default: True)
        """
        super().__init__(config)
        self.base_path = Path(config.get('base_path', './data'))
        self.pretty = config.get('pretty', True)

    async def connect(self) -> None:
        """Ensure base directory exists."""
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.is_connected = True
        logger.info(f"JSON storage initialized at {self.base_path}")

    async def disconnect(self) -> None:
        """No-op for JSON storage."""
        self.is_connected = False

    async def health_check(self) -> bool:
        """Check if base directory is accessible."""
        return self.base_path.exists() and self.base_path.is_dir()

    def _get_full_path(self, filename: str) -> Path:
        """
        Get full path for a file.

        Args:
            filename: Relative filename

        Returns:
            Full path object
        """
        if not filename.endswith('.json'):
            filename = f"{filename}.json"

        return self.base_path / filename

    def exists(self, filename: str) -> bool:
        return self._get_full_path(filename).exists()

    def save(self, filename: str, data: Any) -> bool:
        """
        Save data to a JSON file.

        Args:
            filename: File name (relative to base_path)
            data: Data to save

        Returns:
            bool: True if successful

        Raises:
            DataError: If the file cannot be written
        """
        try:
            filepath = self._get_full_path(filename)
            filepath.parent.mkdir(parents=True, exist_ok=True)

            # Atomic write with temporary file
            temp_path = filepath.with_suffix('.tmp')

            with open(temp_path, 'w', encoding='utf-8') as f:
                if self.pretty:
                    json.dump(data, f, indent=2, default=str)
                else:
                    json.dump(data, f, default=str)

            # Move temp file to final location
            temp_path.replace(filepath)

            logger.debug(f"Saved data to {filepath}")
            return True

        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to save JSON file {filename}: {e}")
            raise DataError(f"JSON save failed: {e}")

    def load(self, filename: str) -> Optional[Any]:
        """
        Load data from a JSON file.

        Args:
            filename: File name (relative to base_path)

        Returns:
            Loaded data or None if file doesn't exist

        Raises:
            DataError: If the file exists but cannot be read or parsed
        """
        filepath = self._get_full_path(filename)

        if not filepath.exists():
            return None

        try:
            with open(filepath, 'r', encoding='utf-8') as f:
                data = json.load(f)

            logger.debug(f"Loaded data from {filepath}")
            return data

        except (OSError, ValueError) as e:
            logger.error(f"Failed to load JSON file {filename}: {e}")
            raise DataError(f"JSON load failed: {e}")

    def list_files(self, subdir: str = "") -> List[str]:
        """List JSON file stems under a sub-directory of base_path."""
        directory = self.base_path / subdir if subdir else self.base_path
        if not directory.exists():
            return []
        return sorted(path.stem for path in directory.glob('*.json'))


class JsonSnapshotLog(SnapshotLog):
    """
    Snapshot log keeping one JSON array file per key.

    Every append is a read-modify-write of the whole array, so retention
    pruning can happen in the same write.
    """

    def __init__(self, storage: JsonStorage, namespace: str = ""):
        """
        Args:
            storage: JSON storage backend
            namespace: Sub-directory (relative to the storage base path) for this log
        """
        self.storage = storage
        self.namespace = namespace

    def _filename(self, key: str) -> str:
        safe_key = _UNSAFE_KEY_CHARS.sub('_', key)
        return f"{self.namespace}/{safe_key}" if self.namespace else safe_key

    def _read(self, key: str) -> List[Dict[str, Any]]:
        data = self.storage.load(self._filename(key))
        if data is None:
            return []
        if not isinstance(data, list):
            raise DataError(f"Snapshot log for {key} is not a JSON array")
        return data

    def _read_for_write(self, key: str) -> List[Dict[str, Any]]:
        # A log that cannot be read is rewritten from scratch, same as a missing one
        try:
            return self._read(key)
        except DataError as e:
            logger.warning(f"Discarding unreadable snapshot log for {key}: {e}")
            return []

    @staticmethod
    def _newer_than(records: List[Dict[str, Any]], cutoff: datetime) -> List[Dict[str, Any]]:
        kept = []
        for record in records:
            try:
                if parse_timestamp(record['timestamp']) >= cutoff:
                    kept.append(record)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed snapshot record: {e!r}")
        return kept

    def append(self, key: str, record: Dict[str, Any],
               retain_since: Optional[datetime] = None) -> None:
        records = self._read_for_write(key)
        records.append(record)

        if retain_since is not None:
            records = self._newer_than(records, retain_since)

        self.storage.save(self._filename(key), records)

    def load(self, key: str, since: Optional[datetime] = None) -> List[Dict[str, Any]]:
        records = self._read(key)
        if since is None:
            return records
        return self._newer_than(records, since)

    def prune(self, key: str, before: datetime) -> int:
        try:
            records = self._read(key)
        except DataError as e:
            logger.warning(f"Resetting unreadable snapshot log for {key}: {e}")
            self.storage.save(self._filename(key), [])
            return 0

        kept = self._newer_than(records, before)
        removed = len(records) - len(kept)
        if removed:
            self.storage.save(self._filename(key), kept)
        return removed

    def keys(self) -> List[str]:
        return self.storage.list_files(self.namespace)


class MemorySnapshotLog(SnapshotLog):
    """In-process snapshot log. Nothing survives a restart."""

    def __init__(self):
        self._logs: Dict[str, List[Dict[str, Any]]] = {}

    def append(self, key: str, record: Dict[str, Any],
               retain_since: Optional[datetime] = None) -> None:
        records = self._logs.setdefault(key, [])
        records.append(dict(record))
        if retain_since is not None:
            self._logs[key] = JsonSnapshotLog._newer_than(records, retain_since)

    def load(self, key: str, since: Optional[datetime] = None) -> List[Dict[str, Any]]:
        records = [dict(r) for r in self._logs.get(key, [])]
        if since is None:
            return records
        return JsonSnapshotLog._newer_than(records, since)

    def prune(self, key: str, before: datetime) -> int:
        records = self._logs.get(key, [])
        kept = JsonSnapshotLog._newer_than(records, before)
        self._logs[key] = kept
        return len(records) - len(kept)

    def keys(self) -> List[str]:
        return sorted(self._logs)
