"""
Store - Abstract interface for durable record storage

Provides the async key-value contract the sync engine persists through.
Each backend (memory, SQLite, JSON files) implements get, set, remove, has,
get_all and clear. Values are plain JSON-compatible dicts.
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from ..errors import StoreError


class Store(ABC):
    """
    Abstract base class for record stores

    Contract:
    - every operation is a coroutine and may raise StoreError
    - set() replaces the full value under a key, never merges
    - a write is atomic per key; a failed write leaves committed data intact
    """

    def __init__(self, prefix: str = ""):
        """
        Initialize store

        Args:
            prefix: Optional namespace for all keys (e.g., "myapp-")
        """
        self.prefix = prefix

    def _make_key(self, key: str) -> str:
        """Apply prefix to key"""
        return self.prefix + key

    def _strip_key(self, key: str) -> str:
        """Remove prefix from a stored key"""
        return key[len(self.prefix):] if self.prefix and key.startswith(self.prefix) else key

    @staticmethod
    def _dumps(value: Dict[str, Any]) -> str:
        try:
            return json.dumps(value)
        except (TypeError, ValueError) as e:
            raise StoreError(f"Value is not serializable: {e}") from e

    @staticmethod
    def _loads(key: str, raw: str) -> Dict[str, Any]:
        try:
            return json.loads(raw)
        except (TypeError, ValueError) as e:
            raise StoreError(f"Corrupt value under key '{key}': {e}") from e

    @abstractmethod
    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        """
        Get the value stored under a key

        Args:
            key: Record key

        Returns:
            The stored value, or None if the key doesn't exist

        Raises:
            StoreError: If the read fails
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: Dict[str, Any]) -> None:
        """
        Store a value, replacing anything under the key

        Args:
            key: Record key
            value: JSON-compatible dict

        Raises:
            StoreError: If the value can't be serialized or the write fails
        """
        pass

    @abstractmethod
    async def remove(self, key: str) -> None:
        """
        Remove a key; removing a missing key is a no-op

        Raises:
            StoreError: If the delete fails
        """
        pass

    @abstractmethod
    async def has(self, key: str) -> bool:
        """
        Check whether a key exists

        Raises:
            StoreError: If the check fails
        """
        pass

    @abstractmethod
    async def get_all(self) -> Dict[str, Dict[str, Any]]:
        """
        Get every stored record

        Returns:
            Dict of key -> value (keys without prefix), in insertion order

        Raises:
            StoreError: If the read fails
        """
        pass

    @abstractmethod
    async def clear(self) -> None:
        """
        Remove every record in this store's namespace

        Raises:
            StoreError: If the delete fails
        """
        pass

    async def close(self) -> None:
        """Release backend resources"""
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
