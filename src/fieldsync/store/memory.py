"""
In-memory store. Values are serialized on write so a record that could not
be persisted by a durable backend fails here too.
"""

from typing import Any, Dict, Optional

from .base import Store


class MemoryStore(Store):
    """Process-local store, mainly for tests and ephemeral sessions."""

    def __init__(self, prefix: str = ""):
        super().__init__(prefix)
        self._data: Dict[str, str] = {}

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        key = self._make_key(key)
        raw = self._data.get(key)
        return None if raw is None else self._loads(key, raw)

    async def set(self, key: str, value: Dict[str, Any]) -> None:
        # serialize first so a failure leaves the old value untouched
        raw = self._dumps(value)
        self._data[self._make_key(key)] = raw

    async def remove(self, key: str) -> None:
        self._data.pop(self._make_key(key), None)

    async def has(self, key: str) -> bool:
        return self._make_key(key) in self._data

    async def get_all(self) -> Dict[str, Dict[str, Any]]:
        return {
            self._strip_key(key): self._loads(key, raw)
            for key, raw in self._data.items()
            if key.startswith(self.prefix)
        }

    async def clear(self) -> None:
        for key in [k for k in self._data if k.startswith(self.prefix)]:
            del self._data[key]
