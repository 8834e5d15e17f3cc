"""
File Store - one JSON document per key, written with aiofiles.

Each write goes to a temporary file in the same directory which is then
renamed over the target, so a crash mid-write leaves the previous record.

A file holds {"order": <int>, "value": <record>}. The order stamp is taken
when a key is first written and carried over on every rewrite, so get_all()
returns records in insertion order like the other stores.
"""

import os
import time
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union
from urllib.parse import quote, unquote

import aiofiles
import aiofiles.os

from ..errors import StoreError
from .base import Store

logger = logging.getLogger(__name__)


class FileStore(Store):
    """Durable store keeping records as <directory>/<key>.json files."""

    SUFFIX = ".json"

    def __init__(self, directory: Union[str, Path], prefix: str = ""):
        """
        Args:
            directory: Directory holding the record files (created if missing)
            prefix: Optional key namespace
        """
        super().__init__(prefix)
        self.directory = Path(directory)
        self._last_order = 0

    def _path(self, key: str) -> Path:
        return self.directory / (quote(self._make_key(key), safe="") + self.SUFFIX)

    def _ensure_directory(self) -> None:
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreError(f"Cannot create store directory {self.directory}: {e}") from e

    def _record_paths(self):
        if not self.directory.exists():
            return []
        paths = []
        for path in self.directory.glob(f"*{self.SUFFIX}"):
            key = unquote(path.name[: -len(self.SUFFIX)])
            if key.startswith(self.prefix):
                paths.append((key, path))
        return paths

    def _next_order(self) -> int:
        # strictly increasing within this instance even if the clock stalls
        self._last_order = max(time.time_ns(), self._last_order + 1)
        return self._last_order

    def _unwrap(self, key: str, raw: str) -> Tuple[int, Dict[str, Any]]:
        document = self._loads(key, raw)
        if (
            not isinstance(document, dict)
            or not isinstance(document.get("order"), int)
            or "value" not in document
        ):
            raise StoreError(f"Malformed record file for key '{key}'")
        return document["order"], document["value"]

    async def _read(self, key: str, path: Path) -> Optional[Tuple[int, Dict[str, Any]]]:
        try:
            async with aiofiles.open(path, "r", encoding="utf-8") as f:
                raw = await f.read()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StoreError(f"Failed to read '{key}': {e}") from e
        return self._unwrap(key, raw)

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        record = await self._read(key, self._path(key))
        if record is None:
            return None
        return record[1]

    async def set(self, key: str, value: Dict[str, Any]) -> None:
        # serialize before touching the disk so a bad value leaves the old file
        self._dumps(value)
        self._ensure_directory()
        path = self._path(key)

        try:
            previous = await self._read(key, path)
        except StoreError as e:
            logger.warning(f"Overwriting unreadable record '{key}': {e}")
            previous = None
        order = previous[0] if previous is not None else self._next_order()
        raw = self._dumps({"order": order, "value": value})

        tmp_path = path.with_name(path.name + ".tmp")
        try:
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(raw)
                await f.flush()
            await aiofiles.os.replace(tmp_path, path)
        except OSError as e:
            if tmp_path.exists():
                os.unlink(tmp_path)
            raise StoreError(f"Failed to write '{key}': {e}") from e

    async def remove(self, key: str) -> None:
        try:
            await aiofiles.os.remove(self._path(key))
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StoreError(f"Failed to remove '{key}': {e}") from e

    async def has(self, key: str) -> bool:
        try:
            return await aiofiles.os.path.exists(self._path(key))
        except OSError as e:
            raise StoreError(f"Failed to check '{key}': {e}") from e

    async def get_all(self) -> Dict[str, Dict[str, Any]]:
        try:
            paths = self._record_paths()
        except OSError as e:
            raise StoreError(f"Failed to list records in {self.directory}: {e}") from e

        entries = []
        for stored_key, path in paths:
            record = await self._read(stored_key, path)
            if record is None:
                # removed between listing and reading
                continue
            order, value = record
            entries.append((order, stored_key, value))

        entries.sort(key=lambda entry: (entry[0], entry[1]))
        return {self._strip_key(stored_key): value for _, stored_key, value in entries}

    async def clear(self) -> None:
        try:
            for _, path in self._record_paths():
                await aiofiles.os.remove(path)
        except OSError as e:
            raise StoreError(f"Failed to clear {self.directory}: {e}") from e
        logger.debug(f"Cleared store {self.directory}")
