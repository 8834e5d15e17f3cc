"""
Tests for the record stores

Tests cover:
- get/set/remove/has/get_all/clear contract on every backend
- full-record replacement (no merging) keeping insertion order
- key prefixes
- serialization failures leaving committed data intact
- SQLite persistence across connections
"""

import json
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import AsyncMock, patch

import aiofiles.os
import pytest

from fieldsync import FileStore, MemoryStore, SQLiteStore, StoreError


@pytest.fixture(params=["memory", "file"])
def store(request, tmp_path):
    if request.param == "memory":
        return MemoryStore()
    return FileStore(tmp_path / "records")


class TestStoreContract:
    """Behaviour every backend shares."""

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, store):
        assert await store.get("missing") is None
        assert await store.has("missing") is False

    @pytest.mark.asyncio
    async def test_set_and_get(self, store):
        await store.set("abc", {"cid": "abc", "attributes": {"taxon": 1}})
        assert await store.get("abc") == {"cid": "abc", "attributes": {"taxon": 1}}
        assert await store.has("abc") is True

    @pytest.mark.asyncio
    async def test_set_replaces_full_record(self, store):
        await store.set("abc", {"a": 1, "b": 2})
        await store.set("abc", {"c": 3})
        assert await store.get("abc") == {"c": 3}

    @pytest.mark.asyncio
    async def test_remove(self, store):
        await store.set("abc", {"a": 1})
        await store.remove("abc")
        await store.remove("abc")
        assert await store.has("abc") is False

    @pytest.mark.asyncio
    async def test_get_all_and_clear(self, store):
        await store.set("one", {"n": 1})
        await store.set("two", {"n": 2})

        assert await store.get_all() == {"one": {"n": 1}, "two": {"n": 2}}

        await store.clear()
        assert await store.get_all() == {}

    @pytest.mark.asyncio
    async def test_unserializable_value_keeps_committed_data(self, store):
        await store.set("abc", {"a": 1})
        with pytest.raises(StoreError):
            await store.set("abc", {"a": object()})
        assert await store.get("abc") == {"a": 1}

    @pytest.mark.asyncio
    async def test_keys_with_special_characters(self, store):
        await store.set("a/b c", {"n": 1})
        assert await store.get("a/b c") == {"n": 1}
        assert list((await store.get_all()).keys()) == ["a/b c"]

    @pytest.mark.asyncio
    async def test_replace_keeps_order(self, store):
        await store.set("a", {"n": 1})
        await store.set("b", {"n": 2})
        await store.set("a", {"n": 3})

        records = await store.get_all()

        assert list(records.keys()) == ["a", "b"]
        assert records["a"] == {"n": 3}


class TestPrefixes:
    """Stores sharing a backend are isolated by prefix."""

    @pytest.mark.asyncio
    async def test_file_prefix_isolation(self, tmp_path):
        first = FileStore(tmp_path, prefix="app1-")
        second = FileStore(tmp_path, prefix="app2-")

        await first.set("abc", {"n": 1})
        await second.set("abc", {"n": 2})

        assert await first.get_all() == {"abc": {"n": 1}}
        await first.clear()
        assert await second.get("abc") == {"n": 2}

    @pytest.mark.asyncio
    async def test_memory_prefix_strip(self):
        store = MemoryStore(prefix="app-")
        await store.set("abc", {"n": 1})
        assert "app-abc" in store._data
        assert await store.get_all() == {"abc": {"n": 1}}

    @pytest.mark.asyncio
    async def test_context_manager(self):
        async with MemoryStore() as store:
            await store.set("abc", {"n": 1})
            assert await store.has("abc")


class TestFileStore:
    """FileStore specifics."""

    @pytest.mark.asyncio
    async def test_corrupt_file_raises_store_error(self, tmp_path):
        store = FileStore(tmp_path)
        await store.set("abc", {"n": 1})
        (tmp_path / "abc.json").write_text("{not json")

        with pytest.raises(StoreError):
            await store.get("abc")

    @pytest.mark.asyncio
    async def test_no_temp_files_left(self, tmp_path):
        store = FileStore(tmp_path)
        await store.set("abc", {"n": 1})
        await store.set("abc", {"n": 2})
        assert sorted(p.name for p in tmp_path.iterdir()) == ["abc.json"]

    @pytest.mark.asyncio
    async def test_malformed_record_file_raises_store_error(self, tmp_path):
        (tmp_path / "abc.json").write_text(json.dumps({"n": 1}))

        with pytest.raises(StoreError):
            await FileStore(tmp_path).get("abc")

    @pytest.mark.asyncio
    async def test_order_survives_reopen(self, tmp_path):
        store = FileStore(tmp_path)
        await store.set("a", {"n": 1})
        await store.set("b", {"n": 2})

        reopened = FileStore(tmp_path)
        await reopened.set("a", {"n": 3})
        await reopened.set("c", {"n": 4})

        assert list((await reopened.get_all()).keys()) == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_has_wraps_os_error(self, tmp_path):
        store = FileStore(tmp_path)
        failing = AsyncMock(side_effect=PermissionError("denied"))

        with patch.object(aiofiles.os.path, "exists", failing):
            with pytest.raises(StoreError):
                await store.has("abc")


class TestSQLiteStore(unittest.IsolatedAsyncioTestCase):
    """Test suite for SQLiteStore."""

    async def asyncSetUp(self):
        """Set up test database."""
        self.temp_dir = tempfile.mkdtemp()
        self.db_path = Path(self.temp_dir) / "records.sqlite"
        self.store = SQLiteStore(self.db_path)

    async def asyncTearDown(self):
        """Clean up test database."""
        await self.store.close()
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    async def test_set_get(self):
        await self.store.set("abc", {"cid": "abc", "id": None})
        self.assertEqual(await self.store.get("abc"), {"cid": "abc", "id": None})
        self.assertTrue(await self.store.has("abc"))
        self.assertIsNone(await self.store.get("missing"))

    async def test_replace_keeps_order(self):
        await self.store.set("one", {"n": 1})
        await self.store.set("two", {"n": 2})
        await self.store.set("one", {"n": 11})

        records = await self.store.get_all()
        self.assertEqual(list(records.keys()), ["one", "two"])
        self.assertEqual(records["one"], {"n": 11})

    async def test_remove_and_clear(self):
        await self.store.set("one", {"n": 1})
        await self.store.set("two", {"n": 2})

        await self.store.remove("one")
        self.assertFalse(await self.store.has("one"))

        await self.store.clear()
        self.assertEqual(await self.store.get_all(), {})

    async def test_persists_across_connections(self):
        await self.store.set("abc", {"n": 1})
        await self.store.close()

        reopened = SQLiteStore(self.db_path)
        try:
            self.assertEqual(await reopened.get("abc"), {"n": 1})
        finally:
            await reopened.close()

    async def test_prefix_isolation(self):
        other = SQLiteStore(self.db_path, prefix="other-")
        try:
            await self.store.set("abc", {"n": 1})
            await other.set("abc", {"n": 2})

            self.assertEqual(await other.get_all(), {"abc": {"n": 2}})
            await other.clear()
            self.assertEqual(await self.store.get("abc"), {"n": 1})
        finally:
            await other.close()

    async def test_unserializable_value(self):
        await self.store.set("abc", {"n": 1})
        with self.assertRaises(StoreError):
            await self.store.set("abc", {"n": object()})
        self.assertEqual(await self.store.get("abc"), {"n": 1})
