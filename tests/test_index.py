"""Tests for the index manager and key derivation."""

from __future__ import annotations

import json

import pytest

from labledger.exceptions import RemoteWriteError
from labledger.index import INDEX_KEY, IndexManager, record_key


class TestRecordKey:
    def test_prefix(self):
        assert record_key("1700000000000-abc1234") == "experiment_1700000000000-abc1234"

    def test_index_key_literal(self):
        assert INDEX_KEY == "experiment_keys"

    def test_rejects_id_aliasing_index(self):
        with pytest.raises(ValueError, match="index key"):
            record_key("keys")

    def test_rejects_empty(self):
        with pytest.raises(ValueError):
            record_key("")


class TestLoadIndex:
    @pytest.mark.asyncio
    async def test_absent_is_empty(self, store):
        assert await IndexManager(store).load_index() == []

    @pytest.mark.asyncio
    async def test_reads_ids_in_order(self, store):
        store.put(INDEX_KEY, b'["b","a","c"]')
        assert await IndexManager(store).load_index() == ["b", "a", "c"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("blob", [b"{oops", b'{"ids": []}', b"\xff"])
    async def test_malformed_is_empty(self, store, blob):
        store.put(INDEX_KEY, blob)
        assert await IndexManager(store).load_index() == []

    @pytest.mark.asyncio
    async def test_drops_non_string_entries(self, store):
        store.put(INDEX_KEY, b'["a", 7, null, "b"]')
        assert await IndexManager(store).load_index() == ["a", "b"]


class TestAppendId:
    @pytest.mark.asyncio
    async def test_creates_index_on_first_append(self, store):
        ids = await IndexManager(store).append_id("a", sender="0xA")
        assert ids == ["a"]
        assert json.loads(await store.get_data(INDEX_KEY)) == ["a"]

    @pytest.mark.asyncio
    async def test_appends_at_end(self, store):
        store.put(INDEX_KEY, b'["a"]')
        await IndexManager(store).append_id("b", sender="0xA")
        assert json.loads(await store.get_data(INDEX_KEY)) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_idempotent(self, store):
        index = IndexManager(store)
        await index.append_id("x", sender="0xA")
        await index.append_id("x", sender="0xA")

        assert json.loads(await store.get_data(INDEX_KEY)) == ["x"]
        assert store.writes() == [INDEX_KEY]

    @pytest.mark.asyncio
    async def test_recovers_from_malformed_index(self, store):
        store.put(INDEX_KEY, b"garbage")
        await IndexManager(store).append_id("a", sender="0xA")
        assert json.loads(await store.get_data(INDEX_KEY)) == ["a"]

    @pytest.mark.asyncio
    async def test_write_failure_propagates(self, store):
        store.fail_next_write(INDEX_KEY)
        with pytest.raises(RemoteWriteError):
            await IndexManager(store).append_id("a", sender="0xA")
        assert await store.get_data(INDEX_KEY) == b""

    @pytest.mark.asyncio
    async def test_concurrent_appends_can_drop_an_id(self, store):
        """Two read-modify-write cycles interleaved: last writer wins."""
        first = IndexManager(store)
        second = IndexManager(store)

        ids_first = await first.load_index()
        ids_second = await second.load_index()
        ids_first.append("a")
        ids_second.append("b")
        store.put(INDEX_KEY, json.dumps(ids_first).encode())
        store.put(INDEX_KEY, json.dumps(ids_second).encode())

        assert await first.load_index() == ["b"]
