"""
Tests for the expiring cache and stored content decoding
"""
import json

import pytest

from agent_runtime.domain.context.memory.cache_memory_store import CacheManager
from agent_runtime.domain.context.memory.content_codec import decode_content, encode_content
from agent_runtime.domain.models.agent_state import Content, now_ms
from agent_runtime.infrastructure.cache.cache_adapters import DbCacheAdapter, FsCacheAdapter, MemoryCacheAdapter


class TestCacheManager:
    @pytest.mark.asyncio
    async def test_round_trip_without_expiry(self):
        cache = CacheManager(MemoryCacheAdapter())

        await cache.set("greeting", {"text": "hi"})

        assert await cache.get("greeting") == {"text": "hi"}

    @pytest.mark.asyncio
    async def test_stored_as_envelope(self):
        adapter = MemoryCacheAdapter()
        cache = CacheManager(adapter)

        await cache.set("key", [1, 2], expires=12345)

        assert json.loads(adapter.data["key"]) == {"value": [1, 2], "expires": 12345}

    @pytest.mark.asyncio
    async def test_expired_entry_is_a_miss_and_removed(self):
        adapter = MemoryCacheAdapter()
        cache = CacheManager(adapter)

        await cache.set("old", "value", expires=now_ms() - 1000)

        assert await cache.get("old") is None
        assert "old" not in adapter.data

    @pytest.mark.asyncio
    async def test_future_expiry_is_a_hit(self):
        cache = CacheManager(MemoryCacheAdapter())

        await cache.set("fresh", "value", expires=now_ms() + 60_000)

        assert await cache.get("fresh") == "value"

    @pytest.mark.asyncio
    async def test_corrupt_entry_is_a_miss(self):
        cache = CacheManager(MemoryCacheAdapter({"broken": "not json", "shape": json.dumps([1, 2])}))

        assert await cache.get("broken") is None
        assert await cache.get("shape") is None

    @pytest.mark.asyncio
    async def test_missing_key(self):
        assert await CacheManager(MemoryCacheAdapter()).get("absent") is None


class TestCacheAdapters:
    @pytest.mark.asyncio
    async def test_fs_adapter(self, tmp_path):
        cache = CacheManager(FsCacheAdapter(tmp_path / "cache"))

        await cache.set("embedding/a/b", [0.1, 0.2])
        assert await cache.get("embedding/a/b") == [0.1, 0.2]

        await cache.delete("embedding/a/b")
        await cache.delete("embedding/a/b")
        assert await cache.get("embedding/a/b") is None

    @pytest.mark.asyncio
    async def test_db_adapter_is_scoped_per_agent(self, adapter):
        first = CacheManager(DbCacheAdapter(adapter, "agent-1"))
        second = CacheManager(DbCacheAdapter(adapter, "agent-2"))

        await first.set("shared", "one")

        assert await first.get("shared") == "one"
        assert await second.get("shared") is None


class TestContentCodec:
    def test_encodes_single_json(self):
        encoded = encode_content(Content(text="hi", action="WAVE"))

        assert json.loads(encoded) == {"text": "hi", "action": "WAVE", "attachments": []}

    def test_decodes_json(self):
        assert decode_content(json.dumps({"text": "hi", "action": "WAVE"})).action == "WAVE"

    def test_decodes_double_encoded(self):
        raw = json.dumps(json.dumps({"text": "nested"}))

        assert decode_content(raw).text == "nested"

    def test_plain_text_becomes_text(self):
        assert decode_content("just words").text == "just words"

    def test_other_json_becomes_text(self):
        assert decode_content("42").text == "42"

    def test_none_is_empty(self):
        assert decode_content(None).text == ""

    def test_extra_fields_survive(self):
        content = decode_content(json.dumps({"text": "hi", "mood": "happy"}))

        assert content.model_extra["mood"] == "happy"
