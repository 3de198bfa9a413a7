"""
Tests for memory managers, the in-memory adapter and embedding reuse
"""
import pytest

from agent_runtime.domain.exceptions import EmptyContentError
from agent_runtime.domain.models.agent_state import Memory, Content, now_ms
from conftest import ROOM_ID, make_message


class TestCreateMemory:
    @pytest.mark.asyncio
    async def test_same_id_is_stored_once(self, runtime):
        message = make_message(runtime.agent_id, "first")

        await runtime.message_manager.create_memory(message)
        await runtime.message_manager.create_memory(message.model_copy(update={"content": Content(text="second")}))

        assert await runtime.message_manager.count_memories(ROOM_ID, unique=False) == 1
        stored = await runtime.message_manager.get_memory_by_id(message.id)
        assert stored.content.text == "first"

    @pytest.mark.asyncio
    async def test_adapter_rejects_duplicates(self, adapter, runtime):
        message = make_message(runtime.agent_id)
        await adapter.create_memory(message, "messages")

        with pytest.raises(ValueError):
            await adapter.create_memory(message, "messages")

    @pytest.mark.asyncio
    async def test_tables_are_separate(self, runtime):
        await runtime.message_manager.create_memory(make_message(runtime.agent_id, "chat"))

        assert await runtime.lore_manager.get_memories(ROOM_ID, unique=False) == []
        assert len(await runtime.message_manager.get_memories(ROOM_ID, unique=False)) == 1


class TestAddEmbedding:
    @pytest.mark.asyncio
    async def test_returns_embedded_copy(self, runtime):
        message = make_message(runtime.agent_id, "embed me")

        embedded = await runtime.message_manager.add_embedding_to_memory(message)

        assert embedded.embedding
        assert message.embedding is None

    @pytest.mark.asyncio
    async def test_existing_embedding_is_kept(self, runtime, embedder):
        message = make_message(runtime.agent_id, "embed me").model_copy(update={"embedding": [1.0, 2.0]})

        embedded = await runtime.message_manager.add_embedding_to_memory(message)

        assert embedded.embedding == [1.0, 2.0]
        assert embedder.calls == []

    @pytest.mark.asyncio
    async def test_empty_text_raises(self, runtime):
        with pytest.raises(EmptyContentError):
            await runtime.message_manager.add_embedding_to_memory(make_message(runtime.agent_id, ""))


class TestGetMemories:
    @pytest.mark.asyncio
    async def test_newest_first_with_count(self, runtime):
        now = now_ms()
        for offset, text in enumerate(["oldest", "middle", "newest"]):
            await runtime.message_manager.create_memory(
                make_message(runtime.agent_id, text, created_at=now + offset)
            )

        memories = await runtime.message_manager.get_memories(ROOM_ID, count=2, unique=False)

        assert [m.content.text for m in memories] == ["newest", "middle"]

    @pytest.mark.asyncio
    async def test_storage_failure_degrades_to_empty(self, runtime, adapter, monkeypatch):
        async def broken(**kwargs):
            raise ConnectionError("database down")

        monkeypatch.setattr(adapter, "get_memories", broken)

        assert await runtime.message_manager.get_memories(ROOM_ID) == []

    @pytest.mark.asyncio
    async def test_no_room_ids_skips_storage(self, runtime, adapter, monkeypatch):
        async def unexpected(**kwargs):
            raise AssertionError("storage should not be queried")

        monkeypatch.setattr(adapter, "get_memories_by_room_ids", unexpected)

        assert await runtime.message_manager.get_memories_by_room_ids(runtime.agent_id, []) == []


class TestSearch:
    @pytest.mark.asyncio
    async def test_closest_memory_first(self, runtime, embedder):
        for text in ["cats like milk", "the stock market fell"]:
            await runtime.knowledge_manager.create_memory(Memory(
                id=f"fragment-{text}",
                user_id=runtime.agent_id,
                agent_id=runtime.agent_id,
                room_id=runtime.agent_id,
                content=Content(text=text),
                embedding=embedder.embed_query(text)
            ))

        results = await runtime.knowledge_manager.search_memories_by_embedding(
            embedder.embed_query("cats like milk"),
            room_id=runtime.agent_id
        )

        assert results[0].content.text == "cats like milk"
        assert results[0].similarity == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_cached_embeddings_tolerate_small_edits(self, runtime, adapter):
        stored = make_message(runtime.agent_id, "hello world").model_copy(update={"embedding": [0.5, 0.5]})
        await adapter.create_memory(stored, "messages")

        near = await runtime.message_manager.get_cached_embeddings("hello world!")
        far = await runtime.message_manager.get_cached_embeddings("something else entirely")

        assert near[0]["embedding"] == [0.5, 0.5]
        assert far == []


class TestEmbeddingReuse:
    @pytest.mark.asyncio
    async def test_identical_text_embeds_once(self, runtime, embedder):
        first = await runtime.embed("repeat after me")
        second = await runtime.embed("repeat after me")

        assert first == second
        assert embedder.calls == ["repeat after me"]

    @pytest.mark.asyncio
    async def test_stored_message_embedding_is_reused(self, runtime, adapter, embedder):
        stored = make_message(runtime.agent_id, "known text").model_copy(update={"embedding": [0.1, 0.2]})
        await adapter.create_memory(stored, "messages")

        assert await runtime.embed("known text") == [0.1, 0.2]
        assert embedder.calls == []


class TestCleanup:
    @pytest.mark.asyncio
    async def test_removes_only_old_non_unique(self, runtime, adapter):
        old = now_ms() - 2 * 24 * 60 * 60 * 1000
        await runtime.message_manager.create_memory(make_message(runtime.agent_id, "stale", created_at=old))
        await adapter.create_memory(make_message(runtime.agent_id, "keep", created_at=old), "messages", unique=True)
        await runtime.message_manager.create_memory(make_message(runtime.agent_id, "fresh"))

        removed = await runtime.message_manager.cleanup_old_memories(ROOM_ID)

        assert removed == 1
        remaining = await runtime.message_manager.get_memories(ROOM_ID, unique=False)
        assert sorted(m.content.text for m in remaining) == ["fresh", "keep"]

    @pytest.mark.asyncio
    async def test_default_age_comes_from_settings(self, make_runtime, settings):
        runtime = make_runtime(settings=settings.model_copy(update={"memory_max_age_ms": 60 * 1000}))
        await runtime.message_manager.create_memory(
            make_message(runtime.agent_id, "ten minutes old", created_at=now_ms() - 10 * 60 * 1000)
        )
        await runtime.message_manager.create_memory(make_message(runtime.agent_id, "fresh"))

        removed = await runtime.message_manager.cleanup_old_memories(ROOM_ID)

        assert removed == 1
        remaining = await runtime.message_manager.get_memories(ROOM_ID, unique=False)
        assert [m.content.text for m in remaining] == ["fresh"]
