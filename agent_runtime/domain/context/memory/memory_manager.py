from typing import Dict, List, Any, Optional, TYPE_CHECKING
import structlog

from agent_runtime.domain.exceptions import EmptyContentError
from agent_runtime.domain.models.agent_state import Memory, now_ms

if TYPE_CHECKING:
    from agent_runtime.domain.runtime.agent_runtime import AgentRuntime

logger = structlog.get_logger(__name__)

DEFAULT_MATCH_THRESHOLD = 0.1
DEFAULT_MATCH_COUNT = 10


class MemoryManager:
    """Typed access to one category of memories, independent of the physical store"""

    def __init__(self, runtime: "AgentRuntime", table_name: str):
        self.runtime = runtime
        self.table_name = table_name

    @property
    def database_adapter(self):
        return self.runtime.database_adapter

    async def add_embedding_to_memory(self, memory: Memory) -> Memory:
        """Return the memory with an embedding attached"""

        if memory.embedding:
            return memory

        text = memory.content.text
        if not text:
            raise EmptyContentError(f"Memory {memory.id} has no text to embed")

        embedding = await self.runtime.embed(text)
        return memory.model_copy(update={"embedding": embedding})

    async def get_memories(
        self,
        room_id: str,
        count: int = 10,
        unique: bool = True,
        agent_id: Optional[str] = None,
        start: Optional[int] = None,
        end: Optional[int] = None
    ) -> List[Memory]:
        """Memories of a room, newest first. Never raises."""

        try:
            return await self.database_adapter.get_memories(
                room_id=room_id,
                table_name=self.table_name,
                count=count,
                unique=unique,
                agent_id=agent_id,
                start=start,
                end=end
            )
        except Exception as e:
            logger.error(
                "Failed to read memories",
                table_name=self.table_name,
                room_id=room_id,
                error=str(e)
            )
            return []

    async def get_cached_embeddings(self, content: str) -> List[Dict[str, Any]]:
        """Stored embeddings whose text is within edit distance 2 of ``content``"""

        try:
            return await self.database_adapter.get_cached_embeddings(
                query_table_name=self.table_name,
                query_threshold=2,
                query_input=content,
                query_field_name="content",
                query_field_sub_name="text",
                query_match_count=10
            )
        except Exception as e:
            logger.warning("Embedding cache lookup failed", table_name=self.table_name, error=str(e))
            return []

    async def search_memories_by_embedding(
        self,
        embedding: List[float],
        match_threshold: float = DEFAULT_MATCH_THRESHOLD,
        count: int = DEFAULT_MATCH_COUNT,
        room_id: Optional[str] = None,
        unique: bool = False
    ) -> List[Memory]:
        return await self.database_adapter.search_memories(
            table_name=self.table_name,
            room_id=room_id,
            embedding=embedding,
            match_threshold=match_threshold,
            match_count=count,
            unique=bool(unique)
        )

    async def create_memory(self, memory: Memory, unique: bool = False) -> None:
        """Store a memory unless one with the same id already exists"""

        existing = await self.database_adapter.get_memory_by_id(memory.id)
        if existing:
            logger.debug("Memory already exists, skipping", memory_id=memory.id)
            return

        logger.info(
            "Creating memory",
            memory_id=memory.id,
            table_name=self.table_name,
            preview=memory.content.text[:80]
        )
        await self.database_adapter.create_memory(memory, self.table_name, unique)

    async def get_memories_by_room_ids(self, agent_id: str, room_ids: List[str]) -> List[Memory]:
        if not room_ids:
            return []

        try:
            return await self.database_adapter.get_memories_by_room_ids(
                room_ids=room_ids,
                table_name=self.table_name,
                agent_id=agent_id
            )
        except Exception as e:
            logger.error(
                "Failed to read memories across rooms",
                table_name=self.table_name,
                room_count=len(room_ids),
                error=str(e)
            )
            return []

    async def get_memory_by_id(self, memory_id: str) -> Optional[Memory]:
        return await self.database_adapter.get_memory_by_id(memory_id)

    async def remove_memory(self, memory_id: str) -> None:
        await self.database_adapter.remove_memory(memory_id, self.table_name)

    async def remove_all_memories(self, room_id: str) -> None:
        await self.database_adapter.remove_all_memories(room_id, self.table_name)

    async def count_memories(self, room_id: str, unique: bool = True) -> int:
        return await self.database_adapter.count_memories(room_id, unique, self.table_name)

    async def cleanup_old_memories(self, room_id: str, max_age_ms: Optional[int] = None) -> int:
        """Delete non-unique memories older than ``max_age_ms`` (default from settings); returns the count"""

        if max_age_ms is None:
            max_age_ms = self.runtime.settings.memory_max_age_ms
        cutoff = now_ms() - max_age_ms
        removed = await self.database_adapter.cleanup_old_memories(room_id, cutoff, self.table_name)
        if removed:
            logger.info(
                "Cleaned up old memories",
                table_name=self.table_name,
                room_id=room_id,
                removed=removed
            )
        return removed
