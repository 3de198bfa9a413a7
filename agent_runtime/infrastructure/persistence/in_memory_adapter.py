from typing import Dict, List, Any, Optional, Set
from collections import defaultdict
import asyncio
import uuid

import numpy as np
import structlog

from agent_runtime.domain.context.memory.content_codec import decode_content, encode_content
from agent_runtime.domain.models.agent_state import Account, Goal, Memory, Relationship
from .database_adapter import DatabaseAdapter

logger = structlog.get_logger(__name__)


class InMemoryDatabaseAdapter(DatabaseAdapter):
    """Process-local storage collaborator for development and tests.

    Memory rows are kept with their content encoded exactly as a persistent
    store would hold it, and decoded on every read.
    """

    def __init__(self):
        self.memory_rows: Dict[str, Dict[str, Any]] = {}
        self.goals: Dict[str, Goal] = {}
        self.rooms: Set[str] = set()
        self.participants: Dict[str, Set[str]] = defaultdict(set)
        self.accounts: Dict[str, Account] = {}
        self.relationships: List[Relationship] = []
        self.cache: Dict[str, str] = {}
        self._lock = asyncio.Lock()

    # Memories

    async def get_memories(
        self,
        room_id: str,
        table_name: str,
        count: Optional[int] = None,
        unique: bool = False,
        agent_id: Optional[str] = None,
        start: Optional[int] = None,
        end: Optional[int] = None
    ) -> List[Memory]:
        async with self._lock:
            rows = [
                row for row in self.memory_rows.values()
                if row["table_name"] == table_name
                and row["room_id"] == room_id
                and (not unique or row["is_unique"])
                and (agent_id is None or row["agent_id"] == agent_id)
                and (start is None or row["created_at"] >= start)
                and (end is None or row["created_at"] <= end)
            ]

        rows.sort(key=lambda row: row["created_at"], reverse=True)
        if count is not None:
            rows = rows[:count]

        return [self._to_memory(row) for row in rows]

    async def get_memories_by_room_ids(
        self,
        room_ids: List[str],
        table_name: str,
        agent_id: Optional[str] = None
    ) -> List[Memory]:
        wanted = set(room_ids)
        async with self._lock:
            rows = [
                row for row in self.memory_rows.values()
                if row["table_name"] == table_name
                and row["room_id"] in wanted
                and (agent_id is None or row["agent_id"] == agent_id)
            ]
        return [self._to_memory(row) for row in rows]

    async def get_memory_by_id(self, memory_id: str) -> Optional[Memory]:
        async with self._lock:
            row = self.memory_rows.get(memory_id)
        return self._to_memory(row) if row else None

    async def create_memory(self, memory: Memory, table_name: str, unique: bool = False) -> None:
        async with self._lock:
            if memory.id in self.memory_rows:
                raise ValueError(f"Duplicate memory id {memory.id}")

            self.memory_rows[memory.id] = {
                "id": memory.id,
                "type": memory.type,
                "table_name": table_name,
                "content": encode_content(memory.content),
                "embedding": list(memory.embedding) if memory.embedding else None,
                "user_id": memory.user_id,
                "agent_id": memory.agent_id,
                "room_id": memory.room_id,
                "created_at": memory.created_at,
                "is_unique": unique or memory.is_unique,
            }

    async def remove_memory(self, memory_id: str, table_name: str) -> None:
        async with self._lock:
            row = self.memory_rows.get(memory_id)
            if row and row["table_name"] == table_name:
                del self.memory_rows[memory_id]

    async def remove_all_memories(self, room_id: str, table_name: str) -> None:
        async with self._lock:
            doomed = [
                memory_id for memory_id, row in self.memory_rows.items()
                if row["room_id"] == room_id and row["table_name"] == table_name
            ]
            for memory_id in doomed:
                del self.memory_rows[memory_id]

    async def count_memories(self, room_id: str, unique: bool = True, table_name: str = "messages") -> int:
        async with self._lock:
            return sum(
                1 for row in self.memory_rows.values()
                if row["room_id"] == room_id
                and row["table_name"] == table_name
                and (not unique or row["is_unique"])
            )

    async def search_memories(
        self,
        table_name: str,
        room_id: Optional[str],
        embedding: List[float],
        match_threshold: float,
        match_count: int,
        unique: bool
    ) -> List[Memory]:
        return await self.search_memories_by_embedding(
            embedding,
            table_name=table_name,
            match_threshold=match_threshold,
            count=match_count,
            room_id=room_id,
            unique=unique
        )

    async def search_memories_by_embedding(
        self,
        embedding: List[float],
        table_name: str,
        match_threshold: Optional[float] = None,
        count: Optional[int] = None,
        room_id: Optional[str] = None,
        agent_id: Optional[str] = None,
        unique: bool = False
    ) -> List[Memory]:
        query = np.array(embedding, dtype=np.float32)
        norm_query = np.linalg.norm(query)
        if norm_query == 0:
            return []

        async with self._lock:
            candidates = [
                row for row in self.memory_rows.values()
                if row["table_name"] == table_name
                and row["embedding"]
                and (room_id is None or row["room_id"] == room_id)
                and (agent_id is None or row["agent_id"] == agent_id)
                and (not unique or row["is_unique"])
            ]

        scored = []
        for row in candidates:
            stored = np.array(row["embedding"], dtype=np.float32)
            if stored.shape != query.shape:
                continue
            norm_stored = np.linalg.norm(stored)
            if norm_stored == 0:
                continue
            similarity = float(np.dot(query, stored) / (norm_query * norm_stored))
            if match_threshold is None or similarity >= match_threshold:
                scored.append((similarity, row))

        scored.sort(key=lambda item: item[0], reverse=True)
        if count is not None:
            scored = scored[:count]

        return [self._to_memory(row, similarity=similarity) for similarity, row in scored]

    async def get_cached_embeddings(
        self,
        query_table_name: str,
        query_threshold: int,
        query_input: str,
        query_field_name: str,
        query_field_sub_name: str,
        query_match_count: int
    ) -> List[Dict[str, Any]]:
        async with self._lock:
            rows = [
                row for row in self.memory_rows.values()
                if row["table_name"] == query_table_name and row["embedding"]
            ]

        results = []
        for row in rows:
            text = decode_content(row["content"], row["id"]).text
            score = _levenshtein(query_input, text)
            if score <= query_threshold:
                results.append({"embedding": row["embedding"], "levenshtein_score": score})

        results.sort(key=lambda item: item["levenshtein_score"])
        return results[:query_match_count]

    async def cleanup_old_memories(self, room_id: str, cutoff: int, table_name: str) -> int:
        async with self._lock:
            doomed = [
                memory_id for memory_id, row in self.memory_rows.items()
                if row["room_id"] == room_id
                and row["table_name"] == table_name
                and row["created_at"] < cutoff
                and not row["is_unique"]
            ]
            for memory_id in doomed:
                del self.memory_rows[memory_id]
        return len(doomed)

    # Goals

    async def get_goals(
        self,
        room_id: str,
        user_id: Optional[str] = None,
        only_in_progress: bool = True,
        count: int = 5
    ) -> List[Goal]:
        async with self._lock:
            goals = [
                goal for goal in self.goals.values()
                if goal.room_id == room_id
                and (user_id is None or goal.user_id == user_id)
                and (not only_in_progress or goal.status.value == "IN_PROGRESS")
            ]
        # Most recently stored first
        goals.reverse()
        return goals[:count]

    async def create_goal(self, goal: Goal) -> None:
        async with self._lock:
            goal_id = goal.id or str(uuid.uuid4())
            self.goals[goal_id] = goal.model_copy(update={"id": goal_id})

    async def update_goal(self, goal: Goal) -> None:
        async with self._lock:
            if goal.id not in self.goals:
                raise KeyError(f"Unknown goal {goal.id}")
            self.goals[goal.id] = goal

    async def remove_goal(self, goal_id: str) -> None:
        async with self._lock:
            self.goals.pop(goal_id, None)

    async def remove_all_goals(self, room_id: str) -> None:
        async with self._lock:
            for goal_id in [gid for gid, goal in self.goals.items() if goal.room_id == room_id]:
                del self.goals[goal_id]

    # Rooms and participants

    async def get_room(self, room_id: str) -> Optional[str]:
        return room_id if room_id in self.rooms else None

    async def create_room(self, room_id: Optional[str] = None) -> str:
        room_id = room_id or str(uuid.uuid4())
        async with self._lock:
            self.rooms.add(room_id)
        return room_id

    async def remove_room(self, room_id: str) -> None:
        async with self._lock:
            self.rooms.discard(room_id)
            for rooms in self.participants.values():
                rooms.discard(room_id)

    async def get_rooms_for_participant(self, user_id: str) -> List[str]:
        return sorted(self.participants.get(user_id, set()))

    async def get_rooms_for_participants(self, user_ids: List[str]) -> List[str]:
        if not user_ids:
            return []
        rooms: Set[str] = set(self.participants.get(user_ids[0], set()))
        for user_id in user_ids[1:]:
            rooms &= self.participants.get(user_id, set())
        return sorted(rooms)

    async def add_participant(self, user_id: str, room_id: str) -> bool:
        async with self._lock:
            self.participants[user_id].add(room_id)
        return True

    async def remove_participant(self, user_id: str, room_id: str) -> bool:
        async with self._lock:
            rooms = self.participants.get(user_id)
            if not rooms or room_id not in rooms:
                return False
            rooms.discard(room_id)
        return True

    async def get_participants_for_account(self, user_id: str) -> List[str]:
        return sorted(self.participants.get(user_id, set()))

    async def get_participants_for_room(self, room_id: str) -> List[str]:
        return sorted(
            user_id for user_id, rooms in self.participants.items()
            if room_id in rooms
        )

    # Accounts and relationships

    async def get_account_by_id(self, user_id: str) -> Optional[Account]:
        return self.accounts.get(user_id)

    async def create_account(self, account: Account) -> bool:
        async with self._lock:
            self.accounts[account.id] = account
        return True

    async def create_relationship(self, user_a: str, user_b: str) -> bool:
        async with self._lock:
            self.relationships.append(Relationship(
                id=str(uuid.uuid4()),
                user_a=user_a,
                user_b=user_b,
                user_id=user_a
            ))
        return True

    async def get_relationship(self, user_a: str, user_b: str) -> Optional[Relationship]:
        for relationship in self.relationships:
            if {relationship.user_a, relationship.user_b} == {user_a, user_b}:
                return relationship
        return None

    async def get_relationships(self, user_id: str) -> List[Relationship]:
        return [
            relationship for relationship in self.relationships
            if user_id in (relationship.user_a, relationship.user_b)
        ]

    # Cache

    async def get_cache(self, agent_id: str, key: str) -> Optional[str]:
        return self.cache.get(f"{agent_id}:{key}")

    async def set_cache(self, agent_id: str, key: str, value: str) -> bool:
        async with self._lock:
            self.cache[f"{agent_id}:{key}"] = value
        return True

    async def delete_cache(self, agent_id: str, key: str) -> bool:
        async with self._lock:
            return self.cache.pop(f"{agent_id}:{key}", None) is not None

    def _to_memory(self, row: Dict[str, Any], similarity: Optional[float] = None) -> Memory:
        return Memory(
            id=row["id"],
            type=row["type"],
            user_id=row["user_id"],
            agent_id=row["agent_id"],
            room_id=row["room_id"],
            content=decode_content(row["content"], row["id"]),
            embedding=row["embedding"],
            created_at=row["created_at"],
            is_unique=row["is_unique"],
            similarity=similarity
        )


def _levenshtein(a: str, b: str) -> int:
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, 1):
        current = [i]
        for j, char_b in enumerate(b, 1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (char_a != char_b)
            ))
        previous = current
    return previous[-1]
