from abc import ABC, abstractmethod
from typing import Dict, List, Any, Optional

from agent_runtime.domain.models.agent_state import Account, Goal, Memory, Relationship


class DatabaseAdapter(ABC):
    """Storage collaborator consumed by the runtime.

    Every operation is keyed by opaque identifiers and assumed to be a plain
    request/response call; no transaction spans two calls. ``table_name``
    selects the memory category (messages, fragments, documents, ...).
    """

    # Memories

    @abstractmethod
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
        """Memories of a room, newest first"""
        pass

    @abstractmethod
    async def get_memories_by_room_ids(
        self,
        room_ids: List[str],
        table_name: str,
        agent_id: Optional[str] = None
    ) -> List[Memory]:
        pass

    @abstractmethod
    async def get_memory_by_id(self, memory_id: str) -> Optional[Memory]:
        pass

    @abstractmethod
    async def create_memory(self, memory: Memory, table_name: str, unique: bool = False) -> None:
        pass

    @abstractmethod
    async def remove_memory(self, memory_id: str, table_name: str) -> None:
        pass

    @abstractmethod
    async def remove_all_memories(self, room_id: str, table_name: str) -> None:
        pass

    @abstractmethod
    async def count_memories(self, room_id: str, unique: bool = True, table_name: str = "messages") -> int:
        pass

    @abstractmethod
    async def search_memories(
        self,
        table_name: str,
        room_id: Optional[str],
        embedding: List[float],
        match_threshold: float,
        match_count: int,
        unique: bool
    ) -> List[Memory]:
        """Similarity search inside one room"""
        pass

    @abstractmethod
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
        """Similarity search that may span rooms"""
        pass

    @abstractmethod
    async def get_cached_embeddings(
        self,
        query_table_name: str,
        query_threshold: int,
        query_input: str,
        query_field_name: str,
        query_field_sub_name: str,
        query_match_count: int
    ) -> List[Dict[str, Any]]:
        """Entries shaped ``{"embedding": [...], "levenshtein_score": int}``"""
        pass

    @abstractmethod
    async def cleanup_old_memories(self, room_id: str, cutoff: int, table_name: str) -> int:
        """Delete non-unique memories created before ``cutoff``; returns the count"""
        pass

    # Goals

    @abstractmethod
    async def get_goals(
        self,
        room_id: str,
        user_id: Optional[str] = None,
        only_in_progress: bool = True,
        count: int = 5
    ) -> List[Goal]:
        pass

    @abstractmethod
    async def create_goal(self, goal: Goal) -> None:
        pass

    @abstractmethod
    async def update_goal(self, goal: Goal) -> None:
        pass

    @abstractmethod
    async def remove_goal(self, goal_id: str) -> None:
        pass

    @abstractmethod
    async def remove_all_goals(self, room_id: str) -> None:
        pass

    # Rooms and participants

    @abstractmethod
    async def get_room(self, room_id: str) -> Optional[str]:
        pass

    @abstractmethod
    async def create_room(self, room_id: Optional[str] = None) -> str:
        pass

    @abstractmethod
    async def remove_room(self, room_id: str) -> None:
        pass

    @abstractmethod
    async def get_rooms_for_participant(self, user_id: str) -> List[str]:
        pass

    @abstractmethod
    async def get_rooms_for_participants(self, user_ids: List[str]) -> List[str]:
        """Rooms in which every one of ``user_ids`` participates"""
        pass

    @abstractmethod
    async def add_participant(self, user_id: str, room_id: str) -> bool:
        pass

    @abstractmethod
    async def remove_participant(self, user_id: str, room_id: str) -> bool:
        pass

    @abstractmethod
    async def get_participants_for_account(self, user_id: str) -> List[str]:
        """Room IDs the account participates in"""
        pass

    @abstractmethod
    async def get_participants_for_room(self, room_id: str) -> List[str]:
        """Account IDs participating in the room"""
        pass

    # Accounts and relationships

    @abstractmethod
    async def get_account_by_id(self, user_id: str) -> Optional[Account]:
        pass

    @abstractmethod
    async def create_account(self, account: Account) -> bool:
        pass

    @abstractmethod
    async def create_relationship(self, user_a: str, user_b: str) -> bool:
        pass

    @abstractmethod
    async def get_relationship(self, user_a: str, user_b: str) -> Optional[Relationship]:
        pass

    @abstractmethod
    async def get_relationships(self, user_id: str) -> List[Relationship]:
        pass

    # Cache

    @abstractmethod
    async def get_cache(self, agent_id: str, key: str) -> Optional[str]:
        pass

    @abstractmethod
    async def set_cache(self, agent_id: str, key: str, value: str) -> bool:
        pass

    @abstractmethod
    async def delete_cache(self, agent_id: str, key: str) -> bool:
        pass
