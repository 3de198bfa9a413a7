from typing import Any, Dict, Iterable, List, Optional, Tuple
from urllib.parse import quote
import asyncio
import hashlib

import structlog
from langchain_core.embeddings import Embeddings

from agent_runtime.domain.capability import dispatcher
from agent_runtime.domain.capability.capabilities import (
    Action,
    Evaluator,
    HandlerCallback,
    Plugin,
    Provider,
    Service,
)
from agent_runtime.domain.capability.capability_registry import CapabilityRegistry
from agent_runtime.domain.context.context_manager import StateComposer
from agent_runtime.domain.context.memory.cache_memory_store import CacheManager
from agent_runtime.domain.context.memory.memory_manager import MemoryManager
from agent_runtime.domain.exceptions import RuntimeConfigurationError
from agent_runtime.domain.generation.embedding import embed
from agent_runtime.domain.generation.model_invoker import ModelInvoker
from agent_runtime.domain.generation.tokenizer import SimpleTokenizer, TiktokenTokenizer, Tokenizer, split_chunks
from agent_runtime.domain.models.agent_state import Account, Content, Memory, State
from agent_runtime.domain.models.character import Character, DEFAULT_CHARACTER
from agent_runtime.infrastructure.cache.cache_adapters import MemoryCacheAdapter
from agent_runtime.infrastructure.config.settings import RuntimeSettings, get_settings
from agent_runtime.infrastructure.persistence.database_adapter import DatabaseAdapter

logger = structlog.get_logger(__name__)

# encodeURIComponent leaves these unescaped
_URI_COMPONENT_SAFE = "-_.!~*'()"


def string_to_uuid(target: Any) -> str:
    """Deterministic UUID-shaped identifier derived from the SHA-1 of ``target``"""

    if isinstance(target, bool) or not isinstance(target, (str, int, float)):
        raise TypeError("Value must be string")

    digest = hashlib.sha1(quote(str(target), safe=_URI_COMPONENT_SAFE).encode("ascii")).digest()
    return "-".join([
        digest[0:4].hex(),
        digest[4:6].hex(),
        f"{digest[6] & 0x0F:02x}{digest[7]:02x}",
        f"{(digest[8] & 0x3F) | 0x80:02x}{digest[9]:02x}",
        digest[10:16].hex(),
    ])


class AgentRuntime:
    """Entry point tying storage, capabilities and generation together for one agent"""

    def __init__(
        self,
        database_adapter: DatabaseAdapter,
        character: Optional[Character] = None,
        agent_id: Optional[str] = None,
        conversation_length: Optional[int] = None,
        model_invoker: Optional[ModelInvoker] = None,
        embedder: Optional[Embeddings] = None,
        cache_manager: Optional[CacheManager] = None,
        plugins: Iterable[Plugin] = (),
        actions: Iterable[Action] = (),
        evaluators: Iterable[Evaluator] = (),
        providers: Iterable[Provider] = (),
        services: Iterable[Service] = (),
        managers: Iterable[MemoryManager] = (),
        settings: Optional[RuntimeSettings] = None,
        tokenizer: Optional[Tokenizer] = None
    ):
        if database_adapter is None:
            raise RuntimeConfigurationError("No database adapter provided")

        self.database_adapter = database_adapter
        self.character = character or DEFAULT_CHARACTER
        self.settings = settings or get_settings()
        self.agent_id = (
            (character.id if character else None)
            or agent_id
            or string_to_uuid(self.character.name)
        )
        self.conversation_length = conversation_length or self.settings.conversation_length
        self.model_provider = self.character.model_provider
        self.model_invoker = model_invoker
        self.embedder = embedder
        self.cache_manager = cache_manager or CacheManager(MemoryCacheAdapter())
        self.tokenizer = tokenizer or self._default_tokenizer()

        logger.info("Creating agent runtime", agent_id=self.agent_id, character=self.character.name)

        self.memory_managers: Dict[str, MemoryManager] = {}
        self.message_manager = MemoryManager(self, "messages")
        self.description_manager = MemoryManager(self, "descriptions")
        self.lore_manager = MemoryManager(self, "lore")
        self.documents_manager = MemoryManager(self, "documents")
        self.knowledge_manager = MemoryManager(self, "fragments")
        for manager in (
            self.message_manager,
            self.description_manager,
            self.lore_manager,
            self.documents_manager,
            self.knowledge_manager,
            *managers,
        ):
            self.register_memory_manager(manager)

        self.services: Dict[str, Service] = {}
        self._pending_services: List[Service] = list(services)

        self.registry = CapabilityRegistry()
        for plugin in [*self.character.plugins, *plugins]:
            self._pending_services.extend(self.registry.register_plugin(plugin))
        for action in actions:
            self.registry.register_action(action)
        for provider in providers:
            self.registry.register_provider(provider)
        for evaluator in evaluators:
            self.registry.register_evaluator(evaluator)
        self.registry.freeze()

        self.state_composer = StateComposer(self)

    def _default_tokenizer(self) -> Tokenizer:
        if self.character.settings.use_simple_tokenizer or self.settings.use_simple_tokenizer:
            return SimpleTokenizer()
        return TiktokenTokenizer()

    # Capabilities

    @property
    def actions(self) -> Tuple[Action, ...]:
        return self.registry.actions

    @property
    def evaluators(self) -> Tuple[Evaluator, ...]:
        return self.registry.evaluators

    @property
    def providers(self) -> Tuple[Provider, ...]:
        return self.registry.providers

    # Memory managers and services

    def register_memory_manager(self, manager: MemoryManager) -> None:
        if not getattr(manager, "table_name", None):
            raise RuntimeConfigurationError("Memory manager must have a table_name")

        if manager.table_name in self.memory_managers:
            logger.warning("Memory manager already registered, skipping", table_name=manager.table_name)
            return

        self.memory_managers[manager.table_name] = manager

    def get_memory_manager(self, table_name: str) -> Optional[MemoryManager]:
        return self.memory_managers.get(table_name)

    async def register_service(self, service: Service) -> None:
        service_type = service.service_type
        if service_type in self.services:
            logger.warning("Service already registered, skipping", service_type=service_type)
            return

        try:
            await service.initialize(self)
        except Exception as e:
            logger.error("Failed to initialize service", service_type=service_type, error=str(e))
            raise

        self.services[service_type] = service
        logger.info("Service initialized", service_type=service_type)

    def get_service(self, service_type: str) -> Optional[Service]:
        service = self.services.get(service_type)
        if service is None:
            logger.error("Service not found", service_type=service_type)
        return service

    async def initialize(self) -> None:
        """Start services and ingest the character's knowledge"""

        pending, self._pending_services = self._pending_services, []
        for service in pending:
            await self.register_service(service)

        if self.character.knowledge:
            await self.process_character_knowledge(self.character.knowledge)

    async def process_character_knowledge(self, knowledge: List[str]) -> None:
        """Store each item as a document plus embedded fragments, once"""

        await self.ensure_room_exists(self.agent_id)
        await self.ensure_user_exists(self.agent_id, self.character.name, self.character.name)
        await self.ensure_participant_exists(self.agent_id, self.agent_id)

        for item in knowledge:
            knowledge_id = string_to_uuid(item)
            if await self.documents_manager.get_memory_by_id(knowledge_id):
                continue

            logger.info("Processing knowledge", character=self.character.name, preview=item[:100])
            await self.documents_manager.create_memory(Memory(
                id=knowledge_id,
                agent_id=self.agent_id,
                room_id=self.agent_id,
                user_id=self.agent_id,
                content=Content(text=item)
            ))

            fragments = split_chunks(
                item,
                self.settings.knowledge_chunk_size,
                self.settings.knowledge_chunk_bleed,
                tokenizer=self.tokenizer
            )
            for fragment in fragments:
                await self.knowledge_manager.create_memory(Memory(
                    # Namespaced so a fragment never collides with its document
                    id=string_to_uuid(knowledge_id + fragment),
                    agent_id=self.agent_id,
                    room_id=self.agent_id,
                    user_id=self.agent_id,
                    content=Content(text=fragment, source=knowledge_id),
                    embedding=await self.embed(fragment)
                ))

    def get_setting(self, key: str) -> Optional[Any]:
        """Character secrets, then character settings, then runtime settings and environment"""
        value = self.character.get_setting(key)
        if value:
            return value
        return self.settings.lookup(key)

    async def embed(self, text: str) -> List[float]:
        return await embed(self, text)

    # Accounts, rooms and participants

    async def ensure_user_exists(
        self,
        user_id: str,
        user_name: Optional[str] = None,
        name: Optional[str] = None,
        email: Optional[str] = None,
        source: Optional[str] = None
    ) -> None:
        if await self.database_adapter.get_account_by_id(user_id):
            return

        await self.database_adapter.create_account(Account(
            id=user_id,
            name=name or user_name or "Unknown User",
            username=user_name or name or "Unknown",
            email=email or f"{user_name or 'Bot'}@{source or 'unknown'}"
        ))
        logger.info("User created", user_id=user_id, user_name=user_name)

    async def ensure_room_exists(self, room_id: str) -> None:
        if not await self.database_adapter.get_room(room_id):
            await self.database_adapter.create_room(room_id)
            logger.info("Room created", room_id=room_id)

    async def ensure_participant_exists(self, user_id: str, room_id: str) -> None:
        """Add the account to ``room_id`` if it is in no room at all"""
        if not await self.database_adapter.get_participants_for_account(user_id):
            await self.database_adapter.add_participant(user_id, room_id)

    async def ensure_participant_in_room(self, user_id: str, room_id: str) -> None:
        participants = await self.database_adapter.get_participants_for_room(room_id)
        if user_id not in participants:
            await self.database_adapter.add_participant(user_id, room_id)
            logger.info("Participant linked to room", user_id=user_id, room_id=room_id, is_agent=user_id == self.agent_id)

    async def ensure_connection(
        self,
        user_id: str,
        room_id: str,
        user_name: Optional[str] = None,
        user_screen_name: Optional[str] = None,
        source: Optional[str] = None
    ) -> None:
        """Make sure both parties and the room exist and are linked"""

        await asyncio.gather(
            self.ensure_user_exists(self.agent_id, self.character.name, self.character.name, source=source),
            self.ensure_user_exists(
                user_id,
                user_name or f"User{user_id}",
                user_screen_name or f"User{user_id}",
                source=source
            ),
            self.ensure_room_exists(room_id)
        )
        await asyncio.gather(
            self.ensure_participant_in_room(user_id, room_id),
            self.ensure_participant_in_room(self.agent_id, room_id)
        )

    # Message handling

    async def compose_state(self, message: Memory, **additional_keys: Any) -> State:
        return await self.state_composer.compose_state(message, **additional_keys)

    async def update_recent_message_state(self, state: State) -> State:
        return await self.state_composer.update_recent_message_state(state)

    async def process_actions(
        self,
        message: Memory,
        responses: List[Memory],
        state: Optional[State] = None,
        callback: Optional[HandlerCallback] = None
    ) -> Optional[Any]:
        return await dispatcher.process_actions(self, message, responses, state, callback)

    async def evaluate(self, message: Memory, state: State, did_respond: bool = False) -> List[str]:
        return await dispatcher.evaluate(self, message, state, did_respond)
