from typing import Dict, List, Any, Optional, TYPE_CHECKING
import asyncio
import time

import structlog

from agent_runtime.domain.capability.dispatcher import (
    compose_action_examples,
    format_action_names,
    format_actions,
    format_evaluator_examples,
    format_evaluator_names,
    format_evaluators,
    get_providers,
    validate_actions,
    validate_evaluators,
)
from agent_runtime.domain.models.agent_state import Actor, Memory, State
from agent_runtime.infrastructure.observability.logging import agent_logger
from .formatting import (
    add_header,
    format_actors,
    format_attachments,
    format_goals_as_string,
    format_messages,
    format_posts,
    resolve_attachments,
)
from .persona import compose_persona

if TYPE_CHECKING:
    from agent_runtime.domain.runtime.agent_runtime import AgentRuntime

logger = structlog.get_logger(__name__)


class StateComposer:
    """Assembles the state for one message from every context source"""

    def __init__(self, runtime: "AgentRuntime"):
        self.runtime = runtime

    @property
    def settings(self):
        return self.runtime.settings

    async def compose_state(self, message: Memory, **additional_keys: Any) -> State:
        """Build the full state used to render prompts for ``message``"""

        started = time.perf_counter()
        runtime = self.runtime
        character = runtime.character
        room_id = message.room_id

        logger.info("Composing state", room_id=room_id, message_id=message.id)

        # Gather conversation sources concurrently
        actors_data, recent_messages_data, goals_data = await asyncio.gather(
            self.get_actor_details(room_id),
            runtime.message_manager.get_memories(
                room_id=room_id,
                agent_id=runtime.agent_id,
                count=runtime.conversation_length,
                unique=False
            ),
            runtime.database_adapter.get_goals(
                room_id=room_id,
                only_in_progress=False,
                count=10
            )
        )

        goals = format_goals_as_string(goals_data)
        actors = format_actors(actors_data)
        recent_messages = format_messages(recent_messages_data, actors_data)
        recent_posts = format_posts(recent_messages_data, actors_data, conversation_header=False)

        sender_name = next((actor.name for actor in actors_data if actor.id == message.user_id), None)
        agent_name = next(
            (actor.name for actor in actors_data if actor.id == runtime.agent_id),
            character.name
        )

        attachments = resolve_attachments(
            recent_messages_data,
            fallback=message.content.attachments,
            window_ms=self.settings.attachment_window_ms
        )

        knowledge = await self.get_knowledge(message)
        interactions = await self.get_recent_interactions(message)

        fields: Dict[str, Any] = {
            "agent_id": runtime.agent_id,
            "agent_name": agent_name,
            "sender_name": sender_name,
            "room_id": room_id,
            "knowledge": "\n".join(f"- {text}" for text in knowledge),
            "recent_message_interactions": await self.format_message_interactions(interactions),
            "recent_post_interactions": format_posts(interactions, actors_data, conversation_header=True),
            "recent_interactions_data": interactions,
            "actors": add_header("# Actors", actors),
            "actors_data": actors_data,
            "goals": add_header(
                "# Goals\n{{agentName}} should prioritize accomplishing the objectives that are in progress.",
                goals
            ),
            "goals_data": goals_data,
            "recent_messages": add_header("# Conversation Messages", recent_messages),
            "recent_posts": add_header("# Posts in Thread", recent_posts),
            "recent_messages_data": recent_messages_data,
            "attachments": add_header("# Attachments", format_attachments(attachments)),
        }
        fields.update(compose_persona(character))
        fields.update(additional_keys)
        base_state = State(**fields)

        # Capability checks see the partially built state
        actions_data, evaluators_data, providers = await asyncio.gather(
            validate_actions(runtime, message, base_state),
            validate_evaluators(runtime, message, base_state),
            get_providers(runtime, message, base_state)
        )

        state = base_state.model_copy(update={
            "action_names": "Possible response actions: " + format_action_names(actions_data),
            "actions": add_header("# Available Actions", format_actions(actions_data)) if actions_data else "",
            "action_examples": add_header("# Action Examples", compose_action_examples(actions_data, 10))
            if actions_data else "",
            "actions_data": actions_data,
            "evaluators": format_evaluators(evaluators_data),
            "evaluator_names": format_evaluator_names(evaluators_data),
            "evaluator_examples": format_evaluator_examples(evaluators_data),
            "evaluators_data": evaluators_data,
            "providers": add_header(
                f"# Additional Information About {character.name} and The World",
                providers
            ),
        })

        agent_logger.log_state_composed(
            room_id=room_id,
            message_count=len(recent_messages_data),
            actor_count=len(actors_data),
            goal_count=len(goals_data),
            action_count=len(actions_data),
            evaluator_count=len(evaluators_data),
            duration_ms=round((time.perf_counter() - started) * 1000, 2)
        )
        return state

    async def update_recent_message_state(self, state: State) -> State:
        """Copy of ``state`` with the conversation and attachments re-read"""

        recent_messages_data = await self.runtime.message_manager.get_memories(
            room_id=state.room_id,
            agent_id=self.runtime.agent_id,
            count=self.runtime.conversation_length,
            unique=False
        )
        without_embeddings = [m.model_copy(update={"embedding": None}) for m in recent_messages_data]

        attachments = resolve_attachments(
            recent_messages_data,
            fallback=[],
            window_ms=self.settings.attachment_window_ms,
            redact=False
        )

        return state.model_copy(update={
            "recent_messages": add_header(
                "# Conversation Messages",
                format_messages(without_embeddings, state.actors_data)
            ),
            "recent_messages_data": recent_messages_data,
            "attachments": format_attachments(attachments),
        })

    async def get_actor_details(self, room_id: str) -> List[Actor]:
        """Participants of a room that have an account"""

        adapter = self.runtime.database_adapter
        participant_ids = await adapter.get_participants_for_room(room_id)
        accounts = await asyncio.gather(*(adapter.get_account_by_id(user_id) for user_id in participant_ids))

        return [
            Actor(id=account.id, name=account.name, username=account.username, details=account.details)
            for account in accounts
            if account is not None
        ]

    async def get_knowledge(self, message: Memory) -> List[str]:
        """Knowledge fragments closest to the message. Errors propagate."""

        if not message.content.text:
            return []

        embedding = await self.runtime.embed(message.content.text)
        memories = await self.runtime.knowledge_manager.search_memories_by_embedding(
            embedding,
            room_id=self.runtime.agent_id,
            count=self.settings.knowledge_match_count
        )
        return [memory.content.text for memory in memories]

    async def get_recent_interactions(self, message: Memory) -> List[Memory]:
        """Latest memories from other rooms shared by the sender and the agent"""

        runtime = self.runtime
        if message.user_id == runtime.agent_id:
            return []

        rooms = await runtime.database_adapter.get_rooms_for_participants([message.user_id, runtime.agent_id])
        memories = await runtime.message_manager.get_memories_by_room_ids(
            agent_id=runtime.agent_id,
            room_ids=[room for room in rooms if room != message.room_id]
        )
        memories.sort(key=lambda memory: memory.created_at, reverse=True)
        return memories[:self.settings.recent_interactions_limit]

    async def format_message_interactions(self, interactions: List[Memory]) -> str:
        usernames: Dict[str, Optional[str]] = {}
        for user_id in {m.user_id for m in interactions if m.user_id != self.runtime.agent_id}:
            account = await self.runtime.database_adapter.get_account_by_id(user_id)
            usernames[user_id] = account.username if account else None

        lines = []
        for memory in interactions:
            if memory.user_id == self.runtime.agent_id:
                sender = self.runtime.character.name
            else:
                sender = usernames.get(memory.user_id) or "unknown"
            lines.append(f"{sender}: {memory.content.text}")
        return "\n".join(lines)
