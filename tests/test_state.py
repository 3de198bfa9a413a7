"""
Tests for state composition
"""
import pytest

from agent_runtime.domain.capability.capabilities import Action, Provider
from agent_runtime.domain.exceptions import RuntimeConfigurationError
from agent_runtime.domain.models.agent_state import Account, Goal, GoalStatus, Objective, now_ms
from conftest import ROOM_ID, USER_ID, make_message


class AlwaysAction(Action):
    async def validate(self, runtime, message, state=None):
        return True

    async def handler(self, runtime, message, state, options, callback):
        return None


class NeverAction(AlwaysAction):
    async def validate(self, runtime, message, state=None):
        return False


class WeatherProvider(Provider):
    async def get(self, runtime, message, state=None):
        return "It is raining"


class TestComposeState:
    @pytest.mark.asyncio
    async def test_conversation_blocks(self, connected_runtime, adapter):
        runtime = connected_runtime
        now = now_ms()
        await runtime.message_manager.create_memory(make_message(runtime.agent_id, "hello eliza", created_at=now - 1000))
        message = make_message(runtime.agent_id, "how are you", created_at=now)
        await runtime.message_manager.create_memory(message)
        await adapter.create_goal(Goal(
            room_id=ROOM_ID,
            name="Make friends",
            status=GoalStatus.IN_PROGRESS,
            objectives=[Objective(description="say hi", completed=True)]
        ))

        state = await runtime.compose_state(message)

        assert state.sender_name == "Sam"
        assert state.agent_name == "Eliza"
        assert state.recent_messages.startswith("# Conversation Messages\n")
        assert state.recent_messages.index("hello eliza") < state.recent_messages.index("how are you")
        assert "- [x] say hi  (DONE)" in state.goals
        assert "Sam" in state.actors and "Eliza" in state.actors
        assert len(state.recent_messages_data) == 2

    @pytest.mark.asyncio
    async def test_persona_is_sampled(self, connected_runtime):
        state = await connected_runtime.compose_state(make_message(connected_runtime.agent_id, "hi"))

        assert len(state.bio.split(" ")) == 3
        assert len(state.lore.split("\n")) == 10
        assert state.topics.startswith("Eliza is interested in ")
        assert "{{user1}}" not in state.character_message_examples

    @pytest.mark.asyncio
    async def test_capabilities_and_providers(self, make_runtime, adapter):
        runtime = make_runtime(
            actions=[AlwaysAction("reply", "Reply to the message"), NeverAction("mute", "Stay silent")],
            providers=[WeatherProvider()]
        )
        await runtime.ensure_connection(USER_ID, ROOM_ID, "sam", "Sam")

        state = await runtime.compose_state(make_message(runtime.agent_id, "hi"))

        assert state.action_names == "Possible response actions: reply"
        assert "reply: Reply to the message" in state.actions
        assert "mute" not in state.actions
        assert [a.name for a in state.actions_data] == ["reply"]
        assert "It is raining" in state.providers

    @pytest.mark.asyncio
    async def test_no_actions_renders_empty_blocks(self, connected_runtime):
        state = await connected_runtime.compose_state(make_message(connected_runtime.agent_id, "hi"))

        assert state.actions == ""
        assert state.action_examples == ""
        assert state.providers == ""

    @pytest.mark.asyncio
    async def test_additional_keys(self, connected_runtime):
        state = await connected_runtime.compose_state(
            make_message(connected_runtime.agent_id, "hi"),
            platform="discord",
            bio="fixed bio"
        )

        values = state.template_values()
        assert values["platform"] == "discord"
        assert values["bio"] == "fixed bio"

    @pytest.mark.asyncio
    async def test_update_recent_messages(self, connected_runtime):
        runtime = connected_runtime
        message = make_message(runtime.agent_id, "first")
        await runtime.message_manager.create_memory(message)
        state = await runtime.compose_state(message)

        await runtime.message_manager.create_memory(make_message(runtime.agent_id, "second", created_at=now_ms() + 10))
        updated = await runtime.update_recent_message_state(state)

        assert "second" in updated.recent_messages
        assert "second" not in state.recent_messages
        assert updated.bio == state.bio


class TestKnowledge:
    @pytest.mark.asyncio
    async def test_relevant_fragment_is_included(self, make_runtime, character):
        runtime = make_runtime(character=character.model_copy(update={
            "knowledge": ["The moon is made of basalt", "Tea grows on shrubs"]
        }))
        await runtime.initialize()
        await runtime.ensure_connection(USER_ID, ROOM_ID, "sam", "Sam")

        state = await runtime.compose_state(make_message(runtime.agent_id, "The moon is made of basalt"))

        assert state.knowledge.split("\n")[0] == "- The moon is made of basalt"

    @pytest.mark.asyncio
    async def test_knowledge_is_ingested_once(self, make_runtime, character):
        runtime = make_runtime(character=character.model_copy(update={"knowledge": ["Tea grows on shrubs"]}))

        await runtime.initialize()
        await runtime.process_character_knowledge(["Tea grows on shrubs"])

        assert await runtime.documents_manager.count_memories(runtime.agent_id, unique=False) == 1
        assert await runtime.knowledge_manager.count_memories(runtime.agent_id, unique=False) == 1

    @pytest.mark.asyncio
    async def test_embedding_failure_propagates(self, make_runtime):
        runtime = make_runtime(embedder=None)
        await runtime.ensure_connection(USER_ID, ROOM_ID, "sam", "Sam")

        with pytest.raises(RuntimeConfigurationError):
            await runtime.compose_state(make_message(runtime.agent_id, "anything"))


class TestInteractions:
    @pytest.mark.asyncio
    async def test_other_shared_rooms_are_listed(self, connected_runtime, adapter):
        runtime = connected_runtime
        await runtime.ensure_connection(USER_ID, "other-room", "sam", "Sam")
        await runtime.message_manager.create_memory(
            make_message(runtime.agent_id, "from elsewhere", room_id="other-room")
        )

        state = await runtime.compose_state(make_message(runtime.agent_id, "hi"))

        assert state.recent_message_interactions == "sam: from elsewhere"
        assert [m.content.text for m in state.recent_interactions_data] == ["from elsewhere"]

    @pytest.mark.asyncio
    async def test_rooms_of_other_users_are_not_listed(self, connected_runtime, adapter):
        runtime = connected_runtime
        await adapter.create_account(Account(id="olga-id", name="Olga", username="olga"))
        await runtime.ensure_connection("olga-id", "olga-room", "olga", "Olga")
        await runtime.message_manager.create_memory(
            make_message(runtime.agent_id, "olga private secret", user_id="olga-id", room_id="olga-room")
        )

        state = await runtime.compose_state(make_message(runtime.agent_id, "hi"))

        assert "olga private secret" not in state.recent_message_interactions
        assert state.recent_interactions_data == []

    @pytest.mark.asyncio
    async def test_shared_rooms_only(self, adapter):
        await adapter.add_participant("sam", "shared")
        await adapter.add_participant("agent", "shared")
        await adapter.add_participant("agent", "agent-only")

        assert await adapter.get_rooms_for_participants(["sam", "agent"]) == ["shared"]
        assert await adapter.get_rooms_for_participants([]) == []

    @pytest.mark.asyncio
    async def test_agent_messages_have_no_interactions(self, connected_runtime):
        runtime = connected_runtime

        interactions = await runtime.state_composer.get_recent_interactions(
            make_message(runtime.agent_id, "note to self", user_id=runtime.agent_id)
        )

        assert interactions == []


class TestActors:
    @pytest.mark.asyncio
    async def test_participants_without_account_are_skipped(self, connected_runtime, adapter):
        await adapter.add_participant("ghost", ROOM_ID)
        await adapter.create_account(Account(id="visitor", name="Vi", username="vi"))
        await adapter.add_participant("visitor", ROOM_ID)

        actors = await connected_runtime.state_composer.get_actor_details(ROOM_ID)

        assert sorted(actor.name for actor in actors) == ["Eliza", "Sam", "Vi"]
