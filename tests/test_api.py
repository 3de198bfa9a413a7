"""
Tests for the direct-client HTTP API
"""
import pytest
from fastapi.testclient import TestClient

from agent_runtime.application.api.api_server import create_app
from agent_runtime.domain.capability.capabilities import Action
from agent_runtime.domain.models.agent_state import Content
from agent_runtime.infrastructure.config.settings import RuntimeSettings
from conftest import ROOM_ID, USER_ID

REPLY = '```json\n{"user": "Eliza", "text": "hi Sam", "action": "FOLLOW_UP"}\n```'


class FollowUpAction(Action):
    def __init__(self):
        super().__init__("follow_up", "Send a second message")

    async def validate(self, runtime, message, state=None):
        return True

    async def handler(self, runtime, message, state, options, callback):
        await callback(Content(text="and one more thing"))


@pytest.fixture
def client(runtime, settings):
    with TestClient(create_app(runtime, settings)) as test_client:
        yield test_client


def message_body(text="hello"):
    return {"text": text, "user_id": USER_ID, "room_id": ROOM_ID, "user_name": "sam", "name": "Sam"}


class TestHealth:
    def test_health(self, client, runtime):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["agent_id"] == runtime.agent_id
        assert data["character"] == "Eliza"


class TestMessage:
    def test_reply_is_returned_and_stored(self, client, runtime, invoker, adapter):
        invoker.default = '```json\n{"user": "Eliza", "text": "hi Sam", "action": "NONE"}\n```'

        response = client.post(f"/agents/{runtime.agent_id}/message", json=message_body())

        assert response.status_code == 200
        data = response.json()
        assert data["room_id"] == ROOM_ID
        assert [m["text"] for m in data["messages"]] == ["hi Sam"]
        assert data["evaluators"] == []

        stored = sorted(row["user_id"] for row in adapter.memory_rows.values() if row["table_name"] == "messages")
        assert stored == sorted([USER_ID, runtime.agent_id])

    def test_reply_declares_action(self, make_runtime, settings, invoker, adapter):
        runtime = make_runtime(actions=[FollowUpAction()])
        invoker.default = REPLY

        with TestClient(create_app(runtime, settings)) as client:
            response = client.post(f"/agents/{runtime.agent_id}/message", json=message_body())

        assert response.status_code == 200
        assert [m["text"] for m in response.json()["messages"]] == ["hi Sam", "and one more thing"]
        assert sum(1 for row in adapter.memory_rows.values() if row["table_name"] == "messages") == 3

    def test_repeated_messages_get_distinct_ids(self, client, runtime, invoker, adapter):
        invoker.default = '```json\n{"user": "Eliza", "text": "hi Sam", "action": "NONE"}\n```'

        for _ in range(2):
            response = client.post(f"/agents/{runtime.agent_id}/message", json=message_body("same text"))
            assert response.status_code == 200

        user_rows = [
            row for row in adapter.memory_rows.values()
            if row["table_name"] == "messages" and row["user_id"] == USER_ID
        ]
        assert len(user_rows) == 2
        assert user_rows[0]["id"] != user_rows[1]["id"]
        assert sum(1 for row in adapter.memory_rows.values() if row["table_name"] == "messages") == 4

    def test_unknown_agent(self, client):
        response = client.post("/agents/somebody-else/message", json=message_body())

        assert response.status_code == 404

    def test_default_room(self, client, runtime, invoker):
        invoker.default = "plain reply"

        response = client.post(f"/agents/{runtime.agent_id}/message", json={"text": "hi", "user_name": "sam"})

        assert response.status_code == 200
        assert response.json()["messages"][0]["action"] == "RESPOND"

    def test_model_outage_maps_to_503(self, make_runtime, invoker):
        settings = RuntimeSettings(
            _env_file=None,
            use_simple_tokenizer=True,
            retry_initial_delay_ms=1,
            response_max_total_delay_ms=0
        )
        runtime = make_runtime(settings=settings)
        invoker.outputs = [RuntimeError("backend down")] * 5

        with TestClient(create_app(runtime, settings)) as client:
            response = client.post(f"/agents/{runtime.agent_id}/message", json=message_body())

        assert response.status_code == 503
        assert len(invoker.calls) == 2

    def test_missing_model_maps_to_500(self, make_runtime, settings):
        runtime = make_runtime(model_invoker=None)

        with TestClient(create_app(runtime, settings)) as client:
            response = client.post(f"/agents/{runtime.agent_id}/message", json=message_body())

        assert response.status_code == 500


class TestState:
    def test_state_values(self, client, runtime):
        response = client.post(f"/agents/{runtime.agent_id}/state", json=message_body("what is new"))

        assert response.status_code == 200
        values = response.json()["values"]
        assert values["agentName"] == "Eliza"
        assert values["senderName"] == "Sam"
        assert "what is new" in values["recentMessages"]
