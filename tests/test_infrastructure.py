"""
Tests for logging context, settings lookup and the entry point helpers
"""
from collections import OrderedDict

import structlog

from agent_runtime.__main__ import load_factory
from agent_runtime.infrastructure.config.settings import RuntimeSettings
from agent_runtime.infrastructure.observability.logging import add_runtime_context, bind_message_context


class TestLoggingContext:
    def test_bound_identifiers_are_added(self):
        structlog.contextvars.clear_contextvars()
        try:
            bind_message_context("agent-1", "room-1")

            event = add_runtime_context(None, "info", {"event": "handled"})

            assert event["agent_id"] == "agent-1"
            assert event["room_id"] == "room-1"
            assert "trace_id" not in event
            assert "timestamp" in event
        finally:
            structlog.contextvars.clear_contextvars()

    def test_explicit_fields_win(self):
        structlog.contextvars.clear_contextvars()
        try:
            bind_message_context("agent-1", "room-1", trace_id="trace-1")

            event = add_runtime_context(None, "info", {"event": "handled", "room_id": "other"})

            assert event["room_id"] == "other"
            assert event["trace_id"] == "trace-1"
        finally:
            structlog.contextvars.clear_contextvars()


class TestSettings:
    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("AGENT_RUNTIME_CONVERSATION_LENGTH", "8")
        monkeypatch.setenv("AGENT_RUNTIME_CLASSIFICATION_MAX_RETRIES", "5")

        settings = RuntimeSettings(_env_file=None)

        assert settings.conversation_length == 8
        assert settings.classification_max_retries == 5
        assert settings.response_max_total_delay_ms == 32000

    def test_lookup_extras_then_environment(self, monkeypatch):
        monkeypatch.setenv("DISCORD_TOKEN", "from-env")

        settings = RuntimeSettings(_env_file=None, twitter_token="from-extras")

        assert settings.lookup("twitter_token") == "from-extras"
        assert settings.lookup("DISCORD_TOKEN") == "from-env"
        assert settings.lookup("MISSING_TOKEN_XYZ") is None


class TestLoadFactory:
    def test_calls_factory(self):
        assert isinstance(load_factory("collections:OrderedDict"), OrderedDict)

    def test_unset(self):
        assert load_factory(None) is None
        assert load_factory("") is None
