from functools import lru_cache
from typing import Any, Optional
import os

from pydantic_settings import BaseSettings, SettingsConfigDict


class RuntimeSettings(BaseSettings):
    """
    Agent runtime settings.

    Environment variables use the AGENT_RUNTIME_ prefix, e.g.
    AGENT_RUNTIME_CONVERSATION_LENGTH=16 or AGENT_RUNTIME_LOG_FORMAT=console.
    Unknown keys are kept as extras so ``lookup`` can serve arbitrary
    secrets without declaring them here.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="AGENT_RUNTIME_",
        extra="allow",
    )

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"
    service_name: str = "agent-runtime"

    # State composition
    conversation_length: int = 32
    recent_interactions_limit: int = 20
    knowledge_match_count: int = 3
    attachment_window_ms: int = 60 * 60 * 1000

    # Generation
    use_simple_tokenizer: bool = False
    retry_initial_delay_ms: int = 1000
    response_max_total_delay_ms: int = 32000
    # None keeps classification calls retrying until they succeed
    classification_max_retries: Optional[int] = None

    # Knowledge ingestion
    knowledge_chunk_size: int = 1200
    knowledge_chunk_bleed: int = 200

    # Memory housekeeping
    memory_max_age_ms: int = 24 * 60 * 60 * 1000

    # Direct client
    api_host: str = "0.0.0.0"
    api_port: int = 3000
    character_path: Optional[str] = None
    # "module:attribute" of a zero-argument factory, e.g. "langchain_openai:ChatOpenAI"
    model_factory: Optional[str] = None
    embedder_factory: Optional[str] = None

    def lookup(self, key: str) -> Optional[Any]:
        """Resolve a free-form setting from extras, then the process environment"""
        extras = self.model_extra or {}
        for candidate in (key, key.lower()):
            if extras.get(candidate):
                return extras[candidate]
        return os.getenv(key) or None


@lru_cache()
def get_settings() -> RuntimeSettings:
    return RuntimeSettings()
