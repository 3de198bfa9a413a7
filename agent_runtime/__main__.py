from importlib import import_module
from typing import Any, Optional

import structlog
import uvicorn

from agent_runtime.application.api.api_server import create_app
from agent_runtime.domain.generation.model_invoker import LangChainModelInvoker
from agent_runtime.domain.models.character import Character, DEFAULT_CHARACTER
from agent_runtime.domain.runtime.agent_runtime import AgentRuntime
from agent_runtime.infrastructure.config.settings import get_settings
from agent_runtime.infrastructure.observability.logging import setup_logging
from agent_runtime.infrastructure.persistence.in_memory_adapter import InMemoryDatabaseAdapter

logger = structlog.get_logger(__name__)


def load_factory(path: Optional[str]) -> Optional[Any]:
    """Call the ``module:attribute`` factory at ``path``"""
    if not path:
        return None
    module_name, _, attribute = path.partition(":")
    return getattr(import_module(module_name), attribute)()


def main() -> None:
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format, settings.service_name)

    character = Character.load(settings.character_path) if settings.character_path else DEFAULT_CHARACTER
    model = load_factory(settings.model_factory)
    if model is None:
        logger.warning("No model factory configured; message handling will fail")

    runtime = AgentRuntime(
        database_adapter=InMemoryDatabaseAdapter(),
        character=character,
        model_invoker=LangChainModelInvoker({}, default=model) if model is not None else None,
        embedder=load_factory(settings.embedder_factory),
        settings=settings
    )

    uvicorn.run(create_app(runtime, settings), host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    main()
