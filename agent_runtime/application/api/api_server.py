from contextlib import asynccontextmanager
from typing import Optional
import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from agent_runtime.domain.exceptions import EmptyContextError, MaxRetriesExceeded, RuntimeConfigurationError
from agent_runtime.domain.runtime.agent_runtime import AgentRuntime
from agent_runtime.infrastructure.config.settings import RuntimeSettings, get_settings
from .route.agent import router

logger = structlog.get_logger(__name__)


def create_app(runtime: AgentRuntime, settings: Optional[RuntimeSettings] = None) -> FastAPI:
    """Direct-client HTTP surface for a single agent runtime"""

    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await runtime.initialize()
        logger.info("Agent API started", agent_id=runtime.agent_id, character=runtime.character.name)
        yield
        logger.info("Agent API stopped", agent_id=runtime.agent_id)

    app = FastAPI(title=settings.service_name, lifespan=lifespan)
    app.state.runtime = runtime

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)

    @app.exception_handler(MaxRetriesExceeded)
    async def retries_exhausted(request: Request, exc: MaxRetriesExceeded):
        logger.error("Response generation gave up", attempts=exc.attempts, total_delay_ms=exc.total_delay_ms)
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    @app.exception_handler(EmptyContextError)
    async def empty_context(request: Request, exc: EmptyContextError):
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.exception_handler(RuntimeConfigurationError)
    async def misconfigured(request: Request, exc: RuntimeConfigurationError):
        logger.error("Runtime misconfigured", error=str(exc))
        return JSONResponse(status_code=500, content={"detail": str(exc)})

    return app
