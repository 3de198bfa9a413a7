import structlog
import logging
import sys
from typing import Dict, Any, List, Optional
from datetime import datetime, timezone
import os


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    service_name: str = "agent-runtime"
) -> None:
    """Setup structured logging configuration"""

    # Configure Python logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO)
    )

    # Processors for structlog
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        add_runtime_context,
    ]

    # Add appropriate renderer based on format
    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    # Configure structlog
    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Set service name in context
    structlog.contextvars.bind_contextvars(
        service=service_name,
        environment=os.getenv("ENVIRONMENT", "development"),
        version=os.getenv("SERVICE_VERSION", "unknown")
    )


def add_runtime_context(logger: logging.Logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add message-cycle identifiers to all log entries"""

    if "timestamp" not in event_dict:
        event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()

    bound = structlog.contextvars.get_contextvars()
    for key in ("trace_id", "agent_id", "room_id"):
        if bound.get(key) and key not in event_dict:
            event_dict[key] = bound[key]

    return event_dict


def bind_message_context(agent_id: str, room_id: str, trace_id: Optional[str] = None) -> None:
    """Bind identifiers of the message being handled to the current context"""

    structlog.contextvars.bind_contextvars(
        agent_id=agent_id,
        room_id=room_id,
        **({"trace_id": trace_id} if trace_id else {})
    )


class AgentLogger:
    """Specialized logger for runtime events"""

    def __init__(self, name: str):
        self.logger = structlog.get_logger(name)

    def log_action_dispatch(
        self,
        declared_action: Optional[str],
        resolved_action: Optional[str],
        room_id: str,
        matched_by: Optional[str] = None
    ):
        """Log the outcome of resolving a response's declared action"""

        self.logger.info(
            "action_dispatch",
            declared_action=declared_action,
            resolved_action=resolved_action,
            matched_by=matched_by,
            room_id=room_id
        )

    def log_evaluation(
        self,
        room_id: str,
        validated: List[str],
        selected: List[str],
        did_respond: bool
    ):
        """Log the two-phase evaluator gate"""

        self.logger.info(
            "evaluation",
            room_id=room_id,
            validated=validated,
            selected=selected,
            did_respond=did_respond
        )

    def log_generation_attempt(
        self,
        operation: str,
        attempt: int,
        delay_ms: float,
        error: Optional[str] = None
    ):
        """Log a retry of a model call"""

        self.logger.warning(
            "generation_retry",
            operation=operation,
            attempt=attempt,
            delay_ms=delay_ms,
            error=error
        )

    def log_state_composed(
        self,
        room_id: str,
        message_count: int,
        actor_count: int,
        goal_count: int,
        action_count: int,
        evaluator_count: int,
        duration_ms: Optional[float] = None
    ):
        """Log a summary of a composed state"""

        self.logger.info(
            "state_composed",
            room_id=room_id,
            message_count=message_count,
            actor_count=actor_count,
            goal_count=goal_count,
            action_count=action_count,
            evaluator_count=evaluator_count,
            duration_ms=duration_ms
        )


# Global logger instance
agent_logger = AgentLogger("agent_runtime")
