"""
Model calls with response parsing and retry.

Two retry families wrap ``generate_text``:

* classification calls (should-respond, yes/no, arrays, objects) retry on
  errors and on unparseable output. They keep retrying until they succeed
  unless ``classification_max_retries`` is configured.
* ``generate_message_response`` retries on errors only and gives up once
  the accumulated backoff passes ``response_max_total_delay_ms``.
"""
from typing import Any, Awaitable, Callable, List, Optional, TYPE_CHECKING
import asyncio

import structlog
from pydantic import ValidationError

from agent_runtime.domain.exceptions import EmptyContextError, RuntimeConfigurationError
from agent_runtime.domain.models.agent_state import Content
from agent_runtime.domain.models.character import ModelClass
from .model_settings import get_provider_models
from .parsing import (
    parse_boolean_from_text,
    parse_json_array_from_text,
    parse_json_object_from_text,
    parse_should_respond_from_text,
)
from .retry import RetryPolicy, retry_async
from .tokenizer import trim_tokens

if TYPE_CHECKING:
    from agent_runtime.domain.runtime.agent_runtime import AgentRuntime

logger = structlog.get_logger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


def classification_policy(runtime: "AgentRuntime") -> RetryPolicy:
    return RetryPolicy(
        initial_delay_ms=runtime.settings.retry_initial_delay_ms,
        max_retries=runtime.settings.classification_max_retries
    )


def response_policy(runtime: "AgentRuntime") -> RetryPolicy:
    return RetryPolicy(
        initial_delay_ms=runtime.settings.retry_initial_delay_ms,
        max_total_delay_ms=runtime.settings.response_max_total_delay_ms
    )


async def generate_text(
    runtime: "AgentRuntime",
    context: str,
    model_class: ModelClass,
    stop: Optional[List[str]] = None
) -> str:
    """Single model call. Errors propagate to the caller."""

    if not context:
        logger.error("generate_text context is empty")
        return ""

    provider = get_provider_models(runtime.model_provider)
    if runtime.model_invoker is None:
        raise RuntimeConfigurationError("No model invoker configured for this runtime")

    settings = provider.settings
    context = trim_tokens(context, settings.max_input_tokens, runtime.tokenizer)
    stop = stop if stop is not None else list(settings.stop)

    logger.debug(
        "Generating text",
        provider=str(runtime.model_provider),
        model=provider.model.get(ModelClass(model_class)),
        endpoint=runtime.character.model_endpoint_override or provider.endpoint,
        max_output_tokens=settings.max_output_tokens
    )
    return await runtime.model_invoker.invoke(context, ModelClass(model_class), stop, settings.max_output_tokens)


async def generate_should_respond(
    runtime: "AgentRuntime",
    context: str,
    model_class: ModelClass,
    policy: Optional[RetryPolicy] = None,
    sleep: Sleep = asyncio.sleep
) -> str:
    """One of RESPOND, IGNORE or STOP"""

    if not context:
        raise EmptyContextError("generate_should_respond needs a context")

    async def attempt() -> Optional[str]:
        response = await generate_text(runtime, context, model_class)
        return parse_should_respond_from_text(response.strip())

    return await retry_async(attempt, policy or classification_policy(runtime), "generate_should_respond", sleep)


async def generate_true_or_false(
    runtime: "AgentRuntime",
    context: str,
    model_class: ModelClass,
    policy: Optional[RetryPolicy] = None,
    sleep: Sleep = asyncio.sleep
) -> bool:
    if not context:
        raise EmptyContextError("generate_true_or_false needs a context")

    provider_stop = get_provider_models(runtime.model_provider).settings.stop
    stop = list(dict.fromkeys([*provider_stop, "\n"]))

    async def attempt() -> Optional[bool]:
        response = await generate_text(runtime, context, model_class, stop=stop)
        return parse_boolean_from_text(response.strip())

    return await retry_async(attempt, policy or classification_policy(runtime), "generate_true_or_false", sleep)


async def generate_text_array(
    runtime: "AgentRuntime",
    context: str,
    model_class: ModelClass,
    policy: Optional[RetryPolicy] = None,
    sleep: Sleep = asyncio.sleep
) -> List[Any]:
    if not context:
        logger.error("generate_text_array context is empty")
        return []

    async def attempt() -> Optional[List[Any]]:
        return parse_json_array_from_text(await generate_text(runtime, context, model_class))

    return await retry_async(attempt, policy or classification_policy(runtime), "generate_text_array", sleep)


async def generate_object(
    runtime: "AgentRuntime",
    context: str,
    model_class: ModelClass,
    policy: Optional[RetryPolicy] = None,
    sleep: Sleep = asyncio.sleep
) -> Optional[Any]:
    if not context:
        logger.error("generate_object context is empty")
        return None

    async def attempt() -> Optional[Any]:
        return parse_json_object_from_text(await generate_text(runtime, context, model_class)) or None

    return await retry_async(attempt, policy or classification_policy(runtime), "generate_object", sleep)


async def generate_object_array(
    runtime: "AgentRuntime",
    context: str,
    model_class: ModelClass,
    policy: Optional[RetryPolicy] = None,
    sleep: Sleep = asyncio.sleep
) -> List[Any]:
    if not context:
        logger.error("generate_object_array context is empty")
        return []

    async def attempt() -> Optional[List[Any]]:
        return parse_json_array_from_text(await generate_text(runtime, context, model_class))

    return await retry_async(attempt, policy or classification_policy(runtime), "generate_object_array", sleep)


async def generate_message_response(
    runtime: "AgentRuntime",
    context: str,
    model_class: ModelClass,
    policy: Optional[RetryPolicy] = None,
    sleep: Sleep = asyncio.sleep
) -> Content:
    """User-facing reply. Raises ``MaxRetriesExceeded`` when the backoff budget is spent."""

    if not context:
        raise EmptyContextError("generate_message_response needs a context")

    async def attempt() -> Content:
        response = await generate_text(runtime, context, model_class)
        return _to_response_content(response)

    return await retry_async(attempt, policy or response_policy(runtime), "generate_message_response", sleep)


def _to_response_content(response: str) -> Content:
    parsed = parse_json_object_from_text(response)
    if isinstance(parsed, dict) and parsed.get("text"):
        try:
            return Content.model_validate(parsed)
        except ValidationError as e:
            logger.warning("Model reply had malformed fields", error=str(e))

    return Content(text=response.strip(), action="RESPOND", source="model")


def build_parsed_names(parsed: Optional[List[Any]]) -> List[str]:
    """Names from a parsed JSON array, ignoring non-string entries"""
    return [item for item in parsed or [] if isinstance(item, str)]
