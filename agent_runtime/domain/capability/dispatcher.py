"""
Message-time resolution of actions, evaluators and providers.
"""
from typing import Any, List, Optional, Sequence, TYPE_CHECKING
import asyncio
import re

import structlog

from agent_runtime.domain.context.formatting import compose_context
from agent_runtime.domain.context.persona import example_names, fill_user_placeholders, sample
from agent_runtime.domain.exceptions import MissingHandlerError
from agent_runtime.domain.generation.generator import build_parsed_names, generate_text
from agent_runtime.domain.generation.parsing import parse_json_array_from_text
from agent_runtime.domain.generation.templates import evaluation_template
from agent_runtime.domain.models.agent_state import Memory, State
from agent_runtime.domain.models.character import ModelClass
from agent_runtime.infrastructure.observability.logging import agent_logger
from .capabilities import Action, Capability, Evaluator, HandlerCallback

if TYPE_CHECKING:
    from agent_runtime.domain.runtime.agent_runtime import AgentRuntime

logger = structlog.get_logger(__name__)

_SEPARATORS = re.compile(r"[_\-\s]+")


def normalize_action_name(name: str) -> str:
    """Lowercase with underscores, dashes and whitespace removed"""
    return _SEPARATORS.sub("", name.lower())


def _names_match(candidate: str, target: str) -> bool:
    normalized = normalize_action_name(candidate)
    return bool(normalized) and (normalized in target or target in normalized)


def find_action(actions: Sequence[Action], declared: str):
    """First action matching ``declared`` by name, then by simile"""

    target = normalize_action_name(declared)
    if not target:
        return None, None

    for action in actions:
        if _names_match(action.name, target):
            return action, "name"

    for action in actions:
        if any(_names_match(simile, target) for simile in action.similes):
            return action, "simile"

    return None, None


async def process_actions(
    runtime: "AgentRuntime",
    message: Memory,
    responses: List[Memory],
    state: Optional[State] = None,
    callback: Optional[HandlerCallback] = None
) -> Optional[Any]:
    """Run the handler of the action declared by the first response, if any"""

    declared = responses[0].content.action if responses else None
    if not declared:
        logger.warning("No action found in the response content", room_id=message.room_id)
        return None

    action, matched_by = find_action(runtime.actions, declared)
    agent_logger.log_action_dispatch(
        declared_action=declared,
        resolved_action=action.name if action else None,
        room_id=message.room_id,
        matched_by=matched_by
    )

    if action is None:
        return None

    if not action.has_handler:
        logger.error("Matched action cannot run", action=action.name, error=str(MissingHandlerError(action.name)))
        return None

    return await action.handler(runtime, message, state, {}, callback)


async def _validated(capabilities: Sequence[Capability], runtime: "AgentRuntime", message: Memory, state: Optional[State]):
    results = await asyncio.gather(*(
        capability.validate(runtime, message, state) for capability in capabilities
    ))
    return [capability for capability, ok in zip(capabilities, results) if ok]


async def validate_actions(runtime: "AgentRuntime", message: Memory, state: Optional[State] = None) -> List[Action]:
    return await _validated(runtime.actions, runtime, message, state)


async def validate_evaluators(runtime: "AgentRuntime", message: Memory, state: Optional[State] = None) -> List[Evaluator]:
    return await _validated(runtime.evaluators, runtime, message, state)


async def evaluate(
    runtime: "AgentRuntime",
    message: Memory,
    state: State,
    did_respond: bool = False
) -> List[str]:
    """Ask the model which validated evaluators apply and run their handlers"""

    candidates = [
        evaluator for evaluator in runtime.evaluators
        if evaluator.has_handler and (did_respond or evaluator.always_run)
    ]
    validated = await _validated(candidates, runtime, message, state)

    if not validated:
        agent_logger.log_evaluation(message.room_id, [], [], did_respond)
        return []

    eval_state = state.model_copy(update={
        "evaluators": format_evaluators(validated),
        "evaluator_names": format_evaluator_names(validated),
        "evaluators_data": list(validated),
    })
    template = runtime.character.templates.get("evaluationTemplate") or evaluation_template
    context = compose_context(template, eval_state)

    result = await generate_text(runtime, context, ModelClass.SMALL)
    selected = build_parsed_names(parse_json_array_from_text(result))

    handlers = [evaluator for evaluator in validated if evaluator.name in selected]
    agent_logger.log_evaluation(
        message.room_id,
        [evaluator.name for evaluator in validated],
        [evaluator.name for evaluator in handlers],
        did_respond
    )
    await asyncio.gather(*(
        evaluator.handler(runtime, message, state, {}, None) for evaluator in handlers
    ))
    return [evaluator.name for evaluator in handlers]


async def get_providers(runtime: "AgentRuntime", message: Memory, state: Optional[State] = None) -> str:
    """Outputs of every provider, newline joined. Provider errors propagate."""

    results = await asyncio.gather(*(
        provider.get(runtime, message, state) for provider in runtime.providers
    ))
    return "\n".join(result or "" for result in results)


# Formatting

def format_action_names(actions: Sequence[Action]) -> str:
    return ", ".join(action.name for action in sample(actions, len(actions)))


def format_actions(actions: Sequence[Action]) -> str:
    return ",\n".join(f"{action.name}: {action.description}" for action in sample(actions, len(actions)))


def compose_action_examples(actions: Sequence[Action], count: int) -> str:
    """Up to ``count`` random example exchanges, at most 5 per action"""

    picked = [
        example
        for action in sample(actions, len(actions))
        for example in sample(action.examples, 5)
    ][:count]

    formatted = []
    for example in picked:
        names = example_names()
        lines = []
        for line in example:
            action_suffix = f" ({line.content.action})" if line.content.action else ""
            lines.append(fill_user_placeholders(f"{line.user}: {line.content.text}{action_suffix}", names))
        formatted.append("\n" + "\n".join(lines))
    return "\n".join(formatted)


def format_evaluator_names(evaluators: Sequence[Evaluator]) -> str:
    return ",\n".join(f"'{evaluator.name}'" for evaluator in evaluators)


def format_evaluators(evaluators: Sequence[Evaluator]) -> str:
    return ",\n".join(f"'{evaluator.name}: {evaluator.description}'" for evaluator in evaluators)


def format_evaluator_examples(evaluators: Sequence[Evaluator]) -> str:
    blocks = []
    for evaluator in evaluators:
        rendered = []
        for example in evaluator.examples:
            names = example_names()
            messages = "\n".join(
                fill_user_placeholders(f"{line.user}: {line.content.text}", names)
                + (f" ({line.content.action})" if line.content.action else "")
                for line in example.messages
            )
            rendered.append(
                f"Context:\n{fill_user_placeholders(example.context, names)}\n\n"
                f"Messages:\n{messages}\n\n"
                f"Outcome:\n{fill_user_placeholders(example.outcome, names)}"
            )
        blocks.append("\n\n".join(rendered))
    return "\n\n".join(blocks)
