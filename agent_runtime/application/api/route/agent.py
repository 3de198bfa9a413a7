import uuid
from typing import List, Tuple
import structlog
from fastapi import APIRouter, Depends, HTTPException, Request

from agent_runtime.application.api.schema.messages import (
    HealthResponse,
    MessageRequest,
    MessageResponse,
    StateResponse,
)
from agent_runtime.domain.context.formatting import compose_context
from agent_runtime.domain.generation.generator import generate_message_response
from agent_runtime.domain.generation.templates import message_handler_template
from agent_runtime.domain.models.agent_state import Content, Memory
from agent_runtime.domain.models.character import ModelClass
from agent_runtime.domain.runtime.agent_runtime import AgentRuntime, string_to_uuid
from agent_runtime.infrastructure.observability.logging import bind_message_context

logger = structlog.get_logger(__name__)

router = APIRouter()


def get_runtime(request: Request) -> AgentRuntime:
    return request.app.state.runtime


def get_agent_runtime(agent_id: str, runtime: AgentRuntime = Depends(get_runtime)) -> AgentRuntime:
    if agent_id != runtime.agent_id:
        raise HTTPException(status_code=404, detail=f"Agent {agent_id} not found")
    return runtime


async def _ingest(runtime: AgentRuntime, request: MessageRequest) -> Tuple[Memory, str]:
    """Store the incoming message after making sure its sender and room exist"""

    user_id = request.user_id or string_to_uuid(request.user_name or "user")
    room_id = request.room_id or string_to_uuid(f"default-room-{runtime.agent_id}")
    bind_message_context(runtime.agent_id, room_id)

    await runtime.ensure_connection(user_id, room_id, request.user_name, request.name, source="direct")

    message = Memory(
        id=str(uuid.uuid4()),
        user_id=user_id,
        agent_id=runtime.agent_id,
        room_id=room_id,
        content=Content(
            text=request.text,
            action=request.action,
            source="direct",
            attachments=request.attachments
        )
    )
    await runtime.message_manager.create_memory(message)
    return message, room_id


@router.get("/health", response_model=HealthResponse)
async def health(runtime: AgentRuntime = Depends(get_runtime)):
    return HealthResponse(
        agent_id=runtime.agent_id,
        character=runtime.character.name,
        actions=[action.name for action in runtime.actions],
        evaluators=[evaluator.name for evaluator in runtime.evaluators]
    )


@router.post("/agents/{agent_id}/message", response_model=MessageResponse)
async def post_message(request: MessageRequest, runtime: AgentRuntime = Depends(get_agent_runtime)):
    """Handle one message: respond, run the chosen action, then evaluate"""

    message, room_id = await _ingest(runtime, request)

    state = await runtime.compose_state(message)
    template = runtime.character.templates.get("messageHandlerTemplate") or message_handler_template
    context = compose_context(template, state)

    response_content = await generate_message_response(runtime, context, ModelClass.LARGE)
    response_content = response_content.model_copy(update={"in_reply_to": message.id})

    response = Memory(
        id=string_to_uuid(f"{message.id}-{runtime.agent_id}"),
        user_id=runtime.agent_id,
        agent_id=runtime.agent_id,
        room_id=room_id,
        content=response_content
    )
    await runtime.message_manager.create_memory(response)

    state = await runtime.update_recent_message_state(state)

    replies: List[Content] = [response_content]

    async def callback(content: Content) -> List[Memory]:
        reply = Memory(
            id=string_to_uuid(f"{response.id}-{len(replies)}"),
            user_id=runtime.agent_id,
            agent_id=runtime.agent_id,
            room_id=room_id,
            content=content
        )
        await runtime.message_manager.create_memory(reply)
        replies.append(content)
        return [reply]

    await runtime.process_actions(message, [response], state, callback)
    evaluators = await runtime.evaluate(message, state, did_respond=True)

    logger.info("Message handled", room_id=room_id, replies=len(replies), evaluators=evaluators)
    return MessageResponse(room_id=room_id, messages=replies, evaluators=evaluators)


@router.post("/agents/{agent_id}/state", response_model=StateResponse)
async def post_state(request: MessageRequest, runtime: AgentRuntime = Depends(get_agent_runtime)):
    """Compose the state for a message and return its template variables"""

    message, room_id = await _ingest(runtime, request)
    state = await runtime.compose_state(message)
    return StateResponse(room_id=room_id, values=state.template_values())
