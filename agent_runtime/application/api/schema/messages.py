from typing import Dict, Any, Optional, List
from pydantic import BaseModel, Field

from agent_runtime.domain.models.agent_state import Content, Media


class MessageRequest(BaseModel):
    """Incoming message from a direct client"""
    text: str
    user_id: Optional[str] = Field(None, description="Defaults to an ID derived from user_name")
    room_id: Optional[str] = Field(None, description="Defaults to the agent's direct room")
    user_name: Optional[str] = None
    name: Optional[str] = None
    action: Optional[str] = None
    attachments: List[Media] = Field(default_factory=list)


class MessageResponse(BaseModel):
    """Everything the agent said in reply, in order"""
    room_id: str
    messages: List[Content] = Field(default_factory=list)
    evaluators: List[str] = Field(default_factory=list)


class StateResponse(BaseModel):
    """Template variables of a composed state"""
    room_id: str
    values: Dict[str, Any] = Field(default_factory=dict)


class HealthResponse(BaseModel):
    status: str = "ok"
    agent_id: str
    character: str
    actions: List[str] = Field(default_factory=list)
    evaluators: List[str] = Field(default_factory=list)
