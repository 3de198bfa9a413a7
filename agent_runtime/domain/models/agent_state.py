from typing import Dict, Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field
from enum import Enum
import time


def now_ms() -> int:
    """Current wall clock time in epoch milliseconds"""
    return int(time.time() * 1000)


class GoalStatus(str, Enum):
    """Goal tracking status"""
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"
    FAILED = "FAILED"


class Media(BaseModel):
    """Attachment carried by a message"""
    id: str = Field(description="Attachment identifier")
    url: str = ""
    title: str = ""
    source: str = ""
    description: str = ""
    text: str = ""


class Content(BaseModel):
    """Structured payload of a memory"""
    model_config = ConfigDict(extra="allow")

    text: str = ""
    action: Optional[str] = Field(None, description="Action the sender asked for")
    source: Optional[str] = None
    url: Optional[str] = None
    in_reply_to: Optional[str] = Field(None, description="Memory ID this content answers")
    attachments: List[Media] = Field(default_factory=list)


class Memory(BaseModel):
    """A persisted unit of conversational or knowledge content"""
    id: str = Field(description="Globally unique memory identifier")
    type: str = Field(default="message")
    user_id: str
    agent_id: str
    room_id: str
    content: Content = Field(default_factory=Content)
    embedding: Optional[List[float]] = None
    created_at: int = Field(default_factory=now_ms, description="Epoch milliseconds")
    is_unique: bool = False
    similarity: Optional[float] = Field(None, description="Score attached by similarity search")


class Objective(BaseModel):
    """A single checklist item of a goal"""
    id: Optional[str] = None
    description: str
    completed: bool = False


class Goal(BaseModel):
    """A tracked intent with sub-tasks"""
    id: Optional[str] = None
    room_id: str
    user_id: Optional[str] = None
    name: str
    status: GoalStatus = Field(default=GoalStatus.PENDING)
    objectives: List[Objective] = Field(default_factory=list)


class ActorDetails(BaseModel):
    """Free-form profile text of a participant"""
    tagline: str = ""
    summary: str = ""
    quote: str = ""


class Actor(BaseModel):
    """Read model of a room participant"""
    id: str
    name: str
    username: str
    details: ActorDetails = Field(default_factory=ActorDetails)


class Account(BaseModel):
    """Stored participant account"""
    id: str
    name: str
    username: str
    email: Optional[str] = None
    avatar_url: Optional[str] = None
    details: ActorDetails = Field(default_factory=ActorDetails)


class Relationship(BaseModel):
    """Link between two accounts"""
    id: Optional[str] = None
    user_a: str
    user_b: str
    user_id: str
    room_id: Optional[str] = None
    status: str = "FRIENDS"
    created_at: Optional[int] = None


class State(BaseModel):
    """Context assembled for one message-handling cycle.

    Formatted string fields are rendered into prompt templates; the ``*_data``
    fields keep the structured values they were rendered from. Callers may add
    extra keys, which are carried along and exposed to templates as well.
    """
    model_config = ConfigDict(extra="allow", arbitrary_types_allowed=True)

    agent_id: str
    agent_name: str = ""
    sender_name: Optional[str] = None
    room_id: str

    # Persona
    bio: str = ""
    lore: str = ""
    adjective: str = ""
    topic: Optional[str] = None
    topics: str = ""
    character_post_examples: str = ""
    character_message_examples: str = ""
    message_directions: str = ""
    post_directions: str = ""

    # Conversation
    actors: str = ""
    actors_data: List[Actor] = Field(default_factory=list)
    goals: str = ""
    goals_data: List[Goal] = Field(default_factory=list)
    recent_messages: str = ""
    recent_posts: str = ""
    recent_messages_data: List[Memory] = Field(default_factory=list)
    attachments: str = ""
    knowledge: str = ""
    recent_message_interactions: str = ""
    recent_post_interactions: str = ""
    recent_interactions_data: List[Memory] = Field(default_factory=list)

    # Capabilities
    action_names: str = ""
    actions: str = ""
    action_examples: str = ""
    actions_data: List[Any] = Field(default_factory=list)
    evaluators: str = ""
    evaluator_names: str = ""
    evaluator_examples: str = ""
    evaluators_data: List[Any] = Field(default_factory=list)
    providers: str = ""

    def template_values(self) -> Dict[str, str]:
        """Flat mapping of template variable name to rendered string.

        Both the snake_case field names and their camelCase spellings are
        exposed so templates written for either convention resolve.
        """
        values: Dict[str, str] = {}
        raw = dict(self.__dict__)
        raw.update(self.model_extra or {})

        for key, value in raw.items():
            if key.endswith("_data") or value is None:
                continue
            if isinstance(value, (list, dict, BaseModel)):
                continue
            rendered = str(value)
            values[key] = rendered
            values[_camel_case(key)] = rendered

        return values


def _camel_case(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)
