from abc import ABC, abstractmethod
from typing import List, Any, Optional, Awaitable, Callable, TYPE_CHECKING
from pydantic import BaseModel, ConfigDict, Field

from agent_runtime.domain.models.agent_state import Content, Memory, State

if TYPE_CHECKING:
    from agent_runtime.domain.runtime.agent_runtime import AgentRuntime

# Handlers report outgoing content through this; it returns the memories it stored
HandlerCallback = Callable[[Content], Awaitable[List[Memory]]]


class ActionExample(BaseModel):
    """One line of a canned exchange demonstrating a capability"""
    user: str
    content: Content


class EvaluationExample(BaseModel):
    """Canned evaluator input with its expected outcome"""
    context: str
    messages: List[ActionExample] = Field(default_factory=list)
    outcome: str


class Capability(ABC):
    """Shared shape of actions and evaluators"""

    # Subclasses override with ``async def handler(self, runtime, message, state, options, callback)``
    handler = None

    def __init__(
        self,
        name: str,
        description: str,
        similes: Optional[List[str]] = None,
        examples: Optional[List[Any]] = None
    ):
        self.name = name
        self.description = description
        self.similes = list(similes or [])
        self.examples = list(examples or [])

    @abstractmethod
    async def validate(self, runtime: "AgentRuntime", message: Memory, state: Optional[State] = None) -> bool:
        """Whether this capability applies to the message"""
        pass

    @property
    def has_handler(self) -> bool:
        return callable(self.handler)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class Action(Capability):
    """A behavior the agent may perform in response to a message"""

    examples: List[List[ActionExample]]


class Evaluator(Capability):
    """A behavior run after a response to extract facts or update state"""

    examples: List[EvaluationExample]

    def __init__(
        self,
        name: str,
        description: str,
        similes: Optional[List[str]] = None,
        examples: Optional[List[EvaluationExample]] = None,
        always_run: bool = False
    ):
        super().__init__(name, description, similes, examples)
        self.always_run = always_run


class Provider(ABC):
    """Source of extra context text injected into every composed state"""

    @abstractmethod
    async def get(self, runtime: "AgentRuntime", message: Memory, state: Optional[State] = None) -> Optional[str]:
        pass


class Service(ABC):
    """Collaborator registered once per service type"""

    service_type: str = "default"

    async def initialize(self, runtime: "AgentRuntime") -> None:
        """Called once by ``AgentRuntime.initialize``"""
        pass


class Plugin(BaseModel):
    """Named bundle of capabilities merged into a runtime at construction"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    description: str = ""
    actions: List[Action] = Field(default_factory=list)
    evaluators: List[Evaluator] = Field(default_factory=list)
    providers: List[Provider] = Field(default_factory=list)
    services: List[Service] = Field(default_factory=list)
