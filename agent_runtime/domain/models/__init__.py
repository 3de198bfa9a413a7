from .agent_state import (
    Account,
    Actor,
    ActorDetails,
    Content,
    Goal,
    GoalStatus,
    Media,
    Memory,
    Objective,
    Relationship,
    State,
    now_ms,
)
from .character import (
    Character,
    CharacterSettings,
    DEFAULT_CHARACTER,
    MessageExample,
    MessageExampleContent,
    ModelClass,
    ModelProviderName,
    Style,
)
