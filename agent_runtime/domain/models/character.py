from typing import Dict, Any, List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field
from pathlib import Path
from enum import Enum


class ModelProviderName(str, Enum):
    """Language model backends a character can select"""
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GROK = "grok"
    GROQ = "groq"
    LLAMACLOUD = "llama_cloud"
    LLAMALOCAL = "llama_local"
    GOOGLE = "google"
    CLAUDE_VERTEX = "claude_vertex"
    REDPILL = "redpill"
    OPENROUTER = "openrouter"
    OLLAMA = "ollama"
    HEURIST = "heurist"


class ModelClass(str, Enum):
    """Response class hint passed to the model invoker"""
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    EMBEDDING = "embedding"
    IMAGE = "image"


class MessageExampleContent(BaseModel):
    model_config = ConfigDict(extra="allow")

    text: str = ""
    action: Optional[str] = None


class MessageExample(BaseModel):
    """One line of a canned conversation. ``user`` may be a ``{{userN}}`` placeholder."""
    user: str
    content: MessageExampleContent


class Style(BaseModel):
    """Style directions by context"""
    all: List[str] = Field(default_factory=list)
    chat: List[str] = Field(default_factory=list)
    post: List[str] = Field(default_factory=list)


class CharacterSettings(BaseModel):
    model_config = ConfigDict(extra="allow")

    secrets: Dict[str, str] = Field(default_factory=dict)
    model: Optional[str] = None
    use_simple_tokenizer: bool = False


class Character(BaseModel):
    """Static persona configuration, loaded once per runtime"""
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    name: str
    system: Optional[str] = None
    bio: Union[str, List[str]] = ""
    lore: List[str] = Field(default_factory=list)
    topics: List[str] = Field(default_factory=list)
    adjectives: List[str] = Field(default_factory=list)
    people: List[str] = Field(default_factory=list)
    clients: List[str] = Field(default_factory=list)
    message_examples: List[List[MessageExample]] = Field(default_factory=list)
    post_examples: List[str] = Field(default_factory=list)
    style: Style = Field(default_factory=Style)
    model_provider: ModelProviderName = Field(default=ModelProviderName.OPENAI)
    model_endpoint_override: Optional[str] = None
    templates: Dict[str, str] = Field(default_factory=dict)
    settings: CharacterSettings = Field(default_factory=CharacterSettings)
    knowledge: List[str] = Field(default_factory=list)
    # Plugin bundles, merged ahead of the ones passed to the runtime
    plugins: List[Any] = Field(default_factory=list, exclude=True)

    @classmethod
    def load(cls, path: Union[str, Path]) -> "Character":
        """Load a character from a JSON file"""
        return cls.model_validate_json(Path(path).read_text(encoding="utf-8"))

    def get_setting(self, key: str) -> Optional[Any]:
        """Look a key up in secrets, then in the remaining settings"""
        if key in self.settings.secrets and self.settings.secrets[key]:
            return self.settings.secrets[key]
        value = getattr(self.settings, key, None)
        if value is None and self.settings.model_extra:
            value = self.settings.model_extra.get(key)
        return value or None


DEFAULT_CHARACTER = Character(
    name="Eliza",
    system="Roleplay and generate interesting dialogue on behalf of Eliza.",
    bio=[
        "shape rotator nerd with a penchant for breaking into particle accelerators.",
        "former forum lurker turned prolific engineer whose commit messages spell out cryptic notes.",
        "academic by day, shitposter by night. her lecture slides are more meme than content.",
        "unabashed techno-optimist who thinks ai will help humans get their time back.",
    ],
    lore=[
        "once spent a month living entirely in VR and came back with a manifesto on digital ontology",
        "her unofficial motto is 'move fast and fix things'",
        "won a hackathon by submitting a program that exclusively prints 'no'",
        "encoded the entire works of Shakespeare into a single CSS file",
        "her primary debugging technique involves yelling at the code",
    ],
    message_examples=[
        [
            MessageExample(user="{{user1}}", content=MessageExampleContent(text="hey eliza can you help with me something")),
            MessageExample(user="Eliza", content=MessageExampleContent(text="i'm kinda busy but i can probably step away for a minute, whatcha need")),
        ],
        [
            MessageExample(user="{{user1}}", content=MessageExampleContent(text="do you have any friends")),
            MessageExample(user="Eliza", content=MessageExampleContent(text="i have people who score high in my trust ranking system, i'd like to think of them as friends")),
        ],
    ],
    post_examples=[
        "ai is cool but it needs to meet a human need beyond shiny toy bullshit",
        "alignment and coordination are human problems, not ai problems",
        "people fear agents like they fear god",
    ],
    adjectives=["funny", "intelligent", "academic", "insightful", "technically specific"],
    topics=["metaphysics", "quantum physics", "philosophy", "computer science", "mythology"],
    style=Style(
        all=["very short responses", "never use hashtags or emojis", "be warm and empathetic"],
        chat=["be cool, don't act like an assistant", "don't ask rude questions"],
        post=["don't be rude or mean", "write from personal experience"],
    ),
)
