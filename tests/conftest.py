"""
Shared fixtures: in-memory storage, deterministic embeddings and a scripted model.
"""
from typing import List, Optional, Union
import hashlib

import pytest
import pytest_asyncio
from langchain_core.embeddings import Embeddings

from agent_runtime.domain.models.agent_state import Account, Content, Memory, now_ms
from agent_runtime.domain.models.character import Character, MessageExample, MessageExampleContent, Style
from agent_runtime.domain.runtime.agent_runtime import AgentRuntime
from agent_runtime.infrastructure.config.settings import RuntimeSettings
from agent_runtime.infrastructure.persistence.in_memory_adapter import InMemoryDatabaseAdapter

USER_ID = "user-0000-0000-0000-00000000beef"
ROOM_ID = "room-0000-0000-0000-00000000cafe"


class HashEmbeddings(Embeddings):
    """Deterministic bag-of-words vectors; identical text gives identical vectors"""

    def __init__(self, size: int = 32):
        self.size = size
        self.calls: List[str] = []

    def _vector(self, text: str) -> List[float]:
        vector = [0.0] * self.size
        for word in text.lower().split():
            digest = hashlib.md5(word.encode("utf-8")).digest()
            vector[digest[0] % self.size] += 1.0
        if not any(vector):
            vector[0] = 1.0
        return vector

    def embed_documents(self, texts: List[str]) -> List[List[float]]:
        return [self.embed_query(text) for text in texts]

    def embed_query(self, text: str) -> List[float]:
        self.calls.append(text)
        return self._vector(text)

    async def aembed_query(self, text: str) -> List[float]:
        return self.embed_query(text)


class ScriptedInvoker:
    """Model invoker replaying canned outputs; exceptions in the script are raised"""

    def __init__(self, outputs: Optional[List[Union[str, Exception]]] = None, default: str = ""):
        self.outputs = list(outputs or [])
        self.default = default
        self.calls: List[dict] = []

    async def invoke(self, context, model_class, stop, max_tokens):
        self.calls.append({"context": context, "model_class": model_class, "stop": stop, "max_tokens": max_tokens})
        output = self.outputs.pop(0) if self.outputs else self.default
        if isinstance(output, Exception):
            raise output
        return output


class RecordingSleep:
    """Stand-in for asyncio.sleep that only records the requested delays"""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)

    @property
    def total_ms(self) -> float:
        return sum(self.delays) * 1000


@pytest.fixture
def settings():
    return RuntimeSettings(
        _env_file=None,
        use_simple_tokenizer=True,
        retry_initial_delay_ms=1,
        classification_max_retries=3
    )


@pytest.fixture
def character():
    return Character(
        name="Eliza",
        bio=["one", "two", "three", "four", "five"],
        lore=[f"lore {i}" for i in range(15)],
        topics=["physics", "poetry", "chess", "cooking", "music", "history", "art"],
        adjectives=["curious", "witty"],
        post_examples=["first post", "second post"],
        message_examples=[
            [
                MessageExample(user="{{user1}}", content=MessageExampleContent(text="hello")),
                MessageExample(user="Eliza", content=MessageExampleContent(text="hi {{user1}}")),
            ]
        ],
        style=Style(all=["be brief"], chat=["be kind"], post=["be bold"]),
    )


@pytest.fixture
def adapter():
    return InMemoryDatabaseAdapter()


@pytest.fixture
def embedder():
    return HashEmbeddings()


@pytest.fixture
def invoker():
    return ScriptedInvoker()


@pytest.fixture
def make_runtime(adapter, embedder, invoker, character, settings):
    def factory(**kwargs) -> AgentRuntime:
        options = dict(
            database_adapter=adapter,
            character=character,
            model_invoker=invoker,
            embedder=embedder,
            settings=settings,
        )
        options.update(kwargs)
        return AgentRuntime(**options)

    return factory


@pytest.fixture
def runtime(make_runtime):
    return make_runtime()


@pytest_asyncio.fixture
async def connected_runtime(runtime, adapter):
    await adapter.create_account(Account(id=USER_ID, name="Sam", username="sam"))
    await runtime.ensure_connection(USER_ID, ROOM_ID, "sam", "Sam")
    return runtime


def make_message(agent_id: str, text: str = "hello there", user_id: str = USER_ID, room_id: str = ROOM_ID,
                 created_at: Optional[int] = None, **content) -> Memory:
    created_at = created_at if created_at is not None else now_ms()
    return Memory(
        id=hashlib.sha1(f"{user_id}-{room_id}-{created_at}-{text}".encode("utf-8")).hexdigest(),
        user_id=user_id,
        agent_id=agent_id,
        room_id=room_id,
        content=Content(text=text, **content),
        created_at=created_at
    )
