from typing import Any, List, Optional, Protocol, Sequence
import re

import structlog
import tiktoken

logger = structlog.get_logger(__name__)

_SIMPLE_TOKEN = re.compile(r"\s*\S+|\s+$")


class Tokenizer(Protocol):
    """Reversible text to token sequence mapping"""

    def encode(self, text: str) -> Sequence[Any]: ...

    def decode(self, tokens: Sequence[Any]) -> str: ...


class TiktokenTokenizer:
    """BPE tokenizer matching the default model family"""

    def __init__(self, model: str = "gpt-4o"):
        self.model = model
        self._encoding: Optional[tiktoken.Encoding] = None

    @property
    def encoding(self) -> tiktoken.Encoding:
        if self._encoding is None:
            self._encoding = tiktoken.encoding_for_model(self.model)
        return self._encoding

    def encode(self, text: str) -> List[int]:
        return self.encoding.encode(text)

    def decode(self, tokens: Sequence[int]) -> str:
        return self.encoding.decode(list(tokens))


class SimpleTokenizer:
    """Whitespace tokenizer that keeps leading whitespace with each word.

    Needs no vocabulary download; decoding the full token list gives back the
    original text.
    """

    def encode(self, text: str) -> List[str]:
        return _SIMPLE_TOKEN.findall(text)

    def decode(self, tokens: Sequence[str]) -> str:
        return "".join(tokens)


def trim_tokens(context: str, max_tokens: int, tokenizer: Tokenizer) -> str:
    """Keep at most ``max_tokens`` tokens from the start of ``context``"""

    tokens = tokenizer.encode(context)
    if len(tokens) <= max_tokens:
        return context

    logger.debug("Trimming context", tokens=len(tokens), max_tokens=max_tokens)
    return tokenizer.decode(tokens[:max_tokens])


def split_chunks(content: str, chunk_size: int, bleed: int = 100, tokenizer: Optional[Tokenizer] = None) -> List[str]:
    """Split ``content`` into chunks of ``chunk_size`` tokens.

    Each chunk also carries up to ``bleed`` tokens of its neighbours on either
    side so text cut at a boundary stays retrievable.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")

    tokenizer = tokenizer or TiktokenTokenizer("gpt-4o-mini")
    tokens = tokenizer.encode(content)

    chunks = []
    for start in range(0, len(tokens), chunk_size):
        lower = max(0, start - bleed)
        upper = min(len(tokens), start + chunk_size + bleed)
        chunks.append(tokenizer.decode(tokens[lower:upper]))

    return chunks
