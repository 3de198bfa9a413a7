from typing import List, Optional, TYPE_CHECKING
import hashlib

import structlog

from agent_runtime.domain.exceptions import RuntimeConfigurationError

if TYPE_CHECKING:
    from agent_runtime.domain.runtime.agent_runtime import AgentRuntime

logger = structlog.get_logger(__name__)


def embedding_cache_key(text: str) -> str:
    return "embedding/" + hashlib.sha256(text.encode("utf-8")).hexdigest()


async def retrieve_cached_embedding(runtime: "AgentRuntime", text: str) -> Optional[List[float]]:
    """Vector stored for an identical input, from the cache or the message store"""

    if not text:
        return None

    if runtime.cache_manager is not None:
        try:
            cached = await runtime.cache_manager.get(embedding_cache_key(text))
        except Exception as e:
            logger.warning("Embedding cache read failed", error=str(e))
            cached = None
        if cached:
            return list(cached)

    matches = await runtime.message_manager.get_cached_embeddings(text)
    if matches and matches[0].get("embedding"):
        logger.debug("Stored embedding reused", preview=text[:50])
        return list(matches[0]["embedding"])
    return None


async def embed(runtime: "AgentRuntime", text: str) -> List[float]:
    """Embedding of ``text``, reusing a known vector for an identical input"""

    cached = await retrieve_cached_embedding(runtime, text)
    if cached is not None:
        return cached

    if runtime.embedder is None:
        raise RuntimeConfigurationError("No embedder configured for this runtime")

    embedding = list(await runtime.embedder.aembed_query(text))

    if runtime.cache_manager is not None and text:
        try:
            await runtime.cache_manager.set(embedding_cache_key(text), embedding)
        except Exception as e:
            logger.warning("Embedding cache write failed", error=str(e))

    return embedding
