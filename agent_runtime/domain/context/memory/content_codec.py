"""
Encoding of memory content for storage.

Content is written as single-encoded JSON. Older rows may hold double-encoded
JSON or bare text; ``decode_content`` reads all three shapes so those rows
keep working, but nothing should write them anymore.
"""
from typing import Any, Dict, Union
import json
import structlog

from pydantic import ValidationError

from agent_runtime.domain.models.agent_state import Content

logger = structlog.get_logger(__name__)


def encode_content(content: Union[Content, Dict[str, Any]]) -> str:
    """Canonical storage encoding"""
    if isinstance(content, Content):
        content = content.model_dump(exclude_none=True)
    return json.dumps(content)


def decode_content(raw: Any, memory_id: str = "") -> Content:
    """Decode stored content, falling back through the historical encodings"""

    if isinstance(raw, Content):
        return raw
    if isinstance(raw, dict):
        return _to_content(raw, memory_id)
    if raw is None:
        return Content()

    raw = str(raw)

    try:
        parsed = json.loads(raw)
    except ValueError:
        logger.debug("Content is plain text", memory_id=memory_id, preview=raw[:100])
        return Content(text=raw)

    if isinstance(parsed, dict):
        return _to_content(parsed, memory_id)

    # Double-encoded rows decode to a JSON string on the first pass
    if isinstance(parsed, str):
        try:
            inner = json.loads(parsed)
        except ValueError:
            inner = None
        if isinstance(inner, dict):
            logger.warning("Decoded double-encoded content", memory_id=memory_id)
            return _to_content(inner, memory_id)

    logger.warning(
        "Unrecognised content encoding, treating as text",
        memory_id=memory_id,
        preview=raw[:100]
    )
    return Content(text=raw)


def _to_content(data: Dict[str, Any], memory_id: str) -> Content:
    try:
        return Content.model_validate(data)
    except ValidationError as e:
        logger.warning("Malformed content fields", memory_id=memory_id, error=str(e))
        return Content(text=str(data.get("text") or ""))
