from typing import Any, Optional, Protocol
import json

import structlog

from agent_runtime.domain.models.agent_state import now_ms

logger = structlog.get_logger(__name__)


class CacheAdapter(Protocol):
    """Raw string key/value backend"""

    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str) -> None: ...

    async def delete(self, key: str) -> None: ...


class CacheManager:
    """Cache with expiry, stored as JSON envelopes on a raw adapter"""

    def __init__(self, adapter: CacheAdapter):
        self.adapter = adapter

    async def set(self, key: str, value: Any, expires: Optional[int] = None) -> None:
        """Set a value; ``expires`` is an absolute epoch-ms deadline"""

        envelope = {"value": value, "expires": expires or 0}
        await self.adapter.set(key, json.dumps(envelope))

    async def get(self, key: str) -> Optional[Any]:
        """Get value from cache if not expired"""

        raw = await self.adapter.get(key)
        if raw is None:
            return None

        try:
            envelope = json.loads(raw)
            value = envelope["value"]
            expires = int(envelope.get("expires") or 0)
        except (ValueError, TypeError, KeyError) as e:
            logger.warning("Corrupt cache entry", key=key, error=str(e))
            return None

        # Check if expired
        if expires and now_ms() > expires:
            try:
                await self.adapter.delete(key)
            except Exception as e:
                logger.warning("Failed to delete expired cache entry", key=key, error=str(e))
            return None

        return value

    async def delete(self, key: str) -> None:
        """Delete a key from cache"""
        await self.adapter.delete(key)
