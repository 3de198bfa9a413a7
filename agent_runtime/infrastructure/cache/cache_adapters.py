from typing import Dict, Optional, Union
from pathlib import Path
import asyncio
import hashlib

import structlog

from agent_runtime.infrastructure.persistence.database_adapter import DatabaseAdapter

logger = structlog.get_logger(__name__)


class MemoryCacheAdapter:
    """In-process cache adapter"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[str]:
        async with self._lock:
            return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        async with self._lock:
            self.data[key] = value

    async def delete(self, key: str) -> None:
        async with self._lock:
            self.data.pop(key, None)


class FsCacheAdapter:
    """One file per key under ``data_dir``"""

    def __init__(self, data_dir: Union[str, Path]):
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        # Keys may contain path separators
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self.data_dir / digest

    async def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            return await asyncio.to_thread(path.read_text, encoding="utf-8")
        except FileNotFoundError:
            return None

    async def set(self, key: str, value: str) -> None:
        await asyncio.to_thread(self._path(key).write_text, value, encoding="utf-8")

    async def delete(self, key: str) -> None:
        try:
            await asyncio.to_thread(self._path(key).unlink)
        except FileNotFoundError:
            logger.debug("Cache file already gone", key=key)


class DbCacheAdapter:
    """Cache entries stored through the database adapter, scoped per agent"""

    def __init__(self, database_adapter: DatabaseAdapter, agent_id: str):
        self.database_adapter = database_adapter
        self.agent_id = agent_id

    async def get(self, key: str) -> Optional[str]:
        return await self.database_adapter.get_cache(self.agent_id, key)

    async def set(self, key: str, value: str) -> None:
        await self.database_adapter.set_cache(self.agent_id, key, value)

    async def delete(self, key: str) -> None:
        await self.database_adapter.delete_cache(self.agent_id, key)
