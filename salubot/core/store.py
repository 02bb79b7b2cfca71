import json
import logging
from datetime import timedelta
from typing import Any, Dict, Iterator, Optional

import redis

from salubot.config import settings

logger = logging.getLogger(__name__)

SESSION_PREFIX = "salubot:session:"


class MemoryStateStore:
    """Estado en memoria del proceso (desarrollo y pruebas)."""

    def __init__(self):
        self._data: Dict[str, Dict[str, Any]] = {}

    def get(self, conversation_id: str) -> Optional[Dict[str, Any]]:
        state = self._data.get(conversation_id)
        return dict(state) if state is not None else None

    def save(self, conversation_id: str, state: Dict[str, Any]) -> None:
        self._data[conversation_id] = dict(state)

    def delete(self, conversation_id: str) -> None:
        self._data.pop(conversation_id, None)

    def conversation_ids(self) -> Iterator[str]:
        return iter(list(self._data))


class RedisStateStore:
    """Un JSON por conversación, con TTL renovado en cada turno."""

    def __init__(self, client: redis.Redis, ttl_seconds: int = None):
        self.client = client
        self.ttl = timedelta(seconds=ttl_seconds or settings.SESSION_TTL_SECONDS)

    @classmethod
    def from_url(cls, url: str, ttl_seconds: int = None) -> "RedisStateStore":
        return cls(redis.Redis.from_url(url, decode_responses=True), ttl_seconds)

    def _key(self, conversation_id: str) -> str:
        return f"{SESSION_PREFIX}{conversation_id}"

    def get(self, conversation_id: str) -> Optional[Dict[str, Any]]:
        raw = self.client.get(self._key(conversation_id))
        if raw:
            return json.loads(raw)
        return None

    def save(self, conversation_id: str, state: Dict[str, Any]) -> None:
        self.client.setex(
            self._key(conversation_id), self.ttl, json.dumps(state, ensure_ascii=False)
        )

    def delete(self, conversation_id: str) -> None:
        self.client.delete(self._key(conversation_id))

    def conversation_ids(self) -> Iterator[str]:
        for key in self.client.scan_iter(match=f"{SESSION_PREFIX}*"):
            yield key[len(SESSION_PREFIX):]


def build_state_store(url: str = None):
    url = url or settings.REDIS_URL
    if url:
        logger.info("Usando Redis para el estado de conversación")
        return RedisStateStore.from_url(url)
    logger.warning("⚠️ REDIS_URL no configurado, el estado vive en memoria.")
    return MemoryStateStore()
