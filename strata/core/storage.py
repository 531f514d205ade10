"""
Key-value persistence for plan history and preferences.

The store holds two string values: the JSON-encoded history list and the
language preference. Both are read once at startup and rewritten in full on
every change. There is no schema versioning; anything that fails to decode is
treated as absent.
"""
import json
import logging
from abc import ABC, abstractmethod

import redis
from pydantic import ValidationError

from .models import Language, PlanResponse

logger = logging.getLogger(__name__)

HISTORY_KEY = "strata_history"
LANGUAGE_KEY = "strata_lang"


class KeyValueStore(ABC):
    @abstractmethod
    def get(self, key: str) -> str | None:
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        pass

    def ping(self) -> bool:
        return True


class MemoryStore(KeyValueStore):
    """In-process store, used for tests and throwaway sessions."""

    def __init__(self, initial: dict[str, str] | None = None):
        self.data = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def delete(self, key: str) -> None:
        self.data.pop(key, None)


class RedisStore(KeyValueStore):
    """Redis-backed store"""

    def __init__(self, redis_url: str = "redis://localhost:6379/0", namespace: str = ""):
        self.redis_client = redis.from_url(redis_url, decode_responses=True)
        self.namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}" if self.namespace else key

    def get(self, key: str) -> str | None:
        return self.redis_client.get(self._key(key))

    def set(self, key: str, value: str) -> None:
        self.redis_client.set(self._key(key), value)

    def delete(self, key: str) -> None:
        self.redis_client.delete(self._key(key))

    def ping(self) -> bool:
        try:
            return bool(self.redis_client.ping())
        except redis.RedisError as e:
            logger.warning(f"Redis ping failed: {e}")
            return False


def create_store(backend: str, redis_url: str | None = None) -> KeyValueStore:
    if backend.lower() == "memory":
        return MemoryStore()
    elif backend.lower() == "redis":
        return RedisStore(redis_url or "redis://localhost:6379/0")
    else:
        raise ValueError(f"Unsupported store backend: {backend}")


class HistoryRepository:
    """Reads and writes plan history and the language preference."""

    def __init__(self, store: KeyValueStore, default_language: Language = Language.ZH):
        self.store = store
        self.default_language = Language(default_language)

    def load_history(self) -> list[PlanResponse]:
        raw = self.store.get(HISTORY_KEY)
        if not raw:
            return []
        try:
            items = json.loads(raw)
            if not isinstance(items, list):
                raise ValueError("stored history is not a list")
            return [PlanResponse.model_validate(item) for item in items]
        except (ValueError, ValidationError) as e:
            logger.warning(f"Failed to load history, starting empty: {e}")
            return []

    def save_history(self, plans: list[PlanResponse]) -> None:
        self.store.set(HISTORY_KEY, json.dumps([plan.to_wire() for plan in plans]))

    def load_language(self) -> Language:
        raw = self.store.get(LANGUAGE_KEY)
        try:
            return Language(raw)
        except ValueError:
            if raw is not None:
                logger.warning(f"Ignoring unknown stored language: {raw!r}")
            return self.default_language

    def save_language(self, language: Language) -> None:
        self.store.set(LANGUAGE_KEY, Language(language).value)
