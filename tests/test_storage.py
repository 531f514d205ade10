"""
Tests for key-value persistence.
"""

import json
from unittest.mock import MagicMock, patch

import pytest

from strata.core.models import Language
from strata.core.storage import (
    HISTORY_KEY,
    LANGUAGE_KEY,
    HistoryRepository,
    MemoryStore,
    RedisStore,
    create_store,
)

from conftest import SAMPLE_DOCUMENT, make_plan


class TestHistoryRepository:
    """Test history and preference round trips."""

    def test_empty_store(self, repository):
        assert repository.load_history() == []
        assert repository.load_language() == Language.EN

    def test_history_round_trip(self, repository):
        plans = [make_plan("b", 2, parent_id="a"), make_plan("a", 1)]
        repository.save_history(plans)
        assert repository.load_history() == plans

    def test_history_uses_wire_names(self, repository, memory_store):
        repository.save_history([make_plan("b", 2, parent_id="a")])
        stored = json.loads(memory_store.get(HISTORY_KEY))
        assert stored[0]["parentId"] == "a"
        assert stored[0]["createdAt"] == 2
        assert "motivationalQuote" in stored[0]

    def test_loads_history_written_by_browser_client(self, memory_store, repository):
        item = {**SAMPLE_DOCUMENT, "id": "x", "createdAt": 1700000000000}
        memory_store.set(HISTORY_KEY, json.dumps([item]))
        [plan] = repository.load_history()
        assert plan.id == "x"
        assert plan.phases[0].steps[1].title == 'Day 2: Reading "treble" clef'

    @pytest.mark.parametrize(
        "raw", ["not json", '{"a": 1}', '[{"id": "missing fields"}]', "42"]
    )
    def test_corrupted_history_is_empty(self, memory_store, repository, raw):
        memory_store.set(HISTORY_KEY, raw)
        assert repository.load_history() == []

    def test_language_round_trip(self, repository, memory_store):
        repository.save_language(Language.ZH)
        assert memory_store.get(LANGUAGE_KEY) == "zh"
        assert repository.load_language() == Language.ZH

    def test_unknown_language_falls_back(self, memory_store, repository):
        memory_store.set(LANGUAGE_KEY, "de")
        assert repository.load_language() == Language.EN


class TestStores:
    """Test store backends."""

    def test_memory_store(self):
        store = MemoryStore({"k": "v"})
        assert store.get("k") == "v"
        store.set("k", "w")
        store.delete("k")
        assert store.get("k") is None
        assert store.ping()

    def test_redis_store_uses_client(self):
        with patch("strata.core.storage.redis.from_url") as from_url:
            client = MagicMock()
            client.get.return_value = "[]"
            from_url.return_value = client

            store = RedisStore("redis://example:6379/1", namespace="strata")
            assert store.get(HISTORY_KEY) == "[]"
            store.set(LANGUAGE_KEY, "en")
            store.delete(LANGUAGE_KEY)

        from_url.assert_called_once_with("redis://example:6379/1", decode_responses=True)
        client.get.assert_called_once_with("strata:strata_history")
        client.set.assert_called_once_with("strata:strata_lang", "en")
        client.delete.assert_called_once_with("strata:strata_lang")

    def test_redis_ping_failure(self):
        import redis

        with patch("strata.core.storage.redis.from_url") as from_url:
            from_url.return_value.ping.side_effect = redis.ConnectionError("down")
            assert RedisStore().ping() is False

    def test_create_store(self):
        assert isinstance(create_store("memory"), MemoryStore)
        with patch("strata.core.storage.redis.from_url"):
            assert isinstance(create_store("redis", "redis://x"), RedisStore)
        with pytest.raises(ValueError):
            create_store("sqlite")
