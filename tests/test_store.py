"""Tests for the conversation state stores."""

import json
from datetime import timedelta
from unittest.mock import MagicMock

from salubot.agents import prompts
from salubot.agents.session import ConversationService
from salubot.core.catalog import resolve_choice
from salubot.core.store import MemoryStateStore, RedisStateStore, build_state_store


def test_memory_store_roundtrip_returns_copies():
    store = MemoryStateStore()
    state = {"step": "summary", "appointment_data": {"full_name": "Ana"}}
    store.save("51999", state)

    loaded = store.get("51999")
    assert loaded == state
    loaded["step"] = "otro"
    assert store.get("51999")["step"] == "summary"


def test_memory_store_missing_and_delete():
    store = MemoryStateStore()
    assert store.get("nadie") is None
    store.save("a", {})
    store.delete("a")
    assert list(store.conversation_ids()) == []


def test_redis_store_uses_prefixed_keys_and_ttl():
    client = MagicMock()
    store = RedisStateStore(client, ttl_seconds=600)
    store.save("51999", {"fullName": "Ana Pérez"})

    key, ttl, raw = client.setex.call_args[0]
    assert key == "salubot:session:51999"
    assert ttl == timedelta(seconds=600)
    assert json.loads(raw) == {"fullName": "Ana Pérez"}


def test_redis_store_get_decodes_json():
    client = MagicMock()
    client.get.return_value = '{"step": "greeting"}'
    assert RedisStateStore(client).get("51999") == {"step": "greeting"}

    client.get.return_value = None
    assert RedisStateStore(client).get("51999") is None


def test_redis_store_lists_conversation_ids():
    client = MagicMock()
    client.scan_iter.return_value = iter(["salubot:session:a", "salubot:session:b"])
    assert list(RedisStateStore(client).conversation_ids()) == ["a", "b"]


def test_build_state_store_defaults_to_memory():
    assert isinstance(build_state_store(url=""), MemoryStateStore)


class DictRedis:
    """Cliente mínimo en memoria con la interfaz de redis que usa el store."""

    def __init__(self):
        self.data = {}

    def setex(self, key, ttl, value):
        self.data[key] = value

    def get(self, key):
        return self.data.get(key)

    def delete(self, key):
        self.data.pop(key, None)

    def scan_iter(self, match=None):
        prefix = (match or "").rstrip("*")
        return iter([k for k in list(self.data) if k.startswith(prefix)])


def test_specialty_choice_survives_redis_reload(flow_services, channel):
    store = RedisStateStore(DictRedis())
    service = ConversationService(flow_services, store, channel)

    service.run_turn("51999", "Hola", contact_phone="51999")
    service.run_turn("51999", "2")
    saved = store.get("51999")
    assert saved["specialty_index"] == {"1": "Cardiología", "2": "Pediatría"}
    assert resolve_choice("2", saved["specialty_index"]) == "Pediatría"

    outbox = service.run_turn("51999", "2")
    assert outbox[0] == prompts.SPECIALTY_CHOSEN_TEXT.format(specialty="Pediatría")
    assert store.get("51999")["appointment_data"]["specialty"] == "Pediatría"
