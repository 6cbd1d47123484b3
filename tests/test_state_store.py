"""Cooldown state stores."""

import json
from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest
import redis

from traipulse.exceptions import StateStoreError
from traipulse.state_store import InMemoryStateStore, RedisStateStore, build_state_store


def test_in_memory_store_round_trip():
    store = InMemoryStateStore({"a": 1})

    store.set("b", 2.5)
    store.delete("a")
    store.delete("missing")

    assert store.get("a") is None
    assert store.get("b") == 2.5


def test_in_memory_set_if_absent_honours_lease():
    store = InMemoryStateStore()

    with patch("traipulse.state_store.time.monotonic", return_value=100.0):
        assert store.set_if_absent("claim", True, timedelta(seconds=5))
        assert not store.set_if_absent("claim", True, timedelta(seconds=5))
    with patch("traipulse.state_store.time.monotonic", return_value=106.0):
        assert store.get("claim") is None
        assert store.set_if_absent("claim", True)

    store.delete("claim")
    assert store.set_if_absent("claim", True)


def test_redis_store_namespaces_and_encodes():
    client = MagicMock()
    client.get.return_value = json.dumps(1773127800.0)
    store = RedisStateStore(client=client)

    store.set("cooldown", 1773127800.0)

    client.set.assert_called_once_with("traipulse:cooldown", "1773127800.0")
    assert store.get("cooldown") == 1773127800.0
    client.get.assert_called_once_with("traipulse:cooldown")


def test_redis_store_set_if_absent_is_atomic_set_nx():
    client = MagicMock()
    client.set.side_effect = [True, None]
    store = RedisStateStore(client=client)

    assert store.set_if_absent("claim", True, timedelta(seconds=5))
    assert not store.set_if_absent("claim", True, timedelta(seconds=5))
    client.set.assert_called_with("traipulse:claim", "true", nx=True, px=5000)


def test_redis_store_set_if_absent_wraps_errors():
    client = MagicMock()
    client.set.side_effect = redis.ConnectionError("refused")

    with pytest.raises(StateStoreError) as excinfo:
        RedisStateStore(client=client).set_if_absent("claim", True)
    assert excinfo.value.details == {"operation": "set_if_absent", "key": "claim"}


def test_redis_store_missing_key():
    client = MagicMock()
    client.get.return_value = None

    assert RedisStateStore(client=client).get("cooldown") is None


def test_redis_store_wraps_connection_errors():
    client = MagicMock()
    client.get.side_effect = redis.ConnectionError("refused")
    client.set.side_effect = redis.ConnectionError("refused")
    store = RedisStateStore(client=client, namespace="test")

    with pytest.raises(StateStoreError) as excinfo:
        store.get("cooldown")
    assert excinfo.value.details == {"operation": "get", "key": "cooldown"}
    assert excinfo.value.error_code == "STATE_STORE_UNAVAILABLE"

    with pytest.raises(StateStoreError):
        store.set("cooldown", 1.0)


def test_redis_store_rejects_corrupt_value():
    client = MagicMock()
    client.get.return_value = "{not json"

    with pytest.raises(StateStoreError):
        RedisStateStore(client=client).get("cooldown")


def test_build_state_store_prefers_redis():
    client = MagicMock()
    with patch("traipulse.state_store.redis.from_url", return_value=client):
        store = build_state_store("redis://cache:6379/0")

    assert isinstance(store, RedisStateStore)
    assert store.client is client
    client.ping.assert_called_once()


def test_build_state_store_falls_back_in_process():
    client = MagicMock()
    client.ping.side_effect = redis.ConnectionError("refused")
    with patch("traipulse.state_store.redis.from_url", return_value=client):
        store = build_state_store("redis://cache:6379/0")

    assert isinstance(store, InMemoryStateStore)
