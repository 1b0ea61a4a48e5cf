import json

import pytest

from agentlab.state import State


def test_set_and_merge_return_new_instances():
    state = State.new({"a": 1})
    updated = state.set("b", 2)
    merged = updated.merge({"c": 3, "a": 10})

    assert state.data == {"a": 1}
    assert updated.data == {"a": 1, "b": 2}
    assert list(merged.data) == ["a", "b", "c"]
    assert merged.get("a") == 10
    assert merged.get("missing", "fallback") == "fallback"


def test_require_and_get_str():
    state = State.new({"name": "ada", "count": 3, "empty": ""})

    assert state.require("name") == "ada"
    with pytest.raises(KeyError, match="token is required"):
        state.require("token")
    assert state.get_str("name") == "ada"
    assert state.get_str("count", "n/a") == "n/a"
    assert state.get_str("empty", "default") == "default"


def test_secrets_are_excluded_from_serialization():
    state = State.new({"user": "u1"}).secret("api_key", "hunter2")

    assert state.get_secret("api_key") == "hunter2"
    assert "hunter2" not in state.model_dump_json()
    assert "secrets" not in state.model_dump()
    assert "hunter2" not in repr(state)
    assert state.snapshot() == {"user": "u1"}

    restored = State.model_validate(json.loads(state.model_dump_json()))
    assert restored.get_secret("api_key") is None
    assert restored.data == {"user": "u1"}


def test_with_secrets_merges():
    state = State.new().secret("a", 1).with_secrets({"b": 2})
    assert state.get_secret("a") == 1
    assert state.get_secret("b") == 2
    assert state.with_secrets(None) is state


def test_snapshot_is_a_copy():
    state = State.new({"a": 1})
    snap = state.snapshot()
    snap["a"] = 2
    assert state.get("a") == 1
