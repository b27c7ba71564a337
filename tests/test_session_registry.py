"""Tests for the session registry and lifecycle rules."""
from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from claude_relay.engine.lifecycle import validate_transition
from claude_relay.engine.models import SessionStatus
from claude_relay.engine.session_registry import SessionEntry, SessionRegistry


def _entry(session_id: str = "pending_1", **kwargs) -> SessionEntry:
    return SessionEntry(session_id=session_id, process=MagicMock(), **kwargs)


def test_register_get_remove():
    registry = SessionRegistry()
    entry = _entry("a")
    registry.register("a", entry)

    assert registry.get("a") is entry
    assert "a" in registry
    assert len(registry) == 1
    assert registry.remove("a") is entry
    assert registry.get("a") is None
    assert registry.remove("a") is None


def test_rekey_leaves_single_entry_under_real_id():
    registry = SessionRegistry()
    entry = _entry("pending_1")
    registry.register("pending_1", entry)

    assert registry.rekey("pending_1", "real-id") is True
    assert registry.keys() == ["real-id"]
    assert registry.get("pending_1") is None
    assert registry.get("real-id") is entry
    assert entry.session_id == "real-id"


def test_remove_expected_leaves_newer_entry():
    registry = SessionRegistry()
    older, newer = _entry("s1"), _entry("s1")
    registry.register("s1", older)
    registry.register("s1", newer)

    assert registry.remove("s1", expected=older) is None
    assert registry.get("s1") is newer
    assert registry.remove("s1", expected=newer) is newer
    assert registry.keys() == []


def test_rekey_onto_registered_id_warns(caplog):
    registry = SessionRegistry()
    running, fresh = _entry("real-id"), _entry("pending_1")
    registry.register("real-id", running)
    registry.register("pending_1", fresh)

    with caplog.at_level("WARNING"):
        assert registry.rekey("pending_1", "real-id") is True

    assert "Overwriting registry entry for session real-id" in caplog.text
    assert registry.get("real-id") is fresh
    assert registry.keys() == ["real-id"]


def test_rekey_missing_entry_is_noop():
    registry = SessionRegistry()
    assert registry.rekey("pending_1", "real-id") is False
    assert registry.keys() == []


def test_is_active_tracks_status():
    registry = SessionRegistry()
    entry = _entry("a")
    registry.register("a", entry)
    assert registry.is_active("a") is False  # still pending

    entry.transition(SessionStatus.ACTIVE)
    assert registry.is_active("a") is True

    entry.transition(SessionStatus.ABORTED)
    assert registry.is_active("a") is False
    assert registry.is_active("unknown") is False


def test_keys_is_a_snapshot():
    registry = SessionRegistry()
    registry.register("a", _entry("a"))
    registry.register("b", _entry("b"))
    keys = registry.keys()
    registry.remove("a")
    assert keys == ["a", "b"]
    assert list(registry) == ["b"]


def test_independent_registries():
    first, second = SessionRegistry(), SessionRegistry()
    first.register("a", _entry("a"))
    assert second.keys() == []


def test_release_runs_cleanup_once():
    entry = _entry("a", temp_paths=["/tmp/x.png"], temp_dir="/tmp/dir")
    with patch(
        "claude_relay.engine.session_registry.cleanup_temp_files"
    ) as cleanup:
        assert entry.release() is True
        assert entry.release() is False
    cleanup.assert_called_once_with(["/tmp/x.png"], "/tmp/dir")
    assert entry.released is True


@pytest.mark.parametrize("current,target", [
    (SessionStatus.PENDING, SessionStatus.ACTIVE),
    (SessionStatus.PENDING, SessionStatus.ABORTED),
    (SessionStatus.ACTIVE, SessionStatus.COMPLETED),
    (SessionStatus.ACTIVE, SessionStatus.ABORTED),
    (SessionStatus.ACTIVE, SessionStatus.ERRORED),
])
def test_valid_transitions(current, target):
    validate_transition(current, target)


@pytest.mark.parametrize("current,target", [
    (SessionStatus.PENDING, SessionStatus.COMPLETED),
    (SessionStatus.COMPLETED, SessionStatus.ACTIVE),
    (SessionStatus.ABORTED, SessionStatus.COMPLETED),
    (SessionStatus.ERRORED, SessionStatus.ABORTED),
])
def test_invalid_transitions(current, target):
    with pytest.raises(ValueError, match="Invalid state transition"):
        validate_transition(current, target)
