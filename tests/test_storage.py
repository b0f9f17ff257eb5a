"""Tests for the ``SessionStorage`` and ``JSONStorage`` tiers."""

import json
from pathlib import Path

import pytest

from notice_banner.core.storage import JSONStorage, SessionStorage


def test_user_scoped_keys_are_namespaced(tmp_path: Path) -> None:
    """Values stored for one viewer are invisible to another."""
    storage = JSONStorage(tmp_path / "state.json")
    storage.set_user_id("alice")
    storage.set("HiddenAlerts", ["1"], user_scoped=True)

    storage.set_user_id("bob")
    assert storage.get("HiddenAlerts", user_scoped=True, default=[]) == []

    storage.set_user_id("alice")
    assert storage.get("HiddenAlerts", user_scoped=True) == ["1"]


def test_full_key_format() -> None:
    """Keys carry the storage prefix and, when scoped, the viewer id."""
    storage = SessionStorage()
    assert storage.full_key("X") == "NoticeBanner_X"
    storage.set_user_id("u1")
    assert storage.full_key("X", user_scoped=True) == "NoticeBanner_u1_X"


def test_json_storage_persists_across_instances(tmp_path: Path) -> None:
    """A fresh instance reads what the previous one wrote."""
    path = tmp_path / "state.json"
    first = JSONStorage(path)
    first.set("PreferredLanguage", "fr-fr")

    second = JSONStorage(path)
    assert second.get("PreferredLanguage") == "fr-fr"
    raw = json.loads(path.read_text(encoding="utf-8"))
    assert "timestamp" in raw["NoticeBanner_PreferredLanguage"]


def test_remove(tmp_path: Path) -> None:
    """Removed keys fall back to the default."""
    storage = JSONStorage(tmp_path / "state.json")
    storage.set("k", 1)
    storage.remove("k")
    assert storage.get("k", default="gone") == "gone"
    assert JSONStorage(tmp_path / "state.json").get("k") is None


def test_failed_write_leaves_memory_unchanged(tmp_path: Path) -> None:
    """Unserialisable values raise and are not kept in memory."""
    storage = JSONStorage(tmp_path / "state.json")
    storage.set("k", "old")
    with pytest.raises(TypeError):
        storage.set("k", object())
    assert storage.get("k") == "old"


def test_session_storage_rejects_unserialisable_values() -> None:
    """The in-memory tier fails the same way as the file tier."""
    storage = SessionStorage()
    with pytest.raises(TypeError):
        storage.set("k", {1, 2})
    storage.set("k", [1, 2])
    storage.clear()
    assert storage.get("k") is None


def test_corrupt_state_file_starts_empty(tmp_path: Path, caplog) -> None:
    """A truncated file is logged and replaced on the next write."""
    path = tmp_path / "state.json"
    path.write_text('{"NoticeBanner_u_HiddenAlerts": {"data": ["1"]', encoding="utf-8")

    storage = JSONStorage(path)
    assert storage.get("HiddenAlerts", default=[]) == []
    assert "Could not read state file" in caplog.text

    storage.set("k", "v")
    assert JSONStorage(path).get("k") == "v"


def test_non_object_state_file_starts_empty(tmp_path: Path) -> None:
    """A file holding a JSON list is ignored."""
    path = tmp_path / "state.json"
    path.write_text("[1, 2]", encoding="utf-8")
    assert JSONStorage(path).get("k") is None
