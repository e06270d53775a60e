"""Tests for core.settings helpers."""

from __future__ import annotations

import json
from pathlib import Path

from core.settings import SETTINGS_VERSION, load_settings, merge_defaults, save_settings


def test_merge_defaults_includes_selection_blocks() -> None:
    merged = merge_defaults({})

    assert merged["session"]["page_size"] == 12
    assert merged["bulk_select"]["commit_policy"] == "page"
    remote = merged["remote"]
    assert remote["base_url"].startswith("https://api.artic.edu")
    assert remote["fields"][0] == "id"
    assert merged["api"]["host"] == "127.0.0.1"


def test_merge_defaults_keeps_user_values() -> None:
    merged = merge_defaults({"session": {"page_size": 25}, "remote": {"fields": ["id"]}})

    assert merged["session"]["page_size"] == 25
    assert merged["remote"]["fields"] == ["id"]
    assert merged["remote"]["retries"] == 2


def test_load_settings_upgrades_and_saves(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    legacy = {"bulk_select": {"commit_policy": "walk"}}
    path.write_text(json.dumps(legacy), encoding="utf-8")

    loaded = load_settings(tmp_path)
    assert loaded["bulk_select"]["commit_policy"] == "walk"
    assert loaded["bulk_select"]["max_target"] == 10000
    assert loaded["version"] == SETTINGS_VERSION

    save_settings(loaded, tmp_path)
    saved = json.loads(path.read_text(encoding="utf-8"))
    assert saved["session"]["page_size"] == 12
    assert saved["working_dir"] == str(tmp_path)


def test_unknown_keys_are_reported(tmp_path: Path) -> None:
    (tmp_path / "settings.json").write_text(
        json.dumps({"session": {"page_size": 12, "colour": "red"}, "gpu": {}}),
        encoding="utf-8",
    )

    load_settings(tmp_path)

    report = json.loads((tmp_path / "logs" / "settings_unknown.json").read_text(encoding="utf-8"))
    assert report["unknown"] == ["gpu", "session.colour"]
