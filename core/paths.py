from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

__all__ = [
    "ensure_working_dir_structure",
    "get_default_settings_paths",
    "get_exports_dir",
    "get_logs_dir",
    "resolve_working_dir",
]

_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_HOME_ENV = "PAGESELECT_HOME"


def _expand_path(value: str) -> Path:
    expanded = os.path.expandvars(os.path.expanduser(value))
    return Path(expanded).resolve()


def _ensure_writable_dir(path: Path) -> bool:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError:
        return False
    test_file = path / f".write_test_{os.getpid()}"
    try:
        with open(test_file, "w", encoding="utf-8") as handle:
            handle.write("ok")
        test_file.unlink(missing_ok=True)
        return True
    except OSError:
        try:
            if test_file.exists():
                test_file.unlink()
        except OSError:  # pragma: no cover - cleanup only
            pass
        return False


def _read_settings(path: Path) -> Optional[Dict[str, Any]]:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
    except (OSError, ValueError):
        return None
    return data if isinstance(data, dict) else None


def resolve_working_dir() -> Path:
    """Resolve the working directory holding settings, logs and exports."""

    env_home = os.environ.get(_HOME_ENV)
    if env_home:
        env_path = _expand_path(env_home)
        if _ensure_writable_dir(env_path):
            return env_path

    # A settings.json next to the sources may point somewhere else.
    project_settings = _read_settings(_PROJECT_ROOT / "settings.json")
    if project_settings:
        working_dir_value = project_settings.get("working_dir")
        if isinstance(working_dir_value, str) and working_dir_value.strip():
            candidate = _expand_path(working_dir_value)
            if _ensure_writable_dir(candidate):
                return candidate

    fallback = Path.home() / ".pageselect"
    fallback.mkdir(parents=True, exist_ok=True)
    return fallback


def get_logs_dir(working_dir: Path) -> Path:
    return working_dir / "logs"


def get_exports_dir(working_dir: Path) -> Path:
    return working_dir / "exports"


def ensure_working_dir_structure(working_dir: Path) -> None:
    for directory in (
        working_dir,
        get_logs_dir(working_dir),
        get_exports_dir(working_dir),
    ):
        directory.mkdir(parents=True, exist_ok=True)


def get_default_settings_paths(working_dir: Path) -> list[Path]:
    """Return the search order for settings.json files."""

    return [working_dir / "settings.json", _PROJECT_ROOT / "settings.json"]
