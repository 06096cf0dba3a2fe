"""Dot-notation field access on nested dict/list data."""

from __future__ import annotations

from typing import Any


class _Missing:
    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


def get_path(obj: Any, path: str, default: Any = MISSING) -> Any:
    """Get value at `path` (e.g. "user.tags.0"); returns `default` when absent."""
    if not path:
        return obj
    current: Any = obj
    for key in path.split("."):
        if isinstance(current, dict):
            if key not in current:
                return default
            current = current[key]
        elif isinstance(current, list) and key.lstrip("-").isdigit():
            idx = int(key)
            if not -len(current) <= idx < len(current):
                return default
            current = current[idx]
        else:
            return default
    return current


def set_path(obj: dict[str, Any], path: str, value: Any) -> None:
    """Set value at nested path, creating intermediate objects as needed."""
    keys = path.split(".")
    current = obj

    for key in keys[:-1]:
        if key not in current or not isinstance(current[key], dict):
            current[key] = {}
        current = current[key]

    current[keys[-1]] = value
