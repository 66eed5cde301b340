"""Log level registry.

The hook forwards every level it knows about; there is no per-level
filtering. Applications that use levels beyond the standard set register
them here so that ``CloudWatchHook.levels()`` reports them too.

Example:
    from cwhook.core.levels import register_level

    register_level("AUDIT", priority=25)
"""

from __future__ import annotations

from typing import Final

_DEFAULT_LEVELS: Final[dict[str, int]] = {
    "TRACE": 5,
    "DEBUG": 10,
    "INFO": 20,
    "WARNING": 30,
    "ERROR": 40,
    "CRITICAL": 50,
}

_ALIASES: Final[dict[str, str]] = {
    "WARN": "WARNING",
    "FATAL": "CRITICAL",
    "PANIC": "CRITICAL",
}

_custom_levels: dict[str, int] = {}


def register_level(name: str, priority: int) -> None:
    """Register a custom log level.

    Args:
        name: Level name (e.g., "AUDIT"). Will be uppercased.
        priority: Numeric priority (0-99). Lower = more verbose.

    Raises:
        ValueError: If the name already exists or the priority is invalid
    """
    name_upper = name.strip().upper()
    if not name_upper:
        raise ValueError("Level name must not be empty")
    if (
        name_upper in _DEFAULT_LEVELS
        or name_upper in _ALIASES
        or name_upper in _custom_levels
    ):
        raise ValueError(f"Level '{name_upper}' already exists")
    if not 0 <= priority <= 99:
        raise ValueError(f"Priority must be 0-99, got {priority}")
    _custom_levels[name_upper] = priority


def canonical_level(level: str) -> str:
    """Uppercase a level name and resolve aliases (WARN -> WARNING)."""
    level_upper = level.strip().upper()
    return _ALIASES.get(level_upper, level_upper)


def get_level_priority(level: str) -> int:
    """Priority for a level name; unknown levels default to INFO (20)."""
    name = canonical_level(level)
    if name in _custom_levels:
        return _custom_levels[name]
    return _DEFAULT_LEVELS.get(name, 20)


def get_all_levels() -> dict[str, int]:
    """All registered levels (default + custom) mapped to priorities."""
    return {**_DEFAULT_LEVELS, **_custom_levels}


def _reset_registry() -> None:
    """Reset the registry to initial state (for testing only)."""
    _custom_levels.clear()
