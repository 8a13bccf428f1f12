"""Configuration file names and shared coercion helpers."""

from __future__ import annotations

from typing import Final

TRUTHY_STRINGS: Final[frozenset[str]] = frozenset({"1", "true", "yes", "on"})
FALSY_STRINGS: Final[frozenset[str]] = frozenset({"0", "false", "no", "off"})

CONFIG_BASENAME: Final = "config"
DEFAULT_CONFIG_FILENAME: Final = f"{CONFIG_BASENAME}.toml"
LOCAL_CONFIG_FILENAME: Final = f"{CONFIG_BASENAME}.local.toml"

ENV_PREFIX: Final = "ESSREADY"

HTTP_DEFAULT_PORTS: Final[dict[str, int]] = {"http": 80, "https": 443}


def coerce_bool(value: object | None, *, default: bool = False) -> bool:
    """Convert ``"yes"``/``"off"``-style markers into booleans.

    Unknown strings and ``None`` fall back to ``default``.
    """

    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in TRUTHY_STRINGS:
            return True
        if normalized in FALSY_STRINGS:
            return False
        return default
    if isinstance(value, (int, float)):
        return bool(value)
    return default


__all__ = [
    "TRUTHY_STRINGS",
    "FALSY_STRINGS",
    "CONFIG_BASENAME",
    "DEFAULT_CONFIG_FILENAME",
    "LOCAL_CONFIG_FILENAME",
    "ENV_PREFIX",
    "HTTP_DEFAULT_PORTS",
    "coerce_bool",
]
