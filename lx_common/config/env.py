"""Environment variable parsing utilities."""

from __future__ import annotations

import os


def parse_bool_env(value: str | None) -> bool | None:
    """Parse a boolean from an environment variable string.

    Returns True for "1", "true", "yes", "on" (case-insensitive).
    Returns None if value is None.
    """
    if value is None:
        return None
    return value.strip().lower() in {"1", "true", "yes", "on"}


def user_prefix() -> str:
    """Return ``"<user>@"`` from ``$USER``, or an empty string when unset."""
    user = os.environ.get("USER")
    if not user:
        return ""
    return f"{user}@"
