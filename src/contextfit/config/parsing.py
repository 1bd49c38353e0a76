"""Parsing and normalization helpers for configuration values.

Provides boolean parsing and optional integer parsing used by the settings loader.
"""

from typing import Any, Optional


def _try_parse_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    normalized = str(value).strip().lower()
    if normalized in {"true", "1", "yes", "on"}:
        return True
    if normalized in {"false", "0", "no", "off"}:
        return False
    return None


def _parse_optional_int(value: Any) -> Optional[int]:
    """Parse an integer setting where "", "none" and "unlimited" mean None."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"expected an integer, got {value!r}")
    if isinstance(value, int):
        return value
    normalized = str(value).strip().lower()
    if normalized in {"", "none", "null", "unlimited"}:
        return None
    return int(normalized)
