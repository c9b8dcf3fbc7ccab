from __future__ import annotations

from typing import Any


class ValidationError(ValueError):
    """400-level input problem."""


_TRUE_TEXT = {"1", "true", "yes", "y", "on"}
_FALSE_TEXT = {"0", "false", "no", "n", "off", ""}


def parse_bool(value: Any, *, field: str, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_TEXT:
            return True
        if lowered in _FALSE_TEXT:
            return False
    raise ValidationError(f"{field} must be a boolean")


def parse_int(
    value: Any,
    *,
    field: str,
    default: int | None = None,
    min_value: int | None = None,
    max_value: int | None = None,
) -> int | None:
    """
    Strict integer parsing for query strings and JSON bodies.

    Rejects booleans, decimals and scientific notation.
    """
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped.lstrip("-").isdigit():
            raise ValidationError(f"{field} must be an integer")
        parsed = int(stripped)
    else:
        raise ValidationError(f"{field} must be an integer")

    if min_value is not None and parsed < min_value:
        raise ValidationError(f"{field} must be >= {min_value}")
    if max_value is not None and parsed > max_value:
        raise ValidationError(f"{field} must be <= {max_value}")
    return parsed


def require_list(value: Any, *, field: str) -> list:
    """JSON array field; missing becomes []."""
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValidationError(f"{field} must be a list")
    return value
