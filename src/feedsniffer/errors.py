from __future__ import annotations

from typing import Any


class ArgumentError(ValueError, TypeError):
    """A public operation received a missing, empty or out-of-range argument."""


class FeedFormatError(ValueError):
    """Text did not match any accepted date pattern, or XML failed to parse."""

    def __init__(self, message: str, value: Any = None) -> None:
        super().__init__(message)
        self.value = value


def require(value: Any, name: str) -> Any:
    if value is None:
        raise ArgumentError(f"'{name}' must not be None")
    return value


def require_text(value: Any, name: str) -> Any:
    """Reject None and empty strings/bytes, return the value unchanged."""
    if value is None:
        raise ArgumentError(f"'{name}' must not be None")
    if isinstance(value, (str, bytes)) and not value:
        raise ArgumentError(f"'{name}' must not be empty")
    return value
