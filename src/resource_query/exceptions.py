"""
Exception hierarchy for resource-query.

Request-data problems (unknown fields, bad sort keys, ...) are never raised:
they are accumulated on :class:`~resource_query.model.RequestModel.errors`.
The exceptions below signal caller configuration errors only.

All exceptions inherit from ``ResourceQueryError`` and provide
``to_dict()`` for API-friendly error responses.
"""

from __future__ import annotations

from difflib import get_close_matches
from typing import Any


class ResourceQueryError(Exception):
    """Root exception for the resource-query package."""

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.__class__.__name__,
            "message": str(self),
        }


class ResourceNotRegisteredError(ResourceQueryError):
    """
    The metadata provider cannot resolve the main resource type.

    Provides fuzzy-matched suggestions for likely intended type names.
    """

    def __init__(
        self,
        type_name: str,
        known_types: list[str] | None = None,
        reason: str | None = None,
    ) -> None:
        self.type_name = type_name
        self.known_types = sorted(known_types or [])
        self.suggestions = get_close_matches(
            type_name, self.known_types, n=3, cutoff=0.6
        )

        message = f"Resource type '{type_name}' is not registered."
        if reason:
            message = f"Resource type '{type_name}' cannot be queried: {reason}."
        if self.suggestions:
            message += f" Did you mean: {', '.join(self.suggestions)}?"
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "RESOURCE_NOT_REGISTERED",
            "type": self.type_name,
            "suggestions": self.suggestions,
        }


class UnsupportedActionError(ResourceQueryError):
    """Raised when the requested API action is neither index nor show."""

    def __init__(self, action: object) -> None:
        self.action = action
        super().__init__(f"Unsupported API action: {action!r}")


class MissingIdentifierError(ResourceQueryError):
    """Raised when a show conversion is requested without an identifier."""

    def __init__(self, type_name: str) -> None:
        self.type_name = type_name
        super().__init__(f"The show action on '{type_name}' requires an id")

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "MISSING_IDENTIFIER",
            "type": self.type_name,
        }


def suggestion_hint(name: str, candidates: list[str] | tuple[str, ...]) -> str:
    """Return a ``" Did you mean: ..."`` suffix, or an empty string."""
    matches = get_close_matches(name, list(candidates), n=3, cutoff=0.6)
    if not matches:
        return ""
    return f" Did you mean: {', '.join(matches)}?"
