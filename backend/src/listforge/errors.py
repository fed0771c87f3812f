"""Error types raised by the listforge engine.

Every engine error carries two payloads:
- data: safe to return to the caller
- internal_data: diagnostics for logs only, never sent over the wire
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ValidationError:
    """A single validation failure collected during a validation phase.

    Attributes:
        message: Human-readable message returned to the caller
        public_data: Extra structured data safe to return to the caller
        internal_data: Diagnostic data for logs only
        field: Field path this error relates to, or None for list-level errors
    """

    message: str
    public_data: dict[str, Any] = field(default_factory=dict)
    internal_data: dict[str, Any] = field(default_factory=dict)
    field: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "field": self.field,
            "data": self.public_data,
        }


class ListforgeError(Exception):
    """Base class for all engine errors."""

    default_message = "An error occurred"

    def __init__(
        self,
        message: str | None = None,
        data: dict[str, Any] | None = None,
        internal_data: dict[str, Any] | None = None,
    ):
        self.message = message or self.default_message
        self.data = data or {}
        self.internal_data = internal_data or {}
        super().__init__(self.message)

    @property
    def kind(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict[str, Any]:
        """Public representation handed to the transport layer."""
        return {
            "kind": self.kind,
            "message": self.message,
            "data": self.data,
        }


class AccessDeniedError(ListforgeError):
    """Raised when a list or field access check fails.

    Also raised when an access-checked lookup finds nothing, so that callers
    cannot tell a missing record from one they are not allowed to see.
    """

    default_message = "You do not have access to this resource"


class ValidationFailureError(ListforgeError):
    """Raised once per validation phase with every collected failure."""

    default_message = "You attempted to perform an invalid mutation"

    def __init__(
        self,
        errors: list[ValidationError],
        list_key: str,
        operation: str,
        original_input: dict[str, Any] | None = None,
    ):
        self.errors = list(errors)
        super().__init__(
            data={
                "messages": [e.message for e in self.errors],
                "errors": [e.to_dict() for e in self.errors],
                "listKey": list_key,
                "operation": operation,
            },
            internal_data={
                "errors": [
                    {"field": e.field, **e.internal_data} for e in self.errors
                ],
                "data": original_input,
            },
        )

    @property
    def messages(self) -> list[str]:
        return [e.message for e in self.errors]


class StorageError(ListforgeError):
    """Raised by storage adapters when the backend fails."""

    default_message = "Storage operation failed"
