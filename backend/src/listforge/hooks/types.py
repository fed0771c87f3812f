"""Hook system types for listforge.

Defines the core data structures for the lifecycle hook system:
- HookPhase: the named lifecycle steps
- Hooks: a fixed-shape record of optional callables, one per phase
- HookContext: runtime state passed to every hook function
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Union

from listforge.access.types import Operation
from listforge.errors import ValidationError

if TYPE_CHECKING:
    from listforge.access.context import RequestContext
    from listforge.hooks.actions import HookActions

# Hook function signature: (HookContext) -> value | Awaitable[value]
HookFn = Callable[["HookContext"], Union[Any, Awaitable[Any]]]


class HookPhase(Enum):
    """Lifecycle phases, in the order a write passes through them."""

    RESOLVE_INPUT = "resolve_input"
    VALIDATE_INPUT = "validate_input"
    VALIDATE_DELETE = "validate_delete"
    BEFORE_CHANGE = "before_change"
    BEFORE_DELETE = "before_delete"
    AFTER_CHANGE = "after_change"
    AFTER_DELETE = "after_delete"

    @property
    def is_validation(self) -> bool:
        return self in (HookPhase.VALIDATE_INPUT, HookPhase.VALIDATE_DELETE)

    @classmethod
    def from_name(cls, name: str) -> "HookPhase":
        """Accept both snake_case and camelCase phase names."""
        snake = re.sub(r"([A-Z])", r"_\1", name).lower()
        try:
            return cls(snake)
        except ValueError:
            raise ValueError(
                f"Unknown hook phase '{name}'. "
                f"Expected one of: {', '.join(p.value for p in cls)}"
            ) from None


@dataclass(frozen=True)
class Hooks:
    """User-supplied hooks for a list or a field, one optional callable per phase."""

    resolve_input: HookFn | None = None
    validate_input: HookFn | None = None
    validate_delete: HookFn | None = None
    before_change: HookFn | None = None
    before_delete: HookFn | None = None
    after_change: HookFn | None = None
    after_delete: HookFn | None = None

    def get(self, phase: HookPhase) -> HookFn | None:
        return getattr(self, phase.value)

    def __bool__(self) -> bool:
        return any(getattr(self, f.name) is not None for f in fields(self))

    @classmethod
    def from_dict(cls, data: dict[str, HookFn] | None) -> "Hooks":
        """Create Hooks from a {phase name: callable} mapping."""
        if not data:
            return cls()
        resolved: dict[str, HookFn] = {}
        for name, fn in data.items():
            phase = HookPhase.from_name(name)
            if not callable(fn):
                raise ValueError(f"Hook '{name}' must be callable, got {fn!r}")
            resolved[phase.value] = fn
        return cls(**resolved)


@dataclass
class HookContext:
    """Runtime context passed to every hook function.

    Attributes:
        list_key: Key of the list being written
        operation: The current operation (create, update, delete)
        context: The request context (caller identity, access lookups)
        actions: Secondary query helpers bound to the request
        resolved_data: Working data for create/update phases
        existing_item: Stored item before the write (update/delete)
        original_input: Input exactly as received from the caller
        updated_item: Stored item after the write (after_change only)
        field_path: Set when a field-level hook is running
    """

    list_key: str
    operation: Operation
    context: "RequestContext"
    actions: "HookActions"
    resolved_data: dict[str, Any] | None = None
    existing_item: dict[str, Any] | None = None
    original_input: dict[str, Any] | None = None
    updated_item: dict[str, Any] | None = None
    field_path: str | None = None
    validation_errors: list[ValidationError] | None = field(default=None, repr=False)

    def for_field(self, path: str) -> "HookContext":
        return replace(self, field_path=path)

    def add_validation_error(
        self,
        message: str,
        data: dict[str, Any] | None = None,
        internal_data: dict[str, Any] | None = None,
    ) -> None:
        """Record a validation failure; the phase fails once all hooks have run."""
        if self.validation_errors is None:
            raise RuntimeError(
                "add_validation_error() is only available during validation phases"
            )
        self.validation_errors.append(
            ValidationError(
                message=message,
                public_data=data or {},
                internal_data=internal_data or {},
                field=self.field_path,
            )
        )
