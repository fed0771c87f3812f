"""Access control result types.

An access rule evaluates to exactly one of:
- Allow: unconditional access
- Deny: no access
- FilterClause: access limited to items matching a where-clause
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union


class Operation(Enum):
    """The operation an access rule is evaluated for."""

    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"

    @property
    def request_type(self) -> str:
        return "query" if self is Operation.READ else "mutation"


@dataclass(frozen=True)
class Allow:
    allowed = True


@dataclass(frozen=True)
class Deny:
    allowed = False


@dataclass(frozen=True)
class FilterClause:
    """Access limited to items matching ``where``."""

    where: dict[str, Any] = field(default_factory=dict)
    allowed = True


AccessResult = Union[Allow, Deny, FilterClause]

ALLOW = Allow()
DENY = Deny()


def to_access_result(value: Any) -> AccessResult:
    """Convert a raw rule outcome (bool or where-clause) to an AccessResult."""
    if value is True:
        return ALLOW
    if value is False:
        return DENY
    if isinstance(value, dict):
        return FilterClause(where=dict(value))
    raise TypeError(
        f"Access rules must resolve to a boolean or a where-clause dict, got {value!r}"
    )
