"""Parsing and evaluation of list- and field-level access rules.

A rule may be declared as:
- a boolean (static allow/deny)
- a where-clause dict (declarative filter; list rules only, never for create)
- a callable, sync or async, receiving an AccessArgs and returning one of the above

Rules can be given once for all operations or per operation:

    access=True
    access={"read": True, "create": is_admin, "update": {"author": "u1"}}
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import Any, Callable, Union

from listforge.access.types import AccessResult, Operation, to_access_result

LIST_OPERATIONS = (Operation.CREATE, Operation.READ, Operation.UPDATE, Operation.DELETE)
OPERATION_KEYS = {op.value for op in LIST_OPERATIONS}

Rule = Union[bool, dict, Callable[..., Any]]


@dataclass(frozen=True)
class Authentication:
    """The authenticated item (if any) making the request."""

    item: dict[str, Any] | None = None
    list_key: str | None = None


@dataclass(frozen=True)
class AccessArgs:
    """Arguments passed to a callable access rule."""

    authentication: Authentication
    list_key: str
    operation: Operation
    field_path: str | None = None
    existing_item: dict[str, Any] | None = None


def _is_per_operation(access: Any) -> bool:
    return (
        isinstance(access, dict)
        and bool(access)
        and set(access.keys()) <= OPERATION_KEYS
    )


def parse_list_access(
    list_key: str,
    access: Any,
    default_access: Rule = True,
) -> dict[Operation, Rule]:
    """Normalize a list's access config into one rule per operation.

    Raises:
        ValueError: If the config contains an unsupported rule type
    """
    if access is None:
        access = default_access

    if _is_per_operation(access):
        rules = {op: access.get(op.value, default_access) for op in LIST_OPERATIONS}
    else:
        rules = {op: access for op in LIST_OPERATIONS}

    for op, rule in rules.items():
        if isinstance(rule, bool) or callable(rule):
            continue
        if isinstance(rule, dict):
            if op is Operation.CREATE:
                raise ValueError(
                    f"List '{list_key}': declarative access is not supported for create"
                )
            continue
        raise ValueError(
            f"List '{list_key}': access for '{op.value}' must be a boolean, "
            f"a where-clause dict or a callable, got {type(rule).__name__}"
        )
    return rules


def parse_field_access(
    list_key: str,
    field_path: str,
    access: Any,
    default_access: Rule = True,
) -> dict[Operation, Rule]:
    """Normalize a field's access config into one rule per operation.

    Field rules cannot be declarative filters.
    """
    if access is None:
        access = default_access

    if _is_per_operation(access):
        rules = {op: access.get(op.value, default_access) for op in LIST_OPERATIONS}
    else:
        rules = {op: access for op in LIST_OPERATIONS}

    for op, rule in rules.items():
        if not (isinstance(rule, bool) or callable(rule)):
            raise ValueError(
                f"Field '{list_key}.{field_path}': access for '{op.value}' must be "
                f"a boolean or a callable, got {type(rule).__name__}"
            )
    return rules


async def _call_rule(rule: Callable[..., Any], args: AccessArgs) -> Any:
    result = rule(args)
    if inspect.isawaitable(result):
        result = await result
    return result


async def evaluate_list_access(
    rule: Rule,
    authentication: Authentication,
    list_key: str,
    operation: Operation,
) -> AccessResult:
    """Evaluate a single list-level rule for one request."""
    if callable(rule):
        args = AccessArgs(
            authentication=authentication,
            list_key=list_key,
            operation=operation,
        )
        value = await _call_rule(rule, args)
    else:
        value = rule

    if isinstance(value, dict) and operation is Operation.CREATE:
        raise TypeError(
            f"List '{list_key}': create access rules must return a boolean"
        )
    return to_access_result(value)


async def evaluate_field_access(
    rule: Rule,
    authentication: Authentication,
    list_key: str,
    field_path: str,
    operation: Operation,
    existing_item: dict[str, Any] | None = None,
) -> bool:
    """Evaluate a single field-level rule for one request."""
    if not callable(rule):
        return bool(rule)

    args = AccessArgs(
        authentication=authentication,
        list_key=list_key,
        operation=operation,
        field_path=field_path,
        existing_item=existing_item,
    )
    value = await _call_rule(rule, args)
    if not isinstance(value, bool):
        raise TypeError(
            f"Field '{list_key}.{field_path}': access rules must return a boolean, "
            f"got {value!r}"
        )
    return value
