"""Where-clause grammar shared by the reference adapters.

    {"AND": [...], "OR": [...]}
    {"id": x, "id_not": x, "id_in": [...], "id_not_in": [...]}
    {"<field>": x, "<field>_not": x, "<field>_in": [...], "<field>_not_in": [...],
     "<field>_lt": x, "<field>_lte": x, "<field>_gt": x, "<field>_gte": x,
     "<field>_contains": s, "<field>_not_contains": s,
     "<field>_starts_with": s, "<field>_ends_with": s, "<field>_i": s}

Keys inside one clause are ANDed together. For to-many relationship values
(stored as lists) ``_contains`` tests membership.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable

# Longest suffixes first so "_not_in" wins over "_in"
SUFFIXES = (
    "_not_contains",
    "_starts_with",
    "_ends_with",
    "_contains",
    "_not_in",
    "_not",
    "_lte",
    "_gte",
    "_in",
    "_lt",
    "_gt",
    "_i",
)

OPERATORS = ("eq",) + tuple(s[1:] for s in SUFFIXES)


def parse_key(key: str, field_paths: Iterable[str]) -> tuple[str, str]:
    """Split a where key into (field path, operator).

    Raises:
        ValueError: If the key names no known field
    """
    paths = set(field_paths) | {"id"}
    if key in paths:
        return key, "eq"
    for suffix in SUFFIXES:
        if key.endswith(suffix) and key[: -len(suffix)] in paths:
            return key[: -len(suffix)], suffix[1:]
    raise ValueError(f"Unsupported where condition '{key}'")


def _ordered(op: Callable[[Any, Any], bool]) -> Callable[[Any, Any], bool]:
    def compare(actual: Any, expected: Any) -> bool:
        if actual is None or expected is None:
            return False
        try:
            return op(actual, expected)
        except TypeError:
            return False

    return compare


def _contains(actual: Any, expected: Any) -> bool:
    if isinstance(actual, list):
        return expected in actual
    if isinstance(actual, str) and isinstance(expected, str):
        return expected in actual
    return False


def _text(op: Callable[[str, str], bool]) -> Callable[[Any, Any], bool]:
    def compare(actual: Any, expected: Any) -> bool:
        return isinstance(actual, str) and isinstance(expected, str) and op(actual, expected)

    return compare


MATCHERS: dict[str, Callable[[Any, Any], bool]] = {
    "eq": lambda a, e: a == e,
    "not": lambda a, e: a != e,
    "in": lambda a, e: a in (e or []),
    "not_in": lambda a, e: a not in (e or []),
    "lt": _ordered(lambda a, e: a < e),
    "lte": _ordered(lambda a, e: a <= e),
    "gt": _ordered(lambda a, e: a > e),
    "gte": _ordered(lambda a, e: a >= e),
    "contains": _contains,
    "not_contains": lambda a, e: not _contains(a, e),
    "starts_with": _text(lambda a, e: a.startswith(e)),
    "ends_with": _text(lambda a, e: a.endswith(e)),
    "i": _text(lambda a, e: a.lower() == e.lower()),
}


def matches(item: dict[str, Any], where: dict[str, Any] | None, field_paths: Iterable[str]) -> bool:
    """True if item satisfies every condition in where."""
    if not where:
        return True
    paths = list(field_paths)
    for key, expected in where.items():
        if key == "AND":
            if not all(matches(item, clause, paths) for clause in expected):
                return False
        elif key == "OR":
            if not any(matches(item, clause, paths) for clause in expected):
                return False
        else:
            path, op = parse_key(key, paths)
            if not MATCHERS[op](item.get(path), expected):
                return False
    return True


def parse_order_by(order_by: str) -> tuple[str, bool]:
    """'name_DESC' -> ('name', True)."""
    path, _, direction = order_by.rpartition("_")
    if not path or direction.upper() not in ("ASC", "DESC"):
        return order_by, False
    return path, direction.upper() == "DESC"
