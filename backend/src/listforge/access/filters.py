"""Combinators applying AccessResults to storage queries and id sets."""

from typing import Any, Iterable

from listforge.access.types import AccessResult, Allow, Deny, FilterClause

ID_CONSTRAINT_KEYS = ("id", "id_not", "id_in", "id_not_in")


def unique(values: Iterable[Any]) -> list[Any]:
    """De-duplicate while preserving first-seen order."""
    seen: set[Any] = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


def intersection(left: Iterable[Any], right: Iterable[Any]) -> list[Any]:
    right_set = set(right)
    return [v for v in unique(left) if v in right_set]


def merge_where_clause(args: dict[str, Any], access: AccessResult) -> dict[str, Any]:
    """AND a FilterClause into the ``where`` of a storage query.

    Allow leaves the query untouched. Deny never reaches here; callers
    raise before building a query.
    """
    if isinstance(access, Deny):
        raise ValueError("Cannot merge a Deny access result into a query")
    if isinstance(access, Allow) or not access.where:
        return dict(args)

    where = args.get("where") or {}
    if where:
        merged = {"AND": [where, access.where]}
    else:
        merged = dict(access.where)
    return {**args, "where": merged}


def excludes_id(access: AccessResult, item_id: Any) -> bool:
    """True if the filter's explicit id constraints provably exclude item_id."""
    if not isinstance(access, FilterClause):
        return isinstance(access, Deny)

    where = access.where
    if "id" in where and where["id"] != item_id:
        return True
    if "id_not" in where and where["id_not"] == item_id:
        return True
    if "id_in" in where and item_id not in where["id_in"]:
        return True
    if "id_not_in" in where and item_id in where["id_not_in"]:
        return True
    return False


def narrow_ids(access: FilterClause, ids: list[Any]) -> tuple[dict[str, Any], bool]:
    """Intersect requested ids with the filter's allowed/disallowed id sets.

    Returns:
        Tuple of (where clause for storage, is_empty). When is_empty is True
        no storage query is needed: nothing requested can be accessible.
    """
    where = access.where
    requested = unique(ids)
    id_filters: dict[str, Any] = {}

    if where.get("id") is not None or where.get("id_in") is not None:
        allowed = unique(
            v for v in [where.get("id"), *(where.get("id_in") or [])] if v is not None
        )
        id_filters["id_in"] = intersection(allowed, requested)
    else:
        id_filters["id_in"] = requested

    if where.get("id_not") is not None or where.get("id_not_in") is not None:
        disallowed = unique(
            v
            for v in [where.get("id_not"), *(where.get("id_not_in") or [])]
            if v is not None
        )
        id_filters["id_not_in"] = intersection(disallowed, requested)

    is_empty = len(id_filters["id_in"]) == 0 or (
        "id_not_in" in id_filters and len(id_filters["id_not_in"]) == len(requested)
    )

    remaining = {k: v for k, v in where.items() if k not in ID_CONSTRAINT_KEYS}
    return {**remaining, **id_filters}, is_empty
