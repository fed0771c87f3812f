"""Access control: rule parsing, evaluation and query combinators."""

from listforge.access.context import RequestContext
from listforge.access.filters import (
    excludes_id,
    intersection,
    merge_where_clause,
    narrow_ids,
    unique,
)
from listforge.access.rules import (
    AccessArgs,
    Authentication,
    evaluate_field_access,
    evaluate_list_access,
    parse_field_access,
    parse_list_access,
)
from listforge.access.types import (
    ALLOW,
    DENY,
    AccessResult,
    Allow,
    Deny,
    FilterClause,
    Operation,
    to_access_result,
)

__all__ = [
    "ALLOW",
    "DENY",
    "AccessArgs",
    "AccessResult",
    "Allow",
    "Authentication",
    "Deny",
    "FilterClause",
    "Operation",
    "RequestContext",
    "evaluate_field_access",
    "evaluate_list_access",
    "excludes_id",
    "intersection",
    "merge_where_clause",
    "narrow_ids",
    "parse_field_access",
    "parse_list_access",
    "to_access_result",
    "unique",
]
