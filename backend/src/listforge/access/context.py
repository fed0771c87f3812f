"""Per-request context carrying the caller's identity and access lookups."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from listforge.access.rules import (
    Authentication,
    evaluate_field_access,
    evaluate_list_access,
)
from listforge.access.types import ALLOW, AccessResult, Operation

if TYPE_CHECKING:
    from listforge.engine import Engine


class RequestContext:
    """Request-scoped context shared by every list touched by one request.

    Access results are computed on demand and never cached: a new context is
    created for every request so rules always see the current caller.
    """

    def __init__(
        self,
        engine: "Engine",
        authed_item: dict[str, Any] | None = None,
        authed_list_key: str | None = None,
        skip_access_control: bool = False,
    ):
        self.engine = engine
        self.authed_item = authed_item
        self.authed_list_key = authed_list_key
        self.skip_access_control = skip_access_control

    @property
    def authentication(self) -> Authentication:
        return Authentication(item=self.authed_item, list_key=self.authed_list_key)

    @property
    def authed_id(self) -> Any:
        return self.authed_item.get("id") if self.authed_item else None

    async def get_list_access_control_for_user(
        self, list_key: str, operation: Operation
    ) -> AccessResult:
        if self.skip_access_control:
            return ALLOW
        lst = self.engine.get_list_by_key(list_key)
        return await evaluate_list_access(
            lst.access[operation], self.authentication, list_key, operation
        )

    async def get_field_access_control_for_user(
        self,
        list_key: str,
        field_path: str,
        item: dict[str, Any] | None,
        operation: Operation,
    ) -> bool:
        if self.skip_access_control:
            return True
        field = self.engine.get_list_by_key(list_key).get_field_by_path(field_path)
        return await evaluate_field_access(
            field.access[operation],
            self.authentication,
            list_key,
            field_path,
            operation,
            existing_item=item,
        )

    def sudo(self) -> "RequestContext":
        """Copy of this context with every access check bypassed."""
        return RequestContext(
            self.engine,
            authed_item=self.authed_item,
            authed_list_key=self.authed_list_key,
            skip_access_control=True,
        )
