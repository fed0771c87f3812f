"""Secondary-query helpers handed to hooks as ``ctx.actions``."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from listforge.access.context import RequestContext


class HookActions:
    """Run reads against other lists from inside a hook.

    By default the access control of the user making the original request
    still applies. Pass ``skip_access_control=True`` to run elevated.
    """

    def __init__(self, context: "RequestContext"):
        self.context = context

    def _context_for(self, skip_access_control: bool) -> "RequestContext":
        return self.context.sudo() if skip_access_control else self.context

    async def query(
        self,
        list_key: str,
        where: dict[str, Any] | None = None,
        first: int | None = None,
        skip: int | None = None,
        order_by: str | None = None,
        skip_access_control: bool = False,
    ) -> list[dict[str, Any]]:
        args: dict[str, Any] = {"where": where or {}}
        if first is not None:
            args["first"] = first
        if skip is not None:
            args["skip"] = skip
        if order_by is not None:
            args["order_by"] = order_by
        lst = self.context.engine.get_list_by_key(list_key)
        return await lst.list_query(args, self._context_for(skip_access_control))

    async def item(
        self,
        list_key: str,
        id: Any,
        skip_access_control: bool = False,
    ) -> dict[str, Any]:
        lst = self.context.engine.get_list_by_key(list_key)
        return await lst.item_query(id, self._context_for(skip_access_control))

    async def count(
        self,
        list_key: str,
        where: dict[str, Any] | None = None,
        skip_access_control: bool = False,
    ) -> int:
        lst = self.context.engine.get_list_by_key(list_key)
        return await lst.list_query_meta(
            {"where": where or {}}, self._context_for(skip_access_control)
        )
