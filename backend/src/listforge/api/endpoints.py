"""List API endpoints."""

import json
from typing import Any, Awaitable, Callable, Union

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from listforge.access.context import RequestContext
from listforge.engine import Engine
from listforge.hooks.runner import maybe_await
from listforge.lists.list import List

# (request) -> (authed item, authed list key) or None for anonymous callers
Authenticator = Callable[
    [Request],
    Union[tuple[dict[str, Any], str], None, Awaitable[Union[tuple[dict[str, Any], str], None]]],
]


class CreateRequest(BaseModel):
    """Request body for create operations."""
    data: dict[str, Any]


class CreateManyRequest(BaseModel):
    data: list[dict[str, Any]]


class UpdateRequest(BaseModel):
    """Request body for update operations."""
    data: dict[str, Any]


class UpdateManyItem(BaseModel):
    id: str
    data: dict[str, Any]


class UpdateManyRequest(BaseModel):
    data: list[UpdateManyItem]


class DeleteManyRequest(BaseModel):
    ids: list[str]


class MutationRequest(BaseModel):
    """Request body for a list's extra mutations."""
    args: dict[str, Any] = {}


def create_lists_router(
    get_engine: Callable[[], Engine | None],
    authenticate: Authenticator | None = None,
) -> APIRouter:
    """Create the router exposing every list under /api/lists."""
    router = APIRouter(prefix="/api/lists", tags=["lists"])

    def _engine() -> Engine:
        engine = get_engine()
        if engine is None:
            raise HTTPException(500, "Engine not initialized")
        return engine

    def _list(list_key: str) -> List:
        try:
            return _engine().get_list_by_key(list_key)
        except ValueError:
            raise HTTPException(404, f"List '{list_key}' not found") from None

    async def _context(request: Request) -> RequestContext:
        engine = _engine()
        if authenticate is None:
            return engine.create_context()
        authed = await maybe_await(authenticate, request)
        if not authed:
            return engine.create_context()
        item, list_key = authed
        return engine.create_context(authed_item=item, authed_list_key=list_key)

    async def _read(lst: List, item: dict[str, Any] | None, context: RequestContext) -> dict[str, Any]:
        """Shape an item for the response, hiding fields the caller may not read."""
        if item is None:
            return {"data": None, "errors": []}
        result = await lst.read_item_fields(item, context)
        return {"data": result.data, "errors": [e.to_dict() for e in result.errors]}

    async def _read_many(lst: List, items: list[Any], context: RequestContext) -> dict[str, Any]:
        data = []
        errors = []
        for item in items:
            if item is None:
                data.append(None)
                continue
            result = await lst.read_item_fields(item, context)
            data.append(result.data)
            errors.extend({**e.to_dict(), "itemId": item.get("id")} for e in result.errors)
        return {"data": data, "errors": errors}

    @router.get("")
    async def list_lists(request: Request) -> dict[str, Any]:
        """Describe every list and what the caller may do with it."""
        engine = _engine()
        context = await _context(request)
        return {"lists": [await lst.list_meta(context) for lst in engine.lists.values()]}

    @router.get("/{list_key}/meta")
    async def get_list_meta(list_key: str, request: Request) -> dict[str, Any]:
        lst = _list(list_key)
        return await lst.list_meta(await _context(request))

    @router.get("/{list_key}/items")
    async def query_items(
        list_key: str,
        request: Request,
        where: str | None = None,
        search: str | None = None,
        order_by: str | None = None,
        first: int | None = None,
        skip: int | None = None,
    ) -> dict[str, Any]:
        """Query items; ``where`` is a JSON-encoded where-clause."""
        lst = _list(list_key)
        context = await _context(request)
        args = _query_args(where, search, order_by, first, skip)
        try:
            items = await lst.list_query(args, context)
        except ValueError as e:
            raise HTTPException(400, str(e)) from None
        return await _read_many(lst, items, context)

    @router.get("/{list_key}/count")
    async def count_items(
        list_key: str,
        request: Request,
        where: str | None = None,
        search: str | None = None,
    ) -> dict[str, Any]:
        lst = _list(list_key)
        args = _query_args(where, search, None, None, None)
        try:
            count = await lst.list_query_meta(args, await _context(request))
        except ValueError as e:
            raise HTTPException(400, str(e)) from None
        return {"count": count}

    @router.get("/{list_key}/authenticated")
    async def get_authenticated_item(list_key: str, request: Request) -> dict[str, Any]:
        lst = _list(list_key)
        context = await _context(request)
        return await _read(lst, await lst.authenticated_query(context), context)

    @router.get("/{list_key}/items/{item_id}")
    async def get_item(list_key: str, item_id: str, request: Request) -> dict[str, Any]:
        lst = _list(list_key)
        context = await _context(request)
        return await _read(lst, await lst.item_query(item_id, context), context)

    @router.post("/{list_key}/items", status_code=201)
    async def create_item(list_key: str, body: CreateRequest, request: Request) -> dict[str, Any]:
        lst = _list(list_key)
        context = await _context(request)
        return await _read(lst, await lst.create_mutation(body.data, context), context)

    @router.post("/{list_key}/items/batch", status_code=201)
    async def create_items(list_key: str, body: CreateManyRequest, request: Request) -> dict[str, Any]:
        lst = _list(list_key)
        context = await _context(request)
        return await _read_many(lst, await lst.create_many_mutation(body.data, context), context)

    @router.patch("/{list_key}/items/{item_id}")
    async def update_item(
        list_key: str, item_id: str, body: UpdateRequest, request: Request
    ) -> dict[str, Any]:
        lst = _list(list_key)
        context = await _context(request)
        return await _read(lst, await lst.update_mutation(item_id, body.data, context), context)

    @router.patch("/{list_key}/items")
    async def update_items(list_key: str, body: UpdateManyRequest, request: Request) -> dict[str, Any]:
        lst = _list(list_key)
        context = await _context(request)
        data = [{"id": entry.id, "data": entry.data} for entry in body.data]
        return await _read_many(lst, await lst.update_many_mutation(data, context), context)

    @router.delete("/{list_key}/items/{item_id}")
    async def delete_item(list_key: str, item_id: str, request: Request) -> dict[str, Any]:
        lst = _list(list_key)
        context = await _context(request)
        return await _read(lst, await lst.delete_mutation(item_id, context), context)

    @router.post("/{list_key}/items/delete")
    async def delete_items(list_key: str, body: DeleteManyRequest, request: Request) -> dict[str, Any]:
        lst = _list(list_key)
        context = await _context(request)
        return await _read_many(lst, await lst.delete_many_mutation(body.ids, context), context)

    @router.post("/{list_key}/mutations/{name}")
    async def run_mutation(
        list_key: str, name: str, body: MutationRequest, request: Request
    ) -> dict[str, Any]:
        lst = _list(list_key)
        if name not in lst.mutations:
            raise HTTPException(404, f"List '{list_key}' has no mutation '{name}'")
        context = await _context(request)
        return {"data": await lst.run_mutation(name, body.args, context)}

    return router


def _query_args(
    where: str | None,
    search: str | None,
    order_by: str | None,
    first: int | None,
    skip: int | None,
) -> dict[str, Any]:
    args: dict[str, Any] = {"where": {}}
    if where:
        try:
            args["where"] = json.loads(where)
        except json.JSONDecodeError:
            raise HTTPException(400, "where must be a JSON object") from None
        if not isinstance(args["where"], dict):
            raise HTTPException(400, "where must be a JSON object")
    if search:
        args["search"] = search
    if order_by:
        args["order_by"] = order_by
    if first is not None:
        args["first"] = first
    if skip is not None:
        args["skip"] = skip
    return args
