"""In-memory storage adapter.

Items live in a dict per list for the lifetime of the adapter. Used as the
default backend and throughout the test suite.
"""

from __future__ import annotations

import copy
import logging
import uuid
from typing import TYPE_CHECKING, Any, Sequence

from listforge.persistence.where import matches, parse_order_by

if TYPE_CHECKING:
    from listforge.fields.base import Field

logger = logging.getLogger(__name__)


def apply_window(items: list[dict[str, Any]], args: dict[str, Any]) -> list[dict[str, Any]]:
    """Sort, then skip/first, as described by query args."""
    order_by = args.get("order_by")
    if order_by:
        path, descending = parse_order_by(order_by)
        present = [i for i in items if i.get(path) is not None]
        missing = [i for i in items if i.get(path) is None]
        items = sorted(present, key=lambda i: i[path], reverse=descending) + missing

    skip = args.get("skip") or 0
    first = args.get("first")
    items = items[skip:]
    if first is not None:
        items = items[:first]
    return items


class MemoryListAdapter:
    """Items of one list, keyed by id, in insertion order."""

    def __init__(self, list_key: str, fields: Sequence["Field"]):
        self.list_key = list_key
        self.field_paths = [f.path for f in fields]
        self.search_paths = [f.path for f in fields if f.type_name in ("text", "select")]
        self.many_paths = {f.path for f in fields if getattr(f, "many", False)}
        self.items: dict[str, dict[str, Any]] = {}

    def _normalize(self, item: dict[str, Any]) -> dict[str, Any]:
        # To-many relationships are always lists, never None
        for path in self.many_paths:
            if item.get(path) is None:
                item[path] = []
        return item

    def _filter(self, args: dict[str, Any]) -> list[dict[str, Any]]:
        where = args.get("where")
        search = args.get("search")
        found = []
        for item in self.items.values():
            if not matches(item, where, self.field_paths):
                continue
            if search and not any(
                search.lower() in str(item.get(p) or "").lower() for p in self.search_paths
            ):
                continue
            found.append(item)
        return found

    async def find_by_id(self, id: Any) -> dict[str, Any] | None:
        item = self.items.get(id)
        return copy.deepcopy(item) if item is not None else None

    async def items_query(self, args: dict[str, Any]) -> list[dict[str, Any]]:
        return [copy.deepcopy(i) for i in apply_window(self._filter(args), args)]

    async def items_query_meta(self, args: dict[str, Any]) -> dict[str, int]:
        return {"count": len(apply_window(self._filter(args), args))}

    async def create(self, data: dict[str, Any]) -> dict[str, Any]:
        item_id = data.get("id") or str(uuid.uuid4())
        item = {path: None for path in self.field_paths}
        item.update(copy.deepcopy(data))
        item["id"] = item_id
        self.items[item_id] = self._normalize(item)
        return copy.deepcopy(item)

    async def update(self, id: Any, data: dict[str, Any]) -> dict[str, Any] | None:
        item = self.items.get(id)
        if item is None:
            return None
        item.update({k: copy.deepcopy(v) for k, v in data.items() if k != "id"})
        return copy.deepcopy(self._normalize(item))

    async def delete(self, id: Any) -> dict[str, Any] | None:
        return self.items.pop(id, None)


class MemoryAdapter:
    """Storage adapter keeping every list in process memory."""

    name = "memory"

    def __init__(self) -> None:
        self.list_adapters: dict[str, MemoryListAdapter] = {}

    async def connect(self) -> None:
        logger.debug("Memory adapter ready with %d list(s)", len(self.list_adapters))

    async def disconnect(self) -> None:
        for list_adapter in self.list_adapters.values():
            list_adapter.items.clear()

    def new_list_adapter(self, list_key: str, fields: Sequence["Field"]) -> MemoryListAdapter:
        list_adapter = MemoryListAdapter(list_key, fields)
        self.list_adapters[list_key] = list_adapter
        return list_adapter
