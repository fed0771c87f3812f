"""Storage protocols shared by every adapter."""

from typing import TYPE_CHECKING, Any, Protocol, Sequence, runtime_checkable

if TYPE_CHECKING:
    from listforge.fields.base import Field


@runtime_checkable
class ListAdapter(Protocol):
    """Storage for the items of one list.

    Query args keys: where, search, order_by ("field_ASC" / "field_DESC"),
    first, skip. update() and delete() return None when the item is already
    gone; that is not an error.
    """

    list_key: str

    async def find_by_id(self, id: Any) -> dict[str, Any] | None: ...

    async def items_query(self, args: dict[str, Any]) -> list[dict[str, Any]]: ...

    async def items_query_meta(self, args: dict[str, Any]) -> dict[str, int]: ...

    async def create(self, data: dict[str, Any]) -> dict[str, Any]: ...

    async def update(self, id: Any, data: dict[str, Any]) -> dict[str, Any] | None: ...

    async def delete(self, id: Any) -> dict[str, Any] | None: ...


@runtime_checkable
class StorageAdapter(Protocol):
    """Connection-level adapter that hands out one ListAdapter per list."""

    name: str

    async def connect(self) -> None: ...

    async def disconnect(self) -> None: ...

    def new_list_adapter(self, list_key: str, fields: Sequence["Field"]) -> ListAdapter: ...
