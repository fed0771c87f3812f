"""Relationship fields and resolution of nested relationship input.

A relationship points at another list, either one item (``many: false``) or
several (``many: true``). Declaring ``ref: "List.field"`` makes it two-sided:
whenever this side gains or loses an item, the inverse field on that item is
updated too. Inverse updates are queued on the MutationContext and applied
once, by the root mutation, after every write in the request has persisted.

Nested input:

    {"create": {...}}                  # to-one
    {"connect": {"id": "..."}}
    {"disconnect": {"id": "..."}}
    {"update": {"id": "...", "data": {...}}}
    {"disconnect_all": True}

    {"create": [...], "connect": [{"id": ...}], "update": [{"id": ..., "data": {...}}]}  # to-many

"update" only reaches items already connected to this field; it does not
change what the field points at.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from listforge.access.filters import unique
from listforge.access.types import Operation
from listforge.errors import ValidationError, ValidationFailureError
from listforge.fields.base import Field
from listforge.fields.types import register_field_type
from listforge.hooks.runner import gather_settled
from listforge.mutations.deferred import DeferredItemHandle
from listforge.mutations.state import BacklinkAction, BacklinkOperation, MutationContext

if TYPE_CHECKING:
    from listforge.access.context import RequestContext
    from listforge.lists.list import List

logger = logging.getLogger(__name__)

NESTED_KEYS = ("create", "connect", "disconnect", "update", "disconnect_all")


class Relationship(Field):
    type_name = "relationship"
    storage_type = "TEXT"
    is_relationship = True

    def __init__(self, path: str, config: dict[str, Any], **kwargs: Any):
        super().__init__(path, config, **kwargs)
        ref = config.get("ref")
        if not ref or not isinstance(ref, str):
            raise ValueError(
                f"Relationship field '{self.list_key}.{path}' requires a 'ref'"
            )
        ref_list_key, _, ref_field_path = ref.partition(".")
        self.ref_list_key = ref_list_key
        self.ref_field_path = ref_field_path or None
        self.many = bool(config.get("many", False))

    @property
    def ref_list(self) -> "List":
        return self.get_list_by_key(self.ref_list_key)

    @property
    def is_two_sided(self) -> bool:
        return self.ref_field_path is not None

    def describe(self) -> dict[str, Any]:
        ref = self.ref_list_key
        if self.ref_field_path:
            ref = f"{ref}.{self.ref_field_path}"
        return {**super().describe(), "ref": ref, "many": self.many}

    def current_ids(self, item: dict[str, Any] | None) -> list[Any]:
        """Ids this field currently points at on a stored item."""
        if not item:
            return []
        value = item.get(self.path)
        if self.many:
            return list(value or [])
        return [value] if value is not None else []

    def _invalid(self, message: str, operation: Operation, nested_input: Any) -> ValidationFailureError:
        return ValidationFailureError(
            [ValidationError(message=message, field=self.path)],
            list_key=self.list_key,
            operation=operation.value,
            original_input={self.path: nested_input},
        )

    def _entries(self, nested_input: dict[str, Any], key: str, operation: Operation) -> list[Any]:
        """Entries under one nested key: a list on to-many fields, one object on to-one."""
        value = nested_input.get(key)
        if value is None:
            return []
        if not self.many:
            return [value]
        if not isinstance(value, (list, tuple)):
            raise self._invalid(f"{self.path}.{key} expects a list", operation, nested_input)
        return list(value)

    def _objects_of(self, nested_input: dict[str, Any], key: str, operation: Operation) -> list[dict[str, Any]]:
        entries = self._entries(nested_input, key, operation)
        for entry in entries:
            if not isinstance(entry, dict):
                raise self._invalid(
                    f"{self.path}.{key} expects an object", operation, nested_input
                )
        return entries

    def _ids_of(self, nested_input: dict[str, Any], key: str, operation: Operation) -> list[Any]:
        ids = []
        for entry in self._entries(nested_input, key, operation):
            if not isinstance(entry, dict) or entry.get("id") is None:
                raise self._invalid(
                    f"{self.path}.{key} requires an id", operation, nested_input
                )
            ids.append(entry["id"])
        return ids

    def _updates_of(
        self,
        nested_input: dict[str, Any],
        current: list[Any],
        operation: Operation,
    ) -> list[tuple[Any, dict[str, Any]]]:
        """(id, data) pairs for nested updates of already connected items."""
        updates = []
        for entry in self._entries(nested_input, "update", operation):
            if not isinstance(entry, dict) or entry.get("id") is None:
                raise self._invalid(
                    f"{self.path}.update requires an id", operation, nested_input
                )
            if not isinstance(entry.get("data"), dict):
                raise self._invalid(
                    f"{self.path}.update requires data", operation, nested_input
                )
            if entry["id"] not in current:
                raise self._invalid(
                    f"{self.path}.update can only change connected items",
                    operation,
                    nested_input,
                )
            updates.append((entry["id"], entry["data"]))
        return updates

    async def resolve_nested_operations(
        self,
        nested_input: Any,
        existing_item: dict[str, Any] | None,
        context: "RequestContext",
        local_item: DeferredItemHandle,
        state: MutationContext,
        operation: Operation,
    ) -> Any:
        """Turn nested relationship input into the value stored on this field.

        Args:
            nested_input: The relationship-shaped input for this field
            existing_item: The stored item (update) or None (create)
            context: Request context; nested writes run under the same caller
            local_item: Handle to the item being written; backlinks wait on it
            state: Shared mutation state for the request
            operation: The write being performed

        Returns:
            An id (to-one), a list of ids (to-many), or None
        """
        current = self.current_ids(existing_item)
        if nested_input is None:
            return existing_item.get(self.path) if existing_item else self._empty()

        if not isinstance(nested_input, dict) or not set(nested_input) <= set(NESTED_KEYS):
            raise self._invalid(
                f"{self.path} accepts only: {', '.join(NESTED_KEYS)}",
                operation,
                nested_input,
            )

        if not self.many and "create" in nested_input and "connect" in nested_input:
            raise self._invalid(
                f"{self.path} cannot both create and connect a single item",
                operation,
                nested_input,
            )

        creates = self._objects_of(nested_input, "create", operation)
        connect_ids = self._ids_of(nested_input, "connect", operation)
        disconnect_ids = self._ids_of(nested_input, "disconnect", operation)
        updates = self._updates_of(nested_input, current, operation)
        if nested_input.get("disconnect_all"):
            disconnect_ids = list(current)

        ref_list = self.ref_list
        created = await gather_settled(
            [(ref_list.create_mutation, (data, context, state)) for data in creates]
        )
        connected = await gather_settled(
            [(ref_list.item_query, (item_id, context)) for item_id in connect_ids]
        )
        await gather_settled(
            [
                (ref_list.update_mutation, (item_id, data, context, state))
                for item_id, data in updates
            ]
        )
        added_ids = [item["id"] for item in connected] + [item["id"] for item in created]

        if self.many:
            kept = [i for i in current if i not in disconnect_ids]
            ids = unique(kept + added_ids)
            value: Any = ids
        else:
            ids = added_ids[:1] or [i for i in current if i not in disconnect_ids]
            value = ids[0] if ids else None

        if self.is_two_sided:
            for item_id in ids:
                if item_id not in current:
                    self._queue_backlink(item_id, BacklinkAction.CONNECT, local_item, state)
            for item_id in current:
                if item_id not in ids:
                    self._queue_backlink(item_id, BacklinkAction.DISCONNECT, local_item, state)

        logger.debug(
            "Resolved %s.%s: +%d -%d related item(s)",
            self.list_key,
            self.path,
            len([i for i in ids if i not in current]),
            len([i for i in current if i not in ids]),
        )
        return value

    def _empty(self) -> Any:
        return [] if self.many else None

    def _queue_backlink(
        self,
        item_id: Any,
        action: BacklinkAction,
        local_item: DeferredItemHandle,
        state: MutationContext,
    ) -> None:
        state.enqueue_backlink(
            BacklinkOperation(
                list_key=self.ref_list_key,
                item_id=item_id,
                field_path=self.ref_field_path,  # type: ignore[arg-type]
                action=action,
                handle=local_item,
            )
        )

    def register_backlink(self, item: dict[str, Any], state: MutationContext) -> None:
        """Queue removal of a deleted item from every inverse field pointing at it."""
        if not self.is_two_sided:
            return
        handle = DeferredItemHandle.resolved(item)
        for item_id in self.current_ids(item):
            self._queue_backlink(item_id, BacklinkAction.DISCONNECT, handle, state)

    def apply_backlink(self, current: Any, local_id: Any, action: BacklinkAction) -> Any:
        """New value of this field after an inverse-side connect or disconnect."""
        if self.many:
            ids = list(current or [])
            if action is BacklinkAction.CONNECT:
                return ids if local_id in ids else ids + [local_id]
            return [i for i in ids if i != local_id]

        if action is BacklinkAction.CONNECT:
            return local_id
        return None if current == local_id else current


register_field_type("relationship", Relationship)
