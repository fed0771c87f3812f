"""Shared state for a root mutation and every mutation nested inside it."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable

from listforge.mutations.deferred import DeferredItemHandle

AfterHook = Callable[[], Awaitable[None]]


class BacklinkAction(Enum):
    CONNECT = "connect"
    DISCONNECT = "disconnect"


@dataclass(frozen=True)
class BacklinkOperation:
    """Pending update to the inverse side of a two-sided relationship.

    Attributes:
        list_key: The related list holding the inverse field
        item_id: The related item to update
        field_path: The inverse relationship field on the related item
        action: Add or remove the local item's id
        handle: The local item, possibly still being created
    """

    list_key: str
    item_id: Any
    field_path: str
    action: BacklinkAction
    handle: DeferredItemHandle


@dataclass
class AfterChangeSlot:
    """Place in the after-change stack, reserved when a write begins."""

    callback: AfterHook | None = None


@dataclass
class MutationContext:
    """Request-scoped accumulator shared by nested writes.

    Attributes:
        after_change_stack: Slots drained last-reserved-first by the root
        backlinks: Pending backlink work keyed by related list key
        transaction: Placeholder for future transaction support (unused)
    """

    after_change_stack: list[AfterChangeSlot] = field(default_factory=list)
    backlinks: dict[str, list[BacklinkOperation]] = field(default_factory=dict)
    transaction: dict[str, Any] = field(default_factory=dict)

    def reserve_after_change(self) -> AfterChangeSlot:
        slot = AfterChangeSlot()
        self.after_change_stack.append(slot)
        return slot

    def enqueue_backlink(self, operation: BacklinkOperation) -> None:
        self.backlinks.setdefault(operation.list_key, []).append(operation)

    def take_backlinks(self) -> list[BacklinkOperation]:
        """Remove and return all queued backlink work.

        Work whose local write already failed is dropped.
        """
        taken = [
            op
            for operations in self.backlinks.values()
            for op in operations
            if not op.handle.failed
        ]
        self.backlinks.clear()
        return taken

    async def drain_after_change(self) -> None:
        while self.after_change_stack:
            slot = self.after_change_stack.pop()
            if slot.callback is not None:
                await slot.callback()
