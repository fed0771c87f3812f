"""Flushing of queued backlink work onto related items."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from listforge.hooks.runner import gather_settled
from listforge.mutations.state import BacklinkOperation, MutationContext

if TYPE_CHECKING:
    from listforge.engine import Engine

logger = logging.getLogger(__name__)


async def _apply_to_item(
    engine: "Engine",
    list_key: str,
    item_id: Any,
    operations: list[BacklinkOperation],
) -> None:
    lst = engine.get_list_by_key(list_key)

    local_ids = []
    for op in operations:
        local_item = await op.handle.wait()
        local_ids.append(local_item["id"])

    item = await lst.adapter.find_by_id(item_id)
    if item is None:
        logger.debug("Backlink target %s:%s no longer exists, skipping", list_key, item_id)
        return

    changes: dict[str, Any] = {}
    for op, local_id in zip(operations, local_ids):
        field = lst.get_field_by_path(op.field_path)
        current = changes.get(op.field_path, item.get(op.field_path))
        changes[op.field_path] = field.apply_backlink(current, local_id, op.action)

    if any(changes[path] != item.get(path) for path in changes):
        await lst.adapter.update(item_id, changes)


async def resolve_backlinks(engine: "Engine", state: MutationContext) -> None:
    """Apply queued backlink work, one read and one write per related item.

    Each operation first waits for its local item to finish being written.
    """
    operations = state.take_backlinks()
    if not operations:
        return

    grouped: dict[tuple[str, Any], list[BacklinkOperation]] = {}
    for op in operations:
        grouped.setdefault((op.list_key, op.item_id), []).append(op)

    logger.debug(
        "Resolving %d backlink operation(s) across %d item(s)",
        len(operations),
        len(grouped),
    )
    await gather_settled(
        [
            (_apply_to_item, (engine, list_key, item_id, ops))
            for (list_key, item_id), ops in grouped.items()
        ]
    )
