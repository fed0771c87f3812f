"""Coordination of a root write and the writes nested inside it.

Every write (root or nested) runs through NestedMutationCoordinator.run():

1. The first write of a request creates the MutationContext and becomes root.
2. An after-change slot is reserved before the write does any work, so a
   nested write always reserves its slot after its parent's.
3. The write runs; on success its after-change callback fills the slot.
4. Only the root then flushes the backlink queue and drains the after-change
   stack last-reserved-first: deepest nested writes announce completion first.

A failure anywhere propagates up the recursive call chain. Nothing is rolled
back: nested writes that already persisted stay persisted.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Sequence

from listforge.hooks.runner import gather_settled
from listforge.mutations.backlinks import resolve_backlinks
from listforge.mutations.state import AfterHook, MutationContext

if TYPE_CHECKING:
    from listforge.engine import Engine

logger = logging.getLogger(__name__)

# A single write: (state) -> (result, after-change callback)
Mutation = Callable[[MutationContext], Awaitable[tuple[Any, AfterHook]]]


class NestedMutationCoordinator:
    """Runs writes against a shared MutationContext and flushes it at the root."""

    def __init__(self, engine: "Engine"):
        self.engine = engine

    async def _flush(self, state: MutationContext) -> None:
        logger.debug(
            "Flushing root mutation: %d after-change slot(s)",
            len(state.after_change_stack),
        )
        await resolve_backlinks(self.engine, state)
        # TODO: Commit the transaction here once adapters expose one
        await state.drain_after_change()

    async def run(
        self,
        state: MutationContext | None,
        mutation: Mutation,
    ) -> Any:
        """Run one write, as root when no state is passed in."""
        is_root = state is None
        if state is None:
            state = MutationContext()

        slot = state.reserve_after_change()
        result, after_hook = await mutation(state)
        slot.callback = after_hook

        if is_root:
            await self._flush(state)
        return result

    async def run_batch(
        self,
        state: MutationContext | None,
        mutations: Sequence[Mutation],
    ) -> list[Any]:
        """Run several writes concurrently under one shared context.

        The after-change order across batch members is unspecified. Every
        member settles before the first failure, if any, is raised.
        """
        is_root = state is None
        if state is None:
            state = MutationContext()

        results = await gather_settled([(self.run, (state, m)) for m in mutations])

        if is_root:
            await self._flush(state)
        return list(results)
