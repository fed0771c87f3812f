"""Forward reference to an item that is still being written."""

from __future__ import annotations

import asyncio
from typing import Any


class DeferredItemHandle:
    """Resolved with the stored item once its write succeeds, rejected if it fails.

    The underlying future is only created when someone waits on the handle,
    so a rejected handle nobody depends on does not produce an
    "exception was never retrieved" warning.
    """

    def __init__(self) -> None:
        self._future: asyncio.Future | None = None
        self._settled = False
        self._item: dict[str, Any] | None = None
        self._error: BaseException | None = None

    @classmethod
    def resolved(cls, item: dict[str, Any]) -> "DeferredItemHandle":
        """A handle for an item that already exists."""
        handle = cls()
        handle.resolve(item)
        return handle

    @property
    def done(self) -> bool:
        return self._settled

    @property
    def failed(self) -> bool:
        return self._settled and self._error is not None

    @property
    def item(self) -> dict[str, Any]:
        """The resolved item. Only valid once the handle has resolved."""
        if not self._settled:
            raise RuntimeError("Deferred item has not been resolved yet")
        if self._error is not None:
            raise self._error
        return self._item  # type: ignore[return-value]

    def resolve(self, item: dict[str, Any]) -> None:
        if self._settled:
            raise RuntimeError("Deferred item already settled")
        self._settled = True
        self._item = item
        if self._future is not None and not self._future.done():
            self._future.set_result(item)

    def reject(self, error: BaseException) -> None:
        if self._settled:
            raise RuntimeError("Deferred item already settled")
        self._settled = True
        self._error = error
        if self._future is not None and not self._future.done():
            self._future.set_exception(error)

    async def wait(self) -> dict[str, Any]:
        """Suspend until the owning write settles, then return its item."""
        if self._settled:
            return self.item
        if self._future is None:
            self._future = asyncio.get_running_loop().create_future()
        return await self._future
