"""The listforge engine: list registry and per-request contexts."""

from __future__ import annotations

import logging
from typing import Any

from listforge.access.context import RequestContext
from listforge.hooks.runner import HookRunner
from listforge.lists.list import List
from listforge.mutations.coordinator import NestedMutationCoordinator
from listforge.persistence.adapter import StorageAdapter

logger = logging.getLogger(__name__)


class Engine:
    """Holds every declared list and the storage adapter they share.

    Lists are declared with create_list() before initialize(); they are
    not changed afterwards.
    """

    def __init__(
        self,
        adapter: StorageAdapter,
        default_access: dict[str, Any] | None = None,
    ):
        self.adapter = adapter
        self.default_access = {"list": True, "field": True, **(default_access or {})}
        self.lists: dict[str, List] = {}
        self.hook_runner = HookRunner()
        self.coordinator = NestedMutationCoordinator(self)
        self._initialized = False

    def create_list(self, key: str, config: dict[str, Any]) -> List:
        if self._initialized:
            raise RuntimeError(f"Cannot add list '{key}' after the engine is initialized")
        if key in self.lists:
            raise ValueError(f"List '{key}' is already registered")
        lst = List(key, config, engine=self)
        self.lists[key] = lst
        logger.debug("Registered list %s with %d field(s)", key, len(lst.fields))
        return lst

    def get_list_by_key(self, key: str) -> List:
        lst = self.lists.get(key)
        if lst is None:
            raise ValueError(
                f"Unknown list '{key}'. Available lists: {', '.join(sorted(self.lists))}"
            )
        return lst

    def check_relationships(self) -> None:
        """Verify every relationship points at an existing list and field.

        Raises:
            ValueError: On the first dangling reference
        """
        for lst in self.lists.values():
            for field in lst.relationship_fields:
                if field.ref_list_key not in self.lists:
                    raise ValueError(
                        f"Relationship '{lst.key}.{field.path}' refers to "
                        f"unknown list '{field.ref_list_key}'"
                    )
                if field.ref_field_path is None:
                    continue
                inverse = self.lists[field.ref_list_key].get_field_by_path(field.ref_field_path)
                if inverse is None or not inverse.is_relationship:
                    raise ValueError(
                        f"Relationship '{lst.key}.{field.path}' refers to "
                        f"'{field.ref_list_key}.{field.ref_field_path}', "
                        "which is not a relationship field"
                    )

    async def initialize(self) -> None:
        """Validate list definitions and connect the storage adapter."""
        if self._initialized:
            return
        self.check_relationships()
        await self.adapter.connect()
        self._initialized = True
        logger.info("Engine initialized with %d list(s)", len(self.lists))

    async def close(self) -> None:
        await self.adapter.disconnect()
        self._initialized = False

    def create_context(
        self,
        authed_item: dict[str, Any] | None = None,
        authed_list_key: str | None = None,
        skip_access_control: bool = False,
    ) -> RequestContext:
        """A fresh context for one request."""
        return RequestContext(
            self,
            authed_item=authed_item,
            authed_list_key=authed_list_key,
            skip_access_control=skip_access_control,
        )
