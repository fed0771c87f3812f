"""Nested mutation coordination: shared state, deferred items and backlinks."""

from listforge.mutations.backlinks import resolve_backlinks
from listforge.mutations.coordinator import Mutation, NestedMutationCoordinator
from listforge.mutations.deferred import DeferredItemHandle
from listforge.mutations.state import (
    AfterChangeSlot,
    BacklinkAction,
    BacklinkOperation,
    MutationContext,
)

__all__ = [
    "AfterChangeSlot",
    "BacklinkAction",
    "BacklinkOperation",
    "DeferredItemHandle",
    "Mutation",
    "MutationContext",
    "NestedMutationCoordinator",
    "resolve_backlinks",
]
