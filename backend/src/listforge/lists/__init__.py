"""Declared lists and the operations they expose."""

from listforge.lists.list import FieldReadResult, List, ListMutation
from listforge.lists.names import ListNames, key_to_label, pluralize

__all__ = ["FieldReadResult", "List", "ListMutation", "ListNames", "key_to_label", "pluralize"]
