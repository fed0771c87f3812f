"""Shared fixtures: engines over a call-recording in-memory adapter."""

from typing import Any

import pytest

from listforge.engine import Engine
from listforge.hooks.registry import AccessRuleRegistry, HookRegistry
from listforge.persistence.memory import MemoryAdapter, MemoryListAdapter


class RecordingListAdapter(MemoryListAdapter):
    """In-memory list adapter that logs every storage call."""

    def __init__(self, list_key, fields, calls):
        super().__init__(list_key, fields)
        self.calls = calls

    def _record(self, method: str, *args: Any) -> None:
        self.calls.append((self.list_key, method, *args))

    async def find_by_id(self, id):
        self._record("find_by_id", id)
        return await super().find_by_id(id)

    async def items_query(self, args):
        self._record("items_query", args)
        return await super().items_query(args)

    async def items_query_meta(self, args):
        self._record("items_query_meta", args)
        return await super().items_query_meta(args)

    async def create(self, data):
        self._record("create", data)
        return await super().create(data)

    async def update(self, id, data):
        self._record("update", id, data)
        return await super().update(id, data)

    async def delete(self, id):
        self._record("delete", id)
        return await super().delete(id)


class RecordingAdapter(MemoryAdapter):
    name = "recording"

    def __init__(self):
        super().__init__()
        self.calls: list[tuple] = []

    def new_list_adapter(self, list_key, fields):
        list_adapter = RecordingListAdapter(list_key, fields, self.calls)
        self.list_adapters[list_key] = list_adapter
        return list_adapter

    def methods(self, list_key: str | None = None) -> list[str]:
        return [c[1] for c in self.calls if list_key is None or c[0] == list_key]

    def reset(self) -> None:
        self.calls.clear()


def blog_lists(**overrides: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """User / Post / Tag definitions with two-sided relationships.

    Keyword arguments are merged into the named list's config.
    """
    lists = {
        "User": {
            "fields": {
                "name": {"type": "text", "required": True},
                "email": {"type": "text"},
                "posts": {"type": "relationship", "ref": "Post.author", "many": True},
                "friends": {"type": "relationship", "ref": "User.friends", "many": True},
            },
        },
        "Post": {
            "label_field": "title",
            "fields": {
                "title": {"type": "text", "required": True},
                "status": {"type": "select", "options": ["draft", "published"], "default": "draft"},
                "views": {"type": "integer"},
                "author": {"type": "relationship", "ref": "User.posts"},
                "tags": {"type": "relationship", "ref": "Tag.posts", "many": True},
            },
        },
        "Tag": {
            "fields": {
                "name": {"type": "text", "required": True},
                "posts": {"type": "relationship", "ref": "Post.tags", "many": True},
            },
        },
    }
    for key, config in overrides.items():
        lists[key] = {**lists[key], **config}
    return lists


def make_engine(lists: dict[str, dict[str, Any]], adapter=None, default_access=None) -> Engine:
    engine = Engine(adapter or RecordingAdapter(), default_access=default_access)
    for key, config in lists.items():
        engine.create_list(key, config)
    engine.check_relationships()
    return engine


@pytest.fixture(autouse=True)
def clear_registries():
    """Clear named hooks and access rules before and after each test."""
    HookRegistry.clear()
    AccessRuleRegistry.clear()
    yield
    HookRegistry.clear()
    AccessRuleRegistry.clear()


@pytest.fixture
def engine():
    return make_engine(blog_lists())


@pytest.fixture
def adapter(engine):
    return engine.adapter


@pytest.fixture
def context(engine):
    return engine.create_context()


@pytest.fixture
def sudo(engine):
    return engine.create_context(skip_access_control=True)
