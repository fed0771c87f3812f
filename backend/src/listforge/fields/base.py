"""Base field implementation.

A field owns its path, access rules, user hooks and a default value, and
provides a built-in implementation of every hook phase. Subclasses override
the built-ins they need (coercion in resolve_input, checks in validate_input).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable

from listforge.access.rules import parse_field_access
from listforge.hooks.runner import maybe_await
from listforge.hooks.types import HookContext, Hooks

if TYPE_CHECKING:
    from listforge.lists.list import List


class Field:
    """A single field of a list."""

    type_name = "field"
    storage_type = "TEXT"
    is_relationship = False

    def __init__(
        self,
        path: str,
        config: dict[str, Any],
        *,
        list_key: str,
        get_list_by_key: Callable[[str], "List"],
        default_access: Any = True,
    ):
        self.path = path
        self.list_key = list_key
        self.config = config
        self.get_list_by_key = get_list_by_key
        self.is_required = bool(config.get("required", False))
        self.default = config.get("default")
        self.schema_doc = config.get("doc")

        hooks = config.get("hooks")
        self.hooks = hooks if isinstance(hooks, Hooks) else Hooks.from_dict(hooks)
        self.access = parse_field_access(
            list_key, path, config.get("access"), default_access
        )

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.list_key}.{self.path}>"

    @property
    def has_default(self) -> bool:
        return self.default is not None

    async def get_default_value(self) -> Any:
        if callable(self.default):
            return await maybe_await(self.default)
        return self.default

    def describe(self) -> dict[str, Any]:
        """Summary used by list_meta and the CLI."""
        return {
            "path": self.path,
            "type": self.type_name,
            "required": self.is_required,
        }

    # ------------------------------------------------------------------
    # Built-in hook phases
    # ------------------------------------------------------------------

    def resolve_input(self, ctx: HookContext) -> Any:
        return (ctx.resolved_data or {}).get(self.path)

    def validate_input(self, ctx: HookContext) -> None:
        return None

    def validate_delete(self, ctx: HookContext) -> None:
        return None

    def before_change(self, ctx: HookContext) -> None:
        return None

    def before_delete(self, ctx: HookContext) -> None:
        return None

    def after_change(self, ctx: HookContext) -> None:
        return None

    def after_delete(self, ctx: HookContext) -> None:
        return None
