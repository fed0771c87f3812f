"""Named-callable registries for listforge.

Hooks and access rules referenced by name from YAML list metadata must be
registered here first, typically at application startup via the @hook and
@access_rule decorators.
"""

from typing import Any, Callable

from listforge.hooks.types import HookFn


class _CallableRegistry:
    """Class-level name -> callable registry. Subclasses get their own store."""

    _kind = "callable"
    _entries: dict[str, Callable[..., Any]]

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        cls._entries = {}

    @classmethod
    def register(cls, name: str, fn: Callable[..., Any]) -> None:
        """Register a callable by name.

        Idempotent: re-registering the same name is a no-op.
        """
        if name in cls._entries:
            return
        cls._entries[name] = fn

    @classmethod
    def get(cls, name: str) -> Callable[..., Any]:
        """Get a registered callable by name.

        Raises:
            ValueError: If nothing is registered under that name
        """
        if name not in cls._entries:
            raise ValueError(
                f"{cls._kind.capitalize()} '{name}' is not registered. "
                f"{cls._kind.capitalize()}s must be explicitly registered at application startup."
            )
        return cls._entries[name]

    @classmethod
    def is_registered(cls, name: str) -> bool:
        return name in cls._entries

    @classmethod
    def list_registered(cls) -> list[str]:
        """List all registered names, sorted."""
        return sorted(cls._entries.keys())

    @classmethod
    def clear(cls) -> None:
        """Clear all registrations. Primarily for testing."""
        cls._entries.clear()


class HookRegistry(_CallableRegistry):
    """Registry for hook implementations referenced from list metadata.

    Example:
        @hook("slugify")
        def slugify(ctx: HookContext) -> str:
            return ctx.resolved_data["title"].lower().replace(" ", "-")
    """

    _kind = "hook"


class AccessRuleRegistry(_CallableRegistry):
    """Registry for computed access rules referenced from list metadata."""

    _kind = "access rule"


def hook(name: str) -> Callable[[HookFn], HookFn]:
    """Decorator to register a hook function."""

    def decorator(fn: HookFn) -> HookFn:
        HookRegistry.register(name, fn)
        return fn

    return decorator


def access_rule(name: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decorator to register a computed access rule."""

    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        AccessRuleRegistry.register(name, fn)
        return fn

    return decorator
