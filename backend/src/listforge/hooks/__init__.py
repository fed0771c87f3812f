"""listforge lifecycle hook system.

Provides extension points that run at fixed points of a list write:
- resolve_input: transform incoming data (may overwrite values)
- validate_input / validate_delete: report errors via ctx.add_validation_error
- before_change / before_delete: side effects before the storage write
- after_change / after_delete: side effects once the whole request has persisted

Usage:
    from listforge.hooks import hook, HookContext

    @hook("noHomers")
    def no_homers(ctx: HookContext) -> None:
        if ctx.resolved_data.get("name") == "Homer":
            ctx.add_validation_error("Sorry, no Homers allowed")
"""

from listforge.hooks.actions import HookActions
from listforge.hooks.registry import AccessRuleRegistry, HookRegistry, access_rule, hook
from listforge.hooks.runner import HookRunner, gather_settled, maybe_await
from listforge.hooks.types import HookContext, HookFn, HookPhase, Hooks

__all__ = [
    "AccessRuleRegistry",
    "HookActions",
    "HookContext",
    "HookFn",
    "HookPhase",
    "HookRegistry",
    "HookRunner",
    "Hooks",
    "access_rule",
    "gather_settled",
    "hook",
    "maybe_await",
]
