"""Hook execution for listforge.

Runs one lifecycle phase across every participant, in a fixed order:
1. Each field's built-in implementation, concurrently
2. Each field's user-supplied override (if declared), concurrently
3. The list's user-supplied hook, after all field hooks settle

Field hooks are awaited to completion even when a sibling fails, so that
validation phases can report every error at once.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import replace
from typing import TYPE_CHECKING, Any, Callable, Sequence

from listforge.errors import ValidationError, ValidationFailureError
from listforge.hooks.types import HookContext, HookPhase, Hooks

if TYPE_CHECKING:
    from listforge.fields.base import Field

logger = logging.getLogger(__name__)


async def maybe_await(fn: Callable[..., Any], *args: Any) -> Any:
    """Call fn and await the result if it is awaitable."""
    result = fn(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


async def gather_settled(calls: Sequence[tuple[Callable[..., Any], tuple]]) -> list[Any]:
    """Run calls concurrently, wait for all of them, then raise the first failure.

    Failures are reported in call order, not completion order.
    """
    results = await asyncio.gather(
        *(maybe_await(fn, *args) for fn, args in calls),
        return_exceptions=True,
    )
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return list(results)


class HookRunner:
    """Orchestrates hook execution for one phase of a list write."""

    async def _run_fields(
        self,
        phase: HookPhase,
        fields: Sequence["Field"],
        ctx: HookContext,
    ) -> tuple[dict[str, Any], dict[str, Any]]:
        builtin_results = await gather_settled(
            [(getattr(f, phase.value), (ctx.for_field(f.path),)) for f in fields]
        )
        builtins = {f.path: r for f, r in zip(fields, builtin_results)}

        overriding = [f for f in fields if f.hooks.get(phase)]
        if phase is HookPhase.RESOLVE_INPUT:
            # Overrides see the field-level resolutions
            ctx = replace(ctx, resolved_data={**(ctx.resolved_data or {}), **builtins})
        override_results = await gather_settled(
            [(f.hooks.get(phase), (ctx.for_field(f.path),)) for f in overriding]
        )
        overrides = {f.path: r for f, r in zip(overriding, override_results)}
        return builtins, overrides

    async def resolve_input(
        self,
        fields: Sequence["Field"],
        list_hooks: Hooks,
        ctx: HookContext,
    ) -> dict[str, Any]:
        """Run the resolve_input phase and return the resolved data.

        Field outputs replace the value at their path; a list-level hook may
        return a dict which is merged over the field-level resolutions.
        """
        builtins, overrides = await self._run_fields(HookPhase.RESOLVE_INPUT, fields, ctx)
        resolved_data = {**builtins, **overrides}

        list_hook = list_hooks.get(HookPhase.RESOLVE_INPUT)
        if list_hook:
            result = await maybe_await(list_hook, replace(ctx, resolved_data=resolved_data))
            if result is not None:
                if not isinstance(result, dict):
                    raise TypeError(
                        f"List '{ctx.list_key}': resolve_input hook must return a dict or None"
                    )
                resolved_data = {**resolved_data, **result}
        return resolved_data

    async def validate(
        self,
        phase: HookPhase,
        fields: Sequence["Field"],
        list_hooks: Hooks,
        ctx: HookContext,
        errors: list[ValidationError] | None = None,
    ) -> None:
        """Run a validation phase, raising one aggregated failure if needed.

        Args:
            phase: VALIDATE_INPUT or VALIDATE_DELETE
            fields: Participating fields, in declaration order
            list_hooks: The list's user hooks
            ctx: Hook context for the write
            errors: Errors already collected by the caller (e.g. required fields)

        Raises:
            ValidationFailureError: If any participant reported an error
        """
        if not phase.is_validation:
            raise ValueError(f"{phase.value} is not a validation phase")

        collected: list[ValidationError] = list(errors or [])
        ctx = replace(ctx, validation_errors=collected)

        await self._run_fields(phase, fields, ctx)

        list_hook = list_hooks.get(phase)
        if list_hook:
            await maybe_await(list_hook, ctx)

        if collected:
            logger.debug(
                "Validation failed for %s.%s with %d error(s)",
                ctx.list_key,
                phase.value,
                len(collected),
            )
            raise ValidationFailureError(
                collected,
                list_key=ctx.list_key,
                operation=ctx.operation.value,
                original_input=ctx.original_input,
            )

    async def run(
        self,
        phase: HookPhase,
        fields: Sequence["Field"],
        list_hooks: Hooks,
        ctx: HookContext,
    ) -> None:
        """Run a side-effect phase (before/after change or delete)."""
        if phase is HookPhase.RESOLVE_INPUT or phase.is_validation:
            raise ValueError(f"Use the dedicated runner method for {phase.value}")

        await self._run_fields(phase, fields, ctx)

        list_hook = list_hooks.get(phase)
        if list_hook:
            await maybe_await(list_hook, ctx)
