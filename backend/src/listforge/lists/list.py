"""The per-list execution pipeline.

A List turns one operation into a fixed sequence of steps:

    access check -> relationship resolution -> resolve_input -> validate_input
    -> before_change -> storage write -> (after_change, queued for the root)

Reads go through the same access checks and merge any declarative filter
into the storage query. Item lookups by id never distinguish "missing" from
"not allowed": both raise AccessDeniedError.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Callable, Iterable

from listforge.access.context import RequestContext
from listforge.access.filters import excludes_id, merge_where_clause, narrow_ids, unique
from listforge.access.rules import parse_list_access
from listforge.access.types import Allow, AccessResult, FilterClause, Operation
from listforge.errors import AccessDeniedError, ValidationError
from listforge.fields.base import Field
from listforge.fields.types import get_field_type
from listforge.hooks.actions import HookActions
from listforge.hooks.runner import gather_settled, maybe_await
from listforge.hooks.types import HookContext, HookPhase, Hooks
from listforge.lists.names import ListNames
from listforge.mutations.coordinator import Mutation
from listforge.mutations.deferred import DeferredItemHandle
from listforge.mutations.state import MutationContext

if TYPE_CHECKING:
    from listforge.engine import Engine
    from listforge.fields.relationship import Relationship

logger = logging.getLogger(__name__)

Item = dict[str, Any]


@dataclass
class FieldReadResult:
    """Partial read of one item: allowed fields plus an error per denied field."""

    data: Item
    errors: list[AccessDeniedError] = field(default_factory=list)


@dataclass(frozen=True)
class ListMutation:
    """An extra operation declared on a list.

    The resolver is called as ``resolver(args, context, actions)`` and may be
    async. No list access rule guards it; ``actions`` still reads under the
    caller's access.
    """

    name: str
    resolver: Callable[..., Any]
    doc: str | None = None

    @classmethod
    def from_config(cls, list_key: str, config: Any) -> "ListMutation":
        if isinstance(config, ListMutation):
            return config
        if not isinstance(config, dict) or not isinstance(config.get("name"), str):
            raise ValueError(f"List '{list_key}' declares a mutation without a name")
        resolver = config.get("resolver")
        if not callable(resolver):
            raise ValueError(
                f"Mutation '{list_key}.{config['name']}' must have a callable resolver"
            )
        return cls(name=config["name"], resolver=resolver, doc=config.get("doc"))


class List:
    """A declared list: its fields, access rules, hooks and storage adapter."""

    def __init__(self, key: str, config: dict[str, Any], *, engine: "Engine"):
        if not config.get("fields"):
            raise ValueError(f"List '{key}' must declare at least one field")

        self.key = key
        self.engine = engine
        self.schema_doc = config.get("doc")
        self.label_field = config.get("label_field") or "name"
        self.label_resolver: Callable[[Item], Any] | None = config.get("label_resolver")
        self.names = ListNames.from_key(
            key,
            singular=config.get("singular"),
            plural=config.get("plural"),
            label=config.get("label"),
            path=config.get("path"),
        )

        hooks = config.get("hooks")
        self.hooks = hooks if isinstance(hooks, Hooks) else Hooks.from_dict(hooks)
        self.access = parse_list_access(
            key, config.get("access"), engine.default_access["list"]
        )

        self.fields_by_path: dict[str, Field] = {}
        for path, field_config in config["fields"].items():
            self.fields_by_path[path] = self._build_field(path, field_config)
        self.fields: list[Field] = list(self.fields_by_path.values())

        self.mutations: dict[str, ListMutation] = {}
        for mutation_config in config.get("mutations") or []:
            mutation = ListMutation.from_config(key, mutation_config)
            if mutation.name in self.mutations:
                raise ValueError(f"List '{key}' declares mutation '{mutation.name}' twice")
            self.mutations[mutation.name] = mutation

        self.adapter = engine.adapter.new_list_adapter(key, self.fields)

    def __repr__(self) -> str:
        return f"<List {self.key}>"

    def _build_field(self, path: str, field_config: dict[str, Any]) -> Field:
        if path == "id":
            raise ValueError(f"List '{self.key}': 'id' is reserved and cannot be declared")
        field_type = field_config.get("type")
        if isinstance(field_type, str):
            field_class = get_field_type(field_type)
        elif isinstance(field_type, type) and issubclass(field_type, Field):
            field_class = field_type
        else:
            raise ValueError(f"Field '{self.key}.{path}' has no valid type")
        return field_class(
            path,
            field_config,
            list_key=self.key,
            get_list_by_key=self.engine.get_list_by_key,
            default_access=self.engine.default_access["field"],
        )

    # ------------------------------------------------------------------
    # Field helpers
    # ------------------------------------------------------------------

    def get_field_by_path(self, path: str) -> Field | None:
        return self.fields_by_path.get(path)

    @property
    def relationship_fields(self) -> list["Relationship"]:
        return [f for f in self.fields if f.is_relationship]  # type: ignore[misc]

    def get_fields_related_to(self, list_key: str) -> list["Relationship"]:
        return [f for f in self.relationship_fields if f.ref_list_key == list_key]

    def _fields_from(self, data: Iterable[str] | None) -> list[Field]:
        """Fields present in data, in declaration order."""
        if not data:
            return []
        keys = set(data)
        return [f for f in self.fields if f.path in keys]

    def get_item_label(self, item: Item) -> Any:
        if self.label_resolver is not None:
            return self.label_resolver(item)
        return item.get(self.label_field) or item.get("id")

    def _hook_context(self, operation: Operation, context: RequestContext, **kwargs: Any) -> HookContext:
        return HookContext(
            list_key=self.key,
            operation=operation,
            context=context,
            actions=HookActions(context),
            **kwargs,
        )

    # ------------------------------------------------------------------
    # Access control
    # ------------------------------------------------------------------

    def _throw_access_denied(
        self,
        operation: Operation,
        context: RequestContext,
        target: str | None,
        extra_internal_data: dict[str, Any] | None = None,
        extra_data: dict[str, Any] | None = None,
    ) -> None:
        raise AccessDeniedError(
            data={"type": operation.request_type, "target": target, **(extra_data or {})},
            internal_data={
                "authedId": context.authed_id,
                "authedListKey": context.authed_list_key,
                "listKey": self.key,
                **(extra_internal_data or {}),
            },
        )

    async def check_list_access(
        self,
        context: RequestContext,
        operation: Operation,
        gql_name: str | None = None,
        **extra_internal_data: Any,
    ) -> AccessResult:
        """Evaluate the list-level rule, raising AccessDeniedError on Deny."""
        access = await context.get_list_access_control_for_user(self.key, operation)
        if not access.allowed:
            logger.debug(
                "Access statically or implicitly denied: list=%s operation=%s access=%s target=%s %s",
                self.key,
                operation.value,
                access,
                gql_name,
                extra_internal_data,
            )
            logger.info("Access denied: list=%s operation=%s target=%s", self.key, operation.value, gql_name)
            self._throw_access_denied(operation, context, gql_name, extra_internal_data)
        return access

    async def check_field_access(
        self,
        operation: Operation,
        items_to_update: list[tuple[Item | None, Item]],
        context: RequestContext,
        gql_name: str | None = None,
        extra_data: dict[str, Any] | None = None,
    ) -> None:
        """Check every input field of every item; fail once listing all denials.

        Args:
            items_to_update: (existing_item, input data) pairs
        """
        checks = [
            (f.path, existing_item)
            for existing_item, data in items_to_update
            for f in self._fields_from(data)
        ]
        results = await gather_settled(
            [
                (
                    context.get_field_access_control_for_user,
                    (self.key, path, existing_item, operation),
                )
                for path, existing_item in checks
            ]
        )
        restricted = unique(path for (path, _), allowed in zip(checks, results) if not allowed)
        if restricted:
            logger.info(
                "Field access denied: list=%s operation=%s fields=%s",
                self.key,
                operation.value,
                restricted,
            )
            self._throw_access_denied(
                operation, context, gql_name, extra_data, {"restrictedFields": restricted}
            )

    async def get_access_controlled_item(
        self,
        id: Any,
        access: AccessResult,
        context: RequestContext,
        operation: Operation,
        gql_name: str | None = None,
    ) -> Item:
        """Fetch one item by id under an access result.

        Raises:
            AccessDeniedError: If the item is excluded by the filter or does not exist
        """

        def deny(reason: str) -> None:
            logger.debug(
                "%s: list=%s id=%s operation=%s access=%s target=%s",
                reason,
                self.key,
                id,
                operation.value,
                access,
                gql_name,
            )
            logger.info("Access denied: list=%s id=%s operation=%s", self.key, id, operation.value)
            self._throw_access_denied(operation, context, gql_name, {"itemId": id})

        item: Item | None = None
        if isinstance(access, Allow):
            item = await self.adapter.find_by_id(id)
        elif not isinstance(access, FilterClause):
            raise TypeError(f"Unexpected access result for {self.key}: {access!r}")
        elif excludes_id(access, id):
            # Answered from the filter alone, without a storage round trip
            deny("Item excluded this id from filters")
        else:
            items = await self.adapter.items_query(
                {"first": 1, "where": {**access.where, "id": id}}
            )
            item = items[0] if items else None

        if item is None:
            deny("Zero items found")
        return item  # type: ignore[return-value]

    async def get_access_controlled_items(self, ids: list[Any], access: AccessResult) -> list[Item]:
        """Fetch the accessible subset of ids; inaccessible or missing ids are dropped silently."""
        if not ids:
            return []
        requested = unique(ids)

        if isinstance(access, Allow):
            return await self.adapter.items_query({"where": {"id_in": requested}})

        if not isinstance(access, FilterClause):
            raise TypeError(f"Unexpected access result for {self.key}: {access!r}")
        where, is_empty = narrow_ids(access, requested)
        if is_empty:
            return []
        return await self.adapter.items_query({"where": where})

    async def read_item_fields(
        self,
        item: Item,
        context: RequestContext,
        paths: list[str] | None = None,
    ) -> FieldReadResult:
        """Apply field-level read access to one item.

        Denied fields do not fail the read: they are reported next to the
        data for the fields the caller may see.
        """
        fields = self._fields_from(paths) if paths is not None else self.fields
        allowed = await gather_settled(
            [
                (
                    context.get_field_access_control_for_user,
                    (self.key, f.path, item, Operation.READ),
                )
                for f in fields
            ]
        )

        result = FieldReadResult(data={"id": item.get("id")})
        for f, is_allowed in zip(fields, allowed):
            if is_allowed:
                result.data[f.path] = item.get(f.path)
                continue
            result.errors.append(
                AccessDeniedError(
                    data={"type": Operation.READ.request_type, "target": f.path},
                    internal_data={
                        "authedId": context.authed_id,
                        "authedListKey": context.authed_list_key,
                        "listKey": self.key,
                        "itemId": item.get("id"),
                    },
                )
            )
        return result

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_query(self, args: dict[str, Any], context: RequestContext) -> list[Item]:
        access = await self.check_list_access(context, Operation.READ, self.names.list_query)
        return await self.adapter.items_query(merge_where_clause(args, access))

    async def list_query_meta(self, args: dict[str, Any], context: RequestContext) -> int:
        """Count of items matching args that the caller may read."""
        access = await self.check_list_access(context, Operation.READ, self.names.list_query_meta)
        meta = await self.adapter.items_query_meta(merge_where_clause(args, access))
        return meta["count"]

    async def list_meta(self, context: RequestContext) -> dict[str, Any]:
        """Describe the list and what the caller may do with it.

        Access values are True, False or the where-clause of a filter.
        """
        operations = list(Operation)
        results = await gather_settled(
            [(context.get_list_access_control_for_user, (self.key, op)) for op in operations]
        )
        access = {
            op.value: (r.where if isinstance(r, FilterClause) else r.allowed)
            for op, r in zip(operations, results)
        }
        return {
            "name": self.key,
            "label": self.names.label,
            "access": access,
            "schema": {
                "type": self.key,
                "key": self.key,
                "queries": [
                    self.names.item_query,
                    self.names.list_query,
                    self.names.list_query_meta,
                    self.names.authenticated_query,
                ],
                "mutations": list(self.mutations),
            },
            "fields": [f.describe() for f in self.fields],
        }

    async def item_query(self, id: Any, context: RequestContext) -> Item:
        operation = Operation.READ
        gql_name = self.names.item_query
        logger.debug("Start query: list=%s id=%s target=%s", self.key, id, gql_name)

        access = await self.check_list_access(context, operation, gql_name, itemId=id)
        result = await self.get_access_controlled_item(id, access, context, operation, gql_name)

        logger.debug("End query: list=%s id=%s target=%s", self.key, id, gql_name)
        return result

    async def authenticated_query(self, context: RequestContext) -> Item | None:
        """The authenticated item, when the caller authenticated against this list."""
        if context.authed_item is None or context.authed_list_key != self.key:
            return None
        access = await self.check_list_access(
            context, Operation.READ, self.names.authenticated_query
        )
        return await self.get_access_controlled_item(
            context.authed_id, access, context, Operation.READ, self.names.authenticated_query
        )

    # ------------------------------------------------------------------
    # Pipeline steps
    # ------------------------------------------------------------------

    async def _resolve_defaults(self, data: Item) -> Item:
        fields = [f for f in self.fields if f.has_default and f.path not in data]
        values = await gather_settled([(f.get_default_value, ()) for f in fields])
        defaults = {f.path: v for f, v in zip(fields, values) if v is not None}
        return {**defaults, **data}

    async def _resolve_relationship(
        self,
        data: Item,
        existing_item: Item | None,
        context: RequestContext,
        local_item: DeferredItemHandle,
        state: MutationContext,
        operation: Operation,
    ) -> Item:
        fields = [f for f in self._fields_from(data) if f.is_relationship]
        values = await gather_settled(
            [
                (
                    f.resolve_nested_operations,  # type: ignore[attr-defined]
                    (data[f.path], existing_item, context, local_item, state, operation),
                )
                for f in fields
            ]
        )
        return {**data, **{f.path: v for f, v in zip(fields, values)}}

    def _register_backlinks(self, existing_item: Item, state: MutationContext) -> None:
        for f in self.relationship_fields:
            f.register_backlink(existing_item, state)

    def _required_errors(self, resolved_data: Item, operation: Operation) -> list[ValidationError]:
        errors = []
        for f in self.fields:
            if not f.is_required or f.is_relationship:
                continue
            if operation is Operation.UPDATE and f.path not in resolved_data:
                continue
            if resolved_data.get(f.path) is None:
                errors.append(
                    ValidationError(
                        message=f'Required field "{f.path}" is null or undefined.',
                        public_data={"path": f.path, "operation": operation.value},
                        field=f.path,
                    )
                )
        return errors

    async def _resolve_and_validate(self, ctx: HookContext) -> HookContext:
        """resolve_input, validate_input and before_change for a create or update."""
        runner = self.engine.hook_runner
        resolved_data = await runner.resolve_input(
            self._fields_from(ctx.resolved_data), self.hooks, ctx
        )
        ctx = replace(ctx, resolved_data=resolved_data)

        await runner.validate(
            HookPhase.VALIDATE_INPUT,
            self._fields_from(resolved_data),
            self.hooks,
            ctx,
            errors=self._required_errors(resolved_data, ctx.operation),
        )
        await runner.run(
            HookPhase.BEFORE_CHANGE, self._fields_from(resolved_data), self.hooks, ctx
        )
        return ctx

    def _after_change(self, ctx: HookContext, updated_item: Item):
        async def after_hook() -> None:
            await self.engine.hook_runner.run(
                HookPhase.AFTER_CHANGE,
                self._fields_from(updated_item),
                self.hooks,
                replace(ctx, updated_item=updated_item),
            )

        return after_hook

    # ------------------------------------------------------------------
    # Single writes
    # ------------------------------------------------------------------

    def _create_write(self, data: Item, context: RequestContext) -> Mutation:
        operation = Operation.CREATE

        async def write(state: MutationContext):
            created = DeferredItemHandle()
            try:
                defaulted = await self._resolve_defaults(data)
                resolved_data = await self._resolve_relationship(
                    defaulted, None, context, created, state, operation
                )
                ctx = self._hook_context(
                    operation, context, resolved_data=resolved_data, original_input=data
                )
                ctx = await self._resolve_and_validate(ctx)
                new_item = await self.adapter.create(ctx.resolved_data)
            except Exception as error:
                # Backlinks waiting on this item fail instead of hanging
                created.reject(error)
                raise
            created.resolve(new_item)
            return new_item, self._after_change(ctx, new_item)

        return write

    def _update_write(
        self,
        id: Any,
        data: Item,
        existing_item: Item,
        context: RequestContext,
    ) -> Mutation:
        operation = Operation.UPDATE

        async def write(state: MutationContext):
            resolved_data = await self._resolve_relationship(
                data,
                existing_item,
                context,
                DeferredItemHandle.resolved(existing_item),
                state,
                operation,
            )
            ctx = self._hook_context(
                operation,
                context,
                resolved_data=resolved_data,
                existing_item=existing_item,
                original_input=data,
            )
            ctx = await self._resolve_and_validate(ctx)
            new_item = await self.adapter.update(id, ctx.resolved_data)
            if new_item is None:
                logger.warning("Item %s:%s vanished before it could be updated", self.key, id)
                return None, None
            return new_item, self._after_change(ctx, new_item)

        return write

    def _delete_write(self, existing_item: Item, context: RequestContext) -> Mutation:
        operation = Operation.DELETE

        async def write(state: MutationContext):
            runner = self.engine.hook_runner
            ctx = self._hook_context(operation, context, existing_item=existing_item)

            await runner.validate(HookPhase.VALIDATE_DELETE, self.fields, self.hooks, ctx)
            await runner.run(
                HookPhase.BEFORE_DELETE, self._fields_from(existing_item), self.hooks, ctx
            )

            result = await self.adapter.delete(existing_item["id"])
            if result is None:
                logger.warning(
                    "Item %s:%s vanished before it could be deleted", self.key, existing_item["id"]
                )
                return None, None
            self._register_backlinks(existing_item, state)

            async def after_hook() -> None:
                await runner.run(
                    HookPhase.AFTER_DELETE, self._fields_from(existing_item), self.hooks, ctx
                )

            return result, after_hook

        return write

    # ------------------------------------------------------------------
    # Mutation entry points
    # ------------------------------------------------------------------

    async def create_mutation(
        self,
        data: Item,
        context: RequestContext,
        mutation_state: MutationContext | None = None,
    ) -> Item:
        operation = Operation.CREATE
        gql_name = self.names.create_mutation

        await self.check_list_access(context, operation, gql_name)
        await self.check_field_access(operation, [(None, data)], context, gql_name)

        return await self.engine.coordinator.run(
            mutation_state, self._create_write(data, context)
        )

    async def create_many_mutation(
        self,
        data: list[Item],
        context: RequestContext,
        mutation_state: MutationContext | None = None,
    ) -> list[Item]:
        operation = Operation.CREATE
        gql_name = self.names.create_many_mutation

        await self.check_list_access(context, operation, gql_name)
        await self.check_field_access(operation, [(None, d) for d in data], context, gql_name)

        return await self.engine.coordinator.run_batch(
            mutation_state, [self._create_write(d, context) for d in data]
        )

    async def update_mutation(
        self,
        id: Any,
        data: Item,
        context: RequestContext,
        mutation_state: MutationContext | None = None,
    ) -> Item | None:
        operation = Operation.UPDATE
        gql_name = self.names.update_mutation
        extra_data = {"itemId": id}

        access = await self.check_list_access(context, operation, gql_name, **extra_data)
        existing_item = await self.get_access_controlled_item(
            id, access, context, operation, gql_name
        )
        await self.check_field_access(
            operation, [(existing_item, data)], context, gql_name, extra_data
        )

        return await self.engine.coordinator.run(
            mutation_state, self._update_write(id, data, existing_item, context)
        )

    async def update_many_mutation(
        self,
        data: list[dict[str, Any]],
        context: RequestContext,
        mutation_state: MutationContext | None = None,
    ) -> list[Item | None]:
        """Update several items: ``data`` is a list of ``{"id": ..., "data": {...}}``.

        Entries whose item is missing or not accessible are skipped.
        """
        operation = Operation.UPDATE
        gql_name = self.names.update_many_mutation
        ids = [d["id"] for d in data]
        extra_data = {"itemId": ids}

        access = await self.check_list_access(context, operation, gql_name, **extra_data)
        existing_items = await self.get_access_controlled_items(ids, access)

        existing_by_id = {item["id"]: item for item in existing_items}
        items_to_update = [
            (existing_by_id[d["id"]], d["data"]) for d in data if d["id"] in existing_by_id
        ]
        await self.check_field_access(operation, items_to_update, context, gql_name, extra_data)

        return await self.engine.coordinator.run_batch(
            mutation_state,
            [
                self._update_write(existing["id"], d, existing, context)
                for existing, d in items_to_update
            ],
        )

    async def delete_mutation(
        self,
        id: Any,
        context: RequestContext,
        mutation_state: MutationContext | None = None,
    ) -> Item | None:
        operation = Operation.DELETE
        gql_name = self.names.delete_mutation

        access = await self.check_list_access(context, operation, gql_name, itemId=id)
        existing_item = await self.get_access_controlled_item(
            id, access, context, operation, gql_name
        )

        return await self.engine.coordinator.run(
            mutation_state, self._delete_write(existing_item, context)
        )

    async def delete_many_mutation(
        self,
        ids: list[Any],
        context: RequestContext,
        mutation_state: MutationContext | None = None,
    ) -> list[Item | None]:
        operation = Operation.DELETE
        gql_name = self.names.delete_many_mutation

        access = await self.check_list_access(context, operation, gql_name, itemIds=ids)
        existing_items = await self.get_access_controlled_items(ids, access)

        return await self.engine.coordinator.run_batch(
            mutation_state, [self._delete_write(item, context) for item in existing_items]
        )

    async def run_mutation(self, name: str, args: dict[str, Any], context: RequestContext) -> Any:
        """Run one of the list's extra mutations.

        Raises:
            ValueError: If the list declares no mutation with this name
        """
        mutation = self.mutations.get(name)
        if mutation is None:
            raise ValueError(f"List '{self.key}' has no mutation '{name}'")
        logger.debug("Running mutation %s on list %s", name, self.key)
        return await maybe_await(mutation.resolver, args, context, HookActions(context))
