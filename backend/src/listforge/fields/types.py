"""Scalar field types and the field type registry."""

from __future__ import annotations

from typing import Any

from listforge.fields.base import Field
from listforge.hooks.types import HookContext


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class Text(Field):
    type_name = "text"
    storage_type = "TEXT"

    def validate_input(self, ctx: HookContext) -> None:
        value = (ctx.resolved_data or {}).get(self.path)
        if value is not None and not isinstance(value, str):
            ctx.add_validation_error(
                f"{self.path} must be a string",
                data={"value": value},
            )


class Integer(Field):
    type_name = "integer"
    storage_type = "INTEGER"

    def resolve_input(self, ctx: HookContext) -> Any:
        value = (ctx.resolved_data or {}).get(self.path)
        # Whole floats (e.g. 3.0 from JSON) become ints
        if isinstance(value, float) and value.is_integer():
            return int(value)
        return value

    def validate_input(self, ctx: HookContext) -> None:
        value = (ctx.resolved_data or {}).get(self.path)
        if value is not None and not (isinstance(value, int) and not isinstance(value, bool)):
            ctx.add_validation_error(
                f"{self.path} must be an integer",
                data={"value": value},
            )


class Float(Field):
    type_name = "float"
    storage_type = "REAL"

    def resolve_input(self, ctx: HookContext) -> Any:
        value = (ctx.resolved_data or {}).get(self.path)
        if _is_number(value):
            return float(value)
        return value

    def validate_input(self, ctx: HookContext) -> None:
        value = (ctx.resolved_data or {}).get(self.path)
        if value is not None and not _is_number(value):
            ctx.add_validation_error(
                f"{self.path} must be a number",
                data={"value": value},
            )


class Checkbox(Field):
    type_name = "checkbox"
    storage_type = "INTEGER"

    def validate_input(self, ctx: HookContext) -> None:
        value = (ctx.resolved_data or {}).get(self.path)
        if value is not None and not isinstance(value, bool):
            ctx.add_validation_error(
                f"{self.path} must be true or false",
                data={"value": value},
            )


class Select(Field):
    """A text value restricted to a declared set of options.

    Options may be plain strings or ``{"value": ..., "label": ...}`` mappings.
    """

    type_name = "select"
    storage_type = "TEXT"

    def __init__(self, path: str, config: dict[str, Any], **kwargs: Any):
        super().__init__(path, config, **kwargs)
        options = config.get("options")
        if not options:
            raise ValueError(f"Select field '{self.list_key}.{path}' requires options")
        self.options = [
            o if isinstance(o, dict) else {"value": o, "label": str(o)} for o in options
        ]

    @property
    def values(self) -> list[Any]:
        return [o["value"] for o in self.options]

    def describe(self) -> dict[str, Any]:
        return {**super().describe(), "options": self.values}

    def validate_input(self, ctx: HookContext) -> None:
        value = (ctx.resolved_data or {}).get(self.path)
        if value is not None and value not in self.values:
            ctx.add_validation_error(
                f"{self.path} must be one of: {', '.join(str(v) for v in self.values)}",
                data={"value": value},
            )


FIELD_TYPES: dict[str, type[Field]] = {
    "text": Text,
    "integer": Integer,
    "float": Float,
    "checkbox": Checkbox,
    "select": Select,
}


def register_field_type(name: str, field_class: type[Field]) -> None:
    FIELD_TYPES[name.lower()] = field_class


def get_field_type(name: str) -> type[Field]:
    """Get a field class by type name (case-insensitive)."""
    field_class = FIELD_TYPES.get(name.lower())
    if field_class is None:
        raise ValueError(
            f"Unknown field type '{name}'. "
            f"Available types: {', '.join(sorted(FIELD_TYPES))}"
        )
    return field_class


def get_storage_type(name: str) -> str:
    return get_field_type(name).storage_type
