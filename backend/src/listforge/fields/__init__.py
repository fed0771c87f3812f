"""Field definitions: scalar types and relationships."""

from listforge.fields.base import Field
from listforge.fields.relationship import Relationship
from listforge.fields.types import (
    FIELD_TYPES,
    Checkbox,
    Float,
    Integer,
    Select,
    Text,
    get_field_type,
    get_storage_type,
    register_field_type,
)

__all__ = [
    "FIELD_TYPES",
    "Checkbox",
    "Field",
    "Float",
    "Integer",
    "Relationship",
    "Select",
    "Text",
    "get_field_type",
    "get_storage_type",
    "register_field_type",
]
