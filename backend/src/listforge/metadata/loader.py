"""Load list definitions from YAML files.

Each file under ``<metadata>/lists/`` declares one list:

    list: Post
    labelField: title
    access:
      read: true
      update: isAuthor          # name of a registered access rule
      delete: false
    hooks:
      validateInput: noEmptyTitles
    fields:
      - name: title
        type: text
        required: true
      - name: author
        type: relationship
        ref: User.posts
      - name: status
        type: select
        options: [draft, published]
        default: draft
    mutations:
      - name: publishPost
        resolver: publishPost   # registered with @hook

Hooks, mutation resolvers and computed access rules are referenced by name;
the callables must be registered with @hook / @access_rule before
register_lists() runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from listforge.access.rules import OPERATION_KEYS
from listforge.fields.types import FIELD_TYPES
from listforge.hooks.registry import AccessRuleRegistry, HookRegistry

if TYPE_CHECKING:
    from listforge.engine import Engine

logger = logging.getLogger(__name__)


@dataclass
class FieldConfig:
    name: str
    type: str
    required: bool = False
    default: Any = None
    ref: str | None = None
    many: bool = False
    options: list[Any] | None = None
    access: Any = None
    hooks: dict[str, str] = field(default_factory=dict)
    doc: str | None = None


@dataclass
class ListConfig:
    key: str
    fields: list[FieldConfig]
    access: Any = None
    hooks: dict[str, str] = field(default_factory=dict)
    mutations: list[dict[str, Any]] = field(default_factory=list)
    label_field: str | None = None
    singular: str | None = None
    plural: str | None = None
    doc: str | None = None
    source: Path | None = None

    @property
    def relationships(self) -> list[FieldConfig]:
        return [f for f in self.fields if f.type == "relationship"]


def _resolve_rule(rule: Any) -> Any:
    """Replace a named access rule with its registered callable."""
    if isinstance(rule, str):
        return AccessRuleRegistry.get(rule)
    return rule


def _resolve_access(access: Any) -> Any:
    if isinstance(access, str):
        return _resolve_rule(access)
    if isinstance(access, dict) and access and set(access) <= OPERATION_KEYS:
        return {op: _resolve_rule(rule) for op, rule in access.items()}
    return access


def _resolve_hooks(hooks: dict[str, str]) -> dict[str, Any]:
    return {phase: HookRegistry.get(name) for phase, name in hooks.items()}


def to_engine_config(config: ListConfig) -> dict[str, Any]:
    """Convert a loaded ListConfig into the mapping Engine.create_list accepts.

    Raises:
        ValueError: If a referenced hook or access rule is not registered
    """
    fields: dict[str, dict[str, Any]] = {}
    for f in config.fields:
        field_config: dict[str, Any] = {
            "type": f.type,
            "required": f.required,
            "default": f.default,
            "access": _resolve_access(f.access),
            "hooks": _resolve_hooks(f.hooks),
            "doc": f.doc,
        }
        if f.ref is not None:
            field_config["ref"] = f.ref
            field_config["many"] = f.many
        if f.options is not None:
            field_config["options"] = f.options
        fields[f.name] = field_config

    return {
        "fields": fields,
        "access": _resolve_access(config.access),
        "hooks": _resolve_hooks(config.hooks),
        "mutations": [
            {"name": m.get("name"), "resolver": HookRegistry.get(m.get("resolver")), "doc": m.get("doc")}
            for m in config.mutations
        ],
        "label_field": config.label_field,
        "singular": config.singular,
        "plural": config.plural,
        "doc": config.doc,
    }


class ListMetadataLoader:
    """Loads list definitions from YAML files."""

    def __init__(self, metadata_path: Path):
        self.metadata_path = Path(metadata_path)
        self.lists: dict[str, ListConfig] = {}

    def load_all(self) -> None:
        """Load every list definition under <metadata>/lists."""
        lists_path = self.metadata_path / "lists"
        if not lists_path.exists():
            logger.warning("No lists directory found at %s", lists_path)
            return

        for yaml_file in sorted(lists_path.glob("*.yaml")):
            with open(yaml_file) as f:
                data = yaml.safe_load(f)
            if not data or "list" not in data:
                logger.debug("Skipping %s: no 'list' key", yaml_file.name)
                continue
            config = self._resolve_list(data, yaml_file)
            if config.key in self.lists:
                raise ValueError(
                    f"List '{config.key}' is declared twice "
                    f"({self.lists[config.key].source} and {yaml_file})"
                )
            self.lists[config.key] = config

    def _resolve_list(self, data: dict, source: Path) -> ListConfig:
        key = data["list"]
        fields = [self._resolve_field(key, f) for f in data.get("fields") or []]
        return ListConfig(
            key=key,
            fields=fields,
            access=data.get("access"),
            hooks=dict(data.get("hooks") or {}),
            mutations=list(data.get("mutations") or []),
            label_field=data.get("labelField"),
            singular=data.get("singular"),
            plural=data.get("plural"),
            doc=data.get("doc"),
            source=source,
        )

    def _resolve_field(self, list_key: str, data: dict) -> FieldConfig:
        if "name" not in data:
            raise ValueError(f"List '{list_key}' has a field without a name")
        return FieldConfig(
            name=data["name"],
            type=str(data.get("type", "text")).lower(),
            required=bool(data.get("required", False)),
            default=data.get("default"),
            ref=data.get("ref"),
            many=bool(data.get("many", False)),
            options=data.get("options"),
            access=data.get("access"),
            hooks=dict(data.get("hooks") or {}),
            doc=data.get("doc"),
        )

    def validate(self) -> list[str]:
        """Check loaded definitions for structural errors.

        Hook and access rule names are not checked here: they are only
        registered once the application starts.
        """
        errors: list[str] = []
        for key, config in self.lists.items():
            if not config.fields:
                errors.append(f"List '{key}' declares no fields")

            seen: set[str] = set()
            for f in config.fields:
                where = f"{key}.{f.name}"
                if f.name == "id":
                    errors.append(f"{where}: 'id' is reserved")
                if f.name in seen:
                    errors.append(f"{where}: declared twice")
                seen.add(f.name)

                if f.type not in FIELD_TYPES:
                    errors.append(f"{where}: unknown field type '{f.type}'")
                if f.type == "select" and not f.options:
                    errors.append(f"{where}: select fields require options")
                if f.type == "relationship":
                    errors.extend(self._validate_ref(where, f))
            errors.extend(self._validate_mutations(key, config))
        return errors

    def _validate_mutations(self, key: str, config: ListConfig) -> list[str]:
        errors = []
        seen: set[str] = set()
        for m in config.mutations:
            name = m.get("name") if isinstance(m, dict) else None
            if not name:
                errors.append(f"List '{key}' declares a mutation without a name")
                continue
            if name in seen:
                errors.append(f"{key}.{name}: mutation declared twice")
            seen.add(name)
            if not m.get("resolver"):
                errors.append(f"{key}.{name}: mutations require a 'resolver'")
        return errors

    def _validate_ref(self, where: str, f: FieldConfig) -> list[str]:
        if not f.ref:
            return [f"{where}: relationship fields require a 'ref'"]
        ref_list, _, ref_field = f.ref.partition(".")
        target = self.lists.get(ref_list)
        if target is None:
            return [f"{where}: refers to unknown list '{ref_list}'"]
        if ref_field:
            inverse = next((x for x in target.fields if x.name == ref_field), None)
            if inverse is None or inverse.type != "relationship":
                return [f"{where}: '{f.ref}' is not a relationship field"]
        return []

    def get_list(self, key: str) -> ListConfig | None:
        return self.lists.get(key)

    def list_keys(self) -> list[str]:
        return list(self.lists.keys())

    def register_lists(self, engine: "Engine") -> None:
        """Create every loaded list on the engine."""
        for config in self.lists.values():
            engine.create_list(config.key, to_engine_config(config))
        logger.info("Registered %d list(s) from %s", len(self.lists), self.metadata_path)
