"""Environment-driven engine configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from listforge.engine import Engine
from listforge.metadata.loader import ListMetadataLoader
from listforge.persistence.config import DatabaseConfig, create_adapter

TRUE_VALUES = ("1", "true", "yes", "on")
FALSE_VALUES = ("0", "false", "no", "off")


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    lowered = value.strip().lower()
    if lowered in TRUE_VALUES:
        return True
    if lowered in FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be true or false, got '{value}'")


@dataclass
class EngineConfig:
    """Everything needed to build an Engine.

    Attributes:
        metadata_path: Directory holding lists/*.yaml
        database: Storage configuration
        default_list_access: Access applied to lists that declare none
        default_field_access: Access applied to fields that declare none
    """

    metadata_path: Path
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    default_list_access: bool = True
    default_field_access: bool = True

    @classmethod
    def from_env(cls, base_path: Path | None = None) -> EngineConfig:
        """Create config from environment variables.

        LISTFORGE_METADATA_PATH defaults to <base_path>/metadata. Storage is
        read by DatabaseConfig.from_env (DATABASE_URL / LISTFORGE_DB_PATH).
        """
        base_path = base_path or Path.cwd()
        metadata_path = os.environ.get("LISTFORGE_METADATA_PATH")
        return cls(
            metadata_path=Path(metadata_path) if metadata_path else base_path / "metadata",
            database=DatabaseConfig.from_env(),
            default_list_access=_env_bool("LISTFORGE_DEFAULT_LIST_ACCESS", True),
            default_field_access=_env_bool("LISTFORGE_DEFAULT_FIELD_ACCESS", True),
        )

    def create_engine(self) -> Engine:
        """An engine with no lists, backed by the configured storage."""
        return Engine(
            create_adapter(self.database),
            default_access={
                "list": self.default_list_access,
                "field": self.default_field_access,
            },
        )

    def build_engine(self) -> Engine:
        """An engine with every list found under metadata_path registered."""
        engine = self.create_engine()
        loader = ListMetadataLoader(self.metadata_path)
        loader.load_all()
        loader.register_lists(engine)
        return engine
