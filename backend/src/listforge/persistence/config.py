"""Database configuration and adapter factory."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from listforge.persistence.adapter import StorageAdapter


@dataclass
class DatabaseConfig:
    """Storage configuration.

    Supports memory:// and sqlite:/// URL schemes.
    """

    url: str = "memory://"

    @classmethod
    def from_env(cls) -> DatabaseConfig:
        """Create config from environment variables.

        Resolution order:
        1. DATABASE_URL env var (standard)
        2. LISTFORGE_DB_PATH env var (converted to a sqlite:/// URL)
        3. Default: memory://
        """
        url = os.environ.get("DATABASE_URL")
        if url:
            return cls(url=url)

        db_path = os.environ.get("LISTFORGE_DB_PATH")
        if db_path:
            return cls(url=f"sqlite:///{db_path}")

        return cls()

    @property
    def is_memory(self) -> bool:
        return self.url.startswith("memory")

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")


def create_adapter(config: DatabaseConfig) -> StorageAdapter:
    """Create a storage adapter based on the database URL scheme.

    Args:
        config: Database configuration with URL.

    Returns:
        A StorageAdapter instance (not yet connected).

    Raises:
        ValueError: For unsupported URL schemes.
    """
    if config.is_memory:
        from listforge.persistence.memory import MemoryAdapter

        return MemoryAdapter()

    if config.is_sqlite:
        from listforge.persistence.sqlite import SQLiteAdapter

        # Extract path from sqlite:///path
        db_path = config.url.replace("sqlite:///", "", 1)
        if not db_path or db_path == config.url:
            db_path = ":memory:"
        return SQLiteAdapter(db_path)

    raise ValueError(f"Unsupported database URL scheme: {config.url}")
