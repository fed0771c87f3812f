"""listforge: a per-list CRUD execution engine.

Typical use:

    from listforge import Engine
    from listforge.persistence import MemoryAdapter

    engine = Engine(MemoryAdapter())
    engine.create_list("Post", {"fields": {"title": {"type": "text", "required": True}}})
    await engine.initialize()

    context = engine.create_context()
    post = await engine.get_list_by_key("Post").create_mutation({"title": "Hello"}, context)
"""

from listforge.engine import Engine
from listforge.errors import (
    AccessDeniedError,
    ListforgeError,
    StorageError,
    ValidationError,
    ValidationFailureError,
)

__version__ = "0.1.0"

__all__ = [
    "AccessDeniedError",
    "Engine",
    "ListforgeError",
    "StorageError",
    "ValidationError",
    "ValidationFailureError",
]
