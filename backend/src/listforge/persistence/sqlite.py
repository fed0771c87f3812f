"""SQLite persistence adapter."""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from pathlib import Path
from typing import TYPE_CHECKING, Any, Sequence

from listforge.errors import StorageError
from listforge.persistence.where import parse_key, parse_order_by

if TYPE_CHECKING:
    from listforge.fields.base import Field

logger = logging.getLogger(__name__)


def _quote(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


class SQLiteListAdapter:
    """One table per list; to-many relationships are stored as JSON arrays."""

    def __init__(self, storage: "SQLiteAdapter", list_key: str, fields: Sequence["Field"]):
        self.storage = storage
        self.list_key = list_key
        self.fields = list(fields)
        self.field_paths = [f.path for f in self.fields]
        self.json_paths = {f.path for f in self.fields if getattr(f, "many", False)}
        self.bool_paths = {f.path for f in self.fields if f.type_name == "checkbox"}
        self.search_paths = [f.path for f in self.fields if f.type_name in ("text", "select")]
        self.table = _quote(list_key)

    @property
    def conn(self) -> sqlite3.Connection:
        if not self.storage.conn:
            raise RuntimeError("Database not connected")
        return self.storage.conn

    def initialize(self) -> None:
        """Create the list's table if it doesn't exist."""
        columns = ["id TEXT PRIMARY KEY"]
        columns += [f"{_quote(f.path)} {f.storage_type}" for f in self.fields]
        self.conn.execute(f"CREATE TABLE IF NOT EXISTS {self.table} ({', '.join(columns)})")
        self.conn.commit()

    # ------------------------------------------------------------------
    # Value conversion
    # ------------------------------------------------------------------

    def _to_db(self, path: str, value: Any) -> Any:
        if value is None:
            return None
        if path in self.json_paths:
            return json.dumps(list(value))
        if isinstance(value, bool):
            return int(value)
        return value

    def _from_row(self, row: sqlite3.Row) -> dict[str, Any]:
        item = dict(row)
        for path in self.json_paths:
            item[path] = json.loads(item[path]) if item.get(path) else []
        for path in self.bool_paths:
            if item.get(path) is not None:
                item[path] = bool(item[path])
        return item

    def _param(self, path: str, value: Any) -> Any:
        if isinstance(value, bool):
            return int(value)
        return value

    # ------------------------------------------------------------------
    # Query building
    # ------------------------------------------------------------------

    def _build_condition(self, key: str, value: Any) -> tuple[str, list[Any]]:
        path, op = parse_key(key, self.field_paths)
        col = _quote(path)

        if path in self.json_paths and op in ("contains", "not_contains"):
            sql = f"EXISTS (SELECT 1 FROM json_each({col}) WHERE json_each.value = ?)"
            if op == "not_contains":
                sql = f"NOT {sql}"
            return sql, [value]

        if op == "eq":
            if value is None:
                return f"{col} IS NULL", []
            return f"{col} = ?", [self._param(path, value)]
        if op == "not":
            if value is None:
                return f"{col} IS NOT NULL", []
            return f"({col} IS NULL OR {col} != ?)", [self._param(path, value)]
        if op in ("in", "not_in"):
            values = [self._param(path, v) for v in (value or [])]
            if not values:
                return ("0", []) if op == "in" else ("1", [])
            placeholders = ", ".join("?" for _ in values)
            if op == "in":
                return f"{col} IN ({placeholders})", values
            return f"({col} IS NULL OR {col} NOT IN ({placeholders}))", values
        if op in ("lt", "lte", "gt", "gte"):
            sql_op = {"lt": "<", "lte": "<=", "gt": ">", "gte": ">="}[op]
            return f"{col} {sql_op} ?", [self._param(path, value)]
        if op == "contains":
            return f"instr({col}, ?) > 0", [value]
        if op == "not_contains":
            return f"({col} IS NULL OR instr({col}, ?) = 0)", [value]
        if op == "starts_with":
            return f"instr({col}, ?) = 1", [value]
        if op == "ends_with":
            return f"(length(?) = 0 OR substr({col}, -length(?)) = ?)", [value, value, value]
        if op == "i":
            return f"LOWER({col}) = LOWER(?)", [value]
        raise ValueError(f"Unsupported where operator '{op}'")

    def _build_where(self, where: dict[str, Any] | None) -> tuple[str, list[Any]]:
        if not where:
            return "", []
        conditions: list[str] = []
        values: list[Any] = []
        for key, value in where.items():
            if key in ("AND", "OR"):
                parts = [self._build_where(clause) for clause in value]
                parts = [(sql, vals) for sql, vals in parts if sql]
                if not parts:
                    continue
                joiner = f" {key} "
                conditions.append("(" + joiner.join(sql for sql, _ in parts) + ")")
                for _, vals in parts:
                    values.extend(vals)
            else:
                sql, vals = self._build_condition(key, value)
                conditions.append(sql)
                values.extend(vals)
        return " AND ".join(conditions), values

    def _build_query(self, args: dict[str, Any]) -> tuple[str, list[Any]]:
        where_sql, values = self._build_where(args.get("where"))
        conditions = [where_sql] if where_sql else []

        search = args.get("search")
        if search and self.search_paths:
            conditions.append(
                "("
                + " OR ".join(
                    f"instr(LOWER({_quote(p)}), LOWER(?)) > 0" for p in self.search_paths
                )
                + ")"
            )
            values.extend(search for _ in self.search_paths)

        sql = f"SELECT * FROM {self.table}"
        if conditions:
            sql += f" WHERE {' AND '.join(conditions)}"

        order_by = args.get("order_by")
        if order_by:
            path, descending = parse_order_by(order_by)
            col = _quote(parse_key(path, self.field_paths)[0])
            sql += f" ORDER BY {col} IS NULL, {col} {'DESC' if descending else 'ASC'}"

        first = args.get("first")
        skip = args.get("skip")
        if first is not None or skip:
            sql += " LIMIT ? OFFSET ?"
            values.extend([first if first is not None else -1, skip or 0])
        return sql, values

    def _execute(self, sql: str, values: Sequence[Any] = ()) -> sqlite3.Cursor:
        try:
            return self.conn.execute(sql, list(values))
        except sqlite3.Error as e:
            logger.error("SQLite error on %s: %s", self.list_key, e)
            raise StorageError(
                f"Storage operation on '{self.list_key}' failed",
                internal_data={"sql": sql, "error": str(e)},
            ) from e

    # ------------------------------------------------------------------
    # ListAdapter
    # ------------------------------------------------------------------

    async def find_by_id(self, id: Any) -> dict[str, Any] | None:
        row = self._execute(f"SELECT * FROM {self.table} WHERE id = ?", [id]).fetchone()
        return self._from_row(row) if row else None

    async def items_query(self, args: dict[str, Any]) -> list[dict[str, Any]]:
        sql, values = self._build_query(args)
        return [self._from_row(row) for row in self._execute(sql, values).fetchall()]

    async def items_query_meta(self, args: dict[str, Any]) -> dict[str, int]:
        sql, values = self._build_query(args)
        row = self._execute(f"SELECT COUNT(*) FROM ({sql})", values).fetchone()
        return {"count": row[0] if row else 0}

    async def create(self, data: dict[str, Any]) -> dict[str, Any]:
        item_id = data.get("id") or str(uuid.uuid4())
        paths = [p for p in self.field_paths if p in data]
        columns = ["id"] + [_quote(p) for p in paths]
        values = [item_id] + [self._to_db(p, data[p]) for p in paths]
        placeholders = ", ".join("?" for _ in columns)

        self._execute(
            f"INSERT INTO {self.table} ({', '.join(columns)}) VALUES ({placeholders})",
            values,
        )
        self.conn.commit()
        return await self.find_by_id(item_id)  # type: ignore[return-value]

    async def update(self, id: Any, data: dict[str, Any]) -> dict[str, Any] | None:
        paths = [p for p in self.field_paths if p in data]
        if not paths:
            return await self.find_by_id(id)

        set_clause = ", ".join(f"{_quote(p)} = ?" for p in paths)
        values = [self._to_db(p, data[p]) for p in paths] + [id]
        cursor = self._execute(f"UPDATE {self.table} SET {set_clause} WHERE id = ?", values)
        self.conn.commit()
        if cursor.rowcount == 0:
            return None
        return await self.find_by_id(id)

    async def delete(self, id: Any) -> dict[str, Any] | None:
        item = await self.find_by_id(id)
        if item is None:
            return None
        self._execute(f"DELETE FROM {self.table} WHERE id = ?", [id])
        self.conn.commit()
        return item


class SQLiteAdapter:
    """Simple SQLite storage adapter sharing one connection across lists."""

    name = "sqlite"

    def __init__(self, db_path: Path | str = ":memory:"):
        self.db_path = str(db_path)
        self.conn: sqlite3.Connection | None = None
        self.list_adapters: dict[str, SQLiteListAdapter] = {}

    async def connect(self) -> None:
        """Open the connection and create a table for every list."""
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        for list_adapter in self.list_adapters.values():
            list_adapter.initialize()
        logger.info("Connected to SQLite database %s", self.db_path)

    async def disconnect(self) -> None:
        if self.conn:
            self.conn.close()
            self.conn = None

    def new_list_adapter(self, list_key: str, fields: Sequence["Field"]) -> SQLiteListAdapter:
        list_adapter = SQLiteListAdapter(self, list_key, fields)
        self.list_adapters[list_key] = list_adapter
        return list_adapter
