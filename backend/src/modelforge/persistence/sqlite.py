"""SQLite persistence store."""

import logging
import re
import sqlite3
from pathlib import Path
from typing import Any

from modelforge.exceptions import PersistenceError

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_DELETE_STAMPS = ("deleted_at", "deleted_by")


def _quote(identifier: str) -> str:
    """Quote a table/column name after checking it is a plain identifier."""
    if not isinstance(identifier, str) or not _IDENTIFIER.match(identifier):
        raise PersistenceError(
            f"Invalid identifier: {identifier!r}", {"identifier": identifier}
        )
    return f'"{identifier}"'


class SQLiteStore:
    """Simple SQLite store for ModelEntity instances.

    One table per model, one column per DB-backed field, ``id`` as the
    primary key. All values are bound as parameters. The connection
    timeout bounds how long a call may block on a locked database.
    """

    def __init__(self, db_path: Path | str = ":memory:", timeout: float = 5.0):
        self.db_path = str(db_path)
        self.timeout = timeout
        self.conn: sqlite3.Connection | None = None

    def connect(self) -> None:
        """Establish database connection."""
        self.conn = sqlite3.connect(
            self.db_path, timeout=self.timeout, check_same_thread=False
        )
        self.conn.row_factory = sqlite3.Row

    def close(self) -> None:
        """Close database connection."""
        if self.conn:
            self.conn.close()
            self.conn = None

    def initialize_model(self, model: Any) -> None:
        """Create the model's table if it doesn't exist."""
        columns = []
        for field in self._db_fields(model):
            col_def = f"{_quote(field.name)} {field.storage_type}"
            if field.name == "id":
                col_def += " PRIMARY KEY"
            columns.append(col_def)

        sql = f"CREATE TABLE IF NOT EXISTS {_quote(model.table)} ({', '.join(columns)})"
        self._execute(sql, [], commit=True)

    # ------------------------------------------------------------------
    # PersistenceStore protocol
    # ------------------------------------------------------------------

    def create(self, model: Any) -> bool:
        fields = self._db_fields(model)
        names = ", ".join(_quote(f.name) for f in fields)
        placeholders = ", ".join("?" for _ in fields)
        values = [f.to_db_value() for f in fields]

        sql = f"INSERT INTO {_quote(model.table)} ({names}) VALUES ({placeholders})"
        cursor = self._execute(sql, values, commit=True)
        return cursor.rowcount == 1

    def update(self, model: Any) -> bool:
        fields = [f for f in self._db_fields(model) if f.name != "id"]
        if not fields:
            return self.retrieve(model) is not None
        return self._update_columns(model, fields)

    def soft_delete(self, model: Any) -> bool:
        fields = [f for f in self._db_fields(model) if f.name in _DELETE_STAMPS]
        if not fields:
            raise PersistenceError(
                f"Model {model.name} has no deleted_at/deleted_by fields to soft delete with",
                {"model": model.name},
            )
        return self._update_columns(model, fields)

    def hard_delete(self, model: Any) -> bool:
        sql = f'DELETE FROM {_quote(model.table)} WHERE "id" = ?'
        cursor = self._execute(sql, [model.get("id")], commit=True)
        return cursor.rowcount > 0

    def retrieve(self, model: Any) -> dict[str, Any] | None:
        sql = f'SELECT * FROM {_quote(model.table)} WHERE "id" = ?'
        row = self._execute(sql, [model.get("id")]).fetchone()
        if row is None:
            return None
        return self._decode(model, row)

    def record_exists(self, field: Any, value: Any, exclude_id: Any = None) -> bool:
        """Check if any row of the field's table holds ``value`` in that column."""
        table = getattr(field, "table_name", None)
        if not table:
            raise PersistenceError(
                f"Field {getattr(field, 'name', field)!r} has no table",
                {"field": getattr(field, "name", None)},
            )

        sql = f"SELECT 1 FROM {_quote(table)} WHERE {_quote(field.name)} = ?"
        params: list[Any] = [value]
        if exclude_id is not None:
            sql += ' AND "id" != ?'
            params.append(exclude_id)
        sql += " LIMIT 1"

        return self._execute(sql, params).fetchone() is not None

    def find(
        self,
        model: Any,
        criteria: dict[str, Any] | None = None,
        order_by: list[dict[str, str]] | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        """Query rows by equality criteria.

        ``None`` matches NULL, a list or tuple matches any of its values.
        ``order_by`` is a list of ``{"field": name, "direction": "asc"|"desc"}``.
        """
        known = {f.name for f in self._db_fields(model)}

        conditions: list[str] = []
        params: list[Any] = []
        for name, value in (criteria or {}).items():
            column = self._known_column(model, name, known)
            if value is None:
                conditions.append(f"{column} IS NULL")
            elif isinstance(value, (list, tuple)):
                if not value:
                    conditions.append("0 = 1")
                    continue
                conditions.append(f"{column} IN ({', '.join('?' for _ in value)})")
                params.extend(value)
            else:
                conditions.append(f"{column} = ?")
                params.append(value)

        sql = f"SELECT * FROM {_quote(model.table)}"
        if conditions:
            sql += " WHERE " + " AND ".join(conditions)

        if order_by:
            order_parts = []
            for s in order_by:
                column = self._known_column(model, s.get("field", ""), known)
                direction = "DESC" if str(s.get("direction", "")).lower() == "desc" else "ASC"
                order_parts.append(f"{column} {direction}")
            sql += " ORDER BY " + ", ".join(order_parts)

        if limit is not None:
            sql += " LIMIT ? OFFSET ?"
            params.extend([int(limit), int(offset)])
        elif offset:
            sql += " LIMIT -1 OFFSET ?"
            params.append(int(offset))

        rows = self._execute(sql, params).fetchall()
        return [self._decode(model, row) for row in rows]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _db_fields(self, model: Any) -> list[Any]:
        return [f for f in model.fields.values() if f.is_db_field]

    def _known_column(self, model: Any, name: str, known: set[str]) -> str:
        if name not in known:
            raise PersistenceError(
                f"Unknown field '{name}' for model {model.name}",
                {"model": model.name, "field": name},
            )
        return _quote(name)

    def _update_columns(self, model: Any, fields: list[Any]) -> bool:
        set_clause = ", ".join(f"{_quote(f.name)} = ?" for f in fields)
        values = [f.to_db_value() for f in fields]
        values.append(model.get("id"))

        sql = f'UPDATE {_quote(model.table)} SET {set_clause} WHERE "id" = ?'
        cursor = self._execute(sql, values, commit=True)
        return cursor.rowcount > 0

    def _decode(self, model: Any, row: sqlite3.Row) -> dict[str, Any]:
        result = {}
        for name in row.keys():
            field = model.fields.get(name)
            result[name] = field.from_db_value(row[name]) if field is not None else row[name]
        return result

    def _execute(self, sql: str, params: list[Any], commit: bool = False) -> sqlite3.Cursor:
        if not self.conn:
            raise PersistenceError("Database not connected", {"db_path": self.db_path})

        logger.debug("SQL: %s | params=%d", sql, len(params))
        try:
            cursor = self.conn.execute(sql, params)
            if commit:
                self.conn.commit()
        except sqlite3.Error as exc:
            if commit:
                self.conn.rollback()
            raise PersistenceError(f"SQLite error: {exc}", {"sql": sql}) from exc
        return cursor
