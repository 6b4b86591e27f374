from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Iterable, Sequence

from sqlalchemy import Date, DateTime, Table, and_, delete, func, insert, select, update
from sqlalchemy.exc import SQLAlchemyError

from portal.extensions import Database

from .errors import BackendError, RowNotFound, db_error_message

log = logging.getLogger(__name__)


def _coerce(column, value: Any) -> Any:
    """Accept ISO strings for date/datetime columns, as a hosted row API would."""
    if isinstance(value, str):
        if isinstance(column.type, Date) and not isinstance(column.type, DateTime):
            try:
                return date.fromisoformat(value)
            except ValueError as e:
                raise BackendError(f"Invalid date for {column.name!r}: {value!r}") from e
        if isinstance(column.type, DateTime):
            try:
                return datetime.fromisoformat(value)
            except ValueError as e:
                raise BackendError(f"Invalid timestamp for {column.name!r}: {value!r}") from e
    return value


class TableQuery:
    """Filter/read/write builder over one named table.

    Filters accumulate with ``eq``/``in_`` and apply to every read and to
    ``update``/``delete``. Rows come back as plain dicts.
    """

    def __init__(self, database: Database, table: Table):
        self._db = database
        self._table = table
        self._filters: list = []
        self._order: list = []
        self._limit: int | None = None

    @property
    def name(self) -> str:
        return self._table.name

    def _column(self, name: str):
        try:
            return self._table.c[name]
        except KeyError:
            raise BackendError(f"Unknown column {name!r} on table {self.name!r}") from None

    def _values(self, row: dict[str, Any]) -> dict[str, Any]:
        return {key: _coerce(self._column(key), value) for key, value in row.items()}

    # --- filters ---

    def eq(self, column: str, value: Any) -> "TableQuery":
        col = self._column(column)
        self._filters.append(col == _coerce(col, value))
        return self

    def in_(self, column: str, values: Iterable[Any]) -> "TableQuery":
        col = self._column(column)
        self._filters.append(col.in_([_coerce(col, v) for v in values]))
        return self

    def order(self, column: str, desc: bool = False) -> "TableQuery":
        col = self._column(column)
        self._order.append(col.desc() if desc else col.asc())
        return self

    def limit(self, n: int) -> "TableQuery":
        self._limit = n
        return self

    def _where(self):
        return and_(*self._filters) if self._filters else None

    def _select(self):
        stmt = select(self._table)
        if self._filters:
            stmt = stmt.where(self._where())
        if self._order:
            stmt = stmt.order_by(*self._order)
        else:
            stmt = stmt.order_by(self._table.c.id)
        if self._limit is not None:
            stmt = stmt.limit(self._limit)
        return stmt

    def _rows_by_id(self, conn, ids: Sequence[int]) -> list[dict[str, Any]]:
        if not ids:
            return []
        rows = conn.execute(select(self._table).where(self._table.c.id.in_(ids))).mappings().all()
        by_id = {row["id"]: dict(row) for row in rows}
        return [by_id[i] for i in ids if i in by_id]

    # --- reads ---

    def execute(self) -> list[dict[str, Any]]:
        try:
            with self._db.engine.connect() as conn:
                return [dict(row) for row in conn.execute(self._select()).mappings().all()]
        except SQLAlchemyError as e:
            raise BackendError(f"Query on {self.name!r} failed: {db_error_message(e)}") from e

    def single(self) -> dict[str, Any]:
        rows = self.execute()
        if not rows:
            raise RowNotFound(f"No matching row in {self.name!r}")
        if len(rows) > 1:
            raise BackendError(f"Expected a single row from {self.name!r}, got {len(rows)}")
        return rows[0]

    def maybe_single(self) -> dict[str, Any] | None:
        try:
            return self.single()
        except RowNotFound:
            return None

    def count(self) -> int:
        stmt = select(func.count()).select_from(self._table)
        if self._filters:
            stmt = stmt.where(self._where())
        try:
            with self._db.engine.connect() as conn:
                return int(conn.execute(stmt).scalar_one())
        except SQLAlchemyError as e:
            raise BackendError(f"Count on {self.name!r} failed: {db_error_message(e)}") from e

    # --- writes ---

    def insert(self, rows: dict[str, Any] | list[dict[str, Any]]) -> list[dict[str, Any]]:
        if isinstance(rows, dict):
            rows = [rows]
        try:
            with self._db.engine.begin() as conn:
                ids = []
                for row in rows:
                    result = conn.execute(insert(self._table).values(**self._values(row)))
                    ids.append(result.inserted_primary_key[0])
                log.debug("Inserted %d row(s) into %s", len(ids), self.name)
                return self._rows_by_id(conn, ids)
        except SQLAlchemyError as e:
            raise BackendError(f"Insert into {self.name!r} failed: {db_error_message(e)}") from e

    def update(self, values: dict[str, Any]) -> list[dict[str, Any]]:
        if not self._filters:
            raise BackendError("update requires at least one filter")
        values = self._values(values)
        try:
            with self._db.engine.begin() as conn:
                ids = list(conn.execute(select(self._table.c.id).where(self._where())).scalars())
                if ids:
                    conn.execute(update(self._table).where(self._table.c.id.in_(ids)).values(**values))
                log.debug("Updated %d row(s) in %s", len(ids), self.name)
                return self._rows_by_id(conn, ids)
        except SQLAlchemyError as e:
            raise BackendError(f"Update of {self.name!r} failed: {db_error_message(e)}") from e

    def delete(self) -> int:
        if not self._filters:
            raise BackendError("delete requires at least one filter")
        try:
            with self._db.engine.begin() as conn:
                result = conn.execute(delete(self._table).where(self._where()))
                log.debug("Deleted %d row(s) from %s", result.rowcount, self.name)
                return result.rowcount
        except SQLAlchemyError as e:
            raise BackendError(f"Delete from {self.name!r} failed: {db_error_message(e)}") from e

    def upsert(
        self,
        rows: dict[str, Any] | list[dict[str, Any]],
        on_conflict: Sequence[str] = ("id",),
    ) -> list[dict[str, Any]]:
        """Insert rows, or update the existing row sharing the ``on_conflict`` key.

        The whole batch runs in one transaction.
        """
        if isinstance(rows, dict):
            rows = [rows]
        key_columns = [self._column(name) for name in on_conflict]
        try:
            with self._db.engine.begin() as conn:
                ids = []
                for row in rows:
                    values = self._values(row)
                    missing = [c.name for c in key_columns if c.name not in values]
                    if missing:
                        raise BackendError(f"Upsert row is missing conflict column(s): {', '.join(missing)}")
                    match = and_(*[c == values[c.name] for c in key_columns])
                    existing = conn.execute(select(self._table.c.id).where(match)).scalar()
                    if existing is None:
                        result = conn.execute(insert(self._table).values(**values))
                        ids.append(result.inserted_primary_key[0])
                    else:
                        changes = {k: v for k, v in values.items() if k != "id"}
                        if changes:
                            conn.execute(update(self._table).where(self._table.c.id == existing).values(**changes))
                        ids.append(existing)
                log.debug("Upserted %d row(s) into %s on %s", len(ids), self.name, ",".join(on_conflict))
                return self._rows_by_id(conn, ids)
        except SQLAlchemyError as e:
            raise BackendError(f"Upsert into {self.name!r} failed: {db_error_message(e)}") from e
