"""Thin query layer over the async engine.

Repositories never build SQL themselves: they describe what they need with
plain table/column names and the filter helpers below, and the row store turns
that into SQLAlchemy Core statements. Rows come back as ``dict`` objects.

Every backend failure is re-raised as :class:`QueryFailed` carrying the
driver's message, and a store built without an engine raises
:class:`BackendUnavailable` on every call.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Sequence

from sqlalchemy import Table, func, insert as sa_insert, select as sa_select, update as sa_update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from app.core.exceptions import BackendUnavailable, QueryFailed
from app.db.base import Base

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Filter:
    column: str
    op: str
    value: Any


@dataclass(frozen=True)
class OrderBy:
    column: str
    descending: bool = False


def eq(column: str, value: Any) -> Filter:
    return Filter(column, "eq", value)


def in_(column: str, values: Iterable[Any]) -> Filter:
    return Filter(column, "in", tuple(values))


def gte(column: str, value: Any) -> Filter:
    return Filter(column, "gte", value)


def asc(column: str) -> OrderBy:
    return OrderBy(column)


def desc(column: str) -> OrderBy:
    return OrderBy(column, descending=True)


_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class RowStore:
    """CRUD + filter operations on the tables declared in ``Base.metadata``."""

    def __init__(self, engine: Optional[AsyncEngine]):
        self.engine = engine

    @property
    def configured(self) -> bool:
        return self.engine is not None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    async def select(
        self,
        table: str,
        columns: Optional[Sequence[str]] = None,
        filters: Sequence[Filter] = (),
        order_by: Sequence[OrderBy] = (),
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        target = self._table(table)
        if columns:
            stmt = sa_select(*(self._column(target, name) for name in columns))
        else:
            stmt = sa_select(target)
        stmt = stmt.where(*self._where(target, filters))
        for order in order_by:
            column = self._column(target, order.column)
            stmt = stmt.order_by(column.desc() if order.descending else column.asc())
        if limit is not None:
            stmt = stmt.limit(limit)

        result = await self._execute(table, stmt)
        return [dict(row._mapping) for row in result]

    async def select_one(
        self,
        table: str,
        columns: Optional[Sequence[str]] = None,
        filters: Sequence[Filter] = (),
        order_by: Sequence[OrderBy] = (),
    ) -> Optional[dict[str, Any]]:
        rows = await self.select(table, columns=columns, filters=filters, order_by=order_by, limit=1)
        return rows[0] if rows else None

    async def insert(self, table: str, row: Mapping[str, Any]) -> dict[str, Any]:
        target = self._table(table)
        stmt = sa_insert(target).values(**self._known_values(target, row)).returning(target)
        result = await self._execute(table, stmt)
        created = result[0] if result else None
        if created is None:
            raise QueryFailed(f"Insert into {table} returned no row")
        return dict(created._mapping)

    async def update(
        self,
        table: str,
        values: Mapping[str, Any],
        filters: Sequence[Filter],
    ) -> list[dict[str, Any]]:
        target = self._table(table)
        if not filters:
            raise QueryFailed(f"Refusing to update every row of {table}")
        stmt = (
            sa_update(target)
            .where(*self._where(target, filters))
            .values(**self._known_values(target, values))
            .returning(target)
        )
        result = await self._execute(table, stmt)
        return [dict(row._mapping) for row in result]

    async def upsert(
        self,
        table: str,
        row: Mapping[str, Any],
        conflict_columns: Sequence[str],
        ignore_duplicates: bool = False,
    ) -> None:
        target = self._table(table)
        engine = self._require_engine()
        dialect_insert = _UPSERT_DIALECTS.get(engine.dialect.name)
        if dialect_insert is None:
            raise QueryFailed(f"Upsert is not supported on {engine.dialect.name}")

        values = self._known_values(target, row)
        stmt = dialect_insert(target).values(**values)
        if ignore_duplicates:
            stmt = stmt.on_conflict_do_nothing(index_elements=list(conflict_columns))
        else:
            updates = {name: stmt.excluded[name] for name in values if name not in conflict_columns}
            if updates:
                stmt = stmt.on_conflict_do_update(index_elements=list(conflict_columns), set_=updates)
            else:
                stmt = stmt.on_conflict_do_nothing(index_elements=list(conflict_columns))
        await self._execute(table, stmt, fetch=False)

    async def count(self, table: str, filters: Sequence[Filter] = ()) -> int:
        target = self._table(table)
        stmt = sa_select(func.count()).select_from(target).where(*self._where(target, filters))
        result = await self._execute(table, stmt)
        value = result[0][0] if result else 0
        return max(int(value or 0), 0)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _require_engine(self) -> AsyncEngine:
        if self.engine is None:
            raise BackendUnavailable()
        return self.engine

    @staticmethod
    def _table(name: str) -> Table:
        try:
            return Base.metadata.tables[name]
        except KeyError as exc:
            raise QueryFailed(f"Unknown table: {name}") from exc

    @staticmethod
    def _column(table: Table, name: str):
        try:
            return table.c[name]
        except KeyError as exc:
            raise QueryFailed(f"Unknown column: {table.name}.{name}") from exc

    @staticmethod
    def _known_values(table: Table, values: Mapping[str, Any]) -> dict[str, Any]:
        unknown = [name for name in values if name not in table.c]
        if unknown:
            raise QueryFailed(f"Unknown column(s) for {table.name}: {', '.join(sorted(unknown))}")
        return dict(values)

    def _where(self, table: Table, filters: Sequence[Filter]) -> list[Any]:
        clauses = []
        for item in filters:
            column = self._column(table, item.column)
            if item.op == "eq":
                clauses.append(column == item.value)
            elif item.op == "in":
                clauses.append(column.in_(list(item.value)))
            elif item.op == "gte":
                clauses.append(column >= item.value)
            else:
                raise QueryFailed(f"Unsupported filter operator: {item.op}")
        return clauses

    async def _execute(self, table: str, stmt, fetch: bool = True) -> list[Any]:
        engine = self._require_engine()
        try:
            async with engine.begin() as conn:
                result = await conn.execute(stmt)
                return list(result.all()) if fetch else []
        except (SQLAlchemyError, OSError) as exc:
            message = str(getattr(exc, "orig", None) or exc)
            logger.warning("Requête refusée sur %s: %s", table, message)
            raise QueryFailed(message) from exc
