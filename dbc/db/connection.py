"""A single checked-out session plus the CRUD surface built on it.

Usage:
    conn = await Connection.acquire(pool)
    try:
        user = await conn.select_by_id("users", 5)
    finally:
        await conn.release()

Prefer ``Dbc.with_connection`` or ``Dbc.connection()`` which always
release.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from dbc.db import query_builder as qb
from dbc.db.models import Query, QueryResult
from dbc.db.pool import Pool
from dbc.db.query_builder import Record
from dbc.db.transaction import Transaction, run_transaction
from dbc.errors import DbcError, DoubleRelease, DriverError

logger = logging.getLogger(__name__)


class Connection:
    """Wraps one pooled session. Owned by a single unit of work."""

    def __init__(self, session: Any, pool: Optional[Pool] = None) -> None:
        self.session = session
        self._pool = pool
        self._released = False
        self._acquired_at = time.monotonic()

    @classmethod
    async def acquire(cls, pool: Pool) -> "Connection":
        """Check out a session, waiting as long as the pool allows."""
        session = await pool.acquire()
        return cls(session, pool)

    @property
    def released(self) -> bool:
        return self._released

    async def release(self) -> None:
        """Return the session to its pool. Must be called exactly once."""
        if self._released:
            raise DoubleRelease()
        self._released = True
        elapsed = time.monotonic() - self._acquired_at
        logger.debug("Database connection held for %.3f seconds", elapsed)
        if self._pool is not None:
            await self._pool.release(self.session)

    # region Execute primitives

    async def query(self, sql: str, args: Sequence[Any] = ()) -> QueryResult:
        """Run one statement with positional binding. The only network call."""
        params = tuple(args)
        logger.debug("Executing %s %r", sql, params)
        try:
            cursor = await self.session.execute(sql, params)
            try:
                rows = await cursor.fetchall()
                return QueryResult(
                    rows=list(rows),
                    description=cursor.description,
                    last_insert_id=cursor.lastrowid,
                    affected_rows=max(cursor.rowcount, 0),
                )
            finally:
                await cursor.close()
        except DbcError:
            raise
        except Exception as e:
            raise DriverError(e, sql, params) from e

    async def select_many(self, sql: str, args: Sequence[Any] = ()) -> List[Any]:
        result = await self.query(sql, args)
        return result.rows

    async def select_one(self, sql: str, args: Sequence[Any] = ()) -> Optional[Any]:
        """First row, or ``None`` when nothing matched."""
        rows = await self.select_many(sql, args)
        return rows[0] if rows else None

    async def execute_insert(self, sql: str, args: Sequence[Any] = ()) -> Optional[int]:
        """Run an INSERT and return the id the driver reports for it."""
        result = await self.query(sql, args)
        return result.last_insert_id

    async def execute_update(self, sql: str, args: Sequence[Any] = ()) -> int:
        result = await self.query(sql, args)
        return result.affected_rows

    async def execute_delete(self, sql: str, args: Sequence[Any] = ()) -> int:
        result = await self.query(sql, args)
        return result.affected_rows

    # endregion

    # region Transactions

    async def begin_transaction(self) -> None:
        await self.query("BEGIN")

    async def commit(self) -> None:
        await self.query("COMMIT")

    async def rollback(self) -> None:
        await self.query("ROLLBACK")

    async def do_transaction(self, fn: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> Any:
        """Run ``fn(self, *args, **kwargs)`` in a transaction (see ``run_transaction``)."""
        return await run_transaction(self, fn, *args, **kwargs)

    def transaction(self) -> Transaction:
        """``async with conn.transaction(): ...`` commits or rolls back the block."""
        return Transaction(self)

    # endregion

    # region SELECT

    async def _select_many(self, query: Query) -> List[Any]:
        return await self.select_many(query.sql, query.args)

    async def _select_one(self, query: Query) -> Optional[Any]:
        return await self.select_one(query.sql, query.args)

    async def select_all(self, table: str) -> List[Any]:
        return await self._select_many(qb.select_all(table))

    async def select_many_by_field(self, table: str, field: str, value: Any) -> List[Any]:
        return await self._select_many(qb.select_many_by_field(table, field, value))

    async def select_many_by_fields(self, table: str, fields: Sequence[str], values: Sequence[Any]) -> List[Any]:
        return await self._select_many(qb.select_many_by_fields(table, fields, values))

    async def select_one_by_field(self, table: str, field: str, value: Any) -> Optional[Any]:
        return await self._select_one(qb.select_one_by_field(table, field, value))

    async def select_one_by_fields(self, table: str, fields: Sequence[str], values: Sequence[Any]) -> Optional[Any]:
        return await self._select_one(qb.select_one_by_fields(table, fields, values))

    async def select_by_id(self, table: str, id: Any) -> Optional[Any]:
        return await self._select_one(qb.select_by_id(table, id))

    async def select_one_by_object(self, table: str, record: Record) -> Optional[Any]:
        return await self._select_one(qb.select_one_by_object(table, record))

    # endregion

    # region INSERT

    async def insert_one(self, table: str, fields: Sequence[str], values: Sequence[Any]) -> Optional[int]:
        query = qb.insert_one(table, fields, values)
        return await self.execute_insert(query.sql, query.args)

    async def insert_one_object(self, table: str, record: Record) -> Optional[int]:
        query = qb.insert_one_object(table, record)
        return await self.execute_insert(query.sql, query.args)

    async def insert_many(self, table: str, fields: Sequence[str], rows: Sequence[Sequence[Any]]) -> Optional[int]:
        query = qb.insert_many(table, fields, rows)
        return await self.execute_insert(query.sql, query.args)

    async def insert_many_objects(self, table: str, records: Sequence[Record]) -> Optional[int]:
        query = qb.insert_many_objects(table, records)
        return await self.execute_insert(query.sql, query.args)

    # endregion

    # region UPDATE / DELETE

    async def update_one(self, table: str, id: Any, fields: Sequence[str], values: Sequence[Any]) -> int:
        query = qb.update_one(table, id, fields, values)
        return await self.execute_update(query.sql, query.args)

    async def update_one_by_fields(
        self,
        table: str,
        fields: Sequence[str],
        values: Sequence[Any],
        where_fields: Sequence[str],
        where_values: Sequence[Any],
    ) -> int:
        query = qb.update_one_by_fields(table, fields, values, where_fields, where_values)
        return await self.execute_update(query.sql, query.args)

    async def update_one_object(self, table: str, record: Record) -> int:
        query = qb.update_one_object(table, record)
        return await self.execute_update(query.sql, query.args)

    async def delete_by_field(self, table: str, field: str, value: Any) -> int:
        query = qb.delete_by_field(table, field, value)
        return await self.execute_delete(query.sql, query.args)

    async def delete_by_id(self, table: str, id: Any) -> int:
        query = qb.delete_by_id(table, id)
        return await self.execute_delete(query.sql, query.args)

    # endregion
