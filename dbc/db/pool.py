"""Connection pool holder and the bundled async SQLite pool.

``SQLitePool`` keeps idle `aiosqlite` connections and opens new ones lazily
up to ``connection_limit``. Callers that find every session busy wait in
line, first come first served; at most ``queue_limit`` of them may wait at
once and each waits at most ``acquire_timeout`` seconds.
"""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from collections import deque
from typing import Any, Deque, Dict, Optional, Protocol, Set, runtime_checkable

import aiosqlite

from dbc.config import DatabaseSettings
from dbc.errors import (
    AcquireTimeout,
    DoubleRelease,
    NotConnected,
    PoolClosed,
    QueueLimitExceeded,
)

logger = logging.getLogger(__name__)

MEMORY_DATABASE = ":memory:"


@runtime_checkable
class Pool(Protocol):
    """What the helper needs from a pool. Tests substitute fakes here."""

    async def acquire(self) -> Any:
        ...

    async def release(self, session: Any) -> None:
        ...

    async def close(self) -> None:
        ...


class PoolHolder:
    """Holds the single pool shared by every connection of one ``Dbc``."""

    def __init__(self, pool: Optional[Pool] = None) -> None:
        self._pool = pool

    @property
    def is_connected(self) -> bool:
        return self._pool is not None

    def set_pool(self, pool: Pool) -> None:
        self._pool = pool

    def get_pool(self) -> Pool:
        if self._pool is None:
            raise NotConnected()
        return self._pool

    def clear(self) -> Optional[Pool]:
        """Forget the current pool and return it (``None`` if there was none)."""
        pool, self._pool = self._pool, None
        return pool


class SQLitePool:
    """Bounded pool of `aiosqlite` connections in autocommit mode."""

    def __init__(
        self,
        database: str,
        connection_limit: int = 20,
        queue_limit: int = 10,
        acquire_timeout: Optional[float] = 30.0,
        **options: Any,
    ) -> None:
        self.database = database
        self.connection_limit = connection_limit
        self.queue_limit = queue_limit
        self.acquire_timeout = acquire_timeout

        # ":memory:" gives every connection its own private database and the
        # shared-cache variant locks whole tables, so the pool keeps its
        # in-memory data in a private temporary file instead.
        self._scratch: Optional[str] = None
        if database == MEMORY_DATABASE:
            fd, self._scratch = tempfile.mkstemp(prefix="dbc-", suffix=".db")
            os.close(fd)
            self._target = self._scratch
        else:
            self._target = database
        self._options: Dict[str, Any] = {"cached_statements": 128, **options}

        self._idle: Deque[aiosqlite.Connection] = deque()
        self._waiters: Deque[asyncio.Future] = deque()
        self._busy: Set[aiosqlite.Connection] = set()
        self._opened = 0
        self._closed = False

    @classmethod
    def from_settings(cls, settings: DatabaseSettings) -> "SQLitePool":
        return cls(
            settings.database,
            connection_limit=settings.connection_limit,
            queue_limit=settings.queue_limit,
            acquire_timeout=settings.acquire_timeout,
            **settings.options,
        )

    @property
    def checked_out(self) -> int:
        """Number of sessions currently handed out."""
        return len(self._busy)

    @property
    def size(self) -> int:
        """Number of sessions opened by the pool, busy or idle."""
        return self._opened

    @property
    def waiting(self) -> int:
        return len(self._waiters)

    @property
    def closed(self) -> bool:
        return self._closed

    async def _open(self) -> aiosqlite.Connection:
        # Reserve the slot before awaiting so concurrent callers cannot
        # overshoot connection_limit.
        self._opened += 1
        try:
            conn = await aiosqlite.connect(self._target, isolation_level=None, **self._options)
            conn.row_factory = aiosqlite.Row
            await conn.execute("PRAGMA foreign_keys = ON;")
        except Exception:
            self._opened -= 1
            logger.exception("Error opening database connection to %s", self.database)
            raise
        logger.debug("Opened connection %d/%d", self._opened, self.connection_limit)
        return conn

    async def _discard(self, conn: aiosqlite.Connection) -> None:
        self._opened -= 1
        try:
            await conn.close()
        except Exception as exc:  # pragma: no cover - cleanup best effort
            logger.warning("Error closing DB connection: %s", exc)

    def _hand_off(self, conn: aiosqlite.Connection) -> None:
        # The oldest live waiter gets the session before any newcomer.
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(conn)
                return
        self._idle.append(conn)

    def _reclaim(self, waiter: asyncio.Future) -> None:
        # A session may have been handed over just as the wait gave up.
        if waiter.done() and not waiter.cancelled() and waiter.exception() is None:
            self._hand_off(waiter.result())

    async def _wait(self) -> aiosqlite.Connection:
        if self.queue_limit and len(self._waiters) >= self.queue_limit:
            logger.warning("Connection queue limit reached (%d waiting)", len(self._waiters))
            raise QueueLimitExceeded(self.queue_limit)
        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            return await asyncio.wait_for(waiter, timeout=self.acquire_timeout)
        except asyncio.TimeoutError:
            self._reclaim(waiter)
            logger.error("Timed out waiting for database connection")
            raise AcquireTimeout(self.acquire_timeout) from None
        except asyncio.CancelledError:
            self._reclaim(waiter)
            raise
        finally:
            if waiter in self._waiters:
                self._waiters.remove(waiter)

    async def acquire(self) -> aiosqlite.Connection:
        """Check out a session, waiting in line for a free one if necessary."""
        if self._closed:
            raise PoolClosed()

        if self._idle:
            conn = self._idle.popleft()
        elif self._opened < self.connection_limit:
            conn = await self._open()
        else:
            conn = await self._wait()

        if self._closed:
            await self._discard(conn)
            raise PoolClosed()
        self._busy.add(conn)
        logger.debug("Acquired database connection from pool")
        return conn

    async def release(self, session: aiosqlite.Connection) -> None:
        """Return a session. Releasing one that is not checked out fails."""
        if session not in self._busy:
            raise DoubleRelease()
        self._busy.discard(session)
        if self._closed:
            await self._discard(session)
            if self._scratch is not None and not self._busy:
                self._remove_scratch()
            logger.debug("Closed connection released after pool shutdown")
            return
        self._hand_off(session)
        logger.debug("Returned database connection to pool")

    async def close(self) -> None:
        """
        Close every idle session and fail every pending checkout with
        ``PoolClosed``. Busy sessions are closed when released.
        """
        if self._closed:
            return
        self._closed = True
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_exception(PoolClosed())
        while self._idle:
            await self._discard(self._idle.popleft())
        if self._scratch is not None and not self._busy:
            self._remove_scratch()
        logger.info("Database connection pool closed (%d still checked out)", len(self._busy))

    def _remove_scratch(self) -> None:
        for suffix in ("", "-journal", "-wal", "-shm"):
            try:
                os.remove(self._scratch + suffix)
            except FileNotFoundError:
                continue
        self._scratch = None


_NETWORK_FIELDS = ("host", "port", "user", "password")


def create_pool(settings: DatabaseSettings) -> SQLitePool:
    ignored = [
        name
        for name in _NETWORK_FIELDS
        if getattr(settings, name) != DatabaseSettings.model_fields[name].default
    ]
    if ignored:
        logger.warning(
            "SQLite pool opens %s locally; ignoring %s",
            settings.database,
            ", ".join(ignored),
        )
    pool = SQLitePool.from_settings(settings)
    logger.info(
        "Database connection pool initialized for %s (limit %d, queue %d)",
        settings.database,
        settings.connection_limit,
        settings.queue_limit,
    )
    return pool
