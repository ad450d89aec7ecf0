"""Pool lifecycle and scoped connection access.

Usage:
    dbc = create_dbc()
    dbc.init({"database": "app.db", "connectionLimit": 5})

    @dbc.with_connection
    async def load_user(conn, user_id):
        return await conn.select_by_id("users", user_id)

    user = await load_user(5)
"""

from __future__ import annotations

import functools
import inspect
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Mapping, Optional, Union

from dbc.config import DatabaseSettings, get_settings
from dbc.db.connection import Connection
from dbc.db.pool import Pool, PoolHolder, create_pool

logger = logging.getLogger(__name__)


def _check_plain_function(fn: Callable[..., Any]) -> None:
    if inspect.isgeneratorfunction(fn) or inspect.isasyncgenfunction(fn):
        raise TypeError(f"{fn.__qualname__} must be a plain function, not a generator")


def _drop_connection_parameter(fn: Callable[..., Any], wrapper: Callable[..., Any]) -> None:
    # functools.wraps exposes fn's signature, but callers never pass conn.
    try:
        sig = inspect.signature(fn)
    except (TypeError, ValueError):
        return
    wrapper.__signature__ = sig.replace(parameters=list(sig.parameters.values())[1:])



class Dbc:
    """Owns one pool and hands out connections that are always released."""

    def __init__(self, pool: Optional[Pool] = None) -> None:
        self.pooler = PoolHolder(pool)

    def init(self, config: Union[DatabaseSettings, Mapping[str, Any], None] = None) -> None:
        """Create the pool. Replaces any pool set earlier without closing it."""
        if config is None:
            settings = get_settings()
        elif isinstance(config, DatabaseSettings):
            settings = config
        else:
            settings = DatabaseSettings.from_mapping(config)
        self.pooler.set_pool(create_pool(settings))

    def set_pool(self, pool: Pool) -> None:
        self.pooler.set_pool(pool)

    async def close(self) -> None:
        """Close the pool; afterwards every use fails with ``NotConnected``."""
        pool = self.pooler.clear()
        if pool is not None:
            await pool.close()

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[Connection]:
        """
        Acquire a connection for the duration of the block.

        Usage:
            async with dbc.connection() as conn:
                rows = await conn.select_all("users")
        """
        conn = await Connection.acquire(self.pooler.get_pool())
        try:
            yield conn
        finally:
            await conn.release()

    def with_connection(self, fn: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        """
        Wrap ``fn(conn, *args, **kwargs)`` into ``wrapper(*args, **kwargs)``.

        The wrapper acquires a connection, awaits ``fn`` with it and releases
        the connection on every exit path.
        """
        _check_plain_function(fn)

        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            async with self.connection() as conn:
                return await fn(conn, *args, **kwargs)

        _drop_connection_parameter(fn, wrapper)
        return wrapper

    def transaction(self, fn: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        """Like ``with_connection`` but runs ``fn`` through ``do_transaction``."""
        _check_plain_function(fn)

        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            async with self.connection() as conn:
                return await conn.do_transaction(fn, *args, **kwargs)

        _drop_connection_parameter(fn, wrapper)
        return wrapper


def create_dbc(pool: Optional[Pool] = None) -> Dbc:
    return Dbc(pool)
