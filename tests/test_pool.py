"""Tests for the pool holder and the bundled aiosqlite pool."""

import asyncio
import logging
import os

import pytest

from dbc import PoolHolder, SQLitePool
from dbc.config import DatabaseSettings
from dbc.db.pool import Pool, create_pool
from dbc.errors import (
    AcquireTimeout,
    DoubleRelease,
    NotConnected,
    PoolClosed,
    QueueLimitExceeded,
)

from tests.fakes import FakePool


class TestPoolHolder:
    def test_get_before_set_fails(self):
        with pytest.raises(NotConnected):
            PoolHolder().get_pool()

    def test_set_replaces_previous_pool(self):
        holder = PoolHolder()
        first, second = FakePool(), FakePool()
        holder.set_pool(first)
        holder.set_pool(second)
        assert holder.get_pool() is second

    def test_clear_returns_to_uninitialized(self):
        pool = FakePool()
        holder = PoolHolder(pool)
        assert holder.is_connected
        assert holder.clear() is pool
        assert not holder.is_connected
        with pytest.raises(NotConnected):
            holder.get_pool()

    def test_fake_pool_satisfies_protocol(self):
        assert isinstance(FakePool(), Pool)


@pytest.mark.asyncio
class TestSQLitePool:
    async def test_sessions_are_reused(self, tmp_path):
        pool = SQLitePool(str(tmp_path / "reuse.db"), connection_limit=2)
        try:
            first = await pool.acquire()
            await pool.release(first)
            second = await pool.acquire()
            assert second is first
            assert pool.size == 1
            await pool.release(second)
        finally:
            await pool.close()

    async def test_queue_limit_rejects_extra_waiters(self, tmp_path):
        pool = SQLitePool(str(tmp_path / "queue.db"), connection_limit=1, queue_limit=1, acquire_timeout=5)
        try:
            busy = await pool.acquire()
            waiter = asyncio.create_task(pool.acquire())
            await asyncio.sleep(0)

            with pytest.raises(QueueLimitExceeded):
                await pool.acquire()

            await pool.release(busy)
            handed_over = await waiter
            assert handed_over is busy
            assert pool.checked_out == 1
            await pool.release(handed_over)
        finally:
            await pool.close()

    async def test_acquire_timeout(self, tmp_path):
        pool = SQLitePool(str(tmp_path / "timeout.db"), connection_limit=1, queue_limit=0, acquire_timeout=0.05)
        try:
            busy = await pool.acquire()
            with pytest.raises(AcquireTimeout):
                await pool.acquire()
            await pool.release(busy)
            assert pool.checked_out == 0
        finally:
            await pool.close()

    async def test_double_release(self, tmp_path):
        pool = SQLitePool(str(tmp_path / "double.db"))
        try:
            session = await pool.acquire()
            await pool.release(session)
            with pytest.raises(DoubleRelease):
                await pool.release(session)
        finally:
            await pool.close()

    async def test_closed_pool_refuses_checkout(self, tmp_path):
        pool = SQLitePool(str(tmp_path / "closed.db"))
        session = await pool.acquire()
        await pool.close()

        with pytest.raises(PoolClosed):
            await pool.acquire()

        await pool.release(session)
        assert pool.size == 0

    async def test_memory_database_is_shared_between_sessions(self):
        pool = SQLitePool(":memory:", connection_limit=2)
        try:
            writer = await pool.acquire()
            reader = await pool.acquire()
            assert writer is not reader

            await writer.execute("CREATE TABLE kv (k TEXT, v TEXT)")
            await writer.execute("INSERT INTO kv VALUES (?, ?)", ("a", "1"))
            cursor = await reader.execute("SELECT v FROM kv WHERE k = ?", ("a",))
            row = await cursor.fetchone()
            assert row["v"] == "1"

            await pool.release(writer)
            await pool.release(reader)
        finally:
            await pool.close()

    async def test_memory_database_reads_during_open_write(self):
        pool = SQLitePool(":memory:", connection_limit=2)
        scratch = pool._scratch
        try:
            writer = await pool.acquire()
            reader = await pool.acquire()
            await writer.execute("CREATE TABLE kv (k TEXT, v TEXT)")
            await writer.execute("INSERT INTO kv VALUES (?, ?)", ("a", "1"))

            await writer.execute("BEGIN")
            await writer.execute("INSERT INTO kv VALUES (?, ?)", ("b", "2"))
            cursor = await reader.execute("SELECT k FROM kv ORDER BY k")
            rows = await cursor.fetchall()
            assert [row["k"] for row in rows] == ["a"]
            await writer.execute("ROLLBACK")

            await pool.release(writer)
            await pool.release(reader)
        finally:
            await pool.close()
        assert not os.path.exists(scratch)

    @pytest.mark.parametrize("timeout", [2.0, None], ids=["bounded-wait", "unbounded-wait"])
    async def test_close_fails_pending_checkouts(self, tmp_path, timeout):
        pool = SQLitePool(str(tmp_path / "wake.db"), connection_limit=1, acquire_timeout=timeout)
        busy = await pool.acquire()
        waiter = asyncio.create_task(pool.acquire())
        await asyncio.sleep(0)
        assert pool.waiting == 1

        await pool.close()
        await pool.release(busy)

        with pytest.raises(PoolClosed):
            await asyncio.wait_for(waiter, timeout=1.0)
        assert pool.size == 0
        assert pool.waiting == 0

    async def test_waiters_are_served_in_arrival_order(self, tmp_path):
        pool = SQLitePool(str(tmp_path / "fifo.db"), connection_limit=1, queue_limit=2, acquire_timeout=2.0)
        try:
            busy = await pool.acquire()
            first = asyncio.create_task(pool.acquire())
            await asyncio.sleep(0)

            await pool.release(busy)
            newcomer = asyncio.create_task(pool.acquire())
            await asyncio.sleep(0)

            assert await first is busy
            assert not newcomer.done()

            await pool.release(busy)
            assert await newcomer is busy
            await pool.release(busy)
        finally:
            await pool.close()


    async def test_from_settings_passes_limits(self, tmp_path):
        settings = DatabaseSettings(database=str(tmp_path / "s.db"), connection_limit=4, queue_limit=0)
        pool = SQLitePool.from_settings(settings)
        assert pool.connection_limit == 4
        assert pool.queue_limit == 0
        await pool.close()


class TestCreatePool:
    def test_warns_about_ignored_network_settings(self, tmp_path, caplog):
        settings = DatabaseSettings(host="db.example", user="app", database=str(tmp_path / "net.db"))

        with caplog.at_level(logging.WARNING, logger="dbc.db.pool"):
            pool = create_pool(settings)

        assert isinstance(pool, SQLitePool)
        assert "ignoring host, user" in caplog.text

    def test_quiet_for_local_settings(self, tmp_path, caplog):
        with caplog.at_level(logging.WARNING, logger="dbc.db.pool"):
            create_pool(DatabaseSettings(database=str(tmp_path / "local.db")))

        assert "ignoring" not in caplog.text
