"""In-memory stand-ins for the pool, session and cursor, built on AsyncMock."""

from unittest.mock import AsyncMock


class FakeCursor:
    """Minimal stand-in for an aiosqlite cursor."""

    def __init__(self, rows=(), lastrowid=None, rowcount=-1, description=None):
        self.lastrowid = lastrowid
        self.rowcount = rowcount
        self.description = description
        self.fetchall = AsyncMock(return_value=list(rows))
        self.close = AsyncMock()

    @property
    def closed(self):
        return self.close.await_count > 0


class FakeSession:
    """
    Records every statement and answers from ``responses``.

    A response is either a FakeCursor or an exception instance to raise.
    """

    def __init__(self):
        self.responses = {}
        self.execute = AsyncMock(side_effect=self._respond)

    @property
    def statements(self):
        return [(c.args[0], tuple(c.args[1]) if len(c.args) > 1 else ()) for c in self.execute.await_args_list]

    @property
    def sql(self):
        return [sql for sql, _ in self.statements]

    async def _respond(self, sql, params=()):
        response = self.responses.get(sql)
        if isinstance(response, BaseException):
            raise response
        return response or FakeCursor()


class FakePool:
    """Pool that hands out one shared FakeSession and counts checkouts."""

    def __init__(self, session=None):
        self.session = session or FakeSession()
        self.checked_out = 0
        self.acquire = AsyncMock(side_effect=self._checkout)
        self.release = AsyncMock(side_effect=self._checkin)
        self.close = AsyncMock()

    @property
    def acquired(self):
        return self.acquire.await_count

    @property
    def released(self):
        return self.release.await_count

    @property
    def closed(self):
        return self.close.await_count > 0

    async def _checkout(self):
        self.checked_out += 1
        return self.session

    async def _checkin(self, session):
        assert session is self.session
        self.checked_out -= 1
