"""Error kinds raised by the database access helper."""

from __future__ import annotations

from typing import Any, Sequence

__all__ = [
    "DbcError",
    "NotConnected",
    "NoFieldsToUpdate",
    "ArgumentCountMismatch",
    "RecordFieldsMismatch",
    "NoRowsToInsert",
    "PoolError",
    "QueueLimitExceeded",
    "AcquireTimeout",
    "PoolClosed",
    "DoubleRelease",
    "DriverError",
    "RollbackError",
]


class DbcError(Exception):
    """Base class for every error raised by this package."""


class NotConnected(DbcError):
    """Raised when the pool is requested before ``Dbc.init()`` was called."""

    def __init__(self, message: str = "database not connected") -> None:
        super().__init__(message)


class NoFieldsToUpdate(DbcError):
    """Raised when an UPDATE would have an empty SET clause."""

    def __init__(self, message: str = "no fields to update") -> None:
        super().__init__(message)


class ArgumentCountMismatch(DbcError):
    """Raised when parallel field/value sequences differ in length."""

    def __init__(self, what: str, expected: int, actual: int) -> None:
        super().__init__(f"{what}: expected {expected} values, got {actual}")
        self.what = what
        self.expected = expected
        self.actual = actual


class RecordFieldsMismatch(ArgumentCountMismatch):
    """Raised when a batch record does not share the first record's fields."""

    def __init__(self, index: int, expected: Sequence[str], actual: Sequence[str]) -> None:
        super().__init__(f"record {index}", len(expected), len(actual))
        self.args = (f"record {index} has fields {list(actual)!r}, expected {list(expected)!r}",)
        self.index = index
        self.expected_fields = list(expected)
        self.actual_fields = list(actual)


class NoRowsToInsert(DbcError):
    """Raised when a batch insert is given no rows."""

    def __init__(self, message: str = "no rows to insert") -> None:
        super().__init__(message)


class PoolError(DbcError):
    """Base class for checkout/release failures reported by the pool."""


class QueueLimitExceeded(PoolError):
    """Raised when the pool's wait queue is already full."""

    def __init__(self, queue_limit: int) -> None:
        super().__init__(f"queue limit reached ({queue_limit} waiting)")
        self.queue_limit = queue_limit


class AcquireTimeout(PoolError):
    """Raised when a checkout waits longer than the configured timeout."""

    def __init__(self, timeout: float) -> None:
        super().__init__(f"timed out after {timeout:.3f}s waiting for a connection")
        self.timeout = timeout


class PoolClosed(PoolError):
    """Raised when acquiring from a pool that has been closed."""

    def __init__(self, message: str = "pool is closed") -> None:
        super().__init__(message)


class DoubleRelease(PoolError):
    """Raised when a session is returned to the pool more than once."""

    def __init__(self, message: str = "connection already released") -> None:
        super().__init__(message)


class DriverError(DbcError):
    """Wraps an exception raised by the driver while running a statement.

    The driver exception is available as ``__cause__``.
    """

    def __init__(self, error: BaseException, sql: str, params: Sequence[Any] = ()) -> None:
        super().__init__(f"{error} | Query: {sql!r} | Params: {list(params)!r}")
        self.sql = sql
        self.params = list(params)


class RollbackError(DbcError):
    """Sentinel: abort the current transaction without reporting a failure."""

    def __init__(self, message: str = "rollback") -> None:
        super().__init__(message)
        self.message = message
