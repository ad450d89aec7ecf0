"""Relational database access helper.

Pool lifecycle, scoped connections, transactions with intentional-rollback
support, and parameterized SQL for the routine CRUD shapes.
"""

from dbc.db.connection import Connection
from dbc.db.models import Query, QueryResult
from dbc.db.pool import Pool, PoolHolder, SQLitePool
from dbc.db.transaction import Commit, Rollback, Transaction, TransactionState
from dbc.errors import (
    AcquireTimeout,
    ArgumentCountMismatch,
    DbcError,
    DoubleRelease,
    DriverError,
    NoFieldsToUpdate,
    NoRowsToInsert,
    NotConnected,
    PoolClosed,
    PoolError,
    QueueLimitExceeded,
    RecordFieldsMismatch,
    RollbackError,
)
from dbc.facade import Dbc, create_dbc

__all__ = [
    "AcquireTimeout",
    "ArgumentCountMismatch",
    "Commit",
    "Connection",
    "Dbc",
    "DbcError",
    "DoubleRelease",
    "DriverError",
    "NoFieldsToUpdate",
    "NoRowsToInsert",
    "NotConnected",
    "Pool",
    "PoolClosed",
    "PoolError",
    "PoolHolder",
    "Query",
    "QueryResult",
    "QueueLimitExceeded",
    "RecordFieldsMismatch",
    "Rollback",
    "RollbackError",
    "SQLitePool",
    "Transaction",
    "TransactionState",
    "create_dbc",
]
