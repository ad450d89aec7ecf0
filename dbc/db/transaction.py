"""BEGIN/COMMIT/ROLLBACK around a unit of work bound to one connection."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Generic, Optional, TypeVar

from dbc.errors import RollbackError

if TYPE_CHECKING:
    from dbc.db.connection import Connection

__all__ = [
    "Commit",
    "Rollback",
    "Transaction",
    "TransactionState",
    "run_transaction",
]

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Commit(Generic[T]):
    """Unit-of-work outcome: commit and hand ``value`` back to the caller."""

    value: T = None  # type: ignore[assignment]


@dataclass(frozen=True)
class Rollback:
    """Unit-of-work outcome: roll back on purpose. Not an error."""

    reason: str = ""


class TransactionState(str, enum.Enum):
    IDLE = "idle"
    BEGAN = "began"
    COMMITTED = "committed"
    ROLLEDBACK = "rolledback"


class Transaction:
    """
    One transaction on one connection.

    Usable directly (``begin``/``commit``/``rollback``) or as an async
    context manager that commits on a clean exit and rolls back on any
    error. A :class:`RollbackError` escaping the block is swallowed after
    the rollback; every other error is re-raised unchanged.
    """

    def __init__(self, conn: "Connection") -> None:
        self.conn = conn
        self.state = TransactionState.IDLE

    def _expect(self, state: TransactionState, action: str) -> None:
        if self.state is not state:
            raise RuntimeError(f"cannot {action} a transaction in state {self.state.value}")

    async def begin(self) -> None:
        self._expect(TransactionState.IDLE, "begin")
        await self.conn.begin_transaction()
        self.state = TransactionState.BEGAN

    async def commit(self) -> None:
        self._expect(TransactionState.BEGAN, "commit")
        await self.conn.commit()
        self.state = TransactionState.COMMITTED

    async def rollback(self) -> None:
        self._expect(TransactionState.BEGAN, "roll back")
        await self.conn.rollback()
        self.state = TransactionState.ROLLEDBACK

    async def _rollback_after(self, error: BaseException) -> None:
        # A failing ROLLBACK must not mask the error that caused it.
        try:
            await self.rollback()
        except Exception:
            logger.exception("ROLLBACK failed while handling %r", error)
            if isinstance(error, RollbackError):
                raise

    async def __aenter__(self) -> "Transaction":
        await self.begin()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if self.state is not TransactionState.BEGAN:
            return False
        if exc is None:
            try:
                await self.commit()
            except Exception as error:
                await self._rollback_after(error)
                raise
            return False

        await self._rollback_after(exc)
        if isinstance(exc, RollbackError):
            logger.warning("Transaction rolled back on request: %s", exc.message)
            return True
        return False


async def run_transaction(
    conn: "Connection",
    fn: Callable[..., Awaitable[Any]],
    *args: Any,
    **kwargs: Any,
) -> Optional[Any]:
    """
    Run ``fn(conn, *args, **kwargs)`` inside BEGIN ... COMMIT.

    ``fn`` may return :class:`Commit` (its value is returned),
    :class:`Rollback` (rolled back, returns ``None``) or a plain value
    (committed and returned). Raising :class:`RollbackError` behaves like
    returning ``Rollback``; any other exception rolls back and propagates.
    """
    async with Transaction(conn):
        outcome = await fn(conn, *args, **kwargs)
        if isinstance(outcome, Rollback):
            raise RollbackError(outcome.reason or "rollback requested")
        if isinstance(outcome, Commit):
            return outcome.value
        return outcome
    return None
