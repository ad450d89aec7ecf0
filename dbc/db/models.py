from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence, Tuple


@dataclass(frozen=True)
class Query:
    """SQL text plus its positional arguments, in placeholder order."""

    sql: str
    args: Tuple[Any, ...] = ()

    def __iter__(self):
        # Allows ``sql, args = query``.
        yield self.sql
        yield self.args


@dataclass
class QueryResult:
    """Native result of one executed statement.

    Reads fill ``rows`` and ``description``; writes fill the result header
    (``last_insert_id`` and ``affected_rows``).
    """

    rows: List[Any] = field(default_factory=list)
    description: Optional[Sequence[Tuple[Any, ...]]] = None
    last_insert_id: Optional[int] = None
    affected_rows: int = 0

    @property
    def columns(self) -> List[str]:
        """Column names of the row metadata, empty for writes."""
        if not self.description:
            return []
        return [column[0] for column in self.description]
