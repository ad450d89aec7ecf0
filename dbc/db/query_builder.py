"""Parameterized SQL generation for the common CRUD shapes.

Every function here is pure: it returns a :class:`~dbc.db.models.Query` and
never touches a connection. Values are always bound through ``?``
placeholders. Table and field names are interpolated into the SQL text as
given and are NOT escaped, so they must come from trusted code (schema
field names), never from user input.
"""

from __future__ import annotations

from itertools import chain
from typing import Any, Iterable, List, Mapping, Sequence, Tuple, Union

from dbc.db.models import Query
from dbc.errors import (
    ArgumentCountMismatch,
    NoFieldsToUpdate,
    NoRowsToInsert,
    RecordFieldsMismatch,
)

__all__ = [
    "Record",
    "UPDATE_EXCLUDED_FIELDS",
    "to_pairs",
    "split_record",
    "select_all",
    "select_many_by_field",
    "select_many_by_fields",
    "select_one_by_field",
    "select_one_by_fields",
    "select_by_id",
    "select_one_by_object",
    "insert_one",
    "insert_one_object",
    "insert_many",
    "insert_many_objects",
    "update_one",
    "update_one_by_fields",
    "update_one_object",
    "delete_by_field",
    "delete_by_id",
]

# A record is either a mapping (insertion order is the field order) or an
# explicit ordered sequence of (field, value) pairs.
Record = Union[Mapping[str, Any], Sequence[Tuple[str, Any]]]

# Identity and audit columns that an object update never writes.
UPDATE_EXCLUDED_FIELDS = frozenset({"id", "ctime", "mtime"})


def to_pairs(record: Record) -> List[Tuple[str, Any]]:
    """Return the record as an ordered list of ``(field, value)`` pairs."""
    if isinstance(record, Mapping):
        return list(record.items())
    return [(field, value) for field, value in record]


def split_record(record: Record) -> Tuple[List[str], List[Any]]:
    """Split a record into parallel field and value lists."""
    pairs = to_pairs(record)
    return [field for field, _ in pairs], [value for _, value in pairs]


def _assignments(fields: Iterable[str], separator: str) -> str:
    return separator.join(f"{field} = ?" for field in fields)


def _placeholders(count: int) -> str:
    return "(" + ", ".join("?" * count) + ")"


# region SELECT


def select_all(table: str) -> Query:
    return Query(f"SELECT * FROM {table}")


def select_many_by_field(table: str, field: str, value: Any) -> Query:
    return Query(f"SELECT * FROM {table} WHERE {field} = ?", (value,))


def select_many_by_fields(table: str, fields: Sequence[str], values: Sequence[Any]) -> Query:
    """AND together one equality test per field."""
    return Query(
        f"SELECT * FROM {table} WHERE {_assignments(fields, ' AND ')}",
        tuple(values),
    )


def select_one_by_field(table: str, field: str, value: Any) -> Query:
    return Query(f"SELECT * FROM {table} WHERE {field} = ? LIMIT 1", (value,))


def select_one_by_fields(table: str, fields: Sequence[str], values: Sequence[Any]) -> Query:
    query = select_many_by_fields(table, fields, values)
    return Query(f"{query.sql} LIMIT 1", query.args)


def select_by_id(table: str, id: Any) -> Query:
    return select_one_by_field(table, "id", id)


def select_one_by_object(table: str, record: Record) -> Query:
    fields, values = split_record(record)
    return select_one_by_fields(table, fields, values)


# endregion

# region INSERT


def insert_one(table: str, fields: Sequence[str], values: Sequence[Any]) -> Query:
    return Query(
        f"INSERT INTO {table} ({', '.join(fields)}) VALUES {_placeholders(len(fields))}",
        tuple(values),
    )


def insert_one_object(table: str, record: Record) -> Query:
    fields, values = split_record(record)
    return insert_one(table, fields, values)


def insert_many(table: str, fields: Sequence[str], rows: Sequence[Sequence[Any]]) -> Query:
    """
    Build one multi-row INSERT.

    Arguments are every row's values flattened, row order and per-row field
    order preserved. Rows are not checked against ``fields``.
    """
    if not rows:
        raise NoRowsToInsert()
    tuples = ", ".join([_placeholders(len(fields))] * len(rows))
    return Query(
        f"INSERT INTO {table} ({', '.join(fields)}) VALUES {tuples}",
        tuple(chain.from_iterable(rows)),
    )


def insert_many_objects(table: str, records: Sequence[Record]) -> Query:
    """
    Build one multi-row INSERT from records.

    The field list comes from the first record. Every other record must carry
    exactly the same fields in the same order, otherwise
    :class:`RecordFieldsMismatch` is raised before any SQL is built.
    """
    if not records:
        raise NoRowsToInsert()
    fields, first_values = split_record(records[0])
    rows = [first_values]
    for index, record in enumerate(records[1:], start=1):
        record_fields, values = split_record(record)
        if record_fields != fields:
            raise RecordFieldsMismatch(index, fields, record_fields)
        rows.append(values)
    return insert_many(table, fields, rows)


# endregion

# region UPDATE


def _check_set_clause(fields: Sequence[str], values: Sequence[Any]) -> None:
    if len(fields) == 0:
        raise NoFieldsToUpdate()
    if len(values) != len(fields):
        raise ArgumentCountMismatch("values", len(fields), len(values))


def update_one(table: str, id: Any, fields: Sequence[str], values: Sequence[Any]) -> Query:
    _check_set_clause(fields, values)
    return Query(
        f"UPDATE {table} SET {_assignments(fields, ', ')} WHERE id = ?",
        (*values, id),
    )


def update_one_by_fields(
    table: str,
    fields: Sequence[str],
    values: Sequence[Any],
    where_fields: Sequence[str],
    where_values: Sequence[Any],
) -> Query:
    _check_set_clause(fields, values)
    if len(where_values) != len(where_fields):
        raise ArgumentCountMismatch("where values", len(where_fields), len(where_values))
    return Query(
        f"UPDATE {table} SET {_assignments(fields, ', ')} "
        f"WHERE {_assignments(where_fields, ' AND ')}",
        (*values, *where_values),
    )


def update_one_object(table: str, record: Record) -> Query:
    """
    Update the row identified by the record's ``id``.

    ``id``, ``ctime`` and ``mtime`` are left out of the SET clause. A record
    without an ``id`` raises ``KeyError``.
    """
    pairs = to_pairs(record)
    id = dict(pairs)["id"]
    fields = [field for field, _ in pairs if field not in UPDATE_EXCLUDED_FIELDS]
    values = [value for field, value in pairs if field not in UPDATE_EXCLUDED_FIELDS]
    return update_one(table, id, fields, values)


# endregion

# region DELETE


def delete_by_field(table: str, field: str, value: Any) -> Query:
    return Query(f"DELETE FROM {table} WHERE {field} = ?", (value,))


def delete_by_id(table: str, id: Any) -> Query:
    return delete_by_field(table, "id", id)


# endregion
