"""
Predicate query builder.

A list of partial records becomes one parameterized condition: a row matches
when it matches ANY record (OR across records), and it matches a record when
ALL populated fields of that record are equal (AND across fields).

A field is populated when it is not None, not an empty string, and, for
integers, greater than zero. Fields named in ``zero_valid`` also count zero as
populated. A record with nothing populated is refused: it would otherwise
match every row.
"""

from typing import Any, Dict, Iterable, List, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel
from sqlalchemy import Select, and_, or_, select
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from .errors import EmptyRecordError

RecordT = TypeVar("RecordT", bound=BaseModel)

# Records ORed into one statement; SQLite caps expression depth at 1000
MAX_RECORDS_PER_QUERY = 500


def is_populated(value: Any, zero_valid: bool = False) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return value != ""
    if isinstance(value, int):
        return value >= 0 if zero_valid else value > 0
    return True


def populated_fields(record: BaseModel, zero_valid: Sequence[str] = ()) -> Dict[str, Any]:
    return {
        name: value
        for name, value in record.model_dump().items()
        if is_populated(value, name in zero_valid)
    }


def record_condition(model, record: BaseModel, zero_valid: Sequence[str] = ()) -> ColumnElement[bool]:
    fields = populated_fields(record, zero_valid)
    if not fields:
        raise EmptyRecordError(
            f"{type(record).__name__} has no populated fields and would match every row: {record!r}"
        )
    return and_(*(getattr(model, name) == value for name, value in fields.items()))


def key_condition(model, values: Dict[str, Any]) -> ColumnElement[bool]:
    """Exact match on every given column; zero and empty values are compared too"""
    return and_(*(getattr(model, name) == value for name, value in values.items()))


def build_select(
    model,
    records: Iterable[BaseModel] = (),
    user: Optional[str] = None,
    zero_valid: Sequence[str] = (),
) -> Select:
    stmt = select(model)
    if user is not None:
        stmt = stmt.where(model.user == user)
    conditions = [record_condition(model, record, zero_valid) for record in records]
    if conditions:
        stmt = stmt.where(or_(*conditions))
    return stmt.order_by(*model.__mapper__.primary_key)


def run_query(
    db: Session,
    model,
    record_type: Type[RecordT],
    records: Iterable[BaseModel] = (),
    user: Optional[str] = None,
    zero_valid: Sequence[str] = (),
) -> List[RecordT]:
    """
    Long filter lists run in batches of MAX_RECORDS_PER_QUERY. Rows matched by
    more than one batch are returned once, in primary-key order.
    """
    records = list(records)
    if len(records) <= MAX_RECORDS_PER_QUERY:
        stmt = build_select(model, records, user=user, zero_valid=zero_valid)
        return [record_type.model_validate(row) for row in db.scalars(stmt)]

    mapper = model.__mapper__
    found = {}
    for start in range(0, len(records), MAX_RECORDS_PER_QUERY):
        batch = records[start:start + MAX_RECORDS_PER_QUERY]
        for row in db.scalars(build_select(model, batch, user=user, zero_valid=zero_valid)):
            found.setdefault(tuple(mapper.primary_key_from_instance(row)), row)
    return [record_type.model_validate(found[key]) for key in sorted(found)]
