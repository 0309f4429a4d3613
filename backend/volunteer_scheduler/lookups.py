"""
Read-only access to the Weekdays, Months and Dates tables. These tables are
shared by every user, so queries are not scoped to an owner.
"""

import logging
from typing import Dict, Iterable, List, Sequence, Type

from .db import Store
from .errors import CardinalityError, InvalidRecordError, UnresolvedReferenceError
from .models import Date, Month, Weekday
from .query import run_query
from .schemas import DateRecord, MonthRecord, Record, WeekdayRecord

logger = logging.getLogger(__name__)


class LookupTable:
    def __init__(self, store: Store, model, record_type: Type[Record], label: str, require_filter: bool = False):
        self.store = store
        self.model = model
        self.record_type = record_type
        self.label = label
        # Dates holds tens of thousands of rows; never hand them all back
        self.require_filter = require_filter

    def read(self, filters: Iterable[Record] = ()) -> List[Record]:
        filters = list(filters)
        if self.require_filter and not filters:
            raise InvalidRecordError(f"at least one {self.label} filter must be given")
        with self.store.session() as db:
            return run_query(db, self.model, self.record_type, filters)

    def read_single(self, record: Record) -> Record:
        found = self.read([record])
        if not found:
            raise UnresolvedReferenceError(f"no {self.label} matches {record!r}", count=0)
        if len(found) > 1:
            raise CardinalityError(
                f"expected exactly one {self.label} matching {record!r}, found {len(found)}",
                count=len(found),
            )
        return found[0]


class Lookups:
    """Weekday, month and date resolution"""

    def __init__(self, store: Store):
        self.weekdays = LookupTable(store, Weekday, WeekdayRecord, "weekday")
        self.months = LookupTable(store, Month, MonthRecord, "month")
        self.dates = LookupTable(store, Date, DateRecord, "date", require_filter=True)

    def weekday(self, name: str) -> WeekdayRecord:
        return self.weekdays.read_single(WeekdayRecord(name=name))

    def month(self, name: str) -> MonthRecord:
        return self.months.read_single(MonthRecord(name=name))

    def date(self, value: str) -> DateRecord:
        """Resolve a YYYY-MM-DD string to the stored date row"""
        return self.dates.read_single(DateRecord.from_string(value))

    def date_by_id(self, date_id: int) -> DateRecord:
        return self.dates.read_single(DateRecord(id=date_id))

    def dates_from_strings(self, values: Sequence[str]) -> Dict[str, DateRecord]:
        """Resolve many YYYY-MM-DD strings with one query"""
        wanted = {value: DateRecord.from_string(value) for value in dict.fromkeys(values)}
        if not wanted:
            return {}
        found = {
            (row.year, row.month, row.day): row
            for row in self.dates.read(wanted.values())
        }
        result = {}
        for value, record in wanted.items():
            row = found.get((record.year, record.month, record.day))
            if row is None:
                raise UnresolvedReferenceError(f"date {value} does not exist in the Dates table", count=0)
            result[value] = row
        logger.debug("Resolved %d date string(s)", len(result))
        return result

    def dates_by_id(self, date_ids: Iterable[int]) -> Dict[int, DateRecord]:
        filters = [DateRecord(id=date_id) for date_id in dict.fromkeys(date_ids)]
        if not filters:
            return {}
        return {row.id: row for row in self.dates.read(filters)}
