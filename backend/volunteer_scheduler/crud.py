"""
Create/read/update/delete for the six per-user tables.

Uniqueness is enforced here rather than by the schema: every create checks the
batch for repeated keys and the table for existing ones, and every update
checks what the row would become against the other rows. Each call runs in a
single transaction, so a failure leaves the table as it was.
"""

import logging
from typing import Any, Dict, Iterable, List, Sequence, Tuple, Type

from sqlalchemy import delete, select

from .db import Store
from .errors import (
    CardinalityError,
    ConflictError,
    DuplicateInBatchError,
    EmptyRecordError,
    InvalidRecordError,
)
from .models import (
    Schedule,
    ScheduledVolunteerOnDate,
    UnavailabilityForSchedule,
    Volunteer,
    VolunteerForSchedule,
    WeekdayForSchedule,
)
from .query import is_populated, key_condition, populated_fields, run_query
from .schemas import (
    Record,
    ScheduledVolunteerOnDateRecord,
    ScheduleRecord,
    UnavailabilityForScheduleRecord,
    VolunteerForScheduleRecord,
    VolunteerRecord,
    WeekdayForScheduleRecord,
)

logger = logging.getLogger(__name__)

# Never changed by update and never taken from a proposed row on create
RESERVED_FIELDS = ("id", "user")


class Repository:
    """
    Shared behaviour of the per-user tables. Subclasses name the model, the
    record type and the unique key; the unique key fields are also the fields
    a new row must provide.
    """

    model: Any = None
    record_type: Type[Record] = Record
    label: str = ""
    natural_key: Tuple[str, ...] = ()
    # Fields a delete selector may use instead of the primary key
    delete_key: Tuple[str, ...] = ()

    def __init__(self, store: Store):
        self.store = store

    # Hooks

    def check_values(self, record: Record, creating: bool) -> None:
        """Reject out-of-range values on create and update. Nothing to check by default."""

    # Public API

    def read(self, user: str, filters: Iterable[Record] = ()) -> List[Record]:
        return self._read(user, filters)

    def read_single(self, user: str, record: Record) -> Record:
        return self._read_single(user, record)

    def create(self, user: str, records: Iterable[Record]) -> List[Record]:
        return self._create(user, records)

    def update(self, user: str, records: Iterable[Record]) -> List[Record]:
        return self._update(user, records)

    def delete(self, user: str, selectors: Iterable[Record]) -> int:
        """
        Delete by primary key, or by the delete key when no primary key is
        given. Returns the number of rows removed.
        """
        conditions = []
        for selector in selectors:
            if is_populated(selector.id):
                conditions.append(self.model.id == selector.id)
                continue
            key = {name: getattr(selector, name) for name in self.delete_key}
            if not all(is_populated(value) for value in key.values()):
                raise InvalidRecordError(
                    f"{self.label} selector needs an id or values for {', '.join(self.delete_key)}: {selector!r}"
                )
            conditions.append(key_condition(self.model, key))
        if not conditions:
            return 0

        deleted = 0
        with self.store.transaction() as db:
            for condition in conditions:
                result = db.execute(
                    delete(self.model)
                    .where(self.model.user == user, condition)
                    .execution_options(synchronize_session=False)
                )
                deleted += result.rowcount
        logger.info("Deleted %d %s row(s) for %s", deleted, self.label, user)
        return deleted

    # Implementation

    def _read(self, user: str, filters: Iterable[Record], zero_valid: Sequence[str] = ()) -> List[Record]:
        filters = list(filters)
        with self.store.session() as db:
            return run_query(db, self.model, self.record_type, filters, user=user, zero_valid=zero_valid)

    def _read_single(self, user: str, record: Record, zero_valid: Sequence[str] = ()) -> Record:
        found = self._read(user, [record], zero_valid)
        if len(found) != 1:
            raise CardinalityError(
                f"expected exactly one {self.label} matching {record!r}, found {len(found)}",
                count=len(found),
            )
        return found[0]

    def _key_of(self, values: Dict[str, Any]) -> Tuple[Any, ...]:
        return tuple(values[name] for name in self.natural_key)

    def _create(self, user: str, records: Iterable[Record], zero_valid: Sequence[str] = ()) -> List[Record]:
        records = list(records)
        proposed = []
        seen = set()
        for record in records:
            self.check_values(record, creating=True)
            fields = populated_fields(record, zero_valid)
            for name in RESERVED_FIELDS:
                fields.pop(name, None)
            if not fields:
                raise EmptyRecordError(f"proposed {self.label} has no values: {record!r}")
            missing = [name for name in self.natural_key if name not in fields]
            if missing:
                raise InvalidRecordError(
                    f"proposed {self.label} has no value for {', '.join(missing)}: {record!r}"
                )
            key = self._key_of(fields)
            if key in seen:
                raise DuplicateInBatchError(
                    f"proposed {self.label} repeats another one of the same batch: {record!r}"
                )
            seen.add(key)
            proposed.append(fields)
        if not proposed:
            return []

        with self.store.transaction() as db:
            key_filters = [
                self.record_type(**{name: fields[name] for name in self.natural_key})
                for fields in proposed
            ]
            existing = run_query(
                db, self.model, self.record_type, key_filters, user=user, zero_valid=zero_valid
            )
            if existing:
                raise ConflictError(f"{self.label} already exists: {existing!r}")
            rows = [self.model(user=user, **fields) for fields in proposed]
            db.add_all(rows)
            db.flush()
            created = [self.record_type.model_validate(row) for row in rows]
        logger.info("Created %d %s row(s) for %s", len(created), self.label, user)
        return created

    def _update(self, user: str, records: Iterable[Record], zero_valid: Sequence[str] = ()) -> List[Record]:
        """
        Every row of the batch is checked in the state the whole batch leaves
        it in, so renames that free a key for another row of the same call
        (Bill to Tim while Tim becomes Sam) succeed in any order.
        """
        records = list(records)
        planned = {}
        for record in records:
            if not is_populated(record.id):
                raise InvalidRecordError(f"{self.label} to update has no id: {record!r}")
            self.check_values(record, creating=False)
            changes = populated_fields(record, zero_valid)
            for name in RESERVED_FIELDS:
                changes.pop(name, None)
            if not changes:
                raise EmptyRecordError(f"{self.label} to update has nothing to change: {record!r}")
            if record.id in planned:
                raise DuplicateInBatchError(f"{self.label} id {record.id} appears twice in one update")
            planned[record.id] = changes

        with self.store.transaction() as db:
            rows = {}
            for row_id, changes in planned.items():
                row = db.scalars(
                    select(self.model).where(self.model.user == user, self.model.id == row_id)
                ).one_or_none()
                if row is None:
                    logger.warning("No %s with id %s for %s; nothing updated", self.label, row_id, user)
                    continue
                rows[row_id] = (row, changes)

            batch_keys = {}
            for row_id, (row, changes) in rows.items():
                result = {name: changes.get(name, getattr(row, name)) for name in self.natural_key}
                key = self._key_of(result)
                if key in batch_keys:
                    raise DuplicateInBatchError(
                        f"{self.label} ids {batch_keys[key]} and {row_id} would become the same row: {result}"
                    )
                batch_keys[key] = row_id
                # Rows of this batch are compared by their new keys above
                clash = db.scalars(
                    select(self.model.id).where(
                        self.model.user == user,
                        self.model.id.not_in(list(rows)),
                        key_condition(self.model, result),
                    )
                ).first()
                if clash is not None:
                    raise ConflictError(
                        f"updating {self.label} {row_id} would duplicate {self.label} {clash}: {result}"
                    )

            for row, changes in rows.values():
                for name, value in changes.items():
                    setattr(row, name, value)
            db.flush()
            updated = [self.record_type.model_validate(row) for row, _ in rows.values()]
        logger.info("Updated %d %s row(s) for %s", len(updated), self.label, user)
        return updated


class VolunteerRepository(Repository):
    model = Volunteer
    record_type = VolunteerRecord
    label = "volunteer"
    natural_key = ("name",)
    delete_key = ("name",)


class ScheduleRepository(Repository):
    """
    Schedules are unique over the whole (name, shifts_off,
    volunteers_per_shift, start_date, end_date) tuple.

    A shifts_off of zero cannot be told apart from "not provided" unless the
    caller passes include_shifts_off_0=True; without it a zero is ignored in
    filters, fails the required-field check on create and is not a change on
    update. None always means "not provided". A zero volunteers_per_shift is
    likewise ignored in filters and updates. Out-of-range values are rejected
    when writing and count as unset in filters.
    """

    model = Schedule
    record_type = ScheduleRecord
    label = "schedule"
    natural_key = ("name", "shifts_off", "volunteers_per_shift", "start_date", "end_date")
    delete_key = ("name",)

    @staticmethod
    def _zero_valid(include_shifts_off_0: bool) -> Tuple[str, ...]:
        return ("shifts_off",) if include_shifts_off_0 else ()

    def check_values(self, record: ScheduleRecord, creating: bool) -> None:
        if record.shifts_off is not None and record.shifts_off < 0:
            raise InvalidRecordError(f"shifts_off must not be negative: {record!r}")
        if record.volunteers_per_shift is None:
            return
        if creating and record.volunteers_per_shift < 1:
            raise InvalidRecordError(f"volunteers_per_shift must be at least one: {record!r}")
        # On update zero is not a change
        if record.volunteers_per_shift < 0:
            raise InvalidRecordError(f"volunteers_per_shift must not be negative: {record!r}")

    def read(self, user: str, filters: Iterable[ScheduleRecord] = (), include_shifts_off_0: bool = False) -> List[ScheduleRecord]:
        return self._read(user, filters, self._zero_valid(include_shifts_off_0))

    def read_single(self, user: str, record: ScheduleRecord, include_shifts_off_0: bool = False) -> ScheduleRecord:
        return self._read_single(user, record, self._zero_valid(include_shifts_off_0))

    def create(self, user: str, records: Iterable[ScheduleRecord], include_shifts_off_0: bool = False) -> List[ScheduleRecord]:
        return self._create(user, records, self._zero_valid(include_shifts_off_0))

    def update(self, user: str, records: Iterable[ScheduleRecord], include_shifts_off_0: bool = False) -> List[ScheduleRecord]:
        return self._update(user, records, self._zero_valid(include_shifts_off_0))


class WeekdayForScheduleRepository(Repository):
    model = WeekdayForSchedule
    record_type = WeekdayForScheduleRecord
    label = "weekday for schedule"
    natural_key = ("schedule", "weekday")
    delete_key = ("schedule", "weekday")


class VolunteerForScheduleRepository(Repository):
    model = VolunteerForSchedule
    record_type = VolunteerForScheduleRecord
    label = "volunteer for schedule"
    natural_key = ("schedule", "volunteer")
    delete_key = ("schedule", "volunteer")


class UnavailabilityForScheduleRepository(Repository):
    model = UnavailabilityForSchedule
    record_type = UnavailabilityForScheduleRecord
    label = "unavailability for schedule"
    natural_key = ("vfs", "date")
    delete_key = ("vfs", "date")


class ScheduledVolunteerOnDateRepository(Repository):
    model = ScheduledVolunteerOnDate
    record_type = ScheduledVolunteerOnDateRecord
    label = "scheduled volunteer on date"
    natural_key = ("vfs", "date")
    delete_key = ("vfs", "date")
