"""
Reconciliation engine.

Each method takes the set of rows that should exist under a parent and deletes
whatever else exists under it. Nothing is ever created here. Every call runs in
its own transaction, returns the primary keys it deleted, and does nothing the
second time it is called with the same arguments.
"""

import logging
from typing import Iterable, List, Optional, Sequence

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from .db import Store
from .errors import UnresolvedReferenceError
from .models import (
    ScheduledVolunteerOnDate,
    UnavailabilityForSchedule,
    Volunteer,
    VolunteerForSchedule,
    WeekdayForSchedule,
)
from .schemas import (
    DateRecord,
    Record,
    ScheduleRecord,
    VolunteerForScheduleRecord,
    VolunteerRecord,
    WeekdayRecord,
)

logger = logging.getLogger(__name__)


def _require_id(record: Optional[Record], what: str) -> int:
    if record is None or not record.id:
        raise UnresolvedReferenceError(f"{what} has no resolved id: {record!r}", count=0)
    return record.id


def _delete_ids(db: Session, model, user: str, ids: Sequence[int]) -> None:
    if ids:
        db.execute(
            delete(model)
            .where(model.user == user, model.id.in_(ids))
            .execution_options(synchronize_session=False)
        )


class Reconciler:
    def __init__(self, store: Store):
        self.store = store

    def weekdays_for_schedule(
        self, user: str, schedule: ScheduleRecord, desired_weekdays: Iterable[WeekdayRecord]
    ) -> List[int]:
        """Keep only the schedule's weekday rows whose weekday is desired"""
        schedule_id = _require_id(schedule, "schedule")
        keep = set()
        for weekday in desired_weekdays:
            _require_id(weekday, "weekday")
            if not weekday.name:
                raise UnresolvedReferenceError(f"weekday has no name: {weekday!r}", count=0)
            keep.add(weekday.name)

        with self.store.transaction() as db:
            doomed = list(db.scalars(
                select(WeekdayForSchedule.id).where(
                    WeekdayForSchedule.user == user,
                    WeekdayForSchedule.schedule == schedule_id,
                    WeekdayForSchedule.weekday.not_in(list(keep)),
                )
            ))
            _delete_ids(db, WeekdayForSchedule, user, doomed)
        if doomed:
            logger.info("Removed %d weekday(s) from schedule %s", len(doomed), schedule_id)
        return doomed

    def volunteers_for_schedule(
        self,
        user: str,
        schedule: ScheduleRecord,
        desired_volunteers: Iterable[VolunteerRecord],
        cascade_ufs: bool = False,
        cascade_svod: bool = False,
    ) -> List[int]:
        """
        Keep only the schedule's volunteer rows whose volunteer is desired.

        Unavailability and scheduled-date rows still pointing at a removed
        volunteer row block its deletion; pass the cascade flags to remove them
        first in the same transaction.
        """
        schedule_id = _require_id(schedule, "schedule")
        keep = {_require_id(volunteer, "volunteer") for volunteer in desired_volunteers}

        with self.store.transaction() as db:
            doomed = list(db.scalars(
                select(VolunteerForSchedule.id).where(
                    VolunteerForSchedule.user == user,
                    VolunteerForSchedule.schedule == schedule_id,
                    VolunteerForSchedule.volunteer.not_in(list(keep)),
                )
            ))
            if doomed:
                for flag, dependent in (
                    (cascade_ufs, UnavailabilityForSchedule),
                    (cascade_svod, ScheduledVolunteerOnDate),
                ):
                    if flag:
                        db.execute(
                            delete(dependent)
                            .where(dependent.user == user, dependent.vfs.in_(doomed))
                            .execution_options(synchronize_session=False)
                        )
                _delete_ids(db, VolunteerForSchedule, user, doomed)
        if doomed:
            logger.info("Removed %d volunteer(s) from schedule %s", len(doomed), schedule_id)
        return doomed

    def _dates_for_vfs(self, model, user: str, vfs: VolunteerForScheduleRecord, desired_dates: Iterable[DateRecord]) -> List[int]:
        vfs_id = _require_id(vfs, "volunteer for schedule")
        keep = {_require_id(date, "date") for date in desired_dates}

        with self.store.transaction() as db:
            doomed = list(db.scalars(
                select(model.id).where(
                    model.user == user,
                    model.vfs == vfs_id,
                    model.date.not_in(list(keep)),
                )
            ))
            _delete_ids(db, model, user, doomed)
        if doomed:
            logger.debug("Removed %d %s row(s) from vfs %s", len(doomed), model.__tablename__, vfs_id)
        return doomed

    def unavailability_for_vfs(
        self, user: str, vfs: VolunteerForScheduleRecord, desired_dates: Iterable[DateRecord]
    ) -> List[int]:
        return self._dates_for_vfs(UnavailabilityForSchedule, user, vfs, desired_dates)

    def scheduled_for_vfs(
        self, user: str, vfs: VolunteerForScheduleRecord, desired_dates: Iterable[DateRecord]
    ) -> List[int]:
        return self._dates_for_vfs(ScheduledVolunteerOnDate, user, vfs, desired_dates)

    def orphaned_volunteers(self, user: str) -> List[int]:
        """Delete the user's volunteers that no schedule refers to"""
        referenced = select(VolunteerForSchedule.volunteer).where(
            VolunteerForSchedule.user == user,
            VolunteerForSchedule.volunteer.is_not(None),
        )
        with self.store.transaction() as db:
            doomed = list(db.scalars(
                select(Volunteer.id).where(
                    Volunteer.user == user,
                    Volunteer.id.not_in(referenced),
                )
            ))
            _delete_ids(db, Volunteer, user, doomed)
        if doomed:
            logger.info("Removed %d orphaned volunteer(s) for %s", len(doomed), user)
        return doomed
