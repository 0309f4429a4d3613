"""
Aggregate assembly: one schedule as a single composite payload.

fetch_schedule gathers the rows of a schedule into a SchedulePayload.
store_schedule goes the other way: it makes sure every row the payload
declares exists, then reconciles each level so that nothing else does. The
steps are not wrapped in one transaction. Each step commits on its own and is
idempotent, so a store interrupted half way converges when it is run again.
"""

import logging
from datetime import date
from typing import Dict, List, Optional

from .crud import (
    ScheduledVolunteerOnDateRepository,
    ScheduleRepository,
    UnavailabilityForScheduleRepository,
    VolunteerForScheduleRepository,
    VolunteerRepository,
    WeekdayForScheduleRepository,
)
from .db import Store
from .lookups import Lookups
from .reconcile import Reconciler
from .schemas import (
    WEEKDAY_NAMES,
    DateRecord,
    SchedulePayload,
    ScheduledVolunteerOnDateRecord,
    ScheduleRecord,
    UnavailabilityForScheduleRecord,
    VolunteerForScheduleRecord,
    VolunteerRecord,
    WeekdayForScheduleRecord,
)

logger = logging.getLogger(__name__)


def weeks_between(start: date, end: date) -> int:
    """Whole weeks spanned by a schedule"""
    return abs((end - start).days) // 7


class ScheduleService:
    def __init__(self, store: Store):
        self.store = store
        self.lookups = Lookups(store)
        self.schedules = ScheduleRepository(store)
        self.volunteers = VolunteerRepository(store)
        self.weekdays_for_schedule = WeekdayForScheduleRepository(store)
        self.volunteers_for_schedule = VolunteerForScheduleRepository(store)
        self.unavailabilities = UnavailabilityForScheduleRepository(store)
        self.scheduled = ScheduledVolunteerOnDateRepository(store)
        self.reconciler = Reconciler(store)

    def schedule_names(self, user: str, ordered: bool = True) -> List[str]:
        names = list(dict.fromkeys(s.name for s in self.schedules.read(user)))
        if ordered:
            names.sort()
        return names

    def find_schedule(self, user: str, name: str) -> ScheduleRecord:
        return self.schedules.read_single(user, ScheduleRecord(name=name))

    # Fetch

    def fetch_schedule(self, user: str, name: str) -> SchedulePayload:
        return self._assemble(user, self.find_schedule(user, name))

    def _assemble(self, user: str, schedule: ScheduleRecord) -> SchedulePayload:
        wfs = self.weekdays_for_schedule.read(user, [WeekdayForScheduleRecord(schedule=schedule.id)])
        weekdays = sorted({w.weekday for w in wfs}, key=WEEKDAY_NAMES.index)

        vfs_rows = self.volunteers_for_schedule.read(
            user, [VolunteerForScheduleRecord(schedule=schedule.id)]
        )
        volunteer_names: Dict[int, str] = {}
        unavailable: List[UnavailabilityForScheduleRecord] = []
        scheduled: List[ScheduledVolunteerOnDateRecord] = []
        if vfs_rows:
            volunteers = self.volunteers.read(user, [VolunteerRecord(id=v.volunteer) for v in vfs_rows])
            by_id = {v.id: v.name for v in volunteers}
            volunteer_names = {v.id: by_id[v.volunteer] for v in vfs_rows}
            unavailable = self.unavailabilities.read(
                user, [UnavailabilityForScheduleRecord(vfs=v.id) for v in vfs_rows]
            )
            scheduled = self.scheduled.read(
                user, [ScheduledVolunteerOnDateRecord(vfs=v.id) for v in vfs_rows]
            )

        date_ids = [schedule.start_date, schedule.end_date]
        date_ids.extend(row.date for row in unavailable)
        date_ids.extend(row.date for row in scheduled)
        dates = self.lookups.dates_by_id(date_ids)

        def date_map(rows) -> Dict[str, List[str]]:
            result = {name: [] for name in volunteer_names.values()}
            for row in rows:
                result[volunteer_names[row.vfs]].append(dates[row.date])
            return {
                name: [d.to_string() for d in sorted(values, key=DateRecord.to_date)]
                for name, values in result.items()
            }

        start, end = dates[schedule.start_date], dates[schedule.end_date]
        return SchedulePayload(
            schedule_name=schedule.name,
            shifts_off=schedule.shifts_off,
            volunteers_per_shift=schedule.volunteers_per_shift,
            user=user,
            start_date=start.to_string(),
            end_date=end.to_string(),
            weekdays_for_schedule=weekdays,
            volunteer_unavailability_data=date_map(unavailable),
            volunteer_scheduled_data=date_map(scheduled),
            weeks=weeks_between(start.to_date(), end.to_date()),
        )

    # Store

    def store_schedule(self, user: str, payload: SchedulePayload, is_new: bool) -> SchedulePayload:
        """
        Create (is_new) or update the schedule described by payload and bring
        its weekdays, volunteers and dates in line with it. Returns the
        schedule as stored.
        """
        bounds = self.lookups.dates_from_strings([payload.start_date, payload.end_date])
        proposed = ScheduleRecord(
            name=payload.schedule_name,
            shifts_off=payload.shifts_off,
            volunteers_per_shift=payload.volunteers_per_shift,
            start_date=bounds[payload.start_date].id,
            end_date=bounds[payload.end_date].id,
        )
        if is_new:
            schedule = self.schedules.create(user, [proposed], include_shifts_off_0=True)[0]
            logger.info("Created schedule %s for %s", schedule.name, user)
        else:
            schedule = self._update_schedule(user, proposed)

        weekdays = [self.lookups.weekday(name) for name in dict.fromkeys(payload.weekdays_for_schedule)]
        self._ensure_weekdays(user, schedule, weekdays)

        volunteers = self._ensure_volunteers(user, payload.volunteer_names())
        vfs_by_name = self._ensure_volunteers_for_schedule(user, schedule, volunteers)

        all_dates = []
        for data in (payload.volunteer_unavailability_data, payload.volunteer_scheduled_data):
            for values in data.values():
                all_dates.extend(values)
        resolved = self.lookups.dates_from_strings(all_dates)

        wanted_unavailable = {
            name: [resolved[d] for d in payload.volunteer_unavailability_data.get(name, [])]
            for name in vfs_by_name
        }
        wanted_scheduled = {
            name: [resolved[d] for d in payload.volunteer_scheduled_data.get(name, [])]
            for name in vfs_by_name
        }
        self._ensure_dates(self.unavailabilities, UnavailabilityForScheduleRecord, user, vfs_by_name, wanted_unavailable)
        self._ensure_dates(self.scheduled, ScheduledVolunteerOnDateRecord, user, vfs_by_name, wanted_scheduled)

        self.reconciler.weekdays_for_schedule(user, schedule, weekdays)
        self.reconciler.volunteers_for_schedule(
            user, schedule, volunteers.values(), cascade_ufs=True, cascade_svod=True
        )
        for name, vfs in vfs_by_name.items():
            self.reconciler.unavailability_for_vfs(user, vfs, wanted_unavailable[name])
            self.reconciler.scheduled_for_vfs(user, vfs, wanted_scheduled[name])
        self.reconciler.orphaned_volunteers(user)

        return self._assemble(user, schedule)

    def _update_schedule(self, user: str, proposed: ScheduleRecord) -> ScheduleRecord:
        current = self.find_schedule(user, proposed.name)
        changes = {
            name: value
            for name, value in proposed.model_dump(exclude={"id", "user", "name"}).items()
            if value is not None and value != getattr(current, name)
        }
        if not changes:
            return current
        logger.info("Updating schedule %s for %s: %s", current.name, user, sorted(changes))
        updated = self.schedules.update(
            user, [ScheduleRecord(id=current.id, **changes)], include_shifts_off_0=True
        )
        return updated[0] if updated else current

    def _ensure_weekdays(self, user, schedule, weekdays) -> None:
        existing = {
            w.weekday
            for w in self.weekdays_for_schedule.read(user, [WeekdayForScheduleRecord(schedule=schedule.id)])
        }
        missing = [
            WeekdayForScheduleRecord(schedule=schedule.id, weekday=w.name)
            for w in weekdays
            if w.name not in existing
        ]
        if missing:
            self.weekdays_for_schedule.create(user, missing)

    def _ensure_volunteers(self, user: str, names: List[str]) -> Dict[str, VolunteerRecord]:
        if not names:
            return {}
        found = {v.name: v for v in self.volunteers.read(user, [VolunteerRecord(name=n) for n in names])}
        missing = [VolunteerRecord(name=n) for n in names if n not in found]
        if missing:
            for volunteer in self.volunteers.create(user, missing):
                found[volunteer.name] = volunteer
        return {name: found[name] for name in names}

    def _ensure_volunteers_for_schedule(
        self, user: str, schedule: ScheduleRecord, volunteers: Dict[str, VolunteerRecord]
    ) -> Dict[str, VolunteerForScheduleRecord]:
        existing = {
            v.volunteer: v
            for v in self.volunteers_for_schedule.read(user, [VolunteerForScheduleRecord(schedule=schedule.id)])
        }
        missing = [
            VolunteerForScheduleRecord(schedule=schedule.id, volunteer=v.id)
            for v in volunteers.values()
            if v.id not in existing
        ]
        if missing:
            for vfs in self.volunteers_for_schedule.create(user, missing):
                existing[vfs.volunteer] = vfs
        return {name: existing[v.id] for name, v in volunteers.items()}

    @staticmethod
    def _ensure_dates(repository, record_type, user, vfs_by_name, wanted) -> None:
        if not vfs_by_name:
            return
        present = {
            (row.vfs, row.date)
            for row in repository.read(user, [record_type(vfs=v.id) for v in vfs_by_name.values()])
        }
        missing = []
        for name, vfs in vfs_by_name.items():
            for d in dict.fromkeys(wanted[name]):
                if (vfs.id, d.id) not in present:
                    missing.append(record_type(vfs=vfs.id, date=d.id))
        if missing:
            repository.create(user, missing)

    # Delete

    def delete_schedule(self, user: str, name: str) -> Optional[int]:
        """Remove a schedule with everything hanging off it. Returns its id."""
        schedule = self.find_schedule(user, name)
        self.reconciler.volunteers_for_schedule(user, schedule, [], cascade_ufs=True, cascade_svod=True)
        self.reconciler.weekdays_for_schedule(user, schedule, [])
        self.schedules.delete(user, [ScheduleRecord(id=schedule.id)])
        self.reconciler.orphaned_volunteers(user)
        logger.info("Deleted schedule %s for %s", name, user)
        return schedule.id
