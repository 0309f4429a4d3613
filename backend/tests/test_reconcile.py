import pytest

from volunteer_scheduler.errors import StoreError, UnresolvedReferenceError
from volunteer_scheduler.schemas import (
    ScheduledVolunteerOnDateRecord,
    ScheduleRecord,
    UnavailabilityForScheduleRecord,
    VolunteerForScheduleRecord,
    VolunteerRecord,
    WeekdayForScheduleRecord,
)

USER = "Seth"


@pytest.fixture
def schedule(make_schedule):
    return make_schedule()


@pytest.fixture
def crew(service, schedule, date_id):
    """Tim and Bill on the schedule, each with unavailable and scheduled dates"""
    tim, bill = service.volunteers.create(USER, [VolunteerRecord(name="Tim"), VolunteerRecord(name="Bill")])
    tim_vfs, bill_vfs = service.volunteers_for_schedule.create(
        USER,
        [
            VolunteerForScheduleRecord(schedule=schedule.id, volunteer=tim.id),
            VolunteerForScheduleRecord(schedule=schedule.id, volunteer=bill.id),
        ],
    )
    for vfs in (tim_vfs, bill_vfs):
        service.unavailabilities.create(
            USER,
            [UnavailabilityForScheduleRecord(vfs=vfs.id, date=date_id(d)) for d in ("2024-01-14", "2024-01-21")],
        )
        service.scheduled.create(USER, [ScheduledVolunteerOnDateRecord(vfs=vfs.id, date=date_id("2024-01-07"))])
    return {"tim": tim, "bill": bill, "tim_vfs": tim_vfs, "bill_vfs": bill_vfs}


def weekdays_of(service, schedule):
    return sorted(w.weekday for w in service.weekdays_for_schedule.read(USER, [WeekdayForScheduleRecord(schedule=schedule.id)]))


def test_weekdays_reconcile_is_idempotent(service, schedule, lookups):
    service.weekdays_for_schedule.create(
        USER, [WeekdayForScheduleRecord(schedule=schedule.id, weekday=d) for d in ("Sunday", "Monday", "Friday")]
    )
    desired = [lookups.weekday("Sunday"), lookups.weekday("Friday")]
    removed = service.reconciler.weekdays_for_schedule(USER, schedule, desired)
    assert len(removed) == 1
    assert weekdays_of(service, schedule) == ["Friday", "Sunday"]
    assert service.reconciler.weekdays_for_schedule(USER, schedule, desired) == []
    assert weekdays_of(service, schedule) == ["Friday", "Sunday"]


def test_weekdays_reconcile_to_nothing(service, schedule, lookups):
    service.weekdays_for_schedule.create(USER, [WeekdayForScheduleRecord(schedule=schedule.id, weekday="Sunday")])
    service.reconciler.weekdays_for_schedule(USER, schedule, [])
    assert weekdays_of(service, schedule) == []


def test_reconcile_needs_resolved_ids(service, schedule, lookups):
    with pytest.raises(UnresolvedReferenceError):
        service.reconciler.weekdays_for_schedule(USER, ScheduleRecord(name="test1"), [])
    with pytest.raises(UnresolvedReferenceError):
        service.reconciler.weekdays_for_schedule(USER, schedule, [lookups.weekday("Sunday").model_copy(update={"id": None})])
    with pytest.raises(UnresolvedReferenceError):
        service.reconciler.volunteers_for_schedule(USER, schedule, [VolunteerRecord(name="Tim")])
    with pytest.raises(UnresolvedReferenceError):
        service.reconciler.unavailability_for_vfs(USER, VolunteerForScheduleRecord(), [])


def test_volunteers_reconcile_cascades(service, schedule, crew):
    removed = service.reconciler.volunteers_for_schedule(
        USER, schedule, [crew["bill"]], cascade_ufs=True, cascade_svod=True
    )
    assert removed == [crew["tim_vfs"].id]
    remaining_vfs = {v.id for v in service.volunteers_for_schedule.read(USER)}
    assert remaining_vfs == {crew["bill_vfs"].id}
    # No dependent row points at the removed volunteer row
    assert {u.vfs for u in service.unavailabilities.read(USER)} == remaining_vfs
    assert {s.vfs for s in service.scheduled.read(USER)} == remaining_vfs
    assert service.reconciler.volunteers_for_schedule(
        USER, schedule, [crew["bill"]], cascade_ufs=True, cascade_svod=True
    ) == []


def test_volunteers_reconcile_without_cascade_is_blocked(service, schedule, crew):
    with pytest.raises(StoreError):
        service.reconciler.volunteers_for_schedule(USER, schedule, [crew["bill"]], cascade_ufs=True)
    # The failed transaction removed nothing
    assert len(service.unavailabilities.read(USER)) == 4
    assert len(service.volunteers_for_schedule.read(USER)) == 2


def test_dates_reconcile_per_vfs(service, crew, lookups):
    keep = lookups.date("2024-01-21")
    removed = service.reconciler.unavailability_for_vfs(USER, crew["tim_vfs"], [keep])
    assert len(removed) == 1
    tim_dates = service.unavailabilities.read(USER, [UnavailabilityForScheduleRecord(vfs=crew["tim_vfs"].id)])
    assert [u.date for u in tim_dates] == [keep.id]
    # Bill's rows are untouched
    assert len(service.unavailabilities.read(USER, [UnavailabilityForScheduleRecord(vfs=crew["bill_vfs"].id)])) == 2
    assert service.reconciler.unavailability_for_vfs(USER, crew["tim_vfs"], [keep]) == []

    assert len(service.reconciler.scheduled_for_vfs(USER, crew["bill_vfs"], [])) == 1
    assert service.scheduled.read(USER, [ScheduledVolunteerOnDateRecord(vfs=crew["bill_vfs"].id)]) == []


def test_orphaned_volunteers(service, schedule, crew, make_schedule):
    other = make_schedule(name="other", end="2024-04-01")
    service.volunteers_for_schedule.create(
        USER, [VolunteerForScheduleRecord(schedule=other.id, volunteer=crew["tim"].id)]
    )
    lonely = service.volunteers.create(USER, [VolunteerRecord(name="Lonely")])[0]

    assert service.reconciler.orphaned_volunteers(USER) == [lonely.id]
    assert sorted(v.name for v in service.volunteers.read(USER)) == ["Bill", "Tim"]

    # Tim is still on "other" after leaving test1
    service.reconciler.volunteers_for_schedule(USER, schedule, [], cascade_ufs=True, cascade_svod=True)
    assert service.reconciler.orphaned_volunteers(USER) == [crew["bill"].id]
    assert [v.name for v in service.volunteers.read(USER)] == ["Tim"]
    assert service.reconciler.orphaned_volunteers(USER) == []


def test_orphan_sweep_is_per_user(service, crew):
    service.volunteers.create("Ada", [VolunteerRecord(name="Solo")])
    assert service.reconciler.orphaned_volunteers(USER) == []
    assert [v.name for v in service.volunteers.read("Ada")] == ["Solo"]
