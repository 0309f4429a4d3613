import pytest

from volunteer_scheduler.errors import EmptyRecordError
from volunteer_scheduler.models import Schedule, Volunteer
from volunteer_scheduler.query import build_select, is_populated, populated_fields
from volunteer_scheduler.schemas import ScheduleRecord, VolunteerRecord


@pytest.mark.parametrize(
    "value,zero_valid,expected",
    [
        (None, False, False),
        ("", False, False),
        ("Tim", False, True),
        (0, False, False),
        (0, True, True),
        (-1, True, False),
        (5, False, True),
    ],
)
def test_is_populated(value, zero_valid, expected):
    assert is_populated(value, zero_valid) is expected


def test_populated_fields_skips_defaults():
    record = ScheduleRecord(name="test1", shifts_off=0, volunteers_per_shift=2)
    assert populated_fields(record) == {"name": "test1", "volunteers_per_shift": 2}
    assert populated_fields(record, ("shifts_off",)) == {
        "name": "test1",
        "shifts_off": 0,
        "volunteers_per_shift": 2,
    }


def test_build_select_ors_records_and_ands_fields():
    stmt = build_select(
        Schedule,
        [ScheduleRecord(name="a", volunteers_per_shift=2), ScheduleRecord(name="b")],
        user="Seth",
    )
    sql = str(stmt.compile(compile_kwargs={"literal_binds": True}))
    assert '"Schedules"."User" = \'Seth\'' in sql
    assert " OR " in sql
    assert '"Schedules"."VolunteersPerShift" = 2' in sql
    assert "ORDER BY" in sql


def test_build_select_without_records_selects_everything_for_user():
    sql = str(build_select(Volunteer, user="Seth").compile())
    assert "WHERE" in sql
    assert " OR " not in sql


def test_build_select_refuses_empty_record():
    with pytest.raises(EmptyRecordError):
        build_select(Volunteer, [VolunteerRecord()])


def test_values_are_bound_parameters():
    stmt = build_select(Volunteer, [VolunteerRecord(name="x' OR '1'='1")])
    compiled = stmt.compile()
    assert "x' OR '1'='1" not in str(compiled)
    assert "x' OR '1'='1" in compiled.params.values()
