"""
Pydantic records exchanged with the data layer.

Every field of a record is optional: a record doubles as a partial filter
(unset fields are ignored), as a proposed row for create/update, and as the
result of a read. Field names match the attribute names on the SQLAlchemy
models so the query builder can map one onto the other.
"""

from datetime import date as calendar_date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import InvalidRecordError

DATE_FORMAT = "%Y-%m-%d"
ILLEGAL_SCHEDULE_NAME_CHARACTERS = '\\/:*?"<>|'
# Sunday first, matching WeekdayID 1..7
WEEKDAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")


class Record(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)


class WeekdayRecord(Record):
    id: Optional[int] = None
    name: Optional[str] = None


class MonthRecord(Record):
    id: Optional[int] = None
    name: Optional[str] = None


class DateRecord(Record):
    id: Optional[int] = None
    month: Optional[int] = None
    day: Optional[int] = None
    year: Optional[int] = None
    weekday: Optional[str] = None

    def to_string(self) -> str:
        return f"{self.year:d}-{self.month:02d}-{self.day:02d}"

    @classmethod
    def from_string(cls, value: str) -> "DateRecord":
        """Parse YYYY-MM-DD into a filter record (no DateID yet)"""
        try:
            parsed = datetime.strptime(value, DATE_FORMAT).date()
        except (TypeError, ValueError) as e:
            raise InvalidRecordError(
                f'"{value}" is not in a valid date format (YYYY-MM-DD): {e}'
            ) from e
        return cls(month=parsed.month, day=parsed.day, year=parsed.year)

    def to_date(self) -> calendar_date:
        return calendar_date(self.year, self.month, self.day)


class VolunteerRecord(Record):
    id: Optional[int] = None
    name: Optional[str] = None
    user: Optional[str] = None


class ScheduleRecord(Record):
    """
    shifts_off is tri-state: None means "not provided", 0 is only a real value
    when the caller asks for include_shifts_off_0.
    """

    id: Optional[int] = None
    name: Optional[str] = None
    shifts_off: Optional[int] = None
    volunteers_per_shift: Optional[int] = None
    user: Optional[str] = None
    start_date: Optional[int] = None
    end_date: Optional[int] = None


class WeekdayForScheduleRecord(Record):
    id: Optional[int] = None
    user: Optional[str] = None
    weekday: Optional[str] = None
    schedule: Optional[int] = None


class VolunteerForScheduleRecord(Record):
    id: Optional[int] = None
    user: Optional[str] = None
    schedule: Optional[int] = None
    volunteer: Optional[int] = None


class UnavailabilityForScheduleRecord(Record):
    id: Optional[int] = None
    user: Optional[str] = None
    vfs: Optional[int] = None
    date: Optional[int] = None


class ScheduledVolunteerOnDateRecord(Record):
    id: Optional[int] = None
    user: Optional[str] = None
    vfs: Optional[int] = None
    date: Optional[int] = None


class SchedulePayload(BaseModel):
    """Composite view of one schedule, as fetched and stored by the assembly layer"""

    schedule_name: str
    shifts_off: Optional[int] = Field(default=None, ge=0)
    volunteers_per_shift: Optional[int] = Field(default=None, ge=1)
    user: Optional[str] = None
    start_date: str
    end_date: str
    weekdays_for_schedule: List[str] = []
    volunteer_unavailability_data: Dict[str, List[str]] = {}
    volunteer_scheduled_data: Dict[str, List[str]] = {}
    weeks: Optional[int] = None  # filled on fetch, ignored on store

    @field_validator("schedule_name")
    @classmethod
    def check_schedule_name(cls, value: str) -> str:
        if not value:
            raise ValueError("schedule name must not be empty")
        if any(c in ILLEGAL_SCHEDULE_NAME_CHARACTERS for c in value):
            raise ValueError(
                f"schedule name contains illegal characters ({ILLEGAL_SCHEDULE_NAME_CHARACTERS})"
            )
        return value

    @field_validator("start_date", "end_date")
    @classmethod
    def check_date_string(cls, value: str) -> str:
        datetime.strptime(value, DATE_FORMAT)
        return value

    @field_validator("weekdays_for_schedule")
    @classmethod
    def check_weekdays(cls, value: List[str]) -> List[str]:
        unknown = [v for v in value if v not in WEEKDAY_NAMES]
        if unknown:
            raise ValueError(f"unknown weekday names: {unknown}")
        return value

    @field_validator("volunteer_unavailability_data", "volunteer_scheduled_data")
    @classmethod
    def check_volunteer_dates(cls, value: Dict[str, List[str]]) -> Dict[str, List[str]]:
        for name, dates in value.items():
            if not name:
                raise ValueError("volunteer names must not be empty")
            for d in dates:
                datetime.strptime(d, DATE_FORMAT)
        return value

    def volunteer_names(self) -> List[str]:
        """Every volunteer named in either map, in first-seen order"""
        names = dict.fromkeys(self.volunteer_unavailability_data)
        names.update(dict.fromkeys(self.volunteer_scheduled_data))
        return list(names)


class ScheduleNamesResponse(BaseModel):
    user: str
    schedules: List[str]
