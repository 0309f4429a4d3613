"""
Database models for the volunteer scheduler - SQLAlchemy 2.0 style

Foreign keys are declared but none of them cascade on delete. Removing
dependent rows is the job of the reconciliation engine.
"""

from typing import Optional
from sqlalchemy import CheckConstraint, ForeignKey, Integer, LargeBinary, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models"""
    pass


# Lookup tables (filled once by init_database, never written afterwards)


class Weekday(Base):
    __tablename__ = 'Weekdays'

    id: Mapped[int] = mapped_column('WeekdayID', Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column('WeekdayName', String, unique=True, nullable=False)


class Month(Base):
    __tablename__ = 'Months'

    id: Mapped[int] = mapped_column('MonthID', Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column('MonthName', String, unique=True, nullable=False)


class Date(Base):
    __tablename__ = 'Dates'
    __table_args__ = (
        CheckConstraint('Month > 0'),
        CheckConstraint('Day > 0'),
        CheckConstraint('Year > 0'),
    )

    id: Mapped[int] = mapped_column('DateID', Integer, primary_key=True, autoincrement=True)
    month: Mapped[int] = mapped_column('Month', ForeignKey('Months.MonthID'), nullable=False)
    day: Mapped[int] = mapped_column('Day', Integer, nullable=False)
    year: Mapped[int] = mapped_column('Year', Integer, nullable=False)
    weekday: Mapped[str] = mapped_column('Weekday', ForeignKey('Weekdays.WeekdayName'), nullable=False)


class User(Base):
    __tablename__ = 'Users'

    name: Mapped[str] = mapped_column('UserName', String, primary_key=True)
    password: Mapped[Optional[bytes]] = mapped_column('Password', LargeBinary(64))


# Per-user tables


class Volunteer(Base):
    __tablename__ = 'Volunteers'

    id: Mapped[int] = mapped_column('VolunteerID', Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column('VolunteerName', String, nullable=False)
    user: Mapped[str] = mapped_column('User', ForeignKey('Users.UserName'), nullable=False)


class Schedule(Base):
    __tablename__ = 'Schedules'
    __table_args__ = (
        CheckConstraint('ShiftsOff > -1'),
        CheckConstraint('VolunteersPerShift > 0'),
        CheckConstraint('StartDate > 0'),
        CheckConstraint('EndDate > 0'),
    )

    id: Mapped[int] = mapped_column('ScheduleID', Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column('ScheduleName', String, nullable=False)
    shifts_off: Mapped[int] = mapped_column('ShiftsOff', Integer, nullable=False)
    volunteers_per_shift: Mapped[int] = mapped_column('VolunteersPerShift', Integer, nullable=False)
    user: Mapped[str] = mapped_column('User', ForeignKey('Users.UserName'), nullable=False)
    start_date: Mapped[int] = mapped_column('StartDate', ForeignKey('Dates.DateID'), nullable=False)
    end_date: Mapped[int] = mapped_column('EndDate', ForeignKey('Dates.DateID'), nullable=False)


class WeekdayForSchedule(Base):
    __tablename__ = 'WeekdaysForSchedule'

    id: Mapped[int] = mapped_column('WFSID', Integer, primary_key=True, autoincrement=True)
    user: Mapped[str] = mapped_column('User', ForeignKey('Users.UserName'), nullable=False)
    weekday: Mapped[str] = mapped_column('Weekday', ForeignKey('Weekdays.WeekdayName'), nullable=False)
    schedule: Mapped[int] = mapped_column('Schedule', ForeignKey('Schedules.ScheduleID'), nullable=False)


class VolunteerForSchedule(Base):
    __tablename__ = 'VolunteersForSchedule'

    id: Mapped[int] = mapped_column('VFSID', Integer, primary_key=True, autoincrement=True)
    user: Mapped[str] = mapped_column('User', ForeignKey('Users.UserName'), nullable=False)
    schedule: Mapped[int] = mapped_column('Schedule', ForeignKey('Schedules.ScheduleID'), nullable=False)
    volunteer: Mapped[int] = mapped_column('Volunteer', ForeignKey('Volunteers.VolunteerID'), nullable=False)


class UnavailabilityForSchedule(Base):
    __tablename__ = 'UnavailabilitiesForSchedule'

    id: Mapped[int] = mapped_column('UFSID', Integer, primary_key=True, autoincrement=True)
    user: Mapped[str] = mapped_column('User', ForeignKey('Users.UserName'), nullable=False)
    vfs: Mapped[int] = mapped_column(
        'VolunteerForSchedule', ForeignKey('VolunteersForSchedule.VFSID'), nullable=False
    )
    date: Mapped[int] = mapped_column('Date', ForeignKey('Dates.DateID'), nullable=False)


class ScheduledVolunteerOnDate(Base):
    __tablename__ = 'scheduledVolunteersOnDates'

    id: Mapped[int] = mapped_column('SVODID', Integer, primary_key=True, autoincrement=True)
    user: Mapped[str] = mapped_column('User', ForeignKey('Users.UserName'), nullable=False)
    vfs: Mapped[int] = mapped_column(
        'VolunteerForSchedule', ForeignKey('VolunteersForSchedule.VFSID'), nullable=False
    )
    date: Mapped[int] = mapped_column('Date', ForeignKey('Dates.DateID'), nullable=False)
