from datetime import date

import pytest

from volunteer_scheduler.assembly import ScheduleService
from volunteer_scheduler.config import Settings
from volunteer_scheduler.db import Store, ensure_user, init_database
from volunteer_scheduler.lookups import Lookups
from volunteer_scheduler.schemas import ScheduleRecord

USER = "Seth"
OTHER_USER = "Ada"


@pytest.fixture
def settings(tmp_path):
    # Two years of dates keeps the seeding quick and covers every date used below
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'vsa.db'}",
        default_user=USER,
        dates_start=date(2023, 1, 1),
        dates_years=2,
        log_level="DEBUG",
        cors_origins=[],
    )


@pytest.fixture
def store(settings):
    store = Store(settings.database_url)
    init_database(store, settings)
    ensure_user(store, OTHER_USER)
    yield store
    store.close()


@pytest.fixture
def lookups(store):
    return Lookups(store)


@pytest.fixture
def service(store):
    return ScheduleService(store)


@pytest.fixture
def date_id(lookups):
    def resolve(value: str) -> int:
        return lookups.date(value).id

    return resolve


@pytest.fixture
def make_schedule(service, date_id):
    """Create a schedule row directly through the repository"""

    def create(name="test1", shifts_off=3, volunteers_per_shift=3, start="2024-01-01", end="2024-03-01", user=USER):
        record = ScheduleRecord(
            name=name,
            shifts_off=shifts_off,
            volunteers_per_shift=volunteers_per_shift,
            start_date=date_id(start),
            end_date=date_id(end),
        )
        return service.schedules.create(user, [record], include_shifts_off_0=True)[0]

    return create
