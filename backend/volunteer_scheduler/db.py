import logging
from contextlib import contextmanager
from datetime import date, timedelta
from typing import Iterator, Optional

from sqlalchemy import create_engine, event, func, insert, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from .config import Settings, get_settings
from .errors import StoreError
from .models import Base, Date, Month, User, Weekday
from .schemas import WEEKDAY_NAMES

logger = logging.getLogger(__name__)

MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)
DAYS_PER_YEAR = 365.25


def weekday_name(day: date) -> str:
    # date.weekday() is Monday=0
    return WEEKDAY_NAMES[(day.weekday() + 1) % 7]


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Store:
    """
    Explicit handle on the database. Build one at startup, pass it to every
    component, and close it at shutdown.
    """

    def __init__(self, database_url: str, echo: bool = False):
        connect_args = {}
        if database_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False  # Required for SQLite with FastAPI
        self.database_url = database_url
        self.engine: Engine = create_engine(database_url, echo=echo, connect_args=connect_args)
        if self.engine.dialect.name == "sqlite":
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)
        self._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Session for reads. Nothing is committed."""
        db = self._session_factory()
        try:
            yield db
        except SQLAlchemyError as e:
            logger.error("Database read failed: %s", e)
            raise StoreError(f"database read failed: {e}") from e
        finally:
            db.close()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Session wrapped in one transaction: commit on success, rollback on any error."""
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Database transaction rolled back: %s", e)
            raise StoreError(f"database transaction failed: {e}") from e
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def ping(self) -> None:
        with self.session() as db:
            db.execute(text("SELECT 1"))

    def close(self) -> None:
        self.engine.dispose()


def init_database(store: Store, settings: Optional[Settings] = None) -> bool:
    """
    Create the tables, fill the lookup tables and register the default user.
    Lookup data is only written when the Weekdays table is empty, so calling
    this again is harmless; the default user is checked on every call.
    Returns True when the lookup data was written by this call.
    """
    settings = settings or get_settings()
    try:
        Base.metadata.create_all(bind=store.engine)
    except SQLAlchemyError as e:
        raise StoreError(f"could not create tables: {e}") from e

    filled = False
    with store.transaction() as db:
        if db.scalar(select(func.count()).select_from(Weekday)):
            logger.debug("Lookup tables already filled")
        else:
            db.execute(insert(Weekday), [{"name": name} for name in WEEKDAY_NAMES])
            db.execute(insert(Month), [{"name": name} for name in MONTH_NAMES])

            total_days = int(DAYS_PER_YEAR * settings.dates_years)
            rows = []
            for offset in range(total_days):
                day = settings.dates_start + timedelta(days=offset)
                rows.append(
                    {"month": day.month, "day": day.day, "year": day.year, "weekday": weekday_name(day)}
                )
            db.execute(insert(Date), rows)
            logger.info(
                "Filled lookup tables: %d weekdays, %d months, %d dates starting %s",
                len(WEEKDAY_NAMES), len(MONTH_NAMES), total_days, settings.dates_start.isoformat(),
            )
            filled = True

    ensure_user(store, settings.default_user)
    return filled


def ensure_user(store: Store, name: str) -> bool:
    """Register an owner if missing. Returns True when a row was added."""
    with store.transaction() as db:
        if db.get(User, name) is not None:
            return False
        db.add(User(name=name))
    logger.info("Registered user %s", name)
    return True


def user_exists(store: Store, name: str) -> bool:
    with store.session() as db:
        return db.get(User, name) is not None
