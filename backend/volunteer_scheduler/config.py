import logging
import os
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date
from typing import List

from dotenv import load_dotenv
from fastapi import FastAPI

# Load environment variables
load_dotenv()

# Database file lives in the backend directory unless VSA_DATABASE_URL says otherwise
backend_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
DEFAULT_DATABASE_URL = f"sqlite:///{os.path.join(backend_dir, 'vsa.db')}"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class Settings:
    database_url: str
    default_user: str
    dates_start: date
    dates_years: int
    log_level: str
    cors_origins: List[str]


def get_settings() -> Settings:
    return Settings(
        database_url=os.getenv("VSA_DATABASE_URL", DEFAULT_DATABASE_URL),
        default_user=os.getenv("VSA_DEFAULT_USER", "Seth"),
        dates_start=date.fromisoformat(os.getenv("VSA_DATES_START", "2023-01-01")),
        dates_years=int(os.getenv("VSA_DATES_YEARS", "40")),
        log_level=os.getenv("VSA_LOG_LEVEL", "INFO").upper(),
        cors_origins=[
            origin.strip()
            for origin in os.getenv("VSA_CORS_ORIGINS", "http://localhost:5173").split(",")
            if origin.strip()
        ],
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Imported here so the settings module stays free of database imports
    from .db import Store, init_database

    settings = get_settings()
    configure_logging(settings.log_level)
    logger = logging.getLogger(__name__)

    store = getattr(app.state, "store", None)
    owns_store = store is None
    if owns_store:
        store = Store(settings.database_url)
        app.state.store = store
    app.state.settings = settings

    logger.info("Initializing database tables and lookup data if missing...")
    init_database(store, settings)
    yield
    if owns_store:
        store.close()
        logger.info("Database store closed.")
