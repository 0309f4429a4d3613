import logging

from fastapi import Depends, FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware

from .assembly import ScheduleService
from .config import get_settings, lifespan
from .db import Store
from .dependencies import get_current_user, get_service, get_store
from .errors import (
    CardinalityError,
    ConflictError,
    InvalidRecordError,
    SchedulerError,
    StoreError,
)
from .schemas import SchedulePayload, ScheduleNamesResponse

logger = logging.getLogger(__name__)

app = FastAPI(lifespan=lifespan)

# Add CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,  # Vite frontend by default
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def http_error(e: SchedulerError) -> HTTPException:
    # Unresolved references are validation errors first
    if isinstance(e, InvalidRecordError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if isinstance(e, CardinalityError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, ConflictError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    logger.error("Request failed: %s", e)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


@app.get("/health")
def db_check(store: Store = Depends(get_store)):
    try:
        store.ping()
        return {"status": "ok", "message": "Database connection successful"}
    except StoreError as e:
        raise HTTPException(
            status_code=500, detail=f"Database connection failed: {str(e)}"
        )


@app.get("/schedules", response_model=ScheduleNamesResponse)
def list_schedules(
    user: str = Depends(get_current_user),
    service: ScheduleService = Depends(get_service),
):
    try:
        return ScheduleNamesResponse(user=user, schedules=service.schedule_names(user))
    except SchedulerError as e:
        raise http_error(e)


@app.get("/schedules/{name}", response_model=SchedulePayload)
def get_schedule(
    name: str,
    user: str = Depends(get_current_user),
    service: ScheduleService = Depends(get_service),
):
    try:
        return service.fetch_schedule(user, name)
    except SchedulerError as e:
        raise http_error(e)


@app.post("/schedules", response_model=SchedulePayload, status_code=status.HTTP_201_CREATED)
def create_schedule(
    payload: SchedulePayload,
    user: str = Depends(get_current_user),
    service: ScheduleService = Depends(get_service),
):
    try:
        return service.store_schedule(user, payload, is_new=True)
    except SchedulerError as e:
        raise http_error(e)


@app.put("/schedules/{name}", response_model=SchedulePayload)
def update_schedule(
    name: str,
    payload: SchedulePayload,
    user: str = Depends(get_current_user),
    service: ScheduleService = Depends(get_service),
):
    if payload.schedule_name != name:
        raise HTTPException(
            status_code=400,
            detail=f"Schedule name in the body ({payload.schedule_name}) does not match the URL ({name}); renaming is not supported",
        )
    try:
        return service.store_schedule(user, payload, is_new=False)
    except SchedulerError as e:
        raise http_error(e)


@app.delete("/schedules/{name}")
def delete_schedule(
    name: str,
    user: str = Depends(get_current_user),
    service: ScheduleService = Depends(get_service),
):
    try:
        service.delete_schedule(user, name)
    except SchedulerError as e:
        raise http_error(e)
    return {"status": "ok", "message": f"Schedule {name} deleted"}
