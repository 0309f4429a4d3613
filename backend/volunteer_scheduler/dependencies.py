from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status

from .assembly import ScheduleService
from .config import get_settings
from .db import Store, user_exists


def get_store(request: Request) -> Store:
    return request.app.state.store


def get_service(store: Store = Depends(get_store)) -> ScheduleService:
    return ScheduleService(store)


def get_current_user(
    x_user: Optional[str] = Header(default=None),
    store: Store = Depends(get_store),
) -> str:
    # No login: the owner is named by the X-User header or the configured default
    user = x_user or get_settings().default_user
    if not user_exists(store, user):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Unknown user: {user}",
        )
    return user
