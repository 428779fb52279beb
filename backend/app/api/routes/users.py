import logging
import sqlite3
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from backend.app import crud
from backend.app.db import get_conn
from backend.app.errors import ok
from backend.app.models import DEFAULT_PREFERENCES, UserCreate, UserUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("")
def create_user(body: UserCreate, conn: sqlite3.Connection = Depends(get_conn)):
    existing = crud.get_user(conn, body.user_id)
    if existing:
        return ok(existing, "User already exists")

    preferences = DEFAULT_PREFERENCES
    if body.preferences is not None:
        preferences = body.preferences.model_dump(by_alias=True, exclude_none=True)

    user = crud.create_user(
        conn,
        user_id=body.user_id,
        farcaster_profile=(
            body.farcaster_profile.model_dump(by_alias=True, exclude_none=True)
            if body.farcaster_profile
            else None
        ),
        preferences=preferences,
    )
    logger.info("Created user %s", body.user_id)
    return ok(user, "User created successfully")


@router.get("")
def get_user(
    user_id: Optional[str] = Query(None, alias="userId"),
    conn: sqlite3.Connection = Depends(get_conn),
):
    if not user_id:
        raise HTTPException(status_code=400, detail="userId is required")
    user = crud.get_user(conn, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return ok(user)


@router.put("")
def update_user(
    body: UserUpdate,
    user_id: Optional[str] = Query(None, alias="userId"),
    conn: sqlite3.Connection = Depends(get_conn),
):
    if not user_id:
        raise HTTPException(status_code=400, detail="userId is required")

    fields = {}
    if body.farcaster_profile is not None:
        fields["farcaster_profile"] = body.farcaster_profile.model_dump(by_alias=True, exclude_none=True)
    if body.preferences is not None:
        fields["preferences"] = body.preferences.model_dump(by_alias=True, exclude_none=True)
    if body.purchase_history is not None:
        fields["purchase_history"] = body.purchase_history
    if body.interaction_log is not None:
        fields["interaction_log"] = body.interaction_log

    user = crud.update_user(conn, user_id, fields)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return ok(user, "User updated successfully")
