import logging
import sqlite3
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from backend.app import analytics
from backend.app.db import get_conn
from backend.app.errors import ok
from backend.app.models import AnalyticsEvent, InteractionCreate, PurchaseCreate
from backend.app.services import (
    FOLLOW_UP_THRESHOLD,
    follow_up_in_background,
    record_interaction,
    record_purchase,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("")
def get_analytics(
    type: str = Query("metrics"),
    period: str = Query("day"),
    store_id: Optional[str] = Query(None, alias="storeId"),
    conn: sqlite3.Connection = Depends(get_conn),
):
    if type == "metrics":
        return ok(analytics.store_metrics(conn, store_id))
    if type == "analytics":
        if period not in analytics.PERIODS:
            raise HTTPException(status_code=400, detail="Invalid period")
        return ok(analytics.period_analytics(conn, period))
    if type == "interactions":
        return ok(analytics.recent_activity(conn, store_id))
    raise HTTPException(status_code=400, detail="Invalid analytics type")


@router.post("")
def record_event(
    event: AnalyticsEvent,
    background_tasks: BackgroundTasks,
    conn: sqlite3.Connection = Depends(get_conn),
):
    try:
        if event.type == "interaction":
            body = InteractionCreate.model_validate(event.data)
            interaction = record_interaction(
                conn,
                user_id=body.user_id,
                product_id=body.product_id,
                type=body.type,
                location=body.location,
                metadata=body.metadata.model_dump(by_alias=True, exclude_none=True) if body.metadata else None,
            )
            return ok({"interactionId": interaction["interaction_id"]})

        if event.type == "purchase":
            body = PurchaseCreate.model_validate(event.data)
            purchase = record_purchase(conn, body.user_id, body)
            if body.total_amount > FOLLOW_UP_THRESHOLD:
                logger.info("Scheduling follow-up offer for %s", body.user_id)
                background_tasks.add_task(follow_up_in_background, body.user_id, body)
            return ok({"purchaseId": purchase["purchase_id"]})
    except ValidationError as e:
        raise RequestValidationError(e.errors())

    raise HTTPException(status_code=400, detail="Invalid event type")
