import sqlite3
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from backend.app import analytics, crud
from backend.app.db import get_conn
from backend.app.errors import ok
from backend.app.models import InteractionCreate
from backend.app.services import record_interaction

router = APIRouter()


@router.post("")
def create_interaction(body: InteractionCreate, conn: sqlite3.Connection = Depends(get_conn)):
    interaction = record_interaction(
        conn,
        user_id=body.user_id,
        product_id=body.product_id,
        type=body.type,
        location=body.location,
        metadata=body.metadata.model_dump(by_alias=True, exclude_none=True) if body.metadata else None,
    )
    return ok(interaction, "Interaction recorded successfully")


@router.get("")
def list_interactions(
    user_id: Optional[str] = Query(None, alias="userId"),
    product_id: Optional[str] = Query(None, alias="productId"),
    type: Optional[str] = Query(None),
    location: Optional[str] = Query(None),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    conn: sqlite3.Connection = Depends(get_conn),
):
    rows, total = crud.list_interactions(
        conn,
        user_id=user_id,
        product_id=product_id,
        type=type,
        location=location,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        offset=offset,
    )
    return ok(rows, pagination={"limit": limit, "offset": offset, "total": total})


# PUT carries the read-only analytics views
@router.put("")
def interaction_analytics(
    kind: Optional[str] = Query(None, alias="analytics"),
    conn: sqlite3.Connection = Depends(get_conn),
):
    if kind == "summary":
        return ok(analytics.interaction_summary(conn))
    if kind == "popular-products":
        return ok(analytics.popular_products(conn))
    raise HTTPException(status_code=400, detail="Invalid analytics type")
