import sqlite3

from fastapi import APIRouter, Depends

from backend.app.db import get_conn
from backend.app.errors import ok
from backend.app.llm_client import LLMClient
from backend.app.models import RecommendationRequest
from backend.app.services import get_llm, recommend_for_user

router = APIRouter()


@router.post("")
async def recommendations(
    body: RecommendationRequest,
    conn: sqlite3.Connection = Depends(get_conn),
    llm: LLMClient = Depends(get_llm),
):
    result = await recommend_for_user(
        conn,
        llm,
        user_id=body.user_id,
        context=body.context,
        location=body.current_location or body.location,
        store_id=body.store_id,
        recent_interactions=body.recent_interactions,
        purchase_history=body.purchase_history,
        products=body.available_products,
    )
    return ok(result)
