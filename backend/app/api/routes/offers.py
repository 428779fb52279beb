import logging
import sqlite3
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from backend.app import crud
from backend.app.db import get_conn, utc_now_iso
from backend.app.errors import ok
from backend.app.llm_client import LLMClient
from backend.app.models import OfferRequest, PurchaseData
from backend.app.services import create_follow_up_offer, get_llm

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("")
async def generate_offer(
    body: OfferRequest,
    conn: sqlite3.Connection = Depends(get_conn),
    llm: LLMClient = Depends(get_llm),
):
    offer = await create_follow_up_offer(conn, llm, body.user_id, body.purchase_data, body.user_profile)
    return ok(offer)


@router.get("")
def list_offers(
    user_id: Optional[str] = Query(None, alias="userId"),
    active: bool = Query(False),
    conn: sqlite3.Connection = Depends(get_conn),
):
    if not user_id:
        raise HTTPException(status_code=400, detail="userId is required")
    crud.expire_overdue_offers(conn, utc_now_iso(), user_id=user_id)
    return ok(crud.list_offers(conn, user_id, active=active))


def _require_offer(conn: sqlite3.Connection, offer_id: Optional[str]):
    if not offer_id:
        raise HTTPException(status_code=400, detail="offerId is required")
    offer = crud.get_offer(conn, offer_id)
    if offer is None:
        raise HTTPException(status_code=404, detail="Offer not found")
    return offer


@router.patch("")
async def update_offer(
    action: Optional[str] = Query(None),
    user_id: Optional[str] = Query(None, alias="userId"),
    offer_id: Optional[str] = Query(None, alias="offerId"),
    conn: sqlite3.Connection = Depends(get_conn),
    llm: LLMClient = Depends(get_llm),
):
    if action == "generate-followup":
        if not user_id:
            raise HTTPException(status_code=400, detail="userId is required")
        latest = crud.recent_purchases(conn, user_id, limit=1)
        if not latest:
            raise HTTPException(status_code=404, detail="No purchases found for user")
        last = latest[-1]
        purchase = PurchaseData(
            product_id=last["product_id"],
            quantity=last["quantity"],
            total_amount=last["total_amount"],
            payment_method=last["payment_method"],
            location=last.get("location"),
        )
        offer = await create_follow_up_offer(conn, llm, user_id, purchase)
        return ok(offer, "Follow-up offer generated")

    if action == "view":
        offer = _require_offer(conn, offer_id)
        crud.mark_offer_viewed(conn, offer["offer_id"], utc_now_iso())
        return ok(crud.get_offer(conn, offer["offer_id"]))

    if action == "redeem":
        offer = _require_offer(conn, offer_id)
        now = utc_now_iso()
        if crud.redeem_offer(conn, offer["offer_id"], now):
            logger.info("Redeemed offer %s for %s", offer["offer_id"], offer["user_id"])
            return ok(crud.get_offer(conn, offer["offer_id"]), "Offer redeemed successfully")

        current = crud.get_offer(conn, offer["offer_id"])
        if current["status"] == "redeemed":
            raise HTTPException(status_code=409, detail="Offer already redeemed")
        crud.expire_overdue_offers(conn, now, user_id=current["user_id"])
        raise HTTPException(status_code=409, detail="Offer has expired")

    raise HTTPException(status_code=400, detail="Invalid action")
