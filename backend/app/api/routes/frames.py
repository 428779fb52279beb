import logging
import sqlite3
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import HTMLResponse, Response

from backend.app import crud
from backend.app.catalog import find_sample_product, product_from_row
from backend.app.config import settings
from backend.app.db import get_conn, utc_now_iso
from backend.app.errors import ok
from backend.app.frames import (
    display_greeting_frame,
    offer_notification_frame,
    product_recommendation_frame,
    render_error_image,
    render_frame_html,
    render_frame_image,
    sample_offer,
)
from backend.app.models import FrameAction, FrameData, Product
from backend.app.services import load_products, record_interaction
from backend.recommender.baseline import best_product_for, preference_score

logger = logging.getLogger(__name__)

router = APIRouter()

IMAGE_HEADERS = {"Cache-Control": "public, max-age=3600"}


def _find_product(conn: sqlite3.Connection, product_id: Optional[str]) -> Optional[Product]:
    if not product_id:
        return None
    row = crud.get_product(conn, product_id)
    if row:
        return product_from_row(row)
    return find_sample_product(product_id)


def build_frame(
    conn: sqlite3.Connection,
    frame_type: str,
    user_id: str,
    product_id: Optional[str] = None,
) -> FrameData:
    if frame_type == "product_recommendation":
        user = crud.get_user(conn, user_id) or {}
        preferences = user.get("preferences") or {}
        interactions, _ = crud.list_interactions(conn, user_id=user_id, limit=50)

        product = _find_product(conn, product_id)
        if product is not None:
            score = preference_score(preferences, product, interactions)
        else:
            best = best_product_for(load_products(conn), preferences, interactions)
            if best is None:
                raise HTTPException(status_code=404, detail="No products available")
            product, score = best
        return product_recommendation_frame(user_id, product, score, settings.app_url)

    if frame_type == "offer_notification":
        offer = crud.latest_active_offer(conn, user_id, utc_now_iso()) or sample_offer(user_id)
        return offer_notification_frame(user_id, offer, settings.app_url)

    if frame_type == "display_greeting":
        return display_greeting_frame(user_id, settings.app_url)

    raise HTTPException(status_code=400, detail="Invalid frame type")


def _required(frame_type: Optional[str], user_id: Optional[str]) -> None:
    if not frame_type or not user_id:
        raise HTTPException(status_code=400, detail="Frame type and user ID are required")


@router.get("")
def get_frame(
    type: Optional[str] = Query(None),
    user_id: Optional[str] = Query(None, alias="userId"),
    product_id: Optional[str] = Query(None, alias="productId"),
    conn: sqlite3.Connection = Depends(get_conn),
):
    _required(type, user_id)
    frame = build_frame(conn, type, user_id, product_id)
    return ok(frame.model_dump(by_alias=True))


@router.post("")
def frame_action(body: FrameAction, conn: sqlite3.Connection = Depends(get_conn)):
    logger.info("Frame interaction: %s - %s by %s", body.frame_id, body.action, body.user_id)
    result = {"action": body.action, "frameId": body.frame_id}

    if body.action in ("add_to_cart", "like_product"):
        if not body.product_id:
            raise HTTPException(status_code=400, detail="productId is required")
        interaction_type = "add_to_cart" if body.action == "add_to_cart" else "like"
        interaction = record_interaction(
            conn,
            user_id=body.user_id,
            product_id=body.product_id,
            type=interaction_type,
            metadata={"source": "frame", "frameId": body.frame_id},
        )
        result["interactionId"] = interaction["interaction_id"]
        result["message"] = (
            "Product added to cart successfully!"
            if body.action == "add_to_cart"
            else "Product liked! We'll use this to improve your recommendations."
        )
    elif body.action == "get_recommendations":
        frame = build_frame(conn, "product_recommendation", body.user_id)
        result["frame"] = frame.model_dump(by_alias=True)
        result["message"] = "Here are fresh recommendations for you."
    elif body.action == "view_offers":
        frame = build_frame(conn, "offer_notification", body.user_id)
        result["frame"] = frame.model_dump(by_alias=True)
        result["message"] = "Here is your latest offer."
    elif body.action == "share_offer":
        offer_id = body.offer_id or ""
        result["shareUrl"] = f"{settings.app_url.rstrip('/')}/offers/{offer_id}"
        result["message"] = "Offer shared successfully!"
    else:
        result["message"] = "Action processed successfully"

    return ok(result)


@router.get("/html", response_class=HTMLResponse)
def frame_html(
    type: Optional[str] = Query(None),
    user_id: Optional[str] = Query(None, alias="userId"),
    product_id: Optional[str] = Query(None, alias="productId"),
    conn: sqlite3.Connection = Depends(get_conn),
):
    _required(type, user_id)
    frame = build_frame(conn, type, user_id, product_id)
    return HTMLResponse(render_frame_html(frame, settings.app_url))


@router.get("/image")
def frame_image(
    type: str = Query("welcome"),
    product_id: Optional[str] = Query(None, alias="productId"),
    message: Optional[str] = Query(None),
    offer_id: Optional[str] = Query(None, alias="offerId"),
    conn: sqlite3.Connection = Depends(get_conn),
):
    try:
        product = _find_product(conn, product_id) if type == "product" else None
        offer = crud.get_offer(conn, offer_id) if (type == "offer" and offer_id) else None
        svg = render_frame_image(
            type,
            product=product,
            product_id=product_id,
            message=message,
            offer=offer,
            offer_id=offer_id,
        )
    except Exception:
        logger.exception("Failed to render frame image %s", type)
        svg = render_error_image("Failed to generate image")
    return Response(content=svg, media_type="image/svg+xml", headers=IMAGE_HEADERS)
