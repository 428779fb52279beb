"""Operations shared by several routes (interactions are recorded from four places)."""

import logging
import random
import sqlite3
from typing import Any, Dict, List, Optional

from backend.app import crud
from backend.app.catalog import SAMPLE_PRODUCTS
from backend.app.db import connect
from backend.app.llm_client import LLMClient
from backend.app.models import Product, PurchaseData, RecommendationOut
from backend.recommender.llm_recs import generate_recommendations, personalized_message
from backend.recommender.offers import generate_follow_up_offer

logger = logging.getLogger(__name__)

FOLLOW_UP_THRESHOLD = 50.0


def get_llm() -> LLMClient:
    return LLMClient()


def record_interaction(
    conn: sqlite3.Connection,
    *,
    user_id: str,
    product_id: str,
    type: str,
    location: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    interaction = crud.create_interaction(
        conn,
        user_id=user_id,
        product_id=product_id,
        type=type,
        location=location,
        metadata=metadata,
    )
    crud.append_interaction_log(
        conn,
        user_id,
        {
            "interactionId": interaction["interaction_id"],
            "productId": product_id,
            "type": type,
            "timestamp": interaction["timestamp"],
            "location": location,
        },
    )
    crud.mark_recommendations_interacted(conn, user_id, product_id)
    logger.info("Recorded %s interaction %s for %s", type, interaction["interaction_id"], user_id)
    return interaction


def record_purchase(conn: sqlite3.Connection, user_id: str, purchase: PurchaseData) -> Dict[str, Any]:
    row = crud.create_purchase(
        conn,
        user_id=user_id,
        product_id=purchase.product_id,
        quantity=purchase.quantity,
        total_amount=purchase.total_amount,
        payment_method=purchase.payment_method,
        location=purchase.location,
    )
    crud.append_purchase_history(
        conn,
        user_id,
        {
            "purchaseId": row["purchase_id"],
            "productId": row["product_id"],
            "quantity": row["quantity"],
            "totalAmount": row["total_amount"],
            "paymentMethod": row["payment_method"],
            "timestamp": row["timestamp"],
        },
    )
    logger.info("Recorded purchase %s for %s (%.2f)", row["purchase_id"], user_id, row["total_amount"])
    return row


def load_products(conn: sqlite3.Connection, store_id: Optional[str] = None) -> List[Product]:
    products = crud.list_catalog(conn, store_id=store_id)
    if not products and store_id:
        products = crud.list_catalog(conn)
    return products or list(SAMPLE_PRODUCTS)


async def recommend_for_user(
    conn: sqlite3.Connection,
    llm: LLMClient,
    *,
    user_id: str,
    context: str = "in_store",
    location: Optional[str] = None,
    store_id: Optional[str] = None,
    recent_interactions: Optional[List[Dict[str, Any]]] = None,
    purchase_history: Optional[List[Dict[str, Any]]] = None,
    products: Optional[List[Product]] = None,
    rng: Optional[random.Random] = None,
) -> Dict[str, Any]:
    if not products:
        products = load_products(conn, store_id)
    if recent_interactions is None:
        rows, _ = crud.list_interactions(conn, user_id=user_id, limit=5)
        recent_interactions = list(reversed(rows))
    if purchase_history is None:
        purchase_history = crud.recent_purchases(conn, user_id, limit=3)

    recs, engine = await generate_recommendations(
        llm,
        user_id=user_id,
        context=context,
        products=products,
        recent_interactions=recent_interactions,
        purchase_history=purchase_history,
        location=location,
        rng=rng,
    )
    crud.log_recommendations(
        conn,
        user_id=user_id,
        context=context,
        engine=engine,
        items=[(r.product.product_id, r.score, r.reason) for r in recs],
    )

    return {
        "recommendations": [
            RecommendationOut(product=r.product, score=r.score, reason=r.reason).model_dump(by_alias=True)
            for r in recs
        ],
        "personalizedMessage": personalized_message(context, len(recs), rng),
        "engine": engine,
    }


async def create_follow_up_offer(
    conn: sqlite3.Connection,
    llm: LLMClient,
    user_id: str,
    purchase: PurchaseData,
    user_profile: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    if user_profile is None:
        user = crud.get_user(conn, user_id)
        if user:
            user_profile = {
                "purchaseHistory": user.get("purchase_history") or [],
                "preferences": user.get("preferences") or {},
            }
    offer, source = await generate_follow_up_offer(llm, user_id, purchase, user_profile)
    logger.info("Generated follow-up offer %s for %s (source=%s)", offer.offer_id, user_id, source)
    return crud.insert_offer(conn, offer, metadata={"source": source})


async def follow_up_in_background(user_id: str, purchase: PurchaseData) -> None:
    """Runs after the response is sent, so it opens its own connection."""
    conn = connect()
    try:
        await create_follow_up_offer(conn, get_llm(), user_id, purchase)
    except Exception:
        logger.exception("Background follow-up offer failed for %s", user_id)
    finally:
        conn.close()
