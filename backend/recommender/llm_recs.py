from __future__ import annotations

import json
import logging
import math
import random
from typing import Any, Dict, List, Optional, Sequence, Tuple

from backend.app.llm_client import LLMClient
from backend.app.models import Product
from backend.recommender.baseline import RecItem, recommend_baseline

logger = logging.getLogger(__name__)

MAX_LLM_RECS = 5
DEFAULT_REASON = "Recommended based on your preferences"

SYSTEM_PROMPT = (
    "You are a helpful retail AI assistant that provides personalized product "
    "recommendations. Always respond with valid JSON."
)

PERSONALIZED_MESSAGES: Dict[str, List[str]] = {
    "in_store": [
        "Welcome! I found {n} perfect items for you based on your preferences.",
        "Great to see you! Here are {n} personalized recommendations.",
        "Hello! I've curated {n} special items that match your style.",
    ],
    "follow_up": [
        "Thanks for your recent visit! Here are {n} items you might love.",
        "We miss you! Check out these {n} new arrivals picked for you.",
        "Based on your last purchase, here are {n} complementary items.",
    ],
    "display": [
        "Personalized for you: {n} trending items in your categories.",
        "Your style, your picks: {n} curated recommendations.",
        "Discover {n} items tailored to your preferences.",
    ],
}


def personalized_message(context: str, count: int, rng: Optional[random.Random] = None) -> str:
    rng = rng or random.Random()
    templates = PERSONALIZED_MESSAGES.get(context, PERSONALIZED_MESSAGES["in_store"])
    return rng.choice(templates).format(n=count)


def build_prompt(
    *,
    user_id: str,
    context: str,
    location: Optional[str],
    recent_interactions: Sequence[Dict[str, Any]],
    purchase_history: Sequence[Dict[str, Any]],
    products: Sequence[Product],
) -> str:
    catalogue = [
        {
            "id": p.product_id,
            "name": p.name,
            "category": p.category,
            "price": p.price,
            "description": p.description,
            "tags": p.tags,
        }
        for p in products
    ]
    return f"""
You are an AI retail assistant for RetailRune. Generate personalized product recommendations for a customer.

Customer Context:
- User ID: {user_id}
- Context: {context}
- Location: {location or 'Unknown'}
- Recent Interactions: {json.dumps(list(recent_interactions), default=str)}
- Purchase History: {json.dumps(list(purchase_history), default=str)}

Available Products:
{json.dumps(catalogue)}

Please recommend 3-5 products with scores (0-1) and reasons. Consider:
1. User's past purchases and interactions
2. Product categories they've shown interest in
3. Price points they're comfortable with
4. Context (in-store, follow-up, display)
5. Complementary products to previous purchases

Return a JSON array with this structure:
[
  {{
    "productId": "product_id",
    "score": 0.85,
    "reason": "Detailed reason for recommendation"
  }}
]
"""


def map_llm_recommendations(raw: Any, products: Sequence[Product]) -> List[RecItem]:
    """Join the model's picks back onto real products, dropping ids it made up."""
    if isinstance(raw, dict) and isinstance(raw.get("recommendations"), list):
        raw = raw["recommendations"]
    if not isinstance(raw, list):
        raise ValueError("expected a JSON array of recommendations")

    by_id = {p.product_id: p for p in products}
    recs: List[RecItem] = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        product = by_id.get(str(entry.get("productId")))
        if product is None:
            continue
        score = entry.get("score")
        try:
            score = 0.5 if score is None else float(score)
        except (TypeError, ValueError):
            score = 0.5
        if not math.isfinite(score):
            score = 0.5
        reason = entry.get("reason")
        if not isinstance(reason, str) or not reason.strip():
            reason = DEFAULT_REASON
        recs.append(
            RecItem(
                product=product,
                score=max(0.0, min(score, 1.0)),
                reason=reason,
            )
        )
    return recs[:MAX_LLM_RECS]


async def generate_recommendations(
    llm: LLMClient,
    *,
    user_id: str,
    context: str,
    products: Sequence[Product],
    recent_interactions: Sequence[Dict[str, Any]] = (),
    purchase_history: Sequence[Dict[str, Any]] = (),
    location: Optional[str] = None,
    rng: Optional[random.Random] = None,
) -> Tuple[List[RecItem], str]:
    """Returns (recommendations, engine) where engine is "llm" or "fallback"."""
    recent_interactions = list(recent_interactions)[-5:]
    purchase_history = list(purchase_history)[-3:]

    if llm.enabled:
        prompt = build_prompt(
            user_id=user_id,
            context=context,
            location=location,
            recent_interactions=recent_interactions,
            purchase_history=purchase_history,
            products=products,
        )
        try:
            raw = await llm.complete_json(SYSTEM_PROMPT, prompt, temperature=0.7, max_tokens=1000)
            return map_llm_recommendations(raw, products), "llm"
        except Exception as e:
            logger.warning("AI recommendation failed for %s, using rule-based fallback: %s", user_id, e)

    recs = recommend_baseline(
        products,
        recent_interactions=recent_interactions,
        purchase_history=purchase_history,
        context=context,
        rng=rng,
    )
    return recs, "fallback"
