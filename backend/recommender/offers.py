from __future__ import annotations

import json
import logging
import math
import random
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from backend.app.crud import new_offer_id
from backend.app.llm_client import LLMClient, LLMResponseParseError
from backend.app.models import Offer, PurchaseData

logger = logging.getLogger(__name__)

OFFER_TYPES = ("discount", "bogo", "free_shipping", "loyalty_points")
MAX_VALID_DAYS = 365.0

SYSTEM_PROMPT = (
    "You are a helpful marketing AI that creates personalized offers. "
    "Always respond with valid JSON."
)

FALLBACK_TEMPLATES: Dict[str, Dict[str, Any]] = {
    "discount": {
        "type": "discount",
        "title": "Exclusive Discount for You!",
        "description": "Thanks for your recent purchase! Enjoy 15% off your next order.",
        "discount": 15,
        "validDays": 7,
    },
    "bogo": {
        "type": "bogo",
        "title": "Buy One, Get One 50% Off",
        "description": "Love what you bought? Get another similar item at 50% off!",
        "discount": 50,
        "validDays": 5,
    },
    "free_shipping": {
        "type": "free_shipping",
        "title": "Free Shipping on Your Next Order",
        "description": "We appreciate your business! Enjoy free shipping on your next purchase.",
        "discount": 0,
        "validDays": 10,
    },
    "loyalty_points": {
        "type": "loyalty_points",
        "title": "Double Loyalty Points",
        "description": "Earn 2x points on your next purchase and unlock exclusive rewards!",
        "discount": 0,
        "validDays": 14,
    },
}

THANK_YOU_OFFER: Dict[str, Any] = {
    "type": "discount",
    "title": "Thank You for Your Purchase!",
    "description": "Enjoy 15% off your next purchase as a thank you for being a valued customer.",
    "discount": 15,
    "validDays": 7,
}


def build_prompt(user_id: str, purchase: PurchaseData, user_profile: Optional[Dict[str, Any]]) -> str:
    profile = user_profile or {}
    history = (profile.get("purchaseHistory") or profile.get("purchase_history") or [])[-3:]
    preferences = profile.get("preferences") or {}
    return f"""
You are an AI marketing assistant for RetailRune. Generate a personalized follow-up offer for a customer who just made a purchase.

Customer Purchase:
- Product ID: {purchase.product_id}
- Quantity: {purchase.quantity}
- Total Amount: ${purchase.total_amount}
- Payment Method: {purchase.payment_method}

Customer Profile:
- User ID: {user_id}
- Purchase History: {json.dumps(history, default=str)}
- Preferences: {json.dumps(preferences, default=str)}

Generate a personalized offer that:
1. Thanks them for their purchase
2. Offers value based on their buying behavior
3. Encourages repeat business
4. Is relevant to their interests

Return a JSON object with this structure:
{{
  "type": "discount|bogo|free_shipping|loyalty_points",
  "title": "Compelling offer title",
  "description": "Detailed offer description",
  "discount": 15,
  "validDays": 7
}}
"""


def fallback_template(rng: Optional[random.Random] = None) -> Dict[str, Any]:
    rng = rng or random.Random()
    return dict(FALLBACK_TEMPLATES[rng.choice(OFFER_TYPES)])


def _text(value: Any, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value
    return default


def build_offer(
    user_id: str,
    product_id: Optional[str],
    fields: Dict[str, Any],
    now: Optional[datetime] = None,
) -> Offer:
    now = now or datetime.now(timezone.utc)
    offer_type = fields.get("type")
    if offer_type not in OFFER_TYPES:
        offer_type = "discount"

    try:
        valid_days = float(fields.get("validDays") or 7)
    except (TypeError, ValueError):
        valid_days = 7.0
    if not math.isfinite(valid_days) or valid_days <= 0:
        valid_days = 7.0
    valid_days = min(valid_days, MAX_VALID_DAYS)

    discount = fields.get("discount")
    if discount is None:
        # zero is a real value for free_shipping / loyalty_points
        discount = 10
    try:
        discount = float(discount)
    except (TypeError, ValueError):
        discount = 10.0
    if not math.isfinite(discount):
        discount = 10.0
    discount = max(0.0, min(discount, 100.0))

    return Offer(
        offer_id=new_offer_id(user_id),
        user_id=user_id,
        product_id=product_id,
        type=offer_type,
        title=_text(fields.get("title"), "Special Offer Just for You!"),
        description=_text(fields.get("description"), "Thanks for your purchase! Here's a special offer."),
        discount=discount,
        valid_until=now + timedelta(days=valid_days),
        status="sent",
        created_at=now,
    )


async def generate_follow_up_offer(
    llm: LLMClient,
    user_id: str,
    purchase: PurchaseData,
    user_profile: Optional[Dict[str, Any]] = None,
    *,
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
) -> tuple[Offer, str]:
    """Returns (offer, source) with source one of "llm", "template", "default"."""
    try:
        fields = await llm.complete_json(
            SYSTEM_PROMPT,
            build_prompt(user_id, purchase, user_profile),
            temperature=0.7,
            max_tokens=500,
        )
        if not isinstance(fields, dict):
            raise LLMResponseParseError("offer reply is not a JSON object")
        source = "llm"
    except LLMResponseParseError:
        fields = fallback_template(rng)
        source = "template"
    except Exception as e:
        logger.warning("AI offer generation failed for %s: %s", user_id, e)
        fields = THANK_YOU_OFFER
        source = "default"

    return build_offer(user_id, purchase.product_id, fields, now=now), source
