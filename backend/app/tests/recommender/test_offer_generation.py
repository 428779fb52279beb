import json
import random
from datetime import datetime, timedelta, timezone

import pytest

from backend.app.llm_client import LLMClient
from backend.app.models import PurchaseData
from backend.recommender.offers import (
    FALLBACK_TEMPLATES,
    build_offer,
    build_prompt,
    fallback_template,
    generate_follow_up_offer,
)

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)
PURCHASE = PurchaseData(product_id="prod_1", quantity=2, total_amount=80.0, payment_method="crypto")


def test_build_offer_defaults():
    offer = build_offer("u1", "prod_1", {}, now=NOW)
    assert offer.type == "discount"
    assert offer.discount == 10
    assert offer.valid_until == NOW + timedelta(days=7)
    assert offer.status == "sent"
    assert offer.title
    assert offer.offer_id.startswith("offer_u1_")


def test_build_offer_keeps_zero_discount_and_fixes_bad_values():
    offer = build_offer("u1", None, {"type": "free_shipping", "discount": 0, "validDays": 10}, now=NOW)
    assert offer.discount == 0
    assert offer.valid_until == NOW + timedelta(days=10)

    offer = build_offer("u1", None, {"type": "lottery", "discount": "lots", "validDays": -1}, now=NOW)
    assert offer.type == "discount"
    assert offer.discount == 10
    assert offer.valid_until == NOW + timedelta(days=7)


def test_build_offer_replaces_non_text_copy():
    offer = build_offer("u1", None, {"title": 15, "description": {"text": "hi"}}, now=NOW)
    assert offer.title == "Special Offer Just for You!"
    assert offer.description == "Thanks for your purchase! Here's a special offer."


@pytest.mark.parametrize(
    "valid_days, expected",
    [
        (10_000_000, 365),
        (float("inf"), 7),
        (float("nan"), 7),
        ([3], 7),
    ],
)
def test_build_offer_bounds_valid_days(valid_days, expected):
    offer = build_offer("u1", None, {"validDays": valid_days}, now=NOW)
    assert offer.valid_until == NOW + timedelta(days=expected)


@pytest.mark.parametrize(
    "discount, expected",
    [(float("nan"), 10), (float("-inf"), 10), (250, 100), (-5, 0)],
)
def test_build_offer_bounds_discount(discount, expected):
    assert build_offer("u1", None, {"discount": discount}, now=NOW).discount == expected


def test_fallback_template_is_a_copy():
    template = fallback_template(random.Random(0))
    assert template["type"] in FALLBACK_TEMPLATES
    template["discount"] = 99
    assert all(t["discount"] != 99 for t in FALLBACK_TEMPLATES.values())


def test_prompt_includes_purchase_and_recent_history():
    profile = {"purchaseHistory": [{"productId": f"h{i}"} for i in range(5)], "preferences": {"brands": ["X"]}}
    prompt = build_prompt("u1", PURCHASE, profile)
    assert "Total Amount: $80.0" in prompt
    assert "Payment Method: crypto" in prompt
    assert "h1" not in prompt and "h2" in prompt
    assert '"brands": ["X"]' in prompt


@pytest.mark.asyncio
async def test_no_key_gives_default_offer():
    offer, source = await generate_follow_up_offer(LLMClient(api_key=""), "u1", PURCHASE, now=NOW)
    assert source == "default"
    assert offer.title == "Thank You for Your Purchase!"
    assert offer.discount == 15
    assert offer.product_id == "prod_1"


@pytest.mark.asyncio
async def test_llm_offer(fake_openai):
    fake_openai(json.dumps({"type": "loyalty_points", "title": "2x points", "description": "d", "validDays": 14}))
    offer, source = await generate_follow_up_offer(LLMClient(), "u1", PURCHASE, now=NOW)
    assert source == "llm"
    assert offer.type == "loyalty_points"
    assert offer.discount == 10
    assert offer.valid_until == NOW + timedelta(days=14)


@pytest.mark.asyncio
async def test_non_object_reply_uses_template(fake_openai):
    fake_openai("[1, 2, 3]")
    _, source = await generate_follow_up_offer(LLMClient(), "u1", PURCHASE, now=NOW, rng=random.Random(1))
    assert source == "template"


@pytest.mark.asyncio
async def test_provider_error_uses_default(fake_openai):
    fake_openai(error=ConnectionError("provider down"))
    offer, source = await generate_follow_up_offer(LLMClient(), "u1", PURCHASE, now=NOW)
    assert source == "default"
    assert offer.discount == 15
