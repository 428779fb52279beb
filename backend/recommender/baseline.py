from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence
import random

from backend.app.models import Product


@dataclass
class RecItem:
    product: Product
    score: float
    reason: str
    stats: Dict[str, float] = field(default_factory=dict)


def _clamp01(x: float) -> float:
    return max(0.0, min(float(x), 1.0))


def _product_id_of(entry: Dict[str, Any]) -> Optional[str]:
    # client payloads are camelCase, db rows snake_case
    return entry.get("productId") or entry.get("product_id")


def _interacted_product_ids(recent_interactions: Iterable[Dict[str, Any]]) -> set[str]:
    return {pid for pid in (_product_id_of(i) for i in recent_interactions) if pid}


def _purchased_categories(purchase_history: Iterable[Dict[str, Any]]) -> set[str]:
    return {p["category"] for p in purchase_history if p.get("category")}


def recommend_baseline(
    products: Sequence[Product],
    *,
    recent_interactions: Sequence[Dict[str, Any]] = (),
    purchase_history: Sequence[Dict[str, Any]] = (),
    context: str = "in_store",
    k: int = 3,
    rng: Optional[random.Random] = None,
) -> List[RecItem]:
    """
      rule-based fallback when the LLM is off or gives garbage:
    - start every product at 0.5
    - +0.2 if the user recently interacted with it
    - +0.15 if its category is one they bought from
    - +0.1 in-store when it is in stock
    - +U(0, 0.1) so repeat visits see some variety
    """
    rng = rng or random.Random()
    interacted = _interacted_product_ids(recent_interactions)
    purchased = _purchased_categories(purchase_history)

    scored: List[RecItem] = []
    for product in products:
        score = 0.5
        reasons: List[str] = []

        interaction_boost = 0.0
        if product.product_id in interacted:
            interaction_boost = 0.2
            reasons.append("you showed interest in this item")

        category_boost = 0.0
        if product.category in purchased:
            category_boost = 0.15
            reasons.append(f"matches your interest in {product.category}")

        context_boost = 0.0
        if context == "in_store" and product.in_stock:
            context_boost = 0.1
            reasons.append("available in store")

        jitter = rng.random() * 0.1
        score += interaction_boost + category_boost + context_boost + jitter

        if reasons:
            reason = f"Recommended because {' and '.join(reasons)}."
        else:
            reason = "Popular item that matches your profile."

        scored.append(
            RecItem(
                product=product,
                score=_clamp01(score),
                reason=reason,
                stats={
                    "interaction_boost": interaction_boost,
                    "category_boost": category_boost,
                    "context_boost": context_boost,
                    "jitter": jitter,
                },
            )
        )

    scored.sort(key=lambda x: x.score, reverse=True)
    return scored[:k]


def _parse_ts(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value:
        try:
            dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _price_bounds(preferences: Dict[str, Any]) -> tuple[float, float]:
    price_range = preferences.get("priceRange")
    if isinstance(price_range, dict):
        lo = price_range.get("min")
        hi = price_range.get("max")
    elif isinstance(price_range, (list, tuple)) and len(price_range) == 2:
        lo, hi = price_range
    else:
        lo, hi = None, None
    return (
        float(lo) if lo is not None else 0.0,
        float(hi) if hi is not None else float("inf"),
    )


def preference_score(
    preferences: Optional[Dict[str, Any]],
    product: Product,
    interactions: Sequence[Dict[str, Any]] = (),
    now: Optional[datetime] = None,
) -> float:
    """Profile match in [0, 1]: category, price band, brand, plus recent activity."""
    preferences = preferences or {}
    now = now or datetime.now(timezone.utc)
    score = 0.5

    if product.category in (preferences.get("categories") or []):
        score += 0.2

    lo, hi = _price_bounds(preferences)
    if lo <= product.price <= hi:
        score += 0.1

    if product.brand and product.brand in (preferences.get("brands") or []):
        score += 0.1

    week_ago = now - timedelta(days=7)
    recent = 0
    for i in interactions:
        ts = _parse_ts(i.get("timestamp"))
        if ts is not None and ts > week_ago:
            recent += 1
    if recent:
        score += min(recent * 0.05, 0.1)

    return _clamp01(score)


def best_product_for(
    products: Sequence[Product],
    preferences: Optional[Dict[str, Any]],
    interactions: Sequence[Dict[str, Any]] = (),
) -> Optional[tuple[Product, float]]:
    best: Optional[tuple[Product, float]] = None
    for product in products:
        s = preference_score(preferences, product, interactions)
        if best is None or s > best[1]:
            best = (product, s)
    return best
