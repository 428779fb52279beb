import random
from datetime import datetime, timedelta, timezone

import pytest

from backend.app.catalog import SAMPLE_PRODUCTS
from backend.app.models import Product
from backend.recommender.baseline import best_product_for, preference_score, recommend_baseline

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


class ZeroRandom(random.Random):
    def random(self):
        return 0.0


def _product(pid, category="Books", price=10.0, in_stock=True, brand=None):
    return Product(product_id=pid, name=pid, price=price, category=category, in_stock=in_stock, brand=brand)


def test_score_components_without_jitter():
    products = [
        _product("interacted", category="Toys & Games"),
        _product("same_category", category="Books"),
        _product("out_of_stock", category="Automotive", in_stock=False),
    ]
    recs = recommend_baseline(
        products,
        recent_interactions=[{"productId": "interacted"}],
        purchase_history=[{"category": "Books"}],
        context="in_store",
        rng=ZeroRandom(),
    )
    scores = {r.product.product_id: r.score for r in recs}
    assert scores["interacted"] == pytest.approx(0.8)
    assert scores["same_category"] == pytest.approx(0.75)
    assert scores["out_of_stock"] == pytest.approx(0.5)
    assert [r.product.product_id for r in recs] == ["interacted", "same_category", "out_of_stock"]


def test_reasons():
    recs = recommend_baseline(
        [_product("a"), _product("b", category="Clothing", in_stock=False)],
        recent_interactions=[{"product_id": "a"}],
        purchase_history=[{"category": "Books"}],
        context="in_store",
        rng=ZeroRandom(),
    )
    by_id = {r.product.product_id: r.reason for r in recs}
    assert by_id["a"] == (
        "Recommended because you showed interest in this item and matches your interest in Books "
        "and available in store."
    )
    assert by_id["b"] == "Popular item that matches your profile."


def test_scores_are_clamped_and_truncated():
    class MaxRandom(random.Random):
        def random(self):
            return 1.0

    products = [_product(f"p{i}") for i in range(6)]
    recs = recommend_baseline(
        products,
        recent_interactions=[{"productId": p.product_id} for p in products],
        purchase_history=[{"category": "Books"}],
        rng=MaxRandom(),
    )
    assert len(recs) == 3
    assert all(r.score == 1.0 for r in recs)


def test_context_boost_only_in_store():
    recs = recommend_baseline([_product("a")], context="display", rng=ZeroRandom())
    assert recs[0].score == pytest.approx(0.5)
    assert recs[0].stats["context_boost"] == 0.0


def test_jitter_is_bounded():
    rng = random.Random(42)
    for _ in range(20):
        for rec in recommend_baseline(SAMPLE_PRODUCTS, context="follow_up", k=4, rng=rng):
            assert 0.5 <= rec.score <= 0.6


def test_preference_score_components():
    product = _product("mat", category="Sports & Outdoors", price=49.99, brand="ZenFit")
    prefs = {"categories": ["Sports & Outdoors"], "priceRange": {"min": 20, "max": 80}, "brands": ["ZenFit"]}
    assert preference_score(prefs, product, now=NOW) == pytest.approx(0.9)

    recent = [{"timestamp": (NOW - timedelta(days=1)).isoformat()}]
    assert preference_score(prefs, product, recent, now=NOW) == pytest.approx(0.95)

    many = recent * 5 + [{"timestamp": (NOW - timedelta(days=30)).isoformat()}]
    assert preference_score(prefs, product, many, now=NOW) == pytest.approx(1.0)


def test_preference_score_price_range_forms():
    product = _product("x", price=150)
    assert preference_score({"priceRange": [100, 200]}, product, now=NOW) == pytest.approx(0.6)
    assert preference_score({"priceRange": {"min": 0, "max": 100}}, product, now=NOW) == pytest.approx(0.5)
    # no range means any price fits
    assert preference_score({}, product, now=NOW) == pytest.approx(0.6)


def test_best_product_for():
    prefs = {"categories": ["Clothing"], "priceRange": {"min": 0, "max": 50}}
    product, score = best_product_for(SAMPLE_PRODUCTS, prefs)
    assert product.product_id == "prod_2"
    assert score == pytest.approx(0.8)
    assert best_product_for([], prefs) is None
