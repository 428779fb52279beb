from datetime import datetime, timedelta, timezone

import pytest

from backend.app import crud
from backend.app.catalog import product_from_row
from backend.app.db import _sqlite_path_from_url, to_iso


@pytest.mark.parametrize(
    "url, path",
    [
        ("sqlite:///./data/app.db", "./data/app.db"),
        ("sqlite:////abs/path.db", "/abs/path.db"),
        ("sqlite:///tmp/x.db", "/tmp/x.db"),
    ],
)
def test_sqlite_path_from_url(url, path):
    assert _sqlite_path_from_url(url) == path


def test_only_sqlite_urls():
    with pytest.raises(ValueError):
        _sqlite_path_from_url("postgresql://localhost/db")


def test_to_iso_is_utc_milliseconds():
    dt = datetime(2024, 5, 1, 14, 30, 0, 123456, tzinfo=timezone(timedelta(hours=2)))
    assert to_iso(dt) == "2024-05-01T12:30:00.123+00:00"


def test_json_columns_round_trip(conn):
    crud.create_user(
        conn,
        user_id="u1",
        farcaster_profile={"fid": 1},
        preferences={"categories": ["Books"]},
    )
    user = crud.get_user(conn, "u1")
    assert user["farcaster_profile"] == {"fid": 1}
    assert user["preferences"] == {"categories": ["Books"]}
    assert user["purchase_history"] == []


def test_product_row_mapping(conn):
    row = crud.create_product(
        conn,
        {
            "product_id": "p1",
            "name": "Mug",
            "description": "Stoneware",
            "price": 12,
            "category": "Home & Garden",
            "metadata": {"brand": "Clay Co", "tags": ["kitchen"], "inventory": 0},
        },
    )
    product = product_from_row(row)
    assert product.brand == "Clay Co"
    assert product.tags == ["kitchen"]
    assert product.in_stock is False
    assert product.price == 12.0

    row["metadata"] = {}
    assert product_from_row(row).in_stock is True


def test_recent_purchases_carry_category(conn):
    crud.create_product(
        conn,
        {"product_id": "p1", "name": "Mug", "description": "", "price": 12, "category": "Home & Garden"},
    )
    for pid in ("p1", "unknown", "p1", "p1"):
        crud.create_purchase(conn, user_id="u1", product_id=pid, quantity=1, total_amount=12, payment_method="cash")

    recent = crud.recent_purchases(conn, "u1", limit=3)
    assert [p["product_id"] for p in recent] == ["unknown", "p1", "p1"]
    assert recent[0]["category"] is None
    assert recent[-1]["category"] == "Home & Garden"
