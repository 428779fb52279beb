#!/usr/bin/env python3
import argparse
import random
import sqlite3

from backend.app import crud
from backend.app.catalog import SAMPLE_PRODUCTS
from backend.app.db import connect, init_db
from backend.app.models import DEFAULT_PREFERENCES, PurchaseData
from backend.app.services import record_interaction, record_purchase

DEMO_INTERACTION_TYPES = ["view", "view", "view", "like", "scan", "add_to_cart", "share"]
DEMO_LOCATIONS = ["store_entrance", "aisle_1", "aisle_2", "checkout"]


def seed_products(conn: sqlite3.Connection, store_id: str) -> int:
    added = 0
    for i, p in enumerate(SAMPLE_PRODUCTS):
        if crud.get_product(conn, p.product_id):
            continue
        crud.create_product(
            conn,
            {
                "product_id": p.product_id,
                "name": p.name,
                "description": p.description,
                "price": p.price,
                "category": p.category,
                "image_url": p.image_url,
                "store_id": store_id,
                "metadata": {
                    "brand": p.brand,
                    "tags": p.tags,
                    "sku": f"SKU-{i + 1:04d}",
                    "inventory": 25,
                    "featured": i < 2,
                },
            },
        )
        added += 1
    return added


def seed_users(conn: sqlite3.Connection, n_users: int) -> list[str]:
    user_ids = ["demo_user"] + [f"demo_user_{i}" for i in range(1, n_users)]
    for user_id in user_ids:
        if crud.get_user(conn, user_id):
            continue
        crud.create_user(
            conn,
            user_id=user_id,
            farcaster_profile={"username": user_id, "displayName": user_id.replace("_", " ").title()},
            preferences=DEFAULT_PREFERENCES,
        )
    return user_ids


def seed_activity(
    conn: sqlite3.Connection,
    user_ids: list[str],
    store_id: str,
    n_interactions: int,
    rng: random.Random,
) -> tuple[int, int]:
    n_purchases = 0
    for _ in range(n_interactions):
        user_id = rng.choice(user_ids)
        product = rng.choice(SAMPLE_PRODUCTS)
        record_interaction(
            conn,
            user_id=user_id,
            product_id=product.product_id,
            type=rng.choice(DEMO_INTERACTION_TYPES),
            location=rng.choice(DEMO_LOCATIONS),
            metadata={"storeId": store_id, "duration": rng.randint(5, 120), "source": "seed"},
        )
        # roughly one in five visits ends at the till
        if rng.random() < 0.2:
            quantity = rng.randint(1, 2)
            record_purchase(
                conn,
                user_id,
                PurchaseData(
                    product_id=product.product_id,
                    quantity=quantity,
                    total_amount=round(product.price * quantity, 2),
                    payment_method=rng.choice(["cash", "card", "crypto"]),
                    location="checkout",
                ),
            )
            n_purchases += 1
    return n_interactions, n_purchases


def clear_tables(conn: sqlite3.Connection) -> None:
    for table in ("recommendations", "offers", "purchases", "interactions", "products", "users"):
        conn.execute(f"DELETE FROM {table};")
    conn.commit()


def main():
    ap = argparse.ArgumentParser(description="Seed the demo store catalogue, users and activity")
    ap.add_argument("--store-id", default="store_demo")
    ap.add_argument("--users", type=int, default=5)
    ap.add_argument("--interactions", type=int, default=60)
    ap.add_argument("--seed", type=int, default=7)
    ap.add_argument("--reset", action="store_true", help="Clear tables before seeding")
    args = ap.parse_args()

    if args.users < 1:
        raise SystemExit("--users must be at least 1")

    conn = connect()
    init_db(conn)

    if args.reset:
        clear_tables(conn)

    rng = random.Random(args.seed)
    n_products = seed_products(conn, args.store_id)
    user_ids = seed_users(conn, args.users)
    n_interactions, n_purchases = seed_activity(conn, user_ids, args.store_id, args.interactions, rng)

    conn.close()
    print(
        f"Seeding complete: {n_products} products, {len(user_ids)} users, "
        f"{n_interactions} interactions, {n_purchases} purchases."
    )


if __name__ == "__main__":
    main()
