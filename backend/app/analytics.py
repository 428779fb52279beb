"""Store analytics computed from the interactions, purchases and recommendations tables."""

import sqlite3
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from backend.app import crud
from backend.app.catalog import SAMPLE_PRODUCTS, product_from_row
from backend.app.db import to_iso, utc_now

PERIODS = {"day": 24, "week": 7, "month": 30}


def _parse_ts(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def interaction_summary(conn: sqlite3.Connection, now: Optional[datetime] = None, days: int = 30) -> Dict[str, Any]:
    now = now or utc_now()
    rows = crud.interactions_since(conn, to_iso(now - timedelta(days=days)))

    by_type: Counter = Counter()
    by_day: Counter = Counter()
    durations: List[float] = []
    for r in rows:
        by_type[r["type"]] += 1
        by_day[r["timestamp"][:10]] += 1
        duration = (r.get("metadata") or {}).get("duration")
        if isinstance(duration, (int, float)) and not isinstance(duration, bool):
            durations.append(float(duration))

    return {
        "totalInteractions": len(rows),
        "interactionsByType": dict(by_type),
        "dailyInteractions": dict(sorted(by_day.items())),
        "averageSessionDuration": round(sum(durations) / len(durations), 2) if durations else 0,
    }


def popular_products(conn: sqlite3.Connection, now: Optional[datetime] = None, days: int = 7) -> List[Dict[str, Any]]:
    now = now or utc_now()
    top = crud.top_products_by_interactions(conn, to_iso(now - timedelta(days=days)), limit=10)
    return [{"productId": pid, "interactionCount": count} for pid, count in top]


def _activity(row: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": row["interaction_id"],
        "userId": row["user_id"],
        "productId": row["product_id"],
        "type": row["type"],
        "timestamp": row["timestamp"],
        "location": row.get("location"),
    }


def recent_activity(conn: sqlite3.Connection, store_id: Optional[str] = None, limit: int = 5) -> List[Dict[str, Any]]:
    rows, _ = crud.list_interactions(conn, store_id=store_id, limit=limit)
    return [_activity(r) for r in rows]


def top_products(conn: sqlite3.Connection, limit: int = 5) -> List[Dict[str, Any]]:
    out = []
    for product_id, count in crud.top_products_by_interactions(conn, limit=limit):
        row = crud.get_product(conn, product_id)
        if row is None:
            continue
        product = product_from_row(row).model_dump(by_alias=True)
        product["interactionCount"] = count
        out.append(product)
    if not out:
        out = [p.model_dump(by_alias=True) for p in SAMPLE_PRODUCTS[:limit]]
    return out


def store_metrics(conn: sqlite3.Connection, store_id: Optional[str] = None, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or utc_now()
    purchases = crud.purchase_stats(conn)
    interacting = crud.count_interacting_users(conn)

    conversion = 0.0
    if interacting:
        conversion = round(min(purchases["buyers"], interacting) / interacting * 100, 2)
    average_order = round(purchases["revenue"] / purchases["count"], 2) if purchases["count"] else 0.0

    return {
        "totalCustomers": crud.count_users(conn),
        "activeRecommendations": crud.count_recommendations_since(conn, to_iso(now - timedelta(days=7))),
        "conversionRate": conversion,
        "averageOrderValue": average_order,
        "topProducts": top_products(conn),
        "recentActivity": recent_activity(conn, store_id),
    }


def period_analytics(conn: sqlite3.Connection, period: str, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Totals for the period plus an oldest-first interaction trend.

    ``day`` buckets by hour (24 points); ``week``/``month`` bucket by day.
    """
    if period not in PERIODS:
        raise ValueError(f"Unknown period: {period}")
    now = now or utc_now()
    buckets = PERIODS[period]
    step = timedelta(hours=1) if period == "day" else timedelta(days=1)
    start = now - step * buckets
    since = to_iso(start)

    interactions = crud.interactions_since(conn, since)
    purchases = crud.purchase_stats(conn, since)

    counts = [0] * buckets
    for r in interactions:
        index = int((_parse_ts(r["timestamp"]) - start) / step)
        if 0 <= index < buckets:
            counts[index] += 1

    return {
        "period": period,
        "metrics": {
            "impressions": crud.count_recommendations_since(conn, since),
            "clicks": len(interactions),
            "conversions": purchases["count"],
            "revenue": round(purchases["revenue"], 2),
        },
        "trends": [
            {"timestamp": to_iso(start + step * i), "interactions": counts[i]}
            for i in range(buckets)
        ],
    }
