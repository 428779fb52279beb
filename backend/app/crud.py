import secrets
import sqlite3
import time
import uuid
from typing import Any, Dict, Iterable, List, Optional, Tuple

from backend.app.catalog import product_from_row
from backend.app.db import dump_json, row_to_dict, to_iso, utc_now_iso
from backend.app.models import Offer, Product


INTERACTION_LOG_LIMIT = 50


def _ms() -> int:
    return int(time.time() * 1000)


def new_interaction_id() -> str:
    return f"int_{_ms()}_{uuid.uuid4().hex[:8]}"


def new_purchase_id() -> str:
    return f"purchase_{_ms()}_{secrets.token_hex(5)[:9]}"


def new_offer_id(user_id: str) -> str:
    return f"offer_{user_id}_{_ms()}_{secrets.token_hex(3)}"


def _where(clauses: List[str]) -> str:
    return (" WHERE " + " AND ".join(clauses)) if clauses else ""


# Users

def get_user(conn: sqlite3.Connection, user_id: str) -> Optional[Dict[str, Any]]:
    row = conn.execute("SELECT * FROM users WHERE user_id = ?", (user_id,)).fetchone()
    return row_to_dict(row)


def create_user(
    conn: sqlite3.Connection,
    *,
    user_id: str,
    farcaster_profile: Optional[Dict[str, Any]],
    preferences: Dict[str, Any],
) -> Dict[str, Any]:
    now = utc_now_iso()
    conn.execute(
        """
        INSERT INTO users(id, user_id, farcaster_profile, purchase_history, interaction_log,
                          preferences, created_at, updated_at)
        VALUES(?,?,?,?,?,?,?,?)
        """,
        (
            str(uuid.uuid4()), user_id, dump_json(farcaster_profile), "[]", "[]",
            dump_json(preferences), now, now,
        ),
    )
    conn.commit()
    return get_user(conn, user_id)


USER_JSON_FIELDS = ("farcaster_profile", "preferences", "purchase_history", "interaction_log")


def update_user(conn: sqlite3.Connection, user_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    sets = []
    params: List[Any] = []
    for key in USER_JSON_FIELDS:
        if key in fields:
            sets.append(f"{key} = ?")
            params.append(dump_json(fields[key]))
    sets.append("updated_at = ?")
    params.append(utc_now_iso())
    params.append(user_id)

    cur = conn.execute(f"UPDATE users SET {', '.join(sets)} WHERE user_id = ?", tuple(params))
    conn.commit()
    if cur.rowcount == 0:
        return None
    return get_user(conn, user_id)


def append_interaction_log(conn: sqlite3.Connection, user_id: str, entry: Dict[str, Any]) -> bool:
    user = get_user(conn, user_id)
    if not user:
        return False
    log = list(user.get("interaction_log") or [])
    log = log[-(INTERACTION_LOG_LIMIT - 1):] + [entry]
    update_user(conn, user_id, {"interaction_log": log})
    return True


def append_purchase_history(conn: sqlite3.Connection, user_id: str, entry: Dict[str, Any]) -> bool:
    user = get_user(conn, user_id)
    if not user:
        return False
    history = list(user.get("purchase_history") or []) + [entry]
    update_user(conn, user_id, {"purchase_history": history})
    return True


def count_users(conn: sqlite3.Connection) -> int:
    row = conn.execute("SELECT COUNT(*) AS c FROM users").fetchone()
    return int(row["c"]) if row else 0


# Products

def get_product(conn: sqlite3.Connection, product_id: str) -> Optional[Dict[str, Any]]:
    row = conn.execute("SELECT * FROM products WHERE product_id = ?", (product_id,)).fetchone()
    return row_to_dict(row)


def create_product(conn: sqlite3.Connection, data: Dict[str, Any]) -> Dict[str, Any]:
    now = utc_now_iso()
    conn.execute(
        """
        INSERT INTO products(id, product_id, name, description, price, category, image_url,
                             store_id, metadata, created_at, updated_at)
        VALUES(?,?,?,?,?,?,?,?,?,?,?)
        """,
        (
            str(uuid.uuid4()),
            data["product_id"],
            data["name"],
            data["description"],
            float(data["price"]),
            data["category"],
            data.get("image_url"),
            data.get("store_id"),
            dump_json(data.get("metadata") or {}),
            now,
            now,
        ),
    )
    conn.commit()
    return get_product(conn, data["product_id"])


def list_products(
    conn: sqlite3.Connection,
    *,
    product_id: Optional[str] = None,
    category: Optional[str] = None,
    store_id: Optional[str] = None,
    featured: bool = False,
    limit: int = 50,
    offset: int = 0,
) -> Tuple[List[Dict[str, Any]], int]:
    clauses: List[str] = []
    params: List[Any] = []
    if product_id:
        clauses.append("product_id = ?")
        params.append(product_id)
    if category:
        clauses.append("category = ?")
        params.append(category)
    if store_id:
        clauses.append("store_id = ?")
        params.append(store_id)
    if featured:
        clauses.append("json_extract(metadata, '$.featured') = 1")

    where = _where(clauses)
    total = conn.execute(f"SELECT COUNT(*) AS c FROM products{where}", tuple(params)).fetchone()["c"]
    rows = conn.execute(
        f"SELECT * FROM products{where} ORDER BY created_at, rowid LIMIT ? OFFSET ?",
        (*params, limit, offset),
    ).fetchall()
    return [row_to_dict(r) for r in rows], int(total)


PRODUCT_COLUMNS = ("name", "description", "price", "category", "image_url", "metadata")


def update_product(conn: sqlite3.Connection, product_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    sets = []
    params: List[Any] = []
    for key in PRODUCT_COLUMNS:
        if key not in fields:
            continue
        sets.append(f"{key} = ?")
        params.append(dump_json(fields[key]) if key == "metadata" else fields[key])
    sets.append("updated_at = ?")
    params.append(utc_now_iso())
    params.append(product_id)

    cur = conn.execute(f"UPDATE products SET {', '.join(sets)} WHERE product_id = ?", tuple(params))
    conn.commit()
    if cur.rowcount == 0:
        return None
    return get_product(conn, product_id)


def delete_product(conn: sqlite3.Connection, product_id: str) -> bool:
    cur = conn.execute("DELETE FROM products WHERE product_id = ?", (product_id,))
    conn.commit()
    return cur.rowcount > 0


def list_catalog(conn: sqlite3.Connection, store_id: Optional[str] = None, limit: int = 200) -> List[Product]:
    rows, _ = list_products(conn, store_id=store_id, limit=limit)
    return [product_from_row(r) for r in rows]


# Interactions

def create_interaction(
    conn: sqlite3.Connection,
    *,
    user_id: str,
    product_id: str,
    type: str,
    location: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    interaction_id = new_interaction_id()
    now = utc_now_iso()
    conn.execute(
        """
        INSERT INTO interactions(id, interaction_id, user_id, product_id, timestamp, type,
                                 location, metadata, created_at)
        VALUES(?,?,?,?,?,?,?,?,?)
        """,
        (
            str(uuid.uuid4()), interaction_id, user_id, product_id, now, type,
            location, dump_json(metadata or {}), now,
        ),
    )
    conn.commit()
    row = conn.execute(
        "SELECT * FROM interactions WHERE interaction_id = ?", (interaction_id,)
    ).fetchone()
    return row_to_dict(row)


def list_interactions(
    conn: sqlite3.Connection,
    *,
    user_id: Optional[str] = None,
    product_id: Optional[str] = None,
    type: Optional[str] = None,
    location: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    store_id: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> Tuple[List[Dict[str, Any]], int]:
    clauses: List[str] = []
    params: List[Any] = []
    for column, value in (
        ("user_id", user_id),
        ("product_id", product_id),
        ("type", type),
        ("location", location),
    ):
        if value:
            clauses.append(f"{column} = ?")
            params.append(value)
    if start_date:
        clauses.append("timestamp >= ?")
        params.append(start_date)
    if end_date:
        clauses.append("timestamp <= ?")
        params.append(end_date)
    if store_id:
        clauses.append("json_extract(metadata, '$.storeId') = ?")
        params.append(store_id)

    where = _where(clauses)
    total = conn.execute(f"SELECT COUNT(*) AS c FROM interactions{where}", tuple(params)).fetchone()["c"]
    rows = conn.execute(
        f"SELECT * FROM interactions{where} ORDER BY timestamp DESC, rowid DESC LIMIT ? OFFSET ?",
        (*params, limit, offset),
    ).fetchall()
    return [row_to_dict(r) for r in rows], int(total)


def interactions_since(conn: sqlite3.Connection, since_iso: str) -> List[Dict[str, Any]]:
    rows = conn.execute(
        "SELECT * FROM interactions WHERE timestamp >= ? ORDER BY timestamp ASC, rowid ASC",
        (since_iso,),
    ).fetchall()
    return [row_to_dict(r) for r in rows]


def top_products_by_interactions(
    conn: sqlite3.Connection, since_iso: Optional[str] = None, limit: int = 10
) -> List[Tuple[str, int]]:
    sql = "SELECT product_id, COUNT(*) AS c FROM interactions"
    params: List[Any] = []
    if since_iso:
        sql += " WHERE timestamp >= ?"
        params.append(since_iso)
    sql += " GROUP BY product_id ORDER BY c DESC, product_id ASC LIMIT ?"
    params.append(limit)
    rows = conn.execute(sql, tuple(params)).fetchall()
    return [(r["product_id"], int(r["c"])) for r in rows]


# Purchases

def create_purchase(
    conn: sqlite3.Connection,
    *,
    user_id: str,
    product_id: str,
    quantity: int,
    total_amount: float,
    payment_method: str,
    location: Optional[str] = None,
) -> Dict[str, Any]:
    purchase_id = new_purchase_id()
    now = utc_now_iso()
    conn.execute(
        """
        INSERT INTO purchases(id, purchase_id, user_id, product_id, quantity, total_amount,
                              payment_method, location, timestamp, created_at)
        VALUES(?,?,?,?,?,?,?,?,?,?)
        """,
        (
            str(uuid.uuid4()), purchase_id, user_id, product_id, int(quantity),
            float(total_amount), payment_method, location, now, now,
        ),
    )
    conn.commit()
    row = conn.execute("SELECT * FROM purchases WHERE purchase_id = ?", (purchase_id,)).fetchone()
    return row_to_dict(row)


def recent_purchases(conn: sqlite3.Connection, user_id: str, limit: int = 3) -> List[Dict[str, Any]]:
    """Latest purchases, oldest first, with the product category when known."""
    rows = conn.execute(
        """
        SELECT x.*, p.category AS category
        FROM purchases x
        LEFT JOIN products p ON p.product_id = x.product_id
        WHERE x.user_id = ?
        ORDER BY x.timestamp DESC, x.rowid DESC
        LIMIT ?
        """,
        (user_id, limit),
    ).fetchall()
    return [row_to_dict(r) for r in reversed(rows)]


def purchase_stats(conn: sqlite3.Connection, since_iso: Optional[str] = None) -> Dict[str, float]:
    sql = """
        SELECT COUNT(*) AS n, COALESCE(SUM(total_amount), 0) AS revenue,
               COUNT(DISTINCT user_id) AS buyers
        FROM purchases
    """
    params: Tuple[Any, ...] = ()
    if since_iso:
        sql += " WHERE timestamp >= ?"
        params = (since_iso,)
    row = conn.execute(sql, params).fetchone()
    return {
        "count": int(row["n"]),
        "revenue": float(row["revenue"]),
        "buyers": int(row["buyers"]),
    }


def count_interacting_users(conn: sqlite3.Connection) -> int:
    row = conn.execute("SELECT COUNT(DISTINCT user_id) AS c FROM interactions").fetchone()
    return int(row["c"]) if row else 0


# Offers

def insert_offer(conn: sqlite3.Connection, offer: Offer, metadata: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    now = utc_now_iso()
    conn.execute(
        """
        INSERT INTO offers(id, offer_id, user_id, product_id, type, title, description, discount,
                           valid_until, status, metadata, created_at, updated_at)
        VALUES(?,?,?,?,?,?,?,?,?,?,?,?,?)
        """,
        (
            str(uuid.uuid4()),
            offer.offer_id,
            offer.user_id,
            offer.product_id,
            offer.type,
            offer.title,
            offer.description,
            float(offer.discount),
            to_iso(offer.valid_until),
            offer.status,
            dump_json(metadata or {}),
            to_iso(offer.created_at),
            now,
        ),
    )
    conn.commit()
    return get_offer(conn, offer.offer_id)


def get_offer(conn: sqlite3.Connection, offer_id: str) -> Optional[Dict[str, Any]]:
    row = conn.execute("SELECT * FROM offers WHERE offer_id = ?", (offer_id,)).fetchone()
    return row_to_dict(row)


def expire_overdue_offers(conn: sqlite3.Connection, now_iso: str, user_id: Optional[str] = None) -> int:
    sql = """
        UPDATE offers SET status = 'expired', updated_at = ?
        WHERE status IN ('sent', 'viewed') AND valid_until <= ?
    """
    params: List[Any] = [now_iso, now_iso]
    if user_id:
        sql += " AND user_id = ?"
        params.append(user_id)
    cur = conn.execute(sql, tuple(params))
    conn.commit()
    return cur.rowcount


def list_offers(conn: sqlite3.Connection, user_id: str, active: bool = False) -> List[Dict[str, Any]]:
    sql = "SELECT * FROM offers WHERE user_id = ?"
    if active:
        sql += " AND status IN ('sent', 'viewed')"
    sql += " ORDER BY created_at DESC, rowid DESC"
    rows = conn.execute(sql, (user_id,)).fetchall()
    return [row_to_dict(r) for r in rows]


def latest_active_offer(conn: sqlite3.Connection, user_id: str, now_iso: str) -> Optional[Dict[str, Any]]:
    row = conn.execute(
        """
        SELECT * FROM offers
        WHERE user_id = ? AND status IN ('sent', 'viewed') AND valid_until > ?
        ORDER BY created_at DESC, rowid DESC
        LIMIT 1
        """,
        (user_id, now_iso),
    ).fetchone()
    return row_to_dict(row)


def mark_offer_viewed(conn: sqlite3.Connection, offer_id: str, now_iso: str) -> bool:
    cur = conn.execute(
        "UPDATE offers SET status = 'viewed', updated_at = ? WHERE offer_id = ? AND status = 'sent'",
        (now_iso, offer_id),
    )
    conn.commit()
    return cur.rowcount == 1


def redeem_offer(conn: sqlite3.Connection, offer_id: str, now_iso: str) -> bool:
    # single guarded UPDATE: a second concurrent redeem finds status 'redeemed' and matches nothing
    cur = conn.execute(
        """
        UPDATE offers SET status = 'redeemed', redeemed_at = ?, updated_at = ?
        WHERE offer_id = ? AND status IN ('sent', 'viewed') AND valid_until > ?
        """,
        (now_iso, now_iso, offer_id, now_iso),
    )
    conn.commit()
    return cur.rowcount == 1


# Recommendations

def log_recommendations(
    conn: sqlite3.Connection,
    *,
    user_id: str,
    context: str,
    engine: str,
    items: Iterable[Tuple[str, float, str]],
) -> int:
    now = utc_now_iso()
    rows = [
        (f"rec_{uuid.uuid4().hex}", user_id, product_id, float(score), reason, context, engine, now)
        for product_id, score, reason in items
    ]
    conn.executemany(
        """
        INSERT INTO recommendations(recommendation_id, user_id, product_id, score, reason,
                                    context, engine, created_at)
        VALUES(?,?,?,?,?,?,?,?)
        """,
        rows,
    )
    conn.commit()
    return len(rows)


def mark_recommendations_interacted(conn: sqlite3.Connection, user_id: str, product_id: str) -> int:
    cur = conn.execute(
        "UPDATE recommendations SET interacted = 1 WHERE user_id = ? AND product_id = ? AND interacted = 0",
        (user_id, product_id),
    )
    conn.commit()
    return cur.rowcount


def count_recommendations_since(conn: sqlite3.Connection, since_iso: str) -> int:
    row = conn.execute(
        "SELECT COUNT(*) AS c FROM recommendations WHERE created_at >= ?", (since_iso,)
    ).fetchone()
    return int(row["c"]) if row else 0
