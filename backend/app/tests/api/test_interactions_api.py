import re

from backend.app import crud


def _post(client, **overrides):
    body = {"userId": "u1", "productId": "prod_1", "type": "view"}
    body.update(overrides)
    return client.post("/api/interactions", json=body)


def test_record_interaction(client):
    client.post("/api/users", json={"userId": "u1"})
    r = _post(client, location="aisle_3", metadata={"duration": 12, "storeId": "store_1"})
    assert r.status_code == 200
    row = r.json()["data"]
    assert re.fullmatch(r"int_\d+_[0-9a-f]{8}", row["interaction_id"])
    assert row["metadata"] == {"duration": 12.0, "storeId": "store_1"}

    user = client.get("/api/users", params={"userId": "u1"}).json()["data"]
    assert len(user["interaction_log"]) == 1
    entry = user["interaction_log"][0]
    assert entry["interactionId"] == row["interaction_id"]
    assert entry["productId"] == "prod_1"
    assert entry["location"] == "aisle_3"


def test_interaction_log_keeps_last_50(client, conn):
    client.post("/api/users", json={"userId": "u1"})
    for i in range(55):
        _post(client, productId=f"p{i}")
    log = crud.get_user(conn, "u1")["interaction_log"]
    assert len(log) == 50
    assert log[0]["productId"] == "p5"
    assert log[-1]["productId"] == "p54"


def test_interaction_for_unknown_user_still_recorded(client):
    r = _post(client, userId="anonymous")
    assert r.status_code == 200
    rows = client.get("/api/interactions", params={"userId": "anonymous"}).json()["data"]
    assert len(rows) == 1


def test_invalid_type_is_rejected(client):
    r = _post(client, type="teleport")
    assert r.status_code == 400
    assert r.json()["error"] == "Invalid request data"


def test_interaction_marks_logged_recommendations(client, conn):
    crud.log_recommendations(
        conn, user_id="u1", context="in_store", engine="fallback",
        items=[("prod_1", 0.9, "x"), ("prod_2", 0.8, "y")],
    )
    _post(client, productId="prod_1", type="like")
    rows = conn.execute(
        "SELECT product_id, interacted FROM recommendations ORDER BY product_id"
    ).fetchall()
    assert [(r["product_id"], r["interacted"]) for r in rows] == [("prod_1", 1), ("prod_2", 0)]


def test_list_filters_newest_first(client):
    _post(client, productId="a", type="view")
    _post(client, productId="b", type="like")
    _post(client, productId="c", type="view", userId="u2")

    body = client.get("/api/interactions", params={"userId": "u1"}).json()
    assert [r["product_id"] for r in body["data"]] == ["b", "a"]
    assert body["pagination"]["total"] == 2

    body = client.get("/api/interactions", params={"type": "view", "limit": 1}).json()
    assert len(body["data"]) == 1
    assert body["pagination"] == {"limit": 1, "offset": 0, "total": 2}


def test_summary_and_popular_products(client):
    _post(client, productId="a", metadata={"duration": 10})
    _post(client, productId="a", type="like", metadata={"duration": 20})
    _post(client, productId="b", type="scan")

    summary = client.put("/api/interactions", params={"analytics": "summary"}).json()["data"]
    assert summary["totalInteractions"] == 3
    assert summary["interactionsByType"] == {"view": 1, "like": 1, "scan": 1}
    assert sum(summary["dailyInteractions"].values()) == 3
    assert summary["averageSessionDuration"] == 15

    popular = client.put("/api/interactions", params={"analytics": "popular-products"}).json()["data"]
    assert popular == [
        {"productId": "a", "interactionCount": 2},
        {"productId": "b", "interactionCount": 1},
    ]


def test_unknown_analytics_is_400(client):
    r = client.put("/api/interactions", params={"analytics": "everything"})
    assert r.status_code == 400
    assert r.json()["error"] == "Invalid analytics type"
