import json

from backend.app import crud


def test_fallback_uses_sample_catalogue(client, conn):
    r = client.post("/api/recommendations", json={"userId": "u1"})
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["engine"] == "fallback"
    recs = data["recommendations"]
    assert len(recs) == 3
    scores = [rec["score"] for rec in recs]
    assert scores == sorted(scores, reverse=True)
    for rec in recs:
        assert rec["product"]["productId"].startswith("prod_")
        assert 0.0 <= rec["score"] <= 1.0
        # every sample product is in stock, so in-store always gets the context boost
        assert "available in store" in rec["reason"]
    assert "3" in data["personalizedMessage"]

    logged = conn.execute("SELECT engine, context FROM recommendations").fetchall()
    assert len(logged) == 3
    assert {(row["engine"], row["context"]) for row in logged} == {("fallback", "in_store")}


def test_fallback_uses_request_context(client):
    body = {
        "userId": "u1",
        "context": "follow_up",
        "recentInteractions": [{"productId": "p2", "type": "view"}],
        "purchaseHistory": [{"productId": "p9", "category": "Books"}],
        "availableProducts": [
            {"productId": "p1", "name": "Lamp", "price": 20, "category": "Home & Garden"},
            {"productId": "p2", "name": "Novel", "price": 12, "category": "Books"},
        ],
    }
    recs = client.post("/api/recommendations", json=body).json()["data"]["recommendations"]
    assert [rec["product"]["productId"] for rec in recs] == ["p2", "p1"]
    assert recs[0]["score"] >= 0.85
    assert recs[0]["reason"].startswith("Recommended because you showed interest in this item and")
    assert recs[1]["reason"] == "Popular item that matches your profile."


def test_products_table_is_preferred_over_samples(client, product_body):
    client.post("/api/products", json=product_body)
    recs = client.post(
        "/api/recommendations", json={"userId": "u1", "storeId": "store_1"}
    ).json()["data"]["recommendations"]
    assert [rec["product"]["productId"] for rec in recs] == ["sku_headphones"]


def test_llm_recommendations(client, conn, fake_openai):
    create = fake_openai(json.dumps([
        {"productId": "prod_3", "score": 1.7, "reason": "Pairs with your smart home setup"},
        {"productId": "made_up", "score": 0.9, "reason": "?"},
        {"productId": "prod_1"},
    ]))

    data = client.post("/api/recommendations", json={"userId": "u1", "location": "entrance"}).json()["data"]
    assert data["engine"] == "llm"
    recs = data["recommendations"]
    assert [rec["product"]["productId"] for rec in recs] == ["prod_3", "prod_1"]
    assert recs[0]["score"] == 1.0
    assert recs[1]["score"] == 0.5
    assert recs[1]["reason"] == "Recommended based on your preferences"

    kwargs = create.call_args.kwargs
    assert kwargs["temperature"] == 0.7
    assert kwargs["max_tokens"] == 1000
    assert "entrance" in kwargs["messages"][1]["content"]

    engines = {row["engine"] for row in conn.execute("SELECT engine FROM recommendations")}
    assert engines == {"llm"}


def test_llm_failure_falls_back(client, fake_openai):
    fake_openai(error=RuntimeError("rate limited"))
    data = client.post("/api/recommendations", json={"userId": "u1"}).json()["data"]
    assert data["engine"] == "fallback"
    assert len(data["recommendations"]) == 3


def test_unparsable_llm_reply_falls_back(client, fake_openai):
    fake_openai("I would recommend the headphones!")
    data = client.post("/api/recommendations", json={"userId": "u1"}).json()["data"]
    assert data["engine"] == "fallback"


def test_history_is_loaded_from_database(client, conn, fake_openai):
    create = fake_openai("[]")
    crud.create_interaction(conn, user_id="u1", product_id="prod_4", type="like")
    crud.create_purchase(
        conn, user_id="u1", product_id="prod_2", quantity=1, total_amount=29.99, payment_method="card",
    )

    client.post("/api/recommendations", json={"userId": "u1"})
    prompt = create.call_args.kwargs["messages"][1]["content"]
    assert "prod_4" in prompt
    assert "29.99" in prompt


def test_missing_user_id_is_400(client):
    r = client.post("/api/recommendations", json={"context": "display"})
    assert r.status_code == 400


def test_llm_reason_must_be_text(client, conn, fake_openai):
    fake_openai(json.dumps([
        {"productId": "prod_1", "score": 0.9, "reason": ["great", "item"]},
        {"productId": "prod_2", "score": 0.8, "reason": {"why": "style"}},
        {"productId": "prod_3", "score": 0.7, "reason": 42},
    ]))

    r = client.post("/api/recommendations", json={"userId": "u1"})
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["engine"] == "llm"
    assert {rec["reason"] for rec in data["recommendations"]} == {"Recommended based on your preferences"}

    reasons = {row["reason"] for row in conn.execute("SELECT reason FROM recommendations")}
    assert reasons == {"Recommended based on your preferences"}
