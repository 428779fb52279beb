import json

from backend.app import crud


def test_product_scan_records_interaction_and_recommends(client, conn):
    r = client.post(
        "/api/scan",
        json={"qrData": "retailrune://product/prod_3?userId=0xbeef&location=aisle_2"},
    )
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["scan"] == {
        "type": "product_scan",
        "storeId": None,
        "productId": "prod_3",
        "userId": "0xbeef",
        "location": "aisle_2",
        "timestamp": None,
    }
    assert len(data["recommendations"]) == 3
    assert data["personalizedMessage"]

    rows, _ = crud.list_interactions(conn, user_id="0xbeef")
    assert len(rows) == 1
    assert rows[0]["type"] == "scan"
    assert rows[0]["product_id"] == "prod_3"
    assert rows[0]["metadata"]["scanType"] == "product_scan"


def test_store_scan_uses_request_user(client, conn):
    payload = json.dumps({"type": "store_scan", "storeId": "store_9", "location": "entrance"})
    r = client.post("/api/scan", json={"qrData": payload})
    assert r.status_code == 200
    assert r.json()["data"]["scan"]["storeId"] == "store_9"

    rows, _ = crud.list_interactions(conn, user_id="demo_user")
    assert rows[0]["product_id"] == "store_scan"
    assert rows[0]["metadata"]["storeId"] == "store_9"


def test_bad_qr_payload_is_400(client):
    r = client.post("/api/scan", json={"qrData": "https://example.com"})
    assert r.status_code == 400
    assert r.json()["success"] is False

    assert client.post("/api/scan", json={}).status_code == 400


def test_store_payload_with_structured_location_is_400(client, conn):
    qr_data = json.dumps({"type": "store_scan", "storeId": "s1", "location": {"aisle": 3}})
    r = client.post("/api/scan", json={"qrData": qr_data, "userId": "u1"})
    assert r.status_code == 400
    assert r.json()["error"] == "location must be a string"
    assert conn.execute("SELECT COUNT(*) FROM interactions").fetchone()[0] == 0


def test_product_qr_uri(client):
    r = client.get("/api/scan/qr", params={"productId": "prod_1", "userId": "u1", "location": "aisle 4"})
    assert r.json()["data"]["uri"] == "retailrune://product/prod_1?userId=u1&location=aisle+4"
    assert client.get("/api/scan/qr").status_code == 400
