def test_create_user_applies_default_preferences(client):
    r = client.post("/api/users", json={"userId": "0xabc"})
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["message"] == "User created successfully"
    user = body["data"]
    assert user["user_id"] == "0xabc"
    assert user["purchase_history"] == []
    assert user["interaction_log"] == []
    assert user["preferences"] == {
        "categories": [],
        "priceRange": {"min": 0, "max": 1000},
        "notifications": True,
    }


def test_create_existing_user_returns_it_unchanged(client):
    client.post(
        "/api/users",
        json={"userId": "0xabc", "farcasterProfile": {"fid": 7, "username": "alice"}},
    )
    r = client.post("/api/users", json={"userId": "0xabc", "preferences": {"categories": ["Books"]}})
    assert r.status_code == 200
    body = r.json()
    assert body["message"] == "User already exists"
    assert body["data"]["farcaster_profile"] == {"fid": 7, "username": "alice"}
    assert body["data"]["preferences"]["categories"] == []


def test_create_user_requires_user_id(client):
    r = client.post("/api/users", json={"preferences": {}})
    assert r.status_code == 400
    body = r.json()
    assert body["success"] is False
    assert body["error"] == "Invalid request data"
    assert body["details"]


def test_get_user_errors(client):
    r = client.get("/api/users")
    assert r.status_code == 400
    assert r.json()["error"] == "userId is required"

    r = client.get("/api/users", params={"userId": "nobody"})
    assert r.status_code == 404
    assert r.json() == {"success": False, "error": "User not found"}


def test_update_user_partial(client):
    created = client.post("/api/users", json={"userId": "u1"}).json()["data"]

    r = client.put(
        "/api/users",
        params={"userId": "u1"},
        json={"preferences": {"categories": ["Clothing"], "brands": ["EcoWear"]}},
    )
    assert r.status_code == 200
    user = r.json()["data"]
    assert user["preferences"] == {"categories": ["Clothing"], "brands": ["EcoWear"]}
    assert user["interaction_log"] == []
    assert user["updated_at"] >= created["updated_at"]

    fetched = client.get("/api/users", params={"userId": "u1"}).json()["data"]
    assert fetched["preferences"]["brands"] == ["EcoWear"]


def test_update_unknown_user_is_404(client):
    r = client.put("/api/users", params={"userId": "ghost"}, json={"preferences": {}})
    assert r.status_code == 404
