from fastapi.testclient import TestClient

from backend.app.main import app
from backend.app.services import get_llm


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "app": "RetailRune", "env": "dev"}


def test_root_banner(client):
    body = client.get("/").json()
    assert "RetailRune" in body["message"]
    assert body["docs"] == "/docs"


def test_unhandled_errors_use_generic_envelope():
    def broken_llm():
        raise RuntimeError("secret stack detail")

    app.dependency_overrides[get_llm] = broken_llm
    try:
        with TestClient(app, raise_server_exceptions=False) as c:
            r = c.post("/api/recommendations", json={"userId": "u1"})
    finally:
        app.dependency_overrides.clear()

    assert r.status_code == 500
    assert r.json() == {"success": False, "error": "Internal server error"}
