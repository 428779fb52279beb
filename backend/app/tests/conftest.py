from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from backend.app.config import settings
from backend.app.db import connect, init_db
from backend.app.main import app


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    # fresh sqlite file per test, no LLM key, no wallet
    monkeypatch.setattr(settings, "database_url", f"sqlite:///{tmp_path / 'retailrune-test.db'}")
    monkeypatch.setattr(settings, "openai_api_key", "")
    monkeypatch.setattr(settings, "wallet_address", "")
    monkeypatch.setattr(settings, "app_url", "http://testserver")


@pytest.fixture
def conn():
    c = connect()
    init_db(c)
    yield c
    c.close()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def fake_openai(monkeypatch):
    """Patches AsyncOpenAI; call the returned function to script the next reply."""
    mock_completions = MagicMock()
    mock_completions.create = AsyncMock()

    mock_chat = MagicMock()
    mock_chat.completions = mock_completions

    mock_client_instance = AsyncMock()
    mock_client_instance.chat = mock_chat

    def reply(content=None, error=None):
        if error is not None:
            mock_completions.create.side_effect = error
            return mock_completions.create

        mock_message = MagicMock()
        mock_message.content = content

        mock_choice = MagicMock()
        mock_choice.message = mock_message

        mock_response = MagicMock()
        mock_response.choices = [mock_choice]

        mock_completions.create.side_effect = None
        mock_completions.create.return_value = mock_response
        return mock_completions.create

    monkeypatch.setattr(settings, "openai_api_key", "dummy_key")
    with patch("backend.app.llm_client.AsyncOpenAI", return_value=mock_client_instance):
        yield reply


SAMPLE_PRODUCT_BODY = {
    "productId": "sku_headphones",
    "name": "Studio Headphones",
    "description": "Closed-back headphones for long sessions.",
    "price": 149.0,
    "category": "Electronics",
    "imageUrl": "https://example.com/headphones.png",
    "storeId": "store_1",
    "metadata": {"brand": "AudioTech", "tags": ["audio"], "inventory": 12, "featured": True},
}


@pytest.fixture
def product_body():
    return dict(SAMPLE_PRODUCT_BODY, metadata=dict(SAMPLE_PRODUCT_BODY["metadata"]))
