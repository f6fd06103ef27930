"""
Test fixtures for the study coach.

Provides store, app, client and auth_client fixtures. The store runs on an
in-memory slot and Gemini is replaced by a fake model, so no test touches
the network or a real API key.
"""

from __future__ import annotations

import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))


@pytest.fixture
def fake_model():
    """Stand-in for genai.GenerativeModel with a canned reply."""
    model = MagicMock()
    model.generate_content.return_value = MagicMock(
        text="Step 1: Read the question carefully.\nStep 2: Underline key terms."
    )
    return model


@pytest.fixture(autouse=True)
def reset_circuit_breaker():
    from ai_resilience import get_circuit_breaker
    get_circuit_breaker().record_success("gemini")
    yield
    get_circuit_breaker().record_success("gemini")


@pytest.fixture
def store():
    from persistence import MemorySlot
    from state_store import StateStore
    return StateStore(MemorySlot())


@pytest.fixture
def app(store, fake_model):
    from app import create_app
    from chat_client import ChatProxyClient

    app = create_app({
        "TESTING": True,
        "SECRET_KEY": "test-secret-key",
        "GEMINI_API_KEY": "test-key",
        "GEMINI_MODEL": "gemini-1.5-flash",
        "CHAT_HISTORY_LIMIT": 4,
        "CORS_ORIGINS": "*",
    }, store=store)
    app.extensions["chat_client"] = ChatProxyClient(
        api_key="test-key",
        model="gemini-1.5-flash",
        history_limit=4,
        model_factory=lambda key, name: fake_model,
    )
    yield app


@pytest.fixture
def client(app):
    """Unauthenticated test client."""
    return app.test_client()


@pytest.fixture
def auth_client(app):
    """Test client signed up and signed in as a student."""
    client = app.test_client()
    with client:
        resp = client.post("/api/auth/signup", json={
            "name": "Test Student",
            "email": "Student@Example.com",
            "password": "testpass123",
        })
        assert resp.status_code == 200
        yield client
