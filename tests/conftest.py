"""Shared fixtures: isolated config, in-memory backend, mock LLM client
and an API test client wired to both.
"""

import json
from typing import Any
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from tutoring.backend import InMemoryBackend, set_backend
from tutoring.config import clear_config_cache
from tutoring.llm.client import LLMResponse
from tutoring.web.api import create_app
from tutoring.web.deps import get_backend_dep, get_llm_client, reset_llm_client

TEACHER_EMAIL = "teacher@example.com"
TEACHER_PASSWORD = "secret123"

ANALYSIS_REPLY: dict[str, Any] = {
    "score": 72,
    "weakTopics": ["Fractions", "Word problems"],
    "suggestions": ["Practice adding fractions with unlike denominators"],
    "questions": [
        {"number": 1, "question": "1/2 + 1/3", "correct": False},
        {"number": 2, "question": "3 x 4", "correct": True},
    ],
}

QUESTIONS_REPLY = [
    {"topic": "Fractions", "question": "What is 1/3 + 1/6?"},
    {"topic": "Word problems", "question": "Tom has 3 apples and buys 4 more. How many?"},
]


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Run every test on built-in defaults with no secrets and no cached state."""
    monkeypatch.setenv("TUTORING_CONFIG", str(tmp_path / "no-config.yaml"))
    for name in ("OPENAI_API_KEY", "SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY", "SUPABASE_ANON_KEY"):
        monkeypatch.delenv(name, raising=False)
    clear_config_cache()
    reset_llm_client()
    set_backend(None)
    yield
    clear_config_cache()
    reset_llm_client()
    set_backend(None)


@pytest.fixture
def backend() -> InMemoryBackend:
    return InMemoryBackend()


@pytest.fixture
def mock_llm_client():
    """Mock LLM client that returns fixed replies without calling a provider."""
    client = MagicMock()
    client.config = MagicMock()
    client.config.provider = "openai"
    client.config.model = "test-model"
    client.is_available.return_value = True
    client.chat.return_value = LLMResponse(
        content=json.dumps(ANALYSIS_REPLY),
        model="test-model",
        provider="openai",
    )
    client.simple_json.return_value = QUESTIONS_REPLY
    return client


@pytest.fixture
def api_client(backend, mock_llm_client):
    """TestClient over a fresh app using the in-memory backend and mock LLM."""
    app = create_app()
    app.dependency_overrides[get_backend_dep] = lambda: backend
    app.dependency_overrides[get_llm_client] = lambda: mock_llm_client
    with TestClient(app) as client:
        yield client


def signup_and_login(client: TestClient, email: str, password: str = TEACHER_PASSWORD) -> dict[str, str]:
    """Create an account and return Authorization headers for it."""
    client.post("/api/signup", json={"email": email, "password": password})
    response = client.post("/api/login", json={"email": email, "password": password})
    token = response.json()["session"]["access_token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(api_client) -> dict[str, str]:
    return signup_and_login(api_client, TEACHER_EMAIL)


@pytest.fixture
def student_id(api_client, auth_headers) -> int:
    """Id of a student owned by the default teacher."""
    response = api_client.post(
        "/api/students",
        json={"name": "Ana", "grade": "5", "subjects": ["Math"]},
        headers=auth_headers,
    )
    return response.json()["student"]["id"]


@pytest.fixture
def login_as(api_client):
    """Factory: sign up another teacher and return their headers."""

    def _login(email: str) -> dict[str, str]:
        return signup_and_login(api_client, email)

    return _login
