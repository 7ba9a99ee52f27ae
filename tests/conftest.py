"""Pytest fixtures for the SmartDesk backend tests."""

from collections.abc import Generator
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from smartdesk.app import create_app
from smartdesk.config import Settings
from smartdesk.llm import LLMReply, ToolCall


class FakeLLM:
    """Stands in for LLMClient; replies are queued by the test."""

    def __init__(self) -> None:
        self.replies: List[LLMReply] = []
        self.text = "Drafted email."
        self.error: Optional[Exception] = None
        self.calls: List[Dict[str, Any]] = []

    def queue_tool_call(self, name: str, arguments: str, text: str = "") -> None:
        self.replies.append(LLMReply(text=text, tool_calls=[ToolCall(name=name, arguments=arguments)]))

    async def complete_with_tools(self, messages, tools, temperature: float = 0.3) -> LLMReply:
        self.calls.append({"messages": messages, "tools": tools})
        if self.error:
            raise self.error
        return self.replies.pop(0) if self.replies else LLMReply()

    async def chat_completion(self, messages, temperature: float = 0.3) -> str:
        self.calls.append({"messages": messages})
        if self.error:
            raise self.error
        return self.text

    async def close(self) -> None:
        pass


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Settings pointing at a throwaway SQLite file."""
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'smartdesk.db'}",
        jwt_secret="test-secret-key",
        cookie_secure=False,
        cookie_samesite="lax",
        llm_api_key="test-key",
        seed_demo_data=False,
    )


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def client(test_settings: Settings, fake_llm: FakeLLM) -> Generator[TestClient, None, None]:
    app = create_app(test_settings, llm=fake_llm)
    with TestClient(app) as c:
        yield c


def register(
    client: TestClient,
    email: str = "member@example.com",
    password: str = "secret123",
    name: str = "Member",
    role: Optional[str] = None,
):
    body = {"name": name, "email": email, "password": password}
    if role:
        body["role"] = role
    return client.post("/api/auth/register", json=body)


@pytest.fixture
def member_client(client: TestClient) -> TestClient:
    response = register(client)
    assert response.status_code == 200
    return client


@pytest.fixture
def admin_client(client: TestClient) -> TestClient:
    response = register(client, email="admin@example.com", name="Admin", role="ADMIN")
    assert response.status_code == 200
    return client
