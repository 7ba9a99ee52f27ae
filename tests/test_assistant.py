"""Tests for the AI chat orchestrator."""

import json
from datetime import date
from pathlib import Path
from typing import List

import httpx
import openai
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession

from smartdesk.assistant import FALLBACK_TEXT, TOOLS, CreateTaskAction, handle_chat, parse_action
from smartdesk.db import Database, Project, User
from smartdesk.llm import LLMNotConfigured, LLMReply, ToolCall
from tests.conftest import FakeLLM
from tests.test_resources import create_project


def create_task_args(**fields) -> str:
    return json.dumps(fields)


class TestParseAction:
    def test_create_task_with_due_date(self) -> None:
        call = ToolCall("create_task", create_task_args(title="Fix", project_name="Web", due_date="2026-03-01"))

        assert parse_action(call) == CreateTaskAction("Fix", "Web", date(2026, 3, 1))

    def test_bad_due_date_is_dropped(self) -> None:
        call = ToolCall("create_task", create_task_args(title="Fix", project_name="Web", due_date="soon"))

        assert parse_action(call) == CreateTaskAction("Fix", "Web", None)

    @pytest.mark.parametrize(
        "call",
        [
            ToolCall("create_task", "{not json"),
            ToolCall("create_task", "[1, 2]"),
            ToolCall("create_task", create_task_args(title="Fix")),
            ToolCall("create_task", create_task_args(title="  ", project_name="Web")),
            ToolCall("delete_everything", create_task_args(title="Fix", project_name="Web")),
        ],
    )
    def test_unusable_calls_are_skipped(self, call: ToolCall) -> None:
        assert parse_action(call) is None

    def test_tool_schema_requires_title_and_project(self) -> None:
        function = TOOLS[0]["function"]

        assert function["name"] == "create_task"
        assert function["parameters"]["required"] == ["title", "project_name"]
        assert "due_date" in function["parameters"]["properties"]


class TestChat:
    def test_existing_project_gets_the_task(self, member_client: TestClient, fake_llm: FakeLLM) -> None:
        project = create_project(member_client, "Website Redesign")
        fake_llm.queue_tool_call(
            "create_task",
            create_task_args(title="fix the footer", project_name="Website Redesign", due_date="2026-03-01"),
        )

        response = member_client.post(
            "/api/ai/chat",
            json={"message": "create a task to fix the footer in Website Redesign due 2026-03-01"},
        )

        assert response.status_code == 200
        tasks = member_client.get("/api/tasks").json()
        assert len(tasks) == 1
        assert "fix the footer" in tasks[0]["title"]
        assert tasks[0]["projectId"] == project["id"]
        assert tasks[0]["dueDate"] == "2026-03-01"
        assert tasks[0]["status"] == "TODO"
        assert len(member_client.get("/api/projects").json()) == 1

    def test_unknown_project_is_created_once(self, member_client: TestClient, fake_llm: FakeLLM) -> None:
        create_project(member_client, "Website Redesign")
        me = member_client.get("/api/auth/me").json()["user"]
        fake_llm.queue_tool_call(
            "create_task",
            create_task_args(title="Draft launch email", project_name="Newsletter"),
            text="On it.",
        )

        response = member_client.post("/api/ai/chat", json={"message": "add a newsletter task"})

        text = response.json()["text"]
        assert text.startswith("On it.")
        assert 'Created task "Draft launch email" in project "Newsletter"' in text
        projects = {p["name"]: p for p in member_client.get("/api/projects").json()}
        assert set(projects) == {"Website Redesign", "Newsletter"}
        assert projects["Newsletter"]["userId"] == me["id"]
        assert [t["title"] for t in projects["Newsletter"]["tasks"]] == ["Draft launch email"]

    def test_context_lists_project_names(self, member_client: TestClient, fake_llm: FakeLLM) -> None:
        create_project(member_client, "Alpha")
        create_project(member_client, "Beta")
        fake_llm.replies.append(LLMReply(text="Hello"))

        member_client.post("/api/ai/chat", json={"message": "hi"})

        system = fake_llm.calls[0]["messages"][0]
        assert system["role"] == "system"
        assert "Current Projects: Alpha, Beta." in system["content"]
        assert fake_llm.calls[0]["messages"][-1] == {"role": "user", "content": "hi"}
        assert fake_llm.calls[0]["tools"] == TOOLS

    def test_empty_reply_uses_fallback_and_logs_one_message(
        self, member_client: TestClient, fake_llm: FakeLLM
    ) -> None:
        response = member_client.post("/api/ai/chat", json={"message": "hmm"})

        assert response.json() == {"text": FALLBACK_TEXT}
        messages = member_client.get("/api/ai/messages").json()
        assert len(messages) == 1
        assert messages[0]["content"] == "hmm"
        assert messages[0]["aiResponse"] == FALLBACK_TEXT

    def test_unknown_tool_only_reply_uses_fallback(self, member_client: TestClient, fake_llm: FakeLLM) -> None:
        fake_llm.queue_tool_call("send_email", "{}")

        response = member_client.post("/api/ai/chat", json={"message": "email bob"})

        assert response.json()["text"] == FALLBACK_TEXT
        assert member_client.get("/api/tasks").json() == []

    def test_every_turn_logs_exactly_one_message(self, member_client: TestClient, fake_llm: FakeLLM) -> None:
        fake_llm.replies.append(LLMReply(text="Plain answer"))
        fake_llm.queue_tool_call("create_task", create_task_args(title="T", project_name="P"))

        member_client.post("/api/ai/chat", json={"message": "first"})
        member_client.post("/api/ai/chat", json={"message": "second"})

        messages = member_client.get("/api/ai/messages").json()
        assert [m["content"] for m in messages] == ["second", "first"]
        assert messages[1]["aiResponse"] == "Plain answer"

    def test_messages_are_private_to_caller(self, member_client: TestClient, fake_llm: FakeLLM) -> None:
        fake_llm.replies.append(LLMReply(text="Hi"))
        member_client.post("/api/ai/chat", json={"message": "mine"})
        member_client.post(
            "/api/auth/register", json={"name": "B", "email": "b@example.com", "password": "secret123"}
        )

        assert member_client.get("/api/ai/messages").json() == []

    def test_quota_error_maps_to_429(self, member_client: TestClient, fake_llm: FakeLLM) -> None:
        request = httpx.Request("POST", "https://llm.example.com/chat/completions")
        fake_llm.error = openai.RateLimitError(
            "Resource has been exhausted", response=httpx.Response(429, request=request), body=None
        )

        response = member_client.post("/api/ai/chat", json={"message": "hi"})

        assert response.status_code == 429
        assert "Quota" in response.json()["error"]
        assert member_client.get("/api/ai/messages").json() == []

    def test_quota_text_maps_to_429(self, member_client: TestClient, fake_llm: FakeLLM) -> None:
        fake_llm.error = RuntimeError("You exceeded your current quota")

        assert member_client.post("/api/ai/chat", json={"message": "hi"}).status_code == 429

    def test_other_errors_map_to_503(self, member_client: TestClient, fake_llm: FakeLLM) -> None:
        fake_llm.error = RuntimeError("connection reset")

        response = member_client.post("/api/ai/chat", json={"message": "hi"})

        assert response.status_code == 503
        assert response.json() == {"error": "AI service is currently unavailable."}

    def test_missing_key_maps_to_503(self, member_client: TestClient, fake_llm: FakeLLM) -> None:
        fake_llm.error = LLMNotConfigured("LLM API key is missing")

        response = member_client.post("/api/ai/chat", json={"message": "hi"})

        assert response.status_code == 503
        assert response.json() == {"error": "AI service is not configured."}

    def test_requires_session(self, client: TestClient) -> None:
        assert client.post("/api/ai/chat", json={"message": "hi"}).status_code == 401

    def test_empty_message_is_rejected(self, member_client: TestClient) -> None:
        assert member_client.post("/api/ai/chat", json={"message": ""}).status_code == 422


class TransactionCheckingLLM:
    """Records whether the session held a transaction while the model was called."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.in_transaction: List[bool] = []

    async def complete_with_tools(self, messages, tools, temperature: float = 0.3) -> LLMReply:
        self.in_transaction.append(self.session.in_transaction())
        return LLMReply(text="ok")


@pytest.mark.asyncio
async def test_no_transaction_is_held_during_model_call(tmp_path: Path) -> None:
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'chat.db'}")
    await db.init()
    try:
        async with db.session() as session:
            user = User(name="U", email="u@example.com", password_hash="x")
            session.add(user)
            await session.flush()
            session.add(Project(name="Alpha", user_id=user.id))
            await session.commit()

            llm = TransactionCheckingLLM(session)
            text = await handle_chat(session, llm, user, "hello")

        assert text == "ok"
        assert llm.in_transaction == [False]
    finally:
        await db.dispose()
