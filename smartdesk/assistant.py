"""Conversational task creation.

One chat turn sends the user's message, a snapshot of project names and the
``create_task`` tool to the model. Tool calls in the reply are parsed into
actions and applied to the database; the combined reply text is logged as a
Message and returned.

Turns are at-most-once: a client resending after an error can create the same
task twice if the model repeats its tool call. The project lookup and the
conditional create are not atomic either, so two concurrent turns naming the
same new project may each create it.
"""

import json
from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from smartdesk.db import Message, Project, Task, TaskStatus, User
from smartdesk.errors import UpstreamUnavailable
from smartdesk.llm import LLMClient, LLMNotConfigured, ToolCall, upstream_error
from smartdesk.schemas import parse_due_date

FALLBACK_TEXT = "I understood your request but couldn't generate a specific response. How else can I help?"

CREATE_TASK_TOOL = {
    "type": "function",
    "function": {
        "name": "create_task",
        "description": "Create a new task in a project",
        "parameters": {
            "type": "object",
            "properties": {
                "title": {"type": "string", "description": "The title of the task"},
                "project_name": {"type": "string", "description": "The name of the project to add the task to"},
                "due_date": {"type": "string", "description": "The due date in YYYY-MM-DD format"},
            },
            "required": ["title", "project_name"],
        },
    },
}

TOOLS = [CREATE_TASK_TOOL]


@dataclass(frozen=True)
class CreateTaskAction:
    title: str
    project_name: str
    due_date: Optional[date] = None


# New tool actions join this union and get a branch in apply_action
Action = Union[CreateTaskAction]


def parse_action(call: ToolCall) -> Optional[Action]:
    """Turn one model tool call into an action, or None when it is unusable."""
    try:
        args = json.loads(call.arguments or "{}")
    except json.JSONDecodeError:
        print(f"⚠️  Ignoring {call.name} call with malformed arguments: {call.arguments[:200]}")
        return None
    if not isinstance(args, dict):
        print(f"⚠️  Ignoring {call.name} call with non-object arguments")
        return None

    if call.name == "create_task":
        title = str(args.get("title") or "").strip()
        project_name = str(args.get("project_name") or "").strip()
        if not title or not project_name:
            print(f"⚠️  Ignoring create_task call missing title or project_name: {args}")
            return None
        try:
            due_date = parse_due_date(args.get("due_date"))
        except ValueError:
            print(f"⚠️  Dropping unparseable due date from model: {args.get('due_date')}")
            due_date = None
        return CreateTaskAction(title=title, project_name=project_name, due_date=due_date)

    print(f"⚠️  Ignoring unknown tool call: {call.name}")
    return None


async def build_context(session: AsyncSession) -> str:
    res = await session.execute(select(Project.name).order_by(Project.id))
    names = res.scalars().all()
    return f"Current Projects: {', '.join(names)}."


def build_messages(context: str, message: str) -> List[dict]:
    today = date.today().isoformat()
    system = (
        "You are SmartDesk AI, a professional team productivity assistant. "
        f"Today's date is {today}.\n"
        f"Context: {context}\n"
        "Help users manage projects, tasks, and knowledge. "
        "Use the create_task tool when asked to create tasks, "
        "passing the exact project name and any due date as YYYY-MM-DD."
    )
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": message},
    ]


async def find_or_create_project(session: AsyncSession, name: str, user: User) -> Project:
    res = await session.execute(select(Project).where(Project.name == name).order_by(Project.id).limit(1))
    project = res.scalar_one_or_none()
    if project is None:
        project = Project(name=name, user_id=user.id)
        session.add(project)
        await session.flush()
        print(f"✅ Created project on the fly: {name} (id={project.id})")
    return project


async def create_task_from_action(session: AsyncSession, user: User, action: CreateTaskAction) -> str:
    project = await find_or_create_project(session, action.project_name, user)
    task = Task(
        title=action.title,
        project_id=project.id,
        user_id=user.id,
        status=TaskStatus.TODO,
        due_date=action.due_date,
    )
    session.add(task)
    await session.flush()
    print(f"✅ Task created from chat: {task.title} -> {project.name}, due: {task.due_date}")
    return f'\n\n✅ **Action Executed**: Created task "{action.title}" in project "{action.project_name}".'


async def apply_action(session: AsyncSession, user: User, action: Action) -> str:
    if isinstance(action, CreateTaskAction):
        return await create_task_from_action(session, user, action)
    raise TypeError(f"Unhandled assistant action: {action!r}")


async def handle_chat(session: AsyncSession, llm: LLMClient, user: User, message: str) -> str:
    """Run one chat turn and return the reply text."""
    context = await build_context(session)
    # Release the connection while waiting on the model
    await session.commit()
    print(f"🤖 Chat turn from user {user.id}: '{message[:80]}'")
    try:
        reply = await llm.complete_with_tools(build_messages(context, message), TOOLS)
    except LLMNotConfigured:
        raise UpstreamUnavailable("AI service is not configured.")
    except Exception as e:
        print(f"❌ AI Chat Error: {e}")
        raise upstream_error(e) from e

    text = reply.text or ""
    for call in reply.tool_calls:
        action = parse_action(call)
        if action is not None:
            text += await apply_action(session, user, action)

    text = text.strip()
    if not text:
        text = FALLBACK_TEXT

    session.add(Message(user_id=user.id, content=message, ai_response=text))
    await session.commit()
    return text
