from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from smartdesk.db import Role, TaskStatus


def parse_due_date(value) -> Optional[date]:
    """Accept an ISO date or datetime string and keep the date part."""
    if value is None or isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        raise ValueError(f"Invalid date '{text}', expected YYYY-MM-DD") from None


class Schema(BaseModel):
    """camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# --------- Requests ---------
class RegisterPayload(Schema):
    name: str = Field(min_length=1, max_length=100)
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=6, max_length=128)
    role: Optional[Role] = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        v = v.strip().lower()
        if "@" not in v:
            raise ValueError("Invalid email address")
        return v


class LoginPayload(Schema):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class ProjectPayload(Schema):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None


class TaskPayload(Schema):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    project_id: int
    status: Optional[TaskStatus] = None
    due_date: Optional[date] = None

    @field_validator("due_date", mode="before")
    @classmethod
    def check_due_date(cls, v):
        return parse_due_date(v)


class TaskStatusPayload(Schema):
    status: TaskStatus


class FAQPayload(Schema):
    question: str = Field(min_length=1)
    answer: str = Field(min_length=1)


class ChatPayload(Schema):
    message: str = Field(min_length=1, max_length=4000)


class EmailPayload(Schema):
    content: str = Field(min_length=1)
    action: Literal["reply", "rewrite", "summarize"]
    tone: str = "formal"


# --------- Responses ---------
class UserOut(Schema):
    id: int
    name: str
    email: str
    role: Role


class AuthResponse(Schema):
    user: UserOut


class ProjectOut(Schema):
    id: int
    name: str
    description: Optional[str] = None
    user_id: int
    created_at: Optional[datetime] = None


class TaskOut(Schema):
    id: int
    title: str
    description: Optional[str] = None
    status: TaskStatus
    due_date: Optional[date] = None
    project_id: int
    user_id: int
    created_at: Optional[datetime] = None


class ProjectWithTasks(ProjectOut):
    tasks: List[TaskOut] = []


class TaskWithProject(TaskOut):
    project: ProjectOut


class FAQOut(Schema):
    id: int
    question: str
    answer: str
    created_at: Optional[datetime] = None


class MessageOut(Schema):
    id: int
    content: str
    ai_response: str
    created_at: Optional[datetime] = None


class TextResponse(Schema):
    text: str


class DashboardOut(Schema):
    projects: int
    pending: int
    completed: int
