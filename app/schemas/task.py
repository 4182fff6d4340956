from typing import Literal

from pydantic import BaseModel, Field, field_validator
from datetime import date, datetime
from app.utils.sanitization import sanitize_string
from app.schemas.user import UserRef
from app.models.tasks import AssignStatus, LogAction

PriorityLiteral = Literal["low", "medium", "high"]
StatusLiteral = Literal["pending", "inprogress", "completed"]
FrequencyLiteral = Literal["once", "daily", "weekly", "monthly"]
AssignStatusLiteral = Literal["requested", "assigned", "rejected", "deleted"]

DUE_TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


# ── Log entries ─────────────────────────────────────────

class LogEntry(BaseModel):
    action: LogAction
    by_id: int
    to_id: int | None = None
    timestamp: datetime

    class Config:
        from_attributes = True


# ── Common base for readable/writeable fields ──
class TaskBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    due_date: date | None = None
    due_time: str | None = Field(None, pattern=DUE_TIME_PATTERN)
    priority: PriorityLiteral = "low"
    status: StatusLiteral = "pending"
    frequency: FrequencyLiteral = "once"

    @field_validator("title", "description", mode="before")
    @classmethod
    def sanitize(cls, v):
        return sanitize_string(v)


class TaskCreate(TaskBase):
    pass


class TaskUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = None
    due_date: date | None = None
    due_time: str | None = Field(None, pattern=DUE_TIME_PATTERN)
    priority: PriorityLiteral | None = None
    status: StatusLiteral | None = None
    frequency: FrequencyLiteral | None = None

    @field_validator("title", "description", mode="before")
    @classmethod
    def sanitize(cls, v):
        return sanitize_string(v)


class Task(TaskBase):
    task_id: int
    owner_id: int
    logs: list[LogEntry] = []
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class TaskMessage(BaseModel):
    message: str
    task: Task


# ── Assignment schemas ──────────────────────────────────

class AssignedTaskCreate(TaskBase):
    send_to: str = Field(..., min_length=1, description="Username of the receiver")


class AssignedTaskUpdate(TaskUpdate):
    # Edits may move the assignment to any status
    assign_status: AssignStatusLiteral | None = None


class AssignedTask(TaskBase):
    task_id: int
    sent_by: UserRef = Field(validation_alias="sender")
    send_to: UserRef = Field(validation_alias="receiver")
    assign_status: AssignStatus
    logs: list[LogEntry] = []
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True
        populate_by_name = True


class AssignmentCreated(BaseModel):
    message: str
    status: AssignStatus
    task: AssignedTask


class AssignedTaskMessage(BaseModel):
    message: str
    task: AssignedTask


class AssignmentList(BaseModel):
    sent: list[AssignedTask]
    received: list[AssignedTask]


class TaskDecision(BaseModel):
    """Payload of the `accept-task` / `reject-task` socket events."""
    id: int
    from_: str = Field(..., alias="from")
    to: str

    class Config:
        populate_by_name = True
