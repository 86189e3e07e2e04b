from __future__ import annotations

from typing import Any, List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from tasklist.storage.models import NewTask, Task, TaskUpdate

_VALID_ERROR_CODES = frozenset({
    "unauthorized",
    "forbidden",
    "not_found",
    "validation_error",
    "server_error",
})


class ErrorBody(BaseModel):
    """Error envelope body with a stable ``code`` value."""

    code: str = Field(..., description="Stable machine-readable error code")
    message: str
    details: Optional[Any] = None  # object, array, or null

    @field_validator("code")
    @classmethod
    def _validate_error_code(cls, value: str) -> str:
        if value not in _VALID_ERROR_CODES:
            raise ValueError(
                f"Invalid error code '{value}'. Must be one of: {', '.join(sorted(_VALID_ERROR_CODES))}"
            )
        return value


class Envelope(BaseModel):
    status: str = Field(..., pattern="^(ok|error)$")
    data: Optional[Any] = None
    error: Optional[ErrorBody] = None
    request_id: str = Field(default_factory=lambda: str(uuid4()))


class NewTaskRequest(BaseModel):
    """Body of ``POST /todos``; ownership always comes from the bearer token."""

    model_config = ConfigDict(extra="ignore")

    task: str
    completed: bool = False

    def to_domain(self) -> NewTask:
        return NewTask(task=self.task, completed=self.completed)


class TaskUpdateRequest(BaseModel):
    """Body of ``PATCH /todos/{id}``; omitted or null fields are left unchanged."""

    model_config = ConfigDict(extra="ignore")

    task: Optional[str] = None
    completed: Optional[bool] = None

    def to_domain(self) -> TaskUpdate:
        return TaskUpdate(task=self.task, completed=self.completed)


class TaskResponse(BaseModel):
    id: str
    tenant_id: str
    user_id: str
    task: str
    completed: bool

    @classmethod
    def from_task(cls, task: Task) -> "TaskResponse":
        return cls(
            id=task.id,
            tenant_id=task.tenant_id,
            user_id=task.user_id,
            task=task.task,
            completed=task.completed,
        )


class TaskListResponse(BaseModel):
    items: List[TaskResponse]
