from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class IdentityContext:
    """Verified (tenant, user) pair attached to a request after authentication."""

    tenant_id: str
    user_id: str


@dataclass
class NewTask:
    task: str
    completed: bool = False


@dataclass
class TaskUpdate:
    """Partial update; ``None`` leaves the stored field unchanged."""

    task: Optional[str] = None
    completed: Optional[bool] = None


@dataclass
class Task:
    id: str
    tenant_id: str
    user_id: str
    task: str
    completed: bool = False

    @classmethod
    def new(cls, ctx: IdentityContext, new_task: NewTask) -> "Task":
        return cls(
            id=str(uuid.uuid4()),
            tenant_id=ctx.tenant_id,
            user_id=ctx.user_id,
            task=new_task.task,
            completed=new_task.completed,
        )

    def owned_by(self, ctx: IdentityContext) -> bool:
        return self.tenant_id == ctx.tenant_id and self.user_id == ctx.user_id

    def apply(self, update: TaskUpdate) -> None:
        if update.task is not None:
            self.task = update.task
        if update.completed is not None:
            self.completed = update.completed
