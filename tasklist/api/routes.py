from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, Response

from tasklist.api.schemas import (
    Envelope,
    NewTaskRequest,
    TaskListResponse,
    TaskResponse,
    TaskUpdateRequest,
)
from tasklist.service.errors import BadRequestError
from tasklist.service.runtime import get_runtime
from tasklist.storage.models import IdentityContext

router = APIRouter()


def get_identity(authorization: Optional[str] = Header(None)) -> IdentityContext:
    """Resolve the caller from the ``Authorization`` header.

    Runs before the request body is used, so unauthenticated requests fail
    with 401 whatever their payload.
    """
    return get_runtime().authenticator.authenticate(authorization)


def _parse_task_id(task_id: str) -> str:
    try:
        return str(UUID(task_id))
    except ValueError:
        raise BadRequestError(
            "task id must be a UUID", detail={"task_id": task_id}
        ) from None


@router.get("/todos", response_model=Envelope, tags=["todos"])
def list_tasks(ctx: IdentityContext = Depends(get_identity)):
    """Return every task owned by the caller, in no particular order."""
    tasks = get_runtime().store.fetch_all(ctx)
    data = TaskListResponse(items=[TaskResponse.from_task(task) for task in tasks])
    return Envelope(status="ok", data=data.model_dump())


@router.get("/todos/{task_id}", response_model=Envelope, tags=["todos"])
def get_task(task_id: str, ctx: IdentityContext = Depends(get_identity)):
    task = get_runtime().store.fetch_one(ctx, _parse_task_id(task_id))
    return Envelope(status="ok", data=TaskResponse.from_task(task).model_dump())


@router.post("/todos", status_code=201, tags=["todos"])
def create_task(body: NewTaskRequest, ctx: IdentityContext = Depends(get_identity)):
    """Create a task owned by the caller.

    Responds 201 with no body; the new task's URL is in ``Location``.
    """
    task = get_runtime().store.create(ctx, body.to_domain())
    return Response(status_code=201, headers={"Location": f"/todos/{task.id}"})


@router.patch("/todos/{task_id}", response_model=Envelope, tags=["todos"])
def update_task(
    task_id: str,
    body: TaskUpdateRequest,
    ctx: IdentityContext = Depends(get_identity),
):
    task = get_runtime().store.update(ctx, _parse_task_id(task_id), body.to_domain())
    return Envelope(status="ok", data=TaskResponse.from_task(task).model_dump())


@router.delete("/todos/{task_id}", status_code=204, tags=["todos"])
def delete_task(task_id: str, ctx: IdentityContext = Depends(get_identity)):
    get_runtime().store.delete(ctx, _parse_task_id(task_id))
    return Response(status_code=204)
