from __future__ import annotations

import dataclasses
import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, List

from tasklist.logging import get_logger
from tasklist.storage.errors import (
    NotFoundError,
    SnapshotError,
    StoreError,
    UnauthorizedError,
)
from tasklist.storage.locks import ReadWriteLock
from tasklist.storage.models import IdentityContext, NewTask, Task, TaskUpdate


class MemoryStore:
    """In-memory task store persisted as a JSON snapshot.

    The map and its lock form one unit: tasks are only read or mutated while
    the lock is held, and every task handed to a caller is a copy made inside
    the critical section. Durability is snapshot-only; writes since the last
    ``snapshot()`` are lost on an uncontrolled exit.
    """

    def __init__(
        self, path: str | os.PathLike[str], *, conceal_foreign_tasks: bool = False
    ) -> None:
        self.logger = get_logger(__name__)
        self.path = Path(path)
        self.conceal_foreign_tasks = conceal_foreign_tasks
        self._lock = ReadWriteLock()
        # Serializes snapshot writers so an older map never overwrites a newer one
        self._snapshot_lock = threading.Lock()
        self.tasks: Dict[str, Task] = self._load_state()
        self.logger.info(
            "memstore_loaded", path=str(self.path), task_count=len(self.tasks)
        )

    def create(self, ctx: IdentityContext, new_task: NewTask) -> Task:
        task = Task.new(ctx, new_task)
        with self._lock.write():
            self.tasks[task.id] = task
            created = dataclasses.replace(task)
        self.logger.info(
            "task_created",
            task_id=created.id,
            tenant_id=ctx.tenant_id,
            user_id=ctx.user_id,
        )
        return created

    def fetch_one(self, ctx: IdentityContext, task_id: str) -> Task:
        with self._lock.read():
            task = self._get_owned(ctx, task_id, operation="fetch")
            return dataclasses.replace(task)

    def fetch_all(self, ctx: IdentityContext) -> List[Task]:
        with self._lock.read():
            return [
                dataclasses.replace(task)
                for task in self.tasks.values()
                if task.owned_by(ctx)
            ]

    def update(self, ctx: IdentityContext, task_id: str, update: TaskUpdate) -> Task:
        with self._lock.write():
            task = self._get_owned(ctx, task_id, operation="update")
            task.apply(update)
            updated = dataclasses.replace(task)
        self.logger.info(
            "task_updated",
            task_id=task_id,
            tenant_id=ctx.tenant_id,
            user_id=ctx.user_id,
            fields=[
                name
                for name in ("task", "completed")
                if getattr(update, name) is not None
            ],
        )
        return updated

    def delete(self, ctx: IdentityContext, task_id: str) -> Task:
        with self._lock.write():
            task = self.tasks.get(task_id)
            # Absent and foreign tasks are indistinguishable here
            if task is None or not task.owned_by(ctx):
                if task is not None:
                    self._log_denied(ctx, task_id, "delete")
                raise NotFoundError("task not found", {"task_id": task_id})
            removed = self.tasks.pop(task_id)
        self.logger.info(
            "task_deleted",
            task_id=task_id,
            tenant_id=ctx.tenant_id,
            user_id=ctx.user_id,
        )
        return removed

    def _get_owned(self, ctx: IdentityContext, task_id: str, *, operation: str) -> Task:
        """Look up a task for ``ctx``; caller must hold the lock."""
        task = self.tasks.get(task_id)
        if task is None:
            raise NotFoundError("task not found", {"task_id": task_id})
        if not task.owned_by(ctx):
            self._log_denied(ctx, task_id, operation)
            if self.conceal_foreign_tasks:
                raise NotFoundError("task not found", {"task_id": task_id})
            raise UnauthorizedError("not permitted", {"task_id": task_id})
        return task

    def _log_denied(self, ctx: IdentityContext, task_id: str, operation: str) -> None:
        self.logger.warning(
            "task_access_denied",
            task_id=task_id,
            operation=operation,
            tenant_id=ctx.tenant_id,
            user_id=ctx.user_id,
        )

    # persistence
    def snapshot(self) -> None:
        """Write the whole map to ``self.path``, replacing the previous snapshot."""
        with self._snapshot_lock:
            with self._lock.read():
                state = {
                    task_id: self._serialize_task(task)
                    for task_id, task in self.tasks.items()
                }
            self._write_atomic(json.dumps(state, indent=2))
        self.logger.info(
            "memstore_snapshot_written", path=str(self.path), task_count=len(state)
        )

    def close(self) -> None:
        self.snapshot()

    def _write_atomic(self, payload: str) -> None:
        tmp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=str(self.path.parent), prefix=f".{self.path.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, self.path)
        except OSError as exc:
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            self.logger.error(
                "memstore_snapshot_failed", path=str(self.path), error=str(exc)
            )
            raise StoreError(
                f"failed to persist task snapshot: {exc}", {"path": str(self.path)}
            ) from exc

    def _load_state(self) -> Dict[str, Task]:
        # Use try-except instead of exists() to avoid TOCTOU race condition
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            raise SnapshotError(
                f"unable to read task snapshot: {exc}", {"path": str(self.path)}
            ) from exc
        try:
            data = json.loads(raw)
        except ValueError as exc:
            raise SnapshotError(
                f"task snapshot is not valid JSON: {exc}", {"path": str(self.path)}
            ) from exc
        if not isinstance(data, dict):
            raise SnapshotError(
                "task snapshot must be a JSON object keyed by task id",
                {"path": str(self.path)},
            )
        tasks: Dict[str, Task] = {}
        for task_id, entry in data.items():
            try:
                task = self._deserialize_task(entry)
            except (KeyError, TypeError, ValueError) as exc:
                raise SnapshotError(
                    f"malformed task entry in snapshot: {exc}",
                    {"path": str(self.path), "task_id": task_id},
                ) from exc
            if task.id != task_id:
                raise SnapshotError(
                    "task snapshot key does not match task id",
                    {"path": str(self.path), "task_id": task_id},
                )
            tasks[task_id] = task
        return tasks

    @staticmethod
    def _serialize_task(task: Task) -> dict:
        return {
            "id": task.id,
            "tenant_id": task.tenant_id,
            "user_id": task.user_id,
            "task": task.task,
            "completed": task.completed,
        }

    @staticmethod
    def _deserialize_task(data: dict) -> Task:
        if not isinstance(data, dict):
            raise TypeError("task entry must be an object")
        fields = {}
        for name in ("id", "tenant_id", "user_id", "task"):
            value = data[name]
            if not isinstance(value, str):
                raise TypeError(f"{name} must be a string")
            fields[name] = value
        completed = data["completed"]
        if not isinstance(completed, bool):
            raise TypeError("completed must be a boolean")
        return Task(completed=completed, **fields)
