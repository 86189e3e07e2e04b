from __future__ import annotations

from typing import List, Protocol

from tasklist.storage.models import IdentityContext, NewTask, Task, TaskUpdate


class TaskStore(Protocol):
    """Storage contract shared by every task backend.

    Every operation is scoped by the caller's ``IdentityContext`` and must
    enforce ownership itself; callers never filter results. Implementations
    return copies, raise ``NotFoundError``/``UnauthorizedError`` from
    ``tasklist.storage.errors`` for access failures and ``StoreError`` for
    resource failures, and must be safe to call from concurrent threads.

    ``snapshot`` persists current state without stopping the store; ``close``
    persists it one last time on shutdown. Backends with nothing to flush
    implement both as no-ops.
    """

    def create(self, ctx: IdentityContext, new_task: NewTask) -> Task: ...

    def fetch_one(self, ctx: IdentityContext, task_id: str) -> Task: ...

    def fetch_all(self, ctx: IdentityContext) -> List[Task]: ...

    def update(
        self, ctx: IdentityContext, task_id: str, update: TaskUpdate
    ) -> Task: ...

    def delete(self, ctx: IdentityContext, task_id: str) -> Task: ...

    def snapshot(self) -> None: ...

    def close(self) -> None: ...
