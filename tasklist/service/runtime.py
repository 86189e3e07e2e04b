from __future__ import annotations

import threading
from typing import Optional

from tasklist.config import Settings, get_settings, reset_settings_cache
from tasklist.logging import get_logger
from tasklist.service.auth import TokenAuthenticator
from tasklist.storage.memory import MemoryStore
from tasklist.storage.store import TaskStore

logger = get_logger(__name__)


class Runtime:
    """Holds singleton service instances for the FastAPI app."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        logger.info(
            "runtime_init_started",
            memstore_path=self.settings.memstore_path,
        )

        try:
            self.store: TaskStore = MemoryStore(
                self.settings.memstore_path,
                conceal_foreign_tasks=self.settings.conceal_foreign_tasks,
            )
        except Exception as exc:
            logger.error(
                "runtime_store_init_failed",
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise

        self.authenticator = TokenAuthenticator.from_settings(self.settings)
        logger.info(
            "runtime_init_completed",
            jwt_algorithms=list(self.authenticator.algorithms),
            conceal_foreign_tasks=self.settings.conceal_foreign_tasks,
        )

    def close(self) -> None:
        """Flush the store to its snapshot; called once on shutdown."""
        self.store.close()
        logger.info("runtime_closed")


runtime: Runtime | None = None
_runtime_lock = threading.Lock()


def get_runtime() -> Runtime:
    """Get or create the Runtime singleton in a thread-safe manner.

    Uses double-checked locking: the unlocked read is the fast path once the
    runtime exists, the locked re-check prevents two concurrent creations.
    """
    global runtime
    if runtime is not None:
        return runtime
    with _runtime_lock:
        if runtime is None:
            runtime = Runtime()
        return runtime


def reset_runtime_for_tests() -> None:
    """Drop the runtime and cached settings so the next call re-reads the environment.

    The discarded store is not snapshotted; tests that need persistence call
    ``close()`` themselves.
    """
    global runtime
    with _runtime_lock:
        runtime = None
        reset_settings_cache()
