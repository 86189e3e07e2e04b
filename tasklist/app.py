from __future__ import annotations

import asyncio
import contextlib
from contextlib import asynccontextmanager
from typing import Any, Dict

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tasklist.api.error_handling import register_exception_handlers
from tasklist.api.routes import router
from tasklist.config import Settings
from tasklist.logging import get_logger, set_correlation_id
from tasklist.storage.errors import StoreError
from tasklist.storage.store import TaskStore

logger = get_logger(__name__)

_settings = Settings.from_env()

__version__ = "0.1.0"


_snapshot_task: asyncio.Task | None = None


async def _run_periodic_snapshots(store: TaskStore, interval_seconds: float) -> None:
    """Snapshot ``store`` every ``interval_seconds`` until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await asyncio.to_thread(store.snapshot)
        except StoreError as exc:
            # Already logged by the store; retry on the next tick
            logger.warning("periodic_snapshot_skipped", error=exc.message)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load the store on startup and flush it on shutdown.

    A snapshot that cannot be parsed raises out of startup and stops the
    server rather than serving an empty store.
    """
    global _snapshot_task
    from tasklist.service.runtime import get_runtime

    runtime = get_runtime()
    interval = runtime.settings.snapshot_interval_seconds
    if interval > 0:
        _snapshot_task = asyncio.create_task(
            _run_periodic_snapshots(runtime.store, interval)
        )
        logger.info("periodic_snapshots_started", interval_seconds=interval)

    yield

    try:
        if _snapshot_task:
            _snapshot_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await _snapshot_task
            _snapshot_task = None
        await asyncio.to_thread(get_runtime().close)
        logger.info("runtime_cleanup_complete")
    except Exception as exc:
        logger.error("shutdown_failed", error=str(exc))


app = FastAPI(title="Task List Service", version=__version__, lifespan=lifespan)


app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_allow_origins,
    allow_credentials=False,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
    expose_headers=["X-Request-ID", "Location"],
    max_age=3600,
)


@app.middleware("http")
async def add_correlation_id(request, call_next):
    """Tag the request with a correlation ID for log tracing.

    Taken from the client's ``X-Request-ID`` header when present, otherwise
    generated, and echoed back in the response header.
    """
    client_request_id = request.headers.get("X-Request-ID")
    correlation_id = set_correlation_id(client_request_id)
    response = await call_next(request)
    response.headers["X-Request-ID"] = correlation_id
    return response


@app.middleware("http")
async def add_security_headers(request, call_next):
    response = await call_next(request)
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("Referrer-Policy", "no-referrer")
    # Task data is per-caller; keep it out of shared caches
    response.headers.setdefault("Cache-Control", "no-store")
    return response


register_exception_handlers(app)
app.include_router(router)


@app.get("/healthz")
async def health() -> Dict[str, Any]:
    """Liveness check; answers once the store has loaded and exposes no configuration."""
    from tasklist.service.runtime import get_runtime

    get_runtime()
    return {"status": "ok", "version": __version__}
