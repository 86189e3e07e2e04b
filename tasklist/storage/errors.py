from __future__ import annotations

from typing import Any, Dict, Optional


class StoreError(Exception):
    """Raised when the task store cannot complete an operation."""

    def __init__(self, message: str, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail or {}


class NotFoundError(StoreError):
    """The task does not exist, or is hidden from the caller for isolation."""


class UnauthorizedError(StoreError):
    """The task exists but belongs to another tenant or user."""


class SnapshotError(StoreError):
    """A persisted snapshot exists but cannot be read back."""


__all__ = ["StoreError", "NotFoundError", "UnauthorizedError", "SnapshotError"]
