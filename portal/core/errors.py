"""Workflow error taxonomy.

Every error knows its API code and HTTP status so the exception handlers
in ``portal.main`` can render it without a lookup table.
"""

from typing import Any


class WorkflowError(Exception):
    code = "WORKFLOW_ERROR"
    status_code = 400

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InvalidTransition(WorkflowError):
    code = "INVALID_TRANSITION"
    status_code = 400


class MissingNote(WorkflowError):
    code = "MISSING_NOTE"
    status_code = 400

    def __init__(self, message: str = "A note is required for this transition") -> None:
        super().__init__(message, details={"field": "note"})


class Conflict(WorkflowError):
    code = "CONFLICT"
    status_code = 409


class NotFound(WorkflowError):
    code = "NOT_FOUND"
    status_code = 404


class StoreUnavailable(WorkflowError):
    code = "STORE_UNAVAILABLE"
    status_code = 503

    def __init__(self, message: str = "Content store unavailable") -> None:
        super().__init__(message, details={"retryable": True})


class PermissionDenied(WorkflowError):
    code = "PERMISSION_DENIED"
    status_code = 403
