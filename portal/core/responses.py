from typing import Any

from portal.core.errors import WorkflowError


def success_response(data: Any, meta: dict | None = None) -> dict:
    return {
        "data": data,
        "error": None,
        "meta": meta or {},
    }


def error_response(code: str, message: str, trace_id: str, status: int = 400, details: dict | None = None) -> tuple[dict, int]:
    return (
        {
            "data": None,
            "error": {
                "code": code,
                "message": message,
                "trace_id": trace_id,
                "details": details or {},
            },
            "meta": {},
        },
        status,
    )


def workflow_error_response(exc: WorkflowError, trace_id: str) -> tuple[dict, int]:
    return error_response(
        code=exc.code,
        message=exc.message,
        trace_id=trace_id,
        status=exc.status_code,
        details=exc.details,
    )
