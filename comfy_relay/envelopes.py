from __future__ import annotations

from typing import Any, Dict

from fastapi.responses import JSONResponse

from .errors import ComfyError


def build_success_envelope(*, result: Dict[str, Any] | None, trace_id: str) -> Dict[str, Any]:
    return {
        "schema_version": 1,
        "trace_id": trace_id if isinstance(trace_id, str) else "",
        "ok": True,
        "result": dict(result or {}),
        "error": None,
    }


def build_error_envelope(
    *,
    code: str,
    message: str,
    trace_id: str,
    status: int,
    details: Dict[str, Any] | None = None,
) -> Dict[str, Any]:
    """
    Canonical error envelope. HTTP status is always 200; the semantic status
    lives on error.status.
    """
    err_details: Dict[str, Any] = dict(details or {})
    err_details.setdefault("status", int(status))
    return {
        "schema_version": 1,
        "trace_id": trace_id if isinstance(trace_id, str) else "",
        "ok": False,
        "result": None,
        "error": {
            "code": code,
            "message": message,
            "status": int(status),
            "details": err_details,
        },
    }


class ToolEnvelope:
    @staticmethod
    def success(*, result: Dict[str, Any], trace_id: str) -> JSONResponse:
        return JSONResponse(build_success_envelope(result=result, trace_id=trace_id), status_code=200)

    @staticmethod
    def failure(
        *,
        code: str,
        message: str,
        trace_id: str,
        status: int,
        details: Dict[str, Any] | None = None,
    ) -> JSONResponse:
        env = build_error_envelope(code=code, message=message, trace_id=trace_id, status=int(status), details=details)
        return JSONResponse(env, status_code=200)

    @staticmethod
    def from_error(err: ComfyError, *, trace_id: str) -> JSONResponse:
        details = dict(err.details)
        details.setdefault("where", err.where)
        return ToolEnvelope.failure(code=err.code, message=str(err), trace_id=trace_id, status=err.status, details=details)
