from __future__ import annotations

from typing import Any, Dict, Optional


class ComfyError(Exception):
    code = "comfy_error"
    status = 500

    def __init__(self, msg: str, where: str | None = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(msg)
        self.where = where or "unknown"
        self.details: Dict[str, Any] = dict(details or {})

    def to_envelope(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "where": self.where,
                "message": str(self),
                "status": int(self.status),
                "details": self.details,
            }
        }


class ConfigError(ComfyError):
    code = "config_invalid"
    status = 422


class PayloadError(ComfyError):
    code = "payload_invalid"
    status = 422


class ConnectivityError(ComfyError):
    code = "comfy_unreachable"
    status = 502


class TransportError(ComfyError):
    code = "comfy_http_error"
    status = 502


class ProtocolError(ComfyError):
    code = "comfy_protocol_error"
    status = 502


class VanishedError(ComfyError):
    code = "comfy_prompt_vanished"


class MissingStatusError(ComfyError):
    code = "comfy_missing_status"


class ExecutionError(ComfyError):
    code = "comfy_execution_error"
    status = 422

    def __init__(
        self,
        msg: str,
        node_id: Any = None,
        node_type: Any = None,
        exception_message: Any = None,
        where: str | None = None,
    ):
        details = {"node_id": node_id, "node_type": node_type, "exception_message": exception_message}
        super().__init__(msg, where=where, details=details)
        self.node_id = node_id
        self.node_type = node_type
        self.exception_message = exception_message


class PollTimeoutError(ComfyError):
    code = "comfy_timeout"
    status = 504

    def __init__(self, timeout_minutes: float, where: str | None = None):
        super().__init__(f"Execution timeout after {timeout_minutes:g} minutes", where=where, details={"timeout_minutes": timeout_minutes})
        self.timeout_minutes = timeout_minutes


class FetchError(ComfyError):
    code = "artifact_fetch_failed"
    status = 502


class DecodeError(ComfyError):
    code = "artifact_decode_failed"
    status = 422


class EncodeError(ComfyError):
    code = "artifact_encode_failed"


class PipelineError(ComfyError):
    """
    Single externally reported failure of a pipeline run.

    The message is always prefixed with PIPELINE_ERROR_PREFIX and carries the
    underlying cause text; the original exception stays on .cause.
    """

    def __init__(self, cause: BaseException, where: str | None = None):
        super().__init__(f"{PIPELINE_ERROR_PREFIX}{cause}", where=where or getattr(cause, "where", None))
        self.cause = cause
        if isinstance(cause, ComfyError):
            self.code = cause.code
            self.status = cause.status
            self.details = dict(cause.details)
        else:
            self.code = "comfy_unexpected_error"
            self.details = {"exception": type(cause).__name__}


PIPELINE_ERROR_PREFIX = "ComfyUI API Error: "
