from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .errors import ExecutionError


GENERIC_FAILURE = "[ComfyUI] Workflow execution failed"


@dataclass
class HistoryRecord:
    prompt_id: str
    status: Optional[Dict[str, Any]]
    messages: List[Any] = field(default_factory=list)
    outputs: Dict[str, Any] = field(default_factory=dict)
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_response(cls, body: Any, prompt_id: str) -> Optional["HistoryRecord"]:
        """
        Pick the entry for prompt_id out of a /history/{id} response.

        ComfyUI answers {"<pid>": {"status": {...}, "outputs": {...}}}; an
        empty mapping means the prompt is unknown and yields None.
        """
        if not isinstance(body, dict):
            return None
        entry = body.get(prompt_id)
        if not isinstance(entry, dict):
            return None
        status = entry.get("status")
        messages: List[Any] = []
        if isinstance(status, dict) and isinstance(status.get("messages"), list):
            messages = list(status["messages"])
        outputs = entry.get("outputs")
        return cls(
            prompt_id=prompt_id,
            status=status if isinstance(status, dict) else None,
            messages=messages,
            outputs=outputs if isinstance(outputs, dict) else {},
            raw=entry,
        )

    @property
    def status_str(self) -> str:
        return str((self.status or {}).get("status_str") or "")

    @property
    def completed(self) -> bool:
        return (self.status or {}).get("completed") is True

    @property
    def errored(self) -> bool:
        return self.status_str == "error"

    def first_message(self, kind: str) -> Optional[Any]:
        for msg in self.messages:
            if isinstance(msg, (list, tuple)) and len(msg) > 1 and msg[0] == kind:
                return msg[1]
        return None


def execution_error(record: HistoryRecord) -> ExecutionError:
    info = record.first_message("execution_error")
    if not isinstance(info, dict) or not info:
        return ExecutionError(GENERIC_FAILURE, where=f"/history/{record.prompt_id}")
    node_id = info.get("node_id")
    node_type = info.get("node_type")
    exc_msg = info.get("exception_message")
    return ExecutionError(
        f"{GENERIC_FAILURE} in node {node_id} ({node_type}): {exc_msg}",
        node_id=node_id,
        node_type=node_type,
        exception_message=exc_msg,
        where=f"/history/{record.prompt_id}",
    )
