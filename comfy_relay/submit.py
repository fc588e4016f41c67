from __future__ import annotations

import json
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict

from .client import ComfyDeps
from .errors import ConnectivityError, PayloadError, ProtocolError, TransportError


@dataclass(frozen=True)
class Job:
    prompt_id: str
    payload: Dict[str, Any]
    submitted_at: float = field(default_factory=time.time)


def parse_workflow(source: Any) -> Dict[str, Any]:
    """
    Turn the raw workflow input into the node graph that goes under "prompt".

    Accepts a dict or JSON text. A document already wrapped as {"prompt": {...}}
    is unwrapped so it is not nested twice on submit.
    """
    if isinstance(source, dict):
        doc: Any = source
    else:
        if isinstance(source, (bytes, bytearray)):
            source = bytes(source).decode("utf-8", errors="replace")
        if not isinstance(source, str) or not source.strip():
            raise PayloadError("Workflow JSON is empty", where="parse_workflow")
        try:
            doc = json.loads(source)
        except json.JSONDecodeError as ex:
            raise PayloadError(f"Workflow JSON is invalid: {ex}", where="parse_workflow") from ex
    if not isinstance(doc, dict):
        raise PayloadError(f"Workflow JSON must be an object, got {type(doc).__name__}", where="parse_workflow")
    inner = doc.get("prompt")
    if isinstance(inner, dict):
        return inner
    return doc


class JobSubmitter:
    def __init__(self, deps: ComfyDeps):
        self.deps = deps

    async def check_connectivity(self) -> None:
        self.deps.log.info("[comfy.submit] checking API connection base=%s", self.deps.client.base_url)
        try:
            await self.deps.client.get_json("/system_stats")
        except TransportError as ex:
            raise ConnectivityError(str(ex), where="/system_stats", details=ex.details) from ex
        except ProtocolError:
            # Any non-error response counts as reachable.
            pass

    async def submit(self, payload: Dict[str, Any]) -> Job:
        client_id = uuid.uuid4().hex
        body = {"prompt": payload, "client_id": client_id}
        self.deps.log.info("[comfy.submit] POST /prompt nodes=%s client_id=%s", len(payload), client_id)
        try:
            resp = await self.deps.client.post_json("/prompt", body)
        except TransportError as ex:
            raise ProtocolError(f"Failed to queue prompt: {ex}", where="/prompt", details=ex.details) from ex
        prompt_id = resp.get("prompt_id") if isinstance(resp, dict) else None
        if not isinstance(prompt_id, str) or not prompt_id:
            raise ProtocolError(
                "Failed to get prompt ID from ComfyUI: no job id returned",
                where="/prompt",
                details={"response": resp},
            )
        self.deps.log.info("[comfy.submit] prompt queued prompt_id=%s", prompt_id)
        return Job(prompt_id=prompt_id, payload=payload)
