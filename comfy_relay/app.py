from __future__ import annotations

import json
import logging
import time
import uuid
from typing import Any, Dict

from fastapi import FastAPI, Request

from .client import ComfyDeps
from .config import RunSettings, env_base_url
from .envelopes import ToolEnvelope
from .errors import ComfyError, PayloadError, PipelineError
from .pipeline import ComfyPipeline, open_client


log = logging.getLogger(__name__)

APP = FastAPI(title="ComfyUI Relay Service", version="1.0")
# Test seams: an httpx transport and a sleep coroutine for the pipeline.
APP.state.transport = None
APP.state.sleep = None

START_TS = time.time()


def _request_settings(payload: Dict[str, Any]) -> RunSettings:
    return RunSettings.from_env(
        base_url=payload.get("base_url"),
        api_key=payload.get("api_key"),
        output_format=payload.get("output_format"),
        jpeg_quality=payload.get("jpeg_quality"),
        timeout_minutes=payload.get("timeout"),
        eligible_types=payload.get("eligible_types"),
    )


async def _read_payload(request: Request) -> Dict[str, Any]:
    raw = await request.body()
    body_txt = (raw or b"").decode("utf-8", errors="replace")
    try:
        payload = json.loads(body_txt or "{}")
    except json.JSONDecodeError as ex:
        raise PayloadError(f"request body is not valid JSON: {ex}", where="request") from ex
    if not isinstance(payload, dict):
        raise PayloadError("request body must be a JSON object", where="request")
    return payload


@APP.get("/healthz")
def healthz() -> Dict[str, Any]:
    return {"ok": True, "base_url": env_base_url(), "uptime_s": int(time.time() - START_TS)}


@APP.post("/v1/comfy/run")
async def run(request: Request):
    trace_id = uuid.uuid4().hex
    try:
        payload = await _read_payload(request)
        if isinstance(payload.get("trace_id"), str) and payload["trace_id"].strip():
            trace_id = payload["trace_id"].strip()
        if payload.get("workflow") in (None, ""):
            return ToolEnvelope.failure(code="missing_workflow", message="workflow is required", trace_id=trace_id, status=422)
        settings = _request_settings(payload)
    except ComfyError as ex:
        return ToolEnvelope.from_error(ex, trace_id=trace_id)

    log.info("[comfy.run] trace_id=%s base=%s format=%s timeout=%s", trace_id, settings.base_url, settings.output_format, settings.timeout_minutes)
    async with open_client(settings, APP.state.transport) as client:
        deps = ComfyDeps(client=client)
        if APP.state.sleep is not None:
            deps.sleep = APP.state.sleep
        pipeline = ComfyPipeline(deps, settings)
        try:
            records = await pipeline.run(payload["workflow"])
        except PipelineError as ex:
            details = dict(ex.details)
            if pipeline.job is not None:
                details["prompt_id"] = pipeline.job.prompt_id
            return ToolEnvelope.failure(code=ex.code, message=str(ex), trace_id=trace_id, status=ex.status, details=details)

    items = [r.to_item() for r in records]
    return ToolEnvelope.success(
        result={
            "prompt_id": pipeline.job.prompt_id if pipeline.job else None,
            "items": items,
            "failed": sum(1 for r in records if not r.ok),
        },
        trace_id=trace_id,
    )
