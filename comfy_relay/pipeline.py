from __future__ import annotations

import logging
from typing import Any, List, Optional

import httpx  # type: ignore

from .client import ComfyClient, ComfyDeps, Sleep
from .collect import ResultCollector
from .config import RunSettings
from .errors import PipelineError
from .normalize import ArtifactNormalizer, OutputRecord
from .poller import CompletionPoller
from .submit import Job, JobSubmitter, parse_workflow


log = logging.getLogger(__name__)


class ComfyPipeline:
    """
    probe -> submit -> poll -> collect for a single workflow.

    Any failure before collection finishes is raised as one PipelineError;
    per-artifact failures come back as failure records instead.
    """

    def __init__(self, deps: ComfyDeps, settings: RunSettings):
        self.deps = deps
        self.settings = settings
        self.submitter = JobSubmitter(deps)
        self.poller = CompletionPoller(
            deps,
            timeout_minutes=settings.timeout_minutes,
            initial_delay_s=settings.initial_delay_s,
            poll_interval_s=settings.poll_interval_s,
        )
        self.collector = ResultCollector(
            deps,
            ArtifactNormalizer(settings.output_format, settings.jpeg_quality),
            categories=settings.eligible_types,
        )
        self.job: Optional[Job] = None

    async def run(self, workflow: Any) -> List[OutputRecord]:
        self.deps.log.info("[comfy] executing with API URL: %s", self.deps.client.base_url)
        try:
            payload = parse_workflow(workflow)
            await self.submitter.check_connectivity()
            self.job = await self.submitter.submit(payload)
            record = await self.poller.wait(self.job)
            records = await self.collector.collect(record)
        except Exception as ex:
            err = PipelineError(ex)
            self.deps.log.error("[comfy] execution error: %s", err, exc_info=True)
            raise err from ex
        self.deps.log.info("[comfy] all outputs downloaded prompt_id=%s count=%s", self.job.prompt_id, len(records))
        return records


async def run_workflow(
    settings: RunSettings,
    workflow: Any,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    sleep: Optional[Sleep] = None,
) -> List[OutputRecord]:
    """Open a client for settings.base_url, run one workflow, and close it."""
    async with open_client(settings, transport) as client:
        deps = ComfyDeps(client=client, sleep=sleep) if sleep else ComfyDeps(client=client)
        return await ComfyPipeline(deps, settings).run(workflow)


def open_client(settings: RunSettings, transport: Optional[httpx.AsyncBaseTransport] = None) -> ComfyClient:
    if settings.api_key:
        log.info("[comfy] using API key authentication")
    if transport is None:
        return ComfyClient(settings.base_url, settings.api_key)
    http = httpx.AsyncClient(timeout=None, follow_redirects=False, trust_env=False, transport=transport)
    return ComfyClient(settings.base_url, settings.api_key, client=http, owns_client=True)
