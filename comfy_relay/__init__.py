from __future__ import annotations

# Client-side orchestration for ComfyUI: submit a workflow, poll queue and
# history until it finishes, then fetch and normalize every output file.

from .artifacts import ArtifactKind, ArtifactReference, classify_kind, mime_for_extension
from .client import ComfyClient, ComfyDeps
from .collect import ResultCollector
from .config import RunSettings
from .errors import (
    ComfyError,
    ConfigError,
    ConnectivityError,
    DecodeError,
    EncodeError,
    ExecutionError,
    FetchError,
    MissingStatusError,
    PayloadError,
    PipelineError,
    PollTimeoutError,
    ProtocolError,
    TransportError,
    VanishedError,
)
from .fetch import ArtifactFetcher
from .history import HistoryRecord
from .normalize import ArtifactNormalizer, OutputRecord
from .pipeline import ComfyPipeline, run_workflow
from .poller import CompletionPoller, PollState, QueueSnapshot, in_queue
from .submit import Job, JobSubmitter, parse_workflow

__all__ = [
    "ArtifactKind",
    "ArtifactReference",
    "classify_kind",
    "mime_for_extension",
    "ComfyClient",
    "ComfyDeps",
    "ResultCollector",
    "RunSettings",
    "ComfyError",
    "ConfigError",
    "ConnectivityError",
    "DecodeError",
    "EncodeError",
    "ExecutionError",
    "FetchError",
    "MissingStatusError",
    "PayloadError",
    "PipelineError",
    "PollTimeoutError",
    "ProtocolError",
    "TransportError",
    "VanishedError",
    "ArtifactFetcher",
    "HistoryRecord",
    "ArtifactNormalizer",
    "OutputRecord",
    "ComfyPipeline",
    "run_workflow",
    "CompletionPoller",
    "PollState",
    "QueueSnapshot",
    "in_queue",
    "Job",
    "JobSubmitter",
    "parse_workflow",
]
