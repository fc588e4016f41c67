from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Sequence

from .client import ComfyDeps
from .config import ATTEMPTS_PER_MINUTE
from .errors import (
    MissingStatusError,
    PollTimeoutError,
    ProtocolError,
    TransportError,
    VanishedError,
)
from .history import HistoryRecord, execution_error
from .submit import Job


class PollState(str, Enum):
    SUBMITTED = "submitted"
    POLLING = "polling"
    RUNNING = "running"
    PENDING = "pending"
    LEFT_QUEUE = "left_queue"
    COMPLETED = "completed"
    ERRORED = "errored"
    VANISHED = "vanished"
    UNKNOWN_STATUS = "unknown_status"
    TIMED_OUT = "timed_out"


def in_queue(entries: Sequence[Any], prompt_id: str) -> bool:
    # Queue items are [number, prompt_id, prompt, extra_data, outputs_to_execute].
    for item in entries or ():
        if isinstance(item, (list, tuple)) and len(item) > 1 and item[1] == prompt_id:
            return True
    return False


@dataclass(frozen=True)
class QueueSnapshot:
    running: List[Any] = field(default_factory=list)
    pending: List[Any] = field(default_factory=list)

    @classmethod
    def from_response(cls, body: Any) -> "QueueSnapshot":
        if not isinstance(body, dict):
            raise ProtocolError("/queue returned an unexpected shape", where="/queue", details={"response": body})
        running = body.get("queue_running") or []
        pending = body.get("queue_pending") or []
        return cls(
            running=list(running) if isinstance(running, list) else [],
            pending=list(pending) if isinstance(pending, list) else [],
        )

    def is_running(self, prompt_id: str) -> bool:
        return in_queue(self.running, prompt_id)

    def is_pending(self, prompt_id: str) -> bool:
        return in_queue(self.pending, prompt_id)


class CompletionPoller:
    """
    Waits for a submitted prompt to finish.

    Each attempt checks /queue first and only reads /history once the prompt
    is in neither the running nor the pending lane. The loop is bounded by
    max_attempts (one per poll_interval_s); exhausting it raises
    PollTimeoutError with the configured minutes.
    """

    def __init__(
        self,
        deps: ComfyDeps,
        timeout_minutes: float,
        initial_delay_s: float = 5.0,
        poll_interval_s: float = 1.0,
    ):
        self.deps = deps
        self.timeout_minutes = timeout_minutes
        self.initial_delay_s = initial_delay_s
        self.poll_interval_s = poll_interval_s
        self.max_attempts = int(ATTEMPTS_PER_MINUTE * timeout_minutes)
        self.state = PollState.SUBMITTED
        self.attempts = 0

    def _enter(self, state: PollState, prompt_id: str) -> None:
        if state != self.state:
            self.deps.log.debug("[comfy.poll] prompt_id=%s state %s -> %s", prompt_id, self.state.value, state.value)
        self.state = state

    async def _fetch(self, path: str) -> Any:
        try:
            return await self.deps.client.get_json(path)
        except TransportError as ex:
            raise ProtocolError(str(ex), where=path, details=ex.details) from ex

    async def queue_snapshot(self) -> QueueSnapshot:
        return QueueSnapshot.from_response(await self._fetch("/queue"))

    async def history_record(self, prompt_id: str) -> HistoryRecord | None:
        return HistoryRecord.from_response(await self._fetch(f"/history/{prompt_id}"), prompt_id)

    async def wait(self, job: Job) -> HistoryRecord:
        pid = job.prompt_id
        log = self.deps.log
        await self.deps.sleep(self.initial_delay_s)
        self._enter(PollState.POLLING, pid)
        self.attempts = 0
        while self.attempts < self.max_attempts:
            await self.deps.sleep(self.poll_interval_s)
            self.attempts += 1
            log.info("[comfy.poll] checking execution status prompt_id=%s attempt=%s/%s", pid, self.attempts, self.max_attempts)

            queue = await self.queue_snapshot()
            if queue.is_running(pid):
                self._enter(PollState.RUNNING, pid)
                continue
            if queue.is_pending(pid):
                self._enter(PollState.PENDING, pid)
                continue

            self._enter(PollState.LEFT_QUEUE, pid)
            record = await self.history_record(pid)
            if record is None:
                self._enter(PollState.VANISHED, pid)
                raise VanishedError(
                    "[ComfyUI] Workflow execution failed: prompt disappeared from queue but is not in history. "
                    "This usually indicates a server crash or prompt parsing error.",
                    where=f"/history/{pid}",
                )
            if record.status is None:
                raise MissingStatusError("[ComfyUI] Workflow execution failed: prompt contains no status", where=f"/history/{pid}")
            # Error wins over completion.
            if record.errored:
                self._enter(PollState.ERRORED, pid)
                err = execution_error(record)
                log.error("[comfy.poll] prompt_id=%s execution error: %s", pid, err)
                raise err
            if record.completed:
                self._enter(PollState.COMPLETED, pid)
                log.info("[comfy.poll] prompt_id=%s completed after attempts=%s", pid, self.attempts)
                return record
            self._enter(PollState.UNKNOWN_STATUS, pid)

        self._enter(PollState.TIMED_OUT, pid)
        raise PollTimeoutError(self.timeout_minutes, where="poll")
