from __future__ import annotations

import asyncio
from typing import List, Optional, Sequence

from .artifacts import ArtifactReference, collect_references
from .client import ComfyDeps
from .fetch import ArtifactFetcher
from .history import HistoryRecord
from .normalize import ArtifactNormalizer, OutputRecord


class ResultCollector:
    def __init__(
        self,
        deps: ComfyDeps,
        normalizer: ArtifactNormalizer,
        fetcher: Optional[ArtifactFetcher] = None,
        categories: Sequence[str] = ("output",),
    ):
        self.deps = deps
        self.normalizer = normalizer
        self.fetcher = fetcher or ArtifactFetcher(deps)
        self.categories = tuple(categories)

    async def _one(self, ref: ArtifactReference) -> OutputRecord:
        self.deps.log.info("[comfy.collect] downloading %s %s: %s", ref.category, ref.kind.tag, ref.filename)
        try:
            data = await self.fetcher.fetch(ref.filename, ref.subfolder, ref.category)
            # Pillow work is blocking; keep it off the event loop.
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(None, self.normalizer.normalize, ref, data)
        except Exception as ex:
            self.deps.log.warning("[comfy.collect] failed to download %s %s: %s", ref.kind.tag, ref.filename, ex, exc_info=True)
            return OutputRecord.failure(ref, ex)

    async def collect(self, record: HistoryRecord) -> List[OutputRecord]:
        refs = collect_references(record, self.categories)
        self.deps.log.info("[comfy.collect] prompt_id=%s artifacts=%s", record.prompt_id, len(refs))
        results = await asyncio.gather(*(self._one(ref) for ref in refs))
        failed = sum(1 for r in results if not r.ok)
        self.deps.log.info("[comfy.collect] prompt_id=%s downloaded=%s failed=%s", record.prompt_id, len(results) - failed, failed)
        return list(results)
