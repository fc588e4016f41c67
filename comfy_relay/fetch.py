from __future__ import annotations

from typing import Optional

from .client import ComfyDeps
from .errors import FetchError, ProtocolError, TransportError


class ArtifactFetcher:
    def __init__(self, deps: ComfyDeps):
        self.deps = deps

    async def fetch(self, filename: str, subfolder: Optional[str] = "", category: Optional[str] = "") -> bytes:
        params = {"filename": filename, "subfolder": subfolder or "", "type": category or ""}
        self.deps.log.info("[comfy.view] downloading filename=%s subfolder=%s type=%s", filename, params["subfolder"], params["type"])
        try:
            return await self.deps.client.get_bytes("/view", params)
        except (TransportError, ProtocolError) as ex:
            raise FetchError(f"Failed to download {filename}: {ex}", where="/view", details={"filename": filename, **ex.details}) from ex
