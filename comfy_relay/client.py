from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx  # type: ignore

from .errors import ProtocolError, TransportError


log = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


def build_headers(api_key: Optional[str]) -> Dict[str, str]:
    headers = {"Content-Type": "application/json"}
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"
    return headers


def _coerce_query_map(query: Dict[str, Any]) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for key, value in query.items():
        out[str(key)] = "" if value is None else str(value)
    return out


class ComfyClient:
    """
    Thin async wrapper over one httpx.AsyncClient bound to a ComfyUI base URL.

    Every non-2xx status or transport failure surfaces as TransportError; the
    caller decides which pipeline error it maps to.
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        owns_client: Optional[bool] = None,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self.headers = build_headers(api_key)
        self._owns_client = client is None if owns_client is None else owns_client
        self._client = client or httpx.AsyncClient(timeout=None, follow_redirects=False, trust_env=False)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "ComfyClient":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    def url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = self.url(path)
        try:
            r = await self._client.request(method, url, headers=self.headers, **kwargs)
        except httpx.HTTPError as ex:
            raise TransportError(
                f"{method} {path} failed: {ex}",
                where=path,
                details={"url": url, "error": str(ex)},
            ) from ex
        if r.status_code < 200 or r.status_code >= 300:
            text = r.text or ""
            msg = f"{method} {path} returned HTTP {r.status_code}"
            raise TransportError(
                f"{msg}: {text}" if text else msg,
                where=path,
                details={"url": url, "remote_status": int(r.status_code), "remote_body": text},
            )
        return r

    @staticmethod
    def _json_body(r: httpx.Response, path: str) -> Any:
        text = r.text or ""
        if not text.strip():
            return None
        try:
            return r.json()
        except ValueError as ex:
            raise ProtocolError(f"{path} returned invalid JSON: {ex}", where=path, details={"remote_body": text}) from ex

    async def get_json(self, path: str) -> Any:
        r = await self._request("GET", path)
        return self._json_body(r, path)

    async def post_json(self, path: str, body: Dict[str, Any]) -> Any:
        r = await self._request("POST", path, json=body)
        return self._json_body(r, path)

    async def get_bytes(self, path: str, params: Dict[str, Any]) -> bytes:
        r = await self._request("GET", path, params=_coerce_query_map(params))
        return r.content or b""


@dataclass
class ComfyDeps:
    """Collaborators handed to every pipeline component."""

    client: ComfyClient
    log: logging.Logger = field(default_factory=lambda: logging.getLogger("comfy_relay"))
    sleep: Sleep = asyncio.sleep
