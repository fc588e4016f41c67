from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Any, Optional, Tuple

from .errors import ConfigError


def env_base_url() -> str:
    return (
        os.getenv("COMFYUI_API_URL")
        or os.getenv("COMFYUI_BASE_URL")
        or "http://comfyui:8188"
    ).rstrip("/")


DEFAULT_BASE_URL = env_base_url()

OUTPUT_FORMATS = ("jpeg", "png")

# One poll attempt per second of the timeout budget.
ATTEMPTS_PER_MINUTE = 60

COMFY_RELAY_PORT = int(os.getenv("COMFY_RELAY_PORT", "8195"))


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name, "") or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as ex:
        raise ConfigError(f"{name} must be a number, got {raw!r}", where="config") from ex


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name, "") or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as ex:
        raise ConfigError(f"{name} must be an integer, got {raw!r}", where="config") from ex


def split_types(raw: str) -> Tuple[str, ...]:
    return tuple(t.strip() for t in raw.split(",") if t.strip())


def _env_types(name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    raw = (os.getenv(name, "") or "").strip()
    if not raw:
        return default
    return split_types(raw)


@dataclass
class RunSettings:
    base_url: str = DEFAULT_BASE_URL
    api_key: Optional[str] = None
    output_format: str = "jpeg"
    jpeg_quality: int = 80
    timeout_minutes: float = 30
    initial_delay_s: float = 5.0
    poll_interval_s: float = 1.0
    eligible_types: Tuple[str, ...] = field(default_factory=lambda: ("output",))

    @classmethod
    def from_env(cls, **overrides: Any) -> "RunSettings":
        """
        Build settings from COMFY_* / COMFYUI_* env vars, then apply any
        non-None keyword overrides (the per-request values).
        """
        settings = cls(
            base_url=env_base_url(),
            api_key=(os.getenv("COMFYUI_API_KEY") or "").strip() or None,
            output_format=(os.getenv("COMFY_OUTPUT_FORMAT", "jpeg") or "jpeg").strip().lower(),
            jpeg_quality=_env_int("COMFY_JPEG_QUALITY", 80),
            timeout_minutes=_env_float("COMFY_TIMEOUT_MINUTES", 30),
            initial_delay_s=_env_float("COMFY_INITIAL_DELAY_S", 5.0),
            poll_interval_s=_env_float("COMFY_POLL_INTERVAL_S", 1.0),
            eligible_types=_env_types("COMFY_ELIGIBLE_TYPES", ("output",)),
        )
        clean = {k: v for k, v in overrides.items() if v is not None}
        if clean:
            settings = replace(settings, **clean)
        return settings.validate()

    @property
    def max_attempts(self) -> int:
        return int(ATTEMPTS_PER_MINUTE * self.timeout_minutes)

    def validate(self) -> "RunSettings":
        self.base_url = (self.base_url or "").strip().rstrip("/")
        if not self.base_url:
            raise ConfigError("base_url is required", where="config")
        self.output_format = (self.output_format or "").strip().lower()
        if self.output_format not in OUTPUT_FORMATS:
            raise ConfigError(f"output_format must be one of {OUTPUT_FORMATS}, got {self.output_format!r}", where="config")
        if isinstance(self.jpeg_quality, bool) or not isinstance(self.jpeg_quality, int):
            raise ConfigError(f"jpeg_quality must be an integer, got {self.jpeg_quality!r}", where="config")
        # Quality only matters for JPEG output.
        if self.output_format == "jpeg" and not 1 <= self.jpeg_quality <= 100:
            raise ConfigError(f"jpeg_quality must be within 1-100, got {self.jpeg_quality}", where="config")
        if isinstance(self.timeout_minutes, bool) or not isinstance(self.timeout_minutes, (int, float)):
            raise ConfigError(f"timeout must be a number of minutes, got {self.timeout_minutes!r}", where="config")
        if self.max_attempts < 1:
            raise ConfigError(f"timeout must allow at least one poll attempt, got {self.timeout_minutes!r} minutes", where="config")
        if self.initial_delay_s < 0 or self.poll_interval_s < 0:
            raise ConfigError("poll delays must not be negative", where="config")
        types = self.eligible_types
        if isinstance(types, str):
            types = split_types(types)
        types = tuple(types or ())
        if not all(isinstance(t, str) and t.strip() for t in types):
            raise ConfigError(f"eligible_types must be category names, got {self.eligible_types!r}", where="config")
        self.eligible_types = tuple(t.strip() for t in types)
        if not self.eligible_types:
            raise ConfigError("eligible_types must name at least one category", where="config")
        return self
