import pytest

from fakes import FakeComfy, SleepRecorder


@pytest.fixture
def fake():
    """Fake ComfyUI server for a single prompt id"""
    return FakeComfy(prompt_id="abc123")


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture(autouse=True)
def _clean_comfy_env(monkeypatch):
    for name in (
        "COMFYUI_API_URL",
        "COMFYUI_BASE_URL",
        "COMFYUI_API_KEY",
        "COMFY_OUTPUT_FORMAT",
        "COMFY_JPEG_QUALITY",
        "COMFY_TIMEOUT_MINUTES",
        "COMFY_INITIAL_DELAY_S",
        "COMFY_POLL_INTERVAL_S",
        "COMFY_ELIGIBLE_TYPES",
    ):
        monkeypatch.delenv(name, raising=False)
