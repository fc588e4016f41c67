import logging

import pytest

from comfy_relay.config import RunSettings
from comfy_relay.envelopes import build_error_envelope, build_success_envelope
from comfy_relay.errors import ConfigError, ExecutionError, PipelineError
from comfy_relay.logging_setup import configure_logging


def test_defaults_from_env(monkeypatch):
    monkeypatch.setenv("COMFYUI_API_URL", "http://gpu-box:8188/")
    monkeypatch.setenv("COMFYUI_API_KEY", "key-1")
    monkeypatch.setenv("COMFY_TIMEOUT_MINUTES", "2")
    monkeypatch.setenv("COMFY_ELIGIBLE_TYPES", "output, temp")

    s = RunSettings.from_env()

    assert s.base_url == "http://gpu-box:8188"
    assert s.api_key == "key-1"
    assert s.output_format == "jpeg"
    assert s.jpeg_quality == 80
    assert s.max_attempts == 120
    assert s.eligible_types == ("output", "temp")


def test_overrides_win_and_none_is_ignored():
    s = RunSettings.from_env(output_format="PNG", timeout_minutes=None, jpeg_quality=None)
    assert s.output_format == "png"
    assert s.timeout_minutes == 30
    assert s.max_attempts == 1800


@pytest.mark.parametrize(
    "kw",
    [
        {"output_format": "gif"},
        {"jpeg_quality": 0},
        {"jpeg_quality": 101},
        {"jpeg_quality": "80"},
        {"timeout_minutes": 0},
        {"timeout_minutes": "30"},
        {"base_url": "  "},
        {"eligible_types": []},
        {"eligible_types": " , "},
        {"eligible_types": [1]},
        {"timeout_minutes": 0.01},
    ],
)
def test_invalid_settings(kw):
    with pytest.raises(ConfigError):
        RunSettings.from_env(**kw)


def test_quality_ignored_for_png():
    assert RunSettings.from_env(output_format="png", jpeg_quality=500).output_format == "png"


def test_bad_env_number(monkeypatch):
    monkeypatch.setenv("COMFY_JPEG_QUALITY", "high")
    with pytest.raises(ConfigError, match="COMFY_JPEG_QUALITY"):
        RunSettings.from_env()


def test_fractional_env_quality_is_rejected(monkeypatch):
    monkeypatch.setenv("COMFY_JPEG_QUALITY", "80.7")
    with pytest.raises(ConfigError, match="COMFY_JPEG_QUALITY"):
        RunSettings.from_env()


def test_eligible_types_string_is_split_on_commas():
    assert RunSettings.from_env(eligible_types="output").eligible_types == ("output",)
    assert RunSettings.from_env(eligible_types="output, temp").eligible_types == ("output", "temp")
    assert RunSettings.from_env(eligible_types=["output", " temp "]).eligible_types == ("output", "temp")


def test_shortest_timeout_still_polls_once():
    assert RunSettings.from_env(timeout_minutes=0.02).max_attempts == 1


def test_pipeline_error_keeps_cause_code():
    cause = ExecutionError("Workflow execution failed in node 4 (VAEDecode): boom", node_id="4")
    err = PipelineError(cause)
    assert str(err) == "ComfyUI API Error: Workflow execution failed in node 4 (VAEDecode): boom"
    assert err.code == "comfy_execution_error"
    assert err.to_envelope()["error"]["details"]["node_id"] == "4"


def test_pipeline_error_from_unexpected_exception():
    err = PipelineError(KeyError("outputs"))
    assert err.code == "comfy_unexpected_error"
    assert err.details["exception"] == "KeyError"


def test_envelopes():
    ok = build_success_envelope(result={"items": []}, trace_id="t")
    assert ok["ok"] is True and ok["error"] is None
    bad = build_error_envelope(code="x", message="m", trace_id="t", status=504)
    assert bad["error"]["status"] == 504
    assert bad["error"]["details"]["status"] == 504


def test_configure_logging_writes_file(tmp_path, monkeypatch):
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.delenv("LOG_FILE", raising=False)
    root = logging.getLogger()
    saved = (root.handlers[:], root.level)
    try:
        path = configure_logging()
        logging.getLogger("comfy_relay.test").info("[comfy] hello")
        for h in root.handlers:
            h.flush()
        assert path == str(tmp_path / "logs" / "comfy_relay.log")
        assert root.level == logging.DEBUG
        with open(path, encoding="utf-8") as f:
            assert "[comfy] hello" in f.read()
    finally:
        for h in root.handlers:
            h.close()
        root.handlers = saved[0]
        root.setLevel(saved[1])
