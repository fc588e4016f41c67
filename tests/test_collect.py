import threading

import httpx
import pytest

from comfy_relay.collect import ResultCollector
from comfy_relay.fetch import ArtifactFetcher
from comfy_relay.errors import FetchError
from comfy_relay.history import HistoryRecord
from comfy_relay.normalize import ArtifactNormalizer

from fakes import comfy_deps, file_item, history_entry, png_bytes


def _record(outputs):
    return HistoryRecord.from_response({"abc123": history_entry(outputs)}, "abc123")


@pytest.mark.asyncio
async def test_fetch_sends_view_query(fake):
    fake.files["a.png"] = b"raw"
    async with comfy_deps(fake, api_key="k") as deps:
        data = await ArtifactFetcher(deps).fetch("a.png", None, "output")

    assert data == b"raw"
    req = fake.requests[-1]
    assert req.url.path == "/view"
    assert dict(req.url.params) == {"filename": "a.png", "subfolder": "", "type": "output"}
    assert req.headers["Authorization"] == "Bearer k"


@pytest.mark.asyncio
async def test_fetch_http_error(fake):
    async with comfy_deps(fake) as deps:
        with pytest.raises(FetchError, match="missing.png"):
            await ArtifactFetcher(deps).fetch("missing.png", "", "output")


@pytest.mark.asyncio
async def test_sibling_failure_does_not_abort(fake):
    fake.files["good.png"] = png_bytes()
    fake.files["bad.png"] = httpx.ReadError("connection reset")
    record = _record({"9": {"images": [file_item("good.png"), file_item("bad.png")]}})

    async with comfy_deps(fake) as deps:
        results = await ResultCollector(deps, ArtifactNormalizer("png")).collect(record)

    by_name = {r.filename: r for r in results}
    assert len(results) == 2
    assert by_name["good.png"].ok
    assert by_name["good.png"].mime_type == "image/png"
    assert not by_name["bad.png"].ok
    assert "connection reset" in by_name["bad.png"].error


@pytest.mark.asyncio
async def test_decode_failure_becomes_failure_record(fake):
    fake.files["corrupt.png"] = b"garbage"
    fake.files["clip.webm"] = b"webm-bytes"
    record = _record({
        "9": {"images": [file_item("corrupt.png")]},
        "12": {"gifs": [file_item("clip.webm")]},
    })

    async with comfy_deps(fake) as deps:
        results = await ResultCollector(deps, ArtifactNormalizer("jpeg", 70)).collect(record)

    by_name = {r.filename: r for r in results}
    assert "decode" in by_name["corrupt.png"].error
    assert by_name["clip.webm"].raw_bytes() == b"webm-bytes"


@pytest.mark.asyncio
async def test_one_record_per_eligible_reference(fake):
    names = [f"img_{i}.png" for i in range(5)]
    for n in names:
        fake.files[n] = png_bytes()
    record = _record({
        "9": {"images": [file_item(n) for n in names] + [file_item("preview.png", category="temp")]},
    })

    async with comfy_deps(fake) as deps:
        results = await ResultCollector(deps, ArtifactNormalizer("png")).collect(record)

    assert sorted(r.filename for r in results) == names
    assert "preview.png" not in {r.url.params.get("filename") for r in fake.requests}


@pytest.mark.asyncio
async def test_temp_category_when_enabled(fake):
    fake.files["preview.png"] = png_bytes()
    record = _record({"9": {"images": [file_item("preview.png", category="temp")]}})

    async with comfy_deps(fake) as deps:
        results = await ResultCollector(deps, ArtifactNormalizer("png"), categories=("output", "temp")).collect(record)

    assert [r.category for r in results] == ["temp"]
    assert results[0].ok


@pytest.mark.asyncio
async def test_no_outputs_returns_empty_list(fake):
    async with comfy_deps(fake) as deps:
        assert await ResultCollector(deps, ArtifactNormalizer()).collect(_record({})) == []


class ThreadRecordingNormalizer(ArtifactNormalizer):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.threads = []

    def normalize(self, ref, data):
        self.threads.append(threading.get_ident())
        return super().normalize(ref, data)


@pytest.mark.asyncio
async def test_normalize_runs_off_the_event_loop(fake):
    fake.files["a.png"] = png_bytes()
    fake.files["b.png"] = png_bytes()
    record = _record({"9": {"images": [file_item("a.png"), file_item("b.png")]}})
    normalizer = ThreadRecordingNormalizer("jpeg", 80)

    async with comfy_deps(fake) as deps:
        results = await ResultCollector(deps, normalizer).collect(record)

    assert all(r.ok for r in results)
    assert len(normalizer.threads) == 2
    assert threading.get_ident() not in normalizer.threads
