from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Literal, Sequence

from .history import HistoryRecord


VIDEO_EXTENSIONS = ("mp4", "webm", "mov", "avi", "gif", "webp")

MIME_BY_EXTENSION: Dict[str, str] = {
    "mp4": "video/mp4",
    "webm": "video/webm",
    "mov": "video/quicktime",
    "avi": "video/x-msvideo",
    "gif": "image/gif",
    "webp": "image/webp",
}
DEFAULT_MIME = "application/octet-stream"

# Per-node output lists that carry files: SaveImage/PreviewImage write
# "images", video combine nodes write "gifs".
OUTPUT_LISTS = ("images", "gifs")


@dataclass(frozen=True)
class ArtifactKind:
    tag: Literal["image", "video"]
    extension: str

    @property
    def is_video(self) -> bool:
        return self.tag == "video"


def file_extension(filename: str) -> str:
    if "." not in (filename or ""):
        return ""
    return filename.rsplit(".", 1)[-1].lower()


def classify_kind(filename: str) -> ArtifactKind:
    ext = file_extension(filename)
    if ext in VIDEO_EXTENSIONS:
        return ArtifactKind("video", ext)
    return ArtifactKind("image", ext)


def mime_for_extension(ext: str) -> str:
    return MIME_BY_EXTENSION.get((ext or "").lower(), DEFAULT_MIME)


@dataclass(frozen=True)
class ArtifactReference:
    node_id: str
    filename: str
    subfolder: str
    category: str
    kind: ArtifactKind

    @classmethod
    def from_item(cls, node_id: Any, item: Dict[str, Any]) -> "ArtifactReference":
        fn = item["filename"]
        sub = item.get("subfolder")
        return cls(
            node_id=str(node_id),
            filename=fn,
            subfolder=sub if isinstance(sub, str) else "",
            category=str(item.get("type") or ""),
            kind=classify_kind(fn),
        )


def _node_items(node_output: Any) -> Iterator[Any]:
    if not isinstance(node_output, dict):
        return
    for key in OUTPUT_LISTS:
        items = node_output.get(key)
        if isinstance(items, list):
            yield from items


def iter_references(record: HistoryRecord, categories: Sequence[str] = ("output",)) -> Iterator[ArtifactReference]:
    """
    Flatten every node's file outputs into references, keeping only the
    eligible categories ("output" by default; "temp" holds previews).
    """
    allowed = set(categories)
    for node_id, node_output in record.outputs.items():
        for item in _node_items(node_output):
            if not isinstance(item, dict):
                continue
            fn = item.get("filename")
            if not isinstance(fn, str) or not fn:
                continue
            if item.get("type") not in allowed:
                continue
            yield ArtifactReference.from_item(node_id, item)


def collect_references(record: HistoryRecord, categories: Iterable[str] = ("output",)) -> List[ArtifactReference]:
    return list(iter_references(record, tuple(categories)))
