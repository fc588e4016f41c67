from __future__ import annotations

import base64
import io
import math
from dataclasses import dataclass
from typing import Any, Dict, Optional

from PIL import Image

from .artifacts import ArtifactReference, mime_for_extension
from .errors import DecodeError, EncodeError


def size_kb(nbytes: int) -> float:
    # Half-up rounding to one decimal, not banker's rounding.
    return math.floor(nbytes / 1024 * 10 + 0.5) / 10


@dataclass
class OutputRecord:
    filename: str
    category: str
    subfolder: str
    data: Optional[str] = None
    size_kb: Optional[float] = None
    extension: Optional[str] = None
    mime_type: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def file_type(self) -> str:
        return "video" if (self.mime_type or "").startswith("video/") else "image"

    @property
    def file_size(self) -> str:
        if self.size_kb is None:
            return ""
        kb = float(self.size_kb)
        return f"{int(kb)} kB" if kb.is_integer() else f"{kb} kB"

    @classmethod
    def failure(cls, ref: ArtifactReference, error: Any) -> "OutputRecord":
        return cls(filename=ref.filename, category=ref.category, subfolder=ref.subfolder, error=str(error))

    def raw_bytes(self) -> bytes:
        return base64.b64decode(self.data or "")

    def to_item(self) -> Dict[str, Any]:
        if not self.ok:
            return {
                "json": {
                    "filename": self.filename,
                    "type": self.category,
                    "subfolder": self.subfolder,
                    "error": self.error,
                }
            }
        return {
            "json": {
                "filename": self.filename,
                "type": self.category,
                "subfolder": self.subfolder,
                "data": self.data,
            },
            "binary": {
                "data": {
                    "fileName": self.filename,
                    "data": self.data,
                    "fileType": self.file_type,
                    "fileSize": self.file_size,
                    "fileExtension": self.extension,
                    "mimeType": self.mime_type,
                }
            },
        }


def _success(ref: ArtifactReference, payload: bytes, extension: str, mime_type: str) -> OutputRecord:
    return OutputRecord(
        filename=ref.filename,
        category=ref.category,
        subfolder=ref.subfolder,
        data=base64.b64encode(payload).decode("ascii"),
        size_kb=size_kb(len(payload)),
        extension=extension,
        mime_type=mime_type,
    )


def decode_image(data: bytes) -> Image.Image:
    try:
        im = Image.open(io.BytesIO(data))
        im.load()
    except (OSError, ValueError, Image.DecompressionBombError) as ex:
        raise DecodeError(f"Could not decode image: {ex}", where="normalize") from ex
    return im


def encode_image(im: Image.Image, output_format: str, jpeg_quality: int) -> bytes:
    buf = io.BytesIO()
    try:
        if output_format == "jpeg":
            if im.mode not in ("RGB", "L", "CMYK"):
                im = im.convert("RGB")
            im.save(buf, format="JPEG", quality=int(jpeg_quality))
        else:
            if im.mode == "CMYK":
                im = im.convert("RGB")
            im.save(buf, format="PNG")
    except (OSError, ValueError, KeyError) as ex:
        raise EncodeError(f"Could not encode image as {output_format}: {ex}", where="normalize") from ex
    return buf.getvalue()


class ArtifactNormalizer:
    """
    Turns fetched bytes into an OutputRecord.

    Still images are re-encoded to the requested format; video and animation
    files pass through untouched and keep their own extension.
    """

    def __init__(self, output_format: str = "jpeg", jpeg_quality: int = 80):
        self.output_format = output_format
        self.jpeg_quality = jpeg_quality

    def normalize(self, ref: ArtifactReference, data: bytes) -> OutputRecord:
        if ref.kind.is_video:
            return self.passthrough(ref, data)
        return self.transcode(ref, data)

    def transcode(self, ref: ArtifactReference, data: bytes) -> OutputRecord:
        im = decode_image(data)
        try:
            out = encode_image(im, self.output_format, self.jpeg_quality)
        finally:
            im.close()
        return _success(ref, out, self.output_format, f"image/{self.output_format}")

    def passthrough(self, ref: ArtifactReference, data: bytes) -> OutputRecord:
        ext = ref.kind.extension
        return _success(ref, bytes(data), ext, mime_for_extension(ext))
