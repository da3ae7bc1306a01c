"""
Helpers for images stored inline as ``data:image/...;base64,`` URLs.
"""
import base64
import binascii
import io
import re
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

_DATA_URL_RE = re.compile(r"^data:image/[\w.+-]+;base64,", re.IGNORECASE)


class ImageDecodeError(ValueError):
    """Inline image payload is not valid base64 image data."""


def is_data_url(value: Optional[str]) -> bool:
    return bool(value) and bool(_DATA_URL_RE.match(value))


def decode_data_url(value: str) -> bytes:
    """Return the raw bytes of a base64 data URL (or of a bare base64 string)."""
    payload = _DATA_URL_RE.sub("", value.strip(), count=1)
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ImageDecodeError(f"invalid base64 image payload: {exc}") from exc


def image_size(data: bytes) -> Tuple[int, int]:
    """Fully decode ``data`` with Pillow and return (width, height)."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            return img.size
    except (UnidentifiedImageError, OSError, SyntaxError) as exc:
        raise ImageDecodeError(f"unreadable image data: {exc}") from exc


def to_png(data: bytes) -> bytes:
    """Re-encode any Pillow-readable image as PNG."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            if img.format == "PNG":
                return data
            buf = io.BytesIO()
            img.save(buf, format="PNG")
            return buf.getvalue()
    except (UnidentifiedImageError, OSError, SyntaxError) as exc:
        raise ImageDecodeError(f"unreadable image data: {exc}") from exc
