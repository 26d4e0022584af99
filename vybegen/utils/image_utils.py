"""Utility helpers for image encoding and decoding."""

from __future__ import annotations

import io
from typing import Any, Optional, Tuple

from PIL import Image, UnidentifiedImageError

_EXTENSIONS = {"JPEG": "jpg", "PNG": "png", "WEBP": "webp", "GIF": "gif"}


def decode_image(data: bytes) -> Image.Image:
    """Decode raw bytes into a fully loaded PIL image.

    Raises ``ValueError`` when the payload is empty or not a readable image.
    """
    if not data:
        raise ValueError("image payload is empty")
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError) as exc:
        raise ValueError(f"cannot decode image: {exc}") from exc
    return image


def detect_format(data: bytes) -> Optional[str]:
    """Return the PIL format name for ``data`` or None when undecodable."""
    if not data:
        return None
    try:
        with Image.open(io.BytesIO(data)) as image:
            return image.format
    except (UnidentifiedImageError, OSError):
        return None


def is_valid_image(data: bytes) -> bool:
    try:
        decode_image(data)
    except ValueError:
        return False
    return True


def guess_extension(data: bytes, default: str = "png") -> str:
    """File extension (without dot) matching the encoded image bytes."""
    fmt = detect_format(data)
    return _EXTENSIONS.get(fmt or "", default)


def to_bytes(image: Any, fmt: str = "PNG") -> bytes:
    """Return encoded bytes for a PIL image; bytes pass through untouched."""
    if isinstance(image, (bytes, bytearray)):
        return bytes(image)
    if not isinstance(image, Image.Image):
        raise TypeError(f"unsupported image type: {type(image).__name__}")
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


def encode_jpeg(image: Any, quality: int = 80) -> bytes:
    """Re-encode an image (bytes or PIL) as JPEG for upload."""
    if isinstance(image, (bytes, bytearray)):
        image = decode_image(bytes(image))
    if not isinstance(image, Image.Image):
        raise TypeError(f"unsupported image type: {type(image).__name__}")
    if image.mode not in ("RGB", "L"):
        image = image.convert("RGB")
    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", quality=quality)
    return buffer.getvalue()


def generate_thumbnail(data: bytes, max_size: Tuple[int, int] = (256, 256)) -> Image.Image:
    """Create a thumbnail suitable for history previews."""
    image = decode_image(data)
    image.thumbnail(max_size)
    return image
