"""Image encoding and size-budget helpers built on Pillow."""

from __future__ import annotations

import io
import math
from typing import Optional

from PIL import Image

from .logging_config import get_logger

LOGGER = get_logger(__name__)

BYTES_PER_MB = 1024 * 1024
SIZE_MARGIN = 0.9
MAX_DOWNSCALE_ATTEMPTS = 3

_PIL_FORMATS = {"png": "PNG", "jpeg": "JPEG"}


def normalise_format(image_format: str) -> str:
    lowered = image_format.strip().lower()
    if lowered == "jpg":
        lowered = "jpeg"
    if lowered not in _PIL_FORMATS:
        raise ValueError(f"Unsupported image format: {image_format!r}")
    return lowered


def encode_image(image: Image.Image, image_format: str, *, jpeg_quality: int = 90) -> bytes:
    fmt = normalise_format(image_format)
    buffer = io.BytesIO()
    if fmt == "jpeg":
        if image.mode not in ("RGB", "L"):
            image = image.convert("RGB")
        image.save(buffer, format="JPEG", quality=jpeg_quality)
    else:
        image.save(buffer, format="PNG")
    return buffer.getvalue()


def downscale_factor(actual_bytes: int, max_bytes: int) -> float:
    """Isotropic scale expected to bring ``actual_bytes`` under ``max_bytes``.

    Encoded size tracks pixel area, so the side length scales with the square
    root of the byte ratio; the result keeps a 10% margin below the limit.
    """

    return math.sqrt(max_bytes / actual_bytes) * SIZE_MARGIN


def fit_to_size(
    data: bytes,
    max_bytes: Optional[int],
    image_format: str,
    *,
    jpeg_quality: int = 90,
    max_attempts: int = MAX_DOWNSCALE_ATTEMPTS,
) -> bytes:
    """Downscale an encoded image until it fits ``max_bytes``.

    Images already within the limit (or with no limit) are returned untouched.
    After ``max_attempts`` passes the smallest rendition is returned even if it
    is still over budget.
    """

    if not max_bytes or len(data) <= max_bytes:
        return data

    with Image.open(io.BytesIO(data)) as source:
        current = source.copy()

    result = data
    for attempt in range(1, max_attempts + 1):
        scale = downscale_factor(len(result), max_bytes)
        width = max(1, int(current.width * scale))
        height = max(1, int(current.height * scale))
        current = current.resize((width, height), Image.Resampling.LANCZOS)
        result = encode_image(current, image_format, jpeg_quality=jpeg_quality)
        LOGGER.info(
            "Downscaled image",
            extra={
                "attempt": attempt,
                "scale": round(scale, 4),
                "width": width,
                "height": height,
                "sizeBytes": len(result),
                "maxBytes": max_bytes,
            },
        )
        if len(result) <= max_bytes:
            break
    return result


def size_in_mb(data: bytes) -> str:
    return f"{len(data) / BYTES_PER_MB:.2f}"


__all__ = [
    "BYTES_PER_MB",
    "MAX_DOWNSCALE_ATTEMPTS",
    "downscale_factor",
    "encode_image",
    "fit_to_size",
    "normalise_format",
    "size_in_mb",
]
