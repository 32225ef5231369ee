"""Application settings and configuration helpers."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional

from dotenv import dotenv_values

ENV_FILE_PATH = Path(os.getenv("ENV_FILE", ".env"))

SUPPORTED_BACKENDS = ("pypdf", "poppler")
SUPPORTED_IMAGE_FORMATS = ("png", "jpeg")

MIN_DPI = 72
MAX_DPI = 600

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


@dataclass(slots=True)
class Settings:
    """Container for configuration values loaded from environment variables."""

    backend: str
    tmp_dir: Path
    render_dpi: int
    image_format: str
    jpeg_quality: int
    max_image_size_mb: float
    max_body_mb: float
    process_timeout: float
    flatten_forms: bool
    log_level: str
    host: str
    port: int

    @property
    def max_body_bytes(self) -> int:
        return int(self.max_body_mb * 1024 * 1024)


def _read_float(name: str, default: float, *, minimum: Optional[float] = None) -> float:
    raw = os.getenv(name)
    if raw is None:
        value = default
    else:
        try:
            value = float(raw)
        except ValueError as exc:
            raise ValueError(f"Environment variable {name} must be a float, got {raw!r}") from exc
    if minimum is not None and value < minimum:
        raise ValueError(f"Environment variable {name} must be >= {minimum}, got {value}")
    return value


def _read_int(
    name: str,
    default: int,
    *,
    minimum: Optional[int] = None,
    maximum: Optional[int] = None,
) -> int:
    raw = os.getenv(name)
    if raw is None:
        value = default
    else:
        try:
            value = int(raw)
        except ValueError as exc:
            raise ValueError(f"Environment variable {name} must be an integer, got {raw!r}") from exc
    if minimum is not None and value < minimum:
        raise ValueError(f"Environment variable {name} must be >= {minimum}, got {value}")
    if maximum is not None and value > maximum:
        raise ValueError(f"Environment variable {name} must be <= {maximum}, got {value}")
    return value


def _read_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Environment variable {name} must be a boolean, got {raw!r}")


def _read_choice(name: str, default: str, choices: tuple[str, ...]) -> str:
    value = os.getenv(name, default).strip().lower()
    if value == "jpg":
        value = "jpeg"
    if value not in choices:
        raise ValueError(f"Environment variable {name} must be one of {', '.join(choices)}, got {value!r}")
    return value


def load_env_file(path: Optional[Path] = None) -> Dict[str, str]:
    """Load ``KEY=VALUE`` pairs from ``path`` into ``os.environ``.

    Values from the file override the current environment. Returns the
    mapping that was applied; a missing file yields an empty mapping.
    """

    env_path = Path(path) if path is not None else ENV_FILE_PATH
    if not env_path.is_file():
        return {}

    loaded: Dict[str, str] = {}
    for key, value in dotenv_values(env_path).items():
        # Bare keys without "=" come back as None and are skipped.
        if value is None:
            continue
        os.environ[key] = value
        loaded[key] = value
    return loaded


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Read and memoise :class:`Settings` from environment variables."""

    default_tmp = Path(tempfile.gettempdir()) / "pdfsplitter"
    tmp_dir = Path(os.getenv("TMP_DIR", str(default_tmp))).expanduser().resolve()

    return Settings(
        backend=_read_choice("BACKEND", "pypdf", SUPPORTED_BACKENDS),
        tmp_dir=tmp_dir,
        render_dpi=_read_int("RENDER_DPI", 300, minimum=MIN_DPI, maximum=MAX_DPI),
        image_format=_read_choice("IMAGE_FORMAT", "png", SUPPORTED_IMAGE_FORMATS),
        jpeg_quality=_read_int("JPEG_QUALITY", 90, minimum=1, maximum=100),
        max_image_size_mb=_read_float("MAX_IMAGE_SIZE_MB", 5.0, minimum=0.0),
        max_body_mb=_read_float("MAX_BODY_MB", 50.0, minimum=1.0),
        process_timeout=_read_float("PROCESS_TIMEOUT", 120.0, minimum=1.0),
        flatten_forms=_read_bool("FLATTEN_FORMS", True),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        host=os.getenv("HOST", "0.0.0.0"),
        port=_read_int("PORT", 3000, minimum=1, maximum=65535),
    )


__all__ = [
    "ENV_FILE_PATH",
    "MAX_DPI",
    "MIN_DPI",
    "SUPPORTED_BACKENDS",
    "SUPPORTED_IMAGE_FORMATS",
    "Settings",
    "get_settings",
    "load_env_file",
]
