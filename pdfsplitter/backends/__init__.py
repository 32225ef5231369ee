"""Render backends and the factory that selects one from settings."""

from __future__ import annotations

from ..settings import Settings
from .base import PdfDocument, RenderBackend
from .poppler import PopplerBackend
from .pypdf_backend import PypdfBackend


def get_backend(name: str, settings: Settings) -> RenderBackend:
    """Instantiate the backend registered under ``name``."""

    key = name.strip().lower()
    if key == "pypdf":
        return PypdfBackend(timeout=settings.process_timeout)
    if key == "poppler":
        return PopplerBackend(timeout=settings.process_timeout)
    raise ValueError(f"Unknown backend {name!r}; expected 'pypdf' or 'poppler'")


__all__ = ["PdfDocument", "PopplerBackend", "PypdfBackend", "RenderBackend", "get_backend"]
