"""Engine-agnostic interface for counting, splitting and rendering pages."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence


@dataclass
class PdfDocument:
    """Decoded request PDF bound to the request's scratch directory."""

    data: bytes
    workspace: Path
    _path: Optional[Path] = field(default=None, init=False, repr=False)

    @property
    def path(self) -> Path:
        """On-disk copy for engines that only accept files. Written on first use."""

        if self._path is None:
            target = self.workspace / "input.pdf"
            target.write_bytes(self.data)
            self._path = target
        return self._path

    def with_data(self, data: bytes) -> "PdfDocument":
        """Same workspace, different bytes (e.g. after flattening)."""

        if data is self.data:
            return self
        return PdfDocument(data=data, workspace=self.workspace)


class RenderBackend(ABC):
    """A PDF engine the page service delegates to."""

    name: str = "abstract"

    @abstractmethod
    def page_count(self, doc: PdfDocument) -> int:
        ...

    @abstractmethod
    def extract_page(self, doc: PdfDocument, page_number: int) -> bytes:
        """Return a one-page PDF for 1-based ``page_number``."""

    def split_all(self, doc: PdfDocument) -> List[bytes]:
        """Return every page as a one-page PDF, ordered by page number."""

        return [self.extract_page(doc, number) for number in range(1, self.page_count(doc) + 1)]

    @abstractmethod
    def rasterize(
        self,
        doc: PdfDocument,
        pages: Sequence[int],
        *,
        dpi: int,
        image_format: str,
        jpeg_quality: int,
    ) -> List[bytes]:
        """Render ``pages`` (1-based) and return encoded images in the same order."""


__all__ = ["PdfDocument", "RenderBackend"]
