"""Library backend: pypdf for page handling, pdf2image for rendering."""

from __future__ import annotations

from typing import List, Sequence

from pdf2image import convert_from_bytes
from pdf2image.exceptions import (
    PDFInfoNotInstalledError,
    PDFPageCountError,
    PDFPopplerTimeoutError,
    PDFSyntaxError,
)

from ..errors import BackendError
from ..imaging import encode_image
from ..logging_config import get_logger
from ..pdf_utils import count_pages, extract_page, split_pdf
from .base import PdfDocument, RenderBackend

LOGGER = get_logger(__name__)


class PypdfBackend(RenderBackend):
    """Split in-process with pypdf and rasterize one page at a time."""

    name = "pypdf"

    def __init__(self, *, timeout: float) -> None:
        self._timeout = timeout

    def page_count(self, doc: PdfDocument) -> int:
        return count_pages(doc.data)

    def extract_page(self, doc: PdfDocument, page_number: int) -> bytes:
        return extract_page(doc.data, page_number)

    def split_all(self, doc: PdfDocument) -> List[bytes]:
        return split_pdf(doc.data)

    def rasterize(
        self,
        doc: PdfDocument,
        pages: Sequence[int],
        *,
        dpi: int,
        image_format: str,
        jpeg_quality: int,
    ) -> List[bytes]:
        images: List[bytes] = []
        for page_number in pages:
            try:
                rendered = convert_from_bytes(
                    doc.data,
                    dpi=dpi,
                    first_page=page_number,
                    last_page=page_number,
                    timeout=self._timeout,
                )
            except (PDFInfoNotInstalledError, PDFPageCountError, PDFSyntaxError) as exc:
                raise BackendError(f"Rendering page {page_number} failed: {exc}") from exc
            except PDFPopplerTimeoutError as exc:
                raise BackendError(f"Rendering page {page_number} timed out") from exc
            if not rendered:
                raise BackendError(f"Renderer produced no image for page {page_number}")

            image = rendered[0]
            try:
                images.append(encode_image(image, image_format, jpeg_quality=jpeg_quality))
            finally:
                for extra in rendered:
                    extra.close()
            LOGGER.debug("Rendered page", extra={"page": page_number, "dpi": dpi})
        return images


__all__ = ["PypdfBackend"]
