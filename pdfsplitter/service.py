"""Request-level orchestration: validate, decode, delegate to a backend, package results."""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator, List, Optional, Sequence

from .backends import PdfDocument, RenderBackend
from .errors import BackendError, InternalError, PdfServiceError, ValidationError
from .imaging import BYTES_PER_MB, fit_to_size, normalise_format, size_in_mb
from .logging_config import get_logger
from .pdf_utils import decode_pdf_payload, flatten_form_fields
from .settings import MAX_DPI, MIN_DPI, Settings
from .workspace import request_workspace

LOGGER = get_logger(__name__)

INVALID_PAGE_MESSAGE = "Invalid page number"


@dataclass(slots=True)
class SplitPage:
    page: int
    data: bytes


@dataclass(slots=True)
class SplitResult:
    count: int
    pages: List[SplitPage] = field(default_factory=list)


@dataclass(slots=True)
class SplitPageResult:
    page: int
    total_pages: int
    data: bytes


@dataclass(slots=True)
class ImageResult:
    page: int
    data: bytes
    size_mb: str


@dataclass(slots=True)
class ConvertResult:
    images: List[ImageResult] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.images)


def parse_page_number(raw: Any, total_pages: int) -> int:
    """Coerce a client-supplied page selector into a 1-based page index.

    Integers, integral floats and integer strings are accepted. Anything else,
    or a value outside ``[1, total_pages]``, raises :class:`ValidationError`
    carrying ``total_pages``.
    """

    number: Optional[int] = None
    if isinstance(raw, bool):
        number = None
    elif isinstance(raw, int):
        number = raw
    elif isinstance(raw, float) and raw.is_integer():
        number = int(raw)
    elif isinstance(raw, str):
        try:
            number = int(raw.strip())
        except ValueError:
            number = None

    if number is None or number < 1 or number > total_pages:
        raise ValidationError(INVALID_PAGE_MESSAGE, total_pages=total_pages)
    return number


def _is_absent(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


@contextmanager
def _classify_failures() -> Iterator[None]:
    try:
        yield
    except PdfServiceError:
        raise
    except Exception as exc:
        raise InternalError(str(exc) or exc.__class__.__name__) from exc


class PageService:
    """Split PDFs into pages or render them to images via a :class:`RenderBackend`."""

    def __init__(self, backend: RenderBackend, settings: Settings) -> None:
        self._backend = backend
        self._settings = settings

    @property
    def backend(self) -> RenderBackend:
        return self._backend

    def split(self, pdf: Optional[str], page: Any = None, *, request_id: str) -> SplitResult | SplitPageResult:
        """Split ``pdf`` into one-page documents, or extract just ``page``."""

        pdf_bytes = decode_pdf_payload(pdf)
        started = time.monotonic()
        with _classify_failures(), request_workspace(self._settings.tmp_dir, request_id) as workspace:
            doc = PdfDocument(data=pdf_bytes, workspace=workspace)
            total_pages = self._backend.page_count(doc)

            if not _is_absent(page):
                page_number = parse_page_number(page, total_pages)
                data = self._backend.extract_page(doc, page_number)
                LOGGER.info(
                    "Extracted single page",
                    extra={"page": page_number, "totalPages": total_pages, "backend": self._backend.name},
                )
                return SplitPageResult(page=page_number, total_pages=total_pages, data=data)

            page_bytes = self._backend.split_all(doc)
            if len(page_bytes) != total_pages:
                raise BackendError(
                    f"Backend returned {len(page_bytes)} pages for a {total_pages}-page document"
                )
            LOGGER.info(
                "Split document",
                extra={
                    "totalPages": total_pages,
                    "backend": self._backend.name,
                    "elapsedMs": int((time.monotonic() - started) * 1000),
                },
            )
            return SplitResult(
                count=total_pages,
                pages=[SplitPage(page=index, data=data) for index, data in enumerate(page_bytes, start=1)],
            )

    def _resolve_render_options(
        self,
        max_size_mb: Optional[float],
        dpi: Optional[int],
        image_format: Optional[str],
    ) -> tuple[Optional[int], int, str]:
        try:
            fmt = normalise_format(image_format or self._settings.image_format)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc

        resolution = dpi if dpi is not None else self._settings.render_dpi
        if resolution < MIN_DPI or resolution > MAX_DPI:
            raise ValidationError(f"dpi must be between {MIN_DPI} and {MAX_DPI}")

        limit_mb = self._settings.max_image_size_mb if max_size_mb is None else max_size_mb
        if limit_mb < 0:
            raise ValidationError("maxSize must be a positive number")
        max_bytes = int(limit_mb * BYTES_PER_MB) if limit_mb > 0 else None
        return max_bytes, resolution, fmt

    def convert(
        self,
        pdf: Optional[str],
        pages: Optional[Sequence[Any]] = None,
        *,
        max_size_mb: Optional[float] = None,
        dpi: Optional[int] = None,
        image_format: Optional[str] = None,
        request_id: str,
    ) -> ConvertResult:
        """Render the requested pages (all pages by default) to encoded images.

        Images are returned in the order the pages were requested. Documents
        with form fields are flattened first when enabled; a failed flatten
        falls back to the original bytes.
        """

        pdf_bytes = decode_pdf_payload(pdf)
        max_bytes, resolution, fmt = self._resolve_render_options(max_size_mb, dpi, image_format)
        started = time.monotonic()

        with _classify_failures(), request_workspace(self._settings.tmp_dir, request_id) as workspace:
            doc = PdfDocument(data=pdf_bytes, workspace=workspace)
            total_pages = self._backend.page_count(doc)
            if pages:
                requested = [parse_page_number(value, total_pages) for value in pages]
            else:
                requested = list(range(1, total_pages + 1))

            if self._settings.flatten_forms:
                doc = doc.with_data(flatten_form_fields(doc.data))

            rendered = self._backend.rasterize(
                doc,
                requested,
                dpi=resolution,
                image_format=fmt,
                jpeg_quality=self._settings.jpeg_quality,
            )
            if len(rendered) != len(requested):
                raise BackendError(
                    f"Backend rendered {len(rendered)} images for {len(requested)} requested pages"
                )

            images: List[ImageResult] = []
            for page_number, data in zip(requested, rendered):
                fitted = fit_to_size(data, max_bytes, fmt, jpeg_quality=self._settings.jpeg_quality)
                images.append(ImageResult(page=page_number, data=fitted, size_mb=size_in_mb(fitted)))

            LOGGER.info(
                "Converted pages to images",
                extra={
                    "imageCount": len(images),
                    "totalPages": total_pages,
                    "dpi": resolution,
                    "format": fmt,
                    "backend": self._backend.name,
                    "elapsedMs": int((time.monotonic() - started) * 1000),
                },
            )
            return ConvertResult(images=images)


__all__ = [
    "ConvertResult",
    "ImageResult",
    "PageService",
    "SplitPage",
    "SplitPageResult",
    "SplitResult",
    "parse_page_number",
]
