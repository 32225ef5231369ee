"""PDF and page processing helpers."""

from __future__ import annotations

import base64
import binascii
import io
from typing import List, Optional

from pypdf import PdfReader, PdfWriter
from pypdf.errors import PyPdfError

from .errors import BackendError, ValidationError
from .logging_config import get_logger

LOGGER = get_logger(__name__)

PDF_REQUIRED_MESSAGE = "PDF data is required"

_DATA_URI_MARKER = ";base64,"


def decode_pdf_payload(payload: Optional[str]) -> bytes:
    """Turn the ``pdf`` request field into raw bytes.

    Accepts plain base64 or a ``data:`` URI. Embedded whitespace and line
    breaks are ignored.
    """

    if payload is None or not payload.strip():
        raise ValidationError(PDF_REQUIRED_MESSAGE)

    text = payload.strip()
    if text.startswith("data:") and _DATA_URI_MARKER in text:
        text = text.split(_DATA_URI_MARKER, 1)[1]
    text = "".join(text.split())
    # Tolerate senders that drop the trailing padding.
    text += "=" * (-len(text) % 4)

    try:
        data = base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValidationError("Invalid base64 PDF data") from exc
    if not data:
        raise ValidationError(PDF_REQUIRED_MESSAGE)
    return data


def open_reader(pdf_bytes: bytes) -> PdfReader:
    try:
        return PdfReader(io.BytesIO(pdf_bytes))
    except (PyPdfError, ValueError, OSError) as exc:
        raise BackendError(f"Unable to read PDF: {exc}") from exc


def count_pages(pdf_bytes: bytes) -> int:
    reader = open_reader(pdf_bytes)
    try:
        return len(reader.pages)
    except PyPdfError as exc:
        raise BackendError(f"Unable to read page tree: {exc}") from exc


def _write_single_page(reader: PdfReader, index: int) -> bytes:
    writer = PdfWriter()
    writer.add_page(reader.pages[index])
    out_buffer = io.BytesIO()
    writer.write(out_buffer)
    return out_buffer.getvalue()


def extract_page(pdf_bytes: bytes, page_number: int) -> bytes:
    """Return a standalone one-page PDF holding 1-based ``page_number``."""

    reader = open_reader(pdf_bytes)
    try:
        total = len(reader.pages)
        if page_number < 1 or page_number > total:
            raise ValidationError("Invalid page number", total_pages=total)
        return _write_single_page(reader, page_number - 1)
    except PyPdfError as exc:
        raise BackendError(f"Failed to extract page {page_number}: {exc}") from exc


def split_pdf(pdf_bytes: bytes) -> List[bytes]:
    """Split a PDF into one single-page document per page, in page order."""

    reader = open_reader(pdf_bytes)
    pages: List[bytes] = []
    try:
        for idx in range(len(reader.pages)):
            pages.append(_write_single_page(reader, idx))
    except PyPdfError as exc:
        raise BackendError(f"Failed to split PDF: {exc}") from exc
    LOGGER.info("PDF split into pages", extra={"totalPages": len(pages)})
    return pages


def flatten_form_fields(pdf_bytes: bytes) -> bytes:
    """Bake AcroForm field values into page content.

    Returns the input unchanged when the document has no form fields or when
    flattening fails for any reason; never raises.
    """

    try:
        reader = PdfReader(io.BytesIO(pdf_bytes))
        fields = reader.get_fields()
        if not fields:
            return pdf_bytes

        values = {
            name: field.get("/V")
            for name, field in fields.items()
            if field.get("/V") not in (None, "")
        }
        writer = PdfWriter(clone_from=reader)
        for page in writer.pages:
            if "/Annots" not in page:
                continue
            writer.update_page_form_field_values(page, values, auto_regenerate=False, flatten=True)
        writer.remove_annotations(subtypes="/Widget")
        if "/AcroForm" in writer.root_object:
            del writer.root_object["/AcroForm"]

        out_buffer = io.BytesIO()
        writer.write(out_buffer)
    except Exception as exc:
        LOGGER.warning("Form flattening failed; rendering original document", extra={"error": str(exc)})
        return pdf_bytes

    LOGGER.info("Flattened form fields", extra={"fieldCount": len(values)})
    return out_buffer.getvalue()


__all__ = [
    "PDF_REQUIRED_MESSAGE",
    "count_pages",
    "decode_pdf_payload",
    "extract_page",
    "flatten_form_fields",
    "open_reader",
    "split_pdf",
]
