"""Shared fixtures for the test suite."""

from __future__ import annotations

import io
import sys
from pathlib import Path
from typing import Callable, Iterable, List, Sequence, Tuple

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

import pytest
from PIL import Image
from pypdf import PdfWriter
from pypdf.generic import (
    ArrayObject,
    DictionaryObject,
    FloatObject,
    NameObject,
    NumberObject,
    TextStringObject,
)

from pdfsplitter.backends import PdfDocument, PypdfBackend
from pdfsplitter.imaging import encode_image
from pdfsplitter.settings import Settings

# Distinct (width, height) per page so page identity survives a split.
DEFAULT_PAGE_SIZES: Tuple[Tuple[int, int], ...] = (
    (200, 300),
    (210, 310),
    (220, 320),
    (230, 330),
    (240, 340),
)


def build_pdf(sizes: Iterable[Tuple[int, int]]) -> bytes:
    writer = PdfWriter()
    for width, height in sizes:
        writer.add_blank_page(width=width, height=height)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


def build_form_pdf(field_name: str = "customer", value: str = "HELLOFLAT") -> bytes:
    """One blank page carrying a filled text field with no appearance stream."""

    writer = PdfWriter()
    writer.add_blank_page(width=300, height=200)
    writer.add_annotation(
        page_number=0,
        annotation=DictionaryObject(
            {
                NameObject("/Type"): NameObject("/Annot"),
                NameObject("/Subtype"): NameObject("/Widget"),
                NameObject("/FT"): NameObject("/Tx"),
                NameObject("/T"): TextStringObject(field_name),
                NameObject("/V"): TextStringObject(value),
                NameObject("/DA"): TextStringObject("/Helv 12 Tf 0 g"),
                NameObject("/F"): NumberObject(4),
                NameObject("/Rect"): ArrayObject(
                    [FloatObject(20), FloatObject(100), FloatObject(220), FloatObject(130)]
                ),
            }
        ),
    )
    field_ref = writer.pages[0]["/Annots"][-1]
    helvetica = DictionaryObject(
        {
            NameObject("/Type"): NameObject("/Font"),
            NameObject("/Subtype"): NameObject("/Type1"),
            NameObject("/BaseFont"): NameObject("/Helvetica"),
            NameObject("/Encoding"): NameObject("/WinAnsiEncoding"),
        }
    )
    writer.root_object[NameObject("/AcroForm")] = DictionaryObject(
        {
            NameObject("/Fields"): ArrayObject([field_ref]),
            NameObject("/DA"): TextStringObject("/Helv 12 Tf 0 g"),
            NameObject("/DR"): DictionaryObject(
                {NameObject("/Font"): DictionaryObject({NameObject("/Helv"): helvetica})}
            ),
        }
    )
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


class FakeRenderBackend(PypdfBackend):
    """pypdf for page handling; draws a solid image per page instead of calling Poppler.

    Each image is ``10 * page`` pixels wide so tests can tell which page it came from.
    """

    name = "fake"

    def __init__(self) -> None:
        super().__init__(timeout=5.0)
        self.rasterize_calls: List[dict] = []

    def rasterize(
        self,
        doc: PdfDocument,
        pages: Sequence[int],
        *,
        dpi: int,
        image_format: str,
        jpeg_quality: int,
    ) -> List[bytes]:
        self.rasterize_calls.append(
            {"pages": list(pages), "dpi": dpi, "format": image_format, "data": doc.data}
        )
        images = []
        for page in pages:
            image = Image.new("RGB", (10 * page, 10), (page * 40 % 256, 0, 0))
            images.append(encode_image(image, image_format, jpeg_quality=jpeg_quality))
        return images


@pytest.fixture
def make_pdf() -> Callable[..., bytes]:
    def _make(pages: int = 5, sizes: Sequence[Tuple[int, int]] | None = None) -> bytes:
        return build_pdf(sizes if sizes is not None else DEFAULT_PAGE_SIZES[:pages])

    return _make


@pytest.fixture
def settings_factory(tmp_path: Path) -> Callable[..., Settings]:
    def _build(**overrides) -> Settings:
        values = dict(
            backend="pypdf",
            tmp_dir=tmp_path / "work",
            render_dpi=150,
            image_format="png",
            jpeg_quality=90,
            max_image_size_mb=0.0,
            max_body_mb=50.0,
            process_timeout=10.0,
            flatten_forms=True,
            log_level="INFO",
            host="127.0.0.1",
            port=3000,
        )
        values.update(overrides)
        return Settings(**values)

    return _build


@pytest.fixture
def fake_backend() -> FakeRenderBackend:
    return FakeRenderBackend()


@pytest.fixture
def form_pdf() -> bytes:
    return build_form_pdf()
