"""Tests for :class:`pdfsplitter.service.PageService`."""

from __future__ import annotations

import base64
import io
import os
from pathlib import Path

import pytest
from PIL import Image
from pypdf import PdfReader

from pdfsplitter import service as service_module
from pdfsplitter.errors import BackendError, InternalError, ValidationError
from pdfsplitter.imaging import encode_image
from pdfsplitter.pdf_utils import count_pages
from pdfsplitter.service import PageService, SplitPageResult, SplitResult, parse_page_number


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


@pytest.fixture
def service(fake_backend, settings_factory) -> PageService:
    return PageService(fake_backend, settings_factory())


@pytest.mark.parametrize(("raw", "expected"), [(1, 1), ("3", 3), (" 2 ", 2), (4.0, 4)])
def test_parse_page_number_accepts(raw, expected) -> None:
    assert parse_page_number(raw, 4) == expected


@pytest.mark.parametrize("raw", [0, 5, -1, "0", "abc", "2.5", 2.5, True, False, [1], {"n": 1}])
def test_parse_page_number_rejects(raw) -> None:
    with pytest.raises(ValidationError) as exc:
        parse_page_number(raw, 4)
    assert exc.value.total_pages == 4


def test_split_all_pages(service: PageService, make_pdf) -> None:
    result = service.split(_b64(make_pdf(4)), request_id="t1")

    assert isinstance(result, SplitResult)
    assert result.count == 4
    assert [item.page for item in result.pages] == [1, 2, 3, 4]
    assert all(count_pages(item.data) == 1 for item in result.pages)


@pytest.mark.parametrize("selector", [None, ""])
def test_split_treats_blank_selector_as_absent(service: PageService, make_pdf, selector) -> None:
    assert isinstance(service.split(_b64(make_pdf(2)), selector, request_id="t2"), SplitResult)


def test_split_single_page(service: PageService, make_pdf) -> None:
    result = service.split(_b64(make_pdf(5)), "4", request_id="t3")

    assert isinstance(result, SplitPageResult)
    assert result.page == 4
    assert result.total_pages == 5
    assert count_pages(result.data) == 1


@pytest.mark.parametrize("page", [0, 6])
def test_split_invalid_page_reports_total(service: PageService, make_pdf, page) -> None:
    with pytest.raises(ValidationError) as exc:
        service.split(_b64(make_pdf(5)), page, request_id="t4")
    assert exc.value.to_payload() == {"error": "Invalid page number", "totalPages": 5}


def test_missing_pdf_short_circuits(fake_backend, settings_factory, monkeypatch) -> None:
    service = PageService(fake_backend, settings_factory())

    def _unexpected(*args, **kwargs):
        raise AssertionError("backend must not be reached")

    monkeypatch.setattr(fake_backend, "page_count", _unexpected)

    for call in (lambda: service.split(None, request_id="t5"), lambda: service.convert("", request_id="t5")):
        with pytest.raises(ValidationError, match="PDF data is required"):
            call()


def test_convert_all_pages(service: PageService, fake_backend, make_pdf) -> None:
    result = service.convert(_b64(make_pdf(3)), request_id="t6")

    assert result.count == 3
    assert [image.page for image in result.images] == [1, 2, 3]
    assert fake_backend.rasterize_calls[0]["dpi"] == 150
    assert fake_backend.rasterize_calls[0]["format"] == "png"
    assert all(image.size_mb == "0.00" for image in result.images)


def test_convert_keeps_requested_order(service: PageService, make_pdf) -> None:
    result = service.convert(_b64(make_pdf(5)), [4, "2"], request_id="t7")

    assert [image.page for image in result.images] == [4, 2]
    widths = []
    for image in result.images:
        with Image.open(io.BytesIO(image.data)) as decoded:
            widths.append(decoded.width)
    assert widths == [40, 20]


def test_convert_rejects_out_of_range_pages(service: PageService, make_pdf) -> None:
    with pytest.raises(ValidationError) as exc:
        service.convert(_b64(make_pdf(2)), [1, 3], request_id="t8")
    assert exc.value.total_pages == 2


def test_convert_options_override_settings(service: PageService, fake_backend, make_pdf) -> None:
    result = service.convert(_b64(make_pdf(1)), dpi=300, image_format="jpg", request_id="t9")

    assert fake_backend.rasterize_calls[0]["dpi"] == 300
    assert fake_backend.rasterize_calls[0]["format"] == "jpeg"
    with Image.open(io.BytesIO(result.images[0].data)) as decoded:
        assert decoded.format == "JPEG"


@pytest.mark.parametrize(
    ("kwargs", "message"),
    [({"dpi": 10}, "dpi"), ({"image_format": "tiff"}, "Unsupported image format"), ({"max_size_mb": -1}, "maxSize")],
)
def test_convert_rejects_bad_options(service: PageService, make_pdf, kwargs, message) -> None:
    with pytest.raises(ValidationError, match=message):
        service.convert(_b64(make_pdf(1)), request_id="t10", **kwargs)


def test_convert_downscales_to_max_size(fake_backend, settings_factory, make_pdf, monkeypatch) -> None:
    noise = Image.frombytes("RGB", (400, 200), os.urandom(400 * 200 * 3))
    big_png = encode_image(noise, "png")
    monkeypatch.setattr(fake_backend, "rasterize", lambda doc, pages, **kwargs: [big_png for _ in pages])
    service = PageService(fake_backend, settings_factory())
    max_size_mb = 0.05

    result = service.convert(_b64(make_pdf(1)), max_size_mb=max_size_mb, request_id="t11")

    image = result.images[0]
    assert len(image.data) <= max_size_mb * 1024 * 1024
    assert float(image.size_mb) <= max_size_mb
    with Image.open(io.BytesIO(image.data)) as decoded:
        assert decoded.width < 400
        assert decoded.width / decoded.height == pytest.approx(2.0, rel=0.05)


def test_convert_flattens_when_enabled(fake_backend, settings_factory, make_pdf, monkeypatch) -> None:
    monkeypatch.setattr(service_module, "flatten_form_fields", lambda data: b"%PDF-flattened")
    pdf_bytes = make_pdf(1)

    PageService(fake_backend, settings_factory()).convert(_b64(pdf_bytes), request_id="t12")
    PageService(fake_backend, settings_factory(flatten_forms=False)).convert(_b64(pdf_bytes), request_id="t13")

    assert fake_backend.rasterize_calls[0]["data"] == b"%PDF-flattened"
    assert fake_backend.rasterize_calls[1]["data"] == pdf_bytes


def test_convert_renders_flattened_form(fake_backend, settings_factory, form_pdf: bytes) -> None:
    PageService(fake_backend, settings_factory()).convert(_b64(form_pdf), request_id="t16")

    rendered = fake_backend.rasterize_calls[0]["data"]
    assert rendered != form_pdf
    assert "/AcroForm" not in PdfReader(io.BytesIO(rendered)).trailer["/Root"]


def test_backend_count_mismatch_is_backend_error(fake_backend, settings_factory, make_pdf, monkeypatch) -> None:
    monkeypatch.setattr(fake_backend, "split_all", lambda doc: [b"%PDF"])
    service = PageService(fake_backend, settings_factory())

    with pytest.raises(BackendError):
        service.split(_b64(make_pdf(3)), request_id="t14")


def test_unexpected_failure_wrapped_and_workspace_removed(fake_backend, settings_factory, make_pdf, monkeypatch) -> None:
    settings = settings_factory()
    seen = []

    def _explode(doc, pages, **kwargs):
        seen.append(doc.path)
        raise KeyError("engine exploded")

    monkeypatch.setattr(fake_backend, "rasterize", _explode)
    service = PageService(fake_backend, settings)

    with pytest.raises(InternalError, match="engine exploded"):
        service.convert(_b64(make_pdf(2)), request_id="t15")

    assert seen and not seen[0].exists()
    assert list(Path(settings.tmp_dir).iterdir()) == []


def test_workspace_removed_after_success(service: PageService, settings_factory, make_pdf) -> None:
    service.split(_b64(make_pdf(2)), request_id="t16")
    service.convert(_b64(make_pdf(2)), request_id="t16")

    assert list(settings_factory().tmp_dir.iterdir()) == []
