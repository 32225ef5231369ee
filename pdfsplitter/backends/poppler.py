"""Process backend: shells out to the Poppler command-line utilities."""

from __future__ import annotations

import re
import subprocess
from pathlib import Path
from typing import List, Sequence

from ..errors import BackendError, ValidationError
from ..logging_config import get_logger
from .base import PdfDocument, RenderBackend

LOGGER = get_logger(__name__)

_PAGES_PATTERN = re.compile(r"^Pages:\s+(\d+)", re.MULTILINE)

# pdftoppm flag and the extension it writes for each output format.
_PPM_FORMATS = {"png": ("-png", "png"), "jpeg": ("-jpeg", "jpg")}


class PopplerBackend(RenderBackend):
    """Run ``pdfinfo``, ``pdfseparate`` and ``pdftoppm`` inside the request workspace."""

    name = "poppler"

    def __init__(self, *, timeout: float) -> None:
        self._timeout = timeout

    def _run(self, args: List[str]) -> str:
        LOGGER.debug("Running command", extra={"command": args[0], "arguments": args[1:]})
        try:
            completed = subprocess.run(
                args,
                capture_output=True,
                text=True,
                timeout=self._timeout,
                check=True,
            )
        except FileNotFoundError as exc:
            raise BackendError(f"{args[0]} is not installed") from exc
        except subprocess.TimeoutExpired as exc:
            raise BackendError(f"{args[0]} timed out after {self._timeout:g}s") from exc
        except subprocess.CalledProcessError as exc:
            detail = (exc.stderr or "").strip() or f"exit status {exc.returncode}"
            raise BackendError(f"{args[0]} failed: {detail}") from exc
        return completed.stdout

    def page_count(self, doc: PdfDocument) -> int:
        output = self._run(["pdfinfo", str(doc.path)])
        match = _PAGES_PATTERN.search(output)
        if match is None:
            raise BackendError("pdfinfo did not report a page count")
        return int(match.group(1))

    def _read_output(self, path: Path) -> bytes:
        if not path.is_file():
            raise BackendError(f"Expected output {path.name} was not produced")
        return path.read_bytes()

    def extract_page(self, doc: PdfDocument, page_number: int) -> bytes:
        if page_number < 1:
            raise ValidationError("Invalid page number", total_pages=self.page_count(doc))
        out_dir = doc.workspace / "split"
        out_dir.mkdir(exist_ok=True)
        self._run(
            [
                "pdfseparate",
                "-f",
                str(page_number),
                "-l",
                str(page_number),
                str(doc.path),
                str(out_dir / "page_%d.pdf"),
            ]
        )
        return self._read_output(out_dir / f"page_{page_number}.pdf")

    def split_all(self, doc: PdfDocument) -> List[bytes]:
        total = self.page_count(doc)
        out_dir = doc.workspace / "split"
        out_dir.mkdir(exist_ok=True)
        self._run(["pdfseparate", str(doc.path), str(out_dir / "page_%d.pdf")])
        return [self._read_output(out_dir / f"page_{number}.pdf") for number in range(1, total + 1)]

    def rasterize(
        self,
        doc: PdfDocument,
        pages: Sequence[int],
        *,
        dpi: int,
        image_format: str,
        jpeg_quality: int,
    ) -> List[bytes]:
        flag, extension = _PPM_FORMATS[image_format]
        out_dir = doc.workspace / "images"
        out_dir.mkdir(exist_ok=True)

        images: List[bytes] = []
        for position, page_number in enumerate(pages):
            # Name outputs by request position so repeated page numbers do not collide.
            stem = out_dir / f"image_{position}_{page_number}"
            args = ["pdftoppm", flag, "-r", str(dpi)]
            if image_format == "jpeg":
                args += ["-jpegopt", f"quality={jpeg_quality}"]
            args += ["-f", str(page_number), "-l", str(page_number), "-singlefile", str(doc.path), str(stem)]
            self._run(args)
            images.append(self._read_output(stem.with_name(f"{stem.name}.{extension}")))
            LOGGER.debug("Rendered page", extra={"page": page_number, "dpi": dpi})
        return images


__all__ = ["PopplerBackend"]
