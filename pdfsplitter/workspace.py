"""Per-request scratch directories for engines that work on files."""

from __future__ import annotations

import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from .errors import CleanupError
from .logging_config import get_logger

LOGGER = get_logger(__name__)


def _remove_tree(path: Path) -> None:
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        return
    except OSError as exc:
        raise CleanupError(f"Failed to remove workspace {path}: {exc}") from exc


@contextmanager
def request_workspace(root: Path, request_id: str) -> Iterator[Path]:
    """Yield a fresh directory under ``root`` and remove it on exit.

    The directory name embeds ``request_id`` so concurrent requests never share
    files. Removal runs on both success and failure; a failed removal is logged
    and does not replace the exception (or result) of the block.
    """

    root.mkdir(parents=True, exist_ok=True)
    path = Path(tempfile.mkdtemp(prefix=f"req_{request_id}_", dir=root))
    LOGGER.debug("Created request workspace", extra={"path": str(path)})
    try:
        yield path
    finally:
        try:
            _remove_tree(path)
        except CleanupError:
            LOGGER.exception("Workspace cleanup failed", extra={"path": str(path)})


__all__ = ["request_workspace"]
