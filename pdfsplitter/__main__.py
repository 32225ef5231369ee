"""Run the service with uvicorn: ``python -m pdfsplitter``."""

from __future__ import annotations

import uvicorn

from .settings import get_settings, load_env_file


def main() -> None:
    load_env_file()
    settings = get_settings()
    uvicorn.run(
        "pdfsplitter.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":  # pragma: no cover
    main()
