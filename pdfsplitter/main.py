# FastAPI application entry point.

from __future__ import annotations

import asyncio
import base64
import re
import uuid
from datetime import datetime, timezone
from typing import Optional, Union

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .backends import RenderBackend, get_backend
from .errors import PdfServiceError, ValidationError
from .logging_config import configure_logging, current_request_id, get_logger, request_context
from .models import (
    ConvertResponse,
    ConvertToImagesRequest,
    ErrorResponse,
    HealthResponse,
    ImageData,
    IndexResponse,
    PageData,
    SplitPageResponse,
    SplitPdfRequest,
    SplitResponse,
)
from .pdf_utils import PDF_REQUIRED_MESSAGE
from .service import PageService, SplitPageResult
from .settings import ENV_FILE_PATH, Settings, get_settings, load_env_file

LOGGER = get_logger(__name__)

_REQUEST_ID_PATTERN = re.compile(r"[A-Za-z0-9_-]{1,64}")

API_TITLE = "PDF Splitter API"

ENDPOINTS = {
    "health": "GET /health",
    "splitPdf": "POST /api/split-pdf",
    "convertToImages": "POST /api/convert-to-images",
}

ERROR_RESPONSES = {
    status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
    status.HTTP_413_CONTENT_TOO_LARGE: {"model": ErrorResponse},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
}


# Build an error body in the shared {"error": ...} shape.
# Args:
#     message (str): text returned to the client.
#     status_code (int): HTTP status code.
# Returns:
#     JSONResponse: the error response.
def _error_response(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _new_request_id() -> str:
    return uuid.uuid4().hex[:12]


# Client-supplied ids end up in log lines and workspace names, so only simple tokens are kept.
def _resolve_request_id(header_value: Optional[str]) -> str:
    if header_value and _REQUEST_ID_PATTERN.fullmatch(header_value):
        return header_value
    return _new_request_id()


# Create the FastAPI application with middleware, routes and error handlers.
# Args:
#     settings (Settings | None): configuration; read from the environment when omitted.
#     backend (RenderBackend | None): PDF engine; chosen from settings.backend when omitted.
# Returns:
#     FastAPI: the configured application.
def create_application(
    settings: Optional[Settings] = None,
    backend: Optional[RenderBackend] = None,
) -> FastAPI:
    if settings is None:
        loaded = load_env_file()
        settings = get_settings()
        configure_logging(settings.log_level)
        if loaded:
            LOGGER.info(
                "Loaded environment overrides from file",
                extra={"path": str(ENV_FILE_PATH), "keyCount": len(loaded)},
            )
    else:
        configure_logging(settings.log_level)

    if backend is None:
        backend = get_backend(settings.backend, settings)

    app = FastAPI(title=API_TITLE, version="0.1.0")
    app.state.settings = settings
    app.state.service = PageService(backend, settings)

    @app.middleware("http")
    # Tag each request with an id for log correlation and reject oversized bodies early.
    # Args:
    #     request (Request): incoming HTTP request.
    #     call_next: callback into the rest of the stack.
    # Returns:
    #     Response: 413 when Content-Length exceeds the limit, otherwise the downstream response.
    async def request_guard(request: Request, call_next):
        request_id = _resolve_request_id(request.headers.get("X-Request-ID"))
        with request_context(request_id):
            length = request.headers.get("content-length")
            if length and length.isdigit() and int(length) > settings.max_body_bytes:
                LOGGER.warning(
                    "Rejected oversized request body",
                    extra={"contentLength": int(length), "maxBytes": settings.max_body_bytes},
                )
                response = _error_response("Request body too large", status.HTTP_413_CONTENT_TOO_LARGE)
            else:
                response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    # Added last so it wraps the guard and early 413 responses still carry CORS headers.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    register_routes(app)
    LOGGER.info("Application configured", extra={"backend": backend.name, "tmpDir": str(settings.tmp_dir)})
    return app


# Map the error taxonomy onto HTTP responses.
# Args:
#     app (FastAPI): application receiving the handlers.
def register_error_handlers(app: FastAPI) -> None:

    @app.exception_handler(PdfServiceError)
    async def handle_service_error(request: Request, exc: PdfServiceError) -> JSONResponse:
        if isinstance(exc, ValidationError):
            LOGGER.info("Rejected request", extra={"path": request.url.path, "reason": exc.message})
        else:
            LOGGER.error(
                "Request failed",
                extra={"path": request.url.path, "error": exc.message},
                exc_info=exc,
            )
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        if errors and tuple(errors[0].get("loc", ())) == ("body",):
            # No JSON body at all is reported like an empty one.
            message = PDF_REQUIRED_MESSAGE
        elif errors:
            first = errors[0]
            location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
            message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
        else:
            message = "Invalid request body"
        LOGGER.info("Rejected malformed request", extra={"path": request.url.path, "reason": message})
        return _error_response(message, status.HTTP_400_BAD_REQUEST)

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:  # pragma: no cover - last resort
        LOGGER.exception("Unhandled error", extra={"path": request.url.path})
        return _error_response(str(exc) or "Internal server error", status.HTTP_500_INTERNAL_SERVER_ERROR)


# Register the informational, health and PDF routes.
# Args:
#     app (FastAPI): application receiving the routes.
def register_routes(app: FastAPI) -> None:

    @app.get("/", response_model=IndexResponse, tags=["health"])
    async def index() -> IndexResponse:
        return IndexResponse(message=API_TITLE, endpoints=ENDPOINTS)

    @app.get("/health", response_model=HealthResponse, tags=["health"])
    async def health() -> HealthResponse:
        now = datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
        return HealthResponse(status="ok", timestamp=now)

    @app.post(
        "/api/split-pdf",
        response_model=Union[SplitResponse, SplitPageResponse],
        responses=ERROR_RESPONSES,
        tags=["pdf"],
    )
    # Split the document into single-page PDFs, or extract one page when "page" is given.
    # Args:
    #     payload (SplitPdfRequest): request body.
    #     request (Request): used to reach the page service.
    # Returns:
    #     SplitResponse | SplitPageResponse: all pages, or the requested page with the total count.
    async def split_pdf(payload: SplitPdfRequest, request: Request) -> Union[SplitResponse, SplitPageResponse]:
        service: PageService = request.app.state.service
        # Engines block, so the work runs in a thread; the request id travels with the context.
        result = await asyncio.to_thread(
            service.split,
            payload.pdf,
            payload.page,
            request_id=current_request_id(),
        )
        if isinstance(result, SplitPageResult):
            return SplitPageResponse(page=result.page, totalPages=result.total_pages, base64=_encode(result.data))
        return SplitResponse(
            count=result.count,
            pages=[PageData(page=item.page, base64=_encode(item.data)) for item in result.pages],
        )

    @app.post(
        "/api/convert-to-images",
        response_model=ConvertResponse,
        responses=ERROR_RESPONSES,
        tags=["pdf"],
    )
    # Render the requested pages (all by default) to base64 images.
    # Args:
    #     payload (ConvertToImagesRequest): request body.
    #     request (Request): used to reach the page service.
    # Returns:
    #     ConvertResponse: one image per requested page, in request order.
    async def convert_to_images(payload: ConvertToImagesRequest, request: Request) -> ConvertResponse:
        service: PageService = request.app.state.service
        result = await asyncio.to_thread(
            service.convert,
            payload.pdf,
            payload.pages,
            max_size_mb=payload.max_size,
            dpi=payload.dpi,
            image_format=payload.image_format,
            request_id=current_request_id(),
        )
        return ConvertResponse(
            count=result.count,
            images=[
                ImageData(page=image.page, base64=_encode(image.data), size_mb=image.size_mb)
                for image in result.images
            ],
        )


app = create_application()
