"""Pydantic models describing the HTTP request and response bodies."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from .settings import MAX_DPI, MIN_DPI


class SplitPdfRequest(BaseModel):
    pdf: Optional[str] = Field(default=None, description="Base64 encoded PDF document")
    # Page selectors stay untyped here so that the service reports bad values with totalPages.
    page: Optional[Any] = Field(default=None, description="1-based page to extract")


class ConvertToImagesRequest(BaseModel):
    pdf: Optional[str] = Field(default=None, description="Base64 encoded PDF document")
    pages: Optional[List[Any]] = Field(default=None, description="1-based pages to render")
    max_size: Optional[float] = Field(default=None, alias="maxSize", gt=0, description="Per-image limit in MB")
    dpi: Optional[int] = Field(default=None, ge=MIN_DPI, le=MAX_DPI)
    image_format: Optional[Literal["png", "jpeg", "jpg"]] = Field(default=None, alias="format")

    class Config:
        populate_by_name = True


class HealthResponse(BaseModel):
    status: str
    timestamp: str


class IndexResponse(BaseModel):
    message: str
    endpoints: Dict[str, str]


class PageData(BaseModel):
    page: int
    base64: str


class SplitResponse(BaseModel):
    count: int
    pages: List[PageData]


class SplitPageResponse(BaseModel):
    page: int
    totalPages: int
    base64: str


class ImageData(BaseModel):
    page: int
    base64: str
    size_mb: Optional[str] = None


class ConvertResponse(BaseModel):
    count: int
    images: List[ImageData]


class ErrorResponse(BaseModel):
    error: str
    totalPages: Optional[int] = None


__all__ = [
    "ConvertResponse",
    "ConvertToImagesRequest",
    "ErrorResponse",
    "HealthResponse",
    "ImageData",
    "IndexResponse",
    "PageData",
    "SplitPageResponse",
    "SplitPdfRequest",
    "SplitResponse",
]
