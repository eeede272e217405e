from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .interfaces import ByteSource


class ResourceLimits(BaseModel):
    """Process-wide batch limits, read-only once loaded."""

    model_config = ConfigDict(frozen=True)

    max_item_count: int = Field(gt=0)
    max_item_size_bytes: int = Field(gt=0)
    max_total_size_bytes: int = Field(gt=0)
    memory_watermark_bytes: int = Field(gt=0)


class IngestSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    chunk_size_bytes: int = Field(gt=0)
    yield_threshold_bytes: int = Field(gt=0)


class MemorySettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    warning_ratio: float = Field(gt=0, le=1)


class OutputSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    default_name: str = Field(min_length=1)
    extension: str = Field(min_length=1)
    media_type: str
    invariant: bool = False


class ServerSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    cors_origins: str = "*"
    static_cache_seconds: int = 3600

    def origin_list(self) -> List[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


class AppSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    limits: ResourceLimits
    ingest: IngestSettings
    memory: MemorySettings
    output: OutputSettings
    server: ServerSettings


class PipelineState(str, Enum):
    PENDING = "pending"
    INGESTING = "ingesting"
    DECODING = "decoding"
    COMPOSING = "composing"
    DONE = "done"
    FAILED = "failed"


class ImageFormat(str, Enum):
    JPEG = "jpeg"
    PNG = "png"
    WEBP = "webp"


@dataclass(frozen=True)
class UploadedItem:
    """
    One uploaded image plus its declared metadata.

    The payload is exposed as a ``ByteSource`` so it can be read
    incrementally; ``declared_size`` is ``None`` when the transport did not
    report one.
    """

    name: str
    content_type: str
    source: ByteSource
    declared_size: Optional[int] = None


@dataclass
class ConversionJob:
    """Ordered items of one request. Item order is output page order."""

    items: List[UploadedItem]
    requested_name: Optional[str] = None


@dataclass(frozen=True)
class RawRaster:
    """Packed 8-bit RGB pixels, row-major, ``width * height * 3`` bytes."""

    width: int
    height: int
    data: bytes

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height


@dataclass
class DecodedImage:
    """
    An image ready for the document encoder.

    ``embedded`` is whatever the encoder returned from one of its embed calls;
    it is only meaningful to that encoder instance.
    """

    width: int
    height: int
    embedded: Any
    image_format: ImageFormat


@dataclass(frozen=True)
class Page:
    width: int
    height: int
    source_name: str
    image_format: ImageFormat


@dataclass(frozen=True)
class ItemOutcome:
    """What happened to one submitted item."""

    index: int
    name: str
    page_number: Optional[int] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.page_number is not None


@dataclass
class ConversionResult:
    content: bytes
    filename: str
    media_type: str
    pages: List[Page]
    outcomes: List[ItemOutcome] = field(default_factory=list)

    @property
    def page_count(self) -> int:
        return len(self.pages)

    @property
    def skipped_count(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.succeeded)
