from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, Union

if TYPE_CHECKING:
    from .models import RawRaster


class ByteSource(Protocol):
    async def read(self, size: int = -1) -> bytes:
        """Return at most ``size`` bytes; an empty result means end of stream."""


class DocumentEncoder(Protocol):
    """Builds one multi-page document. Instances are single-use."""

    def embed_jpeg(self, data: bytes) -> Any:
        ...

    def embed_png(self, source: Union[bytes, "RawRaster"]) -> Any:
        """Embed PNG bytes, or a raw RGB raster through the same path."""

    def image_size(self, embedded: Any) -> tuple[int, int]:
        ...

    def add_page(self, embedded: Any, width: int, height: int) -> None:
        ...

    def finish(self) -> bytes:
        ...


class ImageDecoder(Protocol):
    """Decodes a format the encoder cannot embed into a raw raster."""

    async def ready(self) -> None:
        ...

    def decode(self, data: bytes) -> "RawRaster":
        ...

    def release(self) -> None:
        """Drop working memory held from the last ``decode`` call."""
