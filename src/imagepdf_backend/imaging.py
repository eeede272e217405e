"""
Concrete document encoder and image decoder.

ReportLabEncoder writes one PDF with a reportlab canvas. JPEG payloads are
embedded as-is (reportlab passes DCT streams straight through), PNG payloads
and raw RGB rasters go through ImageReader. PillowWebPDecoder turns WebP
bytes into a raw RGB raster for the encoder's PNG path.
"""

from __future__ import annotations

from io import BytesIO
from typing import List, Union

from PIL import Image, features
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from .errors import DecoderUnavailableError
from .models import RawRaster


def _probe_format(data: bytes, verify: bool = False) -> str:
    """Return the Pillow format name of ``data``; raises on unreadable input."""
    with Image.open(BytesIO(data)) as probe:
        image_format = probe.format
        if verify:
            probe.verify()
    return image_format or ""


class ReportLabEncoder:
    """Single-use PDF builder; call ``finish`` once after the last page."""

    def __init__(self, invariant: bool = False) -> None:
        self._buffer = BytesIO()
        self._canvas = canvas.Canvas(self._buffer, pageCompression=1, invariant=1 if invariant else 0)
        self._finished = False
        self.page_count = 0

    def embed_jpeg(self, data: bytes) -> ImageReader:
        image_format = _probe_format(data)
        if image_format != "JPEG":
            raise ValueError(f"expected JPEG data, found {image_format or 'unknown'}")
        return ImageReader(BytesIO(data))

    def embed_png(self, source: Union[bytes, RawRaster]) -> ImageReader:
        if isinstance(source, RawRaster):
            if len(source.data) != source.width * source.height * 3:
                raise ValueError(f"raster buffer of {len(source.data)} bytes does not match {source.width}x{source.height} RGB")
            return ImageReader(Image.frombytes("RGB", source.size, source.data))

        image_format = _probe_format(source, verify=True)
        if image_format != "PNG":
            raise ValueError(f"expected PNG data, found {image_format or 'unknown'}")
        return ImageReader(BytesIO(source))

    def image_size(self, embedded: ImageReader) -> tuple[int, int]:
        width, height = embedded.getSize()
        return int(width), int(height)

    def add_page(self, embedded: ImageReader, width: int, height: int) -> None:
        if self._finished:
            raise RuntimeError("Document already finished.")
        self._canvas.setPageSize((width, height))
        self._canvas.drawImage(embedded, 0, 0, width=width, height=height)
        self._canvas.showPage()
        self.page_count += 1

    def finish(self) -> bytes:
        if self._finished:
            raise RuntimeError("Document already finished.")
        self._canvas.save()
        self._finished = True
        return self._buffer.getvalue()


class PillowWebPDecoder:
    """
    WebP to raw RGB decoder.

    Working images from the last ``decode`` are kept until ``release`` so the
    caller controls when their memory goes away.
    """

    def __init__(self) -> None:
        self._working: List[Image.Image] = []
        self.is_ready = False

    async def ready(self) -> None:
        if not features.check("webp"):
            raise DecoderUnavailableError("webp decoder", "Pillow was built without WebP support")
        self.is_ready = True

    def decode(self, data: bytes) -> RawRaster:
        image = Image.open(BytesIO(data), formats=["WEBP"])
        self._working.append(image)
        image.load()
        rgb = image if image.mode == "RGB" else image.convert("RGB")
        if rgb is not image:
            self._working.append(rgb)
        return RawRaster(width=rgb.width, height=rgb.height, data=rgb.tobytes())

    def release(self) -> None:
        for image in self._working:
            image.close()
        self._working.clear()
