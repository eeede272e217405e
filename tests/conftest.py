"""
Pytest configuration and fixtures for the Image to PDF Backend tests.
"""

import os
from io import BytesIO

import pytest
from fastapi.testclient import TestClient
from PIL import Image
from pypdf import PdfReader

# Set test environment variables before importing the app
os.environ["IMAGEPDF_MAX_ITEM_COUNT"] = "5"
os.environ["IMAGEPDF_INVARIANT_OUTPUT"] = "true"

from imagepdf_backend.main import app, get_conversion_service
from imagepdf_backend.models import UploadedItem


def encode_image(image_format: str, width: int, height: int, color=(200, 40, 40)) -> bytes:
    """Encode a solid-colour RGB image of the given size."""
    buffer = BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format=image_format)
    return buffer.getvalue()


def page_sizes(pdf_bytes: bytes) -> list[tuple[float, float]]:
    """Return (width, height) of every page, in order."""
    reader = PdfReader(BytesIO(pdf_bytes))
    return [(float(page.mediabox.width), float(page.mediabox.height)) for page in reader.pages]


class MemorySource:
    """In-memory ByteSource that counts reads."""

    def __init__(self, data: bytes) -> None:
        self._buffer = BytesIO(data)
        self.reads = 0

    async def read(self, size: int = -1) -> bytes:
        self.reads += 1
        return self._buffer.read(size)


def make_item(data: bytes, content_type: str, name: str = "image", declared_size=-1) -> UploadedItem:
    """Build an UploadedItem; ``declared_size`` defaults to the payload length."""
    return UploadedItem(
        name=name,
        content_type=content_type,
        source=MemorySource(data),
        declared_size=len(data) if declared_size == -1 else declared_size,
    )


@pytest.fixture
def client():
    """Create a test client for the FastAPI app."""
    return TestClient(app)


@pytest.fixture
def override_service():
    """Swap the ConversionService used by the app for the duration of a test."""

    def _override(service):
        app.dependency_overrides[get_conversion_service] = lambda: service
        return service

    yield _override
    app.dependency_overrides.pop(get_conversion_service, None)


@pytest.fixture
def jpeg_bytes():
    return encode_image("JPEG", 40, 30)


@pytest.fixture
def png_bytes():
    return encode_image("PNG", 25, 50, color=(30, 160, 60))


@pytest.fixture
def webp_bytes():
    return encode_image("WEBP", 33, 21, color=(20, 60, 200))


@pytest.fixture
def corrupt_bytes():
    return b"\xff\xd8\xff\xe0 this is not really a jpeg"
