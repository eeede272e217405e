from __future__ import annotations

from typing import List, Tuple

from .interfaces import DocumentEncoder
from .models import DecodedImage, Page, UploadedItem


class OutputDocument:
    """
    Append-only page list backed by one encoder instance.

    Pages are only added through PageComposer, which draws the page on the
    encoder before recording it here.
    """

    def __init__(self, encoder: DocumentEncoder) -> None:
        self.encoder = encoder
        self._pages: List[Page] = []

    @property
    def pages(self) -> Tuple[Page, ...]:
        return tuple(self._pages)

    def __len__(self) -> int:
        return len(self._pages)

    def record_page(self, page: Page) -> None:
        """Record a page already drawn on ``self.encoder``."""
        self._pages.append(page)

    def finish(self) -> bytes:
        return self.encoder.finish()


class PageComposer:
    """
    Adds exactly one page per decoded image.

    The page is the image's pixel size, one PDF point per pixel, with the
    image filling it from the bottom-left corner.
    """

    def compose(self, document: OutputDocument, image: DecodedImage, item: UploadedItem) -> Page:
        document.encoder.add_page(image.embedded, image.width, image.height)
        page = Page(width=image.width, height=image.height, source_name=item.name, image_format=image.image_format)
        document.record_page(page)
        return page
