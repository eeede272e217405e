from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from .errors import DecoderUnavailableError, ItemDecodeError, ItemError, UnsupportedFormatError
from .interfaces import DocumentEncoder, ImageDecoder
from .models import DecodedImage, ImageFormat, UploadedItem
from .utils import resolve_image_format

logger = logging.getLogger(__name__)

DecoderFactory = Callable[[], ImageDecoder]


class FormatDispatcher:
    """
    Routes an item to its decode path by declared content type.

    JPEG and PNG bytes go straight to the encoder. WebP goes through the
    auxiliary decoder first and its raster is handed to the encoder's PNG
    path. The decoder is created and initialised on the first WebP item and
    reused for the rest of the job; its working memory is released after
    every item. One dispatcher serves exactly one job.
    """

    def __init__(self, encoder: DocumentEncoder, decoder_factory: DecoderFactory) -> None:
        self.encoder = encoder
        self._decoder_factory = decoder_factory
        self._webp_decoder: Optional[ImageDecoder] = None
        self._webp_failure: Optional[DecoderUnavailableError] = None

    @property
    def webp_decoder(self) -> Optional[ImageDecoder]:
        return self._webp_decoder

    async def decode(self, item: UploadedItem, data: bytes) -> DecodedImage:
        """
        Prepare ``data`` for composition.

        Raises:
            UnsupportedFormatError: If the declared content type is not handled
            ItemDecodeError: If the payload cannot be embedded or decoded
        """
        image_format = resolve_image_format(item.content_type)
        if image_format is None:
            raise UnsupportedFormatError(item.name, f"unsupported content type {item.content_type!r}")

        try:
            if image_format is ImageFormat.JPEG:
                embedded = self.encoder.embed_jpeg(data)
            elif image_format is ImageFormat.PNG:
                embedded = self.encoder.embed_png(data)
            else:
                embedded = await self._embed_webp(data)
            width, height = self.encoder.image_size(embedded)
        except ItemError:
            raise
        except Exception as exc:
            raise ItemDecodeError(item.name, f"{type(exc).__name__}: {exc}") from exc

        return DecodedImage(width=width, height=height, embedded=embedded, image_format=image_format)

    async def _embed_webp(self, data: bytes) -> Any:
        decoder = await self._get_webp_decoder()
        try:
            raster = decoder.decode(data)
            return self.encoder.embed_png(raster)
        finally:
            decoder.release()

    async def _get_webp_decoder(self) -> ImageDecoder:
        if self._webp_failure is not None:
            raise self._webp_failure
        if self._webp_decoder is None:
            decoder = self._decoder_factory()
            try:
                await decoder.ready()
            except DecoderUnavailableError as exc:
                self._webp_failure = exc
                raise
            except Exception as exc:
                self._webp_failure = DecoderUnavailableError("webp decoder", str(exc))
                raise self._webp_failure from exc
            logger.debug("WebP decoder initialised")
            self._webp_decoder = decoder
        return self._webp_decoder
