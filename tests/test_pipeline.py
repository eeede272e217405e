"""
Tests for the conversion pipeline, format dispatch and page composition.
"""

import asyncio

import pytest

from conftest import encode_image, make_item, page_sizes
from imagepdf_backend import pipeline as pipeline_module
from imagepdf_backend.configuration import load_settings
from imagepdf_backend.dispatch import FormatDispatcher
from imagepdf_backend.document import OutputDocument
from imagepdf_backend.errors import DecoderUnavailableError, EmptyResultError, ItemDecodeError, UnsupportedFormatError
from imagepdf_backend.imaging import PillowWebPDecoder, ReportLabEncoder
from imagepdf_backend.models import ConversionJob, ImageFormat, PipelineState, UploadedItem
from imagepdf_backend.service import ConversionService


class TrackingDecoder(PillowWebPDecoder):
    def __init__(self) -> None:
        super().__init__()
        self.ready_calls = 0
        self.decode_calls = 0
        self.release_calls = 0

    async def ready(self) -> None:
        self.ready_calls += 1
        await super().ready()

    def decode(self, data):
        self.decode_calls += 1
        return super().decode(data)

    def release(self) -> None:
        self.release_calls += 1
        super().release()
        assert not self._working


class UnavailableDecoder(PillowWebPDecoder):
    async def ready(self) -> None:
        raise DecoderUnavailableError("webp decoder", "not on this host")


class ResetSource:
    """Byte source whose connection drops on the first read."""

    async def read(self, size: int = -1) -> bytes:
        raise OSError("stream reset")


class DecoderLog:
    def __init__(self, decoder_class=TrackingDecoder) -> None:
        self.decoder_class = decoder_class
        self.created = []

    def __call__(self):
        decoder = self.decoder_class()
        self.created.append(decoder)
        return decoder


def _run(service, items, name=None):
    return asyncio.run(service.convert(ConversionJob(items=items, requested_name=name)))


@pytest.fixture
def settings():
    return load_settings()


class TestFormatDispatcher:
    """Tests for per-format decode routing."""

    def test_jpeg_and_png_use_encoder_directly(self, jpeg_bytes, png_bytes):
        decoders = DecoderLog()
        dispatcher = FormatDispatcher(ReportLabEncoder(), decoders)

        jpeg = asyncio.run(dispatcher.decode(make_item(jpeg_bytes, "image/jpeg"), jpeg_bytes))
        png = asyncio.run(dispatcher.decode(make_item(png_bytes, "image/png"), png_bytes))

        assert (jpeg.width, jpeg.height, jpeg.image_format) == (40, 30, ImageFormat.JPEG)
        assert (png.width, png.height, png.image_format) == (25, 50, ImageFormat.PNG)
        assert decoders.created == []

    def test_webp_goes_through_decoder(self, webp_bytes):
        decoders = DecoderLog()
        dispatcher = FormatDispatcher(ReportLabEncoder(), decoders)

        decoded = asyncio.run(dispatcher.decode(make_item(webp_bytes, "image/webp"), webp_bytes))

        assert (decoded.width, decoded.height) == (33, 21)
        assert len(decoders.created) == 1
        assert decoders.created[0].release_calls == 1

    def test_unsupported_type_raises(self, jpeg_bytes):
        dispatcher = FormatDispatcher(ReportLabEncoder(), DecoderLog())
        with pytest.raises(UnsupportedFormatError):
            asyncio.run(dispatcher.decode(make_item(jpeg_bytes, "image/tiff"), jpeg_bytes))

    def test_mismatched_payload_raises_decode_error(self, png_bytes):
        dispatcher = FormatDispatcher(ReportLabEncoder(), DecoderLog())
        with pytest.raises(ItemDecodeError):
            asyncio.run(dispatcher.decode(make_item(png_bytes, "image/jpeg"), png_bytes))

    def test_decoder_released_when_decode_fails(self, corrupt_bytes):
        decoders = DecoderLog()
        dispatcher = FormatDispatcher(ReportLabEncoder(), decoders)
        with pytest.raises(ItemDecodeError):
            asyncio.run(dispatcher.decode(make_item(corrupt_bytes, "image/webp"), corrupt_bytes))
        assert decoders.created[0].release_calls == 1


class TestConversionPipeline:
    """Tests for ordering, isolation and decoder lifecycle across a job."""

    def test_pages_follow_submission_order(self, settings, jpeg_bytes, png_bytes, webp_bytes):
        service = ConversionService(settings, decoder_factory=DecoderLog())
        items = [
            make_item(webp_bytes, "image/webp", "c.webp"),
            make_item(jpeg_bytes, "image/jpeg", "a.jpg"),
            make_item(png_bytes, "image/png", "b.png"),
        ]

        result = _run(service, items)

        assert [(page.width, page.height) for page in result.pages] == [(33, 21), (40, 30), (25, 50)]
        assert [page.source_name for page in result.pages] == ["c.webp", "a.jpg", "b.png"]
        assert page_sizes(result.content) == [(33, 21), (40, 30), (25, 50)]

    def test_webp_decoder_created_once_and_released_per_item(self, settings, jpeg_bytes, webp_bytes):
        decoders = DecoderLog()
        service = ConversionService(settings, decoder_factory=decoders)
        items = [
            make_item(webp_bytes, "image/webp", "1.webp"),
            make_item(jpeg_bytes, "image/jpeg", "2.jpg"),
            make_item(encode_image("WEBP", 12, 8), "image/webp", "3.webp"),
        ]

        result = _run(service, items)

        assert result.page_count == 3
        assert len(decoders.created) == 1
        decoder = decoders.created[0]
        assert (decoder.ready_calls, decoder.decode_calls, decoder.release_calls) == (1, 2, 2)

    def test_each_job_gets_its_own_decoder(self, settings, webp_bytes):
        decoders = DecoderLog()
        service = ConversionService(settings, decoder_factory=decoders)

        _run(service, [make_item(webp_bytes, "image/webp")])
        _run(service, [make_item(webp_bytes, "image/webp")])

        assert len(decoders.created) == 2
        assert decoders.created[0] is not decoders.created[1]

    def test_unavailable_decoder_skips_webp_items_only(self, settings, jpeg_bytes, webp_bytes):
        decoders = DecoderLog(UnavailableDecoder)
        service = ConversionService(settings, decoder_factory=decoders)
        items = [
            make_item(webp_bytes, "image/webp", "1.webp"),
            make_item(jpeg_bytes, "image/jpeg", "2.jpg"),
            make_item(webp_bytes, "image/webp", "3.webp"),
        ]

        result = _run(service, items)

        assert [page.source_name for page in result.pages] == ["2.jpg"]
        assert len(decoders.created) == 1
        assert [outcome.succeeded for outcome in result.outcomes] == [False, True, False]

    def test_failed_item_recorded_and_skipped(self, settings, jpeg_bytes, corrupt_bytes):
        service = ConversionService(settings)
        items = [
            make_item(corrupt_bytes, "image/jpeg", "broken.jpg"),
            make_item(jpeg_bytes, "image/jpeg", "good.jpg"),
            make_item(b"plain text", "text/plain", "notes.txt"),
        ]

        result = _run(service, items)

        assert result.page_count == 1
        assert result.skipped_count == 2
        assert result.outcomes[1].page_number == 1
        assert result.outcomes[0].error
        assert "unsupported content type" in result.outcomes[2].error

    def test_read_failure_skips_only_that_item(self, settings, jpeg_bytes):
        service = ConversionService(settings)
        items = [
            UploadedItem(name="dropped.jpg", content_type="image/jpeg", source=ResetSource(), declared_size=None),
            make_item(jpeg_bytes, "image/jpeg", "good.jpg"),
        ]

        result = _run(service, items)

        assert page_sizes(result.content) == [(40, 30)]
        assert result.skipped_count == 1
        assert "OSError: stream reset" in result.outcomes[0].error
        assert result.outcomes[1].page_number == 1

    def test_zero_pages_fails_job(self, settings, corrupt_bytes):
        encoder = ReportLabEncoder()
        pipeline = ConversionService(settings).create_pipeline(encoder)
        job = ConversionJob(items=[make_item(corrupt_bytes, "image/png")])

        with pytest.raises(EmptyResultError):
            asyncio.run(pipeline.run(job, OutputDocument(encoder)))

        assert pipeline.state is PipelineState.FAILED

    def test_success_ends_done(self, settings, jpeg_bytes):
        encoder = ReportLabEncoder()
        pipeline = ConversionService(settings).create_pipeline(encoder)
        document = OutputDocument(encoder)

        asyncio.run(pipeline.run(ConversionJob(items=[make_item(jpeg_bytes, "image/jpeg")]), document))

        assert pipeline.state is PipelineState.DONE
        assert len(document) == 1

    def test_pipeline_is_single_use(self, settings, jpeg_bytes):
        encoder = ReportLabEncoder()
        pipeline = ConversionService(settings).create_pipeline(encoder)
        document = OutputDocument(encoder)
        asyncio.run(pipeline.run(ConversionJob(items=[make_item(jpeg_bytes, "image/jpeg")]), document))

        with pytest.raises(RuntimeError):
            asyncio.run(pipeline.run(ConversionJob(items=[make_item(jpeg_bytes, "image/jpeg")]), document))

    def test_yields_once_after_every_item(self, settings, monkeypatch, jpeg_bytes, corrupt_bytes):
        delays = []

        async def fake_sleep(delay):
            delays.append(delay)

        monkeypatch.setattr(pipeline_module.asyncio, "sleep", fake_sleep)
        service = ConversionService(settings)
        items = [
            make_item(jpeg_bytes, "image/jpeg"),
            make_item(corrupt_bytes, "image/jpeg"),
            make_item(jpeg_bytes, "image/jpeg"),
        ]

        _run(service, items)

        assert delays == [0, 0, 0]

    def test_repeated_conversion_is_structurally_identical(self, settings, jpeg_bytes, png_bytes, webp_bytes):
        service = ConversionService(settings)

        def batch():
            return [
                make_item(jpeg_bytes, "image/jpeg"),
                make_item(png_bytes, "image/png"),
                make_item(webp_bytes, "image/webp"),
            ]

        first = _run(service, batch())
        second = _run(service, batch())

        assert first.pages == second.pages
        assert page_sizes(first.content) == page_sizes(second.content)
