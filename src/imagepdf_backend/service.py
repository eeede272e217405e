"""
Request-scoped wiring of the conversion components.

ConversionService is the single entry point used by the HTTP layer. It is
safe to share between requests: everything mutable (encoder, WebP decoder,
memory governor, pipeline) is created fresh for each job, so concurrent jobs
never touch the same decoder or document.
"""

from __future__ import annotations

from typing import Callable, Optional

from .assembler import ResultAssembler
from .configuration import load_settings
from .dispatch import DecoderFactory, FormatDispatcher
from .document import OutputDocument
from .imaging import PillowWebPDecoder, ReportLabEncoder
from .ingest import StreamIngester
from .interfaces import DocumentEncoder
from .memory import MemoryGovernor
from .models import AppSettings, ConversionJob, ConversionResult
from .pipeline import ConversionPipeline
from .validation import RequestValidator

EncoderFactory = Callable[[], DocumentEncoder]
GovernorFactory = Callable[[], MemoryGovernor]


class ConversionService:
    """
    Central coordinator for conversion jobs.

    Attributes:
        settings: Resolved application settings
        validator: Batch admission checks shared by every job
        assembler: Output finalisation and naming
    """

    def __init__(
        self,
        settings: Optional[AppSettings] = None,
        encoder_factory: Optional[EncoderFactory] = None,
        decoder_factory: Optional[DecoderFactory] = None,
        governor_factory: Optional[GovernorFactory] = None,
    ) -> None:
        self.settings = settings or load_settings()
        self.validator = RequestValidator(self.settings.limits)
        self.assembler = ResultAssembler(self.settings.output)
        self._encoder_factory = encoder_factory or (lambda: ReportLabEncoder(invariant=self.settings.output.invariant))
        self._decoder_factory = decoder_factory or PillowWebPDecoder
        self._governor_factory = governor_factory or self._default_governor

    def _default_governor(self) -> MemoryGovernor:
        return MemoryGovernor(
            watermark_bytes=self.settings.limits.memory_watermark_bytes,
            warning_ratio=self.settings.memory.warning_ratio,
        )

    def create_pipeline(self, encoder: DocumentEncoder) -> ConversionPipeline:
        ingester = StreamIngester(self.settings.limits, self.settings.ingest, self._governor_factory())
        dispatcher = FormatDispatcher(encoder, self._decoder_factory)
        return ConversionPipeline(ingester, dispatcher)

    async def convert(self, job: ConversionJob) -> ConversionResult:
        """
        Run ``job`` end to end.

        Raises:
            BatchValidationError: If the batch breaches count or size limits
            EmptyResultError: If no item produced a page
        """
        self.validator.validate(job.items)

        encoder = self._encoder_factory()
        document = OutputDocument(encoder)
        pipeline = self.create_pipeline(encoder)
        await pipeline.run(job, document)

        return self.assembler.assemble(document, job.requested_name, pipeline.outcomes)
