from __future__ import annotations

import logging
from typing import Optional, Sequence

from .document import OutputDocument
from .errors import EmptyResultError
from .models import ConversionResult, ItemOutcome, OutputSettings
from .utils import sanitize_output_name

logger = logging.getLogger(__name__)


class ResultAssembler:
    """Finalises a document and names the download."""

    def __init__(self, settings: OutputSettings) -> None:
        self.settings = settings

    def filename_for(self, requested_name: Optional[str]) -> str:
        return sanitize_output_name(requested_name, self.settings.default_name, self.settings.extension)

    def assemble(
        self,
        document: OutputDocument,
        requested_name: Optional[str] = None,
        outcomes: Sequence[ItemOutcome] = (),
    ) -> ConversionResult:
        if len(document) == 0:
            raise EmptyResultError()

        content = document.finish()
        filename = self.filename_for(requested_name)
        logger.info(f"Assembled {filename} ({len(document)} pages, {len(content)} bytes)")
        return ConversionResult(
            content=content,
            filename=filename,
            media_type=self.settings.media_type,
            pages=list(document.pages),
            outcomes=list(outcomes),
        )
