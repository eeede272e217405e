"""
Per-job conversion driver.

The pipeline walks the job's items in submission order through
ingest -> decode -> compose. A failure in any stage of one item is logged
and the item is skipped; the job only fails when no page was produced.
Control is handed back to the event loop once after every item.

State machine::

    PENDING -> INGESTING(i) -> DECODING(i) -> COMPOSING(i) -> (i + 1 | DONE)
                   |               |               |
                   +---------------+---------------+--> INGESTING(i + 1)

    DONE requires at least one page; otherwise the pipeline ends FAILED.
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from .dispatch import FormatDispatcher
from .document import OutputDocument, PageComposer
from .errors import EmptyResultError, ItemDecodeError, ItemError, ItemReadError, ItemTooLargeError, UnsupportedFormatError
from .ingest import StreamIngester
from .models import ConversionJob, ItemOutcome, PipelineState, UploadedItem

logger = logging.getLogger(__name__)


class ConversionPipeline:
    """
    Drives one job. Instances are single-use.

    Attributes:
        state: Current PipelineState
        current_index: Index of the item being processed, if any
        outcomes: One ItemOutcome per processed item, in submission order
    """

    def __init__(
        self,
        ingester: StreamIngester,
        dispatcher: FormatDispatcher,
        composer: Optional[PageComposer] = None,
    ) -> None:
        self.ingester = ingester
        self.dispatcher = dispatcher
        self.composer = composer or PageComposer()
        self.state = PipelineState.PENDING
        self.current_index: Optional[int] = None
        self.outcomes: List[ItemOutcome] = []

    def _transition(self, state: PipelineState) -> None:
        logger.debug(f"Pipeline {self.state.value} -> {state.value} (item {self.current_index})")
        self.state = state

    async def run(self, job: ConversionJob, document: OutputDocument) -> OutputDocument:
        """
        Convert every item of ``job`` into pages of ``document``.

        Raises:
            EmptyResultError: If no item produced a page
            RuntimeError: If the pipeline was already used
        """
        if self.state is not PipelineState.PENDING:
            raise RuntimeError("Pipeline instances are single-use.")

        logger.info(f"Converting {len(job.items)} item(s)")
        for index, item in enumerate(job.items):
            self.current_index = index
            try:
                await self._process_item(item, document)
            except ItemError as exc:
                self._record_failure(index, item, exc)
            else:
                self.outcomes.append(ItemOutcome(index=index, name=item.name, page_number=len(document)))
            await asyncio.sleep(0)

        self.current_index = None
        if len(document) == 0:
            self._transition(PipelineState.FAILED)
            logger.warning(f"No valid pages produced from {len(job.items)} item(s)")
            raise EmptyResultError()

        self._transition(PipelineState.DONE)
        logger.info(f"Produced {len(document)} page(s), skipped {len(job.items) - len(document)} item(s)")
        return document

    async def _process_item(self, item: UploadedItem, document: OutputDocument) -> None:
        self._transition(PipelineState.INGESTING)
        try:
            data = await self.ingester.ingest(item)
        except ItemError:
            raise
        except Exception as exc:
            raise ItemReadError(item.name, f"{type(exc).__name__}: {exc}") from exc

        self._transition(PipelineState.DECODING)
        decoded = await self.dispatcher.decode(item, data)
        del data

        self._transition(PipelineState.COMPOSING)
        try:
            self.composer.compose(document, decoded, item)
        except Exception as exc:
            raise ItemDecodeError(item.name, f"{type(exc).__name__}: {exc}") from exc

    def _record_failure(self, index: int, item: UploadedItem, exc: ItemError) -> None:
        if isinstance(exc, (UnsupportedFormatError, ItemTooLargeError)):
            logger.warning(f"Skipping {item.name}: {exc.reason}")
        else:
            logger.error(f"Failed to convert {item.name} during {self.state.value}: {exc.reason}")
        self.outcomes.append(ItemOutcome(index=index, name=item.name, error=exc.reason))
