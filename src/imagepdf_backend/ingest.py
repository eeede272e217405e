from __future__ import annotations

import asyncio
import logging

from .errors import ItemTooLargeError
from .memory import MemoryGovernor
from .models import IngestSettings, ResourceLimits, UploadedItem

logger = logging.getLogger(__name__)


class StreamIngester:
    """
    Reads one item's payload in bounded chunks.

    After every ``yield_threshold_bytes`` read it yields one scheduling turn
    to the event loop and asks the memory governor to resample. The collected
    chunks are joined into a single buffer at the end because both decode
    collaborators need contiguous input.
    """

    def __init__(self, limits: ResourceLimits, settings: IngestSettings, governor: MemoryGovernor) -> None:
        self.limits = limits
        self.chunk_size = settings.chunk_size_bytes
        self.yield_threshold = settings.yield_threshold_bytes
        self.governor = governor

    async def ingest(self, item: UploadedItem) -> bytes:
        """
        Collect the full payload of ``item``.

        Raises:
            ItemTooLargeError: If the declared size exceeds the per-item
                ceiling, or the bytes actually read exceed the ceiling or the
                declared size
        """
        ceiling = self.limits.max_item_size_bytes
        if item.declared_size is not None and item.declared_size > ceiling:
            raise ItemTooLargeError(item.name, f"declared size {item.declared_size} exceeds {ceiling} bytes")
        limit = ceiling if item.declared_size is None else item.declared_size

        chunks: list[bytes] = []
        received = 0
        since_yield = 0
        while chunk := await item.source.read(self.chunk_size):
            received += len(chunk)
            if received > limit:
                if limit < ceiling:
                    raise ItemTooLargeError(item.name, f"payload exceeds declared size of {limit} bytes")
                raise ItemTooLargeError(item.name, f"payload exceeds {ceiling} bytes")
            chunks.append(chunk)
            since_yield += len(chunk)
            if since_yield >= self.yield_threshold:
                since_yield = 0
                await asyncio.sleep(0)
                self.governor.check()

        payload = b"".join(chunks)
        logger.debug(f"Ingested {item.name} ({received} bytes)")
        return payload
