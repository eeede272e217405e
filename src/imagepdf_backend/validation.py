"""
Batch-level admission checks.

These run on declared metadata only, before any payload is read. Per-item
size is deliberately not enforced here: an oversized item is skipped during
ingestion instead of failing the whole batch.
"""

from __future__ import annotations

import logging
from typing import Sequence

from .errors import BatchValidationError
from .models import ResourceLimits, UploadedItem

logger = logging.getLogger(__name__)


class RequestValidator:
    def __init__(self, limits: ResourceLimits) -> None:
        self.limits = limits

    def validate(self, items: Sequence[UploadedItem]) -> None:
        """
        Reject a batch that breaches the count or total-size limits.

        Items without a declared size count as zero bytes here; their real
        size is enforced while streaming.

        Raises:
            BatchValidationError: With one of "no images", "too many images"
                or "total size exceeded" as the message prefix
        """
        if not items:
            raise BatchValidationError("no images")

        if len(items) > self.limits.max_item_count:
            logger.warning(f"Rejected batch of {len(items)} items (max {self.limits.max_item_count})")
            raise BatchValidationError(f"too many images (max {self.limits.max_item_count})")

        total = sum(item.declared_size or 0 for item in items)
        if total > self.limits.max_total_size_bytes:
            logger.warning(f"Rejected batch of {total} bytes (max {self.limits.max_total_size_bytes})")
            raise BatchValidationError(f"total size exceeded (max {self.limits.max_total_size_bytes} bytes)")
