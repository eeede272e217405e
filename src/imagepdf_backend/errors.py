"""
Exception taxonomy for conversion jobs.

Job-level errors cross the HTTP boundary; item-level errors are absorbed by
the pipeline, which logs them and skips the item.
"""

from __future__ import annotations


class ConversionError(Exception):
    """Base class for every error raised by this package."""


class JobRejectedError(ConversionError):
    """The job cannot produce a document (maps to HTTP 400)."""


class BatchValidationError(JobRejectedError):
    """Batch count or size limits breached before processing started."""


class EmptyResultError(JobRejectedError):
    """Every item was skipped, so there is nothing to return."""

    def __init__(self, message: str = "no valid pages") -> None:
        super().__init__(message)


class ItemError(ConversionError):
    """One item could not contribute a page."""

    def __init__(self, item_name: str, reason: str) -> None:
        super().__init__(f"{item_name}: {reason}")
        self.item_name = item_name
        self.reason = reason


class ItemTooLargeError(ItemError):
    pass


class ItemReadError(ItemError):
    """The item's byte stream failed before its payload was complete."""


class UnsupportedFormatError(ItemError):
    pass


class ItemDecodeError(ItemError):
    pass


class DecoderUnavailableError(ItemDecodeError):
    """The auxiliary decoder could not be initialised on this host."""
