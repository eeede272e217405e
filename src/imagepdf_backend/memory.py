"""
Best-effort memory telemetry.

The governor samples the process resident set size through psutil and, when
usage crosses the warning ratio of the watermark, logs a warning and asks the
garbage collector to run. It never raises and never blocks: when sampling is
unavailable on the host it turns itself off for the rest of its lifetime.
"""

from __future__ import annotations

import gc
import logging
from typing import Callable, Optional

import psutil

logger = logging.getLogger(__name__)

Sampler = Callable[[], Optional[int]]


def process_rss_bytes() -> Optional[int]:
    return psutil.Process().memory_info().rss


class MemoryGovernor:
    def __init__(
        self,
        watermark_bytes: int,
        warning_ratio: float = 0.8,
        sampler: Optional[Sampler] = process_rss_bytes,
        reclaim: Optional[Callable[[], object]] = gc.collect,
    ) -> None:
        self.watermark_bytes = watermark_bytes
        self.warning_ratio = warning_ratio
        self._sampler = sampler
        self._reclaim = reclaim
        self.last_sample: Optional[int] = None
        self.pressure_events = 0

    @property
    def threshold_bytes(self) -> int:
        return int(self.watermark_bytes * self.warning_ratio)

    @property
    def active(self) -> bool:
        return self._sampler is not None

    def check(self) -> bool:
        """
        Sample usage and issue a reclaim hint above the threshold.

        Returns:
            True if usage was above the threshold, False otherwise or when
            sampling is unavailable
        """
        if self._sampler is None:
            return False

        try:
            usage = self._sampler()
        except (psutil.Error, OSError, NotImplementedError) as exc:
            logger.info(f"Memory sampling unavailable, disabling governor: {exc}")
            self._sampler = None
            return False

        if usage is None:
            return False

        self.last_sample = usage
        if usage <= self.threshold_bytes:
            return False

        self.pressure_events += 1
        logger.warning(f"Memory usage {usage} bytes exceeds {self.threshold_bytes} bytes ({self.warning_ratio:.0%} of watermark)")
        if self._reclaim is not None:
            self._reclaim()
        return True
