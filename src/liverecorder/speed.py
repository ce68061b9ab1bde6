"""
Download speed sampling for live stream sessions.
"""

import time
from typing import Callable, Optional


SAMPLE_INTERVAL = 1.0  # seconds


class SpeedSampler:
    """
    Rolling throughput estimator fed by read byte counts.

    Bytes are accumulated until more than SAMPLE_INTERVAL seconds have passed
    since the last published sample, then the average rate over that window is
    published and the window restarts. The published rate therefore changes at
    most once per second.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._last_sample_at = clock()
        self._accumulated = 0
        self._rate = 0.0

    @property
    def rate(self) -> float:
        """Last published rate in bytes per second."""
        return self._rate

    @property
    def rate_kibps(self) -> float:
        """Last published rate in KiB per second."""
        return self._rate / 1024

    def record(self, bytes_read: int) -> Optional[float]:
        """
        Account for one read.

        Returns:
            The newly published rate in bytes/sec, or None if the sample
            window is still open.
        """
        now = self._clock()
        elapsed = now - self._last_sample_at
        self._accumulated += bytes_read
        if elapsed > SAMPLE_INTERVAL:
            self._rate = self._accumulated / elapsed
            self._last_sample_at = now
            self._accumulated = 0
            return self._rate
        return None

    def reset(self) -> None:
        """Drop accumulated bytes and the published rate, restart the window."""
        self._accumulated = 0
        self._rate = 0.0
        self._last_sample_at = self._clock()
