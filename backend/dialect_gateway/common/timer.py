"""
Timer Module

Measures upstream latency: time to first byte and total time.
"""

import time
from typing import Optional


class Timer:
    """
    Monotonic request timer

    Example:
        timer = Timer().start()
        # ... send request ...
        timer.mark_first_byte()
        # ... read body ...
        timer.stop()
    """

    def __init__(self):
        self._start_time: Optional[float] = None
        self._first_byte_time: Optional[float] = None
        self._end_time: Optional[float] = None

    def start(self) -> "Timer":
        self._start_time = time.perf_counter()
        self._first_byte_time = None
        self._end_time = None
        return self

    def mark_first_byte(self) -> "Timer":
        """Record the first byte; later calls are ignored."""
        if self._first_byte_time is None:
            self._first_byte_time = time.perf_counter()
        return self

    def stop(self) -> "Timer":
        self._end_time = time.perf_counter()
        if self._first_byte_time is None:
            self._first_byte_time = self._end_time
        return self

    @property
    def first_byte_delay_ms(self) -> Optional[int]:
        if self._start_time is None or self._first_byte_time is None:
            return None
        return int((self._first_byte_time - self._start_time) * 1000)

    @property
    def total_time_ms(self) -> Optional[int]:
        if self._start_time is None or self._end_time is None:
            return None
        return int((self._end_time - self._start_time) * 1000)
