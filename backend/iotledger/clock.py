import time
import threading


class LogicalClock:
    """Nanosecond wall clock that never repeats or goes backwards."""

    def __init__(self, source=time.time_ns):
        self._source = source
        self._last = 0
        self._lock = threading.Lock()

    def now(self) -> int:
        with self._lock:
            value = max(self._source(), self._last + 1)
            self._last = value
            return value
