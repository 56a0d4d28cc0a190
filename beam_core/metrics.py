import statistics
import threading
import time
from collections import deque
from typing import Dict


class CallMetrics:
    """Collects rolling statistics for backend calls."""

    def __init__(self, window: int = 200):
        self._lock = threading.Lock()
        self._durations = deque(maxlen=window)
        self._attempted = 0
        self._failed = 0
        self._start = time.time()

    def record_call(self, duration_ms: float, failed: bool = False) -> None:
        with self._lock:
            self._attempted += 1
            if failed:
                self._failed += 1
            self._durations.append(duration_ms)

    def snapshot(self) -> Dict[str, float]:
        with self._lock:
            avg = statistics.fmean(self._durations) if self._durations else 0.0
            uptime = time.time() - self._start
            return {
                "avg_ms": avg,
                "attempted": self._attempted,
                "failed": self._failed,
                "uptime": uptime,
                "call_rate": (self._attempted / uptime) if uptime else 0.0,
            }
