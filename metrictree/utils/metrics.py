"""
Metrics collection for timing tree construction and queries.
"""

import math
import threading
import time
from collections import defaultdict
from typing import Any, Dict, List, Optional

from .logging_config import get_logger

logger = get_logger(__name__)


class MetricsCollector:
    """Collects counters, gauges and timers behind a single lock."""

    def __init__(self, max_history: int = 1000):
        self.max_history = max_history
        self._lock = threading.Lock()
        self._counters: Dict[str, int] = defaultdict(int)
        self._gauges: Dict[str, float] = defaultdict(float)
        self._timers: Dict[str, List[float]] = defaultdict(list)

    def increment_counter(self, name: str, value: int = 1, tags: Optional[Dict[str, str]] = None):
        """Increment a counter metric."""
        with self._lock:
            self._counters[self._format_key(name, tags)] += value
        logger.debug(f"Counter {name} incremented by {value}")

    def set_gauge(self, name: str, value: float, tags: Optional[Dict[str, str]] = None):
        """Set a gauge metric value."""
        with self._lock:
            self._gauges[self._format_key(name, tags)] = value
        logger.debug(f"Gauge {name} set to {value}")

    def record_timer(self, name: str, duration: float, tags: Optional[Dict[str, str]] = None):
        """Record one duration, in seconds, for a timer."""
        with self._lock:
            key = self._format_key(name, tags)
            values = self._timers[key]
            values.append(duration)
            # Keep only recent timer values
            if len(values) > self.max_history:
                del values[:-self.max_history]
        logger.debug(f"Timer {name} recorded: {duration:.6f}s")

    def get_counter(self, name: str, tags: Optional[Dict[str, str]] = None) -> int:
        with self._lock:
            return self._counters.get(self._format_key(name, tags), 0)

    def get_gauge(self, name: str, tags: Optional[Dict[str, str]] = None) -> float:
        with self._lock:
            return self._gauges.get(self._format_key(name, tags), 0.0)

    def get_timer_stats(self, name: str, tags: Optional[Dict[str, str]] = None) -> Dict[str, float]:
        """Get timer statistics (min, max, avg, stddev, count)."""
        with self._lock:
            return self.summarize(self._timers.get(self._format_key(name, tags), []))

    def get_all_metrics(self) -> Dict[str, Any]:
        """Get all current metrics."""
        with self._lock:
            return {
                'counters': dict(self._counters),
                'gauges': dict(self._gauges),
                'timers': {k: self.summarize(v) for k, v in self._timers.items()},
                'timestamp': time.time()
            }

    @staticmethod
    def summarize(values: List[float]) -> Dict[str, float]:
        if not values:
            return {'min': 0, 'max': 0, 'avg': 0, 'stddev': 0, 'count': 0}

        avg = sum(values) / len(values)
        variance = sum((v - avg) ** 2 for v in values) / len(values)
        return {
            'min': min(values),
            'max': max(values),
            'avg': avg,
            'stddev': math.sqrt(variance),
            'count': len(values)
        }

    def _format_key(self, name: str, tags: Optional[Dict[str, str]]) -> str:
        """Format metric key with tags."""
        if not tags:
            return name

        tag_str = ",".join(f"{k}={v}" for k, v in sorted(tags.items()))
        return f"{name}[{tag_str}]"


class TimerContext:
    """Context manager for timing operations."""

    def __init__(self, metrics: MetricsCollector, name: str, tags: Optional[Dict[str, str]] = None):
        self.metrics = metrics
        self.name = name
        self.tags = tags
        self.start_time: Optional[float] = None
        self.duration: Optional[float] = None

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.start_time is not None:
            self.duration = time.perf_counter() - self.start_time
            self.metrics.record_timer(self.name, self.duration, self.tags)


# Global metrics collector instance
metrics = MetricsCollector()

