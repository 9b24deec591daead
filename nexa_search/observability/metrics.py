"""In-process metrics for the search service.

Series are keyed by name plus optional labels, rendered as
``search.table_failures{index=partners}``. Histograms keep only the most
recent samples so a long-running process has bounded memory.

Metrics written by the search engine:
    search.requests            counter   searches executed
    search.errors              counter   searches that raised
    search.zero_results        counter   searches with total == 0
    search.table_failures      counter   per-table timeouts and errors {index}
    search.analytics_failures  counter   search log writes that failed
    search.suggestion_failures counter   suggestion lookups that failed
    search.indexes             gauge     registered indexes
    search.latency_ms          histogram end-to-end search latency
"""

import threading
import time
from collections import deque
from contextlib import contextmanager
from typing import Any, Iterator, Optional

HISTOGRAM_WINDOW = 1000

Labels = Optional[dict[str, str]]


def series_key(name: str, labels: Labels = None) -> str:
    if not labels:
        return name
    rendered = ",".join(f"{k}={v}" for k, v in sorted(labels.items()))
    return f"{name}{{{rendered}}}"


def _percentile(ordered: list[float], fraction: float) -> float:
    """Nearest-rank percentile of an already sorted, non-empty list."""
    return ordered[min(int(len(ordered) * fraction), len(ordered) - 1)]


class MetricsCollector:
    """Thread-safe store of counters, gauges and windowed histograms."""

    def __init__(self, histogram_window: int = HISTOGRAM_WINDOW):
        self._lock = threading.Lock()
        self._window = histogram_window
        self._counters: dict[str, float] = {}
        self._gauges: dict[str, float] = {}
        self._histograms: dict[str, deque[float]] = {}

    def increment(self, name: str, value: float = 1.0, labels: Labels = None) -> None:
        key = series_key(name, labels)
        with self._lock:
            self._counters[key] = self._counters.get(key, 0) + value

    def set_gauge(self, name: str, value: float, labels: Labels = None) -> None:
        with self._lock:
            self._gauges[series_key(name, labels)] = value

    def observe(self, name: str, value: float, labels: Labels = None) -> None:
        """Add a sample to a histogram, dropping the oldest past the window."""
        key = series_key(name, labels)
        with self._lock:
            samples = self._histograms.get(key)
            if samples is None:
                samples = self._histograms[key] = deque(maxlen=self._window)
            samples.append(value)

    @contextmanager
    def timer(self, name: str, labels: Labels = None) -> Iterator[None]:
        """Observe the wall time of the block, in milliseconds."""
        start = time.perf_counter()
        try:
            yield
        finally:
            self.observe(name, (time.perf_counter() - start) * 1000, labels)

    def get(self, name: str, labels: Labels = None) -> float:
        """Current counter or gauge value; 0 if the series does not exist."""
        key = series_key(name, labels)
        with self._lock:
            if key in self._counters:
                return self._counters[key]
            return self._gauges.get(key, 0)

    def summary(self, name: str, labels: Labels = None) -> dict[str, float]:
        """Count, min, max, mean and p50/p95/p99 of a histogram's window."""
        with self._lock:
            samples = list(self._histograms.get(series_key(name, labels), ()))
        return self._summarize(samples)

    @staticmethod
    def _summarize(samples: list[float]) -> dict[str, float]:
        if not samples:
            return {"count": 0, "min": 0, "max": 0, "avg": 0}

        ordered = sorted(samples)
        return {
            "count": len(ordered),
            "min": ordered[0],
            "max": ordered[-1],
            "avg": sum(ordered) / len(ordered),
            "p50": _percentile(ordered, 0.50),
            "p95": _percentile(ordered, 0.95),
            "p99": _percentile(ordered, 0.99),
        }

    def snapshot(self) -> dict[str, Any]:
        """All series, with histograms reduced to summaries."""
        with self._lock:
            counters = dict(self._counters)
            gauges = dict(self._gauges)
            histograms = {k: list(v) for k, v in self._histograms.items()}

        return {
            "counters": counters,
            "gauges": gauges,
            "histograms": {k: self._summarize(v) for k, v in histograms.items()},
        }

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._gauges.clear()
            self._histograms.clear()


_collector = MetricsCollector()


def get_collector() -> MetricsCollector:
    """The process-wide collector used when none is injected."""
    return _collector
