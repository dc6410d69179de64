"""
Metrics utilities - request latency and per-source response counts.
"""
import time
from collections import Counter
from typing import Optional


class Timer:
    """Simple timer for measuring operation latency."""

    def __init__(self):
        self._start: Optional[float] = None
        self._end: Optional[float] = None

    def start(self) -> "Timer":
        self._start = time.monotonic()
        return self

    def stop(self) -> int:
        """Stop timer and return elapsed milliseconds."""
        self._end = time.monotonic()
        return self.elapsed_ms

    @property
    def elapsed_ms(self) -> int:
        """Return elapsed time in milliseconds."""
        if self._start is None:
            return 0
        end = self._end or time.monotonic()
        return int((end - self._start) * 1000)


def response_time_bucket(ms: int) -> str:
    """Categorize chat response time into display buckets."""
    if ms < 100:
        return "0-100ms"
    elif ms < 1000:
        return "100ms-1s"
    elif ms < 5000:
        return "1-5s"
    else:
        return "5s+"


class ResponseMetrics:
    """In-process counters of chat replies by source and latency bucket."""

    def __init__(self):
        self.by_source: Counter = Counter()
        self.by_latency: Counter = Counter()
        self.total_tokens = 0

    def record(self, source: str, processing_time_ms: int, tokens_used: int = 0) -> None:
        self.by_source[source] += 1
        self.by_latency[response_time_bucket(processing_time_ms)] += 1
        self.total_tokens += tokens_used

    def snapshot(self) -> dict:
        total = sum(self.by_source.values())
        return {
            "total_responses": total,
            "by_source": dict(self.by_source),
            "by_latency": dict(self.by_latency),
            "total_tokens": self.total_tokens,
            # share of replies that never reached the LLM
            "deflection_rate": round(
                1 - self.by_source.get("claude_ai", 0) / total, 3
            ) if total else 0.0,
        }
