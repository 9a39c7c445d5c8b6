"""Observability: metrics, run summary logging and the recent memory-event buffer."""

import time
import uuid
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

import structlog

logger = structlog.get_logger().bind(source="observability")


class Metrics:
    """Simple dict-based metrics collector for counters and timers."""

    def __init__(self):
        self._counters: dict[str, int] = {}
        self._timers: dict[str, list[float]] = {}

    def counter(self, name: str, value: int = 1):
        """Increment a counter by the given value."""
        self._counters[name] = self._counters.get(name, 0) + value

    def get(self, name: str) -> int:
        return self._counters.get(name, 0)

    @contextmanager
    def timer(self, name: str):
        """Context manager to time an operation and store duration."""
        start = time.time()
        try:
            yield
        finally:
            duration = time.time() - start
            if name not in self._timers:
                self._timers[name] = []
            self._timers[name].append(duration)

    def summary(self) -> dict[str, Any]:
        """Return a summary of all collected metrics."""
        timer_summary = {}
        for name, durations in self._timers.items():
            if durations:
                timer_summary[name] = {
                    "count": len(durations),
                    "total": sum(durations),
                    "avg": sum(durations) / len(durations),
                    "min": min(durations),
                    "max": max(durations),
                }
            else:
                timer_summary[name] = {"count": 0}

        return {
            "counters": dict(self._counters),
            "timers": timer_summary,
        }

    def reset(self):
        """Clear all metrics."""
        self._counters.clear()
        self._timers.clear()


@dataclass
class MemoryEvent:
    event_type: str  # extract | resolve | save | synthesize | access
    summary: str
    payload: dict = field(default_factory=dict)
    duration_ms: float | None = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = field(default_factory=datetime.now)


class EventBuffer:
    """Most recent memory events, newest first, with subscriber callbacks."""

    def __init__(self, maxlen: int = 100):
        self._events: deque[MemoryEvent] = deque(maxlen=maxlen)
        self._listeners: set[Callable[[MemoryEvent], None]] = set()

    def emit(
        self,
        event_type: str,
        summary: str,
        payload: dict | None = None,
        duration_ms: float | None = None,
    ) -> MemoryEvent:
        event = MemoryEvent(
            event_type=event_type, summary=summary, payload=payload or {}, duration_ms=duration_ms
        )
        self._events.appendleft(event)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.warning("event_listener_failed", event_type=event_type, error=str(e))
        return event

    def recent(self, limit: int = 20, event_type: str | None = None) -> list[MemoryEvent]:
        events = [e for e in self._events if event_type is None or e.event_type == event_type]
        return events[:limit]

    def subscribe(self, listener: Callable[[MemoryEvent], None]) -> Callable[[], None]:
        """Register a listener. Returns a function that unsubscribes it."""
        self._listeners.add(listener)
        return lambda: self._listeners.discard(listener)

    def clear(self):
        self._events.clear()
        self._listeners.clear()


# Module-level singletons
metrics = Metrics()
events = EventBuffer()


def log_run_summary():
    """Log the current metrics summary via structlog."""
    summary = metrics.summary()
    logger.info("run_summary", **summary)
