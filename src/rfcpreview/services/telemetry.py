"""Per-run telemetry for converter invocations."""

from __future__ import annotations

import logging
import time
from collections import Counter, deque
from dataclasses import dataclass, field
from threading import Lock
from typing import Protocol

__all__ = ["ProcessingRunEvent", "TelemetrySink", "InMemoryTelemetrySink", "NullTelemetrySink"]

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ProcessingRunEvent:
    """One completed (or failed) converter run."""

    document_id: str
    outcome: str
    duration_ms: float
    diagnostic_count: int
    timestamp: float = field(default_factory=time.time)


class TelemetrySink(Protocol):
    """Sink interface used to collect telemetry events."""

    def record(self, event: ProcessingRunEvent) -> None:  # pragma: no cover - protocol stub
        ...


class NullTelemetrySink:
    """Discards events; logs them at DEBUG."""

    def record(self, event: ProcessingRunEvent) -> None:
        LOGGER.debug(
            "Run %s for %s took %.1f ms (%d diagnostics)",
            event.outcome,
            event.document_id,
            event.duration_ms,
            event.diagnostic_count,
        )


class InMemoryTelemetrySink:
    """Ring-buffer telemetry sink for local inspection and tests."""

    def __init__(self, capacity: int = 200) -> None:
        self._capacity = max(10, capacity)
        self._buffer: deque[ProcessingRunEvent] = deque(maxlen=self._capacity)
        self._lock = Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def record(self, event: ProcessingRunEvent) -> None:
        with self._lock:
            self._buffer.append(event)

    def tail(self, limit: int | None = None) -> list[ProcessingRunEvent]:
        with self._lock:
            events = list(self._buffer)
        if limit is None or limit >= len(events):
            return events
        return events[-limit:]

    def outcome_counts(self) -> dict[str, int]:
        with self._lock:
            return dict(Counter(event.outcome for event in self._buffer))

    def __len__(self) -> int:
        with self._lock:
            return len(self._buffer)
