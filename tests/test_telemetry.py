"""Tests for converter run telemetry sinks."""

from __future__ import annotations

import logging

import pytest

from rfcpreview.services.telemetry import InMemoryTelemetrySink, NullTelemetrySink, ProcessingRunEvent


def _event(outcome: str, index: int = 0) -> ProcessingRunEvent:
    return ProcessingRunEvent(
        document_id=f"file:///doc-{index}.xml",
        outcome=outcome,
        duration_ms=float(index),
        diagnostic_count=index,
    )


def test_in_memory_sink_keeps_recent_events() -> None:
    sink = InMemoryTelemetrySink(capacity=10)
    for index in range(15):
        sink.record(_event("success" if index % 3 else "timeout", index))

    assert len(sink) == 10
    assert [event.duration_ms for event in sink.tail(2)] == [13.0, 14.0]
    assert sink.tail()[0].duration_ms == 5.0
    assert sink.outcome_counts() == {"success": 7, "timeout": 3}


def test_capacity_has_a_floor() -> None:
    assert InMemoryTelemetrySink(capacity=1).capacity == 10


def test_null_sink_logs_at_debug(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.DEBUG, logger="rfcpreview.services.telemetry"):
        NullTelemetrySink().record(_event("success", 2))

    assert "Run success for file:///doc-2.xml" in caplog.text
