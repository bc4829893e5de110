"""Wires document events to debounced converter runs and their consumers."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from dataclasses import dataclass
from typing import Sequence

from ..services.settings import PreviewSettings
from ..services.telemetry import NullTelemetrySink, ProcessingRunEvent, TelemetrySink
from .diagnostics import DiagnosticRecord
from .document_state import DocumentState
from .errors import ErrorMessages, ProcessingError, ProcessingErrorKind
from .interfaces import DiagnosticSink, DocumentIdentity, DocumentSnapshot, PreviewPanel, UIPresenter
from .processor import ExternalProcessor, ProcessingResult
from .registry import DocumentRegistry

__all__ = ["PreviewOrchestrator", "ScheduleRequest"]

LOGGER = logging.getLogger(__name__)
_IDLE_POLL_SECONDS = 0.01


@dataclass(frozen=True, slots=True)
class ScheduleRequest:
    """Message placed on the scheduling channel when a debounce timer fires."""

    document_id: str
    requested_at: float


class PreviewOrchestrator:
    """Owns document states and runs at most one conversion per document.

    Debounce timers post :class:`ScheduleRequest` messages onto a queue that a
    single consumer task drains. The consumer refuses requests for documents
    that already have a run in flight and bounds total concurrency with
    ``settings.max_concurrent_runs``.
    """

    def __init__(
        self,
        *,
        processor: ExternalProcessor,
        diagnostic_sink: DiagnosticSink,
        presenter: UIPresenter,
        settings: PreviewSettings | None = None,
        registry: DocumentRegistry | None = None,
        telemetry: TelemetrySink | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._processor = processor
        self._sink = diagnostic_sink
        self._presenter = presenter
        self._settings = settings or processor.settings
        self._registry = registry or DocumentRegistry()
        self._telemetry = telemetry or NullTelemetrySink()
        self._loop = loop or asyncio.get_event_loop()
        self._queue: asyncio.Queue[ScheduleRequest] = asyncio.Queue()
        self._in_flight: dict[str, asyncio.Task[None]] = {}
        self._semaphore = asyncio.Semaphore(max(1, self._settings.max_concurrent_runs))
        self._closed = False
        self._worker_task = self._loop.create_task(self._drain_requests())

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    @property
    def registry(self) -> DocumentRegistry:
        return self._registry

    def get_state(self, document_id: str) -> DocumentState | None:
        return self._registry.get(document_id)

    def get_or_create_state(self, identity: DocumentIdentity) -> DocumentState:
        return self._registry.get_or_create(identity, self._create_state)

    def handle_document_update(self, snapshot: DocumentSnapshot) -> DocumentState | None:
        """Entry point for open, change, and focus events."""

        if self._closed or self._is_ignored(snapshot.identity):
            return None
        state = self.get_or_create_state(snapshot.identity)
        state.update_from_content(snapshot.text)
        # A run will publish its own diagnostics; otherwise keep the sink in
        # step with the validity state right away.
        if not state.needs_processing():
            self._publish(state, state.diagnostics)
        return state

    def open_preview(self, snapshot: DocumentSnapshot, panel: PreviewPanel) -> DocumentState | None:
        """Attach ``panel`` to the document and fill it, processing immediately if needed."""

        if self._closed or self._is_ignored(snapshot.identity):
            return None
        state = self.get_or_create_state(snapshot.identity)
        state.update_from_content(snapshot.text)
        if state.reveal_panel():
            return state

        state.attach_panel(panel)
        label = state.identity.label
        if state.cached_artifact is not None:
            self._presenter.show_content(panel, state.cached_artifact)
        elif state.needs_processing():
            self._presenter.show_loading(panel, label)
            state.cancel_pending()
            self._request_processing(state)
        elif state.is_processing:
            self._presenter.show_loading(panel, label)
        else:
            self._presenter.show_error(panel, self._ineligible_message(state), state.diagnostics)
        return state

    def detach_panel(self, document_id: str) -> None:
        """Forget the panel for ``document_id`` after the host closed it."""

        state = self._registry.get(document_id)
        if state is not None:
            state.detach_panel()

    def close_document(self, document_id: str) -> None:
        state = self._registry.remove(document_id)
        if state is None:
            return
        LOGGER.debug("Closed %s", state.identity.label)
        self._sink.update(document_id, ())

    async def wait_until_idle(self, timeout: float | None = None) -> None:
        """Wait until no timer is armed, no request is queued, and nothing runs."""

        async def _poll() -> None:
            while True:
                busy = (
                    not self._queue.empty()
                    or bool(self._in_flight)
                    or any(state.is_armed or state.is_processing for state in self._registry)
                )
                if not busy:
                    return
                await asyncio.sleep(_IDLE_POLL_SECONDS)

        await asyncio.wait_for(_poll(), timeout=timeout)

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._worker_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._worker_task
        running = list(self._in_flight.values())
        for task in running:
            task.cancel()
        if running:
            await asyncio.gather(*running, return_exceptions=True)
        for state in self._registry.clear():
            self._sink.update(state.document_id, ())

    # ------------------------------------------------------------------
    # Scheduling channel
    # ------------------------------------------------------------------
    def _create_state(self, identity: DocumentIdentity) -> DocumentState:
        return DocumentState(
            identity,
            schedule=self._request_processing,
            loop=self._loop,
            debounce_seconds=self._settings.debounce_seconds,
            root_element=self._settings.root_element,
        )

    def _request_processing(self, state: DocumentState) -> None:
        if self._closed:
            return
        self._queue.put_nowait(ScheduleRequest(document_id=state.document_id, requested_at=time.monotonic()))

    async def _drain_requests(self) -> None:
        while not self._closed:
            request = await self._queue.get()
            try:
                self._dispatch(request)
            except Exception:  # pragma: no cover - keep the consumer alive
                LOGGER.exception("Failed to dispatch processing request for %s", request.document_id)
            finally:
                self._queue.task_done()

    def _dispatch(self, request: ScheduleRequest) -> None:
        state = self._registry.get(request.document_id)
        if state is None or state.disposed:
            LOGGER.debug("Dropping request for closed document %s", request.document_id)
            return
        if not state.needs_processing():
            LOGGER.debug("Skipping request for %s; nothing to render", state.identity.label)
            return
        if request.document_id in self._in_flight:
            # A run for a closed predecessor still holds the document; _run
            # re-queues this state when that run ends.
            LOGGER.debug("Deferring %s until the previous run for it ends", state.identity.label)
            return
        LOGGER.debug(
            "Starting run for %s after %.1f ms in queue",
            state.identity.label,
            (time.monotonic() - request.requested_at) * 1000.0,
        )
        state.start_processing()
        task = self._loop.create_task(self._run(state))
        self._in_flight[request.document_id] = task

    async def _run(self, state: DocumentState) -> None:
        document_id = state.document_id
        started = time.perf_counter()
        try:
            async with self._semaphore:
                await self._convert(state, started)
        finally:
            if self._in_flight.get(document_id) is asyncio.current_task():
                self._in_flight.pop(document_id, None)
            self._resume_successor(state)

    def _resume_successor(self, finished: DocumentState) -> None:
        successor = self._registry.get(finished.document_id)
        if self._closed or successor is None or successor is finished:
            return
        if successor.needs_processing() and not successor.is_armed:
            LOGGER.debug("Resuming deferred run for reopened %s", successor.identity.label)
            self._request_processing(successor)

    async def _convert(self, state: DocumentState, started: float) -> None:
        content = state.content
        published: list[tuple[DiagnosticRecord, ...]] = []

        def _on_diagnostics(records: Sequence[DiagnosticRecord]) -> None:
            state.record_diagnostics(records)
            published.append(state.diagnostics)
            self._publish(state, state.diagnostics)

        try:
            result = await self._processor.process(content, on_diagnostics=_on_diagnostics)
        except ProcessingError as exc:
            LOGGER.warning("Processing %s failed: %s", state.identity.label, exc)
            self._fail(state, exc, started)
            return
        except Exception as exc:
            LOGGER.exception("Unexpected error while processing %s", state.identity.label)
            error = ProcessingError(kind=ProcessingErrorKind.UNEXPECTED, message=str(exc) or ErrorMessages.UNKNOWN)
            self._fail(state, error, started)
            return

        if state.record_diagnostics(result.diagnostics) or not published:
            self._publish(state, state.diagnostics)

        error = None if result.succeeded else ProcessingError.validation_failure(
            result.error_details or ErrorMessages.UNKNOWN, result.diagnostics
        )
        state.finish_processing(error, result.artifact)
        self._record_run(state, result, started)

        panel = state.panel
        if panel is None or state.disposed:
            return
        if result.artifact is not None:
            self._presenter.show_content(panel, result.artifact)
        else:
            self._presenter.show_error(panel, ErrorMessages.COMPILE_FAILED, result.diagnostics)

    def _fail(self, state: DocumentState, error: ProcessingError, started: float) -> None:
        if error.diagnostics and state.record_diagnostics(error.diagnostics):
            self._publish(state, state.diagnostics)
        state.finish_processing(error)
        self._telemetry.record(
            ProcessingRunEvent(
                document_id=state.document_id,
                outcome=error.kind.value,
                duration_ms=(time.perf_counter() - started) * 1000.0,
                diagnostic_count=len(error.diagnostics),
            )
        )
        if state.panel is not None and not state.disposed:
            self._presenter.show_error(state.panel, ErrorMessages.PROCESSING_ERROR, state.diagnostics)

    def _record_run(self, state: DocumentState, result: ProcessingResult, started: float) -> None:
        outcome = "success" if result.succeeded else ProcessingErrorKind.VALIDATION_FAILURE.value
        self._telemetry.record(
            ProcessingRunEvent(
                document_id=state.document_id,
                outcome=outcome,
                duration_ms=(time.perf_counter() - started) * 1000.0,
                diagnostic_count=len(result.diagnostics),
            )
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _publish(self, state: DocumentState, records: Sequence[DiagnosticRecord]) -> None:
        if state.disposed or self._registry.get(state.document_id) is not state:
            return
        self._sink.update(state.document_id, records)

    def _is_ignored(self, identity: DocumentIdentity) -> bool:
        return any(identity.uri.endswith(suffix) for suffix in self._settings.ignored_suffixes)

    @staticmethod
    def _ineligible_message(state: DocumentState) -> str:
        check = state.check
        if check is not None and not check.well_formed and check.error:
            return f"{ErrorMessages.NOT_RFC}: line {(check.line or 0) + 1}: {check.error}"
        return ErrorMessages.NOT_RFC
