"""Per-document validity tracking, debounced scheduling, and result caching."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Callable, Sequence

from ..utils.file_io import compute_text_digest
from .diagnostics import DiagnosticRecord
from .errors import ProcessingError
from .interfaces import DocumentIdentity, PreviewPanel
from .xml_check import XmlCheck, check_xml

__all__ = ["DocumentState", "DocumentStatus", "ScheduleCallback"]

LOGGER = logging.getLogger(__name__)

ScheduleCallback = Callable[["DocumentState"], None]


class DocumentStatus(Enum):
    IDLE = "idle"
    ARMED = "armed"
    PROCESSING = "processing"
    CACHED = "cached"
    FAILED = "failed"
    DISPOSED = "disposed"


class DocumentState:
    """Tracks one document between content changes and converter runs.

    The state never performs I/O itself. When updated content becomes
    eligible for conversion it arms a debounce timer on the event loop; when
    the timer fires, ``schedule`` is called with the state and the owner is
    expected to call :meth:`start_processing` and later
    :meth:`finish_processing`.
    """

    def __init__(
        self,
        identity: DocumentIdentity,
        *,
        schedule: ScheduleCallback | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
        debounce_seconds: float = 0.25,
        root_element: str = "rfc",
    ) -> None:
        self.identity = identity
        self._schedule = schedule
        self._loop = loop or asyncio.get_event_loop()
        self._debounce_seconds = max(0.0, debounce_seconds)
        self._root_element = root_element

        self._content: str | None = None
        self._digest: str | None = None
        self._processing_digest: str | None = None
        self._timer: asyncio.TimerHandle | None = None
        self._disposed = False

        self.check: XmlCheck | None = None
        self.is_well_formed = False
        self.is_target_schema = False
        self.is_processing = False
        self.last_error: ProcessingError | None = None
        self.diagnostics: tuple[DiagnosticRecord, ...] = ()
        self.cached_artifact: str | None = None
        self.panel: PreviewPanel | None = None

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    @property
    def document_id(self) -> str:
        return self.identity.uri

    @property
    def content(self) -> str:
        return self._content or ""

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def is_armed(self) -> bool:
        return self._timer is not None

    @property
    def status(self) -> DocumentStatus:
        if self._disposed:
            return DocumentStatus.DISPOSED
        if self.is_processing:
            return DocumentStatus.PROCESSING
        if self._timer is not None:
            return DocumentStatus.ARMED
        if self.cached_artifact is not None:
            return DocumentStatus.CACHED
        if self.last_error is not None and self.should_process():
            return DocumentStatus.FAILED
        return DocumentStatus.IDLE

    def should_process(self) -> bool:
        """True when the content is well-formed and has the target root."""

        return self.is_well_formed and self.is_target_schema

    def needs_processing(self) -> bool:
        """True when eligible, nothing is cached, and no run is in flight."""

        return (
            not self._disposed
            and self.should_process()
            and self.cached_artifact is None
            and not self.is_processing
        )

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------
    def update_from_content(self, content: str) -> bool:
        """Re-validate ``content``; returns ``False`` when nothing changed."""

        if self._disposed:
            LOGGER.debug("Ignoring update for disposed document %s", self.identity.label)
            return False
        digest = compute_text_digest(content)
        if digest == self._digest:
            return False

        self._content = content
        self._digest = digest
        self.check = check_xml(content, self._root_element)
        self.is_well_formed = self.check.well_formed
        self.is_target_schema = self.check.is_target
        self.cached_artifact = None

        if not self.should_process():
            self._cancel_timer()
            self.diagnostics = ()
            self.last_error = None
            return True

        if self.needs_processing():
            self._arm_timer()
        return True

    def start_processing(self) -> bool:
        """Mark a run as in flight for the current content snapshot."""

        if self._disposed:
            return False
        self._cancel_timer()
        self.is_processing = True
        self.last_error = None
        self._processing_digest = self._digest
        return True

    def finish_processing(
        self,
        error: ProcessingError | None = None,
        artifact: str | None = None,
    ) -> None:
        """Record the outcome of the run started by :meth:`start_processing`.

        If the content changed while the run was in flight the artifact is
        dropped and, when the new content still needs it, a fresh debounce
        timer is armed.
        """

        if self._disposed:
            return
        stale = self._processing_digest != self._digest
        self.is_processing = False
        self._processing_digest = None
        self.last_error = error
        if stale:
            LOGGER.debug("Discarding stale result for %s", self.identity.label)
            if self.needs_processing():
                self._arm_timer()
            return
        if artifact and error is None:
            self.cached_artifact = artifact

    def record_diagnostics(self, records: Sequence[DiagnosticRecord]) -> bool:
        """Store diagnostics of a completed run; returns ``True`` if they changed."""

        if self._disposed or not self.should_process():
            return False
        snapshot = tuple(records)
        if snapshot == self.diagnostics:
            return False
        self.diagnostics = snapshot
        return True

    def cancel_pending(self) -> bool:
        """Cancel an armed debounce timer; returns ``True`` if one was pending."""

        return self._cancel_timer()

    # ------------------------------------------------------------------
    # Panel bookkeeping
    # ------------------------------------------------------------------
    def attach_panel(self, panel: PreviewPanel) -> None:
        if self._disposed:
            return
        self.panel = panel

    def detach_panel(self) -> PreviewPanel | None:
        panel, self.panel = self.panel, None
        return panel

    def reveal_panel(self) -> bool:
        if self.panel is None:
            return False
        self.panel.reveal()
        return True

    def dispose(self) -> None:
        """Cancel timers, release the panel, and drop every cached value."""

        if self._disposed:
            return
        self._cancel_timer()
        panel = self.detach_panel()
        if panel is not None:
            try:
                panel.dispose()
            except Exception:  # pragma: no cover - host widget teardown
                LOGGER.debug("Preview panel dispose failed for %s", self.identity.label, exc_info=True)
        self._disposed = True
        self._content = None
        self._digest = None
        self._processing_digest = None
        self.check = None
        self.cached_artifact = None
        self.diagnostics = ()
        self.last_error = None
        self.is_processing = False

    # ------------------------------------------------------------------
    # Debounce timer
    # ------------------------------------------------------------------
    def _arm_timer(self) -> None:
        if self._schedule is None:
            return
        self._cancel_timer()
        self._timer = self._loop.call_later(self._debounce_seconds, self._on_timer_fired)
        LOGGER.debug("Armed %.0f ms debounce for %s", self._debounce_seconds * 1000, self.identity.label)

    def _cancel_timer(self) -> bool:
        timer, self._timer = self._timer, None
        if timer is None:
            return False
        timer.cancel()
        return True

    def _on_timer_fired(self) -> None:
        self._timer = None
        if self._schedule is None or not self.needs_processing():
            return
        self._schedule(self)
