"""Presenter and headless adapters used by the CLI and tests."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

from ..preview.diagnostics import DiagnosticRecord, DiagnosticSeverity
from ..preview.errors import ErrorMessages
from ..preview.interfaces import PreviewPanel
from ..utils import file_io
from .templates import render_error_html, render_loading_html

__all__ = ["HtmlPreviewPresenter", "FilePreviewPanel", "LoggingDiagnosticSink"]

LOGGER = logging.getLogger(__name__)


class HtmlPreviewPresenter:
    """Renders loading, content, and error views into any panel's ``set_html``."""

    def show_loading(self, panel: PreviewPanel, label: str) -> None:
        panel.set_html(render_loading_html(label))

    def show_content(self, panel: PreviewPanel, artifact: str) -> None:
        panel.set_html(artifact or render_error_html(ErrorMessages.NO_PREVIEW))

    def show_error(self, panel: PreviewPanel, message: str, records: Sequence[DiagnosticRecord]) -> None:
        panel.set_html(render_error_html(message, records))


class FilePreviewPanel:
    """Panel that mirrors whatever is shown into a file on disk."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self.html: str | None = None
        self.disposed = False

    def set_html(self, html: str) -> None:
        self.html = html
        file_io.write_text(self.path, html)

    def reveal(self) -> None:
        LOGGER.info("Preview written to %s", self.path)

    def dispose(self) -> None:
        self.disposed = True


class LoggingDiagnosticSink:
    """Emits ``label:line: severity: message`` for each record."""

    def __init__(self, labels: dict[str, str] | None = None) -> None:
        self._labels = labels if labels is not None else {}
        self.latest: dict[str, tuple[DiagnosticRecord, ...]] = {}

    def update(self, document_id: str, records: Sequence[DiagnosticRecord]) -> None:
        self.latest[document_id] = tuple(records)
        label = self._labels.get(document_id, document_id)
        for record in records:
            level = logging.WARNING if record.severity is DiagnosticSeverity.WARNING else logging.ERROR
            LOGGER.log(level, "%s:%d: %s: %s", label, record.display_line(), record.severity.value, record.message)
