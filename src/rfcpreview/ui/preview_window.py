"""Qt window that shows the rendered preview next to a problems list."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Sequence

from PySide6.QtCore import QFileSystemWatcher, Qt
from PySide6.QtGui import QCloseEvent
from PySide6.QtWidgets import QListWidget, QListWidgetItem, QMainWindow, QSplitter, QTextBrowser

from ..preview.diagnostics import DiagnosticRecord, DiagnosticSeverity
from ..preview.interfaces import DocumentIdentity, DocumentSnapshot
from ..utils import file_io

__all__ = ["PreviewWindow", "QtPreviewPanel", "QtDiagnosticSink", "FileWatchHost"]

LOGGER = logging.getLogger(__name__)


class PreviewWindow(QMainWindow):
    """Main window: HTML preview on top, diagnostics below."""

    def __init__(self, title: str, *, on_closed: Callable[[], None] | None = None) -> None:
        super().__init__()
        self._on_closed = on_closed
        self.closing = False
        self.setWindowTitle(f"📄 {title}")
        self.resize(960, 720)

        self.browser = QTextBrowser(self)
        self.browser.setObjectName("rfc-preview-browser")
        self.browser.setOpenExternalLinks(True)
        self.problems = QListWidget(self)
        self.problems.setObjectName("rfc-preview-problems")

        splitter = QSplitter(Qt.Orientation.Vertical, self)
        splitter.addWidget(self.browser)
        splitter.addWidget(self.problems)
        splitter.setStretchFactor(0, 4)
        splitter.setStretchFactor(1, 1)
        self.setCentralWidget(splitter)

    def set_problems(self, records: Sequence[DiagnosticRecord]) -> None:
        self.problems.clear()
        for record in records:
            prefix = "⚠" if record.severity is DiagnosticSeverity.WARNING else "✖"
            item = QListWidgetItem(f"{prefix} Line {record.display_line()}: {record.message}")
            item.setData(Qt.ItemDataRole.UserRole, record.line)
            self.problems.addItem(item)

    def closeEvent(self, event: QCloseEvent) -> None:  # noqa: N802 - Qt override
        self.closing = True
        callback, self._on_closed = self._on_closed, None
        super().closeEvent(event)
        if callback is not None:
            callback()


class QtPreviewPanel:
    """Adapts :class:`PreviewWindow` to the preview panel protocol."""

    def __init__(self, window: PreviewWindow) -> None:
        self._window = window
        self._disposed = False

    def set_html(self, html: str) -> None:
        if not self._disposed:
            self._window.browser.setHtml(html)

    def reveal(self) -> None:
        if self._disposed:
            return
        self._window.show()
        self._window.raise_()
        self._window.activateWindow()

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        if not self._window.closing:
            self._window.close()


class QtDiagnosticSink:
    """Feeds diagnostics for one document into the window's problems list."""

    def __init__(self, window: PreviewWindow, document_id: str) -> None:
        self._window = window
        self._document_id = document_id

    def update(self, document_id: str, records: Sequence[DiagnosticRecord]) -> None:
        if document_id == self._document_id:
            self._window.set_problems(records)


class FileWatchHost:
    """Turns on-disk changes of one file into document update events."""

    def __init__(self, path: Path | str, on_change: Callable[[DocumentSnapshot], object]) -> None:
        self.path = Path(path).expanduser().resolve()
        self.identity = DocumentIdentity.from_path(self.path)
        self._on_change = on_change
        self._watcher = QFileSystemWatcher([str(self.path)])
        self._watcher.fileChanged.connect(self._handle_file_changed)

    def snapshot(self) -> DocumentSnapshot:
        return DocumentSnapshot(identity=self.identity, text=file_io.read_text(self.path))

    def _handle_file_changed(self, changed: str) -> None:
        # Editors that save via rename drop the watch; re-add it.
        if changed not in self._watcher.files() and self.path.exists():
            self._watcher.addPath(str(self.path))
        try:
            snapshot = self.snapshot()
        except (OSError, UnicodeDecodeError) as exc:
            LOGGER.warning("Unable to read %s: %s", self.path, exc)
            return
        self._on_change(snapshot)
