"""Host-facing value types and the collaborator protocols the core talks to."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, Sequence, runtime_checkable

from .diagnostics import DiagnosticRecord

__all__ = [
    "DocumentIdentity",
    "DocumentSnapshot",
    "PreviewPanel",
    "DiagnosticSink",
    "UIPresenter",
    "InMemoryDiagnosticSink",
]


@dataclass(frozen=True, slots=True)
class DocumentIdentity:
    """Stable key (``uri``) plus a label suitable for titles and messages."""

    uri: str
    label: str

    @classmethod
    def from_path(cls, path: Path | str) -> "DocumentIdentity":
        resolved = Path(path).expanduser().resolve()
        return cls(uri=resolved.as_uri(), label=resolved.name)


@dataclass(frozen=True, slots=True)
class DocumentSnapshot:
    """Document content as delivered by a host open/change/focus event."""

    identity: DocumentIdentity
    text: str


@runtime_checkable
class PreviewPanel(Protocol):
    """Surface that displays rendered HTML for one document."""

    def set_html(self, html: str) -> None: ...

    def reveal(self) -> None: ...

    def dispose(self) -> None: ...


class DiagnosticSink(Protocol):
    """Receives the full diagnostic set for a document; empty clears it."""

    def update(self, document_id: str, records: Sequence[DiagnosticRecord]) -> None: ...


class UIPresenter(Protocol):
    """Presentation-only adapter that renders states into a panel."""

    def show_loading(self, panel: PreviewPanel, label: str) -> None: ...

    def show_content(self, panel: PreviewPanel, artifact: str) -> None: ...

    def show_error(self, panel: PreviewPanel, message: str, records: Sequence[DiagnosticRecord]) -> None: ...


class InMemoryDiagnosticSink:
    """Keeps the latest diagnostics per document plus an update history."""

    def __init__(self) -> None:
        self._current: dict[str, tuple[DiagnosticRecord, ...]] = {}
        self.history: list[tuple[str, tuple[DiagnosticRecord, ...]]] = []

    def update(self, document_id: str, records: Sequence[DiagnosticRecord]) -> None:
        snapshot = tuple(records)
        self.history.append((document_id, snapshot))
        if snapshot:
            self._current[document_id] = snapshot
        else:
            self._current.pop(document_id, None)

    def get(self, document_id: str) -> tuple[DiagnosticRecord, ...]:
        return self._current.get(document_id, ())

    def __contains__(self, document_id: object) -> bool:
        return document_id in self._current
