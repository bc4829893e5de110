"""Document state tracking, converter orchestration, and diagnostic parsing."""

from .diagnostics import DiagnosticRecord, DiagnosticRule, DiagnosticSeverity, parse_diagnostics
from .document_state import DocumentState, DocumentStatus
from .errors import ErrorMessages, ProcessingError, ProcessingErrorKind
from .interfaces import (
    DiagnosticSink,
    DocumentIdentity,
    DocumentSnapshot,
    InMemoryDiagnosticSink,
    PreviewPanel,
    UIPresenter,
)
from .orchestrator import PreviewOrchestrator, ScheduleRequest
from .processor import ExternalProcessor, ProcessingResult, TransientFiles
from .registry import DocumentRegistry
from .xml_check import XmlCheck, check_xml

__all__ = [
    "DiagnosticRecord",
    "DiagnosticRule",
    "DiagnosticSeverity",
    "DiagnosticSink",
    "DocumentIdentity",
    "DocumentRegistry",
    "DocumentSnapshot",
    "DocumentState",
    "DocumentStatus",
    "ErrorMessages",
    "ExternalProcessor",
    "InMemoryDiagnosticSink",
    "PreviewOrchestrator",
    "PreviewPanel",
    "ProcessingError",
    "ProcessingErrorKind",
    "ProcessingResult",
    "ScheduleRequest",
    "TransientFiles",
    "UIPresenter",
    "XmlCheck",
    "check_xml",
    "parse_diagnostics",
]
