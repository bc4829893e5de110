"""Error taxonomy for preview processing.

Callers branch on :class:`ProcessingErrorKind` rather than on message text.
Only the unrecoverable kinds are ever raised; ``VALIDATION_FAILURE`` and
``MALFORMED_INPUT`` exist so the outcome of a run can be recorded uniformly
on the document state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Sequence

from .diagnostics import DiagnosticRecord

__all__ = ["ProcessingErrorKind", "ProcessingError", "ErrorMessages"]


class ProcessingErrorKind(Enum):
    TOOL_NOT_FOUND = "tool_not_found"
    TIMEOUT = "timeout"
    VALIDATION_FAILURE = "validation_failure"
    OUTPUT_READ_FAILURE = "output_read_failure"
    INPUT_WRITE_FAILURE = "input_write_failure"
    MALFORMED_INPUT = "malformed_input"
    UNEXPECTED = "unexpected"


_RECOVERABLE_KINDS = frozenset(
    {ProcessingErrorKind.VALIDATION_FAILURE, ProcessingErrorKind.MALFORMED_INPUT}
)


class ErrorMessages:
    """User-facing messages shown in logs and preview panels."""

    FILE_WRITE = "Failed to write temporary XML file"
    FILE_READ = "Failed to read generated HTML file"
    INVALID_OUTPUT = "xml2rfc did not generate valid HTML output"
    COMMAND_NOT_FOUND = "xml2rfc command not found. Please install xml2rfc: pip install xml2rfc"
    TIMEOUT = "xml2rfc process timed out"
    OUTPUT_LIMIT = "xml2rfc output exceeded {limit} bytes"
    COMPILE_FAILED = "Failed to compile RFC XML"
    PROCESSING_ERROR = "Processing Error"
    NOT_RFC = "Not an RFC XML document"
    NO_PREVIEW = "Failed to generate preview"
    UNKNOWN = "Unknown error occurred"


@dataclass
class ProcessingError(Exception):
    """Tagged failure raised by the external processor.

    Attributes:
        kind: Taxonomy entry used for branching.
        message: Human-readable summary.
        details: Raw text captured from the failing step, if any.
        diagnostics: Records parsed before the failure occurred.
    """

    kind: ProcessingErrorKind
    message: str
    details: str | None = None
    diagnostics: tuple[DiagnosticRecord, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)
        self.diagnostics = tuple(self.diagnostics)

    @property
    def recoverable(self) -> bool:
        return self.kind in _RECOVERABLE_KINDS

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"kind": self.kind.value, "message": self.message}
        if self.details:
            result["details"] = self.details
        if self.diagnostics:
            result["diagnostic_count"] = len(self.diagnostics)
        return result

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.message}"

    @classmethod
    def validation_failure(
        cls, details: str, diagnostics: Sequence[DiagnosticRecord] = ()
    ) -> "ProcessingError":
        return cls(
            kind=ProcessingErrorKind.VALIDATION_FAILURE,
            message=ErrorMessages.COMPILE_FAILED,
            details=details,
            diagnostics=tuple(diagnostics),
        )
