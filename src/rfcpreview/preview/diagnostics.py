"""Structured diagnostics extracted from xml2rfc's stderr stream."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Sequence

__all__ = [
    "DiagnosticSeverity",
    "DiagnosticRecord",
    "DiagnosticRule",
    "DEFAULT_RULES",
    "parse_diagnostics",
]


class DiagnosticSeverity(Enum):
    """Severity levels reported by the converter."""

    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True, slots=True)
class DiagnosticRecord:
    """One line-addressable problem; ``line`` is zero-based."""

    line: int
    severity: DiagnosticSeverity
    message: str

    def display_line(self) -> int:
        return self.line + 1


Extractor = Callable[["re.Match[str]"], DiagnosticRecord]


@dataclass(frozen=True, slots=True)
class DiagnosticRule:
    """Pairs a line pattern with the function that builds a record from a match."""

    name: str
    pattern: re.Pattern[str]
    extract: Extractor

    def apply(self, line: str) -> DiagnosticRecord | None:
        match = self.pattern.match(line)
        if match is None:
            return None
        return self.extract(match)


def _zero_based(raw: str) -> int:
    return max(0, int(raw) - 1)


def _extract_validation(match: "re.Match[str]") -> DiagnosticRecord:
    keyword = match.group("severity")
    severity = DiagnosticSeverity.WARNING if keyword == "Warning" else DiagnosticSeverity.ERROR
    return DiagnosticRecord(
        line=_zero_based(match.group("line")),
        severity=severity,
        message=match.group("message").strip(),
    )


def _extract_xml_error(match: "re.Match[str]") -> DiagnosticRecord:
    return DiagnosticRecord(
        line=_zero_based(match.group("line")),
        severity=DiagnosticSeverity.ERROR,
        message=match.group("message").strip(),
    )


# Order matters: the first matching rule wins.
DEFAULT_RULES: tuple[DiagnosticRule, ...] = (
    DiagnosticRule(
        name="validation",
        pattern=re.compile(
            r"^(?P<source>.+?)\((?P<line>\d+)\): (?P<severity>Warning|Error): (?P<message>.+)$"
        ),
        extract=_extract_validation,
    ),
    DiagnosticRule(
        name="xml",
        pattern=re.compile(r"^(?P<source>.+?): Line (?P<line>\d+): (?P<message>.+)$"),
        extract=_extract_xml_error,
    ),
)


def parse_diagnostics(
    text: str | None,
    rules: Sequence[DiagnosticRule] = DEFAULT_RULES,
) -> list[DiagnosticRecord]:
    """Convert free-form converter output into records, preserving input order.

    Blank lines and lines no rule recognises are dropped silently.
    """

    if not text:
        return []
    return list(_iter_records(text.splitlines(), rules))


def _iter_records(lines: Iterable[str], rules: Sequence[DiagnosticRule]) -> Iterable[DiagnosticRecord]:
    for line in lines:
        if not line.strip():
            continue
        for rule in rules:
            record = rule.apply(line)
            if record is not None:
                yield record
                break
