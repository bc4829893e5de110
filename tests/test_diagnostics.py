"""Tests for the converter stderr parser."""

from __future__ import annotations

import re

from rfcpreview.preview.diagnostics import (
    DEFAULT_RULES,
    DiagnosticRecord,
    DiagnosticRule,
    DiagnosticSeverity,
    parse_diagnostics,
)


def test_validation_lines_become_zero_based_records() -> None:
    text = "draft.xml(12): Error: undefined reference\ndraft.xml(3): Warning: something odd\n"

    records = parse_diagnostics(text)

    assert records == [
        DiagnosticRecord(line=11, severity=DiagnosticSeverity.ERROR, message="undefined reference"),
        DiagnosticRecord(line=2, severity=DiagnosticSeverity.WARNING, message="something odd"),
    ]
    assert records[0].display_line() == 12


def test_reference_lines_parse_exactly() -> None:
    assert parse_diagnostics("doc.xml(12): Warning: undefined reference") == [
        DiagnosticRecord(line=11, severity=DiagnosticSeverity.WARNING, message="undefined reference")
    ]
    assert parse_diagnostics("doc.xml: Line 5: not well-formed") == [
        DiagnosticRecord(line=4, severity=DiagnosticSeverity.ERROR, message="not well-formed")
    ]


def test_xml_error_lines_are_always_errors() -> None:
    records = parse_diagnostics("/tmp/xml2rfc-1.xml: Line 5: not well-formed (invalid token)")

    assert len(records) == 1
    assert records[0].line == 4
    assert records[0].severity is DiagnosticSeverity.ERROR
    assert records[0].message == "not well-formed (invalid token)"


def test_unrecognised_and_blank_lines_are_dropped() -> None:
    text = "\n".join(
        [
            "Parsing file draft.xml",
            "",
            "   ",
            "draft.xml(7): Error: bad anchor",
            "Unable to complete processing",
        ]
    )

    records = parse_diagnostics(text)

    assert [record.line for record in records] == [6]


def test_empty_or_missing_text_yields_nothing() -> None:
    assert parse_diagnostics("") == []
    assert parse_diagnostics(None) == []


def test_line_zero_is_clamped() -> None:
    records = parse_diagnostics("draft.xml(0): Warning: header")

    assert records[0].line == 0


def test_messages_are_stripped_and_order_preserved() -> None:
    text = "a.xml(2): Warning:   padded   \r\nb.xml: Line 9: trailing  \r\n"

    records = parse_diagnostics(text)

    assert [record.message for record in records] == ["padded", "trailing"]
    assert [record.line for record in records] == [1, 8]


def test_validation_rule_wins_over_xml_rule() -> None:
    # Matches both shapes; the first rule in the table decides the severity.
    records = parse_diagnostics("x.xml(4): Warning: see x.xml: Line 10: note")

    assert records[0].severity is DiagnosticSeverity.WARNING
    assert records[0].line == 3


def test_custom_rules_extend_the_table() -> None:
    todo_rule = DiagnosticRule(
        name="todo",
        pattern=re.compile(r"^TODO@(?P<line>\d+) (?P<message>.+)$"),
        extract=lambda match: DiagnosticRecord(
            line=int(match.group("line")),
            severity=DiagnosticSeverity.WARNING,
            message=match.group("message"),
        ),
    )

    records = parse_diagnostics("TODO@4 finish intro\nd.xml(1): Error: boom", (*DEFAULT_RULES, todo_rule))

    assert [record.message for record in records] == ["finish intro", "boom"]
