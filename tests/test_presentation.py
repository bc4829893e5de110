"""Tests for preview HTML templates and the headless adapters."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from rfcpreview.presentation import (
    FilePreviewPanel,
    HtmlPreviewPresenter,
    LoggingDiagnosticSink,
    render_error_html,
    render_loading_html,
)
from rfcpreview.preview.diagnostics import DiagnosticRecord, DiagnosticSeverity
from rfcpreview.preview.errors import ErrorMessages
from rfcpreview.preview.interfaces import PreviewPanel
from tests.helpers import RecordingPanel

RECORDS = (
    DiagnosticRecord(line=11, severity=DiagnosticSeverity.ERROR, message="bad <xref> target"),
    DiagnosticRecord(line=0, severity=DiagnosticSeverity.WARNING, message="header"),
)


def test_loading_view_names_document() -> None:
    html = render_loading_html("draft<1>.xml")

    assert "Loading Preview" in html
    assert "draft&lt;1&gt;.xml" in html


def test_error_view_lists_one_based_lines() -> None:
    html = render_error_html("Failed & broken", RECORDS)

    assert "<h1>Failed &amp; broken</h1>" in html
    assert '<li class="error">Line 12: bad &lt;xref&gt; target</li>' in html
    assert '<li class="warning">Line 1: header</li>' in html
    assert "No specific errors detected." not in html


def test_error_view_without_diagnostics() -> None:
    html = render_error_html(ErrorMessages.PROCESSING_ERROR)

    assert "No specific errors detected." in html
    assert "<ul>" not in html


def test_presenter_fills_panel() -> None:
    panel = RecordingPanel()
    presenter = HtmlPreviewPresenter()

    presenter.show_loading(panel, "draft.xml")
    presenter.show_content(panel, "<html>done</html>")
    presenter.show_content(panel, "")
    presenter.show_error(panel, ErrorMessages.COMPILE_FAILED, RECORDS)

    assert "draft.xml" in panel.html[0]
    assert panel.html[1] == "<html>done</html>"
    assert ErrorMessages.NO_PREVIEW in panel.html[2]
    assert "Line 12" in panel.html[3]


def test_file_panel_writes_every_view(tmp_path: Path) -> None:
    target = tmp_path / "out" / "draft.html"
    panel = FilePreviewPanel(target)

    assert isinstance(panel, PreviewPanel)
    panel.set_html("<p>loading</p>")
    panel.set_html("<html>final</html>")
    panel.reveal()
    panel.dispose()

    assert target.read_text(encoding="utf-8") == "<html>final</html>"
    assert panel.html == "<html>final</html>"
    assert panel.disposed


def test_logging_sink_reports_each_record(caplog: pytest.LogCaptureFixture) -> None:
    sink = LoggingDiagnosticSink({"file:///w/draft.xml": "draft.xml"})

    with caplog.at_level(logging.INFO, logger="rfcpreview.presentation.presenter"):
        sink.update("file:///w/draft.xml", RECORDS)
        sink.update("file:///w/other.xml", ())

    messages = [record.getMessage() for record in caplog.records]
    assert messages == [
        "draft.xml:12: error: bad <xref> target",
        "draft.xml:1: warning: header",
    ]
    assert [record.levelno for record in caplog.records] == [logging.ERROR, logging.WARNING]
    assert sink.latest["file:///w/other.xml"] == ()
