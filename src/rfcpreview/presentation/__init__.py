"""HTML views and headless adapters for preview output."""

from .presenter import FilePreviewPanel, HtmlPreviewPresenter, LoggingDiagnosticSink
from .templates import render_error_html, render_loading_html

__all__ = [
    "FilePreviewPanel",
    "HtmlPreviewPresenter",
    "LoggingDiagnosticSink",
    "render_error_html",
    "render_loading_html",
]
