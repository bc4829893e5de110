"""HTML documents shown while a preview loads or after it fails."""

from __future__ import annotations

from html import escape
from typing import Sequence

from ..preview.diagnostics import DiagnosticRecord

__all__ = ["render_loading_html", "render_error_html"]

_BASE_STYLE = """
      body {
        font-family: -apple-system, BlinkMacSystemFont, sans-serif;
        padding: 2rem;
      }
"""

_LOADING_TEMPLATE = """<!DOCTYPE html>
<html>
  <head>
    <meta charset="UTF-8" />
    <title>Loading xml2rfc Preview</title>
    <style>{style}      body {{ text-align: center; }}
    </style>
  </head>
  <body>
    <h1>Loading Preview</h1>
    <p>Preparing xml2rfc preview for {label}...</p>
  </body>
</html>"""

_ERROR_TEMPLATE = """<!DOCTYPE html>
<html>
  <head>
    <meta charset="UTF-8" />
    <title>xml2rfc Preview Error</title>
    <style>{style}      h1 {{ color: #c62828; margin-bottom: 1rem; }}
      ul {{ padding: 1rem; border-radius: 3px; margin: 1rem 0; }}
      li {{ margin: 0.5rem 0; }}
      .warning {{ color: #b26a00; }}
      .no-errors {{ font-style: italic; }}
    </style>
  </head>
  <body>
    <h1>{message}</h1>
    {body}
    <p>Check the problems list for detailed error locations.</p>
  </body>
</html>"""


def render_loading_html(label: str) -> str:
    return _LOADING_TEMPLATE.format(style=_BASE_STYLE, label=escape(label))


def render_error_html(message: str, diagnostics: Sequence[DiagnosticRecord] = ()) -> str:
    """Render ``message`` with a one-based ``Line N: message`` list of diagnostics."""

    if diagnostics:
        items = "".join(
            f'<li class="{record.severity.value}">Line {record.display_line()}: {escape(record.message)}</li>'
            for record in diagnostics
        )
        body = f"<ul>{items}</ul>"
    else:
        body = '<p class="no-errors">No specific errors detected.</p>'
    return _ERROR_TEMPLATE.format(style=_BASE_STYLE, message=escape(message), body=body)
