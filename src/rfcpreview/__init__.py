"""Live xml2rfc previews with structured diagnostics."""

__version__ = "0.1.0"
