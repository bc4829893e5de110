"""File helpers for reading XML sources, staging converter input, and cleanup."""

from __future__ import annotations

import codecs
import hashlib
import logging
import os
import re
import tempfile
from pathlib import Path

__all__ = [
    "read_text",
    "write_text",
    "remove_quietly",
    "compute_text_digest",
    "sniff_encoding",
    "document_encoding",
    "encode_document",
]

LOGGER = logging.getLogger(__name__)

# UTF-32 marks must be tested before UTF-16 ones; they share a prefix.
_BOMS: tuple[tuple[bytes, str], ...] = (
    (codecs.BOM_UTF32_LE, "utf-32"),
    (codecs.BOM_UTF32_BE, "utf-32"),
    (codecs.BOM_UTF8, "utf-8-sig"),
    (codecs.BOM_UTF16_LE, "utf-16"),
    (codecs.BOM_UTF16_BE, "utf-16"),
)
_XML_DECLARATION = re.compile(rb"""^\s*<\?xml[^>]*?\sencoding\s*=\s*["']([A-Za-z][A-Za-z0-9._-]*)["']""")
_DEFAULT_ENCODING = "utf-8"


def sniff_encoding(raw: bytes) -> str:
    """Pick a codec from a byte-order mark, the XML declaration, or UTF-8."""

    for mark, name in _BOMS:
        if raw.startswith(mark):
            return name
    return _declared_codec(raw[:200]) or _DEFAULT_ENCODING


def document_encoding(text: str) -> str:
    """Codec named by the XML declaration of ``text``, or UTF-8.

    Decoded documents keep their declaration, so any bytes handed to a
    parser or converter must be encoded with the codec it names.
    """

    head = text[:200].encode("ascii", errors="ignore")
    return _declared_codec(head) or _DEFAULT_ENCODING


def encode_document(text: str) -> bytes:
    """Encode ``text`` to match its XML declaration.

    Characters the declared codec cannot represent become character
    references.
    """

    return text.encode(document_encoding(text), errors="xmlcharrefreplace")


def _declared_codec(head: bytes) -> str | None:
    match = _XML_DECLARATION.match(head)
    if not match:
        return None
    declared = match.group(1).decode("ascii")
    try:
        return codecs.lookup(declared).name
    except LookupError:
        LOGGER.debug("Ignoring unknown declared encoding %r", declared)
        return None


def read_text(
    path: Path | str,
    *,
    encoding: str | None = None,
    normalize_newlines: bool = True,
) -> str:
    """Decode ``path`` and return its text without a leading BOM.

    Raises:
        OSError: when the file cannot be read.
        UnicodeDecodeError: when the bytes do not match the chosen codec.
    """

    raw = Path(path).read_bytes()
    text = raw.decode(encoding or sniff_encoding(raw))
    text = text.removeprefix("\ufeff")
    if normalize_newlines:
        text = text.replace("\r\n", "\n").replace("\r", "\n")
    return text


def write_text(
    path: Path | str,
    content: str,
    *,
    encoding: str = "utf-8",
    errors: str = "strict",
    atomic: bool = True,
) -> Path:
    """Write ``content`` verbatim, creating parent directories.

    Atomic writes land in a hidden sibling first and are moved into place, so
    readers never observe a half-written preview.
    """

    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    if not atomic:
        target.write_bytes(content.encode(encoding, errors))
        return target

    with tempfile.NamedTemporaryFile(
        mode="wb", dir=target.parent, prefix=f".{target.name}.", suffix=".part", delete=False
    ) as handle:
        staging = Path(handle.name)
        try:
            handle.write(content.encode(encoding, errors))
            handle.flush()
            os.fsync(handle.fileno())
        except BaseException:
            handle.close()
            remove_quietly(staging)
            raise
    try:
        staging.replace(target)
    except OSError:
        remove_quietly(staging)
        raise
    return target


def remove_quietly(path: Path | str) -> bool:
    """Delete ``path`` if present. Returns ``False`` when removal failed."""

    try:
        Path(path).unlink(missing_ok=True)
    except OSError as exc:
        LOGGER.warning("Unable to remove %s: %s", path, exc)
        return False
    return True


def compute_text_digest(text: str) -> str:
    """SHA-256 of the UTF-8 encoded text; used to short-circuit unchanged content."""

    return hashlib.sha256(text.encode("utf-8")).hexdigest()
