"""Well-formedness and root-element checks run on every content change."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from lxml import etree

from ..utils import file_io

__all__ = ["XmlCheck", "check_xml"]

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class XmlCheck:
    """Result of parsing a document snapshot.

    ``error`` and ``line`` (zero-based) describe the first syntax error when
    the document is not well-formed.
    """

    well_formed: bool
    is_target: bool
    root_tag: str | None = None
    error: str | None = None
    line: int | None = None

    @property
    def eligible(self) -> bool:
        return self.well_formed and self.is_target


def _parser() -> etree.XMLParser:
    # Never touch the network or external DTDs while the user is typing.
    return etree.XMLParser(
        load_dtd=False,
        no_network=True,
        resolve_entities=False,
        dtd_validation=False,
        recover=False,
    )


def check_xml(content: str, root_element: str = "rfc") -> XmlCheck:
    """Parse ``content`` and report whether its root is ``root_element``."""

    if not content.strip():
        return XmlCheck(well_formed=False, is_target=False, error="Document is empty", line=0)
    try:
        root = etree.fromstring(file_io.encode_document(content), parser=_parser())
    except etree.XMLSyntaxError as exc:
        line = max(0, exc.lineno - 1) if exc.lineno else 0
        LOGGER.debug("Document is not well-formed (line %s): %s", line + 1, exc.msg)
        return XmlCheck(well_formed=False, is_target=False, error=exc.msg or str(exc), line=line)
    tag = root.tag if isinstance(root.tag, str) else None
    return XmlCheck(well_formed=True, is_target=tag == root_element, root_tag=tag)
