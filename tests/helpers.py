"""Test doubles, fixture documents, and fake converter scripts."""

from __future__ import annotations

import stat
import sys
import textwrap
from pathlib import Path

from rfcpreview.services.settings import PreviewSettings

RFC_XML = """<?xml version="1.0" encoding="UTF-8"?>
<rfc ipr="trust200902" docName="draft-example-00">
  <front><title>Example</title></front>
  <middle><section><name>Intro</name><t>Hello.</t></section></middle>
</rfc>
"""

NOT_RFC_XML = """<?xml version="1.0"?>
<note><to>Someone</to></note>
"""

MALFORMED_XML = """<?xml version="1.0"?>
<rfc>
  <front>
</rfc>
"""

_PRELUDE = """\
import pathlib
import sys
import time

args = sys.argv[1:]
out = pathlib.Path(args[args.index("--out") + 1])
src = pathlib.Path(args[-1])
with open({log!r}, "a", encoding="utf-8") as handle:
    handle.write(f"{{src}}\\t{{out}}\\t{{' '.join(args[:-3])}}\\n")
"""

CONVERTER_BODIES: dict[str, str] = {
    "success": """
        text = src.read_text(encoding="utf-8")
        sys.stderr.write("draft.xml(3): Warning: something odd\\n")
        out.write_text("<html><body>" + str(len(text)) + "</body></html>", encoding="utf-8")
    """,
    "clean": """
        out.write_text("<html><body>ok</body></html>", encoding="utf-8")
    """,
    "fail": """
        sys.stderr.write("draft.xml(12): Error: undefined reference\\n")
        sys.stderr.write("draft.xml: Line 5: not well-formed\\n")
        sys.stderr.write("Unable to complete processing\\n")
        sys.exit(1)
    """,
    "hang": """
        sys.stderr.write("draft.xml(2): Warning: slow start\\n")
        sys.stderr.flush()
        time.sleep(30)
    """,
    "empty": """
        out.write_text("", encoding="utf-8")
    """,
    "no_output": """
        sys.stderr.write("draft.xml(4): Warning: nothing written\\n")
    """,
    "noisy": """
        sys.stderr.write("x" * 200000)
        sys.stderr.flush()
        time.sleep(30)
    """,
    "slow_success": """
        time.sleep(0.3)
        out.write_text("<html>" + src.read_text(encoding="utf-8")[:20] + "</html>", encoding="utf-8")
    """,
}

class RecordingPanel:
    """Preview panel double that remembers everything shown in it."""

    def __init__(self) -> None:
        self.html: list[str] = []
        self.revealed = 0
        self.disposed = False

    def set_html(self, html: str) -> None:
        self.html.append(html)

    def reveal(self) -> None:
        self.revealed += 1

    def dispose(self) -> None:
        self.disposed = True

class ConverterFactory:
    def __init__(self, root: Path) -> None:
        self.root = root
        self.log = root / "invocations.log"
        self.temp_dir = root / "scratch"
        self.temp_dir.mkdir(parents=True, exist_ok=True)

    def __call__(self, kind: str) -> str:
        script = self.root / "bin" / f"xml2rfc-{kind}"
        script.parent.mkdir(parents=True, exist_ok=True)
        body = _PRELUDE.format(log=str(self.log)) + textwrap.dedent(CONVERTER_BODIES[kind])
        script.write_text(f"#!{sys.executable}\n{body}", encoding="utf-8")
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return str(script)

    def invocations(self) -> list[list[str]]:
        if not self.log.exists():
            return []
        return [line.split("\t") for line in self.log.read_text(encoding="utf-8").splitlines()]

    def settings(self, kind: str, **overrides: object) -> PreviewSettings:
        values: dict[str, object] = {
            "executable": self(kind),
            "temp_dir": str(self.temp_dir),
            "debounce_seconds": 0.02,
            "timeout_seconds": 5.0,
        }
        values.update(overrides)
        return PreviewSettings(**values)  # type: ignore[arg-type]

