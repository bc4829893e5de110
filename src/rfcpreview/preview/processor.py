"""Runs the xml2rfc converter with bounded latency and guaranteed cleanup."""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import logging
import os
import secrets
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterator, Sequence

from ..services.settings import PreviewSettings
from ..utils import file_io
from .diagnostics import DiagnosticRecord, parse_diagnostics
from .errors import ErrorMessages, ProcessingError, ProcessingErrorKind

__all__ = ["ProcessingResult", "TransientFiles", "ExternalProcessor", "DiagnosticsCallback"]

LOGGER = logging.getLogger(__name__)

DiagnosticsCallback = Callable[[Sequence[DiagnosticRecord]], None]

_READ_CHUNK = 64 * 1024
_NAME_COUNTER = itertools.count(1)


@dataclass(frozen=True, slots=True)
class ProcessingResult:
    """Outcome of one converter run.

    Exactly one of ``artifact`` and ``error_details`` is set.
    """

    artifact: str | None
    diagnostics: tuple[DiagnosticRecord, ...] = ()
    error_details: str | None = None

    def __post_init__(self) -> None:
        if (self.artifact is None) == (self.error_details is None):
            raise ValueError("ProcessingResult needs exactly one of artifact or error_details")

    @property
    def succeeded(self) -> bool:
        return self.artifact is not None


class TransientFiles:
    """Per-invocation input/output paths that are removed on every exit path.

    Names combine a fixed prefix, the process id, a process-wide counter and
    a random token so rapid or concurrent runs never collide.
    """

    def __init__(self, prefix: str, *, directory: Path | str | None = None) -> None:
        root = Path(directory) if directory else Path(tempfile.gettempdir())
        token = f"{prefix}-{os.getpid()}-{next(_NAME_COUNTER)}-{secrets.token_hex(4)}"
        self.input_path = root / f"{token}.xml"
        self.output_path = root / f"{token}.html"

    def __enter__(self) -> "TransientFiles":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()

    def release(self) -> None:
        for path in (self.input_path, self.output_path):
            file_io.remove_quietly(path)

    def stage(self, content: str) -> None:
        try:
            file_io.write_text(
                self.input_path,
                content,
                encoding=file_io.document_encoding(content),
                errors="xmlcharrefreplace",
                atomic=False,
            )
        except OSError as exc:
            raise ProcessingError(
                kind=ProcessingErrorKind.INPUT_WRITE_FAILURE,
                message=ErrorMessages.FILE_WRITE,
                details=str(exc),
            ) from exc


@dataclass(slots=True)
class _Capture:
    limit: int
    stdout: bytearray = field(default_factory=bytearray)
    stderr: bytearray = field(default_factory=bytearray)
    overflowed: bool = False

    def stderr_text(self) -> str:
        return self.stderr.decode("utf-8", errors="replace")


class ExternalProcessor:
    """Converts XML content to HTML by invoking the converter CLI."""

    def __init__(self, settings: PreviewSettings | None = None) -> None:
        self._settings = settings or PreviewSettings()

    @property
    def settings(self) -> PreviewSettings:
        return self._settings

    def command(self, input_path: Path, output_path: Path) -> list[str]:
        return [
            self._settings.executable,
            "--no-dtd",
            "--no-network",
            "--html",
            "--out",
            str(output_path),
            str(input_path),
        ]

    async def process(
        self,
        content: str,
        *,
        on_diagnostics: DiagnosticsCallback | None = None,
    ) -> ProcessingResult:
        """Render ``content`` and return the artifact or the soft failure.

        Raises:
            ProcessingError: for a missing executable, a timeout, or when the
                input cannot be staged or the output cannot be read.
        """

        with TransientFiles(self._settings.temp_prefix, directory=self._settings.temp_dir) as files:
            files.stage(content)
            started = time.perf_counter()
            returncode, capture = await self._run(files)
            diagnostics = tuple(parse_diagnostics(capture.stderr_text()))
            LOGGER.debug(
                "Converter exited with %s after %.1f ms (%d diagnostics)",
                returncode,
                (time.perf_counter() - started) * 1000.0,
                len(diagnostics),
            )
            if on_diagnostics is not None:
                on_diagnostics(diagnostics)

            if capture.overflowed:
                limit_message = ErrorMessages.OUTPUT_LIMIT.format(limit=capture.limit)
                LOGGER.warning(limit_message)
                return ProcessingResult(artifact=None, diagnostics=diagnostics, error_details=limit_message)
            if returncode != 0:
                details = capture.stderr_text().strip() or f"xml2rfc exited with status {returncode}"
                return ProcessingResult(artifact=None, diagnostics=diagnostics, error_details=details)

            artifact = self._read_artifact(files.output_path, diagnostics)
            if not artifact:
                return ProcessingResult(
                    artifact=None, diagnostics=diagnostics, error_details=ErrorMessages.INVALID_OUTPUT
                )
            return ProcessingResult(artifact=artifact, diagnostics=diagnostics)

    async def _run(self, files: TransientFiles) -> tuple[int, _Capture]:
        args = self.command(files.input_path, files.output_path)
        capture = _Capture(limit=max(1, int(self._settings.max_output_bytes)))
        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            raise ProcessingError(
                kind=ProcessingErrorKind.TOOL_NOT_FOUND,
                message=ErrorMessages.COMMAND_NOT_FOUND,
                details=str(exc),
            ) from exc
        except OSError as exc:
            raise ProcessingError(
                kind=ProcessingErrorKind.UNEXPECTED,
                message=f"Unable to start {self._settings.executable}: {exc}",
                details=str(exc),
            ) from exc

        LOGGER.debug("Started converter pid=%s: %s", process.pid, args)
        try:
            try:
                returncode = await asyncio.wait_for(
                    self._collect(process, capture), timeout=self._settings.timeout_seconds
                )
            except asyncio.TimeoutError as exc:
                LOGGER.warning(
                    "Converter pid=%s exceeded %.1fs; killing", process.pid, self._settings.timeout_seconds
                )
                raise ProcessingError(
                    kind=ProcessingErrorKind.TIMEOUT,
                    message=ErrorMessages.TIMEOUT,
                    details=capture.stderr_text() or None,
                    diagnostics=tuple(parse_diagnostics(capture.stderr_text())),
                ) from exc
        finally:
            if process.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    process.kill()
                with contextlib.suppress(asyncio.CancelledError):
                    await asyncio.shield(process.wait())
        return returncode, capture

    async def _collect(self, process: asyncio.subprocess.Process, capture: _Capture) -> int:
        assert process.stdout is not None and process.stderr is not None
        await asyncio.gather(
            self._drain(process.stdout, capture.stdout, capture, process),
            self._drain(process.stderr, capture.stderr, capture, process),
        )
        return await process.wait()

    @staticmethod
    async def _drain(
        stream: asyncio.StreamReader,
        sink: bytearray,
        capture: _Capture,
        process: asyncio.subprocess.Process,
    ) -> None:
        while True:
            chunk = await stream.read(_READ_CHUNK)
            if not chunk:
                return
            room = capture.limit - len(sink)
            if len(chunk) > room:
                sink.extend(chunk[: max(0, room)])
                if not capture.overflowed:
                    capture.overflowed = True
                    with contextlib.suppress(ProcessLookupError):
                        process.kill()
                continue
            sink.extend(chunk)

    @staticmethod
    def _read_artifact(path: Path, diagnostics: tuple[DiagnosticRecord, ...]) -> str:
        try:
            return file_io.read_text(path, normalize_newlines=False)
        except (OSError, UnicodeDecodeError) as exc:
            raise ProcessingError(
                kind=ProcessingErrorKind.OUTPUT_READ_FAILURE,
                message=ErrorMessages.FILE_READ,
                details=str(exc),
                diagnostics=diagnostics,
            ) from exc
