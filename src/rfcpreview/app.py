"""Command-line bootstrap for the headless renderer and the preview window."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import os
import sys
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence, cast

from .presentation.presenter import FilePreviewPanel, HtmlPreviewPresenter, LoggingDiagnosticSink
from .preview.errors import ErrorMessages
from .preview.interfaces import DocumentIdentity, DocumentSnapshot
from .preview.orchestrator import PreviewOrchestrator
from .preview.processor import ExternalProcessor
from .services.settings import PreviewSettings, SettingsStore, coerce_overrides
from .utils import file_io
from .utils import logging as logging_utils

_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_LOGGER = logging.getLogger(__name__)
_IDLE_GRACE_SECONDS = 5.0


@dataclass(slots=True)
class QtRuntime:
    """Container returned by :func:`create_qapp`."""

    app: Any
    loop: asyncio.AbstractEventLoop


def configure_logging(debug: bool = False, *, force: bool = False) -> None:
    logging_utils.setup_logging(debug, force=force)


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> PreviewSettings:
    """Load persisted settings or fall back to defaults."""

    active_store = store or SettingsStore(path)
    try:
        return active_store.load(overrides=overrides)
    except OSError as exc:
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        return PreviewSettings()


async def render_file(source: Path, output: Path, settings: PreviewSettings) -> int:
    """Render ``source`` once through the orchestrator and write ``output``.

    Returns the process exit status: 0 on success, 1 when conversion failed
    or the document is not eligible, 2 when the source cannot be read.
    """

    try:
        text = file_io.read_text(source)
    except (OSError, UnicodeDecodeError) as exc:
        _LOGGER.error("Unable to read %s: %s", source, exc)
        return 2

    identity = DocumentIdentity.from_path(source)
    orchestrator = PreviewOrchestrator(
        processor=ExternalProcessor(settings),
        diagnostic_sink=LoggingDiagnosticSink({identity.uri: identity.label}),
        presenter=HtmlPreviewPresenter(),
        settings=settings,
        loop=asyncio.get_running_loop(),
    )
    panel = FilePreviewPanel(output)
    try:
        state = orchestrator.open_preview(DocumentSnapshot(identity=identity, text=text), panel)
        if state is None:
            _LOGGER.error("%s is excluded by ignored_suffixes", source)
            return 1
        await orchestrator.wait_until_idle(timeout=settings.timeout_seconds + _IDLE_GRACE_SECONDS)
        if state.cached_artifact is not None:
            panel.reveal()
            return 0
        if state.last_error is not None:
            _LOGGER.error("%s: %s", identity.label, state.last_error.message)
        elif state.check is not None and not state.check.eligible:
            _LOGGER.error("%s: %s", identity.label, ErrorMessages.NOT_RFC)
        return 1
    finally:
        await orchestrator.aclose()


def create_qapp() -> QtRuntime:
    """Create a qasync-powered QApplication instance."""

    from PySide6.QtWidgets import QApplication
    from qasync import QEventLoop

    app = cast(Any, QApplication.instance() or QApplication(sys.argv))
    app.setApplicationName("rfcpreview")
    app.setApplicationDisplayName("RFC Preview")

    loop = QEventLoop(app)
    asyncio.set_event_loop(loop)
    app.aboutToQuit.connect(loop.stop)
    return QtRuntime(app=app, loop=loop)


def run_viewer(source: Path, settings: PreviewSettings) -> int:
    """Open a preview window that re-renders ``source`` whenever it changes on disk."""

    from .ui.preview_window import FileWatchHost, PreviewWindow, QtDiagnosticSink, QtPreviewPanel

    runtime = create_qapp()
    loop = runtime.loop
    identity = DocumentIdentity.from_path(source)
    orchestrator: PreviewOrchestrator | None = None

    def _on_window_closed() -> None:
        if orchestrator is not None:
            orchestrator.close_document(identity.uri)

    window = PreviewWindow(identity.label, on_closed=_on_window_closed)
    orchestrator = PreviewOrchestrator(
        processor=ExternalProcessor(settings),
        diagnostic_sink=QtDiagnosticSink(window, identity.uri),
        presenter=HtmlPreviewPresenter(),
        settings=settings,
        loop=loop,
    )
    host = FileWatchHost(source, orchestrator.handle_document_update)
    try:
        snapshot = host.snapshot()
    except (OSError, UnicodeDecodeError) as exc:
        _LOGGER.error("Unable to read %s: %s", source, exc)
        return 2

    orchestrator.open_preview(snapshot, QtPreviewPanel(window))
    window.show()
    try:
        loop.run_forever()
    except KeyboardInterrupt:  # pragma: no cover - manual shutdown path
        _LOGGER.info("Shutdown requested by user.")
    finally:
        with contextlib.suppress(RuntimeError):
            loop.run_until_complete(orchestrator.aclose())
        _drain_event_loop(loop)
        loop.close()
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point invoked by the `rfcpreview` console script."""

    args = _parse_cli_args(argv)
    debug = args.debug or _env_flag("RFCPREVIEW_DEBUG")
    configure_logging(debug)

    settings_path = args.settings_path or os.environ.get("RFCPREVIEW_SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    store = SettingsStore(resolved_path)
    try:
        cli_overrides = coerce_overrides(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        return 2

    settings = load_settings(resolved_path, store=store, overrides=cli_overrides or None)
    if args.dump_settings:
        print(json.dumps(asdict(settings), indent=2, sort_keys=True))
        return 0
    if settings.debug_logging and not debug:
        configure_logging(True, force=True)

    if args.command is None:
        print("A command is required: render or view.", file=sys.stderr)
        return 2
    source = Path(args.file).expanduser()
    if args.command == "render":
        output = Path(args.out).expanduser() if args.out else source.with_suffix(".html")
        return asyncio.run(render_file(source, output, settings))
    return run_viewer(source, settings)


def _env_flag(name: str, *, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _drain_event_loop(loop: asyncio.AbstractEventLoop) -> None:
    """Cancel outstanding tasks before closing the loop."""

    if loop.is_closed():
        return

    async def _cleanup() -> None:
        current_task = asyncio.current_task()
        tasks = [task for task in asyncio.all_tasks(loop) if not task.done() and task is not current_task]
        if tasks:
            _LOGGER.debug("Canceling %s pending asyncio task(s) before shutdown.", len(tasks))
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
        with contextlib.suppress(RuntimeError, NotImplementedError):
            await loop.shutdown_asyncgens()

    try:
        loop.run_until_complete(_cleanup())
    except RuntimeError as exc:  # pragma: no cover - loop already torn down
        _LOGGER.debug("Unable to drain asyncio loop: %s", exc)


def _parse_cli_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="rfcpreview",
        description="Render RFC XML documents with xml2rfc and report diagnostics.",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    parser.add_argument(
        "--dump-settings",
        action="store_true",
        help="Print the effective settings payload and exit.",
    )
    parser.add_argument(
        "--settings-path",
        metavar="PATH",
        help="Override the default ~/.rfcpreview/settings.json path.",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override persisted settings for this run (repeatable).",
    )
    commands = parser.add_subparsers(dest="command")
    render = commands.add_parser("render", help="Render a document once and write the HTML.")
    render.add_argument("file", help="RFC XML source file.")
    render.add_argument("--out", metavar="PATH", help="Output HTML path (default: FILE with .html).")
    view = commands.add_parser("view", help="Open a live preview window for a document.")
    view.add_argument("file", help="RFC XML source file.")
    return parser.parse_args(argv)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
