"""Shared pytest fixtures."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterator

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from rfcpreview.utils import logging as logging_utils  # noqa: E402
from tests.helpers import ConverterFactory, RecordingPanel  # noqa: E402


@pytest.fixture
def converter(tmp_path: Path) -> ConverterFactory:
    return ConverterFactory(tmp_path)


@pytest.fixture
def panel() -> RecordingPanel:
    return RecordingPanel()


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[None]:
    for name in list(os.environ):
        if name.startswith("RFCPREVIEW_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("RFCPREVIEW_LOG_DIR", str(tmp_path / "logs"))
    yield
    _reset_package_logger()


def _reset_package_logger() -> None:
    logger = logging.getLogger("rfcpreview")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
    logging_utils._LOG_PATH = None
