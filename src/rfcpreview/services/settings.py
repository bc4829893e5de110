"""Preview settings: defaults, a JSON file, ``--set`` overrides, then the environment."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Sequence, get_args, get_origin, get_type_hints

from ..utils import file_io

__all__ = ["PreviewSettings", "SettingsStore", "coerce_overrides", "ENVIRONMENT_FIELDS"]

LOGGER = logging.getLogger(__name__)

_DEFAULT_SETTINGS_PATH = Path.home() / ".rfcpreview" / "settings.json"
_SETTINGS_VERSION = 1

# Environment variable -> settings field. Values go through the same
# type-driven coercion as ``--set``.
ENVIRONMENT_FIELDS: Mapping[str, str] = {
    "RFCPREVIEW_EXECUTABLE": "executable",
    "RFCPREVIEW_TIMEOUT": "timeout_seconds",
    "RFCPREVIEW_DEBOUNCE": "debounce_seconds",
    "RFCPREVIEW_MAX_OUTPUT_BYTES": "max_output_bytes",
    "RFCPREVIEW_MAX_CONCURRENT_RUNS": "max_concurrent_runs",
    "RFCPREVIEW_ROOT_ELEMENT": "root_element",
    "RFCPREVIEW_TEMP_DIR": "temp_dir",
    "RFCPREVIEW_DEBUG_LOGGING": "debug_logging",
}
_TRUE_VALUES = frozenset({"1", "true", "yes", "on", "debug"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off", "disabled"})


@dataclass(slots=True)
class PreviewSettings:
    """Tunables for conversion, scheduling, and validation."""

    executable: str = "xml2rfc"
    timeout_seconds: float = 30.0
    max_output_bytes: int = 1024 * 1024
    debounce_seconds: float = 0.25
    temp_prefix: str = "xml2rfc"
    temp_dir: str | None = None
    root_element: str = "rfc"
    ignored_suffixes: list[str] = field(default_factory=lambda: [".git"])
    max_concurrent_runs: int = 2
    debug_logging: bool = False


class SettingsStore:
    """Reads and writes :class:`PreviewSettings` as a versioned JSON object."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or _DEFAULT_SETTINGS_PATH

    @property
    def path(self) -> Path:
        return self._path

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> PreviewSettings:
        """Build settings from the file, then ``overrides``, then ``RFCPREVIEW_*`` variables."""

        settings = self._from_payload(self._read_payload())
        if overrides:
            settings = _merge(settings, overrides, source="command line")
        return _merge(settings, _environment_overrides(os.environ), source="environment")

    def save(self, settings: PreviewSettings) -> Path:
        payload = {"version": _SETTINGS_VERSION, **asdict(settings)}
        file_io.write_text(self._path, json.dumps(payload, indent=2, sort_keys=True) + "\n")
        LOGGER.debug("Settings saved to %s", self._path)
        return self._path

    def _read_payload(self) -> Mapping[str, Any]:
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Ignoring %s: not valid JSON (%s)", self._path, exc)
            return {}
        if not isinstance(data, dict):
            LOGGER.warning("Ignoring %s: expected a JSON object, found %s", self._path, type(data).__name__)
            return {}
        return data

    def _from_payload(self, payload: Mapping[str, Any]) -> PreviewSettings:
        hints = get_type_hints(PreviewSettings)
        values: Dict[str, Any] = {}
        for key, value in _known_fields(payload).items():
            try:
                values[key] = _check_value(hints[key], value)
            except (TypeError, ValueError) as exc:
                LOGGER.warning("Ignoring %s in %s: %s", key, self._path, exc)
        return PreviewSettings(**values)


def coerce_overrides(items: Sequence[str]) -> Dict[str, Any]:
    """Turn ``KEY=VALUE`` strings into typed overrides for :class:`PreviewSettings`.

    Raises:
        ValueError: for malformed entries, unknown keys, or uncoercible values.
    """

    hints = get_type_hints(PreviewSettings)
    overrides: Dict[str, Any] = {}
    for entry in items:
        key, separator, raw_value = entry.partition("=")
        key = key.strip()
        if not separator:
            raise ValueError(f"Expected KEY=VALUE, got '{entry}'")
        if not key:
            raise ValueError(f"No setting named in '{entry}'")
        if key not in hints:
            raise ValueError(f"'{key}' is not a preview setting")
        overrides[key] = _convert_text(hints[key], raw_value.strip())
    return overrides


def _environment_overrides(environ: Mapping[str, str]) -> Dict[str, Any]:
    hints = get_type_hints(PreviewSettings)
    overrides: Dict[str, Any] = {}
    for env_name, field_name in ENVIRONMENT_FIELDS.items():
        raw_value = environ.get(env_name)
        if raw_value is None:
            continue
        try:
            overrides[field_name] = _convert_text(hints[field_name], raw_value.strip())
        except ValueError:
            LOGGER.warning("Ignoring %s=%r: not a valid %s", env_name, raw_value, field_name)
    return overrides


def _merge(settings: PreviewSettings, overrides: Mapping[str, Any], *, source: str) -> PreviewSettings:
    applicable = {key: value for key, value in _known_fields(overrides).items() if value is not None}
    if not applicable:
        return settings
    LOGGER.debug("Applying %s overrides: %s", source, ", ".join(sorted(applicable)))
    return replace(settings, **applicable)


def _convert_text(annotation: Any, raw_value: str) -> Any:
    optional = type(None) in get_args(annotation)
    if optional and raw_value.lower() in {"none", "null"}:
        return None
    target = _base_type(annotation)
    if target is bool:
        return _truthy(raw_value)
    if target is int:
        return int(raw_value, 10)
    if target is float:
        return float(raw_value)
    if target is list:
        try:
            value = json.loads(raw_value or "[]")
        except json.JSONDecodeError as exc:
            raise ValueError(f"Expected a JSON array, got {raw_value!r}") from exc
        if not isinstance(value, list):
            raise ValueError(f"Expected a JSON array, got {raw_value!r}")
        return value
    return raw_value


def _base_type(annotation: Any) -> Any:
    origin = get_origin(annotation)
    if origin is None:
        return annotation
    if origin is list:
        return list
    candidates = [arg for arg in get_args(annotation) if arg is not type(None)]
    return candidates[0] if candidates else origin


def _truthy(value: str) -> bool:
    lowered = value.lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"'{value}' is neither true nor false")


def _known_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    names = {item.name for item in fields(PreviewSettings)}
    return {key: value for key, value in payload.items() if key in names}


def _check_value(annotation: Any, value: Any) -> Any:
    """Validate a JSON value against ``annotation``; strings are parsed like ``--set``."""

    if value is None:
        if type(None) in get_args(annotation):
            return None
        raise TypeError("null is not allowed")
    if isinstance(value, str):
        return _convert_text(annotation, value)
    target = _base_type(annotation)
    if isinstance(value, bool) and target is not bool:
        raise TypeError(f"expected {target.__name__}, found bool")
    if target is float and isinstance(value, int):
        return float(value)
    if not isinstance(value, target):
        raise TypeError(f"expected {target.__name__}, found {type(value).__name__}")
    if target is list and not all(isinstance(item, str) for item in value):
        raise TypeError("list entries must be strings")
    return value
