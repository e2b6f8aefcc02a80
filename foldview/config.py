"""Persistent JSON engine configuration.

Stores metrics, overlay colors and feature toggles for the layout engine.
Malformed or missing config falls back to defaults.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
import json
import logging
from pathlib import Path
import re

from platformdirs import user_config_dir

from .styles import DiagnosticSeverity

logger = logging.getLogger(__name__)

APP_NAME = "foldview"
CONFIG_FILENAME = "config.json"
DEFAULT_CONFIG_PATH = Path(user_config_dir(APP_NAME, appauthor=False)) / CONFIG_FILENAME
CONFIG_PATH = DEFAULT_CONFIG_PATH

_COLOR_RE = re.compile(r"^#[0-9a-fA-F]{6}$")


@dataclass
class EngineConfig:
    line_height: int = 20
    char_width: float = 8.0
    tab_stop: int = 8
    font_size: int = 14
    inlay_hint_fg: str | None = "#7f848e"
    inlay_hint_bg: str | None = None
    inlay_hint_font_size: int = 12
    phantom_fg: str | None = "#5c6370"
    ime_underline: str | None = "#abb2bf"
    enable_inlay_hints: bool = True
    enable_completion_lens: bool = False
    enable_inline_completion: bool = True
    completion_lens_fg: str | None = "#808080"
    enable_error_lens: bool = True
    error_color: str | None = "#e06c75"
    warning_color: str | None = "#e5c07b"
    information_color: str | None = "#61afef"
    style: str = "monokai"

    def diagnostic_colors(self) -> dict[DiagnosticSeverity, str]:
        colors = {
            DiagnosticSeverity.ERROR: self.error_color,
            DiagnosticSeverity.WARNING: self.warning_color,
            DiagnosticSeverity.INFORMATION: self.information_color,
        }
        return {severity: color for severity, color in colors.items() if color}


def load_config() -> dict[str, object]:
    """Read the engine's JSON config file into a plain dict.

    A missing file, or one holding a non-object JSON value, yields ``{}``.
    Read and decode failures are logged as warnings and also yield ``{}``.
    """
    try:
        data = json.loads(CONFIG_PATH.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return {}
    except (OSError, ValueError) as exc:
        logger.warning("ignoring unreadable config %s: %s", CONFIG_PATH, exc)
        return {}
    return data if isinstance(data, dict) else {}


def save_config(data: dict[str, object]) -> None:
    """Persist config data as pretty-printed JSON; write failures are logged."""
    try:
        CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
        CONFIG_PATH.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    except (OSError, TypeError, ValueError) as exc:
        logger.warning("could not write config %s: %s", CONFIG_PATH, exc)


def _coerce_positive_int(value: object, default: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        return default
    return value


def _coerce_positive_float(value: object, default: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        return default
    return float(value)


def _coerce_bool(value: object, default: bool) -> bool:
    return value if isinstance(value, bool) else default


def _coerce_color(value: object, default: str | None) -> str | None:
    if value is None:
        return None
    if isinstance(value, str) and _COLOR_RE.match(value.strip()):
        return value.strip().lower()
    return default


def _coerce_name(value: object, default: str) -> str:
    if not isinstance(value, str):
        return default
    stripped = value.strip()
    return stripped if stripped else default


def config_from_dict(data: dict[str, object]) -> EngineConfig:
    """Build an ``EngineConfig`` from raw JSON, sanitizing every value."""
    defaults = EngineConfig()
    values: dict[str, object] = {}
    for item in fields(EngineConfig):
        default = getattr(defaults, item.name)
        if item.name not in data:
            values[item.name] = default
            continue
        raw = data[item.name]
        if isinstance(default, bool):
            values[item.name] = _coerce_bool(raw, default)
        elif isinstance(default, int):
            values[item.name] = _coerce_positive_int(raw, default)
        elif isinstance(default, float):
            values[item.name] = _coerce_positive_float(raw, default)
        elif item.name == "style":
            values[item.name] = _coerce_name(raw, default)
        else:
            values[item.name] = _coerce_color(raw, default)
    return EngineConfig(**values)


def load_engine_config() -> EngineConfig:
    return config_from_dict(load_config())


def save_engine_config(config: EngineConfig) -> None:
    """Merge ``config`` into the persisted file, keeping unrelated keys."""
    data = load_config()
    data.update(asdict(config))
    save_config(data)
