"""Editor configuration persistence and debug tracing."""
import json
import logging
import math
import os
from dataclasses import asdict, fields
from typing import Optional

import viewport
from models import EditorSettings

logger = logging.getLogger(__name__)

# ── App-level paths ───────────────────────────────────────────────────────────

_APP_DIR = os.path.dirname(os.path.abspath(__file__))
_APP_DATA_DIR = os.path.join(os.path.dirname(_APP_DIR), "data")
SETTINGS_PATH = os.path.join(_APP_DATA_DIR, "settings.json")


# ── Debug tracing ─────────────────────────────────────────────────────────────

_debug_enabled = False
_debug_logger = logging.getLogger("pdf_markup.debug")


def set_debug(enabled: bool) -> None:
    """Turn :func:`dbg` output on or off (mirrors the settings' debug mode)."""
    global _debug_enabled
    _debug_enabled = bool(enabled)
    _debug_logger.setLevel(logging.DEBUG if _debug_enabled else logging.INFO)


def is_debug() -> bool:
    return _debug_enabled


def dbg(msg: str) -> None:
    """Emit a debug trace when debug mode is enabled."""
    if _debug_enabled:
        _debug_logger.debug(msg)


# ── Settings ──────────────────────────────────────────────────────────────────

# Numeric settings that must stay strictly positive
_POSITIVE = ("export_timeout", "default_font_size")


def _coerce(name: str, default, raw):
    """Return *raw* converted to the type of *default*, or raise ValueError."""
    if isinstance(default, bool):
        if not isinstance(raw, bool):
            raise ValueError("expected true or false")
        return raw
    if isinstance(default, float):
        if isinstance(raw, bool):
            raise ValueError("expected a number")
        value = float(raw)
        if not math.isfinite(value):
            raise ValueError("expected a finite number")
        if name == "default_scale":
            return viewport.clamp_scale(value)
        if name in _POSITIVE and value <= 0:
            raise ValueError("expected a positive number")
        return value
    return str(raw)


def settings_from_dict(data: dict) -> EditorSettings:
    """Build EditorSettings from a parsed dict.

    Unknown keys are ignored; values of the wrong type or out of range fall
    back to their defaults.  The zoom level is clamped to the viewer's range.
    """
    defaults = EditorSettings()
    values = {}
    for f in fields(EditorSettings):
        if f.name not in data or data[f.name] is None:
            continue
        raw = data[f.name]
        try:
            values[f.name] = _coerce(f.name, getattr(defaults, f.name), raw)
        except (TypeError, ValueError):
            logger.warning("Ignoring invalid setting %s=%r", f.name, raw)
    return EditorSettings(**values)


def load_settings(path: Optional[str] = None) -> EditorSettings:
    """Read the settings file; fall back to defaults when missing or corrupt."""
    path = path or SETTINGS_PATH
    if not os.path.exists(path):
        return EditorSettings()
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as exc:
        logger.warning("Could not read settings file %s: %s", path, exc)
        return EditorSettings()
    if not isinstance(data, dict):
        logger.warning("Settings file %s does not hold an object; using defaults", path)
        return EditorSettings()
    return settings_from_dict(data)


def save_settings(settings: EditorSettings, path: Optional[str] = None) -> None:
    path = path or SETTINGS_PATH
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(asdict(settings), f, indent=2)
        f.write("\n")
