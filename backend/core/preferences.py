import json
import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from models import ReaderPreferences
from utils.storage import atomic_write_text

logger = logging.getLogger("novelforge.preferences")

# camelCase keys written by the web reader before the snake_case rename.
_LEGACY_KEYS = {
    "fontSize": "font_size",
    "fontFamily": "font_family",
    "lineHeight": "line_height",
    "maxWidth": "max_width",
    "paragraphSpacing": "paragraph_spacing",
    "justifyText": "justify_text",
    "showProgress": "show_progress",
    "autoAdvance": "auto_advance",
}


def parse_server_flag(value: Any) -> Optional[bool]:
    """Server settings arrive as real booleans or as the strings "true"/"false"."""
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


def merge_preferences(
    base: ReaderPreferences,
    overrides: Mapping[str, Any],
) -> ReaderPreferences:
    """Apply ``overrides`` field by field; unknown or invalid values keep ``base``."""
    merged = base.model_dump()
    for raw_key, value in (overrides or {}).items():
        key = _LEGACY_KEYS.get(raw_key, raw_key)
        if key not in ReaderPreferences.model_fields:
            logger.debug("preference ignored key=%s reason=unknown", raw_key)
            continue
        candidate = {**merged, key: value}
        try:
            merged = ReaderPreferences.model_validate(candidate).model_dump()
        except PydanticValidationError:
            logger.debug("preference ignored key=%s reason=invalid value=%r", raw_key, value)
    return ReaderPreferences.model_validate(merged)


def resolve_preferences(
    stored: Optional[Mapping[str, Any]] = None,
    server_defaults: Optional[Mapping[str, Any]] = None,
) -> ReaderPreferences:
    """Layered resolution: built-in defaults -> server defaults -> saved values."""
    prefs = ReaderPreferences()
    server_auto_advance = parse_server_flag((server_defaults or {}).get("reader_auto_advance"))
    if server_auto_advance is not None:
        prefs = prefs.model_copy(update={"auto_advance": server_auto_advance})
    if stored:
        prefs = merge_preferences(prefs, stored)
    return prefs


class PreferenceStore:
    """Reader/editor preferences persisted as one JSON document."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).expanduser()

    def read_raw(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("preferences unreadable path=%s error=%s fallback=defaults", self.path, exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("preferences ignored path=%s reason=not_an_object", self.path)
            return {}
        return data

    def load(self, server_defaults: Optional[Mapping[str, Any]] = None) -> ReaderPreferences:
        return resolve_preferences(self.read_raw(), server_defaults)

    def save(self, prefs: ReaderPreferences) -> None:
        atomic_write_text(
            self.path,
            json.dumps(prefs.model_dump(mode="json"), ensure_ascii=False, indent=2),
        )
        logger.info("preferences saved path=%s", self.path)
