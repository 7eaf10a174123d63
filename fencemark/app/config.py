from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

GLOBAL_CONFIG = Path.home() / ".fencemark_config.json"

logger = logging.getLogger(__name__)


def init_settings() -> None:
    GLOBAL_CONFIG.parent.mkdir(parents=True, exist_ok=True)


def debug_enabled(var_name: str) -> bool:
    """Check if a debug flag is enabled."""
    return os.getenv(var_name, "0") not in ("0", "false", "False", "", None)


def _read_global_config() -> dict:
    """Return the parsed global config, or an empty dict on error/missing."""
    if not GLOBAL_CONFIG.exists():
        return {}
    try:
        payload = json.loads(GLOBAL_CONFIG.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Ignoring unreadable config %s: %s", GLOBAL_CONFIG, exc)
        return {}
    return payload if isinstance(payload, dict) else {}


def _update_global_config(updates: dict) -> None:
    """Merge updates into global config file."""
    existing = _read_global_config()
    existing.update(updates)
    GLOBAL_CONFIG.write_text(json.dumps(existing, indent=2), encoding="utf-8")


def load_pygments_style(default: str = "monokai") -> str:
    """Load preferred Pygments style for code fences."""
    payload = _read_global_config()
    style = payload.get("pygments_style")
    if isinstance(style, str) and style.strip():
        return style.strip()
    return default


def save_pygments_style(style: str) -> None:
    _update_global_config({"pygments_style": style})


def load_max_completion_options(default: int = 10) -> int:
    payload = _read_global_config()
    value = payload.get("max_completion_options", default)
    try:
        return max(1, int(value))
    except (TypeError, ValueError):
        return default


def save_max_completion_options(count: int) -> None:
    _update_global_config({"max_completion_options": max(1, int(count))})


def load_complete_on_typing() -> bool:
    """Open the completion popup while typing (default: True)."""
    payload = _read_global_config()
    return bool(payload.get("complete_on_typing", True))


def save_complete_on_typing(enabled: bool) -> None:
    _update_global_config({"complete_on_typing": bool(enabled)})


def load_fence_language_aliases() -> dict[str, str]:
    """Extra fence tags mapped to built-in language bundles, e.g. {"py3": "python"}."""
    payload = _read_global_config()
    aliases = payload.get("fence_language_aliases")
    result: dict[str, str] = {}
    if not isinstance(aliases, dict):
        return result
    for alias, target in aliases.items():
        if isinstance(alias, str) and isinstance(target, str) and alias.strip() and target.strip():
            result[alias.strip()] = target.strip()
        else:
            logger.warning("Skipping malformed fence alias %r -> %r", alias, target)
    return result


def save_fence_language_aliases(aliases: dict[str, str]) -> None:
    _update_global_config({"fence_language_aliases": dict(aliases)})


def load_editor_font_size(default: int = 12) -> int:
    payload = _read_global_config()
    value = payload.get("editor_font_size")
    if isinstance(value, int) and value > 0:
        return value
    return default


def save_editor_font_size(size: int) -> None:
    _update_global_config({"editor_font_size": int(size)})


def load_last_file() -> Optional[str]:
    payload = _read_global_config()
    last = payload.get("last_file")
    return last if isinstance(last, str) else None


def save_last_file(path: str) -> None:
    _update_global_config({"last_file": path})
