from __future__ import annotations

import os
from typing import Any, Dict, Optional
from constants import SETTINGS_DEFAULT

_TRUE = {"1", "true", "yes", "on"}


def _coerce(raw: str, default: Any) -> Any:
    if isinstance(default, bool):
        return raw.strip().lower() in _TRUE
    if isinstance(default, int):
        try:
            return int(raw)
        except ValueError:
            return default
    return raw


def load_settings(environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """Defaults from constants, overridden by any matching environment variable."""
    env = os.environ if environ is None else environ
    base = dict(SETTINGS_DEFAULT)
    for key, default in SETTINGS_DEFAULT.items():
        raw = env.get(key)
        if raw is not None and raw != "":
            base[key] = _coerce(raw, default)
    return base


def get_setting(settings: Dict[str, Any], key: str, default: Any = None) -> Any:
    return settings.get(key, default)
