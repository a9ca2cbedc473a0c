"""Lightweight persistent cache for dashboard preferences."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict

try:
    from .config import CACHE_PATH
except ImportError:  # pragma: no cover - fallback for direct execution
    from config import CACHE_PATH

logger = logging.getLogger(__name__)

SOURCE_DATABASE = "Database"
SOURCE_SHEET = "Google Sheet"
SOURCE_MODES = (SOURCE_DATABASE, SOURCE_SHEET)

DEFAULT_CACHE: Dict[str, Any] = {
    'user_id': '',
    'source_mode': SOURCE_DATABASE,
    'sheet_url': '',
    'date_range': 'month',
    'sort_option': 'latest',
}


def load_cache(path: Path | None = None) -> Dict[str, Any]:
    target = path or CACHE_PATH
    if not target.exists():
        return DEFAULT_CACHE.copy()
    try:
        with target.open('r', encoding='utf-8') as handle:
            data = json.load(handle)
    except (json.JSONDecodeError, OSError):
        logger.warning("Ignoring unreadable preferences file %s", target)
        return DEFAULT_CACHE.copy()
    if not isinstance(data, dict):
        return DEFAULT_CACHE.copy()
    merged = DEFAULT_CACHE.copy()
    merged.update({k: v for k, v in data.items() if k in DEFAULT_CACHE})
    if merged['source_mode'] not in SOURCE_MODES:
        merged['source_mode'] = SOURCE_DATABASE
    return merged


def save_cache(cache: Dict[str, Any], path: Path | None = None) -> None:
    target = path or CACHE_PATH
    target.parent.mkdir(parents=True, exist_ok=True)
    data = {k: v for k, v in cache.items() if k in DEFAULT_CACHE}
    with target.open('w', encoding='utf-8') as handle:
        json.dump(data, handle, indent=2, sort_keys=True)
