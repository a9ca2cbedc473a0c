"""Configuration management for piggybank.

This module centralizes all configuration values including paths,
external endpoints and environment variable overrides.  A ``.env`` file
in the working directory is loaded first so local settings do not need
to be exported by hand.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Base project root - assumes this file is in piggybank/
_PROJECT_ROOT = Path(__file__).parent.parent.resolve()

# Data directories
DATA_DIR = Path(os.getenv("PIGGYBANK_DATA_DIR", _PROJECT_ROOT / "data"))

# Database
DB_PATH = Path(
    os.getenv("PIGGYBANK_DB_PATH", DATA_DIR / "piggybank.db")
).resolve()

# Dashboard preferences
CACHE_PATH = Path(
    os.getenv("PIGGYBANK_CACHE_PATH", DATA_DIR / "persistent_cache.json")
).resolve()

# Google Apps Script endpoint
SHEET_URL = os.getenv("PIGGYBANK_SHEET_URL", "")
SHEET_CACHE_TTL = float(os.getenv("PIGGYBANK_SHEET_CACHE_TTL", "60"))

# Date handling
MONTH_WINDOW_DAYS = int(os.getenv("PIGGYBANK_MONTH_WINDOW_DAYS", "30"))
TIMEZONE = os.getenv("PIGGYBANK_TIMEZONE", "UTC")

HTTP_TIMEOUT = float(os.getenv("PIGGYBANK_HTTP_TIMEOUT", "20"))
LOG_LEVEL = os.getenv("PIGGYBANK_LOG_LEVEL", "INFO")

# API service
API_HOST = os.getenv("PIGGYBANK_API_HOST", "127.0.0.1")
API_PORT = int(os.getenv("PIGGYBANK_API_PORT", "8000"))

# AI summary
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")
GEMINI_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

# Push notifications
FIREBASE_CREDENTIALS = os.getenv("GOOGLE_APPLICATION_CREDENTIALS", "")
KEY_PUSH_URL = os.getenv("KEY_PUSH_URL", "https://ntfy.sh").rstrip("/")

DEFAULT_CATEGORIES = ["F&B", "Shopping", "Transport", "Bills"]


def ensure_data_directories() -> None:
    """Create all required data directories if they don't exist."""
    for directory in [DATA_DIR, DB_PATH.parent, CACHE_PATH.parent]:
        directory.mkdir(parents=True, exist_ok=True)
