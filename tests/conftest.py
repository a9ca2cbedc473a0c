from __future__ import annotations

import sys
from pathlib import Path

import pytest
import requests

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from piggybank import db as db_mod
from piggybank import sheet_client


@pytest.fixture
def temp_db(tmp_path, monkeypatch: pytest.MonkeyPatch):
    """Point the store at a fresh SQLite file."""
    monkeypatch.setattr(db_mod, "DB_PATH", tmp_path / "piggybank.db")
    db_mod.init_db()
    return db_mod


@pytest.fixture(autouse=True)
def _clear_sheet_cache():
    sheet_client.clear_cache()
    yield
    sheet_client.clear_cache()


class FakeResponse:
    """Minimal stand-in for ``requests.Response``."""

    def __init__(self, payload=None, status_code=200, text=None, headers=None, reason="OK"):
        self._payload = payload
        self.status_code = status_code
        self.text = text if text is not None else ("" if payload is None else str(payload))
        self.headers = headers if headers is not None else {"content-type": "application/json"}
        self.reason = reason

    @property
    def ok(self):
        return self.status_code < 400

    @property
    def is_redirect(self):
        return self.status_code in (301, 302, 303, 307, 308)

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")


@pytest.fixture
def fake_response():
    return FakeResponse
