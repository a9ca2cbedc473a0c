from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence

import pandas as pd

try:
    from .config import DB_PATH, DEFAULT_CATEGORIES
    from .push_subscriptions import SubscriptionRecord, build_subscription_id
except ImportError:
    from config import DB_PATH, DEFAULT_CATEGORIES
    from push_subscriptions import SubscriptionRecord, build_subscription_id

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
PRAGMA journal_mode=WAL;
PRAGMA synchronous=NORMAL;

CREATE TABLE IF NOT EXISTS users (
    user_id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    categories TEXT NOT NULL DEFAULT '[]',
    income REAL NOT NULL DEFAULT 0,
    savings REAL NOT NULL DEFAULT 0,
    notify_key TEXT,
    created_at TEXT
);

CREATE TABLE IF NOT EXISTS transactions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    transaction_date TEXT,
    amount REAL NOT NULL,
    type TEXT NOT NULL,
    category TEXT,
    notes TEXT,
    source TEXT,
    created_at TEXT
);

CREATE INDEX IF NOT EXISTS ix_txn_user_date ON transactions (user_id, transaction_date);

CREATE TABLE IF NOT EXISTS budgets (
    user_id TEXT NOT NULL,
    category TEXT NOT NULL,
    monthly_budget REAL NOT NULL DEFAULT 0,
    PRIMARY KEY (user_id, category)
);

CREATE TABLE IF NOT EXISTS push_subscriptions (
    user_id TEXT NOT NULL,
    subscription_id TEXT NOT NULL,
    endpoint TEXT NOT NULL,
    auth TEXT NOT NULL,
    p256dh TEXT NOT NULL,
    updated_at TEXT,
    PRIMARY KEY (user_id, subscription_id)
);

CREATE TABLE IF NOT EXISTS device_tokens (
    user_id TEXT NOT NULL,
    token TEXT NOT NULL,
    updated_at TEXT,
    PRIMARY KEY (user_id, token)
);
"""

PROFILE_FIELDS = ("name", "income", "savings", "notify_key")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@contextmanager
def connect() -> Iterator[sqlite3.Connection]:
    path = Path(DB_PATH)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    try:
        yield conn
    finally:
        conn.close()


def init_db() -> None:
    with connect() as conn:
        conn.executescript(SCHEMA_SQL)
        conn.commit()


# ---------------------------------------------------------------------------
# Profiles and categories
# ---------------------------------------------------------------------------


def _profile_from_row(row: Sequence[Any]) -> Dict[str, Any]:
    user_id, name, raw_categories, income, savings, notify_key = row
    try:
        categories = json.loads(raw_categories or "[]")
    except json.JSONDecodeError:
        logger.warning("Corrupt category list for user %s; treating it as empty", user_id)
        categories = []
    return {
        "id": user_id,
        "name": name,
        "categories": categories,
        "income": float(income or 0.0),
        "savings": float(savings or 0.0),
        "notify_key": notify_key,
    }


def get_profile(user_id: str) -> Optional[Dict[str, Any]]:
    with connect() as conn:
        row = conn.execute(
            "SELECT user_id, name, categories, income, savings, notify_key FROM users WHERE user_id = ?",
            (user_id,),
        ).fetchone()
    return _profile_from_row(row) if row else None


def create_profile(user_id: str, name: str, categories: Optional[Sequence[str]] = None) -> Dict[str, Any]:
    """First-login setup: profile with default categories and zero budgets."""
    categories = list(categories if categories is not None else DEFAULT_CATEGORIES)
    with connect() as conn:
        conn.execute(
            "INSERT INTO users (user_id, name, categories, income, savings, created_at) "
            "VALUES (?, ?, ?, 0, 0, ?) "
            "ON CONFLICT(user_id) DO UPDATE SET name = excluded.name, categories = excluded.categories, "
            "income = 0, savings = 0",
            (user_id, name.strip(), json.dumps(categories), _now_iso()),
        )
        conn.executemany(
            "INSERT INTO budgets (user_id, category, monthly_budget) VALUES (?, ?, 0) "
            "ON CONFLICT(user_id, category) DO UPDATE SET monthly_budget = 0",
            [(user_id, category) for category in categories],
        )
        conn.commit()
    logger.info("Created profile for user %s", user_id)
    return get_profile(user_id)


def update_profile(user_id: str, **fields: Any) -> bool:
    """Update ``name``, ``income``, ``savings`` or ``notify_key``.

    Returns True if the profile exists and was updated.
    """
    unknown = set(fields) - set(PROFILE_FIELDS)
    if unknown:
        raise ValueError(f"Unknown profile fields: {', '.join(sorted(unknown))}")
    if not fields:
        return False

    updates = [f"{column} = ?" for column in fields]
    params: List[Any] = list(fields.values())
    params.append(user_id)
    with connect() as conn:
        cursor = conn.execute(f"UPDATE users SET {', '.join(updates)} WHERE user_id = ?", params)
        conn.commit()
        return cursor.rowcount > 0


def _save_categories(conn: sqlite3.Connection, user_id: str, categories: List[str]) -> None:
    conn.execute("UPDATE users SET categories = ? WHERE user_id = ?", (json.dumps(categories), user_id))


def add_category(user_id: str, category: str) -> bool:
    """Append a category and give it a zero budget.  False if blank or present."""
    category = (category or "").strip()
    profile = get_profile(user_id)
    if not category or profile is None or category in profile["categories"]:
        return False
    with connect() as conn:
        _save_categories(conn, user_id, profile["categories"] + [category])
        conn.execute(
            "INSERT INTO budgets (user_id, category, monthly_budget) VALUES (?, ?, 0) "
            "ON CONFLICT(user_id, category) DO UPDATE SET monthly_budget = 0",
            (user_id, category),
        )
        conn.commit()
    return True


def remove_category(user_id: str, category: str) -> bool:
    profile = get_profile(user_id)
    if profile is None or category not in profile["categories"]:
        return False
    remaining = [c for c in profile["categories"] if c != category]
    with connect() as conn:
        _save_categories(conn, user_id, remaining)
        conn.execute("DELETE FROM budgets WHERE user_id = ? AND category = ?", (user_id, category))
        conn.commit()
    return True


# ---------------------------------------------------------------------------
# Budgets
# ---------------------------------------------------------------------------


def upsert_budget(user_id: str, category: str, monthly_budget: float) -> None:
    amount = float(monthly_budget)
    if amount < 0:
        raise ValueError("Budget must be zero or more.")
    with connect() as conn:
        conn.execute(
            "INSERT INTO budgets (user_id, category, monthly_budget) VALUES (?, ?, ?) "
            "ON CONFLICT(user_id, category) DO UPDATE SET monthly_budget = excluded.monthly_budget",
            (user_id, category, amount),
        )
        conn.commit()


def fetch_budgets(user_id: str) -> pd.DataFrame:
    sql = (
        "SELECT category AS 'Category', monthly_budget AS 'MonthlyBudget' "
        "FROM budgets WHERE user_id = ? ORDER BY rowid"
    )
    with connect() as conn:
        return pd.read_sql_query(sql, conn, params=[user_id])


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


def add_transaction(user_id: str, entry: Dict[str, Any], source: str = "form") -> str:
    """Insert a validated entry (see :func:`piggybank.entries.validate_entry`)."""
    with connect() as conn:
        cursor = conn.execute(
            "INSERT INTO transactions (user_id, transaction_date, amount, type, category, notes, source, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                user_id,
                entry.get("Date"),
                float(entry["Amount"]),
                entry["Type"],
                entry.get("Category"),
                entry.get("Notes"),
                source,
                _now_iso(),
            ),
        )
        conn.commit()
        return str(cursor.lastrowid)


def fetch_transactions(user_id: str, limit: Optional[int] = None) -> pd.DataFrame:
    """Transactions for ``user_id``, newest first."""
    sql = (
        "SELECT CAST(id AS TEXT) AS 'id', transaction_date AS 'Date', amount AS 'Amount', type AS 'Type', "
        "category AS 'Category', notes AS 'Notes' FROM transactions WHERE user_id = ? "
        "ORDER BY transaction_date DESC, id DESC"
    )
    params: List[Any] = [user_id]
    if limit is not None:
        sql += " LIMIT ?"
        params.append(int(limit))
    with connect() as conn:
        return pd.read_sql_query(sql, conn, params=params)


def delete_transaction(user_id: str, transaction_id: str) -> bool:
    with connect() as conn:
        cursor = conn.execute(
            "DELETE FROM transactions WHERE user_id = ? AND id = ?",
            (user_id, transaction_id),
        )
        conn.commit()
        return cursor.rowcount > 0


# ---------------------------------------------------------------------------
# Push subscriptions and device tokens
# ---------------------------------------------------------------------------


def save_push_subscription(user_id: str, record: SubscriptionRecord, old_endpoint: Optional[str] = None) -> None:
    """Upsert a subscription; a rotated ``old_endpoint`` is removed."""
    with connect() as conn:
        conn.execute(
            "INSERT INTO push_subscriptions (user_id, subscription_id, endpoint, auth, p256dh, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?) "
            "ON CONFLICT(user_id, subscription_id) DO UPDATE SET endpoint = excluded.endpoint, "
            "auth = excluded.auth, p256dh = excluded.p256dh, updated_at = excluded.updated_at",
            (user_id, record.id, record.endpoint, record.auth, record.p256dh, _now_iso()),
        )
        conn.commit()

    if old_endpoint and old_endpoint != record.endpoint:
        try:
            delete_push_subscription(user_id, old_endpoint)
        except sqlite3.Error:
            logger.warning("Failed to delete stale subscription during rotation.", exc_info=True)


def delete_push_subscription(user_id: str, endpoint: str) -> bool:
    with connect() as conn:
        cursor = conn.execute(
            "DELETE FROM push_subscriptions WHERE user_id = ? AND subscription_id = ?",
            (user_id, build_subscription_id(endpoint)),
        )
        conn.commit()
        return cursor.rowcount > 0


def fetch_push_subscriptions(user_id: str) -> List[Dict[str, Any]]:
    with connect() as conn:
        rows = conn.execute(
            "SELECT endpoint, auth, p256dh, updated_at FROM push_subscriptions WHERE user_id = ? ORDER BY updated_at",
            (user_id,),
        ).fetchall()
    return [
        {"endpoint": endpoint, "keys": {"auth": auth, "p256dh": p256dh}, "updatedAt": updated_at}
        for endpoint, auth, p256dh, updated_at in rows
    ]


def save_device_token(user_id: str, token: str) -> None:
    with connect() as conn:
        conn.execute(
            "INSERT INTO device_tokens (user_id, token, updated_at) VALUES (?, ?, ?) "
            "ON CONFLICT(user_id, token) DO UPDATE SET updated_at = excluded.updated_at",
            (user_id, token, _now_iso()),
        )
        conn.commit()


def fetch_device_tokens(user_id: str) -> List[str]:
    with connect() as conn:
        rows = conn.execute(
            "SELECT token FROM device_tokens WHERE user_id = ? ORDER BY updated_at",
            (user_id,),
        ).fetchall()
    return [r[0] for r in rows if r[0]]


def delete_device_token(user_id: str, token: str) -> bool:
    with connect() as conn:
        cursor = conn.execute("DELETE FROM device_tokens WHERE user_id = ? AND token = ?", (user_id, token))
        conn.commit()
        return cursor.rowcount > 0
