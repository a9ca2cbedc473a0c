#!/usr/bin/env python3
"""Copy transactions and budgets from a Google Sheet into the local database."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from piggybank import db, sheet_client
from piggybank.config import SHEET_URL
from piggybank.entries import EntryValidationError, validate_entry


def main(user_id: str, url: str, with_budgets: bool = True) -> int:
    db.init_db()
    profile = db.get_profile(user_id)
    if profile is None:
        print(f"No profile for user '{user_id}'. Open the dashboard once to create it.")
        return 1

    try:
        data = sheet_client.fetch_sheet_data(url, use_cache=False)
    except sheet_client.SheetError as exc:
        print(f"{exc.message} {exc.details or ''}".strip())
        return 1

    imported = skipped = 0
    for row in data.transactions:
        if row["Date"] is None:
            print(f"  skipped {row['id']}: missing or invalid date")
            skipped += 1
            continue
        try:
            entry = validate_entry(row)
        except EntryValidationError as exc:
            print(f"  skipped {row['id']}: {exc}")
            skipped += 1
            continue
        db.add_transaction(user_id, entry, source="sheet")
        imported += 1
    print(f"Imported {imported} transactions ({skipped} skipped).")

    if with_budgets:
        for budget in data.budgets:
            if not budget["Category"]:
                continue
            db.add_category(user_id, budget["Category"])
            db.upsert_budget(user_id, budget["Category"], max(budget["MonthlyBudget"], 0.0))
        print(f"Updated {len(data.budgets)} budgets.")
    return 0


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description='Import Google Sheet rows into the piggybank database.')
    parser.add_argument('user_id', help='Profile that receives the rows')
    parser.add_argument('--url', default=SHEET_URL, help='Apps Script URL (defaults to PIGGYBANK_SHEET_URL)')
    parser.add_argument('--skip-budgets', action='store_true', help='Only import transactions')
    args = parser.parse_args()
    if not args.url:
        parser.error('an Apps Script URL is required (--url or PIGGYBANK_SHEET_URL)')
    raise SystemExit(main(args.user_id, args.url, with_budgets=not args.skip_budgets))
