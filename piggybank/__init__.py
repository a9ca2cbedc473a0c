"""Top-level package for piggybank.

A personal spending tracker: transactions and per-category budgets are
kept in SQLite or read from a Google Sheet through its Apps Script
endpoint.  The primary modules are:

* ``date_ranges`` - named range selector resolved into date windows
* ``aggregation`` - spending totals, breakdowns and budget scaling
* ``dashboard`` - the Streamlit app
* ``api`` - the FastAPI service for sheets, entries and notifications

To run the dashboard from the command line you can execute:

```bash
streamlit run piggybank/dashboard.py
```
"""

from . import aggregation  # noqa: F401  # re-exported for convenience
from . import date_ranges  # noqa: F401  # re-exported for convenience

__all__ = ["aggregation", "date_ranges"]

__version__ = "0.1.0"
