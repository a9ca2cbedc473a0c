"""Date-range resolution for the dashboard range selector.

A range is a named, relative window ("daily", "week", "month", "yearly",
"all") that is resolved against the current wall-clock time into a
half-open :class:`DateWindow`.  All timestamps handled here are naive
``pandas.Timestamp`` values expressed in the configured time zone;
:func:`parse_dates` converts raw transaction dates into that form.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Optional

import pandas as pd

try:
    from .config import MONTH_WINDOW_DAYS, TIMEZONE
except ImportError:  # pragma: no cover - fallback for direct execution
    from config import MONTH_WINDOW_DAYS, TIMEZONE

RANGES = ("daily", "week", "month", "yearly", "all")

RANGE_LABELS = {
    "daily": "Today",
    "week": "This Week",
    "month": f"Last {MONTH_WINDOW_DAYS} Days",
    "yearly": "Last 12 Months",
    "all": "All Time",
}

NO_DATA_LABEL = "No data for this period"


@dataclass(frozen=True)
class DateWindow:
    """Half-open interval ``[start, end)``; both ends ``None`` means unbounded."""

    start: Optional[pd.Timestamp]
    end: Optional[pd.Timestamp]

    @property
    def is_bounded(self) -> bool:
        return self.start is not None and self.end is not None

    @property
    def width(self) -> Optional[pd.Timedelta]:
        if not self.is_bounded:
            return None
        return self.end - self.start

    @property
    def last_day(self) -> Optional[pd.Timestamp]:
        """Calendar day of the last instant inside the window."""
        if self.end is None:
            return None
        return (self.end - pd.Timedelta(microseconds=1)).normalize()

    def contains(self, dates: pd.Series) -> pd.Series:
        """Boolean mask of parsed ``dates`` that fall inside the window.

        ``NaT`` never matches a bounded window.
        """
        if not self.is_bounded:
            return pd.Series(True, index=dates.index)
        return dates.notna() & (dates >= self.start) & (dates < self.end)


def current_time() -> pd.Timestamp:
    """Wall-clock time in the configured time zone, without tz info."""
    return pd.Timestamp.now(tz=TIMEZONE).tz_localize(None)


def parse_dates(values: Any) -> pd.Series:
    """Parse raw date values into naive timestamps; unparseable values become ``NaT``.

    Strings without an offset are read as UTC, which is how the store
    and the sheet client serialise dates.
    """
    if isinstance(values, pd.Series):
        series = values
    else:
        series = pd.Series(list(values), dtype="object")
    if series.empty:
        return pd.Series(pd.NaT, index=series.index, dtype="datetime64[ns]")
    parsed = pd.to_datetime(series, errors="coerce", utc=True, format="mixed")
    return parsed.dt.tz_convert(TIMEZONE).dt.tz_localize(None)


def to_utc_iso(value: Any) -> Optional[str]:
    """Serialise a date value as a UTC ISO-8601 string, ``None`` if unparseable.

    Naive values are taken to be in the configured time zone.  A time
    skipped by a DST change moves forward to the first valid instant and
    a repeated one resolves to the DST side.
    """
    try:
        parsed = pd.Timestamp(value)
    except (TypeError, ValueError):
        return None
    if pd.isna(parsed):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.tz_localize(TIMEZONE, ambiguous=True, nonexistent="shift_forward")
    return parsed.tz_convert("UTC").isoformat()


def resolve_range(
    range_key: str,
    now: Optional[pd.Timestamp] = None,
    month_window_days: int = MONTH_WINDOW_DAYS,
) -> DateWindow:
    """Resolve a range selector into a :class:`DateWindow`.

    * ``daily``  - today's calendar day
    * ``week``   - Monday to Sunday of the current week
    * ``month``  - rolling ``month_window_days`` days ending today
    * ``yearly`` - rolling 12 months ending today
    * ``all``    - unbounded
    """
    if range_key not in RANGES:
        raise ValueError(f"Unknown date range '{range_key}'. Expected one of {', '.join(RANGES)}.")
    if range_key == "all":
        return DateWindow(None, None)

    now = pd.Timestamp(now) if now is not None else current_time()
    today = now.normalize()
    tomorrow = today + pd.Timedelta(days=1)

    if range_key == "daily":
        return DateWindow(today, tomorrow)
    if range_key == "week":
        monday = today - pd.Timedelta(days=today.weekday())
        return DateWindow(monday, monday + pd.Timedelta(days=7))
    if range_key == "month":
        return DateWindow(tomorrow - pd.Timedelta(days=month_window_days), tomorrow)
    return DateWindow(tomorrow - pd.DateOffset(months=12), tomorrow)


def _day_label(ts: pd.Timestamp) -> str:
    return f"{ts.day} {ts.strftime('%b %Y')}"


def describe_window(range_key: str, window: DateWindow, dates: Iterable[Any]) -> str:
    """Human readable label for the header above the balance card."""
    parsed = parse_dates(dates)
    if parsed.empty and range_key != "all":
        return NO_DATA_LABEL

    if range_key == "daily":
        return _day_label(window.start)
    if range_key in ("week", "month"):
        return f"{window.start.day} {window.start.strftime('%b')} - {_day_label(window.last_day)}"
    if range_key == "yearly":
        return f"{window.start.strftime('%b %Y')} - {window.last_day.strftime('%b %Y')}"

    valid = parsed.dropna()
    if valid.empty:
        return RANGE_LABELS["all"]
    return f"{_day_label(valid.min())} - {_day_label(valid.max())}"
