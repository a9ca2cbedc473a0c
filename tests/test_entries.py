import pytest

from piggybank import date_ranges
from piggybank.entries import EntryValidationError, validate_entry


def _entry(**overrides):
    data = {"Amount": "12.50", "Category": "F&B", "Notes": "Lunch", "Type": "Expense"}
    data.update(overrides)
    return data


def test_valid_entry_is_normalised():
    entry = validate_entry(_entry(Date="2024-03-01 10:00", Notes="  Lunch "))
    assert entry == {
        "Date": "2024-03-01T10:00:00+00:00",
        "Amount": 12.5,
        "Type": "Expense",
        "Category": "F&B",
        "Notes": "Lunch",
    }


def test_missing_date_defaults_to_now():
    entry = validate_entry(_entry())
    assert entry["Date"].endswith("+00:00")


@pytest.mark.parametrize("field", ["Amount", "Category", "Notes", "Type"])
def test_missing_fields(field):
    data = _entry()
    data.pop(field)
    with pytest.raises(EntryValidationError, match="Incomplete transaction data"):
        validate_entry(data)


def test_zero_amount_counts_as_missing():
    with pytest.raises(EntryValidationError, match="Incomplete transaction data"):
        validate_entry(_entry(Amount=0))


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"Category": 5}, "Category must be a string."),
        ({"Amount": "abc"}, "Amount must be a valid number."),
        ({"Amount": True}, "Amount must be a valid number."),
        ({"Amount": -3}, "Amount must be positive."),
        ({"Type": "Refund"}, "Type must be either Expense or Income."),
        ({"Date": "yesterday-ish"}, "Date must be a valid date."),
    ],
)
def test_rejected_entries(overrides, message):
    with pytest.raises(EntryValidationError) as excinfo:
        validate_entry(_entry(**overrides))
    assert str(excinfo.value) == message


def test_none_payload():
    with pytest.raises(EntryValidationError):
        validate_entry(None)


def test_date_in_dst_gap_is_accepted(monkeypatch):
    monkeypatch.setattr(date_ranges, "TIMEZONE", "America/New_York")
    entry = validate_entry(_entry(Date="2024-03-10 02:30"))
    assert entry["Date"] == "2024-03-10T07:00:00+00:00"
