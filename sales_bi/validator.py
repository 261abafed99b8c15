# validator.py
import math
from datetime import date, datetime

import pandas as pd


class InvalidDateError(ValueError):
    """Raised when a query parameter cannot be read as a date."""


def clean_and_trim_string(value):
    """
    Cleans string values: strips whitespace, converts to string, handles None/NaN.
    Returns an empty string for missing values, cleaned string otherwise.
    """
    if value is None:
        return ""
    if isinstance(value, float) and math.isnan(value):
        return ""
    return str(value).strip()


def safe_id(value):
    """
    Normalizes a key or foreign key to its string form.

    Directus returns references either as raw scalars (``12``, ``"12"``) or,
    when a relation is expanded, as nested objects (``{"id": 12, ...}``).
    Integral floats collapse to their integer form so ``12.0`` and ``12``
    address the same row. Anything unusable becomes ``""``.
    """
    if value is None or isinstance(value, bool):
        return ""
    if isinstance(value, dict):
        return safe_id(value.get("id"))
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return ""
        if value.is_integer():
            return str(int(value))
    return clean_and_trim_string(value)


def clean_numeric(value):
    """
    Cleans numeric values: handles None/NaN/garbage, converts to float.
    Never raises; anything unparseable counts as 0.
    """
    if value is None or value == "":
        return 0.0
    try:
        number = float(value)
    except (ValueError, TypeError):
        return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


def clean_and_round_integer(value):
    """Rounds a numeric value to an int, 0 when unparseable."""
    return int(round(clean_numeric(value)))


def first_present(record, fields):
    """Returns the first non-empty value among ``fields`` of a record."""
    for field in fields:
        value = record.get(field)
        if value is not None and value != "":
            return value
    return None


def is_true(value):
    """
    Reads a boolean flag in any of the encodings the upstream store emits:
    ``True``, ``1``, ``"1"``, or a MySQL BIT column serialized as a Node
    buffer (``{"type": "Buffer", "data": [1]}``).
    """
    if value is True:
        return True
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return value == 1
    if isinstance(value, str):
        return value.strip() == "1"
    if isinstance(value, dict):
        data = value.get("data")
        if isinstance(data, (list, tuple)) and data:
            return data[0] == 1
    return False


def date_key(value):
    """
    '2024-01-15T08:00:00' -> '2024-01-15'.
    Returns an empty string for missing or unreadable dates, never raises.
    """
    if isinstance(value, (datetime, date)):
        return value.strftime("%Y-%m-%d")
    text = clean_and_trim_string(value)
    if not text:
        return ""
    day = text.replace("T", " ").split(" ", 1)[0]
    try:
        return datetime.strptime(day, "%Y-%m-%d").strftime("%Y-%m-%d")
    except ValueError:
        return ""


def month_key(value):
    """'2024-01-15' -> '2024-01'."""
    day = date_key(value)
    return day[:7] if day else ""


def parse_date(value):
    """
    Parses a date query parameter and returns it as 'YYYY-MM-DD'.
    Handles:
    - ISO dates and datetimes (2024-01-15, 2024-01-15T10:00:00)
    - US style dates from the filter bar (01/15/2024)
    - None/empty values (returns None)
    """
    text = clean_and_trim_string(value)
    if not text:
        return None

    for fmt in ("%Y-%m-%d", "%m/%d/%Y"):
        try:
            return datetime.strptime(text, fmt).strftime("%Y-%m-%d")
        except ValueError:
            continue

    parsed_date = pd.to_datetime(text, errors="coerce")
    if pd.isna(parsed_date):
        raise InvalidDateError(f"Invalid date: {text!r}")
    return parsed_date.strftime("%Y-%m-%d")


def parse_division(value):
    """``'all'`` or an empty value means no division filter."""
    text = clean_and_trim_string(value)
    if not text or text.lower() == "all":
        return None
    return text
