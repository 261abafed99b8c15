# formatter.py
"""
Result Formatter: turns the engine's frames and maps into the JSON shapes
the dashboards chart.

Everything returned from here is made of plain ``float``/``int``/``str``
values; numpy scalars never leak into a response.
"""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

import pandas as pd
from dateutil.relativedelta import relativedelta

from .validator import clean_numeric

CENT = Decimal("0.01")


def round_money(value):
    """
    Rounds half-up at the cent and returns a float.

    Goes through ``str`` so binary noise does not decide the rounding
    (1.005 rounds to 1.01), and normalises -0.0 to 0.0.
    """
    number = clean_numeric(value)
    try:
        amount = Decimal(str(number)).quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return 0.0
    return float(amount) + 0.0


def round_map(mapping):
    return {key: round_money(value) for key, value in mapping.items()}


def ranked(values, limit=None):
    """
    ``[(name, value), ...]`` sorted by value descending, ties broken by name.
    Accepts a dict or a pandas Series.
    """
    items = values.items() if hasattr(values, "items") else values
    rows = sorted(((str(k), float(v)) for k, v in items), key=lambda kv: (-kv[1], kv[0]))
    return rows[:limit] if limit else rows


def ranked_records(values, name_key="name", value_key="value", limit=None):
    return [
        {name_key: name, value_key: round_money(value)}
        for name, value in ranked(values, limit)
    ]


# ============================================================
# CALENDAR AXES
# ============================================================

def month_span(from_date, to_date):
    """Every 'YYYY-MM' from the month of ``from_date`` to that of ``to_date``."""
    start = datetime.strptime(from_date[:7], "%Y-%m")
    end = datetime.strptime(to_date[:7], "%Y-%m")
    months = []
    while start <= end:
        months.append(start.strftime("%Y-%m"))
        start += relativedelta(months=1)
    return months


def day_span(from_date, to_date):
    """Every 'YYYY-MM-DD' between both dates, inclusive."""
    if from_date > to_date:
        return []
    return [d.strftime("%Y-%m-%d") for d in pd.date_range(from_date, to_date, freq="D")]


def last_months(as_of, count):
    """The ``count`` months ending with the month of ``as_of``, oldest first."""
    anchor = datetime.strptime(as_of[:7], "%Y-%m")
    return [
        (anchor - relativedelta(months=offset)).strftime("%Y-%m")
        for offset in range(count - 1, -1, -1)
    ]


def day_label(day):
    """'2024-01-05' -> 'Jan 5'; an unreadable key is returned as is."""
    try:
        parsed = datetime.strptime(day[:10], "%Y-%m-%d")
    except (TypeError, ValueError):
        return day
    return f"{parsed:%b} {parsed.day}"


def month_label(month):
    """'2024-01' -> 'Jan'; an unreadable key is returned as is."""
    try:
        return datetime.strptime(month[:7], "%Y-%m").strftime("%b")
    except (TypeError, ValueError):
        return month


def fill_series(values, keys):
    """``[(key, value)]`` for every key, 0 where ``values`` has none."""
    return [(key, float(values.get(key, 0) or 0)) for key in keys]


# ============================================================
# GRIDS
# ============================================================

def division_grid(grid, divisions, months):
    """
    One row per division with a column for every month plus ``total``.

    ``grid`` is a division x month frame (missing cells are 0). The result
    is rectangular even for divisions or months with no data.
    """
    frame = grid.reindex(index=list(divisions), columns=list(months), fill_value=0.0).fillna(0.0)
    rows = []
    for division in divisions:
        row = {"division": division}
        for month in months:
            row[month] = round_money(frame.at[division, month])
        row["total"] = round_money(frame.loc[division].sum())
        rows.append(row)
    return rows


def heatmap_rows(grid, months):
    """
    Supplier rows of one division's heatmap, highest total first.

    ``grid`` is a supplier x month frame; every row carries every month.
    """
    if grid.empty:
        return []
    frame = grid.reindex(columns=list(months), fill_value=0.0).fillna(0.0)
    totals = grid.sum(axis=1)

    rows = []
    for supplier, total in ranked(totals):
        row = {"supplier": supplier, "total": round_money(total)}
        for month in months:
            row[month] = round_money(frame.at[supplier, month])
        rows.append(row)
    return rows


def frame_records(frame, money_columns=(), int_columns=()):
    """DataFrame -> list of dicts with rounded money and int columns."""
    records = []
    for row in frame.to_dict("records"):
        for column in money_columns:
            row[column] = round_money(row[column])
        for column in int_columns:
            row[column] = int(row[column])
        records.append(row)
    return records
