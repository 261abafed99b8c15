# tests/test_formatter.py

import pandas as pd

from sales_bi.formatter import (
    day_label,
    day_span,
    division_grid,
    fill_series,
    frame_records,
    heatmap_rows,
    last_months,
    month_label,
    month_span,
    ranked,
    ranked_records,
    round_map,
    round_money,
)


def test_round_money_is_half_up_at_the_cent():
    assert round_money(1.005) == 1.01
    assert round_money(2.675) == 2.68
    assert round_money(-1.005) == -1.01
    assert round_money(949.999) == 950.0
    assert round_money("garbage") == 0.0


def test_round_money_has_no_negative_zero():
    value = round_money(-0.001)
    assert value == 0.0
    assert str(value) == "0.0"


def test_round_map():
    assert round_map({"a": 1.234, "b": 2}) == {"a": 1.23, "b": 2.0}


def test_ranked_breaks_ties_by_name():
    values = {"Zeta": 10.0, "Alpha": 10.0, "Mid": 50.0, "Low": 1.0}
    assert ranked(values) == [("Mid", 50.0), ("Alpha", 10.0), ("Zeta", 10.0), ("Low", 1.0)]
    assert ranked(pd.Series(values), limit=2) == [("Mid", 50.0), ("Alpha", 10.0)]


def test_ranked_records():
    records = ranked_records({"A": 1.005, "B": 3}, value_key="netSales")
    assert records == [{"name": "B", "netSales": 3.0}, {"name": "A", "netSales": 1.01}]


def test_month_span_crosses_years():
    assert month_span("2023-11-10", "2024-02-01") == ["2023-11", "2023-12", "2024-01", "2024-02"]
    assert month_span("2024-03-01", "2024-01-01") == []


def test_day_span():
    assert day_span("2024-02-27", "2024-03-01") == [
        "2024-02-27", "2024-02-28", "2024-02-29", "2024-03-01",
    ]
    assert day_span("2024-02-02", "2024-02-01") == []


def test_last_months():
    assert last_months("2024-02-15", 3) == ["2023-12", "2024-01", "2024-02"]


def test_labels():
    assert day_label("2024-01-05") == "Jan 5"
    assert day_label("2024-12-25T10:00:00") == "Dec 25"
    assert month_label("2024-03") == "Mar"


def test_fill_series_zero_fills():
    assert fill_series({"2024-01": 5}, ["2024-01", "2024-02"]) == [("2024-01", 5.0), ("2024-02", 0.0)]


def test_division_grid_is_rectangular():
    grid = pd.DataFrame({"2024-01": [100.0]}, index=["Dry Goods"])
    rows = division_grid(grid, ["Dry Goods", "Frozen Goods"], ["2024-01", "2024-02"])
    assert rows == [
        {"division": "Dry Goods", "2024-01": 100.0, "2024-02": 0.0, "total": 100.0},
        {"division": "Frozen Goods", "2024-01": 0.0, "2024-02": 0.0, "total": 0.0},
    ]


def test_heatmap_rows_carry_every_month():
    grid = pd.DataFrame(
        {"2024-01": [5.0, 0.0], "2024-02": [0.0, 20.0]},
        index=["CDO", "VIRGINIA"],
    )
    rows = heatmap_rows(grid, ["2024-01", "2024-02", "2024-03"])
    assert [r["supplier"] for r in rows] == ["VIRGINIA", "CDO"]
    for row in rows:
        assert set(row) == {"supplier", "total", "2024-01", "2024-02", "2024-03"}
    assert rows[1] == {"supplier": "CDO", "total": 5.0, "2024-01": 5.0, "2024-02": 0.0, "2024-03": 0.0}
    assert heatmap_rows(pd.DataFrame(), ["2024-01"]) == []


def test_frame_records():
    frame = pd.DataFrame({"name": ["A"], "value": [1.005], "count": [3.0]})
    assert frame_records(frame, money_columns=["value"], int_columns=["count"]) == [
        {"name": "A", "value": 1.01, "count": 3},
    ]


def test_labels_pass_unreadable_keys_through():
    assert day_label("") == ""
    assert day_label("2024-1-5 ") == "2024-1-5 "
    assert month_label("bad") == "bad"
