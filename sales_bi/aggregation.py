# aggregation.py
"""
Aggregation Engine.

One parametric pipeline behind every dashboard: the raw collections of a
request are joined into a line frame (one row per in-range invoice detail),
a returns frame and a collections frame. The fold helpers on
``AggregateResult`` then group those frames along whatever axis a view
charts.

Line arithmetic:

    gross_net = total_amount - discount_amount
    net       = gross_net - returned            (matched return value)
    net_qty   = max(quantity - returned_qty, 0)
    cogs      = unit_cost * net_qty

A return detail is matched to sales lines on (order_id, invoice_no, master
product). All returns sharing a key are charged once, against the first
line of that key. Returns that match no in-range line form the returns
bucket: classified with the view's returns cascade, filtered by their own
date, and subtracted per division/month when results are folded. Each
return is therefore counted exactly once.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Dict, List, Optional

import numpy as np
import pandas as pd
from dateutil.relativedelta import relativedelta

from . import config
from .classifier import CascadeMode, normalize_division
from .formatter import day_span, month_span
from .validator import (
    clean_and_trim_string,
    clean_numeric,
    date_key,
    first_present,
    is_true,
    safe_id,
)

logger = logging.getLogger(__name__)

# Heatmaps and supplier charts only fold lines with at least this much positive net
CHART_EPSILON = 0.005

RETURN_DATE_FIELDS = ("return_date", "received_at", "created_at", "updated_at")
INVOICE_DATE_FIELDS = ("invoice_date", "dispatch_date")

INVOICE_COLUMNS = [
    "invoice_id", "invoice_no", "order_id", "date", "salesman_id", "customer_code", "branch_id",
]
DETAIL_COLUMNS = [
    "invoice_id", "product_id", "quantity", "total_amount", "discount_amount", "unit_price",
]
RETURN_COLUMNS = [
    "return_no", "order_id", "invoice_no", "date", "product_id", "quantity", "value",
]
COLLECTION_COLUMNS = ["date", "salesman_id", "division", "amount"]

LINE_NUMERIC = ["quantity", "total_amount", "discount_amount", "unit_price"]


@dataclass(frozen=True)
class ReportFilters:
    """Query filters shared by every view; dates are 'YYYY-MM-DD' or None."""

    from_date: Optional[str] = None
    to_date: Optional[str] = None
    division: Optional[str] = None
    salesman_id: Optional[str] = None

    @property
    def bounded(self) -> bool:
        return bool(self.from_date and self.to_date)

    def in_range(self, day: str) -> bool:
        if not day:
            return False
        if self.from_date and day < self.from_date:
            return False
        if self.to_date and day > self.to_date:
            return False
        return True

    def previous(self):
        """
        The window of equal length ending the day before this one, or None
        when the range is open.

            2024-02-01..2024-02-29 -> 2024-01-03..2024-01-31
        """
        if not self.bounded:
            return None
        start = datetime.strptime(self.from_date, "%Y-%m-%d")
        end = datetime.strptime(self.to_date, "%Y-%m-%d")
        if end < start:
            return None
        prev_end = start - relativedelta(days=1)
        prev_start = prev_end - (end - start)
        return replace(
            self,
            from_date=prev_start.strftime("%Y-%m-%d"),
            to_date=prev_end.strftime("%Y-%m-%d"),
        )


@dataclass(frozen=True)
class ViewConfig:
    """How one dashboard runs the shared pipeline."""

    name: str
    sales_mode: CascadeMode = CascadeMode.FULL
    returns_mode: CascadeMode = CascadeMode.REDUCED
    # False sends every return to the bucket instead of netting it off lines
    match_returns: bool = True
    supplier_hints: bool = False
    unmapped_supplier: str = config.INTERNAL_OTHERS
    trend: str = "month"


VIEWS = {
    "divisionshead": ViewConfig("divisionshead"),
    "executive": ViewConfig("executive", trend="day"),
    "executive-v2": ViewConfig(
        "executive-v2",
        sales_mode=CascadeMode.SUPPLIER_ONLY,
        unmapped_supplier=config.UNASSIGNED_SUPPLIER,
    ),
    "manager-v2": ViewConfig("manager-v2", match_returns=False, supplier_hints=True, trend="day"),
    "salesman": ViewConfig("salesman", trend="day"),
    "supervisor": ViewConfig("supervisor"),
}


def return_value(record, quantity):
    """
    Value of one return detail row, always non-negative:
    total - discount when a total is present, else gross - discount,
    else unit price x quantity.
    """
    total = clean_numeric(record.get("total_amount"))
    discount = clean_numeric(record.get("discount_amount"))
    if total != 0:
        return abs(total - discount)
    gross = record.get("gross_amount")
    if gross is not None and gross != "":
        return abs(clean_numeric(gross) - discount)
    return abs(clean_numeric(record.get("unit_price")) * quantity)


def _sum(frame, column):
    if frame.empty:
        return 0.0
    return float(frame[column].sum())


def _accumulate(grid, series):
    """Adds a (row, column) -> value series into a pre-shaped frame."""
    for (row, column), value in series.items():
        if row in grid.index and column in grid.columns:
            grid.at[row, column] += float(value)
    return grid


@dataclass
class AggregateResult:
    lines: pd.DataFrame
    returns: pd.DataFrame
    collections: pd.DataFrame
    months: List[str]
    days: List[str]
    stock_by_division: Dict[str, float] = field(default_factory=dict)
    filters: ReportFilters = field(default_factory=ReportFilters)

    @property
    def divisions(self) -> List[str]:
        if self.filters.division:
            return [self.filters.division]
        return list(config.ALL_DIVISIONS)

    def for_division(self, division):
        """This result narrowed to one division; unchanged when ``division`` is None."""
        if not division:
            return self
        return replace(
            self,
            lines=self.lines[self.lines["division"] == division].reset_index(drop=True),
            returns=self.returns[self.returns["division"] == division].reset_index(drop=True),
            collections=self.collections[self.collections["division"] == division].reset_index(drop=True),
            filters=replace(self.filters, division=division),
        )

    def totals(self) -> Dict[str, float]:
        gross = _sum(self.lines, "gross_net")
        returns = _sum(self.lines, "returned") + _sum(self.returns, "value")
        return {
            "total_amount": _sum(self.lines, "total_amount"),
            "discount": _sum(self.lines, "discount_amount"),
            "gross_sales": gross,
            "returns": returns,
            "net_sales": gross - returns,
            "cogs": _sum(self.lines, "cogs"),
            "collections": _sum(self.collections, "amount"),
            "quantity": _sum(self.lines, "quantity"),
            "returned_quantity": _sum(self.lines, "returned_qty") + _sum(self.returns, "quantity"),
            "invoices": int(self.lines["invoice_id"].nunique()) if not self.lines.empty else 0,
        }

    def by_division(self) -> pd.DataFrame:
        """Per-division gross, returns, net, cogs and collections for every division."""
        index = list(config.ALL_DIVISIONS)

        def per_division(frame, column):
            if frame.empty:
                return pd.Series(0.0, index=index)
            return frame.groupby("division")[column].sum().reindex(index, fill_value=0.0)

        result = pd.DataFrame({
            "gross_sales": per_division(self.lines, "gross_net"),
            "returns": per_division(self.lines, "returned") + per_division(self.returns, "value"),
            "cogs": per_division(self.lines, "cogs"),
            "collections": per_division(self.collections, "amount"),
        }, index=index)
        result["net_sales"] = result["gross_sales"] - result["returns"]
        return result

    def _net_by(self, column, keys) -> pd.Series:
        sales = self.lines.groupby(column)["net"].sum() if not self.lines.empty else pd.Series(dtype=float)
        bucket = self.returns.groupby(column)["value"].sum() if not self.returns.empty else pd.Series(dtype=float)
        combined = sales.sub(bucket, fill_value=0.0)
        return combined.reindex(keys, fill_value=0.0)

    def by_month(self) -> pd.Series:
        return self._net_by("month", self.months)

    def by_day(self) -> pd.Series:
        return self._net_by("date", self.days)

    def trend(self, granularity) -> pd.Series:
        return self.by_day() if granularity == "day" else self.by_month()

    def division_month_grid(self) -> pd.DataFrame:
        """Net sales, division x month, zero-filled over every division and month."""
        grid = pd.DataFrame(0.0, index=list(config.ALL_DIVISIONS), columns=self.months)
        if not self.lines.empty:
            _accumulate(grid, self.lines.groupby(["division", "month"])["net"].sum())
        if not self.returns.empty:
            _accumulate(grid, -self.returns.groupby(["division", "month"])["value"].sum())
        return grid

    def _chart_lines(self) -> pd.DataFrame:
        if self.lines.empty:
            return self.lines
        return self.lines[self.lines["net"] >= CHART_EPSILON]

    def heatmap(self) -> Dict[str, pd.DataFrame]:
        """``{division: supplier x month frame}`` over chartable lines."""
        chart = self._chart_lines()
        heatmaps = {}
        if chart.empty:
            return heatmaps
        for division, group in chart.groupby("division", sort=True):
            grid = pd.DataFrame(0.0, index=sorted(group["supplier"].unique()), columns=self.months)
            heatmaps[division] = _accumulate(grid, group.groupby(["supplier", "month"])["net"].sum())
        return heatmaps

    def supplier_chart(self) -> Dict[str, pd.Series]:
        """``{division: supplier -> net}`` over chartable lines."""
        chart = self._chart_lines()
        if chart.empty:
            return {}
        return {
            division: group.groupby("supplier")["net"].sum()
            for division, group in chart.groupby("division", sort=True)
        }

    def by_supplier(self) -> pd.Series:
        if self.lines.empty:
            return pd.Series(dtype=float)
        return self.lines.groupby("supplier")["net"].sum()

    def by_product(self) -> pd.DataFrame:
        """Master products with net quantity and net value, best first."""
        if self.lines.empty:
            return pd.DataFrame(columns=["master_id", "name", "quantity", "value"])
        products = self.lines.groupby("master_id", as_index=False).agg(
            name=("product", "first"),
            quantity=("net_qty", "sum"),
            value=("net", "sum"),
        )
        return products.sort_values(["value", "name"], ascending=[False, True], kind="mergesort")

    def by_customer(self) -> pd.DataFrame:
        if self.lines.empty:
            return pd.DataFrame(
                columns=["customer_code", "name", "division", "branch", "value", "invoices", "last_date"]
            )
        customers = self.lines.groupby("customer_code", as_index=False).agg(
            name=("customer", "first"),
            division=("division", "first"),
            branch=("branch", "first"),
            value=("net", "sum"),
            invoices=("invoice_id", "nunique"),
            last_date=("date", "max"),
        )
        return customers.sort_values(["value", "name"], ascending=[False, True], kind="mergesort")

    def by_salesman(self) -> pd.DataFrame:
        if self.lines.empty:
            return pd.DataFrame(
                columns=["salesman_id", "name", "division", "branch", "value", "gross", "returned",
                         "invoices", "products"]
            )
        salesmen = self.lines.groupby("salesman_id", as_index=False).agg(
            name=("salesman", "first"),
            division=("division", "first"),
            branch=("branch", "first"),
            value=("net", "sum"),
            gross=("gross_net", "sum"),
            returned=("returned", "sum"),
            invoices=("invoice_id", "nunique"),
            products=("master_id", "nunique"),
        )
        return salesmen.sort_values(["value", "name"], ascending=[False, True], kind="mergesort")

    def supplier_salesmen(self) -> pd.Series:
        """(supplier, salesman) -> net."""
        if self.lines.empty:
            return pd.Series(dtype=float)
        return self.lines.groupby(["supplier", "salesman"])["net"].sum()

    def top_product_by_salesman(self) -> Dict[str, str]:
        if self.lines.empty:
            return {}
        sums = self.lines.groupby(["salesman_id", "product"], as_index=False)["net"].sum()
        sums = sums.sort_values(["net", "product"], ascending=[False, True], kind="mergesort")
        return dict(sums.drop_duplicates("salesman_id")[["salesman_id", "product"]].values.tolist())

    def returns_by_month(self) -> pd.Series:
        """Matched plus bucket return value per month."""
        matched = self.lines.groupby("month")["returned"].sum() if not self.lines.empty else pd.Series(dtype=float)
        bucket = self.returns.groupby("month")["value"].sum() if not self.returns.empty else pd.Series(dtype=float)
        return matched.add(bucket, fill_value=0.0).reindex(self.months, fill_value=0.0)

    def daily_quantities(self) -> pd.DataFrame:
        """Sold quantity (good stock out) and returned quantity (bad stock in) per day."""
        good = self.lines.groupby("date")["quantity"].sum() if not self.lines.empty else pd.Series(dtype=float)
        bad = self.returns.groupby("date")["quantity"].sum() if not self.returns.empty else pd.Series(dtype=float)
        return pd.DataFrame({
            "good": good.reindex(self.days, fill_value=0.0),
            "bad": bad.reindex(self.days, fill_value=0.0),
        }, index=self.days)

    def stock(self) -> Dict[str, float]:
        if self.filters.division:
            current = self.stock_by_division.get(self.filters.division, 0.0)
        else:
            current = sum(self.stock_by_division.values())
        return {
            "outflow": _sum(self.lines, "quantity"),
            "bad_stock": _sum(self.lines, "returned_qty") + _sum(self.returns, "quantity"),
            "current_stock": float(current),
        }

    def stock_per_division(self) -> pd.DataFrame:
        index = list(config.ALL_DIVISIONS)
        outflow = (
            self.lines.groupby("division")["quantity"].sum() if not self.lines.empty else pd.Series(dtype=float)
        )
        bad = (
            self.returns.groupby("division")["quantity"].sum() if not self.returns.empty else pd.Series(dtype=float)
        )
        return pd.DataFrame({
            "outflow": outflow.reindex(index, fill_value=0.0),
            "bad_stock": bad.reindex(index, fill_value=0.0),
            "current_stock": pd.Series(self.stock_by_division, dtype=float).reindex(index, fill_value=0.0),
        }, index=index)


class SalesAggregator:
    """
    Runs one view over one request's raw collections.

    ``raw`` maps input names to record lists: invoices, details, returns,
    return_details and collections. Lookups are built by the caller from the
    same snapshot.
    """

    def __init__(self, lookups, classifier, view=None, filters=None):
        self.lookups = lookups
        self.classifier = classifier
        self.view = view or VIEWS["divisionshead"]
        self.filters = filters or ReportFilters()

    def run(self, raw) -> AggregateResult:
        invoices = self._invoice_frame(raw.get("invoices"))
        lines = self._line_frame(invoices, raw.get("details"))
        returns = self._return_frame(raw.get("returns"), raw.get("return_details"))

        lines, returns = self._apply_returns(lines, returns)
        bucket = self._returns_bucket(returns)

        division = self.filters.division
        if division:
            lines = lines[lines["division"] == division]
            bucket = bucket[bucket["division"] == division]

        collections = self._collection_frame(raw.get("collections"))
        months, days = self._calendar(lines, bucket)

        logger.info(
            "📊 [%s] %s lines, %s unmatched returns, %s collections",
            self.view.name, len(lines), len(bucket), len(collections),
        )
        return AggregateResult(
            lines=lines.reset_index(drop=True),
            returns=bucket.reset_index(drop=True),
            collections=collections,
            months=months,
            days=days,
            stock_by_division=self._stock_by_division(),
            filters=self.filters,
        )

    # ------------------------------------------------------------
    # Frames
    # ------------------------------------------------------------

    def _invoice_frame(self, records):
        rows = []
        for inv in records or []:
            if not isinstance(inv, dict):
                continue
            invoice_id = safe_id(inv.get("invoice_id"))
            day = date_key(first_present(inv, INVOICE_DATE_FIELDS))
            if not invoice_id or not self.filters.in_range(day):
                continue
            salesman_id = safe_id(inv.get("salesman_id"))
            if self.filters.salesman_id and salesman_id != self.filters.salesman_id:
                continue
            rows.append({
                "invoice_id": invoice_id,
                "invoice_no": safe_id(inv.get("invoice_no")),
                "order_id": safe_id(inv.get("order_id")),
                "date": day,
                "salesman_id": salesman_id,
                "customer_code": safe_id(inv.get("customer_code")),
                "branch_id": safe_id(inv.get("branch_id")),
            })
        frame = pd.DataFrame(rows, columns=INVOICE_COLUMNS)
        return frame.drop_duplicates("invoice_id", keep="first")

    def _line_frame(self, invoices, records):
        rows = []
        for det in records or []:
            if not isinstance(det, dict):
                continue
            invoice_id = safe_id(det.get("invoice_no"))
            if not invoice_id:
                continue
            rows.append({
                "invoice_id": invoice_id,
                "product_id": safe_id(det.get("product_id")),
                "quantity": clean_numeric(det.get("quantity")),
                "total_amount": clean_numeric(det.get("total_amount")),
                "discount_amount": clean_numeric(det.get("discount_amount")),
                "unit_price": clean_numeric(det.get("unit_price")),
            })
        details = pd.DataFrame(rows, columns=DETAIL_COLUMNS).astype({c: float for c in LINE_NUMERIC})

        # inner join drops details whose invoice is out of range or missing
        lines = details.merge(invoices, on="invoice_id", how="inner").reset_index(drop=True)

        lk = self.lookups
        view = self.view
        lines["master_id"] = lines["product_id"].map(lk.master_of)
        lines["product"] = lines["master_id"].map(lk.product_name)
        lines["customer"] = lines["customer_code"].map(lk.customer_label)
        lines["salesman"] = lines["salesman_id"].map(lk.salesman_label)
        lines["branch"] = lines["branch_id"].map(lk.branch_label)
        lines["supplier"] = lines["product_id"].map(
            lambda pid: lk.supplier_label(pid, view.supplier_hints, view.unmapped_supplier)
        )
        lines["division"] = [
            self.classifier.classify(pid, lk.customer_names.get(code), view.sales_mode)
            for pid, code in zip(lines["product_id"], lines["customer_code"])
        ]
        lines["month"] = lines["date"].map(lambda d: d[:7])

        product_price = lines["product_id"].map(self._product_price).astype(float)
        per_unit = (lines["total_amount"] / lines["quantity"].where(lines["quantity"] > 0)).fillna(product_price)
        lines["line_price"] = lines["unit_price"].where(lines["unit_price"] > 0, per_unit)
        lines["unit_cost"] = lines["product_id"].map(self._product_cost).astype(float)
        lines["gross_net"] = lines["total_amount"] - lines["discount_amount"]
        return lines

    def _product_price(self, product_id):
        info = self.lookups.product(product_id)
        return info.unit_price if info else 0.0

    def _product_cost(self, product_id):
        info = self.lookups.product(product_id)
        return info.unit_cost if info else 0.0

    def _return_frame(self, headers, records):
        by_number = {}
        for ret in headers or []:
            if not isinstance(ret, dict):
                continue
            return_no = clean_and_trim_string(ret.get("return_number"))
            if not return_no or return_no in by_number:
                continue
            by_number[return_no] = ret

        rows = []
        for rd in records or []:
            if not isinstance(rd, dict):
                continue
            header = by_number.get(safe_id(rd.get("return_no")))
            # detail rows without a header are orphans and count for nothing
            if header is None:
                continue
            quantity = abs(clean_numeric(rd.get("quantity")))
            rows.append({
                "return_no": clean_and_trim_string(header.get("return_number")),
                "order_id": safe_id(header.get("order_id")),
                "invoice_no": safe_id(header.get("invoice_no")),
                "date": date_key(first_present(header, RETURN_DATE_FIELDS)),
                "product_id": safe_id(rd.get("product_id")),
                "quantity": quantity,
                "value": return_value(rd, quantity),
            })
        returns = pd.DataFrame(rows, columns=RETURN_COLUMNS).astype({"quantity": float, "value": float})

        lk = self.lookups
        view = self.view
        returns["master_id"] = returns["product_id"].map(lk.master_of)
        returns["product"] = returns["master_id"].map(lk.product_name)
        returns["supplier"] = returns["product_id"].map(
            lambda pid: lk.supplier_label(pid, view.supplier_hints, view.unmapped_supplier)
        )
        returns["division"] = returns["product_id"].map(
            lambda pid: self.classifier.classify(pid, mode=view.returns_mode)
        )
        returns["month"] = returns["date"].map(lambda d: d[:7])
        returns["matched"] = False
        return returns

    def _apply_returns(self, lines, returns):
        """Nets matched returns off their sales lines; flags which returns matched."""
        lines["returned"] = 0.0
        lines["returned_qty"] = 0.0

        if self.view.match_returns and not lines.empty and not returns.empty:
            returns["matched"] = self._match_flags(lines, returns)
            matched = returns[returns["matched"]]
            if not matched.empty:
                lines = self._charge_returns(lines, matched)

        lines["net"] = lines["gross_net"] - lines["returned"]
        lines["net_qty"] = np.maximum(lines["quantity"] - lines["returned_qty"], 0.0)
        lines["cogs"] = lines["unit_cost"] * lines["net_qty"]
        return lines, returns

    @staticmethod
    def _match_flags(lines, returns):
        keyed = lines[lines["invoice_no"] != ""]
        line_keys = set(zip(keyed["order_id"], keyed["invoice_no"], keyed["master_id"]))
        return [
            bool(inv) and (order, inv, master) in line_keys
            for order, inv, master in zip(returns["order_id"], returns["invoice_no"], returns["master_id"])
        ]

    @staticmethod
    def _charge_returns(lines, matched):
        """Puts each key's summed returns on the first line carrying that key."""
        key = ["order_id", "invoice_no", "master_id"]
        has_qty = matched["quantity"] > 0
        per_key = (
            matched.assign(
                _ret_value=matched["value"],
                _ret_qty=matched["quantity"].where(has_qty, 0.0),
                _priceless=matched["value"].where(~has_qty, 0.0),
            )
            .groupby(key, as_index=False)[["_ret_value", "_ret_qty", "_priceless"]]
            .sum()
        )

        lines["_first"] = (lines.groupby(key).cumcount() == 0) & (lines["invoice_no"] != "")
        lines = lines.merge(per_key, on=key, how="left")
        lines[["_ret_value", "_ret_qty", "_priceless"]] = (
            lines[["_ret_value", "_ret_qty", "_priceless"]].fillna(0.0)
        )

        # value-only returns are converted to units at the line's price
        estimated = (lines["_priceless"] / lines["line_price"].where(lines["line_price"] > 0)).fillna(0.0)
        lines["returned"] = np.where(lines["_first"], lines["_ret_value"], 0.0)
        lines["returned_qty"] = np.where(lines["_first"], lines["_ret_qty"] + estimated, 0.0)
        return lines.drop(columns=["_first", "_ret_value", "_ret_qty", "_priceless"])

    def _returns_bucket(self, returns):
        """Unmatched returns dated inside the report range."""
        if returns.empty:
            return returns
        # returns carry no salesman, so a per-salesman report only sees matched ones
        if self.filters.salesman_id:
            return returns.iloc[0:0]
        in_range = returns["date"].map(self.filters.in_range).astype(bool)
        return returns[~returns["matched"].astype(bool) & in_range]

    def _collection_frame(self, records):
        rows = []
        for col in records or []:
            if not isinstance(col, dict):
                continue
            if is_true(col.get("isCancelled")):
                continue
            day = date_key(col.get("collection_date"))
            if not self.filters.in_range(day):
                continue
            salesman_id = safe_id(col.get("salesman_id"))
            if self.filters.salesman_id and salesman_id != self.filters.salesman_id:
                continue
            division = normalize_division(self.lookups.salesman_division_name(salesman_id))
            if self.filters.division and division != self.filters.division:
                continue
            rows.append({
                "date": day,
                "salesman_id": salesman_id,
                "division": division,
                "amount": clean_numeric(col.get("totalAmount")),
            })
        return pd.DataFrame(rows, columns=COLLECTION_COLUMNS).astype({"amount": float})

    def _calendar(self, lines, bucket):
        if self.filters.bounded:
            return (
                month_span(self.filters.from_date, self.filters.to_date),
                day_span(self.filters.from_date, self.filters.to_date),
            )
        months = sorted(set(lines["month"]) | set(bucket["month"]))
        days = sorted(set(lines["date"]) | set(bucket["date"]))
        return months, days

    def _stock_by_division(self):
        """Current stock of every known product, summed per division."""
        stock = {}
        for pid, info in self.lookups.products.items():
            if not info.stock:
                continue
            division = self.classifier.classify(pid, mode=self.view.sales_mode)
            stock[division] = stock.get(division, 0.0) + info.stock
        return stock
