# routes/manager_routes.py

import logging
from datetime import datetime

import pandas as pd
from dateutil.relativedelta import relativedelta
from flask import jsonify, request

from .. import config
from ..data_loader import CollectionQuery
from ..formatter import last_months, month_label, round_money
from ..scoring import (
    CHURN_FOLLOW_UP,
    DIVISION_LAG_COACHING,
    GROWTH_REVIEW,
    growth_rate,
    insight_status,
    percent_of,
)
from ..validator import (
    clean_and_trim_string,
    clean_numeric,
    date_key,
    is_true,
    parse_date,
    safe_id,
)
from .common import error_response, get_client

logger = logging.getLogger(__name__)

TREND_MONTHS = 6
NEW_CLIENT_DAYS = 30
QUARTERS = ("Q1", "Q2", "Q3", "Q4")


def _collection_frame(collections):
    """Non-cancelled collections with a date."""
    rows = []
    for col in collections:
        if not isinstance(col, dict) or is_true(col.get("isCancelled")):
            continue
        rows.append({
            "date": date_key(col.get("collection_date")),
            "salesman_id": safe_id(col.get("salesman_id")),
            "amount": clean_numeric(col.get("totalAmount")),
        })
    frame = pd.DataFrame(rows, columns=["date", "salesman_id", "amount"]).astype({"amount": float})
    frame["month"] = frame["date"].map(lambda d: d[:7])
    return frame


def _pct_change(current, previous):
    return int(round(growth_rate(current, previous)))


def _arrow(value):
    return "↑" if value >= 0 else "↓"


async def manager():
    """
    Collections-based team overview.

    Everything is measured up to ``toDate`` (today when absent): the six
    month trend, month-on-month growth, new clients of the last 30 days and
    customer growth per quarter of that year.
    """
    client = get_client()
    errors = []
    try:
        as_of = parse_date(request.args.get("toDate")) or datetime.now().strftime("%Y-%m-%d")
        logger.info("🔍 manager as of %s", as_of)

        raw = await client.fetch_collections({
            "customers": CollectionQuery("customer"),
            "salesmen": CollectionQuery("salesman"),
            "collections": CollectionQuery("collection"),
            "divisions": CollectionQuery("division"),
        }, errors)

        customers = [c for c in raw["customers"] if isinstance(c, dict)]
        salesmen = [s for s in raw["salesmen"] if isinstance(s, dict)]
        divisions = [d for d in raw["divisions"] if isinstance(d, dict)]
        collections = _collection_frame(raw["collections"])

        total_sales = float(collections["amount"].sum())

        # --- customers ---
        as_of_day = datetime.strptime(as_of, "%Y-%m-%d")
        new_since = (as_of_day - relativedelta(days=NEW_CLIENT_DAYS)).strftime("%Y-%m-%d")
        entered = [date_key(c.get("date_entered")) for c in customers]

        total_customers = len(customers)
        active_customers = sum(1 for c in customers if is_true(c.get("isActive")))
        new_clients = sum(1 for d in entered if d and new_since <= d <= as_of)
        retention = int(round(percent_of(active_customers, total_customers)))
        churn = 100 - retention if total_customers else 0

        this_month = as_of[:7]
        last_month = (as_of_day - relativedelta(months=1)).strftime("%Y-%m")
        last_month_clients = sum(1 for d in entered if d[:7] == last_month)

        growth = {q: 0 for q in QUARTERS}
        for d in entered:
            month = int(d[5:7]) if d[:4] == as_of[:4] else 0
            if 1 <= month <= 12:
                growth[QUARTERS[(month - 1) // 3]] += 1

        # --- divisions ---
        salesman_division = {
            safe_id(s.get("id")): safe_id(s.get("division_id")) for s in salesmen
        }
        by_division = (
            collections.assign(division_id=collections["salesman_id"].map(salesman_division))
            .groupby("division_id")["amount"].sum()
        )
        ordered = sorted(divisions, key=lambda d: clean_numeric(safe_id(d.get("division_id"))))
        division_labels = [clean_and_trim_string(d.get("division_name")) or "Unknown" for d in ordered]
        division_values = [float(by_division.get(safe_id(d.get("division_id")), 0.0)) for d in ordered]

        # --- salesmen ---
        by_salesman = collections.groupby("salesman_id")["amount"].sum()
        performance = []
        for s in salesmen:
            if not is_true(s.get("isActive")):
                continue
            sales = float(by_salesman.get(safe_id(s.get("id")), 0.0))
            performance.append({
                "name": clean_and_trim_string(s.get("salesman_name")) or "Unknown",
                "sales": sales,
                "performance": min(100, int(round(percent_of(sales, config.DEFAULT_SALESMAN_TARGET)))),
            })
        performance.sort(key=lambda p: (-p["sales"], p["name"]))
        team_performance = (
            int(round(sum(p["performance"] for p in performance) / len(performance))) if performance else 0
        )
        top_employees = [
            {"name": p["name"], "sales": round_money(p["sales"]), "rank": rank, "performance": p["performance"]}
            for rank, p in enumerate(performance[:config.TOP_N], start=1)
        ]

        # --- trend ---
        months = last_months(as_of, TREND_MONTHS)
        by_month = collections.groupby("month")["amount"].sum()
        trend_values = [round_money(by_month.get(m, 0.0)) for m in months]

        current_sales = float(by_month.get(this_month, 0.0))
        sales_growth = _pct_change(current_sales, float(by_month.get(last_month, 0.0)))
        client_growth = _pct_change(new_clients, last_month_clients)

        if division_values:
            lowest_value = min(division_values)
            lowest_division = division_labels[division_values.index(lowest_value)]
            average = sum(division_values) / len(division_values)
            division_gap = int(round(growth_rate(lowest_value, average))) if average > 0 else 0
        else:
            lowest_division, division_gap = "Unknown", 0

        top = top_employees[0] if top_employees else {"name": "N/A", "performance": 0}

        actions = []
        if division_gap < DIVISION_LAG_COACHING:
            actions.append(f"Schedule coaching for {lowest_division} division")
        if len(top_employees) >= 3:
            actions.append("Reward top 3 performers")
        if churn > CHURN_FOLLOW_UP:
            actions.append(f"Follow up with {int(round(total_customers * churn / 100))} at-risk clients")
        if sales_growth < GROWTH_REVIEW:
            actions.append("Review sales strategy and targets")
        if not actions:
            actions.append("All metrics looking good! Keep up the great work.")

        return jsonify({
            "kpi": {
                "totalSales": round_money(total_sales),
                "newClients": new_clients,
                "retentionRate": retention,
                "teamPerformance": team_performance,
            },
            "salesTrend": {
                "labels": [month_label(m) for m in months],
                "values": trend_values,
            },
            "departmentSales": {
                "labels": division_labels,
                "values": [round_money(v) for v in division_values],
            },
            "topEmployees": top_employees,
            "customers": {
                "growth": {"labels": list(QUARTERS), "growth": [growth[q] for q in QUARTERS]},
                "topCustomers": [
                    {"name": clean_and_trim_string(c.get("customer_name") or c.get("store_name")) or "Unknown"}
                    for c in customers if is_true(c.get("isActive"))
                ][:config.TOP_N],
                "retention": retention,
                "churn": churn,
                "activeCount": active_customers,
            },
            "summary": {
                "insights": {
                    "salesGrowth": {
                        "value": sales_growth,
                        "label": f"Sales {_arrow(sales_growth)} {abs(sales_growth)}% MoM",
                        "status": insight_status(sales_growth),
                    },
                    "clientGrowth": {
                        "value": client_growth,
                        "label": f"New Client Growth {_arrow(client_growth)} {abs(client_growth)}%",
                        "status": insight_status(client_growth),
                    },
                    "divisionPerformance": {
                        "value": division_gap,
                        "label": f"{lowest_division} Division {_arrow(division_gap)} {abs(division_gap)}% vs Avg",
                        "status": "good" if division_gap >= 0 else "warning",
                    },
                    "topPerformer": {
                        "name": top["name"],
                        "value": top["performance"],
                        "label": f"Top Rep: {top['name']} ({top['performance']}%)",
                        "status": "good",
                    },
                },
                "recentTrends": [
                    f"{month_label(this_month)}: ₱{current_sales / 1000:.0f}K sales "
                    f"({'+' if sales_growth >= 0 else ''}{sales_growth}%)",
                    f"New clients: {new_clients} this month",
                    f"{lowest_division} division {'lags' if division_gap < 0 else 'leads'} by {abs(division_gap)}%",
                ],
                "recommendedActions": actions,
            },
            "_debug": {"asOf": as_of, "errors": [e.to_dict() for e in errors]},
        })

    except Exception as e:
        return error_response(e, client, errors, "manager")
