# routes/manager_v2_routes.py

import logging

from flask import jsonify, request

from .. import config
from ..aggregation import VIEWS, SalesAggregator
from ..formatter import day_label, ranked, ranked_records, round_money
from ..scoring import (
    division_stock_status,
    percent_of,
    return_rate,
    return_status,
    velocity_rate,
    velocity_status,
)
from .common import (
    build_context,
    debug_info,
    error_response,
    get_client,
    has_core_data,
    read_filters,
    sales_queries,
)

logger = logging.getLogger(__name__)

OVERVIEW_TAB = "Overview"


def _active_division(args):
    tab = (args.get("activeTab") or OVERVIEW_TAB).strip()
    if not tab or tab == OVERVIEW_TAB or tab.lower() == "all":
        return None
    return tab


def _supplier_breakdown(result):
    per_salesman = result.supplier_salesmen()
    breakdown = []
    for supplier, total in ranked(result.by_supplier()):
        amounts = per_salesman.loc[supplier] if supplier in per_salesman.index.get_level_values(0) else {}
        breakdown.append({
            "id": supplier,
            "name": supplier,
            "totalSales": round_money(total),
            "salesmen": [
                {"name": name, "amount": round_money(amount), "percent": round_money(percent_of(amount, total))}
                for name, amount in ranked(amounts)
            ],
        })
    return breakdown


def _division_breakdown(result):
    stock = result.stock_per_division()
    rows = []
    for division, row in stock.iterrows():
        outflow = float(row["outflow"])
        rows.append({
            "division": division,
            "goodStock": {
                "velocityRate": round_money(velocity_rate(outflow, float(row["current_stock"]))),
                "totalOutflow": round_money(outflow),
                "status": division_stock_status(outflow),
            },
            "badStock": {"accumulated": round_money(row["bad_stock"])},
        })
    return rows


def _empty_stock(division, debug):
    return {
        "division": division or OVERVIEW_TAB,
        "goodStock": {"velocityRate": 0.0, "status": velocity_status(0), "totalOutflow": 0.0, "totalInflow": 0.0},
        "badStock": {"accumulated": 0.0, "status": return_status(0), "totalInflow": 0.0},
        "trendData": [],
        "salesBySupplier": [],
        "salesBySalesman": [],
        "supplierBreakdown": [],
        "divisionBreakdown": [],
        "pareto": {"products": [], "customers": []},
        "_debug": debug,
    }


def _pareto_customers(result):
    customers = result.by_customer()
    keep = [
        not any(word in str(name).upper() for word in config.PARETO_EXCLUDED_CUSTOMERS)
        for name in customers["name"]
    ]
    values = customers[keep].groupby("name")["value"].sum() if len(customers) else {}
    return ranked_records(values, limit=config.TOP_N_PAGED)


async def manager_v2():
    """
    Stock movement view for one tab: the whole company ("Overview") or a
    single division.

    Sold quantities are good stock leaving the warehouse, returned
    quantities are bad stock coming back. Amounts are line net sales; all
    returns count as stock movement only and are never netted off sales.
    """
    client = get_client()
    errors = []
    try:
        filters = read_filters(request.args)
        division = _active_division(request.args)
        logger.info("🔍 manager-v2 tab=%s filters: %s", division or OVERVIEW_TAB, filters)

        raw = await client.fetch_collections(sales_queries(filters, collections=False), errors)
        if not has_core_data(raw):
            return jsonify(_empty_stock(division, debug_info(client, filters, errors, error="No data fetched")))

        lookups, classifier = build_context(raw)

        # divisionBreakdown needs every division, so aggregate once unfiltered
        everything = SalesAggregator(lookups, classifier, VIEWS["manager-v2"], filters).run(raw)
        result = everything.for_division(division)

        stock = result.stock()
        outflow = stock["outflow"]
        bad_stock = stock["bad_stock"]
        velocity = velocity_rate(outflow, stock["current_stock"])
        returned = return_rate(bad_stock, outflow)

        daily = result.daily_quantities()
        trend = [
            {
                "date": day_label(day),
                "goodStockOutflow": round_money(row["good"]),
                "badStockInflow": round_money(row["bad"]),
            }
            for day, row in daily.iterrows()
        ]

        by_product = result.by_product()
        product_values = by_product.groupby("name")["value"].sum() if len(by_product) else {}

        return jsonify({
            "division": division or OVERVIEW_TAB,
            "goodStock": {
                "velocityRate": round_money(velocity),
                "status": velocity_status(velocity),
                "totalOutflow": round_money(outflow),
                "totalInflow": round_money(outflow + stock["current_stock"]),
            },
            "badStock": {
                "accumulated": round_money(bad_stock),
                "status": return_status(returned),
                "totalInflow": round_money(bad_stock),
            },
            "trendData": trend,
            "salesBySupplier": ranked_records(result.by_supplier(), limit=config.TOP_N),
            "salesBySalesman": ranked_records(
                result.by_salesman().groupby("name")["value"].sum() if len(result.lines) else {},
                limit=config.TOP_N,
            ),
            "supplierBreakdown": _supplier_breakdown(result),
            "divisionBreakdown": _division_breakdown(everything),
            "pareto": {
                "products": ranked_records(product_values, limit=config.TOP_N_PAGED),
                "customers": _pareto_customers(result),
            },
            "_debug": {
                "directusUrl": client.base_url,
                "errors": [e.to_dict() for e in errors],
            },
        })

    except Exception as e:
        return error_response(e, client, errors, "manager-v2")
