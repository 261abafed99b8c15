# routes/executive_routes.py

import logging

from flask import jsonify, request

from .. import config
from ..aggregation import VIEWS, SalesAggregator
from ..classifier import normalize_division
from ..data_loader import CollectionQuery
from ..formatter import fill_series, ranked, round_money
from ..scoring import (
    collection_rate,
    gross_margin,
    growth_rate,
    percent_of,
    performance_status,
    target_attainment,
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


def _executive_kpi(net_sales=0.0, growth=0.0, margin=0.0, collected=0.0):
    return {
        "totalNetSales": round_money(net_sales),
        "growthVsPrevious": round_money(growth),
        "grossMargin": round_money(margin),
        "collectionRate": round_money(collected),
    }


def _salesman_division(lookups, salesman_id, fallback):
    name = lookups.salesman_division_name(salesman_id)
    return normalize_division(name) if name else fallback


async def executive():
    """
    Executive overview. Growth compares net sales against the window of
    the same length right before the requested one; it reads 0 when the
    range is open or the previous window sold nothing.
    """
    client = get_client()
    errors = []
    try:
        filters = read_filters(request.args)
        previous = filters.previous()
        logger.info("🔍 executive filters: %s (previous: %s)", filters, previous)

        queries = sales_queries(filters, from_date=previous.from_date if previous else None)
        queries["branches"] = CollectionQuery("branches")
        raw = await client.fetch_collections(queries, errors)
        if not has_core_data(raw):
            return jsonify({
                "kpi": _executive_kpi(),
                "salesTrend": [],
                "divisionSales": [],
                "topCustomers": [],
                "topSalesmen": [],
                "summary": {},
                "_debug": debug_info(client, filters, errors, error="No data fetched"),
            })

        lookups, classifier = build_context(raw)
        view = VIEWS["executive"]
        result = SalesAggregator(lookups, classifier, view, filters).run(raw)
        totals = result.totals()
        net_sales = totals["net_sales"]

        previous_sales = 0.0
        if previous:
            previous_sales = SalesAggregator(lookups, classifier, view, previous).run(raw).totals()["net_sales"]

        per_division = result.by_division()
        active = per_division[(per_division["gross_sales"] != 0) | (per_division["returns"] != 0)]

        top_customers = []
        for rank, row in enumerate(result.by_customer().head(config.TOP_N).itertuples(index=False), start=1):
            top_customers.append({
                "rank": rank,
                "customerName": row.name,
                "division": row.division,
                "branch": row.branch,
                "netSales": round_money(row.value),
                "percentOfTotal": round_money(percent_of(row.value, net_sales)),
                "invoiceCount": int(row.invoices),
                "lastInvoiceDate": row.last_date,
            })

        top_salesmen = []
        for rank, row in enumerate(result.by_salesman().head(config.TOP_N).itertuples(index=False), start=1):
            attainment = target_attainment(row.value, config.DEFAULT_EXECUTIVE_TARGET)
            top_salesmen.append({
                "rank": rank,
                "salesmanName": row.name,
                "division": _salesman_division(lookups, row.salesman_id, row.division),
                "branch": row.branch,
                "netSales": round_money(row.value),
                "target": config.DEFAULT_EXECUTIVE_TARGET,
                "targetAttainment": round_money(attainment),
                "status": performance_status(attainment),
                "invoiceCount": int(row.invoices),
            })

        return jsonify({
            "kpi": _executive_kpi(
                net_sales,
                growth_rate(net_sales, previous_sales),
                gross_margin(net_sales, totals["cogs"]),
                collection_rate(totals["collections"], net_sales),
            ),
            "salesTrend": [
                {"date": day, "netSales": round_money(value)}
                for day, value in fill_series(result.by_day(), result.days)
            ],
            "divisionSales": [
                {"division": division, "netSales": round_money(value)}
                for division, value in ranked(active["net_sales"])
            ],
            "topCustomers": top_customers,
            "topSalesmen": top_salesmen,
            "summary": {
                "grossSales": round_money(totals["total_amount"]),
                "totalDiscount": round_money(totals["discount"]),
                "netSales": round_money(net_sales),
                "returns": round_money(totals["returns"]),
                "invoiceCount": totals["invoices"],
                "previousNetSales": round_money(previous_sales),
            },
            "_debug": debug_info(
                client, filters, errors,
                previousFromDate=previous.from_date if previous else None,
                previousToDate=previous.to_date if previous else None,
            ),
        })

    except Exception as e:
        return error_response(e, client, errors, "executive")
