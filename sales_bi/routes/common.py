# routes/common.py
"""Plumbing shared by the dashboard routes: filters, fetch plans, response blocks."""

import logging

from flask import current_app, jsonify

from ..aggregation import ReportFilters
from ..classifier import DivisionClassifier
from ..data_loader import CollectionQuery, between_filter, client_from_config
from ..formatter import round_money
from ..lookups import build_lookups
from ..scoring import collection_rate, gross_margin
from ..validator import clean_and_trim_string, parse_date, parse_division

logger = logging.getLogger(__name__)

# Inputs every sales view joins against
LOOKUP_QUERIES = {
    "products": "products",
    "product_suppliers": "product_per_supplier",
    "suppliers": "suppliers",
    "salesmen": "salesman",
    "divisions": "division",
    "brands": "brand",
    "sections": "sections",
    "customers": "customer",
}


def get_client():
    return client_from_config(current_app.config)


def read_filters(args, division_param="division"):
    """Query string -> ReportFilters. Raises InvalidDateError on a bad date."""
    return ReportFilters(
        from_date=parse_date(args.get("fromDate")),
        to_date=parse_date(args.get("toDate")),
        division=parse_division(args.get(division_param)),
        salesman_id=clean_and_trim_string(args.get("salesmanId")) or None,
    )


def sales_queries(filters, from_date=None, returns=True, collections=True):
    """
    Fetch plan for the sales pipeline.

    Invoices and their details are narrowed upstream only when the range is
    closed on both ends; ``from_date`` widens the lower bound (used to fetch
    a comparison window in the same round trip). Returns are fetched whole
    because a return may reference a sale outside the range.
    """
    start = from_date or filters.from_date
    queries = {
        "invoices": CollectionQuery(
            "sales_invoice", filters=between_filter("invoice_date", start, filters.to_date)
        ),
        "details": CollectionQuery(
            "sales_invoice_details",
            filters=between_filter("invoice_no.invoice_date", start, filters.to_date),
        ),
    }
    if returns:
        queries["returns"] = CollectionQuery("sales_return")
        queries["return_details"] = CollectionQuery("sales_return_details")
    if collections:
        queries["collections"] = CollectionQuery("collection")
    for name, collection in LOOKUP_QUERIES.items():
        queries[name] = CollectionQuery(collection)
    return queries


def build_context(raw):
    lookups = build_lookups(raw)
    return lookups, DivisionClassifier(lookups)


def has_core_data(raw):
    return bool(raw.get("invoices") or raw.get("details") or raw.get("products"))


def kpi_block(net_sales, returns, cogs, collections):
    return {
        "totalNetSales": round_money(net_sales),
        "totalReturns": round_money(returns),
        "grossMargin": round_money(gross_margin(net_sales, cogs)),
        "collectionRate": round_money(collection_rate(collections, net_sales)),
    }


def debug_info(client, filters, errors, **extra):
    info = {
        "directusUrl": client.base_url + "/",
        "hasToken": client.has_token,
        "fromDate": filters.from_date,
        "toDate": filters.to_date,
        "division": filters.division or "all",
        "errors": [e.to_dict() for e in errors],
    }
    info.update(extra)
    return info


def error_response(exc, client, errors, view):
    logger.exception("❌ %s failed: %s", view, exc)
    return jsonify({
        "error": str(exc) or exc.__class__.__name__,
        "_debug": {
            "directusUrl": client.base_url,
            "errors": [e.to_dict() for e in errors],
        },
    }), 500
