# routes/salesman_routes.py

import logging
from datetime import datetime

from flask import jsonify, request

from .. import config
from ..aggregation import VIEWS, SalesAggregator
from ..data_loader import CollectionQuery, eq_filter
from ..formatter import fill_series, round_money
from ..validator import clean_and_trim_string, clean_numeric, first_present, safe_id
from .common import build_context, debug_info, get_client, read_filters, sales_queries

logger = logging.getLogger(__name__)

CLOSED_STAGE = "Closed"


def _target_amount(targets):
    """First target row of the period; the default when none or zero."""
    first = next((row for row in targets if isinstance(row, dict)), None)
    amount = clean_numeric(first.get("target_amount")) if first else 0.0
    return amount if amount > 0 else float(config.DEFAULT_PERSONAL_TARGET)


def _open_deals(deals, customers):
    names = {}
    for c in customers:
        if isinstance(c, dict):
            names.setdefault(safe_id(c.get("id")), clean_and_trim_string(
                first_present(c, ("store_name", "customer_name"))
            ))

    today = datetime.now().strftime("%Y-%m-%d")
    rows = []
    for deal in deals:
        if not isinstance(deal, dict):
            continue
        stage = clean_and_trim_string(deal.get("stage"))
        if stage == CLOSED_STAGE:
            continue
        rows.append({
            "opportunity": clean_and_trim_string(deal.get("opportunity_name")) or "Untitled Opportunity",
            "customer": names.get(safe_id(deal.get("customer_id"))) or "Unknown Customer",
            "stage": stage or "Unknown",
            "expectedClose": clean_and_trim_string(deal.get("expected_close_date")) or today,
            "nextAction": clean_and_trim_string(deal.get("next_action")) or "No action specified",
            "dueDate": clean_and_trim_string(deal.get("due_date")) or today,
        })
    rows.sort(key=lambda d: d["dueDate"])
    return rows


async def salesman():
    """
    Personal dashboard of one salesman: daily net sales, best customers,
    open deals and the monthly target of the period ``fromDate`` falls in.
    """
    client = get_client()
    errors = []
    try:
        filters = read_filters(request.args)
        if not filters.salesman_id:
            return jsonify({"success": False, "error": "salesmanId is required"}), 400
        logger.info("🔍 salesman filters: %s", filters)

        queries = sales_queries(filters, collections=False)
        queries["invoices"].filters.update(eq_filter("salesman_id", filters.salesman_id))
        queries["deals"] = CollectionQuery(
            "deals",
            filters={
                "filter[stage][_neq]": CLOSED_STAGE,
                **eq_filter("salesman_id", filters.salesman_id),
                "sort": "due_date",
            },
        )
        period = filters.from_date[:7] if filters.from_date else None
        queries["targets"] = CollectionQuery(
            "targets",
            filters={
                **eq_filter("salesman_id", filters.salesman_id),
                **eq_filter("period", period),
            },
            paginate=False,
        )

        raw = await client.fetch_collections(queries, errors)
        lookups, classifier = build_context(raw)
        result = SalesAggregator(lookups, classifier, VIEWS["salesman"], filters).run(raw)
        totals = result.totals()

        top_customers = [
            {
                "customer": row.name,
                "division": row.division,
                "netSales": round_money(row.value),
                "invoices": int(row.invoices),
                "lastInvoiceDate": row.last_date,
            }
            for row in result.by_customer().head(config.TOP_CUSTOMERS_PERSONAL).itertuples(index=False)
        ]

        return jsonify({
            "success": True,
            "data": {
                "dailySales": [
                    {"date": day, "netSales": round_money(value)}
                    for day, value in fill_series(result.by_day(), result.days)
                ],
                "topCustomers": top_customers,
                "openDeals": _open_deals(raw.get("deals", []), raw.get("customers", [])),
                "target": round_money(_target_amount(raw.get("targets", []))),
                "totalSales": round_money(totals["net_sales"]),
                "totalInvoices": totals["invoices"],
            },
            "debug": debug_info(
                client, filters, errors,
                salesmanId=filters.salesman_id,
                invoicesFound=len(raw.get("invoices", [])),
                dealsFound=len(raw.get("deals", [])),
                targetsFound=len(raw.get("targets", [])),
            ),
        })

    except Exception as e:
        logger.exception("❌ salesman failed: %s", e)
        return jsonify({
            "success": False,
            "error": "Failed to fetch salesman data",
            "details": str(e) or e.__class__.__name__,
            "directusUrl": client.base_url,
        }), 500


async def salesman_list():
    """All salesmen as ``{id, salesman_name}`` for the picker."""
    client = get_client()
    errors = []
    rows = await client.fetch("salesman", fields="id,salesman_name", errors=errors)
    if errors and not rows:
        logger.error("❌ salesman list failed: %s", errors[0].message)
        return jsonify({"success": False, "errors": [e.to_dict() for e in errors]}), 500
    return jsonify({
        "success": True,
        "data": [
            {"id": r.get("id"), "salesman_name": r.get("salesman_name")}
            for r in rows if isinstance(r, dict)
        ],
    })
