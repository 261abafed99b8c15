# routes/supervisor_routes.py

import logging

from flask import jsonify, request

from .. import config
from ..aggregation import VIEWS, SalesAggregator
from ..formatter import month_label, ranked_records, round_money
from ..scoring import percent_of, performance_status, target_attainment
from ..validator import clean_and_trim_string, first_present, is_true, safe_id
from .common import build_context, error_response, get_client, read_filters, sales_queries

logger = logging.getLogger(__name__)


def _coverage(customers):
    """Customer count per store type, guessed from the store name."""
    counts = {label: 0 for label, _, _ in config.COVERAGE_GROUPS}
    others = 0
    total = 0
    for c in customers:
        if not isinstance(c, dict):
            continue
        total += 1
        name = clean_and_trim_string(first_present(c, ("store_name", "customer_name"))).upper()
        for label, keywords, _ in config.COVERAGE_GROUPS:
            if any(word in name for word in keywords):
                counts[label] += 1
                break
        else:
            others += 1

    distribution = [
        {"type": label, "count": counts[label], "fill": fill}
        for label, _, fill in config.COVERAGE_GROUPS
    ]
    other_label, other_fill = config.COVERAGE_OTHERS
    distribution.append({"type": other_label, "count": others, "fill": other_fill})

    covered = sum(counts.values())
    return distribution, round(percent_of(covered, total), 1)


def _salesman_row(salesman_id, name, stats, top_product):
    net_sales = float(stats["value"]) if stats is not None else 0.0
    gross = float(stats["gross"]) if stats is not None else 0.0
    returned = float(stats["returned"]) if stats is not None else 0.0
    orders = int(stats["invoices"]) if stats is not None else 0
    products = int(stats["products"]) if stats is not None else 0

    visits = int(round(orders * config.VISITS_PER_ORDER)) if orders else 0
    attainment = target_attainment(net_sales, config.DEFAULT_SALESMAN_TARGET)
    return {
        "id": salesman_id,
        "name": name,
        "netSales": round_money(net_sales),
        "target": config.DEFAULT_SALESMAN_TARGET,
        "orders": orders,
        "visits": visits,
        "strikeRate": int(round(percent_of(orders, visits))),
        "topProduct": top_product or "N/A",
        "productsSold": products,
        "returnRate": round_money(percent_of(returned, gross)),
        "attainment": round_money(attainment),
        "status": performance_status(attainment),
    }


async def supervisor():
    """
    Team view over the active salesmen.

    Visits are not recorded upstream; they are estimated from the order
    count. Returns that match no sale carry no salesman and stay out of the
    team figures.
    """
    client = get_client()
    errors = []
    try:
        filters = read_filters(request.args)
        logger.info("🔍 supervisor filters: %s", filters)

        raw = await client.fetch_collections(sales_queries(filters, collections=False), errors)
        lookups, classifier = build_context(raw)
        result = SalesAggregator(lookups, classifier, VIEWS["supervisor"], filters).run(raw)

        active = []
        for s in raw.get("salesmen", []):
            if isinstance(s, dict) and is_true(s.get("isActive")):
                sid = safe_id(s.get("id"))
                if sid and sid not in active:
                    active.append(sid)

        per_salesman = result.by_salesman().set_index("salesman_id")
        top_products = result.top_product_by_salesman()
        salesmen = [
            _salesman_row(
                sid,
                lookups.salesman_label(sid),
                per_salesman.loc[sid] if sid in per_salesman.index else None,
                top_products.get(sid),
            )
            for sid in active
        ]
        salesmen.sort(key=lambda s: (-s["netSales"], s["name"]))

        team_lines = result.lines[result.lines["salesman_id"].isin(active)]
        team_sales = float(team_lines["net"].sum()) if len(team_lines) else 0.0
        team_target = len(active) * config.DEFAULT_SALESMAN_TARGET
        by_month = team_lines.groupby("month")["net"].sum() if len(team_lines) else {}

        coverage, penetration = _coverage(raw.get("customers", []))

        return jsonify({
            "success": True,
            "data": {
                "teamSales": round_money(team_sales),
                "teamTarget": team_target,
                "totalInvoices": int(team_lines["invoice_id"].nunique()) if len(team_lines) else 0,
                "penetrationRate": penetration,
                "coverageDistribution": coverage,
                "salesmen": salesmen,
                "monthlyPerformance": [
                    {
                        "month": month_label(month),
                        "target": team_target,
                        "achieved": round_money(by_month.get(month, 0.0)),
                    }
                    for month in result.months
                ],
                "topProducts": [
                    {"name": row.name, "value": round_money(row.value)}
                    for row in result.by_product().head(config.TOP_N).itertuples(index=False)
                ],
                "topSuppliers": ranked_records(result.by_supplier(), limit=config.TOP_N),
                "returnHistory": [
                    {"month": month, "value": round_money(value)}
                    for month, value in result.returns_by_month().items()
                ],
            },
        })

    except Exception as e:
        return error_response(e, client, errors, "supervisor")
