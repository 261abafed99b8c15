# routes/divisionshead_routes.py

import logging

from flask import jsonify, request

from .. import config
from ..aggregation import VIEWS, SalesAggregator
from ..formatter import (
    division_grid,
    fill_series,
    heatmap_rows,
    ranked,
    ranked_records,
    round_money,
)
from .common import (
    build_context,
    debug_info,
    error_response,
    get_client,
    has_core_data,
    kpi_block,
    read_filters,
    sales_queries,
)

logger = logging.getLogger(__name__)


def _empty_dashboard(client, filters, errors):
    return {
        "kpi": kpi_block(0, 0, 0, 0),
        "kpiByDivision": {},
        "divisionSales": [],
        "divisionMonthly": [],
        "months": [],
        "salesTrend": [],
        "supplierSalesByDivision": {},
        "heatmapDataByDivision": {},
        "topProducts": [],
        "topSuppliers": [],
        "_debug": debug_info(client, filters, errors, error="No data fetched"),
    }


async def divisionshead():
    """
    Division heads dashboard: KPIs overall and per division, a division x
    month grid, the monthly trend, supplier charts and heatmaps per
    division, and the top products and suppliers.
    """
    client = get_client()
    errors = []
    try:
        filters = read_filters(request.args)
        logger.info("🔍 divisionshead filters: %s", filters)

        raw = await client.fetch_collections(sales_queries(filters), errors)
        if not has_core_data(raw):
            return jsonify(_empty_dashboard(client, filters, errors))

        lookups, classifier = build_context(raw)
        result = SalesAggregator(lookups, classifier, VIEWS["divisionshead"], filters).run(raw)
        months = result.months

        totals = result.totals()
        per_division = result.by_division()

        kpi_by_division = {
            division: kpi_block(row["net_sales"], row["returns"], row["cogs"], row["collections"])
            for division, row in per_division.iterrows()
        }

        # only divisions that actually sold or took returns
        active = per_division[(per_division["gross_sales"] != 0) | (per_division["returns"] != 0)]
        division_sales = [
            {"division": division, "netSales": round_money(value)}
            for division, value in ranked(active["net_sales"])
        ]

        supplier_chart = {
            division: ranked_records(series, value_key="netSales", limit=config.TOP_N)
            for division, series in result.supplier_chart().items()
        }
        heatmaps = {
            division: heatmap_rows(grid, months)
            for division, grid in result.heatmap().items()
        }

        top_products = [
            {"name": row.name, "quantity": round_money(row.quantity), "value": round_money(row.value)}
            for row in result.by_product().head(config.TOP_N).itertuples(index=False)
        ]

        if filters.division:
            top_suppliers = [
                {"name": s["name"], "value": s["netSales"]}
                for s in supplier_chart.get(filters.division, [])
            ]
        else:
            top_suppliers = ranked_records(result.by_supplier(), limit=config.TOP_N)

        return jsonify({
            "kpi": kpi_block(
                totals["net_sales"], totals["returns"], totals["cogs"], totals["collections"]
            ),
            "kpiByDivision": kpi_by_division,
            "divisionSales": division_sales,
            "divisionMonthly": division_grid(result.division_month_grid(), config.ALL_DIVISIONS, months),
            "months": months,
            "salesTrend": [
                {"date": month, "netSales": round_money(value)}
                for month, value in fill_series(result.by_month(), months)
            ],
            "supplierSalesByDivision": supplier_chart,
            "heatmapDataByDivision": heatmaps,
            "topProducts": top_products,
            "topSuppliers": top_suppliers,
            "_debug": debug_info(client, filters, errors),
        })

    except Exception as e:
        return error_response(e, client, errors, "divisionshead")
