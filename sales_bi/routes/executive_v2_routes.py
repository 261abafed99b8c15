# routes/executive_v2_routes.py

import logging

from flask import jsonify, request

from .. import config
from ..aggregation import VIEWS, SalesAggregator, ReportFilters
from ..data_loader import CollectionQuery, between_filter
from ..formatter import ranked, round_money
from .common import build_context, error_response, get_client, read_filters

logger = logging.getLogger(__name__)


async def executive_v2():
    """
    Supplier league per division.

    Suppliers are placed in a division by their name alone; products with
    no supplier mapping are pooled under "UNASSIGNED", which lands in the
    default division.
    """
    client = get_client()
    errors = []
    try:
        filters = read_filters(request.args)
        logger.info("🔍 executive-v2 filters: %s", filters)

        queries = {
            "invoices": CollectionQuery(
                "sales_invoice",
                filters=between_filter("invoice_date", filters.from_date, filters.to_date),
            ),
            "details": CollectionQuery(
                "sales_invoice_details",
                filters=between_filter("invoice_no.invoice_date", filters.from_date, filters.to_date),
            ),
            "products": CollectionQuery("products"),
            "product_suppliers": CollectionQuery("product_per_supplier"),
            "suppliers": CollectionQuery("suppliers"),
        }
        raw = await client.fetch_collections(queries, errors)
        if not raw.get("invoices"):
            logger.warning("⚠️  executive-v2: no invoices fetched")
            return jsonify({"data": {}})

        lookups, classifier = build_context(raw)
        # every division is computed; the filter only picks which to return
        unfiltered = ReportFilters(filters.from_date, filters.to_date)
        result = SalesAggregator(lookups, classifier, VIEWS["executive-v2"], unfiltered).run(raw)

        league = {}
        if not result.lines.empty:
            sums = result.lines.groupby(["division", "supplier"])["net"].sum()
            for division in config.ALL_DIVISIONS:
                if division in sums.index.get_level_values(0):
                    league[division] = sums.loc[division]

        divisions = [filters.division] if filters.division else list(config.ALL_DIVISIONS)
        data = {
            division: [
                {"name": name, "sales": round_money(sales), "division": division}
                for name, sales in ranked(league.get(division, {}))
            ]
            for division in divisions
        }
        return jsonify({"data": data})

    except Exception as e:
        return error_response(e, client, errors, "executive-v2")
