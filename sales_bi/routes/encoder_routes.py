# routes/encoder_routes.py

import logging

from flask import jsonify

from .common import get_client

logger = logging.getLogger(__name__)


async def encoder():
    """Raw sales invoices, unpaginated, as the store returns them."""
    client = get_client()
    errors = []
    invoices = await client.fetch("sales_invoice", errors=errors, paginate=False)
    if errors:
        failure = errors[0]
        logger.error("❌ encoder: %s", failure.message)
        return jsonify({
            "error": "Failed to fetch from Directus",
            "status": failure.status,
            "details": failure.message,
        }), failure.status or 500

    logger.info("✅ encoder: %s invoices", len(invoices))
    return jsonify({"data": invoices})
