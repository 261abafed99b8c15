# tests/conftest.py
# ---------------------------------------------------------------------
# Ground rules:
# - No network: the item store is an httpx.MockTransport serving canned
#   collections, injected through app.config["DIRECTUS_TRANSPORT"]
# - `snapshot` is the raw input keyed the way the aggregation engine
#   expects it; `store_rows` maps it onto upstream collection names
# - A collection mapped to an int answers with that HTTP status
# ---------------------------------------------------------------------

import copy

import httpx
import pytest

from sales_bi.app import create_app
from sales_bi.classifier import DivisionClassifier
from sales_bi.lookups import build_lookups

# engine input name -> upstream collection
COLLECTIONS = {
    "invoices": "sales_invoice",
    "details": "sales_invoice_details",
    "returns": "sales_return",
    "return_details": "sales_return_details",
    "collections": "collection",
    "products": "products",
    "product_suppliers": "product_per_supplier",
    "suppliers": "suppliers",
    "salesmen": "salesman",
    "divisions": "division",
    "brands": "brand",
    "sections": "sections",
    "customers": "customer",
    "branches": "branches",
}

BASE_SNAPSHOT = {
    "invoices": [
        {
            "invoice_id": 1,
            "invoice_no": "INV-1",
            "order_id": "SO-1",
            "invoice_date": "2024-01-15T09:30:00",
            "salesman_id": 7,
            "customer_code": "C1",
            "branch_id": 2,
            "total_amount": 1000,
            "discount_amount": 50,
        },
    ],
    "details": [
        {
            "invoice_no": 1,
            "product_id": "P1",
            "quantity": 10,
            "total_amount": 1000,
            "discount_amount": 50,
            "unit_price": 100,
        },
    ],
    "returns": [],
    "return_details": [],
    "collections": [],
    "products": [
        {
            "product_id": "P1",
            "product_name": "Pancit Canton",
            "product_brand": 3,
            "product_section": 4,
            "unit_cost": 60,
            "stock": 40,
        },
    ],
    "product_suppliers": [],
    "suppliers": [],
    "salesmen": [
        {"id": 7, "salesman_name": "Juan Dela Cruz", "division_id": 1, "isActive": 1},
    ],
    "divisions": [
        {"division_id": 1, "division_name": "Dry"},
        {"division_id": 2, "division_name": "Frozen"},
    ],
    "brands": [
        {"brand_id": 3, "brand_name": "Lucky Me"},
        {"brand_id": 5, "brand_name": "CDO"},
    ],
    "sections": [
        {"section_id": 4, "section_name": "Noodles"},
        {"section_id": 6, "section_name": "Processed Meat"},
    ],
    "customers": [
        {
            "id": 11,
            "customer_code": "C1",
            "store_name": "Aling Nena Sari-Sari",
            "isActive": 1,
            "date_entered": "2024-01-02",
        },
    ],
    "branches": [
        {"id": 2, "branch_name": "Cebu Main"},
    ],
}


def make_snapshot(**overrides):
    snapshot = copy.deepcopy(BASE_SNAPSHOT)
    snapshot.update(copy.deepcopy(overrides))
    return snapshot


def context_for(snapshot):
    lookups = build_lookups(snapshot)
    return lookups, DivisionClassifier(lookups)


def store_rows(snapshot):
    return {COLLECTIONS[name]: rows for name, rows in snapshot.items() if name in COLLECTIONS}


def mock_store(rows, seen=None):
    """
    MockTransport answering ``GET /items/{collection}``.

    Every row is served on the first page; later offsets return nothing.
    ``seen`` collects the requests for assertions.
    """

    def handler(request):
        if seen is not None:
            seen.append(request)
        collection = request.url.path.rsplit("/", 1)[-1]
        data = rows.get(collection, [])
        if isinstance(data, int):
            return httpx.Response(data, text="forbidden")
        offset = request.url.params.get("offset")
        if offset not in (None, "0"):
            return httpx.Response(200, json={"data": []})
        return httpx.Response(200, json={"data": data})

    return httpx.MockTransport(handler)


@pytest.fixture
def snapshot():
    return make_snapshot()


@pytest.fixture
def make_client():
    """Flask test client bound to a mock store built from ``rows``."""

    def build(rows, seen=None):
        app = create_app({
            "TESTING": True,
            "DIRECTUS_URL": "http://directus.test",
            "DIRECTUS_TOKEN": "test-token",
            "DIRECTUS_TRANSPORT": mock_store(rows, seen),
        })
        return app.test_client()

    return build


@pytest.fixture
def client(make_client, snapshot):
    return make_client(store_rows(snapshot))
