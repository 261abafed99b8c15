# tests/test_routes.py

import base64

from conftest import COLLECTIONS, make_snapshot, store_rows

JANUARY = "fromDate=2024-01-01&toDate=2024-01-31"


# ------------------------------------------------------------
# Division heads
# ------------------------------------------------------------

def test_divisionshead_single_invoice(client):
    """One Lucky Me line of 1000 less 50 discount lands in Dry Goods."""
    response = client.get(f"/api/sales/divisionshead?{JANUARY}&division=all")
    assert response.status_code == 200
    body = response.get_json()

    assert body["divisionSales"] == [{"division": "Dry Goods", "netSales": 950.0}]
    assert body["salesTrend"] == [{"date": "2024-01", "netSales": 950.0}]
    assert body["months"] == ["2024-01"]
    assert body["kpi"] == {
        "totalNetSales": 950.0,
        "totalReturns": 0.0,
        "grossMargin": 36.84,
        "collectionRate": 0.0,
    }
    assert set(body["kpiByDivision"]) == {"Dry Goods", "Frozen Goods", "Industrial", "Mama Pina's", "Internal"}
    assert body["divisionMonthly"][0] == {"division": "Dry Goods", "2024-01": 950.0, "total": 950.0}
    assert body["topProducts"] == [{"name": "Pancit Canton", "quantity": 10.0, "value": 950.0}]
    assert body["supplierSalesByDivision"] == {"Dry Goods": [{"name": "Internal / Others", "netSales": 950.0}]}
    assert body["heatmapDataByDivision"]["Dry Goods"] == [
        {"supplier": "Internal / Others", "total": 950.0, "2024-01": 950.0},
    ]
    assert body["_debug"]["hasToken"] is True
    assert body["_debug"]["division"] == "all"


def test_divisionshead_us_dates_and_open_range(client):
    us = client.get("/api/sales/divisionshead?fromDate=01/01/2024&toDate=01/31/2024").get_json()
    assert us["_debug"]["fromDate"] == "2024-01-01"
    assert us["salesTrend"] == [{"date": "2024-01", "netSales": 950.0}]

    open_range = client.get("/api/sales/divisionshead").get_json()
    assert open_range["months"] == ["2024-01"]


def test_divisionshead_division_filter(client):
    body = client.get(f"/api/sales/divisionshead?{JANUARY}&division=Frozen%20Goods").get_json()
    assert body["kpi"]["totalNetSales"] == 0.0
    assert body["divisionSales"] == []
    assert body["topSuppliers"] == []


def test_divisionshead_narrows_invoices_upstream(make_client, snapshot):
    seen = []
    make_client(store_rows(snapshot), seen).get(f"/api/sales/divisionshead?{JANUARY}")

    by_collection = {r.url.path.rsplit("/", 1)[-1]: r for r in seen}
    assert by_collection["sales_invoice"].url.params["filter[invoice_date][_between]"] == (
        "[2024-01-01,2024-01-31 23:59:59]"
    )
    assert "filter[invoice_no][invoice_date][_between]" in by_collection["sales_invoice_details"].url.params
    assert not any(k.startswith("filter") for k in by_collection["sales_return"].url.params)
    assert by_collection["products"].headers["Authorization"] == "Bearer test-token"


def test_empty_store_is_a_degraded_200(make_client):
    response = make_client({}).get(f"/api/sales/divisionshead?{JANUARY}")
    assert response.status_code == 200
    body = response.get_json()
    assert body["kpi"]["totalNetSales"] == 0
    assert body["divisionSales"] == []
    assert body["_debug"]["error"] == "No data fetched"


def test_failing_store_reports_errors(make_client):
    rows = {collection: 503 for collection in COLLECTIONS.values()}
    response = make_client(rows).get(f"/api/sales/divisionshead?{JANUARY}")
    assert response.status_code == 200
    errors = response.get_json()["_debug"]["errors"]
    # branches are only read by the executive view
    assert {e["collection"] for e in errors} == set(COLLECTIONS.values()) - {"branches"}
    assert all(e["status"] == 503 for e in errors)


def test_invalid_date_is_a_500(client):
    response = client.get("/api/sales/divisionshead?fromDate=garbage")
    assert response.status_code == 500
    body = response.get_json()
    assert "garbage" in body["error"]
    assert "errors" in body["_debug"]


# ------------------------------------------------------------
# Executive
# ------------------------------------------------------------

def test_executive_overview(client):
    body = client.get(f"/api/sales/executive?{JANUARY}").get_json()

    assert body["kpi"]["totalNetSales"] == 950.0
    assert body["kpi"]["growthVsPrevious"] == 0.0
    assert len(body["salesTrend"]) == 31
    assert body["salesTrend"][14] == {"date": "2024-01-15", "netSales": 950.0}
    assert body["topCustomers"] == [{
        "rank": 1,
        "customerName": "Aling Nena Sari-Sari",
        "division": "Dry Goods",
        "branch": "Cebu Main",
        "netSales": 950.0,
        "percentOfTotal": 100.0,
        "invoiceCount": 1,
        "lastInvoiceDate": "2024-01-15",
    }]
    salesman = body["topSalesmen"][0]
    assert salesman["salesmanName"] == "Juan Dela Cruz"
    assert salesman["division"] == "Dry Goods"
    assert salesman["branch"] == "Cebu Main"
    assert salesman["target"] == 1000000
    assert salesman["status"] == "Behind"
    assert body["summary"]["grossSales"] == 1000.0
    assert body["summary"]["totalDiscount"] == 50.0
    assert body["_debug"]["previousFromDate"] == "2023-12-01"
    assert body["_debug"]["previousToDate"] == "2023-12-31"


def test_executive_growth_against_previous_window(make_client):
    snapshot = make_snapshot()
    snapshot["invoices"].append({
        "invoice_id": 2, "invoice_no": "INV-2", "order_id": "SO-2",
        "invoice_date": "2023-12-20", "salesman_id": 7, "customer_code": "C1",
    })
    snapshot["details"].append({"invoice_no": 2, "product_id": "P1", "quantity": 5, "total_amount": 500})

    body = make_client(store_rows(snapshot)).get(f"/api/sales/executive?{JANUARY}").get_json()
    assert body["kpi"]["totalNetSales"] == 950.0
    assert body["kpi"]["growthVsPrevious"] == 90.0
    assert body["summary"]["previousNetSales"] == 500.0


def test_executive_branch_falls_back_to_unknown(make_client, snapshot):
    """An invoice whose branch is missing from the branches collection reads 'Unknown'."""
    snapshot["branches"] = []
    seen = []
    body = make_client(store_rows(snapshot), seen).get(f"/api/sales/executive?{JANUARY}").get_json()

    assert body["topCustomers"][0]["branch"] == "Unknown"
    assert body["topSalesmen"][0]["branch"] == "Unknown"
    assert "/items/branches" in {r.url.path for r in seen}


def test_executive_v2_supplier_league(client):
    body = client.get(f"/api/sales/executive-v2?{JANUARY}").get_json()
    data = body["data"]
    assert set(data) == {"Dry Goods", "Frozen Goods", "Industrial", "Mama Pina's", "Internal"}
    assert data["Dry Goods"] == [{"name": "UNASSIGNED", "sales": 950.0, "division": "Dry Goods"}]
    assert data["Frozen Goods"] == []

    only = client.get(f"/api/sales/executive-v2?{JANUARY}&division=Frozen%20Goods").get_json()
    assert only == {"data": {"Frozen Goods": []}}


def test_executive_v2_without_invoices(make_client):
    assert make_client({}).get("/api/sales/executive-v2").get_json() == {"data": {}}


# ------------------------------------------------------------
# Manager
# ------------------------------------------------------------

def test_manager_collections_overview(make_client, snapshot):
    snapshot["collections"] = [
        {"collection_date": "2024-01-16", "totalAmount": 300, "salesman_id": 7},
        {"collection_date": "2024-01-17", "totalAmount": 500, "salesman_id": 7,
         "isCancelled": {"type": "Buffer", "data": [1]}},
    ]
    body = make_client(store_rows(snapshot)).get("/api/sales/manager?toDate=2024-01-31").get_json()

    assert body["kpi"] == {"totalSales": 300.0, "newClients": 1, "retentionRate": 100, "teamPerformance": 0}
    assert body["salesTrend"]["labels"] == ["Aug", "Sep", "Oct", "Nov", "Dec", "Jan"]
    assert body["salesTrend"]["values"] == [0.0, 0.0, 0.0, 0.0, 0.0, 300.0]
    assert body["departmentSales"] == {"labels": ["Dry", "Frozen"], "values": [300.0, 0.0]}
    assert body["topEmployees"] == [{"name": "Juan Dela Cruz", "sales": 300.0, "rank": 1, "performance": 0}]
    assert body["customers"]["growth"] == {"labels": ["Q1", "Q2", "Q3", "Q4"], "growth": [1, 0, 0, 0]}
    assert body["customers"]["activeCount"] == 1
    assert body["summary"]["insights"]["topPerformer"]["name"] == "Juan Dela Cruz"
    assert "Review sales strategy and targets" in body["summary"]["recommendedActions"]


def test_manager_skips_unreadable_customer_dates(make_client, snapshot):
    snapshot["customers"].append(
        {"id": 12, "customer_code": "C2", "store_name": "Mang Ben Store", "isActive": 1, "date_entered": "2024-13-01"}
    )
    response = make_client(store_rows(snapshot)).get("/api/sales/manager?toDate=2024-02-15")

    assert response.status_code == 200
    customers = response.get_json()["customers"]
    assert customers["growth"]["growth"] == [1, 0, 0, 0]
    assert customers["activeCount"] == 2


def test_manager_v2_overview(client):
    body = client.get(f"/api/sales/manager-v2?{JANUARY}&activeTab=Overview").get_json()

    assert body["division"] == "Overview"
    assert body["goodStock"] == {
        "velocityRate": 20.0,
        "status": "Slow Moving",
        "totalOutflow": 10.0,
        "totalInflow": 50.0,
    }
    assert body["badStock"] == {"accumulated": 0.0, "status": "Excellent", "totalInflow": 0.0}
    assert len(body["trendData"]) == 31
    assert body["trendData"][14] == {"date": "Jan 15", "goodStockOutflow": 10.0, "badStockInflow": 0.0}
    assert body["salesBySupplier"] == [{"name": "Internal / Others", "value": 950.0}]
    assert body["salesBySalesman"] == [{"name": "Juan Dela Cruz", "value": 950.0}]
    assert body["supplierBreakdown"] == [{
        "id": "Internal / Others",
        "name": "Internal / Others",
        "totalSales": 950.0,
        "salesmen": [{"name": "Juan Dela Cruz", "amount": 950.0, "percent": 100.0}],
    }]
    assert body["pareto"] == {
        "products": [{"name": "Pancit Canton", "value": 950.0}],
        "customers": [{"name": "Aling Nena Sari-Sari", "value": 950.0}],
    }


def test_manager_v2_division_tab_keeps_the_breakdown(client):
    body = client.get(f"/api/sales/manager-v2?{JANUARY}&activeTab=Frozen%20Goods").get_json()
    assert body["division"] == "Frozen Goods"
    assert body["goodStock"]["totalOutflow"] == 0.0
    assert body["salesBySupplier"] == []

    dry = next(d for d in body["divisionBreakdown"] if d["division"] == "Dry Goods")
    assert dry == {
        "division": "Dry Goods",
        "goodStock": {"velocityRate": 20.0, "totalOutflow": 10.0, "status": "Warning"},
        "badStock": {"accumulated": 0.0},
    }
    assert len(body["divisionBreakdown"]) == 5


def test_manager_v2_returns_are_bad_stock(make_client, snapshot):
    snapshot["returns"] = [{"return_number": "R1", "order_id": "SO-1", "invoice_no": "INV-1",
                            "return_date": "2024-01-20"}]
    snapshot["return_details"] = [{"return_no": "R1", "product_id": "P1", "quantity": 1, "total_amount": 100}]
    body = make_client(store_rows(snapshot)).get(f"/api/sales/manager-v2?{JANUARY}").get_json()

    assert body["badStock"] == {"accumulated": 1.0, "status": "Critical", "totalInflow": 1.0}
    assert body["trendData"][19] == {"date": "Jan 20", "goodStockOutflow": 0.0, "badStockInflow": 1.0}
    # sales are not reduced by returns in the stock view
    assert body["salesBySupplier"] == [{"name": "Internal / Others", "value": 950.0}]


def test_manager_v2_open_range_with_loose_invoice_date(make_client, snapshot):
    snapshot["invoices"][0]["invoice_date"] = "2024-1-15 09:30:00"
    response = make_client(store_rows(snapshot)).get("/api/sales/manager-v2")

    assert response.status_code == 200
    assert response.get_json()["trendData"] == [
        {"date": "Jan 15", "goodStockOutflow": 10.0, "badStockInflow": 0.0},
    ]


def test_manager_v2_empty_store_is_degraded(make_client):
    response = make_client({}).get(f"/api/sales/manager-v2?{JANUARY}")
    assert response.status_code == 200
    body = response.get_json()
    assert body["goodStock"]["totalOutflow"] == 0.0
    assert body["divisionBreakdown"] == []
    assert body["_debug"]["error"] == "No data fetched"


# ------------------------------------------------------------
# Salesman and supervisor
# ------------------------------------------------------------

def test_salesman_requires_an_id(client):
    response = client.get(f"/api/sales/salesman?{JANUARY}")
    assert response.status_code == 400
    assert response.get_json()["success"] is False


def test_salesman_dashboard(make_client, snapshot):
    rows = store_rows(snapshot)
    rows["deals"] = [
        {"opportunity_name": "Holiday bundle", "customer_id": 11, "stage": "Proposal", "due_date": "2024-02-01"},
        {"opportunity_name": "Done deal", "stage": "Closed"},
    ]
    rows["targets"] = [{"salesman_id": 7, "period": "2024-01", "target_amount": 450000}]
    seen = []
    body = make_client(rows, seen).get(f"/api/sales/salesman?{JANUARY}&salesmanId=7").get_json()

    assert body["success"] is True
    data = body["data"]
    assert data["totalSales"] == 950.0
    assert data["totalInvoices"] == 1
    assert data["target"] == 450000.0
    assert len(data["dailySales"]) == 31
    assert data["topCustomers"][0]["customer"] == "Aling Nena Sari-Sari"
    assert data["openDeals"] == [{
        "opportunity": "Holiday bundle",
        "customer": "Aling Nena Sari-Sari",
        "stage": "Proposal",
        "expectedClose": data["openDeals"][0]["expectedClose"],
        "nextAction": "No action specified",
        "dueDate": "2024-02-01",
    }]

    targets = next(r for r in seen if r.url.path.endswith("/targets"))
    assert targets.url.params["filter[period][_eq]"] == "2024-01"
    assert targets.url.params["filter[salesman_id][_eq]"] == "7"


def test_salesman_target_defaults(client):
    body = client.get(f"/api/sales/salesman?{JANUARY}&salesmanId=7").get_json()
    assert body["data"]["target"] == 300000.0
    assert body["data"]["openDeals"] == []


def test_salesman_list(client):
    body = client.get("/api/sales/salesman/list").get_json()
    assert body == {"success": True, "data": [{"id": 7, "salesman_name": "Juan Dela Cruz"}]}


def test_supervisor_team(make_client, snapshot):
    snapshot["salesmen"].append(
        {"id": 8, "salesman_name": "Inactive Rep", "division_id": 1, "isActive": {"type": "Buffer", "data": [0]}}
    )
    body = make_client(store_rows(snapshot)).get(f"/api/sales/supervisor?{JANUARY}").get_json()

    assert body["success"] is True
    data = body["data"]
    assert data["teamSales"] == 950.0
    assert data["teamTarget"] == 500000
    assert data["totalInvoices"] == 1
    assert data["penetrationRate"] == 100.0
    assert data["coverageDistribution"][0] == {"type": "Sari-Sari Store", "count": 1, "fill": "#3b82f6"}
    assert data["monthlyPerformance"] == [{"month": "Jan", "target": 500000, "achieved": 950.0}]

    assert [s["name"] for s in data["salesmen"]] == ["Juan Dela Cruz"]
    rep = data["salesmen"][0]
    assert rep["orders"] == 1
    assert rep["visits"] == 1
    assert rep["strikeRate"] == 100
    assert rep["topProduct"] == "Pancit Canton"
    assert rep["returnRate"] == 0.0
    assert rep["status"] == "Behind"


def test_supervisor_open_range_with_loose_invoice_date(make_client, snapshot):
    snapshot["invoices"][0]["invoice_date"] = "2024-1-15 09:30:00"
    response = make_client(store_rows(snapshot)).get("/api/sales/supervisor")

    assert response.status_code == 200
    data = response.get_json()["data"]
    assert data["teamSales"] == 950.0
    assert data["monthlyPerformance"] == [{"month": "Jan", "target": 500000, "achieved": 950.0}]


# ------------------------------------------------------------
# Encoder and login
# ------------------------------------------------------------

def test_encoder_passthrough(client, snapshot):
    body = client.get("/api/sales/encoder").get_json()
    assert body == {"data": snapshot["invoices"]}


def test_encoder_keeps_the_upstream_status(make_client):
    response = make_client({"sales_invoice": 403}).get("/api/sales/encoder")
    assert response.status_code == 403
    assert response.get_json()["status"] == 403


USERS = [
    {"user_id": 1, "user_email": "ceo@example.com", "user_fname": "Maria", "user_lname": "Santos",
     "user_password": "pw", "user_position": "Chief Executive Officer", "isAdmin": 0},
    {"user_id": 2, "user_email": "rep@example.com", "user_fname": "Pedro",
     "user_password": "pw2", "user_position": "Sales Representative"},
    {"user_id": 3, "user_email": "gone@example.com", "user_password": "x",
     "is_deleted": {"type": "Buffer", "data": [1]}},
]


def test_login_maps_roles(make_client):
    client = make_client({"user": USERS})

    ceo = client.post("/api/auth/login", json={"username": "CEO@example.com", "password": "pw"})
    assert ceo.status_code == 200
    body = ceo.get_json()
    assert body["success"] is True
    assert body["user"]["role"] == "executive"
    assert body["user"]["isCOO"] is True
    assert body["user"]["name"] == "Maria Santos"
    assert base64.b64decode(body["token"]).decode().startswith("1:ceo@example.com:")

    rep = client.post("/api/auth/login", json={"username": "pedro", "password": "pw2"}).get_json()
    assert rep["user"]["role"] == "salesman"
    assert rep["user"]["isCOO"] is False


def test_login_rejections(make_client):
    client = make_client({"user": USERS})
    assert client.post("/api/auth/login", json={"username": "maria"}).status_code == 400
    assert client.post("/api/auth/login", json={"username": "maria", "password": "nope"}).status_code == 401
    assert client.post("/api/auth/login", json={"username": "nobody", "password": "pw"}).status_code == 401

    deleted = client.post("/api/auth/login", json={"username": "gone@example.com", "password": "x"})
    assert deleted.status_code == 401
    assert deleted.get_json()["error"] == "Account has been deactivated"


def test_login_without_a_user_store(make_client):
    response = make_client({"user": 500}).post("/api/auth/login", json={"username": "a", "password": "b"})
    assert response.status_code == 500
