"""
HTTP surface: quotation → acceptance → purchase order through the API.
"""
import pytest
from fastapi.testclient import TestClient

from erp_pricing.api import state
from erp_pricing.api.main import app


@pytest.fixture
def client(settings, catalog):
    state.reset_services(settings, catalog)
    return TestClient(app)


def test_root_and_status(client):
    assert client.get("/").json()["status"] == "online"

    status = client.get("/system/status").json()
    assert status["catalog"]["items"] == 2
    assert status["base_currency"] == "BHD"


def test_calculate_explicit_configuration(client):
    response = client.post("/api/pricing/calculate", json={
        "item_id": "PUMP", "method": "margin_based", "target_margin": 40,
    })
    assert response.status_code == 200
    body = response.json()
    assert body["final_price"] == pytest.approx(166.67, abs=0.01)
    assert "Final unit price" in body["trace_text"]


def test_calculate_rejects_full_margin(client):
    response = client.post("/api/pricing/calculate", json={
        "item_id": "PUMP", "method": "margin_based", "target_margin": 100, "cost_price": 10,
    })
    assert response.status_code == 400
    assert response.json()["detail"] == "Target margin cannot be 100% or higher"


def test_price_catalog_item(client):
    response = client.post("/api/pricing/items/PUMP/optimal", json={"customer_id": "WHOLESALE"})
    assert response.status_code == 200
    assert response.json()["final_price"] == pytest.approx(166.67, abs=0.01)

    missing = client.post("/api/pricing/items/NOPE/optimal", json={"customer_id": "WHOLESALE"})
    assert missing.status_code == 404


def test_currency_convert(client):
    body = client.get("/api/pricing/currency/convert",
                      params={"amount": 100, "from_currency": "BHD", "to_currency": "usd"}).json()
    assert body["converted"] == pytest.approx(265.0)
    assert body["to_currency"] == "USD"


def test_reports(client):
    client.post("/api/pricing/batch", json={"item_ids": ["PUMP", "VALVE"], "customer_id": "RETAIL"})
    performance = client.get("/api/pricing/reports/performance").json()
    assert performance["total_calculations"] == 2

    position = client.get("/api/pricing/reports/competitive-position").json()
    assert position[0]["average_price"] == pytest.approx(155.0)


def test_quotation_to_reconciled_purchase_order(client):
    created = client.post("/api/quotations", json={
        "customer_id": "WHOLESALE",
        "customer_type": "Wholesale",
        "items": [
            {"description": "Pump", "quantity": 10, "unit_price": 50.0},
            {"description": "Valve", "quantity": 5, "unit_price": 20.0},
        ],
    })
    assert created.status_code == 201
    quotation = created.json()
    pump_id, valve_id = [item["id"] for item in quotation["items"]]

    early = client.post("/api/purchase-orders", json={
        "quotation_id": quotation["id"], "document_path": "/po.pdf", "document_name": "po.pdf",
        "document_type": "application/pdf", "uploaded_by": "clerk",
    })
    assert early.status_code == 400
    assert early.json()["detail"] == "Quotation must be Accepted before uploading PO"

    accepted = client.post("/api/customer-acceptances", json={
        "quotation_id": quotation["id"],
        "acceptance_type": "Partial",
        "accepted_by": "Ahmed",
        "items": [{"quotation_item_id": pump_id, "accepted_quantity": 12}],
    })
    assert accepted.status_code == 201
    assert accepted.json()["items"][0]["accepted_quantity"] == 10
    assert client.get(f"/api/quotations/{quotation['id']}").json()["status"] == "Accepted"

    uploaded = client.post("/api/customer-po-upload", json={
        "quotation_id": quotation["id"], "document_path": "/po.pdf",
        "document_name": "po.pdf", "document_type": "application/pdf",
    })
    assert uploaded.status_code == 201
    order = uploaded.json()

    lines = client.post(f"/api/purchase-orders/{order['id']}/line-items/bulk", json=[
        {"item_description": "Pump", "quotation_item_id": pump_id, "po_quantity": 10, "po_unit_price": 50.0},
        {"item_description": "Valve", "quotation_item_id": valve_id, "po_quantity": 5, "po_unit_price": 20.0},
    ])
    assert lines.status_code == 201

    report = client.post(f"/api/purchase-orders/{order['id']}/reconcile").json()
    assert report["valid"] is False
    assert [line["match_status"] for line in report["lines"]] == ["Matched", "Item Not Found"]
    assert client.get(f"/api/purchase-orders/{order['id']}").json()["validation_status"] == "Requires Review"


def test_partial_acceptance_without_items(client):
    quotation = client.post("/api/quotations", json={
        "customer_id": "RETAIL", "items": [{"description": "Pump", "quantity": 1, "unit_price": 5}],
    }).json()

    response = client.post("/api/customer-acceptances", json={
        "quotation_id": quotation["id"], "acceptance_type": "Partial", "accepted_by": "Ahmed",
    })
    assert response.status_code == 400
    assert response.json()["detail"] == "Please select at least one item for partial acceptance"


def test_upload_missing_fields(client):
    response = client.post("/api/customer-po-upload", json={"quotation_id": "q-1", "document_path": "/x"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Missing required fields: document_name, document_type"


def test_unknown_quotation(client):
    response = client.get("/api/quotations/missing")
    assert response.status_code == 404
    assert response.json()["detail"] == "Quotation not found"


def test_null_fields_leave_values_unchanged(client):
    quotation = client.post("/api/quotations", json={
        "customer_id": "RETAIL", "discount_percentage": 10,
        "items": [{"description": "Pump", "quantity": 2, "unit_price": 50}],
    }).json()
    item_id = quotation["items"][0]["id"]

    item = client.put(f"/api/quotations/items/{item_id}", json={"quantity": None})
    assert item.status_code == 200
    assert item.json()["quantity"] == 2

    header = client.put(f"/api/quotations/{quotation['id']}", json={"discount_percentage": None})
    assert header.status_code == 200
    assert header.json()["discount_percentage"] == 10


def test_accepted_line_cannot_be_edited(client):
    quotation = client.post("/api/quotations", json={
        "customer_id": "RETAIL", "items": [{"description": "Pump", "quantity": 2, "unit_price": 50}],
    }).json()
    item_id = quotation["items"][0]["id"]
    client.post("/api/customer-acceptances", json={
        "quotation_id": quotation["id"], "acceptance_type": "Full", "accepted_by": "Ahmed",
    })

    response = client.put(f"/api/quotations/items/{item_id}", json={"quantity": 1})
    assert response.status_code == 400
    assert client.delete(f"/api/quotations/items/{item_id}").status_code == 400


def test_performance_report_with_utc_dates(client):
    client.post("/api/pricing/batch", json={"item_ids": ["PUMP"], "customer_id": "RETAIL"})
    response = client.get("/api/pricing/reports/performance", params={
        "date_from": "2000-01-01T00:00:00Z", "date_to": "2100-01-01T00:00:00Z",
    })
    assert response.status_code == 200
    assert response.json()["total_calculations"] == 1
