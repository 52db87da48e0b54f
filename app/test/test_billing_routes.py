# test/test_billing_routes.py - HTTP surface of the billing plugin

import pytest
from bson import ObjectId
from fastapi import FastAPI
from fastapi.testclient import TestClient

from core.MongoORJSONResponse import MongoORJSONResponse
from plugins.billing.plugin import init_plugin

from conftest import LANDLORD_ID, tenant_doc


@pytest.fixture
def client(db):
    app = FastAPI(default_response_class=MongoORJSONResponse)
    app.state.adb = db
    app.state.metrics = None
    plugin = init_plugin(app)
    app.include_router(plugin["router"], prefix="/billing")
    return TestClient(app)


@pytest.fixture
def bill_id(client, tenants):
    tenants.seed(tenant_doc("alice"))
    response = client.post("/billing/bills", json={
        "tenant_id": "alice",
        "tenant_name": "Alice Doe",
        "landlord_id": LANDLORD_ID,
        "room_number": "101",
        "billing_period": "October 2026",
        "total_amount": 5000,
        "due_date": "2026-11-01T00:00:00Z",
    })
    assert response.status_code == 200
    return response.json()["data"]["bill_id"]


class TestBillRoutes:
    """Test bill endpoints and the response envelope"""

    def test_create_and_fetch(self, client, bill_id):
        response = client.get(f"/billing/bills/{bill_id}")
        body = response.json()

        assert response.status_code == 200
        assert body["success"] is True
        assert body["error"] is None
        assert body["data"]["id"] == bill_id
        assert body["data"]["status"] == "Pending"
        assert body["data"]["remaining_balance"] == 5000
        assert body["data"]["due_date"].startswith("2026-11-01")

    def test_create_rejects_missing_period(self, client):
        response = client.post("/billing/bills", json={"tenant_id": "alice", "landlord_id": LANDLORD_ID})
        body = response.json()

        assert response.status_code == 422
        assert body["success"] is False
        assert "billing_period" in body["error"]

    def test_unknown_bill_is_404(self, client):
        response = client.get(f"/billing/bills/{ObjectId()}")

        assert response.status_code == 404
        assert response.json()["success"] is False
        assert "not found" in response.json()["error"]

    def test_partial_payment(self, client, bill_id, tenants):
        response = client.post(f"/billing/bills/{bill_id}/payments", json={"amount": 3000})

        assert response.status_code == 200
        assert response.json()["data"] == {
            "status": "Partially Paid",
            "remaining_balance": 2000,
            "total_paid": 3000,
        }
        assert tenants.docs[0]["payment_status"] == "Pending"

        payments = client.get(f"/billing/bills/{bill_id}/payments").json()["data"]
        assert [p["amount"] for p in payments] == [3000]

    def test_payment_above_balance_is_rejected(self, client, bill_id, db):
        response = client.post(f"/billing/bills/{bill_id}/payments", json={"amount": 5000.01})

        assert response.status_code == 422
        assert response.json()["error"] == "Payment amount cannot exceed remaining balance"
        assert db["bills"].docs[0]["payment_amount"] == 0

    @pytest.mark.parametrize("amount", [0, -10])
    def test_non_positive_payment_is_rejected(self, client, bill_id, amount):
        response = client.post(f"/billing/bills/{bill_id}/payments", json={"amount": amount})

        assert response.status_code == 422
        assert response.json()["success"] is False

    def test_sub_cent_payment_is_rejected(self, client, bill_id, db):
        """An amount that rounds to zero cents leaves the bill untouched"""
        # Execute
        response = client.post(f"/billing/bills/{bill_id}/payments", json={"amount": 0.004})

        # Assertions
        assert response.status_code == 422
        assert response.json()["success"] is False
        assert "at least 0.01" in response.json()["error"]
        assert db["bills"].docs[0]["payment_amount"] == 0
        assert db["bills"].docs[0]["status"] == "Pending"
        assert db["bill_payments"].docs == []

    def test_payment_is_rounded_to_cents(self, client, bill_id, db):
        response = client.post(f"/billing/bills/{bill_id}/payments", json={"amount": 0.005})

        assert response.status_code == 200
        assert response.json()["data"]["total_paid"] == 0.01
        assert db["bill_payments"].docs[0]["amount"] == 0.01

    @pytest.mark.parametrize("amount", ["inf", "-inf", "nan"])
    def test_non_finite_payment_is_rejected(self, client, bill_id, amount):
        response = client.post(f"/billing/bills/{bill_id}/payments", json={"amount": amount})

        assert response.status_code == 422
        assert response.json()["success"] is False

    @pytest.mark.parametrize("payload", [
        {"total_amount": "inf"},
        {"total_amount": "nan"},
        {"items": [{"description": "Rent", "amount": "inf"}]},
    ])
    def test_create_rejects_non_finite_amounts(self, client, db, payload):
        response = client.post("/billing/bills", json={
            "tenant_id": "alice",
            "landlord_id": LANDLORD_ID,
            "billing_period": "October 2026",
            **payload,
        })
        body = response.json()

        assert response.status_code == 422
        assert body["success"] is False
        assert "finite" in body["error"]
        assert db["bills"].docs == []

    def test_status_override_rejects_non_finite_amount(self, client, bill_id, db):
        response = client.patch(
            f"/billing/bills/{bill_id}/status",
            json={"status": "Paid", "payment_amount": "inf"},
        )

        assert response.status_code == 422
        assert db["bills"].docs[0]["status"] == "Pending"

    def test_status_override(self, client, bill_id, tenants):
        response = client.patch(f"/billing/bills/{bill_id}/status", json={"status": "Paid"})
        data = response.json()["data"]

        assert response.status_code == 200
        assert data["status"] == "Paid"
        assert data["payment_amount"] == 5000
        assert data["remaining_balance"] == 0
        assert tenants.docs[0]["payment_status"] == "Paid"

    def test_unknown_status_is_rejected(self, client, bill_id):
        response = client.patch(f"/billing/bills/{bill_id}/status", json={"status": "Archived"})

        assert response.status_code == 422

    def test_delete(self, client, bill_id):
        response = client.delete(f"/billing/bills/{bill_id}")

        assert response.status_code == 200
        assert response.json() == {"success": True, "data": {"bill_id": bill_id}, "error": None}
        assert client.get(f"/billing/bills/{bill_id}").status_code == 404
        assert client.delete(f"/billing/bills/{bill_id}").status_code == 404


class TestTenantRoutes:
    """Test tenant-scoped reads and resync"""

    def test_tenant_bills_and_balance(self, client, bill_id):
        client.post(f"/billing/bills/{bill_id}/payments", json={"amount": 1000})

        bills = client.get("/billing/tenants/alice/bills").json()["data"]
        balance = client.get("/billing/tenants/alice/balance").json()["data"]

        assert [b["id"] for b in bills] == [bill_id]
        assert balance["total_balance"] == 4000

    def test_manual_resync(self, client, bill_id, tenants):
        tenants.docs[0]["payment_status"] = "Paid"

        response = client.post("/billing/tenants/alice/sync")

        assert response.json()["data"] == {"tenant_id": "alice", "payment_status": "Pending"}
        assert tenants.docs[0]["payment_status"] == "Pending"

    def test_resync_unknown_tenant(self, client):
        response = client.post("/billing/tenants/ghost/sync")

        assert response.status_code == 404
        assert response.json()["success"] is False


class TestLandlordRoutes:
    """Test landlord views and monthly rent generation"""

    def test_listing_search_and_summary(self, client, bill_id):
        assert len(client.get(f"/billing/landlords/{LANDLORD_ID}/bills").json()["data"]) == 1
        assert client.get(f"/billing/landlords/{LANDLORD_ID}/bills", params={"search": "nobody"}).json()["data"] == []
        assert client.get(f"/billing/landlords/{LANDLORD_ID}/bills", params={"status": "Paid"}).json()["data"] == []

        summary = client.get(f"/billing/landlords/{LANDLORD_ID}/summary").json()["data"]
        assert summary["bill_count"] == 1
        assert summary["total_outstanding"] == 5000

    def test_monthly_rent_batch_and_guard(self, client, tenants):
        landlord = "landlord-routes"
        tenants.seed(
            tenant_doc("tenant-a", property_id=landlord),
            tenant_doc("tenant-b", is_active=False, property_id=landlord),
        )

        before = client.get(f"/billing/landlords/{landlord}/monthly-rent/exists").json()["data"]
        run = client.post(f"/billing/landlords/{landlord}/monthly-rent").json()["data"]
        after = client.get(
            f"/billing/landlords/{landlord}/monthly-rent/exists", params={"period": run["billing_period"]}
        ).json()["data"]

        assert before["exists"] is False
        assert before["billing_period"] == run["billing_period"]
        assert (run["total"], run["successful"], run["failed"]) == (2, 1, 0)
        assert after == {"billing_period": run["billing_period"], "exists": True, "count": 1}

    def test_single_tenant_monthly_rent(self, client, tenants):
        tenants.seed(tenant_doc("tenant-a", monthly_rent=4200))

        response = client.post(
            f"/billing/landlords/{LANDLORD_ID}/tenants/tenant-a/monthly-rent", params={"period": "September 2026"}
        )
        bill_id = response.json()["data"]["bill_id"]
        bill = client.get(f"/billing/bills/{bill_id}").json()["data"]

        assert bill["billing_period"] == "September 2026"
        assert bill["total_amount"] == 4200
        assert bill["bill_type"] == "Monthly Rent"
        assert bill["tenant_name"] == "Tenant-A Doe"

    def test_single_tenant_monthly_rent_unknown_tenant(self, client):
        response = client.post(f"/billing/landlords/{LANDLORD_ID}/tenants/ghost/monthly-rent")

        assert response.status_code == 404
