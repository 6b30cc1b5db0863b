"""
Invoice API Tests
Billing a completed appointment through payment or cancellation
"""

import pytest
from datetime import date

API = "/api/v1/invoices"


async def seed_visit(db, status: str = "completed") -> str:
    from app.models.appointment import Appointment, ServiceSnapshot

    appointment = Appointment(
        business_id="bus_test123",
        client_id="usr_client123",
        pet_id="pet_test123",
        service=ServiceSnapshot(service_id="svc_test123", name="Full Groom", duration_minutes=60, price=1500),
        scheduled_date=date.today(),
        start_time="10:00",
        end_time="11:15",
        status=status,
        price=1500,
    )
    await db.appointments.insert_one(appointment.to_mongo())
    return appointment.appointment_id


async def invoice_for(api_client, headers, appointment_id: str) -> dict:
    response = await api_client.post(API, json={"appointment_id": appointment_id}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestCreateInvoice:
    """Tests for POST /invoices"""

    @pytest.mark.asyncio
    async def test_from_completed_appointment(self, api_client, admin_headers, seeded_db):
        appointment_id = await seed_visit(seeded_db)

        data = await invoice_for(api_client, admin_headers, appointment_id)

        assert data["client_id"] == "usr_client123"
        assert data["status"] == "draft"
        assert data["invoice_number"] == f"INV-{date.today():%Y%m%d}-0001"
        assert [i["description"] for i in data["items"]] == ["Full Groom"]
        assert data["totals"]["total"] == 1500
        assert data["balance_due"] == 1500

    @pytest.mark.asyncio
    async def test_open_appointment_cannot_be_invoiced(self, api_client, admin_headers, seeded_db):
        appointment_id = await seed_visit(seeded_db, status="scheduled")

        response = await api_client.post(API, json={"appointment_id": appointment_id}, headers=admin_headers)

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "INVALID_INVOICE_STATE"

    @pytest.mark.asyncio
    async def test_appointment_invoiced_once(self, api_client, admin_headers, seeded_db):
        appointment_id = await seed_visit(seeded_db)
        await invoice_for(api_client, admin_headers, appointment_id)

        response = await api_client.post(API, json={"appointment_id": appointment_id}, headers=admin_headers)

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_client_cannot_create(self, api_client, client_headers, seeded_db):
        appointment_id = await seed_visit(seeded_db)

        response = await api_client.post(API, json={"appointment_id": appointment_id}, headers=client_headers)

        assert response.status_code == 403


class TestPayments:
    """Tests for payments and cancellation"""

    @pytest.mark.asyncio
    async def test_partial_then_full_payment(self, api_client, admin_headers, client_headers, seeded_db):
        invoice = await invoice_for(api_client, admin_headers, await seed_visit(seeded_db))
        url = f"{API}/{invoice['invoice_id']}"

        response = await api_client.post(f"{url}/payments", json={"amount": 500, "method": "cash"}, headers=admin_headers)
        data = response.json()["data"]
        assert data["status"] == "partial"
        assert data["balance_due"] == 1000

        response = await api_client.post(f"{url}/payments", json={"amount": 1200, "method": "card"}, headers=admin_headers)
        assert response.status_code == 409

        response = await api_client.post(f"{url}/payments", json={"amount": 1000, "method": "card"}, headers=admin_headers)
        data = response.json()["data"]
        assert data["status"] == "paid"
        assert data["paid_at"] is not None
        assert [p["method"] for p in data["payments"]] == ["cash", "card"]

        business = await seeded_db.businesses.find_one({"business_id": "bus_test123"})
        assert business["total_revenue"] == 1500

        response = await api_client.get(url, headers=client_headers)
        assert response.json()["data"]["status"] == "paid"

    @pytest.mark.asyncio
    async def test_cancel_unpaid_invoice(self, api_client, admin_headers, seeded_db):
        appointment_id = await seed_visit(seeded_db)
        invoice = await invoice_for(api_client, admin_headers, appointment_id)

        response = await api_client.post(f"{API}/{invoice['invoice_id']}/cancel", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "cancelled"

        # A cancelled invoice frees the appointment for a new one
        replacement = await invoice_for(api_client, admin_headers, appointment_id)
        assert replacement["invoice_number"].endswith("-0002")

    @pytest.mark.asyncio
    async def test_paid_invoice_cannot_be_cancelled(self, api_client, admin_headers, seeded_db):
        invoice = await invoice_for(api_client, admin_headers, await seed_visit(seeded_db))
        url = f"{API}/{invoice['invoice_id']}"
        await api_client.post(f"{url}/payments", json={"amount": 100, "method": "cash"}, headers=admin_headers)

        response = await api_client.post(f"{url}/cancel", headers=admin_headers)

        assert response.status_code == 409
