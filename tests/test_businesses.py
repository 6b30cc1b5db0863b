"""
Business API Tests
Profile access and deactivation
"""

import pytest

API = "/api/v1/businesses"


class TestBusinessAccess:
    """Tests for reading and updating a business"""

    @pytest.mark.asyncio
    async def test_me_returns_own_business(self, api_client, staff_headers):
        response = await api_client.get(f"{API}/me", headers=staff_headers)

        assert response.status_code == 200
        assert response.json()["data"]["business_id"] == "bus_test123"

    @pytest.mark.asyncio
    async def test_other_business_forbidden(self, api_client, admin_headers, seeded_db, sample_business):
        other = sample_business.model_copy(update={"business_id": "bus_other", "owner_id": "usr_other"})
        await seeded_db.businesses.insert_one(other.to_mongo())

        response = await api_client.get(f"{API}/bus_other", headers=admin_headers)

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "ACCESS_DENIED"

    @pytest.mark.asyncio
    async def test_staff_cannot_update(self, api_client, staff_headers):
        response = await api_client.put(f"{API}/bus_test123", json={"name": "Renamed"}, headers=staff_headers)

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_list_is_super_admin_only(self, api_client, admin_headers):
        response = await api_client.get(API, headers=admin_headers)

        assert response.status_code == 403


class TestDeactivateBusiness:
    """Tests for DELETE /businesses/{id}"""

    @pytest.mark.asyncio
    async def test_blocked_by_upcoming_appointment(self, api_client, admin_headers, active_appointment, seeded_db):
        response = await api_client.delete(f"{API}/bus_test123", headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "BUSINESS_HAS_APPOINTMENTS"
        business = await seeded_db.businesses.find_one({"business_id": "bus_test123"})
        assert business["is_active"] is True

    @pytest.mark.asyncio
    async def test_past_appointments_do_not_block(self, api_client, admin_headers, seeded_db):
        from datetime import date, timedelta
        from app.models.appointment import Appointment, ServiceSnapshot

        past = Appointment(
            business_id="bus_test123",
            client_id="usr_client123",
            pet_id="pet_test123",
            service=ServiceSnapshot(service_id="svc_test123", name="Full Groom", duration_minutes=60, price=1500),
            scheduled_date=date.today() - timedelta(days=7),
            start_time="10:00",
            end_time="11:15",
        )
        await seeded_db.appointments.insert_one(past.to_mongo())

        response = await api_client.delete(f"{API}/bus_test123", headers=admin_headers)

        assert response.status_code == 200
        business = await seeded_db.businesses.find_one({"business_id": "bus_test123"})
        assert business["is_active"] is False
        assert business["deleted_at"] is not None
