"""
Staff API Tests
Adding and removing team members
"""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

API = "/api/v1/staff"


class TestCreateStaff:
    """Tests for POST /staff"""

    @pytest.mark.asyncio
    async def test_member_joins_business(self, api_client, admin_headers, seeded_db):
        email_service = MagicMock()
        email_service.send_welcome = AsyncMock()

        with patch("app.routers.staff.get_email_service", return_value=email_service):
            response = await api_client.post(
                API,
                json={"first_name": "Ravi", "last_name": "Kumar", "email": "Ravi@HappyPaws.example.com"},
                headers=admin_headers
            )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["staff"]["email"] == "ravi@happypaws.example.com"
        assert len(data["temporary_password"]) >= 8

        business = await seeded_db.businesses.find_one({"business_id": "bus_test123"})
        assert data["staff"]["user_id"] in business["staff_ids"]
        email_service.send_welcome.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_duplicate_email_rejected(self, api_client, admin_headers):
        response = await api_client.post(
            API,
            json={"first_name": "Dup", "last_name": "Licate", "email": "groomer@happypaws.example.com"},
            headers=admin_headers
        )

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "EMAIL_EXISTS"


class TestDeleteStaff:
    """Tests for DELETE /staff/{id}"""

    @pytest.mark.asyncio
    async def test_blocked_by_active_appointment(self, api_client, admin_headers, active_appointment):
        response = await api_client.delete(f"{API}/usr_staff123", headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "STAFF_HAS_APPOINTMENTS"

    @pytest.mark.asyncio
    async def test_last_business_releases_account(self, api_client, admin_headers, seeded_db):
        await seeded_db.services.update_one({"service_id": "svc_test123"}, {"$set": {"staff_ids": ["usr_staff123"]}})

        response = await api_client.delete(f"{API}/usr_staff123", headers=admin_headers)

        assert response.status_code == 200
        stored = await seeded_db.users.find_one({"user_id": "usr_staff123"})
        assert stored["business_ids"] == []
        assert stored["is_active"] is False
        assert stored["email"].startswith("deleted_")

        service = await seeded_db.services.find_one({"service_id": "svc_test123"})
        assert service["staff_ids"] == []
        business = await seeded_db.businesses.find_one({"business_id": "bus_test123"})
        assert "usr_staff123" not in business["staff_ids"]
