"""
Service Catalogue API Tests
Creating, assigning and retiring services
"""

import pytest

API = "/api/v1/services"


@pytest.fixture
def new_service():
    return {
        "name": "Nail Trim",
        "category": "grooming",
        "pricing": {"base_price": 300},
        "duration": {"estimated_minutes": 15},
    }


class TestCreateService:
    """Tests for POST /services"""

    @pytest.mark.asyncio
    async def test_assigned_staff_must_belong_to_business(self, api_client, admin_headers, new_service, seeded_db):
        from app.models.user import User, UserRole
        from app.utils.security import get_password_hash

        outsider = User(
            user_id="usr_outsider",
            email="groomer@elsewhere.example.com",
            password_hash=get_password_hash("Secret123!"),
            role=UserRole.STAFF,
            first_name="Out",
            last_name="Sider",
            business_ids=["bus_other"],
        )
        await seeded_db.users.insert_one(outsider.to_mongo())

        response = await api_client.post(
            API, json={**new_service, "staff_ids": ["usr_staff123", "usr_outsider"]}, headers=admin_headers
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_STAFF"
        assert await seeded_db.services.count_documents({"name": "Nail Trim"}) == 0

    @pytest.mark.asyncio
    async def test_create_with_own_staff(self, api_client, admin_headers, new_service):
        response = await api_client.post(
            API, json={**new_service, "staff_ids": ["usr_staff123"]}, headers=admin_headers
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["business_id"] == "bus_test123"
        assert data["staff_ids"] == ["usr_staff123"]

    @pytest.mark.asyncio
    async def test_duplicate_name_rejected(self, api_client, admin_headers, new_service):
        response = await api_client.post(API, json={**new_service, "name": "full groom"}, headers=admin_headers)

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "SERVICE_EXISTS"

    @pytest.mark.asyncio
    async def test_staff_cannot_create(self, api_client, staff_headers, new_service):
        response = await api_client.post(API, json=new_service, headers=staff_headers)

        assert response.status_code == 403


class TestDeleteService:
    """Tests for DELETE /services/{id}"""

    @pytest.mark.asyncio
    async def test_blocked_by_active_appointment(self, api_client, admin_headers, active_appointment):
        response = await api_client.delete(f"{API}/svc_test123", headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "SERVICE_IN_USE"

    @pytest.mark.asyncio
    async def test_soft_delete(self, api_client, admin_headers, seeded_db):
        response = await api_client.delete(f"{API}/svc_test123", headers=admin_headers)

        assert response.status_code == 200
        stored = await seeded_db.services.find_one({"service_id": "svc_test123"})
        assert stored["is_active"] is False
        assert stored["deleted_at"] is not None
