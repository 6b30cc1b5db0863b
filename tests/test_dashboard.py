"""
Dashboard Tests
Period windows, pet health reminders and role overviews
"""

import pytest
from datetime import date, datetime, timedelta, timezone


class TestPeriodStart:
    """Tests for dashboard period windows"""

    def test_known_periods(self):
        from app.services.dashboard_service import period_start

        today = date(2024, 7, 31)
        assert period_start("day", today) == today
        assert period_start("week", today) == date(2024, 7, 25)
        assert period_start("month", today) == date(2024, 7, 2)

    def test_unknown_period_means_all_time(self):
        from app.services.dashboard_service import period_start

        assert period_start(None) is None
        assert period_start("decade") is None


class TestHealthReminders:
    """Tests for vaccination and checkup reminders"""

    def _pet(self, sample_pet, expires_in_days):
        from app.models.pet import Vaccination

        today = date(2024, 7, 1)
        sample_pet.medical.vaccinations = [
            Vaccination(
                name="Rabies",
                administered_on=today - timedelta(days=300),
                expires_at=today + timedelta(days=expires_in_days)
            )
        ]
        return sample_pet

    def test_vaccine_expiring_within_week_is_high(self, sample_pet):
        from app.services.dashboard_service import pet_health_reminders

        pet = self._pet(sample_pet, 5)
        reminders = pet_health_reminders([pet], {}, today=date(2024, 7, 1))

        assert reminders == [{
            "pet_id": "pet_test123",
            "pet_name": "Bruno",
            "type": "vaccination",
            "message": "Rabies vaccination expires in 5 days",
            "priority": "high",
            "due_date": "2024-07-06",
        }]

    def test_vaccine_outside_window_ignored(self, sample_pet):
        from app.services.dashboard_service import pet_health_reminders

        pet = self._pet(sample_pet, 45)
        assert pet_health_reminders([pet], {}, today=date(2024, 7, 1)) == []

    def test_expired_vaccine_not_reported_as_expiring(self, sample_pet):
        from app.services.dashboard_service import pet_health_reminders

        pet = self._pet(sample_pet, -3)
        assert pet_health_reminders([pet], {}, today=date(2024, 7, 1)) == []

    def test_overdue_checkup_sorted_after_high(self, sample_pet):
        from app.services.dashboard_service import pet_health_reminders

        pet = self._pet(sample_pet, 3)
        last_visit = datetime(2023, 11, 1, tzinfo=timezone.utc)

        reminders = pet_health_reminders([pet], {pet.pet_id: last_visit}, today=date(2024, 7, 1))

        assert [r["type"] for r in reminders] == ["vaccination", "checkup"]
        assert reminders[1]["priority"] == "medium"
        assert "hasn't had a checkup in 8 months" in reminders[1]["message"]

    def test_recent_checkup_no_reminder(self, sample_pet):
        from app.services.dashboard_service import pet_health_reminders

        pet = self._pet(sample_pet, 200)
        last_visit = datetime(2024, 5, 1, tzinfo=timezone.utc)

        assert pet_health_reminders([pet], {pet.pet_id: last_visit}, today=date(2024, 7, 1)) == []


class TestOverview:
    """Tests for role-specific overviews over HTTP"""

    @pytest.mark.asyncio
    async def test_business_admin_overview(self, api_client, admin_headers):
        response = await api_client.get("/api/v1/dashboard/overview", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["role"] == "business_admin"
        assert data["total_clients"] == 1
        assert data["total_pets"] == 1
        assert data["total_appointments"] == 0
        assert data["popular_services"][0]["service_id"] == "svc_test123"

    @pytest.mark.asyncio
    async def test_client_overview_lists_own_pets(self, api_client, client_headers):
        response = await api_client.get("/api/v1/dashboard/overview", headers=client_headers)

        data = response.json()["data"]
        assert data["role"] == "client"
        assert [p["pet_id"] for p in data["pets"]] == ["pet_test123"]
        assert data["outstanding_balance"] == 0

    @pytest.mark.asyncio
    async def test_activity_feed_follows_bookings(self, api_client, admin_headers, booking_date):
        await api_client.post("/api/v1/appointments", json={
            "client_id": "usr_client123",
            "pet_id": "pet_test123",
            "service_id": "svc_test123",
            "scheduled_date": booking_date.isoformat(),
            "start_time": "10:00",
        }, headers=admin_headers)

        response = await api_client.get("/api/v1/dashboard/activity", headers=admin_headers)

        activities = response.json()["data"]["activities"]
        assert activities[0]["resource"] == "appointment"
        assert activities[0]["age_minutes"] == 0
