"""
Appointment API Tests
Booking rules and the status lifecycle over HTTP
"""

import pytest

API = "/api/v1/appointments"


@pytest.fixture
def booking(booking_date):
    return {
        "client_id": "usr_client123",
        "pet_id": "pet_test123",
        "service_id": "svc_test123",
        "scheduled_date": booking_date.isoformat(),
        "start_time": "10:00",
        "notes": "Sensitive ears",
        "internal_notes": "Nervous around dryers",
    }


async def book(api_client, headers, payload) -> dict:
    response = await api_client.post(API, json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestCreateAppointment:
    """Tests for booking"""

    @pytest.mark.asyncio
    async def test_admin_books_for_client(self, api_client, admin_headers, booking, seeded_db):
        data = await book(api_client, admin_headers, booking)

        assert data["status"] == "scheduled"
        assert data["business_id"] == "bus_test123"
        assert data["end_time"] == "11:15"  # 60 minutes plus 15 buffer
        assert data["price"] == 1500
        assert data["available_actions"] == ["checkin", "start", "cancel", "no-show"]

        business = await seeded_db.businesses.find_one({"business_id": "bus_test123"})
        assert business["total_appointments"] == 1
        assert await seeded_db.audit_logs.count_documents({"resource": "appointment"}) == 1

    @pytest.mark.asyncio
    async def test_client_books_for_self(self, api_client, client_headers, booking):
        payload = {k: v for k, v in booking.items() if k != "client_id"}
        data = await book(api_client, client_headers, payload)

        assert data["client_id"] == "usr_client123"
        assert data["internal_notes"] is None

    @pytest.mark.asyncio
    async def test_overlapping_booking_rejected(self, api_client, admin_headers, booking):
        await book(api_client, admin_headers, booking)

        response = await api_client.post(API, json={**booking, "start_time": "10:30"}, headers=admin_headers)

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "SCHEDULING_CONFLICT"
        assert error["details"]["conflicts"][0]["start_time"] == "10:00"

    @pytest.mark.asyncio
    async def test_back_to_back_booking_allowed(self, api_client, admin_headers, booking):
        await book(api_client, admin_headers, booking)

        data = await book(api_client, admin_headers, {**booking, "start_time": "11:15"})
        assert data["start_time"] == "11:15"

    @pytest.mark.asyncio
    async def test_outside_opening_hours_rejected(self, api_client, admin_headers, booking):
        response = await api_client.post(API, json={**booking, "start_time": "16:30"}, headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "BUSINESS_CLOSED"

    @pytest.mark.asyncio
    async def test_pet_must_belong_to_client(self, api_client, admin_headers, booking, seeded_db):
        await seeded_db.pets.update_one({"pet_id": "pet_test123"}, {"$set": {"owner_id": "usr_someone_else"}})

        response = await api_client.post(API, json=booking, headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "PET_OWNER_MISMATCH"

    @pytest.mark.asyncio
    async def test_missing_pet_is_validation_error(self, api_client, admin_headers, booking):
        payload = {k: v for k, v in booking.items() if k != "pet_id"}
        response = await api_client.post(API, json=payload, headers=admin_headers)

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


class TestStatusLifecycle:
    """Tests for status transitions"""

    @pytest.mark.asyncio
    async def test_full_lifecycle(self, api_client, staff_headers, admin_headers, booking, seeded_db):
        appt = await book(api_client, admin_headers, booking)
        url = f"{API}/{appt['appointment_id']}"

        response = await api_client.post(f"{url}/checkin", headers=staff_headers)
        assert response.json()["data"]["status"] == "confirmed"

        response = await api_client.post(f"{url}/start", headers=staff_headers)
        assert response.json()["data"]["status"] == "in_progress"
        assert response.json()["data"]["available_actions"] == ["complete"]

        response = await api_client.post(
            f"{url}/complete",
            json={"notes": "Coat trimmed short", "final_price": 1400},
            headers=staff_headers
        )
        data = response.json()["data"]
        assert data["status"] == "completed"
        assert data["price"] == 1400
        assert data["completion_notes"] == "Coat trimmed short"
        assert data["available_actions"] == []

        pet = await seeded_db.pets.find_one({"pet_id": "pet_test123"})
        assert pet["total_visits"] == 1

    @pytest.mark.asyncio
    async def test_complete_from_scheduled_is_409(self, api_client, staff_headers, admin_headers, booking):
        appt = await book(api_client, admin_headers, booking)

        response = await api_client.post(f"{API}/{appt['appointment_id']}/complete", headers=staff_headers)

        assert response.status_code == 409
        error = response.json()["error"]
        assert error["code"] == "INVALID_STATUS_TRANSITION"
        assert error["details"] == {"current_status": "scheduled", "action": "complete"}

    @pytest.mark.asyncio
    async def test_cancelled_appointment_cannot_start(self, api_client, admin_headers, booking):
        appt = await book(api_client, admin_headers, booking)
        url = f"{API}/{appt['appointment_id']}"

        await api_client.post(f"{url}/cancel", json={"reason": "Pet unwell"}, headers=admin_headers)
        response = await api_client.post(f"{url}/start", headers=admin_headers)

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_client_can_cancel_own_appointment(self, api_client, client_headers, admin_headers, booking):
        appt = await book(api_client, admin_headers, booking)

        response = await api_client.post(
            f"{API}/{appt['appointment_id']}/cancel",
            json={"reason": "Travelling"},
            headers=client_headers
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "cancelled"
        assert data["cancellation"]["reason"] == "Travelling"
        assert data["cancellation"]["fee"] == 0

    @pytest.mark.asyncio
    async def test_client_cannot_check_in(self, api_client, client_headers, admin_headers, booking):
        appt = await book(api_client, admin_headers, booking)

        response = await api_client.post(f"{API}/{appt['appointment_id']}/checkin", headers=client_headers)

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_cancelled_slot_can_be_rebooked(self, api_client, admin_headers, booking):
        appt = await book(api_client, admin_headers, booking)
        await api_client.post(f"{API}/{appt['appointment_id']}/cancel", headers=admin_headers)

        data = await book(api_client, admin_headers, booking)
        assert data["appointment_id"] != appt["appointment_id"]


class TestListAppointments:
    """Tests for listing and visibility"""

    @pytest.mark.asyncio
    async def test_list_shape(self, api_client, admin_headers, booking):
        await book(api_client, admin_headers, booking)
        await book(api_client, admin_headers, {**booking, "start_time": "13:00"})

        response = await api_client.get(API, headers=admin_headers)

        data = response.json()["data"]
        assert [a["start_time"] for a in data["appointments"]] == ["10:00", "13:00"]
        assert data["pagination"] == {"current": 1, "pages": 1, "total": 2, "limit": 20}

    @pytest.mark.asyncio
    async def test_status_filter(self, api_client, admin_headers, booking):
        appt = await book(api_client, admin_headers, booking)
        await book(api_client, admin_headers, {**booking, "start_time": "13:00"})
        await api_client.post(f"{API}/{appt['appointment_id']}/cancel", headers=admin_headers)

        response = await api_client.get(API, params={"status": "cancelled"}, headers=admin_headers)

        appointments = response.json()["data"]["appointments"]
        assert [a["appointment_id"] for a in appointments] == [appt["appointment_id"]]

    @pytest.mark.asyncio
    async def test_client_never_sees_internal_notes(self, api_client, admin_headers, client_headers, booking):
        appt = await book(api_client, admin_headers, booking)
        assert appt["internal_notes"] == "Nervous around dryers"

        response = await api_client.get(f"{API}/{appt['appointment_id']}", headers=client_headers)

        assert response.status_code == 200
        assert response.json()["data"]["internal_notes"] is None
        assert response.json()["data"]["notes"] == "Sensitive ears"

    @pytest.mark.asyncio
    async def test_calendar_groups_by_day(self, api_client, admin_headers, booking, booking_date):
        await book(api_client, admin_headers, {**booking, "start_time": "13:00"})
        await book(api_client, admin_headers, booking)

        response = await api_client.get(
            f"{API}/calendar",
            params={"year": booking_date.year, "month": booking_date.month},
            headers=admin_headers
        )

        days = response.json()["data"]
        assert list(days) == [booking_date.isoformat()]
        assert [a["start_time"] for a in days[booking_date.isoformat()]] == ["10:00", "13:00"]


class TestStartTimeFormat:
    """Tests for the HH:MM start time"""

    @pytest.mark.asyncio
    async def test_out_of_range_time_rejected(self, api_client, admin_headers, booking):
        for value in ("25:99", "24:00", "10:60", "9:30"):
            response = await api_client.post(API, json={**booking, "start_time": value}, headers=admin_headers)

            assert response.status_code == 422, value
            assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_reschedule_to_invalid_time_rejected(self, api_client, admin_headers, booking):
        appt = await book(api_client, admin_headers, booking)

        response = await api_client.put(
            f"{API}/{appt['appointment_id']}", json={"start_time": "23:75"}, headers=admin_headers
        )

        assert response.status_code == 422


class TestCancellationPolicy:
    """Tests for late cancellations and no-shows"""

    @pytest.fixture
    async def strict_policy(self, seeded_db):
        # Every booking a few days out falls inside a two week window
        await seeded_db.businesses.update_one(
            {"business_id": "bus_test123"},
            {"$set": {"settings.cancellation_policy": {"hours_required": 14 * 24, "fee_percentage": 50}}}
        )

    @pytest.mark.asyncio
    async def test_client_cannot_cancel_late(
        self, api_client, client_headers, admin_headers, booking, strict_policy, seeded_db
    ):
        appt = await book(api_client, admin_headers, booking)

        response = await api_client.post(f"{API}/{appt['appointment_id']}/cancel", headers=client_headers)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "CANCELLATION_TOO_LATE"
        stored = await seeded_db.appointments.find_one({"appointment_id": appt["appointment_id"]})
        assert stored["status"] == "scheduled"

    @pytest.mark.asyncio
    async def test_staff_late_cancel_records_fee(
        self, api_client, staff_headers, admin_headers, booking, strict_policy
    ):
        appt = await book(api_client, admin_headers, booking)

        response = await api_client.post(
            f"{API}/{appt['appointment_id']}/cancel",
            json={"reason": "Groomer sick"},
            headers=staff_headers
        )

        assert response.status_code == 200
        cancellation = response.json()["data"]["cancellation"]
        assert cancellation["fee"] == 750  # 50% of 1500
        assert cancellation["cancelled_by"] == "usr_staff123"

    @pytest.mark.asyncio
    async def test_no_show(self, api_client, staff_headers, admin_headers, client_headers, booking):
        appt = await book(api_client, admin_headers, booking)
        url = f"{API}/{appt['appointment_id']}/no-show"

        response = await api_client.post(url, headers=client_headers)
        assert response.status_code == 403

        response = await api_client.post(url, headers=staff_headers)
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "no_show"
        assert data["available_actions"] == []

        response = await api_client.post(url, headers=staff_headers)
        assert response.status_code == 409


class TestMonthView:
    """Tests for get_month boundaries"""

    @pytest.mark.asyncio
    async def test_leap_february_includes_29th_only(self, mock_db, admin_user):
        from datetime import date
        from app.models.appointment import Appointment, ServiceSnapshot
        from app.services.appointment_service import AppointmentService

        for day in (date(2028, 1, 31), date(2028, 2, 1), date(2028, 2, 29), date(2028, 3, 1)):
            appointment = Appointment(
                business_id="bus_test123",
                client_id="usr_client123",
                pet_id="pet_test123",
                service=ServiceSnapshot(service_id="svc_test123", name="Full Groom", duration_minutes=60, price=1500),
                scheduled_date=day,
                start_time="10:00",
                end_time="11:15",
            )
            await mock_db.appointments.insert_one(appointment.to_mongo())

        appointments = await AppointmentService(mock_db).get_month(admin_user, 2028, 2)

        assert sorted(a.scheduled_date for a in appointments) == [date(2028, 2, 1), date(2028, 2, 29)]
