"""
Client layer tests
Form rules, calendar grouping and state slices over a mocked transport
"""

import json
import pytest
import httpx


ADMIN = {"user_id": "usr_admin123", "role": "business_admin", "business_ids": ["bus_test123"]}
STAFF = {"user_id": "usr_staff123", "role": "staff", "business_ids": ["bus_other"]}
CLIENT = {"user_id": "usr_client123", "role": "client", "business_ids": ["bus_test123"], "pet_ids": ["pet_b"]}

PETS = [
    {"pet_id": "pet_a", "owner_id": "usr_client123", "name": "Bruno"},
    {"pet_id": "pet_b", "owner_id": "usr_shared", "name": "Coco"},
    {"pet_id": "pet_c", "owner_id": "usr_other", "name": "Milo"},
]


def appointment(appointment_id="apt_1", status="scheduled", **extra):
    return {
        "appointment_id": appointment_id,
        "business_id": "bus_test123",
        "staff_id": None,
        "status": status,
        "scheduled_date": "2024-07-15",
        "start_time": "10:00",
        **extra,
    }


def make_client(handler):
    from app.client import PetSyncClient

    return PetSyncClient(base_url="http://test/api/v1", token="tok", transport=httpx.MockTransport(handler))


class TestAppointmentForm:
    """Tests for booking form rules"""

    def test_first_missing_field_reported(self):
        from app.client.forms import validate_appointment_form

        form = {"client_id": "usr_client123", "pet_id": "pet_a"}
        assert validate_appointment_form(form, "business_admin") == "Please select a service"

    def test_client_role_skips_client_picker(self):
        from app.client.forms import validate_appointment_form

        assert validate_appointment_form({}, "client") == "Please select a pet"
        assert validate_appointment_form({}, "staff") == "Please select a client"

    def test_complete_form_is_valid(self):
        from app.client.forms import validate_appointment_form

        form = {
            "client_id": "usr_client123", "pet_id": "pet_a", "service_id": "svc_1",
            "scheduled_date": "2024-07-15", "start_time": "10:00",
        }
        assert validate_appointment_form(form, "business_admin") is None

    def test_client_sees_only_own_pets(self):
        from app.client.forms import prepare_appointment_form

        prepared = prepare_appointment_form({}, CLIENT, PETS)

        assert prepared["form"]["client_id"] == "usr_client123"
        assert [p["pet_id"] for p in prepared["pets"]] == ["pet_a", "pet_b"]
        assert prepared["form"]["pet_id"] is None
        assert prepared["form"]["business_id"] == "bus_test123"
        assert prepared["show_client_picker"] is False

    def test_single_pet_auto_selected(self):
        from app.client.forms import prepare_appointment_form

        prepared = prepare_appointment_form({"client_id": "usr_other"}, ADMIN, PETS)

        assert [p["pet_id"] for p in prepared["pets"]] == ["pet_c"]
        assert prepared["form"]["pet_id"] == "pet_c"
        assert prepared["show_client_picker"] is True

    def test_changing_client_clears_foreign_pet(self):
        from app.client.forms import prepare_appointment_form

        prepared = prepare_appointment_form({"client_id": "usr_client123", "pet_id": "pet_c"}, ADMIN, PETS)

        assert prepared["form"]["pet_id"] == "pet_a"

    def test_no_client_selected_no_pets(self):
        from app.client.forms import prepare_appointment_form

        assert prepare_appointment_form({}, ADMIN, PETS)["pets"] == []

    def test_payload_drops_blanks(self):
        from app.client.forms import build_appointment_payload

        payload = build_appointment_payload({
            "client_id": "usr_client123", "pet_id": "pet_a", "service_id": "svc_1",
            "scheduled_date": "2024-07-15", "start_time": "10:00",
            "notes": "  Sensitive ears ", "internal_notes": "   ", "staff_id": None,
        })

        assert payload["notes"] == "Sensitive ears"
        assert "internal_notes" not in payload
        assert "staff_id" not in payload


class TestStatusControls:
    """Tests for who sees which transition buttons"""

    def test_admin_in_business(self):
        from app.client.forms import can_update_status, status_actions

        assert can_update_status(ADMIN, appointment())
        assert status_actions(ADMIN, appointment()) == ["checkin", "start", "cancel", "no-show"]

    def test_admin_of_other_business(self):
        from app.client.forms import can_update_status

        assert not can_update_status(ADMIN, appointment(business_id="bus_other_place"))

    def test_staff_outside_business_needs_assignment(self):
        from app.client.forms import can_update_status

        assert not can_update_status(STAFF, appointment())
        assert can_update_status(STAFF, appointment(staff_id="usr_staff123"))

    def test_client_never_gets_controls(self):
        from app.client.forms import status_actions

        assert status_actions(CLIENT, appointment()) == []

    def test_super_admin_always(self):
        from app.client.forms import status_actions

        user = {"user_id": "usr_root", "role": "super_admin", "business_ids": []}
        assert status_actions(user, appointment(status="in_progress")) == ["complete"]
        assert status_actions(user, appointment(status="completed")) == []


class TestCalendarGrouping:
    """Tests for month grouping"""

    def test_groups_and_sorts(self):
        from app.client.forms import group_by_day

        appointments = [
            appointment("apt_1", scheduled_date="2024-07-15", start_time="14:00"),
            appointment("apt_2", scheduled_date="2024-07-03", start_time="09:00"),
            appointment("apt_3", scheduled_date="2024-07-15T00:00:00", start_time="09:30"),
            appointment("apt_4", scheduled_date="2024-08-01", start_time="09:00"),
        ]

        days = group_by_day(appointments, 2024, 7)

        assert list(days) == ["2024-07-03", "2024-07-15"]
        assert [a["appointment_id"] for a in days["2024-07-15"]] == ["apt_3", "apt_1"]


class TestApiClient:
    """Tests for envelope handling"""

    @pytest.mark.asyncio
    async def test_unwraps_data_and_sends_token(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("Authorization")
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={"success": True, "data": {"appointments": []}})

        api = make_client(handler)
        data = await api.appointments.list(status="scheduled", client_id=None)
        await api.close()

        assert data == {"appointments": []}
        assert seen["auth"] == "Bearer tok"
        assert seen["params"] == {"status": "scheduled"}

    @pytest.mark.asyncio
    async def test_error_envelope_raised(self):
        from app.client import ApiError

        def handler(request):
            return httpx.Response(409, json={"success": False, "error": {
                "code": "INVALID_STATUS_TRANSITION",
                "message": "Cannot complete an appointment that is scheduled",
                "details": {"current_status": "scheduled", "action": "complete"},
            }})

        api = make_client(handler)
        with pytest.raises(ApiError) as exc:
            await api.appointments.update_status("apt_1", "complete")
        await api.close()

        assert exc.value.status_code == 409
        assert exc.value.code == "INVALID_STATUS_TRANSITION"
        assert exc.value.details["action"] == "complete"

    @pytest.mark.asyncio
    async def test_unauthorized_drops_token(self):
        from app.client import ApiError

        def handler(request):
            return httpx.Response(401, json={"success": False, "error": {"code": "TOKEN_EXPIRED", "message": "Expired"}})

        api = make_client(handler)
        with pytest.raises(ApiError):
            await api.auth.profile()
        await api.close()

        assert api.token is None

    @pytest.mark.asyncio
    async def test_network_failure_mapped(self):
        from app.client import ApiError

        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        api = make_client(handler)
        with pytest.raises(ApiError) as exc:
            await api.dashboard.stats()
        await api.close()

        assert exc.value.code == "NETWORK_ERROR"
        assert exc.value.status_code == 0


class TestAppointmentsSlice:
    """Tests for the appointments slice thunks"""

    @pytest.mark.asyncio
    async def test_fetch_stores_payload(self):
        from app.client import Store

        pagination = {"current": 2, "pages": 3, "total": 45, "limit": 20}

        def handler(request):
            assert request.url.params["page"] == "2"
            assert "status" not in request.url.params
            return httpx.Response(200, json={"success": True, "data": {
                "appointments": [appointment()], "pagination": pagination
            }})

        store = Store(make_client(handler))
        await store.appointments.fetch_appointments(page=2)

        state = store.appointments.state
        assert state.items == [appointment()]
        assert state.pagination == pagination
        assert state.is_loading is False
        assert state.error is None

    @pytest.mark.asyncio
    async def test_filters_become_query_params(self):
        from app.client import Store

        def handler(request):
            assert request.url.params["status"] == "cancelled"
            assert request.url.params["staff_id"] == "usr_staff123"
            return httpx.Response(200, json={"success": True, "data": {"appointments": []}})

        store = Store(make_client(handler))
        store.appointments.set_filters(status="cancelled", staff_id="usr_staff123")
        await store.appointments.fetch_appointments()

        store.appointments.clear_filters()
        assert store.appointments.state.filters["status"] == "all"

    @pytest.mark.asyncio
    async def test_rejected_fetch_stores_message(self):
        from app.client import Store

        def handler(request):
            return httpx.Response(403, json={"success": False, "error": {
                "code": "INSUFFICIENT_PERMISSIONS", "message": "Access denied"
            }})

        store = Store(make_client(handler))
        store.appointments.state.items = [appointment()]
        result = await store.appointments.fetch_appointments()

        assert result is None
        assert store.appointments.state.error == "Access denied"
        assert store.appointments.state.items == []
        assert store.appointments.state.is_loading is False

    @pytest.mark.asyncio
    async def test_create_prepends_and_counts(self):
        from app.client import Store

        def handler(request):
            body = json.loads(request.content)
            return httpx.Response(201, json={"success": True, "data": appointment("apt_new", **body)})

        store = Store(make_client(handler))
        store.appointments.state.items = [appointment()]
        await store.appointments.create_appointment({"start_time": "13:00"})

        state = store.appointments.state
        assert [a["appointment_id"] for a in state.items] == ["apt_new", "apt_1"]
        assert state.stats.total_appointments == 1
        assert state.is_creating is False

    @pytest.mark.asyncio
    async def test_create_refused_while_in_flight(self):
        from app.client import Store

        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(201, json={"success": True, "data": appointment("apt_new")})

        store = Store(make_client(handler))
        store.appointments.state.is_creating = True

        assert await store.appointments.create_appointment({}) is None
        assert calls == []

    @pytest.mark.asyncio
    async def test_incomplete_form_never_sent(self):
        from app.client import Store

        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(201, json={"success": True, "data": appointment("apt_new")})

        store = Store(make_client(handler))
        form = {"client_id": "usr_client123", "pet_id": "pet_a", "service_id": "svc_1"}

        assert await store.appointments.submit_form(form, "business_admin") is None
        assert calls == []
        assert store.appointments.state.error == "Please select a date"
        assert store.appointments.state.items == []

    @pytest.mark.asyncio
    async def test_complete_form_posts_trimmed_payload(self):
        from app.client import Store

        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(201, json={"success": True, "data": appointment("apt_new")})

        store = Store(make_client(handler))
        store.appointments.state.error = "Please select a date"
        form = {
            "pet_id": "pet_a", "service_id": "svc_1", "scheduled_date": "2024-07-15",
            "start_time": "10:00", "notes": "  Sensitive ears ", "staff_id": "",
        }

        result = await store.appointments.submit_form(form, "client")

        assert result["appointment_id"] == "apt_new"
        assert bodies == [{
            "pet_id": "pet_a", "service_id": "svc_1", "scheduled_date": "2024-07-15",
            "start_time": "10:00", "notes": "Sensitive ears",
        }]
        assert store.appointments.state.error is None
        assert store.appointments.state.items[0]["appointment_id"] == "apt_new"

    @pytest.mark.asyncio
    async def test_status_update_replaces_item(self):
        from app.client import Store

        def handler(request):
            assert request.url.path == "/api/v1/appointments/apt_1/checkin"
            return httpx.Response(200, json={"success": True, "data": appointment(status="confirmed")})

        store = Store(make_client(handler))
        store.appointments.state.items = [appointment(), appointment("apt_2")]
        store.appointments.state.current = appointment()
        await store.appointments.update_status("apt_1", "checkin")

        state = store.appointments.state
        assert [a["status"] for a in state.items] == ["confirmed", "scheduled"]
        assert state.current["status"] == "confirmed"
        assert state.is_updating is False


class TestAuthSlice:
    """Tests for sign-in state"""

    @pytest.mark.asyncio
    async def test_login_then_logout(self):
        from app.client import Store

        def handler(request):
            if request.url.path.endswith("/login"):
                return httpx.Response(200, json={"success": True, "data": {
                    "access_token": "new-token", "refresh_token": "refresh", "token_type": "bearer",
                    "user": {"user_id": "usr_admin123", "role": "business_admin"},
                }})
            return httpx.Response(200, json={"success": True, "message": "Logged out successfully"})

        api = make_client(handler)
        store = Store(api)
        await store.auth.login("admin@happypaws.example.com", "Secret123!")

        assert store.auth.state.is_authenticated is True
        assert api.token == "new-token"

        await store.auth.logout()
        assert store.auth.state.is_authenticated is False
        assert store.auth.state.user is None
        assert api.token is None

    @pytest.mark.asyncio
    async def test_avatar_preview_cleared_after_upload(self):
        from app.client import Store

        def handler(request):
            assert request.url.path == "/api/v1/auth/avatar"
            assert b"image/png" in request.content
            return httpx.Response(200, json={"success": True, "data": {
                "user_id": "usr_admin123", "avatar_url": "/uploads/avatars/usr_admin123_ab12cd34.png"
            }})

        store = Store(make_client(handler))
        await store.auth.upload_avatar("me.png", b"\x89PNG", "image/png")

        assert store.auth.state.avatar_preview is None
        assert store.auth.state.user["avatar_url"].endswith(".png")

    @pytest.mark.asyncio
    async def test_avatar_preview_kept_when_upload_rejected(self):
        from app.client import Store

        def handler(request):
            return httpx.Response(400, json={"success": False, "error": {
                "code": "INVALID_FILE_TYPE", "message": "Invalid file type: text/plain. Allowed: jpeg, png, gif, webp"
            }})

        store = Store(make_client(handler))
        await store.auth.upload_avatar("notes.txt", b"hello", "text/plain")

        assert store.auth.state.avatar_preview == "data:text/plain;base64,aGVsbG8="
        assert store.auth.state.error.startswith("Invalid file type")
