"""
Appointment form, list and calendar helpers

Pure functions over the JSON shapes the API returns; no I/O here so a
form can be rejected before any request is made.
"""

from typing import Optional

from app.models.appointment import AppointmentStatus, available_actions
from app.models.user import UserRole

# field -> message, in the order they are checked
REQUIRED_FIELDS = (
    ("client_id", "Please select a client"),
    ("pet_id", "Please select a pet"),
    ("service_id", "Please select a service"),
    ("scheduled_date", "Please select a date"),
    ("start_time", "Please select a time"),
)

PAYLOAD_FIELDS = (
    "client_id", "pet_id", "service_id", "variation", "staff_id", "business_id",
    "scheduled_date", "start_time", "notes", "internal_notes",
)


def empty_form() -> dict:
    return {field: None for field in PAYLOAD_FIELDS}


def validate_appointment_form(form: dict, role: str) -> Optional[str]:
    """First missing-field message, or None when the form can be submitted"""
    for field, message in REQUIRED_FIELDS:
        if field == "client_id" and role == UserRole.CLIENT.value:
            continue
        if not form.get(field):
            return message
    return None


def prepare_appointment_form(form: dict, user: dict, pets: list[dict]) -> dict:
    """
    Shape the form for the logged-in user

    Clients book for themselves: client_id is fixed, the pet list is cut
    down to their own pets and the client picker is hidden. Everyone else
    picks a client first and sees that client's pets.
    """
    form = {**empty_form(), **form}
    is_client = user["role"] == UserRole.CLIENT.value

    if is_client:
        form["client_id"] = user["user_id"]
        owned = set(user.get("pet_ids") or [])
        pets = [p for p in pets if p["owner_id"] == user["user_id"] or p["pet_id"] in owned]
    elif form["client_id"]:
        pets = [p for p in pets if p["owner_id"] == form["client_id"]]
    else:
        pets = []

    if form["pet_id"] and form["pet_id"] not in {p["pet_id"] for p in pets}:
        form["pet_id"] = None
    if len(pets) == 1 and not form["pet_id"]:
        form["pet_id"] = pets[0]["pet_id"]

    business_ids = user.get("business_ids") or []
    if not form["business_id"] and len(business_ids) == 1:
        form["business_id"] = business_ids[0]

    return {
        "form": form,
        "pets": pets,
        "show_client_picker": not is_client,
    }


def build_appointment_payload(form: dict) -> dict:
    """Flatten the form into the create request, dropping blanks"""
    payload = {}
    for field in PAYLOAD_FIELDS:
        value = form.get(field)
        if isinstance(value, str):
            value = value.strip()
        if value not in (None, ""):
            payload[field] = value
    return payload


def can_update_status(user: dict, appointment: dict) -> bool:
    role = user["role"]
    if role == UserRole.SUPER_ADMIN.value:
        return True
    if role == UserRole.CLIENT.value:
        return False

    in_business = appointment["business_id"] in (user.get("business_ids") or [])
    if role == UserRole.BUSINESS_ADMIN.value:
        return in_business
    if role == UserRole.STAFF.value:
        return in_business or appointment.get("staff_id") == user["user_id"]
    return False


def status_actions(user: dict, appointment: dict) -> list[str]:
    """Transition buttons to render for an appointment row"""
    if not can_update_status(user, appointment):
        return []
    return [action.value for action in available_actions(AppointmentStatus(appointment["status"]))]


def group_by_day(appointments: list[dict], year: int, month: int) -> dict[str, list[dict]]:
    """Bucket a fetched list by ISO date for one month, each day sorted by start time"""
    prefix = f"{year:04d}-{month:02d}-"
    days: dict[str, list[dict]] = {}
    for appointment in appointments:
        day = str(appointment["scheduled_date"])[:10]
        if day.startswith(prefix):
            days.setdefault(day, []).append(appointment)

    return {
        day: sorted(items, key=lambda a: a["start_time"])
        for day, items in sorted(days.items())
    }
