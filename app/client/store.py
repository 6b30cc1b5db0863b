"""
Client state slices

Each slice owns a partition of front-end state. Async thunks call the API
and move the slice through pending -> fulfilled | rejected:

- pending sets the busy flag and clears `error`
- fulfilled stores the normalized payload and drops the flag
- rejected stores the ApiError message verbatim

No retries and no optimistic updates.
"""

import base64
import logging
from typing import Any, Awaitable, Callable, Optional
from pydantic import BaseModel, Field

from app.client.api import ApiError, PetSyncClient
from app.client.forms import build_appointment_payload, validate_appointment_form

logger = logging.getLogger(__name__)


def default_pagination() -> dict:
    return {"current": 1, "pages": 1, "total": 0, "limit": 20}


def default_appointment_filters() -> dict:
    return {
        "status": "all",
        "date_from": None,
        "date_to": None,
        "client_id": None,
        "staff_id": None,
    }


class AsyncState(BaseModel):
    """Flags shared by every slice"""
    is_loading: bool = False
    is_creating: bool = False
    is_updating: bool = False
    error: Optional[str] = None


class SliceState(AsyncState):
    """Collection slice: a page of items plus the selected one"""
    items: list[dict] = Field(default_factory=list)
    current: Optional[dict] = None
    filters: dict = Field(default_factory=dict)
    pagination: dict = Field(default_factory=default_pagination)


class AppointmentStats(BaseModel):
    total_appointments: int = 0
    total_revenue: float = 0.0
    by_status: dict = Field(default_factory=dict)


class AppointmentsState(SliceState):
    filters: dict = Field(default_factory=default_appointment_filters)
    stats: AppointmentStats = Field(default_factory=AppointmentStats)


class ClientsState(SliceState):
    stats: dict = Field(default_factory=dict)


class ServicesState(SliceState):
    categories: list[dict] = Field(default_factory=list)
    stats: dict = Field(default_factory=dict)


class AuthState(AsyncState):
    user: Optional[dict] = None
    token: Optional[str] = None
    refresh_token: Optional[str] = None
    is_authenticated: bool = False
    avatar_preview: Optional[str] = None


class DashboardState(AsyncState):
    overview: dict = Field(default_factory=dict)
    stats: dict = Field(default_factory=dict)
    activities: list[dict] = Field(default_factory=list)


class Slice:
    """Base slice with the thunk runner"""

    name = ""
    state_class: type[AsyncState] = SliceState

    def __init__(self, api: PetSyncClient):
        self.api = api
        self.state = self.state_class()

    async def run(
        self,
        call: Callable[[], Awaitable[Any]],
        fulfilled: Callable[[Any], None],
        rejected: Optional[Callable[[str], None]] = None,
        flag: str = "is_loading"
    ) -> Optional[Any]:
        """
        Run one thunk

        Returns the payload, or None when the call was rejected.
        """
        setattr(self.state, flag, True)
        self.state.error = None
        try:
            payload = await call()
        except ApiError as e:
            logger.debug(f"{self.name} thunk rejected: {e.code} {e.message}")
            setattr(self.state, flag, False)
            self.state.error = e.message
            if rejected:
                rejected(e.message)
            return None

        setattr(self.state, flag, False)
        fulfilled(payload)
        return payload

    def clear_error(self) -> None:
        self.state.error = None

    def reset(self) -> None:
        self.state = self.state_class()


class AppointmentsSlice(Slice):
    name = "appointments"
    state_class = AppointmentsState

    def query_params(self) -> dict:
        """Active filters as API query parameters"""
        params = {k: v for k, v in self.state.filters.items() if v not in (None, "")}
        if params.get("status") == "all":
            del params["status"]
        return params

    async def fetch_appointments(self, page: Optional[int] = None, limit: Optional[int] = None):
        params = self.query_params()
        params["page"] = page or self.state.pagination["current"]
        params["limit"] = limit or self.state.pagination["limit"]

        def fulfilled(payload: dict) -> None:
            self.state.items = payload.get("appointments") or []
            self.state.pagination = payload.get("pagination") or self.state.pagination

        def rejected(_: str) -> None:
            self.state.items = []

        return await self.run(lambda: self.api.appointments.list(**params), fulfilled, rejected)

    async def fetch_appointment(self, appointment_id: str):
        def fulfilled(payload: dict) -> None:
            self.state.current = payload

        return await self.run(lambda: self.api.appointments.get(appointment_id), fulfilled)

    async def create_appointment(self, data: dict):
        """Create and prepend; refused while a create is in flight"""
        if self.state.is_creating:
            return None

        def fulfilled(payload: dict) -> None:
            self.state.items.insert(0, payload)
            self.state.stats.total_appointments += 1

        return await self.run(lambda: self.api.appointments.create(data), fulfilled, flag="is_creating")

    async def submit_form(self, form: dict, role: str):
        """
        Validate the booking form and create the appointment

        An incomplete form never reaches the API; its message lands in
        `error` and None is returned.
        """
        message = validate_appointment_form(form, role)
        if message:
            self.state.error = message
            return None
        return await self.create_appointment(build_appointment_payload(form))

    async def update_status(self, appointment_id: str, action: str, data: Optional[dict] = None):
        def fulfilled(payload: dict) -> None:
            self._replace(payload)

        return await self.run(
            lambda: self.api.appointments.update_status(appointment_id, action, data),
            fulfilled,
            flag="is_updating"
        )

    async def update_appointment(self, appointment_id: str, data: dict):
        return await self.run(
            lambda: self.api.appointments.update(appointment_id, data),
            self._replace,
            flag="is_updating"
        )

    async def fetch_stats(self):
        def fulfilled(payload: dict) -> None:
            self.state.stats = AppointmentStats(**payload)

        return await self.run(self.api.appointments.stats, fulfilled)

    def _replace(self, appointment: dict) -> None:
        self.state.items = [
            appointment if a["appointment_id"] == appointment["appointment_id"] else a
            for a in self.state.items
        ]
        if self.state.current and self.state.current["appointment_id"] == appointment["appointment_id"]:
            self.state.current = appointment

    def set_filters(self, **filters) -> None:
        self.state.filters = {**self.state.filters, **filters}

    def clear_filters(self) -> None:
        self.state.filters = default_appointment_filters()


class AuthSlice(Slice):
    name = "auth"
    state_class = AuthState

    def _signed_in(self, payload: dict) -> None:
        self.state.user = payload["user"]
        self.state.token = payload["access_token"]
        self.state.refresh_token = payload.get("refresh_token")
        self.state.is_authenticated = True

    async def login(self, email: str, password: str):
        return await self.run(lambda: self.api.auth.login(email, password), self._signed_in)

    async def verify_login_otp(self, email: str, otp: str):
        return await self.run(lambda: self.api.otp.verify_login(email, otp), self._signed_in)

    async def fetch_profile(self):
        def fulfilled(payload: dict) -> None:
            self.state.user = payload

        def rejected(_: str) -> None:
            if self.api.token is None:
                self.state.token = None
                self.state.is_authenticated = False

        return await self.run(self.api.auth.profile, fulfilled, rejected)

    async def update_profile(self, data: dict):
        def fulfilled(payload: dict) -> None:
            self.state.user = payload

        return await self.run(lambda: self.api.auth.update_profile(data), fulfilled, flag="is_updating")

    async def upload_avatar(self, filename: str, content: bytes, content_type: str):
        """Show the local file as a preview until the server copy replaces it"""
        encoded = base64.b64encode(content).decode("ascii")
        self.state.avatar_preview = f"data:{content_type};base64,{encoded}"

        def fulfilled(payload: dict) -> None:
            self.state.user = payload
            self.state.avatar_preview = None

        return await self.run(
            lambda: self.api.auth.upload_avatar(filename, content, content_type),
            fulfilled,
            flag="is_updating"
        )

    async def logout(self):
        try:
            await self.api.auth.logout()
        except ApiError as e:
            logger.debug(f"Logout request failed: {e.message}")
        self.reset()


class ClientsSlice(Slice):
    name = "clients"
    state_class = ClientsState

    async def fetch_clients(self, page: int = 1, **filters):
        params = {**self.state.filters, **filters, "page": page, "limit": self.state.pagination["limit"]}

        def fulfilled(payload: dict) -> None:
            self.state.items = payload.get("clients") or []
            self.state.stats = payload.get("stats") or {}
            self.state.pagination = payload.get("pagination") or self.state.pagination

        return await self.run(lambda: self.api.clients.list(**params), fulfilled)

    async def create_client(self, data: dict):
        if self.state.is_creating:
            return None

        def fulfilled(payload: dict) -> None:
            self.state.items.insert(0, payload["client"])

        return await self.run(lambda: self.api.clients.create(data), fulfilled, flag="is_creating")

    async def delete_client(self, client_id: str):
        def fulfilled(_: Any) -> None:
            self.state.items = [c for c in self.state.items if c["user_id"] != client_id]

        return await self.run(lambda: self.api.clients.delete(client_id), fulfilled, flag="is_updating")


class ServicesSlice(Slice):
    name = "services"
    state_class = ServicesState

    async def fetch_services(self, page: int = 1, **filters):
        params = {**self.state.filters, **filters, "page": page, "limit": self.state.pagination["limit"]}

        def fulfilled(payload: dict) -> None:
            self.state.items = payload.get("services") or []
            self.state.pagination = payload.get("pagination") or self.state.pagination

        return await self.run(lambda: self.api.services.list(**params), fulfilled)

    async def fetch_categories(self):
        def fulfilled(payload: list) -> None:
            self.state.categories = payload or []

        return await self.run(self.api.services.categories, fulfilled)

    async def fetch_stats(self):
        def fulfilled(payload: dict) -> None:
            self.state.stats = payload

        return await self.run(self.api.services.stats, fulfilled)

    async def create_service(self, data: dict):
        if self.state.is_creating:
            return None

        def fulfilled(payload: dict) -> None:
            self.state.items.insert(0, payload)

        return await self.run(lambda: self.api.services.create(data), fulfilled, flag="is_creating")


class DashboardSlice(Slice):
    name = "dashboard"
    state_class = DashboardState

    async def fetch_overview(self, period: Optional[str] = None):
        def fulfilled(payload: dict) -> None:
            self.state.overview = payload

        return await self.run(lambda: self.api.dashboard.overview(period), fulfilled)

    async def fetch_stats(self):
        def fulfilled(payload: dict) -> None:
            self.state.stats = payload

        return await self.run(self.api.dashboard.stats, fulfilled)

    async def fetch_activity(self, limit: int = 20):
        def fulfilled(payload: dict) -> None:
            self.state.activities = payload.get("activities") or []

        return await self.run(lambda: self.api.dashboard.activity(limit), fulfilled)


class Store:
    """All slices bound to one API client"""

    def __init__(self, api: PetSyncClient):
        self.api = api
        self.auth = AuthSlice(api)
        self.appointments = AppointmentsSlice(api)
        self.clients = ClientsSlice(api)
        self.services = ServicesSlice(api)
        self.dashboard = DashboardSlice(api)

    def reset(self) -> None:
        for slice_ in (self.auth, self.appointments, self.clients, self.services, self.dashboard):
            slice_.reset()
