"""
PetSync API client
Thin async wrapper over the REST API used by front ends and scripts
"""

import logging
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Error envelope returned by the API"""

    def __init__(
        self,
        message: str,
        status_code: int = 0,
        code: str = "NETWORK_ERROR",
        details: Optional[dict] = None
    ):
        self.message = message
        self.status_code = status_code
        self.code = code
        self.details = details
        super().__init__(message)

    @classmethod
    def from_response(cls, response: httpx.Response) -> "ApiError":
        try:
            error = response.json().get("error") or {}
        except ValueError:
            error = {}
        return cls(
            error.get("message") or f"HTTP {response.status_code}",
            status_code=response.status_code,
            code=error.get("code", "HTTP_ERROR"),
            details=error.get("details")
        )


class _Module:
    """Endpoint group sharing the parent client's session"""

    prefix = ""

    def __init__(self, client: "PetSyncClient"):
        self._client = client

    async def _get(self, path: str = "", **params) -> Any:
        return await self._client.request("GET", self.prefix + path, params=params)

    async def _post(self, path: str = "", json: Optional[dict] = None, files: Optional[dict] = None) -> Any:
        return await self._client.request("POST", self.prefix + path, json=json, files=files)

    async def _put(self, path: str, json: dict) -> Any:
        return await self._client.request("PUT", self.prefix + path, json=json)

    async def _patch(self, path: str, json: dict) -> Any:
        return await self._client.request("PATCH", self.prefix + path, json=json)

    async def _delete(self, path: str) -> Any:
        return await self._client.request("DELETE", self.prefix + path)


class AuthAPI(_Module):
    prefix = "/auth"

    async def register(self, data: dict) -> dict:
        """Super admin only: create a business admin, optionally with a business"""
        return await self._post("/register", data)

    async def login(self, email: str, password: str) -> dict:
        data = await self._post("/login", {"email": email, "password": password})
        self._client.token = data["access_token"]
        return data

    async def refresh(self, refresh_token: str) -> dict:
        data = await self._post("/refresh", {"refresh_token": refresh_token})
        self._client.token = data["access_token"]
        return data

    async def profile(self) -> dict:
        return await self._get("/profile")

    async def update_profile(self, data: dict) -> dict:
        return await self._put("/profile", data)

    async def upload_avatar(self, filename: str, content: bytes, content_type: str) -> dict:
        return await self._post("/avatar", files={"file": (filename, content, content_type)})

    async def change_password(self, current_password: str, new_password: str) -> dict:
        return await self._post("/change-password", {
            "current_password": current_password,
            "new_password": new_password
        })

    async def forgot_password(self, email: str) -> dict:
        return await self._post("/forgot-password", {"email": email})

    async def logout(self) -> dict:
        try:
            return await self._post("/logout")
        finally:
            self._client.token = None


class OtpAPI(_Module):
    prefix = "/otp"

    async def send_login(self, email: str) -> dict:
        return await self._post("/send-login-otp", {"email": email})

    async def verify_login(self, email: str, otp: str) -> dict:
        data = await self._post("/verify-login-otp", {"email": email, "otp": otp})
        self._client.token = data["access_token"]
        return data

    async def send_registration(self, email: str) -> dict:
        return await self._post("/send-registration-otp", {"email": email})

    async def verify_registration(self, email: str, otp: str, profile: dict) -> dict:
        """Finish client sign-up; profile carries password, first_name, last_name, phone"""
        data = await self._post("/verify-registration-otp", {"email": email, "otp": otp, **profile})
        self._client.token = data["access_token"]
        return data

    async def send_password_reset(self, email: str) -> dict:
        return await self._post("/send-password-reset-otp", {"email": email})

    async def verify_password_reset(self, email: str, otp: str, new_password: str) -> dict:
        return await self._post(
            "/verify-password-reset-otp",
            {"email": email, "otp": otp, "new_password": new_password}
        )

    async def resend(self, email: str, otp_type: str) -> dict:
        return await self._post("/resend-otp", {"email": email, "type": otp_type})


class AppointmentAPI(_Module):
    prefix = "/appointments"

    async def list(self, **filters) -> dict:
        return await self._get(**filters)

    async def calendar(self, year: int, month: int, **filters) -> dict:
        return await self._get("/calendar", year=year, month=month, **filters)

    async def stats(self) -> dict:
        return await self._get("/stats/overview")

    async def check_availability(self, data: dict) -> dict:
        return await self._post("/check-availability", data)

    async def get(self, appointment_id: str) -> dict:
        return await self._get(f"/{appointment_id}")

    async def create(self, data: dict) -> dict:
        return await self._post(json=data)

    async def update(self, appointment_id: str, data: dict) -> dict:
        return await self._put(f"/{appointment_id}", data)

    async def update_status(self, appointment_id: str, action: str, data: Optional[dict] = None) -> dict:
        """Run a status action (checkin, start, complete, cancel, no-show)"""
        return await self._post(f"/{appointment_id}/{action}", data)

    async def feedback(self, appointment_id: str, rating: int, feedback: Optional[str] = None) -> dict:
        return await self._post(f"/{appointment_id}/feedback", {"rating": rating, "feedback": feedback})


class ClientAPI(_Module):
    prefix = "/clients"

    async def list(self, **filters) -> dict:
        return await self._get(**filters)

    async def get(self, client_id: str) -> dict:
        return await self._get(f"/{client_id}")

    async def create(self, data: dict) -> dict:
        return await self._post(json=data)

    async def update(self, client_id: str, data: dict) -> dict:
        return await self._put(f"/{client_id}", data)

    async def set_status(self, client_id: str, is_active: bool) -> dict:
        return await self._patch(f"/{client_id}/status", {"is_active": is_active})

    async def delete(self, client_id: str) -> dict:
        return await self._delete(f"/{client_id}")


class ServiceAPI(_Module):
    prefix = "/services"

    async def list(self, **filters) -> dict:
        return await self._get(**filters)

    async def categories(self) -> list:
        return await self._get("/categories")

    async def stats(self) -> dict:
        return await self._get("/stats")

    async def get(self, service_id: str) -> dict:
        return await self._get(f"/{service_id}")

    async def create(self, data: dict) -> dict:
        return await self._post(json=data)

    async def update(self, service_id: str, data: dict) -> dict:
        return await self._put(f"/{service_id}", data)

    async def delete(self, service_id: str) -> dict:
        return await self._delete(f"/{service_id}")


class PetAPI(_Module):
    prefix = "/pets"

    async def list(self, **filters) -> dict:
        return await self._get(**filters)

    async def search(self, q: str) -> list:
        return await self._get("/search", q=q)

    async def get(self, pet_id: str) -> dict:
        return await self._get(f"/{pet_id}")

    async def create(self, data: dict) -> dict:
        return await self._post(json=data)

    async def update(self, pet_id: str, data: dict) -> dict:
        return await self._put(f"/{pet_id}", data)

    async def delete(self, pet_id: str) -> dict:
        return await self._delete(f"/{pet_id}")

    async def medical_records(self, pet_id: str, **params) -> dict:
        return await self._get(f"/{pet_id}/medical-records", **params)

    async def add_medical_record(self, pet_id: str, data: dict) -> dict:
        return await self._post(f"/{pet_id}/medical-records", data)


class DashboardAPI(_Module):
    prefix = "/dashboard"

    async def overview(self, period: Optional[str] = None) -> dict:
        return await self._get("/overview", period=period)

    async def stats(self) -> dict:
        return await self._get("/stats")

    async def activity(self, limit: int = 20) -> dict:
        return await self._get("/activity", limit=limit)


class PetSyncClient:
    """
    Async PetSync API client

    Unwraps the `{"success", "data"}` envelope and raises ApiError on
    error responses. A 401 drops the stored token.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000/api/v1",
        token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.token = token
        self._http = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

        self.auth = AuthAPI(self)
        self.otp = OtpAPI(self)
        self.appointments = AppointmentAPI(self)
        self.clients = ClientAPI(self)
        self.services = ServiceAPI(self)
        self.pets = PetAPI(self)
        self.dashboard = DashboardAPI(self)

    async def request(
        self,
        method: str,
        path: str,
        json: Optional[dict] = None,
        params: Optional[dict] = None,
        files: Optional[dict] = None
    ) -> Any:
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        if params:
            params = {k: v for k, v in params.items() if v is not None}

        try:
            response = await self._http.request(
                method, path, json=json, params=params, files=files, headers=headers
            )
        except httpx.TimeoutException:
            raise ApiError("Request timed out", code="TIMEOUT")
        except httpx.HTTPError as e:
            logger.error(f"API request failed: {method} {path}: {e}")
            raise ApiError("Network error. Please check your connection.")

        if response.status_code == 401:
            self.token = None
        if response.status_code >= 400:
            raise ApiError.from_response(response)

        body = response.json()
        if "data" in body:
            return body["data"]
        return {"message": body.get("message")}

    async def close(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "PetSyncClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()
