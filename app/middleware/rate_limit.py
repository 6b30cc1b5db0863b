"""
In-memory rate limiting for the unauthenticated auth and OTP endpoints
"""

import time
from collections import defaultdict
from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from app.config import get_settings


class RateLimiter:
    """Sliding one-minute window per client key"""

    def __init__(self, requests_per_minute: int = 60, window_seconds: int = 60):
        self.requests_per_minute = requests_per_minute
        self.window_seconds = window_seconds
        self.requests: dict[str, list[float]] = defaultdict(list)

    def _prune(self, key: str, now: float) -> None:
        cutoff = now - self.window_seconds
        self.requests[key] = [t for t in self.requests[key] if t > cutoff]

    def is_allowed(self, key: str, now: Optional[float] = None) -> bool:
        """Check the limit and record the request when allowed"""
        now = time.time() if now is None else now
        self._prune(key, now)

        if len(self.requests[key]) >= self.requests_per_minute:
            return False

        self.requests[key].append(now)
        return True

    def get_retry_after(self, key: str, now: Optional[float] = None) -> int:
        """Seconds until next request allowed"""
        if not self.requests[key]:
            return 0
        now = time.time() if now is None else now
        oldest = min(self.requests[key])
        return max(0, int(self.window_seconds - (now - oldest)) + 1)

    def reset(self) -> None:
        self.requests.clear()


RATE_LIMITED_PATHS = {
    "/auth/login",
    "/auth/register",
    "/auth/forgot-password",
    "/otp/send-login-otp",
    "/otp/send-registration-otp",
    "/otp/send-password-reset-otp",
    "/otp/resend-otp",
    "/public/inquiries",
}

auth_rate_limiter = RateLimiter(requests_per_minute=get_settings().AUTH_RATE_LIMIT_PER_MINUTE)


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


async def rate_limit_middleware(request: Request, call_next):
    """Throttle credential and OTP endpoints per client IP"""
    prefix = get_settings().API_V1_PREFIX
    path = request.url.path

    if request.method == "POST" and path.startswith(prefix) and path[len(prefix):] in RATE_LIMITED_PATHS:
        ip = client_ip(request)
        if not auth_rate_limiter.is_allowed(ip):
            retry_after = auth_rate_limiter.get_retry_after(ip)
            return JSONResponse(
                status_code=429,
                content={
                    "success": False,
                    "error": {
                        "code": "RATE_LIMITED",
                        "message": "Too many attempts. Please wait before trying again."
                    }
                },
                headers={"Retry-After": str(retry_after)}
            )

    return await call_next(request)
