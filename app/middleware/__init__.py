"""
Middleware modules
"""

from app.middleware.auth import get_current_user, get_optional_user, require_roles
from app.middleware.rate_limit import RateLimiter

__all__ = ["get_current_user", "get_optional_user", "require_roles", "RateLimiter"]
