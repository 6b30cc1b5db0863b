"""
API Request/Response Schemas
"""

from app.schemas.auth import (
    LoginRequest,
    RegisterRequest,
    TokenResponse,
    RefreshRequest,
    PasswordChangeRequest,
    PasswordResetRequest,
    PasswordResetConfirm,
    SendOTPRequest,
    VerifyOTPRequest,
    ResendOTPRequest
)
from app.schemas.common import (
    Pagination,
    MessageResponse,
    ErrorResponse,
    ErrorDetail,
    create_pagination
)

__all__ = [
    # Auth
    "LoginRequest",
    "RegisterRequest",
    "TokenResponse",
    "RefreshRequest",
    "PasswordChangeRequest",
    "PasswordResetRequest",
    "PasswordResetConfirm",
    "SendOTPRequest",
    "VerifyOTPRequest",
    "ResendOTPRequest",
    # Common
    "Pagination",
    "MessageResponse",
    "ErrorResponse",
    "ErrorDetail",
    "create_pagination"
]
