"""
Authentication API Router
Handles registration, login, token refresh, profile and password management
"""

import os
import uuid
from fastapi import APIRouter, BackgroundTasks, Depends, File, HTTPException, Request, UploadFile, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.config import get_settings
from app.database import get_database
from app.middleware.auth import get_current_user, require_super_admin
from app.models.business import BusinessResponse
from app.models.user import User, UserResponse, UserUpdate
from app.schemas.auth import (
    LoginRequest,
    RegisterRequest,
    TokenResponse,
    RefreshRequest,
    PasswordChangeRequest,
    PasswordResetRequest,
    PasswordResetConfirm
)
from app.schemas.common import ErrorResponse, MessageResponse, SingleResponse
from app.services.audit_service import AuditAction, AuditService
from app.services.auth_service import AuthService, AuthError, PASSWORD_RESET_EXPIRE_MINUTES
from app.services.email_service import get_email_service

router = APIRouter()
settings = get_settings()

ALLOWED_AVATAR_TYPES = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
}


def get_auth_service(db: AsyncIOMotorDatabase = Depends(get_database)) -> AuthService:
    """Dependency to get auth service"""
    return AuthService(db)


def get_audit_service(db: AsyncIOMotorDatabase = Depends(get_database)) -> AuditService:
    return AuditService(db)


def auth_http_error(e: AuthError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail={"code": e.code, "message": e.message})


@router.post(
    "/register",
    response_model=SingleResponse[dict],
    status_code=status.HTTP_201_CREATED,
    responses={
        403: {"model": ErrorResponse, "description": "Only super admins can register business admins"},
        409: {"model": ErrorResponse, "description": "Email already exists"}
    }
)
async def register(
    data: RegisterRequest,
    request: Request,
    current_user: User = Depends(require_super_admin),
    auth_service: AuthService = Depends(get_auth_service),
    audit: AuditService = Depends(get_audit_service)
):
    """
    Register a business admin

    Creates and links a business when `business` is provided.
    """
    try:
        user, business = await auth_service.register_business_admin(data)
    except AuthError as e:
        raise auth_http_error(e)

    await audit.log(
        current_user.user_id, AuditAction.REGISTER, "user", user.user_id,
        business_id=business.business_id if business else None, request=request
    )

    return SingleResponse(
        data={
            "user": UserResponse.model_validate(user).model_dump(mode="json"),
            "business": BusinessResponse.model_validate(business).model_dump(mode="json") if business else None
        },
        message="Business admin registered successfully"
    )


@router.post(
    "/login",
    response_model=SingleResponse[TokenResponse],
    responses={
        401: {"model": ErrorResponse, "description": "Invalid credentials or deactivated account"},
        423: {"model": ErrorResponse, "description": "Account locked"}
    }
)
async def login(
    data: LoginRequest,
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
    audit: AuditService = Depends(get_audit_service)
):
    """
    Authenticate user and return JWT tokens

    Account will be locked after 5 failed attempts.
    """
    try:
        user = await auth_service.authenticate(data.email, data.password)
    except AuthError as e:
        raise auth_http_error(e)

    await audit.log(user.user_id, AuditAction.LOGIN, "user", user.user_id,
                    business_id=user.business_id, request=request)
    return SingleResponse(data=auth_service.create_tokens(user), message="Login successful")


@router.post(
    "/refresh",
    response_model=SingleResponse[TokenResponse],
    responses={401: {"model": ErrorResponse, "description": "Invalid refresh token"}}
)
async def refresh_token(
    data: RefreshRequest,
    auth_service: AuthService = Depends(get_auth_service)
):
    """Exchange a refresh token for a new token pair"""
    try:
        tokens = await auth_service.refresh_tokens(data.refresh_token)
    except AuthError as e:
        raise auth_http_error(e)
    return SingleResponse(data=tokens)


@router.get("/profile", response_model=SingleResponse[UserResponse])
async def get_profile(current_user: User = Depends(get_current_user)):
    """Current user's profile"""
    return SingleResponse(data=UserResponse.model_validate(current_user))


@router.put("/profile", response_model=SingleResponse[UserResponse])
async def update_profile(
    data: UserUpdate,
    request: Request,
    current_user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
    audit: AuditService = Depends(get_audit_service)
):
    """Update own profile; address and settings are merged"""
    before = UserResponse.model_validate(current_user).model_dump(mode="json")
    user = await auth_service.update_profile(current_user, data)
    after = UserResponse.model_validate(user).model_dump(mode="json")

    await audit.log(user.user_id, AuditAction.UPDATE, "user", user.user_id,
                    business_id=user.business_id, before=before, after=after, request=request)
    return SingleResponse(data=UserResponse.model_validate(user), message="Profile updated successfully")


@router.post("/avatar", response_model=SingleResponse[UserResponse])
async def upload_avatar(
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Upload a profile picture (jpeg, png, gif or webp, 5 MB max)"""
    extension = ALLOWED_AVATAR_TYPES.get(file.content_type or "")
    if not extension:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "code": "INVALID_FILE_TYPE",
                "message": f"Invalid file type: {file.content_type}. Allowed: jpeg, png, gif, webp"
            }
        )

    content = await file.read()
    if len(content) > settings.MAX_AVATAR_BYTES:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail={"code": "FILE_TOO_LARGE", "message": "Avatar must be 5 MB or smaller"}
        )

    avatar_dir = os.path.join(settings.UPLOAD_DIR, "avatars")
    os.makedirs(avatar_dir, exist_ok=True)
    filename = f"{current_user.user_id}_{uuid.uuid4().hex[:8]}.{extension}"
    with open(os.path.join(avatar_dir, filename), "wb") as f:
        f.write(content)

    avatar_url = f"/uploads/avatars/{filename}"
    result = await db.users.find_one_and_update(
        {"user_id": current_user.user_id},
        {"$set": {"avatar_url": avatar_url}},
        return_document=True
    )
    return SingleResponse(data=UserResponse.model_validate(User(**result)), message="Avatar updated")


@router.post(
    "/change-password",
    response_model=MessageResponse,
    responses={400: {"model": ErrorResponse, "description": "Current password is incorrect"}}
)
async def change_password(
    data: PasswordChangeRequest,
    request: Request,
    current_user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
    audit: AuditService = Depends(get_audit_service)
):
    """Change password (requires the current password)"""
    try:
        await auth_service.change_password(current_user.user_id, data.current_password, data.new_password)
    except AuthError as e:
        raise auth_http_error(e)

    await audit.log(current_user.user_id, AuditAction.PASSWORD_CHANGE, "user", current_user.user_id,
                    business_id=current_user.business_id, request=request)
    return MessageResponse(message="Password changed successfully")


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    data: PasswordResetRequest,
    background_tasks: BackgroundTasks,
    auth_service: AuthService = Depends(get_auth_service)
):
    """
    Email a password reset link

    Always answers the same way so account existence is not revealed.
    """
    user, token = await auth_service.create_password_reset_token(data.email)
    if user and token:
        background_tasks.add_task(
            get_email_service().send_password_reset,
            user.email, user.first_name, token, PASSWORD_RESET_EXPIRE_MINUTES
        )
    return MessageResponse(message="If an account exists for this email, a reset link has been sent")


@router.post(
    "/reset-password",
    response_model=MessageResponse,
    responses={400: {"model": ErrorResponse, "description": "Invalid or expired token"}}
)
async def reset_password(
    data: PasswordResetConfirm,
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
    audit: AuditService = Depends(get_audit_service)
):
    """Set a new password using a reset token"""
    try:
        user_id = await auth_service.reset_password(data.token, data.new_password)
    except AuthError as e:
        raise auth_http_error(e)

    await audit.log(user_id, AuditAction.PASSWORD_RESET, "user", user_id, request=request)
    return MessageResponse(message="Password has been reset successfully")


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    current_user: User = Depends(get_current_user),
    audit: AuditService = Depends(get_audit_service)
):
    """
    Log out

    Tokens are stateless; the client discards them. The event is audited.
    """
    await audit.log(current_user.user_id, AuditAction.LOGOUT, "user", current_user.user_id,
                    business_id=current_user.business_id, request=request)
    return MessageResponse(message="Logged out successfully")
