"""
OTP API Router
Passwordless login, email-verified sign-up and password reset by code
"""

from fastapi import APIRouter, Depends, HTTPException, Request, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.database import get_database
from app.models.otp import OTPType
from app.schemas.auth import (
    ResendOTPRequest,
    SendOTPRequest,
    TokenResponse,
    VerifyOTPRequest,
    VerifyPasswordResetOTPRequest,
    VerifyRegistrationOTPRequest
)
from app.schemas.common import ErrorResponse, MessageResponse, SingleResponse
from app.services.audit_service import AuditAction, AuditService
from app.services.auth_service import AuthError, AuthService
from app.services.otp_service import OTPError, OTPService

router = APIRouter()


def get_otp_service(db: AsyncIOMotorDatabase = Depends(get_database)) -> OTPService:
    return OTPService(db)


def get_auth_service(db: AsyncIOMotorDatabase = Depends(get_database)) -> AuthService:
    return AuthService(db)


def otp_http_error(e: OTPError) -> HTTPException:
    headers = {"Retry-After": str(e.retry_after)} if e.retry_after else None
    return HTTPException(
        status_code=e.status_code,
        detail={"code": e.code, "message": e.message},
        headers=headers
    )


async def _send(otp_service: OTPService, email: str, otp_type: OTPType, name=None) -> MessageResponse:
    try:
        await otp_service.send_otp(email, otp_type, name)
    except OTPError as e:
        raise otp_http_error(e)
    return MessageResponse(message=f"Verification code sent to {email}")


async def _verify(otp_service: OTPService, data: VerifyOTPRequest, otp_type: OTPType) -> None:
    try:
        await otp_service.verify_otp(data.email, data.otp, otp_type)
    except OTPError as e:
        raise otp_http_error(e)


async def _require_account(auth_service: AuthService, email: str):
    user = await auth_service.get_user_by_email(email)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "USER_NOT_FOUND", "message": "No account found with this email"}
        )
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "ACCOUNT_DISABLED", "message": "Account is deactivated"}
        )
    return user


@router.post("/send-login-otp", response_model=MessageResponse,
             responses={404: {"model": ErrorResponse}, 429: {"model": ErrorResponse}})
async def send_login_otp(
    data: SendOTPRequest,
    otp_service: OTPService = Depends(get_otp_service),
    auth_service: AuthService = Depends(get_auth_service)
):
    user = await _require_account(auth_service, data.email)
    return await _send(otp_service, data.email, OTPType.LOGIN, user.first_name)


@router.post("/send-registration-otp", response_model=MessageResponse,
             responses={409: {"model": ErrorResponse}, 429: {"model": ErrorResponse}})
async def send_registration_otp(
    data: SendOTPRequest,
    otp_service: OTPService = Depends(get_otp_service),
    auth_service: AuthService = Depends(get_auth_service)
):
    if await auth_service.get_user_by_email(data.email):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"code": "EMAIL_EXISTS", "message": "An account with this email already exists"}
        )
    return await _send(otp_service, data.email, OTPType.REGISTER)


@router.post("/send-password-reset-otp", response_model=MessageResponse,
             responses={404: {"model": ErrorResponse}, 429: {"model": ErrorResponse}})
async def send_password_reset_otp(
    data: SendOTPRequest,
    otp_service: OTPService = Depends(get_otp_service),
    auth_service: AuthService = Depends(get_auth_service)
):
    user = await _require_account(auth_service, data.email)
    return await _send(otp_service, data.email, OTPType.PASSWORD_RESET, user.first_name)


@router.post("/verify-login-otp", response_model=SingleResponse[TokenResponse])
async def verify_login_otp(
    data: VerifyOTPRequest,
    request: Request,
    db: AsyncIOMotorDatabase = Depends(get_database),
    otp_service: OTPService = Depends(get_otp_service),
    auth_service: AuthService = Depends(get_auth_service)
):
    """Sign in with an emailed code instead of a password"""
    user = await _require_account(auth_service, data.email)
    if user.is_locked():
        raise HTTPException(
            status_code=status.HTTP_423_LOCKED,
            detail={"code": "ACCOUNT_LOCKED", "message": "Account is temporarily locked"}
        )
    await _verify(otp_service, data, OTPType.LOGIN)

    await auth_service.mark_logged_in(user)
    await AuditService(db).log(user.user_id, AuditAction.LOGIN_OTP, "user", user.user_id,
                               business_id=user.business_id, request=request)
    return SingleResponse(data=auth_service.create_tokens(user), message="Login successful")


@router.post("/verify-registration-otp", response_model=SingleResponse[TokenResponse],
             status_code=status.HTTP_201_CREATED)
async def verify_registration_otp(
    data: VerifyRegistrationOTPRequest,
    request: Request,
    db: AsyncIOMotorDatabase = Depends(get_database),
    otp_service: OTPService = Depends(get_otp_service),
    auth_service: AuthService = Depends(get_auth_service)
):
    """Create a client account once the email is proven"""
    await _verify(otp_service, data, OTPType.REGISTER)

    try:
        user = await auth_service.register_client(
            data.email, data.password, data.first_name, data.last_name,
            phone=data.phone, email_verified=True
        )
    except AuthError as e:
        raise HTTPException(status_code=e.status_code, detail={"code": e.code, "message": e.message})

    await auth_service.mark_logged_in(user)
    await AuditService(db).log(user.user_id, AuditAction.REGISTER, "user", user.user_id, request=request)
    return SingleResponse(data=auth_service.create_tokens(user), message="Registration successful")


@router.post("/verify-password-reset-otp", response_model=MessageResponse)
async def verify_password_reset_otp(
    data: VerifyPasswordResetOTPRequest,
    request: Request,
    db: AsyncIOMotorDatabase = Depends(get_database),
    otp_service: OTPService = Depends(get_otp_service),
    auth_service: AuthService = Depends(get_auth_service)
):
    user = await _require_account(auth_service, data.email)
    await _verify(otp_service, data, OTPType.PASSWORD_RESET)

    await auth_service.set_password(user.user_id, data.new_password)
    await AuditService(db).log(user.user_id, AuditAction.PASSWORD_RESET, "user", user.user_id,
                               business_id=user.business_id, request=request)
    return MessageResponse(message="Password has been reset successfully")


@router.post("/resend-otp", response_model=MessageResponse,
             responses={429: {"model": ErrorResponse}})
async def resend_otp(
    data: ResendOTPRequest,
    otp_service: OTPService = Depends(get_otp_service),
    auth_service: AuthService = Depends(get_auth_service)
):
    """Issue a fresh code; refused during the cooldown after the last one"""
    name = None
    if data.type != OTPType.REGISTER:
        user = await _require_account(auth_service, data.email)
        name = user.first_name
    return await _send(otp_service, data.email, data.type, name)
