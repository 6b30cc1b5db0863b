"""
Authentication Service
Handles registration, login, token management and password recovery
"""

from typing import Optional, Tuple
from motor.motor_asyncio import AsyncIOMotorDatabase
import logging
import secrets
from datetime import timedelta

from app.models.user import User, UserRole, UserResponse, UserUpdate
from app.models.business import Business, Subscription
from app.models.common import utc_now
from app.schemas.auth import RegisterRequest, TokenResponse
from app.utils.permissions import default_permissions
from app.utils.security import (
    get_password_hash,
    verify_password,
    create_access_token,
    create_refresh_token,
    verify_token,
)
from app.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

# Password reset token expiry in minutes
PASSWORD_RESET_EXPIRE_MINUTES = 10


class AuthError(Exception):
    """Authentication error"""
    def __init__(self, code: str, message: str, status_code: int = 400):
        self.code = code
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class AuthService:
    """Authentication service for user management"""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.users = db.users
        self.businesses = db.businesses

    async def _ensure_email_free(self, email: str) -> None:
        if await self.users.find_one({"email": email.lower()}):
            raise AuthError("EMAIL_EXISTS", "An account with this email already exists", 409)

    async def register_business_admin(
        self,
        data: RegisterRequest
    ) -> Tuple[User, Optional[Business]]:
        """
        Register a business admin and optionally create their business

        Raises:
            AuthError: If the email (or the business email) is taken
        """
        await self._ensure_email_free(data.email)

        if data.business:
            if await self.businesses.find_one({"email": data.business.email.lower()}):
                raise AuthError(
                    "BUSINESS_EXISTS", "A business with this email already exists", 409
                )

        user = User(
            email=data.email.lower(),
            password_hash=get_password_hash(data.password),
            first_name=data.first_name,
            last_name=data.last_name,
            phone=data.phone,
            role=UserRole.BUSINESS_ADMIN,
            permissions=default_permissions(UserRole.BUSINESS_ADMIN),
            email_verified=True
        )

        business = None
        if data.business:
            fields = data.business.model_dump(exclude={"plan", "schedule", "settings"}, exclude_none=True)
            fields["email"] = data.business.email.lower()
            business = Business(
                owner_id=user.user_id,
                subscription=Subscription.start(data.business.plan),
                **fields
            )
            if data.business.schedule:
                business.schedule = data.business.schedule
            if data.business.settings:
                business.settings = data.business.settings
            user.business_ids = [business.business_id]

        await self.users.insert_one(user.to_mongo())
        if business:
            await self.businesses.insert_one(business.to_mongo())

        logger.info(f"Business admin registered: {user.email}")
        return user, business

    async def register_client(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        phone: Optional[str] = None,
        business_id: Optional[str] = None,
        email_verified: bool = False
    ) -> User:
        """Create a client (pet owner) account"""
        await self._ensure_email_free(email)

        user = User(
            email=email.lower(),
            password_hash=get_password_hash(password),
            first_name=first_name,
            last_name=last_name,
            phone=phone,
            role=UserRole.CLIENT,
            permissions=default_permissions(UserRole.CLIENT),
            business_ids=[business_id] if business_id else [],
            email_verified=email_verified
        )
        await self.users.insert_one(user.to_mongo())

        logger.info(f"Client registered: {user.email}")
        return user

    async def authenticate(
        self,
        email: str,
        password: str
    ) -> User:
        """
        Authenticate user with email and password

        Five consecutive failures lock the account for LOCKOUT_MINUTES.

        Raises:
            AuthError: If authentication fails
        """
        user = await self.get_user_by_email(email)

        if not user:
            raise AuthError("INVALID_CREDENTIALS", "Invalid email or password", 401)

        if user.is_locked():
            raise AuthError(
                "ACCOUNT_LOCKED",
                "Account is temporarily locked due to too many failed login attempts",
                423
            )

        if not user.is_active:
            raise AuthError("ACCOUNT_DISABLED", "Account is deactivated", 401)

        if not verify_password(password, user.password_hash):
            user.record_failed_login(settings.MAX_LOGIN_ATTEMPTS, settings.LOCKOUT_MINUTES)
            await self.users.update_one(
                {"user_id": user.user_id},
                {"$set": {
                    "failed_login_attempts": user.failed_login_attempts,
                    "locked_until": user.locked_until,
                    "updated_at": utc_now()
                }}
            )
            if user.locked_until:
                logger.warning(f"Account locked after failed logins: {user.email}")
            raise AuthError("INVALID_CREDENTIALS", "Invalid email or password", 401)

        await self.mark_logged_in(user)
        logger.info(f"User authenticated: {user.email}")
        return user

    async def mark_logged_in(self, user: User) -> None:
        user.record_login()
        await self.users.update_one(
            {"user_id": user.user_id},
            {"$set": {
                "last_login_at": user.last_login_at,
                "failed_login_attempts": 0,
                "locked_until": None,
                "updated_at": user.updated_at
            }}
        )

    def create_tokens(self, user: User) -> TokenResponse:
        """Create access and refresh tokens for user"""
        role = user.role.value
        return TokenResponse(
            access_token=create_access_token(user.user_id, role, user.business_id),
            refresh_token=create_refresh_token(user.user_id, role, user.business_id),
            token_type="bearer",
            expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
            user=UserResponse.model_validate(user)
        )

    async def refresh_tokens(self, refresh_token: str) -> TokenResponse:
        """
        Refresh access token using refresh token

        Raises:
            AuthError: If refresh token is invalid
        """
        token_data = verify_token(refresh_token, token_type="refresh")

        if not token_data:
            raise AuthError("INVALID_TOKEN", "Invalid or expired refresh token", 401)

        user = await self.get_user_by_id(token_data.user_id)

        if not user:
            raise AuthError("USER_NOT_FOUND", "User no longer exists", 401)

        if not user.is_active:
            raise AuthError("ACCOUNT_DISABLED", "Account is deactivated", 401)

        logger.info(f"Tokens refreshed for: {user.email}")
        return self.create_tokens(user)

    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        """Get user by ID"""
        user_dict = await self.users.find_one({"user_id": user_id, "deleted_at": None})
        return User(**user_dict) if user_dict else None

    async def get_user_by_email(self, email: str) -> Optional[User]:
        """Get user by email"""
        user_dict = await self.users.find_one({"email": email.lower(), "deleted_at": None})
        return User(**user_dict) if user_dict else None

    async def update_profile(self, user: User, data: UserUpdate) -> User:
        """
        Merge a profile update

        Address and settings are merged field by field rather than replaced.
        """
        updates = data.model_dump(exclude_unset=True, exclude={"address", "settings"})

        if data.address is not None:
            merged = user.address.model_dump()
            merged.update(data.address.model_dump(exclude_unset=True))
            updates["address"] = merged

        if data.settings is not None:
            merged = user.settings.model_dump()
            incoming = data.settings.model_dump(exclude_unset=True)
            notifications = {**merged["notifications"], **incoming.pop("notifications", {})}
            merged.update(incoming)
            merged["notifications"] = notifications
            updates["settings"] = merged

        updates["updated_at"] = utc_now()
        result = await self.users.find_one_and_update(
            {"user_id": user.user_id},
            {"$set": updates},
            return_document=True
        )
        return User(**result)

    async def set_password(self, user_id: str, new_password: str) -> None:
        await self.users.update_one(
            {"user_id": user_id},
            {"$set": {
                "password_hash": get_password_hash(new_password),
                "failed_login_attempts": 0,
                "locked_until": None,
                "updated_at": utc_now()
            }}
        )

    async def change_password(
        self,
        user_id: str,
        current_password: str,
        new_password: str
    ) -> bool:
        """
        Change user's password

        Raises:
            AuthError: If the current password is wrong
        """
        user = await self.get_user_by_id(user_id)

        if not user:
            raise AuthError("USER_NOT_FOUND", "User not found", 404)

        if not verify_password(current_password, user.password_hash):
            raise AuthError("INVALID_PASSWORD", "Current password is incorrect")

        if verify_password(new_password, user.password_hash):
            raise AuthError("SAME_PASSWORD", "New password must differ from the current one")

        await self.set_password(user_id, new_password)
        logger.info(f"Password changed for: {user.email}")
        return True

    async def create_password_reset_token(self, email: str) -> Tuple[Optional[User], Optional[str]]:
        """
        Create a password reset token

        Returns (None, None) for unknown emails so callers can answer
        identically either way.
        """
        user = await self.get_user_by_email(email)
        if not user or not user.is_active:
            logger.info(f"Password reset requested for unknown email: {email}")
            return None, None

        token = secrets.token_urlsafe(32)
        await self.db.password_reset_tokens.delete_many({"user_id": user.user_id})
        await self.db.password_reset_tokens.insert_one({
            "token": token,
            "user_id": user.user_id,
            "email": user.email,
            "expires_at": utc_now() + timedelta(minutes=PASSWORD_RESET_EXPIRE_MINUTES),
            "created_at": utc_now(),
            "used": False
        })

        logger.info(f"Password reset token created for: {email}")
        return user, token

    async def reset_password(self, token: str, new_password: str) -> str:
        """
        Reset password using token, returning the user id

        Raises:
            AuthError: If token is invalid or expired
        """
        token_doc = await self.db.password_reset_tokens.find_one_and_update(
            {"token": token, "used": False, "expires_at": {"$gt": utc_now()}},
            {"$set": {"used": True, "used_at": utc_now()}},
            return_document=True
        )

        if not token_doc:
            raise AuthError("INVALID_TOKEN", "Invalid or expired reset token")

        await self.set_password(token_doc["user_id"], new_password)
        logger.info(f"Password reset completed for user: {token_doc['user_id']}")
        return token_doc["user_id"]
