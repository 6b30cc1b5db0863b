"""
Authentication and Authorization Middleware
JWT token validation, role checks and business scoping
"""

from typing import Optional, Callable
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.database import get_database
from app.models.business import Business
from app.models.user import User, UserRole
from app.utils.permissions import has_permission
from app.utils.security import verify_token, TokenData

# HTTP Bearer token scheme
security = HTTPBearer(auto_error=False)


async def get_token_data(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Optional[TokenData]:
    """
    Extract and validate token from Authorization header

    Returns TokenData if valid token, None if no token provided
    Raises HTTPException if token is invalid
    """
    if credentials is None:
        return None

    token_data = verify_token(credentials.credentials, token_type="access")

    if token_data is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "INVALID_TOKEN", "message": "Invalid or expired access token"},
            headers={"WWW-Authenticate": "Bearer"}
        )

    return token_data


async def get_current_user(
    token_data: Optional[TokenData] = Depends(get_token_data),
    db: AsyncIOMotorDatabase = Depends(get_database)
) -> User:
    """
    Get current authenticated user from token

    Raises HTTPException if not authenticated or user not found
    """
    if token_data is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "NOT_AUTHENTICATED", "message": "Authentication required"},
            headers={"WWW-Authenticate": "Bearer"}
        )

    user_dict = await db.users.find_one({"user_id": token_data.user_id, "deleted_at": None})

    if not user_dict:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "USER_NOT_FOUND", "message": "User not found"},
            headers={"WWW-Authenticate": "Bearer"}
        )

    user = User(**user_dict)

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "ACCOUNT_DISABLED", "message": "Account is deactivated"}
        )

    return user


async def get_optional_user(
    token_data: Optional[TokenData] = Depends(get_token_data),
    db: AsyncIOMotorDatabase = Depends(get_database)
) -> Optional[User]:
    """Current user if authenticated, None otherwise"""
    if token_data is None:
        return None

    user_dict = await db.users.find_one({"user_id": token_data.user_id, "deleted_at": None})
    if not user_dict:
        return None

    user = User(**user_dict)
    return user if user.is_active else None


def require_roles(*allowed_roles: UserRole) -> Callable:
    """
    Dependency factory for role-based access control

    Usage:
        @router.get("/admin-only")
        async def admin_endpoint(user: User = Depends(require_roles(UserRole.SUPER_ADMIN))):
            ...
    """
    async def role_checker(
        current_user: User = Depends(get_current_user)
    ) -> User:
        if current_user.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "code": "INSUFFICIENT_PERMISSIONS",
                    "message": f"This action requires one of these roles: {[r.value for r in allowed_roles]}"
                }
            )
        return current_user

    return role_checker


def require_permission(module: str, action: str) -> Callable:
    """Dependency factory checking a 'module:action' permission"""
    async def permission_checker(
        current_user: User = Depends(get_current_user)
    ) -> User:
        if not has_permission(current_user.permissions, module, action):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "code": "INSUFFICIENT_PERMISSIONS",
                    "message": f"Missing permission {module}:{action}"
                }
            )
        return current_user

    return permission_checker


# Convenience dependency instances
require_super_admin = require_roles(UserRole.SUPER_ADMIN)
require_admin = require_roles(UserRole.SUPER_ADMIN, UserRole.BUSINESS_ADMIN)
require_staff = require_roles(UserRole.SUPER_ADMIN, UserRole.BUSINESS_ADMIN, UserRole.STAFF)


class BusinessContext:
    """
    Context for business-scoped operations

    Super admins see every business. Business admins and staff are pinned
    to their primary business. Clients are pinned to their own records.
    """

    def __init__(self, user: User, db: AsyncIOMotorDatabase):
        self.user = user
        self.db = db
        self.business_id = user.business_id

    @property
    def is_super_admin(self) -> bool:
        return self.user.role == UserRole.SUPER_ADMIN

    @property
    def is_client(self) -> bool:
        return self.user.role == UserRole.CLIENT

    def filter_query(self, query: dict, business_field: str = "business_id") -> dict:
        """Add the business filter to a query"""
        if self.is_super_admin:
            return query
        return {**query, business_field: self.business_id}

    def verify_business_access(self, business_id: Optional[str]) -> bool:
        """Verify user has access to a specific business"""
        if self.is_super_admin:
            return True
        return business_id is not None and business_id in self.user.business_ids

    def resolve_business_id(self, requested: Optional[str] = None) -> str:
        """
        Business an object is created in

        Super admins and clients must name it; everyone else uses their own.
        """
        if self.is_super_admin or self.is_client:
            business_id = requested or self.business_id
        else:
            business_id = self.business_id

        if not business_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"code": "NO_BUSINESS", "message": "business_id is required"}
            )
        return business_id


async def get_business_context(
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
) -> BusinessContext:
    """Dependency to get business context for scoped queries"""
    if current_user.role in (UserRole.BUSINESS_ADMIN, UserRole.STAFF) and not current_user.business_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "code": "NO_BUSINESS_ACCESS",
                "message": "User is not associated with any business"
            }
        )
    return BusinessContext(current_user, db)


async def get_current_business(
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
) -> Business:
    """Dependency to get current user's primary business"""
    if not current_user.business_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "NO_BUSINESS", "message": "User is not associated with any business"}
        )

    business_dict = await db.businesses.find_one({
        "business_id": current_user.business_id,
        "deleted_at": None
    })

    if not business_dict:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "BUSINESS_NOT_FOUND", "message": "Business not found"}
        )

    return Business(**business_dict)
