"""
Security utilities for authentication
Password hashing, JWT token management and one-time secrets
"""

from datetime import datetime, timedelta, timezone
import secrets
import string
from typing import Optional
from passlib.context import CryptContext
from jose import JWTError, jwt
from pydantic import BaseModel

from app.config import get_settings

settings = get_settings()

# Password hashing context
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=12
)


class TokenData(BaseModel):
    """Data extracted from JWT token"""
    user_id: str
    business_id: Optional[str] = None
    role: str
    token_type: str = "access"  # access or refresh


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against its hash
    Uses constant-time comparison to prevent timing attacks
    """
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """
    Hash a password using bcrypt
    Salt is automatically generated and stored in the hash
    """
    return pwd_context.hash(password)


def _encode_token(
    user_id: str,
    role: str,
    business_id: Optional[str],
    token_type: str,
    expires_delta: timedelta
) -> str:
    now = datetime.now(timezone.utc)
    to_encode = {
        "sub": user_id,
        "role": role,
        "business_id": business_id,
        "type": token_type,
        "exp": now + expires_delta,
        "iat": now
    }
    return jwt.encode(
        to_encode,
        settings.JWT_SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM
    )


def create_access_token(
    user_id: str,
    role: str,
    business_id: Optional[str] = None,
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a JWT access token

    Args:
        user_id: User's unique identifier
        role: User's role (super_admin, business_admin, staff, client)
        business_id: Primary business of the user
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string
    """
    return _encode_token(
        user_id, role, business_id, "access",
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )


def create_refresh_token(
    user_id: str,
    role: str,
    business_id: Optional[str] = None,
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a JWT refresh token
    Refresh tokens have longer expiration and are used to obtain new access tokens
    """
    return _encode_token(
        user_id, role, business_id, "refresh",
        expires_delta or timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    )


def verify_token(token: str, token_type: str = "access") -> Optional[TokenData]:
    """
    Verify and decode a JWT token

    Args:
        token: The JWT token string
        token_type: Expected token type (access or refresh)

    Returns:
        TokenData if valid, None if invalid
    """
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM]
        )
    except JWTError:
        return None

    user_id: str = payload.get("sub")
    role: str = payload.get("role")
    payload_type: str = payload.get("type", "access")

    if user_id is None or role is None:
        return None

    if payload_type != token_type:
        return None

    return TokenData(
        user_id=user_id,
        business_id=payload.get("business_id"),
        role=role,
        token_type=payload_type
    )


def generate_otp_code(length: int = 6) -> str:
    """Numeric one-time code"""
    return "".join(secrets.choice(string.digits) for _ in range(length))


def generate_temp_password(length: int = 12) -> str:
    """
    Temporary password handed to new staff and clients

    Always contains an upper-case letter, a lower-case letter, a digit and a symbol.
    """
    pools = [string.ascii_uppercase, string.ascii_lowercase, string.digits, "!@#$%&*"]
    chars = [secrets.choice(pool) for pool in pools]
    alphabet = "".join(pools)
    chars += [secrets.choice(alphabet) for _ in range(length - len(chars))]
    secrets.SystemRandom().shuffle(chars)
    return "".join(chars)
