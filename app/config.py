"""
Application Configuration
Uses pydantic-settings for environment variable management
"""

from functools import lru_cache
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application
    APP_NAME: str = "PetSync"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    API_V1_PREFIX: str = "/api/v1"
    FRONTEND_URL: str = "http://localhost:3000"

    # MongoDB
    MONGO_URL: str = "mongodb://localhost:27017"
    DB_NAME: str = "petsync"

    # JWT Authentication
    JWT_SECRET_KEY: str = "CHANGE_ME_IN_PRODUCTION_USE_SECURE_KEY"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7
    REFRESH_TOKEN_EXPIRE_DAYS: int = 30

    # Login lockout
    MAX_LOGIN_ATTEMPTS: int = 5
    LOCKOUT_MINUTES: int = 30

    # CORS
    CORS_ORIGINS: list[str] = ["*"]

    # OTP
    OTP_LENGTH: int = 6
    OTP_EXPIRE_MINUTES: int = 10
    OTP_MAX_ATTEMPTS: int = 3
    OTP_RESEND_COOLDOWN_SECONDS: int = 120

    # Rate limiting (requests per minute per client IP)
    AUTH_RATE_LIMIT_PER_MINUTE: int = 10

    # Uploads
    UPLOAD_DIR: str = "uploads"
    MAX_AVATAR_BYTES: int = 5 * 1024 * 1024

    # Twilio
    TWILIO_ACCOUNT_SID: Optional[str] = None
    TWILIO_AUTH_TOKEN: Optional[str] = None
    TWILIO_PHONE_NUMBER: Optional[str] = None

    # SendGrid
    SENDGRID_API_KEY: Optional[str] = None
    SENDGRID_FROM_EMAIL: str = "noreply@petsync.app"
    SENDGRID_FROM_NAME: str = "PetSync"

    def is_production(self) -> bool:
        """Check if running in production mode"""
        return not self.DEBUG

    def validate_production_settings(self) -> list[str]:
        """Validate that production-critical settings are configured"""
        errors = []
        if self.is_production():
            if self.JWT_SECRET_KEY == "CHANGE_ME_IN_PRODUCTION_USE_SECURE_KEY":
                errors.append("JWT_SECRET_KEY must be changed in production")
            if "*" in self.CORS_ORIGINS:
                errors.append("CORS_ORIGINS should not be '*' in production")
            if not self.SENDGRID_API_KEY:
                errors.append("SENDGRID_API_KEY is not set, OTP and reset emails will not be delivered")
        return errors


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
