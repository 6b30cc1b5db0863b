"""
MongoDB Database Connection Management
Uses Motor for async MongoDB operations
"""

from typing import Optional
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import ConnectionFailure
import logging

from app.config import get_settings

logger = logging.getLogger(__name__)


class Database:
    """MongoDB database connection manager"""

    client: Optional[AsyncIOMotorClient] = None
    db: Optional[AsyncIOMotorDatabase] = None

    @classmethod
    async def connect(cls) -> None:
        """Establish connection to MongoDB"""
        settings = get_settings()
        try:
            cls.client = AsyncIOMotorClient(
                settings.MONGO_URL,
                maxPoolSize=50,
                minPoolSize=10,
                serverSelectionTimeoutMS=5000
            )
            # Verify connection
            await cls.client.admin.command("ping")
            cls.db = cls.client[settings.DB_NAME]
            logger.info(f"Connected to MongoDB: {settings.DB_NAME}")

            await cls._create_indexes()

        except ConnectionFailure as e:
            logger.error(f"Failed to connect to MongoDB: {e}")
            raise

    @classmethod
    async def disconnect(cls) -> None:
        """Close MongoDB connection"""
        if cls.client:
            cls.client.close()
            logger.info("Disconnected from MongoDB")

    @classmethod
    async def _create_indexes(cls) -> None:
        """Create database indexes for optimal query performance"""
        if cls.db is None:
            return

        # Users (clients, staff and admins share the collection)
        await cls.db.users.create_index("email", unique=True)
        await cls.db.users.create_index("user_id", unique=True)
        await cls.db.users.create_index([("business_ids", 1), ("role", 1)])

        # Businesses
        await cls.db.businesses.create_index("business_id", unique=True)
        await cls.db.businesses.create_index("owner_id")
        await cls.db.businesses.create_index("email", unique=True, sparse=True)
        await cls.db.businesses.create_index([("category_id", 1), ("is_active", 1), ("is_public", 1)])

        # Business categories
        await cls.db.business_categories.create_index("category_id", unique=True)
        await cls.db.business_categories.create_index("slug")
        await cls.db.business_categories.create_index([("is_active", 1), ("display_order", 1)])

        # Pets
        await cls.db.pets.create_index("pet_id", unique=True)
        await cls.db.pets.create_index("owner_id")
        await cls.db.pets.create_index([("business_ids", 1), ("status", 1)])
        await cls.db.pets.create_index("microchip_id", sparse=True)

        # Services
        await cls.db.services.create_index("service_id", unique=True)
        await cls.db.services.create_index([("business_id", 1), ("is_active", 1)])
        await cls.db.services.create_index([("business_id", 1), ("category", 1)])

        # Appointments
        await cls.db.appointments.create_index("appointment_id", unique=True)
        await cls.db.appointments.create_index("client_id")
        await cls.db.appointments.create_index("staff_id")
        await cls.db.appointments.create_index([
            ("business_id", 1),
            ("scheduled_date", 1),
            ("status", 1)
        ])

        # Invoices
        await cls.db.invoices.create_index("invoice_id", unique=True)
        await cls.db.invoices.create_index(
            [("business_id", 1), ("invoice_number", 1)], unique=True
        )
        await cls.db.invoices.create_index([("client_id", 1), ("status", 1)])

        # Inquiries
        await cls.db.inquiries.create_index("inquiry_id", unique=True)
        await cls.db.inquiries.create_index([("business_id", 1), ("status", 1)])
        await cls.db.inquiries.create_index([("business_id", 1), ("created_at", -1)])

        # OTP codes expire on their own
        await cls.db.otps.create_index([("email", 1), ("type", 1)])
        await cls.db.otps.create_index("expires_at", expireAfterSeconds=0)

        # Password reset tokens
        await cls.db.password_reset_tokens.create_index("token", unique=True)
        await cls.db.password_reset_tokens.create_index("expires_at", expireAfterSeconds=0)

        # Audit logs
        await cls.db.audit_logs.create_index([("user_id", 1), ("created_at", -1)])
        await cls.db.audit_logs.create_index([("business_id", 1), ("created_at", -1)])
        await cls.db.audit_logs.create_index([("resource", 1), ("action", 1)])

        logger.info("Database indexes created successfully")

    @classmethod
    def get_db(cls) -> AsyncIOMotorDatabase:
        """Get database instance"""
        if cls.db is None:
            raise RuntimeError("Database not connected. Call Database.connect() first.")
        return cls.db


def get_database() -> AsyncIOMotorDatabase:
    """Dependency injection for database access"""
    return Database.get_db()
