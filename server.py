"""
PetSync API - application entry point
Multi-tenant pet-care business management
"""

from fastapi import FastAPI, APIRouter, Request
from fastapi.staticfiles import StaticFiles
from dotenv import load_dotenv
from starlette.middleware.cors import CORSMiddleware
import os
import logging
import time
from pathlib import Path
from contextlib import asynccontextmanager

# Load environment
ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

from app.config import get_settings
from app.database import Database
from app.middleware.rate_limit import rate_limit_middleware
from app.utils.exceptions import register_exception_handlers

from app.routers import auth, otp, appointments, clients, pets, services, staff, businesses
from app.routers import invoices, dashboard, audit_logs, business_categories, inquiries, public

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler"""
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    for warning in settings.validate_production_settings():
        logger.warning(f"Configuration warning: {warning}")

    await Database.connect()

    yield

    logger.info(f"Shutting down {settings.APP_NAME}")
    await Database.disconnect()


app = FastAPI(
    title=f"{settings.APP_NAME} API",
    description="Appointments, clients, pets, staff and billing for pet-care businesses",
    version=settings.APP_VERSION,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Stricter limits on login, sign-up and code delivery
app.middleware("http")(rate_limit_middleware)


@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """Add processing time to response headers"""
    start_time = time.time()
    response = await call_next(request)
    response.headers["X-Process-Time"] = str(round((time.time() - start_time) * 1000, 2))
    return response


register_exception_handlers(app)

# Create versioned API router
api_v1 = APIRouter(prefix=settings.API_V1_PREFIX)

api_v1.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_v1.include_router(otp.router, prefix="/otp", tags=["OTP"])
api_v1.include_router(businesses.router, prefix="/businesses", tags=["Businesses"])
api_v1.include_router(appointments.router, prefix="/appointments", tags=["Appointments"])
api_v1.include_router(clients.router, prefix="/clients", tags=["Clients"])
api_v1.include_router(pets.router, prefix="/pets", tags=["Pets"])
api_v1.include_router(services.router, prefix="/services", tags=["Services"])
api_v1.include_router(staff.router, prefix="/staff", tags=["Staff"])
api_v1.include_router(invoices.router, prefix="/invoices", tags=["Invoices"])
api_v1.include_router(dashboard.router, prefix="/dashboard", tags=["Dashboard"])
api_v1.include_router(audit_logs.router, prefix="/audit-logs", tags=["Audit Logs"])
api_v1.include_router(business_categories.router, prefix="/business-categories", tags=["Business Categories"])
api_v1.include_router(inquiries.router, prefix="/inquiries", tags=["Inquiries"])
api_v1.include_router(public.router, prefix="/public", tags=["Public"])

app.include_router(api_v1)

# Uploaded avatars
os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR), name="uploads")


# Health check endpoints
@app.get("/", tags=["Health"])
async def root():
    return {
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "api_prefix": settings.API_V1_PREFIX
    }


@app.get("/health", tags=["Health"])
async def health_check():
    return {"status": "healthy", "app": settings.APP_NAME, "version": settings.APP_VERSION}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("server:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
