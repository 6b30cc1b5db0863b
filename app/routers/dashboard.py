"""
Dashboard API Router
"""

from typing import Literal, Optional
from fastapi import APIRouter, Depends, Query
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.database import get_database
from app.middleware.auth import get_current_user
from app.models.user import User
from app.schemas.common import SingleResponse
from app.services.dashboard_service import DashboardService

router = APIRouter()


def get_dashboard_service(db: AsyncIOMotorDatabase = Depends(get_database)) -> DashboardService:
    return DashboardService(db)


@router.get("/overview", response_model=SingleResponse[dict])
async def get_overview(
    period: Optional[Literal["day", "week", "month", "year"]] = None,
    current_user: User = Depends(get_current_user),
    service: DashboardService = Depends(get_dashboard_service)
):
    """Overview shaped for the caller's role"""
    return SingleResponse(data=await service.overview(current_user, period))


@router.get("/stats", response_model=SingleResponse[dict])
async def get_quick_stats(
    current_user: User = Depends(get_current_user),
    service: DashboardService = Depends(get_dashboard_service)
):
    return SingleResponse(data=await service.quick_stats(current_user))


@router.get("/activity", response_model=SingleResponse[dict])
async def get_recent_activity(
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    service: DashboardService = Depends(get_dashboard_service)
):
    activities = await service.recent_activity(current_user, limit)
    return SingleResponse(data={"activities": activities})
