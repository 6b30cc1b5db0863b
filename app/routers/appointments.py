"""
Appointments API Router
Booking, listing, calendar and the appointment status lifecycle
"""

from datetime import date
from typing import Optional
from fastapi import APIRouter, BackgroundTasks, Body, Depends, Query, Request, status
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel

from app.database import get_database
from app.middleware.auth import get_current_user, require_admin, require_staff
from app.models.appointment import (
    Appointment, AppointmentCreate, AppointmentResponse, AppointmentStatus,
    AppointmentUpdate, AvailabilityRequest, CancelRequest, CompleteRequest,
    FeedbackRequest, StatusAction
)
from app.models.user import User, UserRole
from app.schemas.common import ErrorResponse, Pagination, SingleResponse
from app.services.appointment_service import AppointmentService
from app.services.audit_service import AuditAction, AuditService
from app.services.reminder_service import ReminderService

router = APIRouter()


class AppointmentList(BaseModel):
    appointments: list[AppointmentResponse]
    pagination: Pagination


def get_appointment_service(db: AsyncIOMotorDatabase = Depends(get_database)) -> AppointmentService:
    return AppointmentService(db)


def to_response(appointment: Appointment, user: User) -> AppointmentResponse:
    response = AppointmentResponse.from_appointment(appointment)
    if user.role == UserRole.CLIENT:
        response.internal_notes = None
    return response


@router.get("", response_model=SingleResponse[AppointmentList])
async def list_appointments(
    business_id: Optional[str] = None,
    client_id: Optional[str] = None,
    staff_id: Optional[str] = None,
    pet_id: Optional[str] = None,
    status_filter: Optional[AppointmentStatus] = Query(None, alias="status"),
    on: Optional[date] = Query(None, alias="date"),
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service)
):
    """List appointments visible to the caller, earliest first"""
    appointments, pagination = await service.list_appointments(
        current_user,
        business_id=business_id,
        client_id=client_id,
        staff_id=staff_id,
        pet_id=pet_id,
        status=status_filter,
        on=on,
        date_from=date_from,
        date_to=date_to,
        page=page,
        limit=limit
    )
    return SingleResponse(data=AppointmentList(
        appointments=[to_response(a, current_user) for a in appointments],
        pagination=pagination
    ))


@router.get("/calendar", response_model=SingleResponse[dict[str, list[AppointmentResponse]]])
async def get_calendar(
    year: int = Query(..., ge=2000, le=2100),
    month: int = Query(..., ge=1, le=12),
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service)
):
    """A month of appointments grouped by ISO date"""
    by_day: dict[str, list[AppointmentResponse]] = {}
    for appointment in await service.get_month(current_user, year, month):
        by_day.setdefault(appointment.scheduled_date.isoformat(), []).append(
            to_response(appointment, current_user)
        )
    return SingleResponse(data=dict(sorted(by_day.items())))


@router.get("/stats/overview", response_model=SingleResponse[dict])
async def get_statistics(
    business_id: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    current_user: User = Depends(require_staff),
    service: AppointmentService = Depends(get_appointment_service)
):
    """Appointment counts and revenue per status"""
    stats = await service.get_stats(current_user, business_id, date_from, date_to)
    return SingleResponse(data=stats)


@router.post("/check-availability", response_model=SingleResponse[dict])
async def check_availability(
    data: AvailabilityRequest,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service)
):
    """Bookable start times for a service on a date"""
    result = await service.check_availability(data.service_id, data.scheduled_date, current_user, data.staff_id)
    return SingleResponse(data=result)


@router.post("/reminders/send", response_model=SingleResponse[dict])
async def send_reminders(
    business_id: Optional[str] = None,
    current_user: User = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Run one reminder pass for the caller's business (all businesses for super admins)"""
    if current_user.role != UserRole.SUPER_ADMIN:
        business_id = current_user.business_id
    stats = await ReminderService(db).send_due_reminders(business_id)
    return SingleResponse(data=stats, message="Reminders processed")


@router.post(
    "",
    response_model=SingleResponse[AppointmentResponse],
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Slot unavailable or booking rule violated"},
        404: {"model": ErrorResponse, "description": "Client, pet or service not found"}
    }
)
async def create_appointment(
    data: AppointmentCreate,
    request: Request,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database),
    service: AppointmentService = Depends(get_appointment_service)
):
    """
    Book an appointment

    Clients book for themselves; staff and admins name the client.
    """
    appointment = await service.create_appointment(data, current_user)

    background_tasks.add_task(service.notify, appointment, "confirmation")
    await AuditService(db).log(
        current_user.user_id, AuditAction.CREATE, "appointment", appointment.appointment_id,
        business_id=appointment.business_id, request=request
    )
    return SingleResponse(data=to_response(appointment, current_user), message="Appointment created successfully")


@router.get("/{appointment_id}", response_model=SingleResponse[AppointmentResponse])
async def get_appointment(
    appointment_id: str,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service)
):
    appointment = await service.get_appointment(appointment_id, current_user)
    return SingleResponse(data=to_response(appointment, current_user))


@router.put("/{appointment_id}", response_model=SingleResponse[AppointmentResponse])
async def update_appointment(
    appointment_id: str,
    data: AppointmentUpdate,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database),
    service: AppointmentService = Depends(get_appointment_service)
):
    """Reschedule, reassign staff or edit notes"""
    before = await service.get_appointment(appointment_id, current_user)
    appointment = await service.update_appointment(appointment_id, data, current_user)

    await AuditService(db).log(
        current_user.user_id, AuditAction.UPDATE, "appointment", appointment_id,
        business_id=appointment.business_id,
        before=before.model_dump(mode="json", exclude={"audit_log"}),
        after=appointment.model_dump(mode="json", exclude={"audit_log"}),
        request=request
    )
    return SingleResponse(data=to_response(appointment, current_user), message="Appointment updated successfully")


async def _transition(
    appointment_id: str,
    action: StatusAction,
    current_user: User,
    request: Request,
    db: AsyncIOMotorDatabase,
    service: AppointmentService,
    **kwargs
) -> Appointment:
    before = await service.get_appointment(appointment_id, current_user)
    appointment = await service.transition(appointment_id, action, current_user, **kwargs)
    await AuditService(db).log(
        current_user.user_id, AuditAction.STATUS_CHANGE, "appointment", appointment_id,
        business_id=appointment.business_id,
        before={"status": before.status.value},
        after={"status": appointment.status.value},
        request=request
    )
    return appointment


@router.post(
    "/{appointment_id}/checkin",
    response_model=SingleResponse[AppointmentResponse],
    responses={409: {"model": ErrorResponse, "description": "Invalid status transition"}}
)
async def checkin_appointment(
    appointment_id: str,
    request: Request,
    current_user: User = Depends(require_staff),
    db: AsyncIOMotorDatabase = Depends(get_database),
    service: AppointmentService = Depends(get_appointment_service)
):
    appointment = await _transition(appointment_id, StatusAction.CHECKIN, current_user, request, db, service)
    return SingleResponse(data=to_response(appointment, current_user), message="Client checked in")


@router.post(
    "/{appointment_id}/start",
    response_model=SingleResponse[AppointmentResponse],
    responses={409: {"model": ErrorResponse, "description": "Invalid status transition"}}
)
async def start_appointment(
    appointment_id: str,
    request: Request,
    current_user: User = Depends(require_staff),
    db: AsyncIOMotorDatabase = Depends(get_database),
    service: AppointmentService = Depends(get_appointment_service)
):
    appointment = await _transition(appointment_id, StatusAction.START, current_user, request, db, service)
    return SingleResponse(data=to_response(appointment, current_user), message="Service started")


@router.post(
    "/{appointment_id}/complete",
    response_model=SingleResponse[AppointmentResponse],
    responses={409: {"model": ErrorResponse, "description": "Invalid status transition"}}
)
async def complete_appointment(
    appointment_id: str,
    request: Request,
    data: CompleteRequest = Body(default_factory=CompleteRequest),
    current_user: User = Depends(require_staff),
    db: AsyncIOMotorDatabase = Depends(get_database),
    service: AppointmentService = Depends(get_appointment_service)
):
    appointment = await _transition(
        appointment_id, StatusAction.COMPLETE, current_user, request, db, service, complete=data
    )
    return SingleResponse(data=to_response(appointment, current_user), message="Service completed")


@router.post(
    "/{appointment_id}/cancel",
    response_model=SingleResponse[AppointmentResponse],
    responses={
        400: {"model": ErrorResponse, "description": "Too late to cancel"},
        409: {"model": ErrorResponse, "description": "Invalid status transition"}
    }
)
async def cancel_appointment(
    appointment_id: str,
    request: Request,
    background_tasks: BackgroundTasks,
    data: CancelRequest = Body(default_factory=CancelRequest),
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database),
    service: AppointmentService = Depends(get_appointment_service)
):
    """Cancel; clients must respect the business cancellation window"""
    appointment = await _transition(
        appointment_id, StatusAction.CANCEL, current_user, request, db, service, reason=data.reason
    )
    background_tasks.add_task(service.notify, appointment, "cancellation")
    return SingleResponse(data=to_response(appointment, current_user), message="Appointment cancelled successfully")


@router.post(
    "/{appointment_id}/no-show",
    response_model=SingleResponse[AppointmentResponse],
    responses={409: {"model": ErrorResponse, "description": "Invalid status transition"}}
)
async def mark_no_show(
    appointment_id: str,
    request: Request,
    current_user: User = Depends(require_staff),
    db: AsyncIOMotorDatabase = Depends(get_database),
    service: AppointmentService = Depends(get_appointment_service)
):
    appointment = await _transition(appointment_id, StatusAction.NO_SHOW, current_user, request, db, service)
    return SingleResponse(data=to_response(appointment, current_user), message="Marked as no-show")


@router.post("/{appointment_id}/feedback", response_model=SingleResponse[AppointmentResponse])
async def leave_feedback(
    appointment_id: str,
    data: FeedbackRequest,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service)
):
    """Client rating for a completed appointment"""
    appointment = await service.add_feedback(appointment_id, data, current_user)
    return SingleResponse(data=to_response(appointment, current_user), message="Thank you for your feedback")
