"""
Appointment Service
Booking rules, the status lifecycle and appointment statistics
"""

import logging
from datetime import date, datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo
from dateutil.relativedelta import relativedelta
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.models.appointment import (
    ACTIVE_STATUSES, STATUS_TRANSITIONS, Appointment, AppointmentCreate,
    AppointmentStatus, AppointmentUpdate, Cancellation, CompleteRequest,
    FeedbackRequest, ServiceSnapshot, StatusAction, add_minutes,
    minutes_to_time, time_to_minutes, times_overlap
)
from app.models.business import Business
from app.models.common import to_mongo_value, utc_now
from app.models.pet import Pet
from app.models.service import Service
from app.models.user import User, UserRole
from app.schemas.common import Pagination, create_pagination
from app.services.email_service import EmailService, get_email_service
from app.utils.exceptions import (
    AuthorizationError, BookingWindowError, BusinessClosedError,
    CancellationPolicyError, InvalidStatusTransitionError, PetSyncException,
    ResourceNotFoundError, SchedulingConflictError, ServiceRequirementError
)

logger = logging.getLogger(__name__)

SLOT_STEP_MINUTES = 30


def local_now(tz_name: str) -> datetime:
    """Naive wall-clock time in the business timezone"""
    return datetime.now(ZoneInfo(tz_name)).replace(tzinfo=None)


def appointment_scope(user: User) -> dict:
    if user.role == UserRole.SUPER_ADMIN:
        return {}
    if user.role == UserRole.CLIENT:
        return {"client_id": user.user_id}
    return {"business_id": user.business_id}


def can_update_status(user: User, appointment: Appointment) -> bool:
    """Who may drive the lifecycle (clients only ever cancel their own)"""
    if user.role == UserRole.SUPER_ADMIN:
        return True
    if user.role == UserRole.BUSINESS_ADMIN:
        return appointment.business_id in user.business_ids
    if user.role == UserRole.STAFF:
        return appointment.business_id in user.business_ids or appointment.staff_id == user.user_id
    return False


def check_service_requirements(service: Service, pet: Pet, on: date) -> list[str]:
    """Reasons a pet cannot take a service; empty when eligible"""
    reasons = []
    req = service.requirements

    if req.species and pet.species not in req.species:
        allowed = ", ".join(s.value for s in req.species)
        reasons.append(f"{service.name} is only available for: {allowed}")

    age = pet.age_in_months(on)
    if req.min_age_months is not None or req.max_age_months is not None:
        if age is None:
            reasons.append(f"{service.name} requires the pet's date of birth")
        elif req.min_age_months is not None and age < req.min_age_months:
            reasons.append(f"Pet must be at least {req.min_age_months} months old")
        elif req.max_age_months is not None and age > req.max_age_months:
            reasons.append(f"Pet must be at most {req.max_age_months} months old")

    if req.vaccination_required:
        current = pet.medical.current_vaccines(on)
        if req.required_vaccines:
            missing = [v for v in req.required_vaccines if v.lower() not in current]
            if missing:
                reasons.append(f"Missing current vaccinations: {', '.join(missing)}")
        elif not current:
            reasons.append("Pet has no current vaccinations on record")

    return reasons


class AppointmentError(PetSyncException):
    """Generic booking failure"""
    pass


class AppointmentService:
    """Appointment booking and lifecycle"""

    def __init__(self, db: AsyncIOMotorDatabase, email_service: Optional[EmailService] = None):
        self.db = db
        self.collection = db.appointments
        self.email_service = email_service or get_email_service()

    # ============== Lookups ==============

    async def _get_business(self, business_id: str) -> Business:
        doc = await self.db.businesses.find_one({"business_id": business_id, "deleted_at": None})
        if not doc or not doc.get("is_active", True):
            raise ResourceNotFoundError("Business", business_id)
        return Business(**doc)

    async def _get_service(self, service_id: str, user: User) -> Service:
        query = {"service_id": service_id, "is_active": True, "deleted_at": None}
        if user.role in (UserRole.BUSINESS_ADMIN, UserRole.STAFF):
            query["business_id"] = user.business_id
        doc = await self.db.services.find_one(query)
        if not doc:
            raise ResourceNotFoundError("Service", service_id)
        return Service(**doc)

    async def _get_client(self, client_id: str) -> User:
        doc = await self.db.users.find_one({
            "user_id": client_id, "role": UserRole.CLIENT.value, "deleted_at": None
        })
        if not doc:
            raise ResourceNotFoundError("Client", client_id)
        return User(**doc)

    async def _get_pet(self, pet_id: str) -> Pet:
        doc = await self.db.pets.find_one({"pet_id": pet_id, "deleted_at": None})
        if not doc:
            raise ResourceNotFoundError("Pet", pet_id)
        return Pet(**doc)

    async def _validate_staff(self, staff_id: str, business_id: str, service: Service) -> None:
        doc = await self.db.users.find_one({
            "user_id": staff_id,
            "role": {"$in": [UserRole.STAFF.value, UserRole.BUSINESS_ADMIN.value]},
            "business_ids": business_id,
            "is_active": True,
            "deleted_at": None
        })
        if not doc:
            raise ResourceNotFoundError("Staff", staff_id)
        if service.staff_ids and staff_id not in service.staff_ids:
            raise AppointmentError("STAFF_NOT_QUALIFIED", "Staff member does not provide this service")

    async def get_appointment(self, appointment_id: str, user: User) -> Appointment:
        doc = await self.collection.find_one({
            "appointment_id": appointment_id, "deleted_at": None, **appointment_scope(user)
        })
        if not doc:
            raise ResourceNotFoundError("Appointment", appointment_id)
        return Appointment(**doc)

    # ============== Schedule checks ==============

    def _check_date(self, business: Business, day: date, start_time: str, end_time: str) -> None:
        """Booking window, opening hours and breaks"""
        tz = business.schedule.timezone
        today = local_now(tz).date()

        if day < today:
            raise BookingWindowError("Cannot book appointments in the past")
        window = business.settings.booking_window_days
        if day > today + timedelta(days=window):
            raise BookingWindowError(f"Appointments can only be booked up to {window} days in advance")
        if day == today and start_time <= local_now(tz).strftime("%H:%M"):
            raise BookingWindowError("Cannot book a time that has already passed")

        if not business.schedule.is_open_on(day):
            raise BusinessClosedError(day.strftime("%A, %B %d, %Y"))

        hours = business.schedule.working_hours.for_date(day)
        if start_time < hours.open or end_time > hours.close:
            raise BusinessClosedError(f"{day.isoformat()} at {start_time} (open {hours.open}-{hours.close})")

        for brk in business.schedule.breaks:
            if times_overlap(start_time, end_time, brk.start, brk.end):
                raise BusinessClosedError(f"{day.isoformat()} at {start_time} ({brk.label or 'break'})")

    async def _find_conflicts(
        self,
        business_id: str,
        day: date,
        start_time: str,
        end_time: str,
        staff_id: Optional[str] = None,
        pet_id: Optional[str] = None,
        exclude_id: Optional[str] = None
    ) -> list[dict]:
        """
        Active appointments overlapping [start_time, end_time)

        With a staff member only their bookings count; otherwise any booking
        in the business does. The pet can never be double booked.
        """
        base = {
            "scheduled_date": day.isoformat(),
            "status": {"$in": [s.value for s in ACTIVE_STATUSES]},
            "deleted_at": None
        }
        if exclude_id:
            base["appointment_id"] = {"$ne": exclude_id}

        scopes = [{"staff_id": staff_id} if staff_id else {"business_id": business_id}]
        if pet_id:
            scopes.append({"pet_id": pet_id})

        docs = await self.collection.find({**base, "$or": scopes}).to_list(length=500)

        return [
            {
                "appointment_id": d["appointment_id"],
                "start_time": d["start_time"],
                "end_time": d["end_time"],
                "staff_id": d.get("staff_id"),
            }
            for d in docs
            if times_overlap(start_time, end_time, d["start_time"], d["end_time"])
        ]

    # ============== Create / update ==============

    async def create_appointment(self, data: AppointmentCreate, user: User) -> Appointment:
        """Validate every booking rule, then insert"""
        service = await self._get_service(data.service_id, user)
        business_id = service.business_id
        if data.business_id and data.business_id != business_id:
            raise AppointmentError("SERVICE_BUSINESS_MISMATCH", "Service does not belong to this business")
        business = await self._get_business(business_id)

        if user.role == UserRole.CLIENT:
            client = user
        else:
            if not data.client_id:
                raise AppointmentError("CLIENT_REQUIRED", "client_id is required")
            client = await self._get_client(data.client_id)

        pet = await self._get_pet(data.pet_id)
        if pet.owner_id != client.user_id:
            raise AppointmentError("PET_OWNER_MISMATCH", "Pet does not belong to this client")

        reasons = check_service_requirements(service, pet, data.scheduled_date)
        if reasons:
            raise ServiceRequirementError(reasons)

        if data.variation and not any(
            v.name.lower() == data.variation.lower() for v in service.pricing.variations
        ):
            raise AppointmentError("UNKNOWN_VARIATION", f"Unknown price option '{data.variation}'")

        if data.staff_id:
            await self._validate_staff(data.staff_id, business_id, service)

        end_time = add_minutes(data.start_time, service.duration.total_minutes)
        self._check_date(business, data.scheduled_date, data.start_time, end_time)

        conflicts = await self._find_conflicts(
            business_id, data.scheduled_date, data.start_time, end_time,
            staff_id=data.staff_id, pet_id=pet.pet_id
        )
        if conflicts:
            raise SchedulingConflictError(conflicts)

        price = service.pricing.price_for(data.variation)
        appointment = Appointment(
            business_id=business_id,
            client_id=client.user_id,
            pet_id=pet.pet_id,
            staff_id=data.staff_id,
            created_by=user.user_id,
            service=ServiceSnapshot(
                service_id=service.service_id,
                name=service.name,
                duration_minutes=service.duration.estimated_minutes,
                buffer_minutes=service.duration.buffer_minutes,
                price=price,
                variation=data.variation
            ),
            scheduled_date=data.scheduled_date,
            start_time=data.start_time,
            end_time=end_time,
            timezone=business.schedule.timezone,
            price=price,
            notes=data.notes,
            internal_notes=None if user.role == UserRole.CLIENT else data.internal_notes
        )
        appointment.add_audit("created", user.user_id)
        await self.collection.insert_one(appointment.to_mongo())

        await self.db.services.update_one({"service_id": service.service_id}, {"$inc": {"times_booked": 1}})
        await self.db.businesses.update_one({"business_id": business_id}, {"$inc": {"total_appointments": 1}})
        if business_id not in client.business_ids:
            await self.db.users.update_one({"user_id": client.user_id}, {"$addToSet": {"business_ids": business_id}})
            await self.db.businesses.update_one({"business_id": business_id}, {"$inc": {"total_clients": 1}})
        if business_id not in pet.business_ids:
            await self.db.pets.update_one({"pet_id": pet.pet_id}, {"$addToSet": {"business_ids": business_id}})

        logger.info(
            f"Appointment {appointment.appointment_id} booked for {data.scheduled_date} "
            f"{data.start_time}-{end_time} (business {business_id})"
        )
        return appointment

    async def update_appointment(self, appointment_id: str, data: AppointmentUpdate, user: User) -> Appointment:
        """Reschedule, reassign or edit notes of an open appointment"""
        appointment = await self.get_appointment(appointment_id, user)
        if appointment.status not in ACTIVE_STATUSES:
            raise InvalidStatusTransitionError(appointment.status.value, "update")

        updates = data.model_dump(exclude_unset=True)
        if user.role == UserRole.CLIENT:
            updates.pop("internal_notes", None)
            updates.pop("staff_id", None)

        reschedule = any(k in updates for k in ("scheduled_date", "start_time", "staff_id"))
        if reschedule:
            if appointment.status == AppointmentStatus.IN_PROGRESS:
                raise InvalidStatusTransitionError(appointment.status.value, "reschedule")

            day = updates.get("scheduled_date") or appointment.scheduled_date
            start = updates.get("start_time") or appointment.start_time
            staff_id = updates.get("staff_id", appointment.staff_id)
            total = appointment.service.duration_minutes + appointment.service.buffer_minutes
            end = add_minutes(start, total)

            business = await self._get_business(appointment.business_id)
            if staff_id and staff_id != appointment.staff_id:
                service_doc = await self.db.services.find_one({"service_id": appointment.service.service_id})
                if service_doc:
                    await self._validate_staff(staff_id, appointment.business_id, Service(**service_doc))
            self._check_date(business, day, start, end)

            conflicts = await self._find_conflicts(
                appointment.business_id, day, start, end,
                staff_id=staff_id, pet_id=appointment.pet_id, exclude_id=appointment_id
            )
            if conflicts:
                raise SchedulingConflictError(conflicts)
            updates["end_time"] = end

        if not updates:
            return appointment

        updates["updated_at"] = utc_now()
        result = await self.collection.find_one_and_update(
            {"appointment_id": appointment_id, "status": {"$in": [s.value for s in ACTIVE_STATUSES]}},
            {"$set": to_mongo_value(updates)},
            return_document=True
        )
        if not result:
            raise ResourceNotFoundError("Appointment", appointment_id)
        return Appointment(**result)

    # ============== Status lifecycle ==============

    async def transition(
        self,
        appointment_id: str,
        action: StatusAction,
        user: User,
        complete: Optional[CompleteRequest] = None,
        reason: Optional[str] = None
    ) -> Appointment:
        """
        Apply a lifecycle action

        The update is guarded on the allowed source statuses so concurrent
        transitions cannot both succeed.
        """
        appointment = await self.get_appointment(appointment_id, user)
        is_owner_cancel = (
            user.role == UserRole.CLIENT
            and action == StatusAction.CANCEL
            and appointment.client_id == user.user_id
        )
        if not (can_update_status(user, appointment) or is_owner_cancel):
            raise AuthorizationError("You cannot change the status of this appointment")

        sources, target = STATUS_TRANSITIONS[action]
        if appointment.status not in sources:
            raise InvalidStatusTransitionError(appointment.status.value, action.value)

        now = utc_now()
        updates: dict = {"status": target.value, "updated_at": now}

        if action == StatusAction.CHECKIN:
            updates["checked_in_at"] = now
        elif action == StatusAction.START:
            updates["started_at"] = now
            if appointment.checked_in_at is None:
                updates["checked_in_at"] = now
        elif action == StatusAction.COMPLETE:
            updates["completed_at"] = now
            if complete:
                if complete.notes:
                    updates["completion_notes"] = complete.notes
                if complete.photo_urls:
                    updates["photo_urls"] = appointment.photo_urls + complete.photo_urls
                if complete.final_price is not None:
                    updates["price"] = complete.final_price
        elif action == StatusAction.CANCEL:
            fee = await self._cancellation_fee(appointment, user)
            updates["cancellation"] = Cancellation(
                cancelled_by=user.user_id, cancelled_at=now, reason=reason, fee=fee
            ).model_dump()

        result = await self.collection.find_one_and_update(
            {"appointment_id": appointment_id, "status": {"$in": [s.value for s in sources]}},
            {
                "$set": updates,
                "$push": {"audit_log": {
                    "action": f"status:{target.value}",
                    "user_id": user.user_id,
                    "timestamp": now,
                    "changes": {"from": appointment.status.value, "to": target.value}
                }}
            },
            return_document=True
        )

        if not result:
            # Lost a race with another transition
            current = await self.collection.find_one({"appointment_id": appointment_id})
            status = current["status"] if current else appointment.status.value
            raise InvalidStatusTransitionError(status, action.value)

        updated = Appointment(**result)
        if action == StatusAction.COMPLETE:
            await self.db.services.update_one(
                {"service_id": updated.service.service_id},
                {"$inc": {"total_revenue": updated.price}}
            )
            await self.db.pets.update_one(
                {"pet_id": updated.pet_id},
                {"$set": {"last_visit": now}, "$inc": {"total_visits": 1}}
            )

        logger.info(
            f"Appointment {appointment_id}: {appointment.status.value} -> {target.value} by {user.user_id}"
        )
        return updated

    async def _cancellation_fee(self, appointment: Appointment, user: User) -> float:
        """
        Late cancellation handling

        Clients are refused inside the policy window; staff may cancel late
        and the policy fee is recorded.
        """
        business = await self._get_business(appointment.business_id)
        policy = business.settings.cancellation_policy

        hours_left = (appointment.starts_at() - local_now(appointment.timezone)).total_seconds() / 3600
        if hours_left >= policy.hours_required:
            return 0.0

        if user.role == UserRole.CLIENT:
            raise CancellationPolicyError(policy.hours_required)

        return round(appointment.price * policy.fee_percentage / 100, 2)

    async def add_feedback(self, appointment_id: str, data: FeedbackRequest, user: User) -> Appointment:
        appointment = await self.get_appointment(appointment_id, user)
        if user.role != UserRole.CLIENT or appointment.client_id != user.user_id:
            raise AuthorizationError("Only the client can rate an appointment")
        if appointment.status != AppointmentStatus.COMPLETED:
            raise AppointmentError("NOT_COMPLETED", "Only completed appointments can be rated")

        result = await self.collection.find_one_and_update(
            {"appointment_id": appointment_id},
            {"$set": {"rating": data.rating, "feedback": data.feedback, "updated_at": utc_now()}},
            return_document=True
        )
        return Appointment(**result)

    # ============== Queries ==============

    async def list_appointments(
        self,
        user: User,
        business_id: Optional[str] = None,
        client_id: Optional[str] = None,
        staff_id: Optional[str] = None,
        pet_id: Optional[str] = None,
        status: Optional[AppointmentStatus] = None,
        on: Optional[date] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        page: int = 1,
        limit: int = 20
    ) -> tuple[list[Appointment], Pagination]:
        query: dict = {"deleted_at": None}
        if business_id:
            query["business_id"] = business_id
        if client_id:
            query["client_id"] = client_id
        if staff_id:
            query["staff_id"] = staff_id
        if pet_id:
            query["pet_id"] = pet_id
        if status:
            query["status"] = status.value

        if on:
            query["scheduled_date"] = on.isoformat()
        elif date_from or date_to:
            query["scheduled_date"] = {}
            if date_from:
                query["scheduled_date"]["$gte"] = date_from.isoformat()
            if date_to:
                query["scheduled_date"]["$lte"] = date_to.isoformat()

        # Role scope wins over caller supplied filters
        query.update(appointment_scope(user))

        total = await self.collection.count_documents(query)
        cursor = (
            self.collection.find(query)
            .sort([("scheduled_date", 1), ("start_time", 1)])
            .skip((page - 1) * limit)
            .limit(limit)
        )
        docs = await cursor.to_list(length=limit)
        return [Appointment(**d) for d in docs], create_pagination(total, page, limit)

    async def get_month(self, user: User, year: int, month: int) -> list[Appointment]:
        first = date(year, month, 1)
        last = first + relativedelta(months=1, days=-1)
        query = {
            "deleted_at": None,
            "scheduled_date": {"$gte": first.isoformat(), "$lte": last.isoformat()},
            **appointment_scope(user)
        }
        docs = await self.collection.find(query).sort("start_time", 1).to_list(length=2000)
        return [Appointment(**d) for d in docs]

    async def get_stats(
        self,
        user: User,
        business_id: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None
    ) -> dict:
        """Counts and revenue per status"""
        query: dict = {"deleted_at": None}
        if business_id:
            query["business_id"] = business_id
        if date_from or date_to:
            query["scheduled_date"] = {}
            if date_from:
                query["scheduled_date"]["$gte"] = date_from.isoformat()
            if date_to:
                query["scheduled_date"]["$lte"] = date_to.isoformat()
        query.update(appointment_scope(user))

        docs = await self.collection.find(query, {"status": 1, "price": 1}).to_list(length=None)

        by_status = {s.value: {"count": 0, "revenue": 0.0} for s in AppointmentStatus}
        for d in docs:
            bucket = by_status[d["status"]]
            bucket["count"] += 1
            bucket["revenue"] = round(bucket["revenue"] + d.get("price", 0), 2)

        return {
            "total_appointments": len(docs),
            "total_revenue": by_status[AppointmentStatus.COMPLETED.value]["revenue"],
            "by_status": by_status
        }

    async def check_availability(
        self,
        service_id: str,
        day: date,
        user: User,
        staff_id: Optional[str] = None
    ) -> dict:
        """Bookable start times for a service on a day"""
        service = await self._get_service(service_id, user)
        business = await self._get_business(service.business_id)
        duration = service.duration.total_minutes

        if not business.schedule.is_open_on(day):
            return {"date": day.isoformat(), "is_open": False, "slots": []}

        hours = business.schedule.working_hours.for_date(day)
        booked = await self.collection.find({
            "scheduled_date": day.isoformat(),
            "status": {"$in": [s.value for s in ACTIVE_STATUSES]},
            "deleted_at": None,
            **({"staff_id": staff_id} if staff_id else {"business_id": business.business_id})
        }).to_list(length=500)

        cutoff = None
        if day == local_now(business.schedule.timezone).date():
            cutoff = local_now(business.schedule.timezone).strftime("%H:%M")

        slots = []
        start = time_to_minutes(hours.open)
        close = time_to_minutes(hours.close)
        while start + duration <= close:
            s, e = minutes_to_time(start), minutes_to_time(start + duration)
            blocked = (
                (cutoff is not None and s <= cutoff)
                or any(times_overlap(s, e, b.start, b.end) for b in business.schedule.breaks)
                or any(times_overlap(s, e, a["start_time"], a["end_time"]) for a in booked)
            )
            slots.append({"start_time": s, "end_time": e, "available": not blocked})
            start += SLOT_STEP_MINUTES

        return {
            "date": day.isoformat(),
            "is_open": True,
            "open": hours.open,
            "close": hours.close,
            "duration_minutes": duration,
            "slots": slots
        }

    # ============== Notifications ==============

    async def notify(self, appointment: Appointment, kind: str) -> None:
        """
        Email the client about a booking, reminder or cancellation

        Runs as a background task; delivery problems are logged only.
        """
        client = await self.db.users.find_one({"user_id": appointment.client_id})
        pet = await self.db.pets.find_one({"pet_id": appointment.pet_id})
        business = await self.db.businesses.find_one({"business_id": appointment.business_id})
        if not client or not business:
            logger.warning(f"Skipping {kind} email for {appointment.appointment_id}: missing client or business")
            return
        if not client.get("settings", {}).get("notifications", {}).get("email", True):
            return

        cancellation = appointment.cancellation
        result = await self.email_service.send_appointment_email(
            kind,
            to_email=client["email"],
            client_name=client["first_name"],
            pet_name=pet["name"] if pet else "your pet",
            service_name=appointment.service.name,
            date=appointment.scheduled_date.strftime("%A, %B %d, %Y"),
            time=appointment.start_time,
            business_name=business["name"],
            reason=cancellation.reason if cancellation else None,
            fee=cancellation.fee if cancellation else None
        )
        if not result.success:
            logger.warning(f"{kind} email for {appointment.appointment_id} not sent: {result.error}")
