"""
Dashboard Service
Role-specific overviews, quick stats and the activity feed
"""

import logging
from datetime import date, datetime, timedelta
from typing import Any, Optional
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.models.appointment import ACTIVE_STATUSES, Appointment, AppointmentStatus
from app.models.common import as_utc, utc_now
from app.models.invoice import InvoiceStatus
from app.models.pet import Pet, PetStatus
from app.models.user import User, UserRole
from app.services.audit_service import AuditService

logger = logging.getLogger(__name__)

PERIOD_DAYS = {"day": 1, "week": 7, "month": 30, "year": 365}
CHECKUP_OVERDUE_DAYS = 180
VACCINE_WARNING_DAYS = 30


def period_start(period: Optional[str], today: Optional[date] = None) -> Optional[date]:
    """First day covered by a dashboard period; None means all time"""
    if not period or period not in PERIOD_DAYS:
        return None
    today = today or date.today()
    return today - timedelta(days=PERIOD_DAYS[period] - 1)


def pet_health_reminders(
    pets: list[Pet],
    last_visits: dict[str, Optional[datetime]],
    today: Optional[date] = None
) -> list[dict[str, Any]]:
    """
    Vaccinations expiring within 30 days and checkups older than six months

    High priority first; a vaccine expiring within a week is high.
    """
    today = today or date.today()
    reminders = []

    for pet in pets:
        for vaccination in pet.medical.vaccinations:
            if not vaccination.expires_at:
                continue
            days_left = (vaccination.expires_at - today).days
            if 0 < days_left <= VACCINE_WARNING_DAYS:
                reminders.append({
                    "pet_id": pet.pet_id,
                    "pet_name": pet.name,
                    "type": "vaccination",
                    "message": f"{vaccination.name} vaccination expires in {days_left} days",
                    "priority": "high" if days_left <= 7 else "medium",
                    "due_date": vaccination.expires_at.isoformat()
                })

        last_visit = last_visits.get(pet.pet_id)
        if last_visit:
            days_since = (today - as_utc(last_visit).date()).days
            if days_since > CHECKUP_OVERDUE_DAYS:
                reminders.append({
                    "pet_id": pet.pet_id,
                    "pet_name": pet.name,
                    "type": "checkup",
                    "message": f"{pet.name} hasn't had a checkup in {days_since // 30} months",
                    "priority": "medium"
                })

    order = {"high": 0, "medium": 1, "low": 2}
    return sorted(reminders, key=lambda r: order[r["priority"]])


def summarize(doc: dict) -> dict:
    """Compact appointment line for dashboard lists"""
    return {
        "appointment_id": doc["appointment_id"],
        "client_id": doc["client_id"],
        "pet_id": doc["pet_id"],
        "staff_id": doc.get("staff_id"),
        "service": doc["service"]["name"],
        "scheduled_date": doc["scheduled_date"],
        "start_time": doc["start_time"],
        "end_time": doc["end_time"],
        "status": doc["status"],
    }


class DashboardService:
    """Read-only rollups over the operational collections"""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    async def _revenue(self, query: dict) -> float:
        docs = await self.db.invoices.find(
            {**query, "status": {"$in": [InvoiceStatus.PAID.value, InvoiceStatus.PARTIAL.value]}, "deleted_at": None},
            {"paid_amount": 1}
        ).to_list(length=None)
        return round(sum(d.get("paid_amount", 0) for d in docs), 2)

    async def _appointments(self, query: dict, sort: list, limit: int) -> list[dict]:
        cursor = self.db.appointments.find({**query, "deleted_at": None}).sort(sort).limit(limit)
        return [summarize(doc) for doc in await cursor.to_list(length=limit)]

    @staticmethod
    def _date_filter(since: Optional[date]) -> dict:
        return {"scheduled_date": {"$gte": since.isoformat()}} if since else {}

    async def overview(self, user: User, period: Optional[str] = None) -> dict[str, Any]:
        """Dispatch to the dashboard for the caller's role"""
        since = period_start(period)
        if user.role == UserRole.SUPER_ADMIN:
            return await self._super_admin(since)
        if user.role == UserRole.BUSINESS_ADMIN:
            return await self._business_admin(user.business_id, since)
        if user.role == UserRole.STAFF:
            return await self._staff(user, since)
        return await self._client(user)

    async def _super_admin(self, since: Optional[date]) -> dict[str, Any]:
        recent = await self.db.businesses.find({"deleted_at": None}).sort("created_at", -1).limit(5).to_list(length=5)
        return {
            "role": UserRole.SUPER_ADMIN.value,
            "total_users": await self.db.users.count_documents({"is_active": True, "deleted_at": None}),
            "total_businesses": await self.db.businesses.count_documents({"is_active": True, "deleted_at": None}),
            "total_appointments": await self.db.appointments.count_documents(
                {"deleted_at": None, **self._date_filter(since)}
            ),
            "total_revenue": await self._revenue({}),
            "users_by_role": {
                role.value: await self.db.users.count_documents({"role": role.value, "deleted_at": None})
                for role in UserRole
            },
            "recent_businesses": [
                {"business_id": b["business_id"], "name": b["name"], "created_at": b["created_at"]}
                for b in recent
            ],
        }

    async def _business_admin(self, business_id: Optional[str], since: Optional[date]) -> dict[str, Any]:
        scope = {"business_id": business_id}
        today = date.today().isoformat()
        period_scope = {**scope, "deleted_at": None, **self._date_filter(since)}

        by_status = {
            s.value: await self.db.appointments.count_documents({**period_scope, "status": s.value})
            for s in AppointmentStatus
        }

        services = await self.db.services.find(
            {**scope, "deleted_at": None}
        ).sort("times_booked", -1).limit(5).to_list(length=5)

        staff_performance = []
        for staff in await self.db.users.find(
            {"role": UserRole.STAFF.value, "business_ids": business_id, "deleted_at": None}
        ).to_list(length=None):
            staff_performance.append({
                "staff_id": staff["user_id"],
                "name": f"{staff['first_name']} {staff['last_name']}",
                "completed": await self.db.appointments.count_documents({
                    **period_scope, "staff_id": staff["user_id"], "status": AppointmentStatus.COMPLETED.value
                }),
            })

        return {
            "role": UserRole.BUSINESS_ADMIN.value,
            "total_clients": await self.db.users.count_documents({
                "role": UserRole.CLIENT.value, "business_ids": business_id, "is_active": True, "deleted_at": None
            }),
            "total_pets": await self.db.pets.count_documents({"business_ids": business_id, "deleted_at": None}),
            "total_appointments": sum(by_status.values()),
            "appointments_by_status": by_status,
            "total_revenue": await self._revenue(scope),
            "pending_invoices": await self.db.invoices.count_documents({
                **scope, "deleted_at": None,
                "status": {"$in": [InvoiceStatus.SENT.value, InvoiceStatus.PARTIAL.value, InvoiceStatus.OVERDUE.value]}
            }),
            "today_appointments": await self._appointments(
                {**scope, "scheduled_date": today}, [("start_time", 1)], 50
            ),
            "upcoming_appointments": await self._appointments(
                {**scope, "scheduled_date": {"$gt": today}, "status": {"$in": [s.value for s in ACTIVE_STATUSES]}},
                [("scheduled_date", 1), ("start_time", 1)], 10
            ),
            "popular_services": [
                {"service_id": s["service_id"], "name": s["name"], "times_booked": s.get("times_booked", 0)}
                for s in services
            ],
            "staff_performance": sorted(staff_performance, key=lambda s: s["completed"], reverse=True),
        }

    async def _staff(self, user: User, since: Optional[date]) -> dict[str, Any]:
        scope = {"staff_id": user.user_id}
        today = date.today()
        week_end = (today + timedelta(days=6)).isoformat()

        completed_query = {
            **scope, "status": AppointmentStatus.COMPLETED.value, "deleted_at": None, **self._date_filter(since)
        }
        rated = await self.db.appointments.find(
            {**completed_query, "rating": {"$ne": None}}, {"rating": 1}
        ).to_list(length=None)

        return {
            "role": UserRole.STAFF.value,
            "today_schedule": await self._appointments(
                {**scope, "scheduled_date": today.isoformat()}, [("start_time", 1)], 50
            ),
            "week_schedule": await self._appointments(
                {**scope, "scheduled_date": {"$gt": today.isoformat(), "$lte": week_end},
                 "status": {"$in": [s.value for s in ACTIVE_STATUSES]}},
                [("scheduled_date", 1), ("start_time", 1)], 100
            ),
            "completed": await self.db.appointments.count_documents(completed_query),
            "average_rating": round(sum(r["rating"] for r in rated) / len(rated), 2) if rated else None,
        }

    async def _client(self, user: User) -> dict[str, Any]:
        scope = {"client_id": user.user_id}
        today = date.today().isoformat()

        pets = [Pet(**doc) for doc in await self.db.pets.find(
            {"owner_id": user.user_id, "status": PetStatus.ACTIVE.value, "deleted_at": None}
        ).to_list(length=None)]

        last_visits: dict[str, Optional[datetime]] = {}
        for pet in pets:
            last = await self.db.appointments.find_one(
                {"pet_id": pet.pet_id, "status": AppointmentStatus.COMPLETED.value, "deleted_at": None},
                sort=[("completed_at", -1)]
            )
            last_visits[pet.pet_id] = last.get("completed_at") if last else None

        return {
            "role": UserRole.CLIENT.value,
            "pets": [{"pet_id": p.pet_id, "name": p.name, "species": p.species.value} for p in pets],
            "upcoming_appointments": await self._appointments(
                {**scope, "scheduled_date": {"$gte": today}, "status": {"$in": [s.value for s in ACTIVE_STATUSES]}},
                [("scheduled_date", 1), ("start_time", 1)], 10
            ),
            "recent_appointments": await self._appointments(
                {**scope, "status": {"$in": [s.value for s in (
                    AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW
                )]}},
                [("scheduled_date", -1), ("start_time", -1)], 10
            ),
            "outstanding_balance": await self._outstanding(scope),
            "health_reminders": pet_health_reminders(pets, last_visits),
        }

    async def _outstanding(self, scope: dict) -> float:
        docs = await self.db.invoices.find({
            **scope, "deleted_at": None,
            "status": {"$in": [InvoiceStatus.SENT.value, InvoiceStatus.PARTIAL.value, InvoiceStatus.OVERDUE.value]}
        }).to_list(length=None)
        return round(sum(d["totals"]["total"] - d.get("paid_amount", 0) for d in docs), 2)

    async def quick_stats(self, user: User) -> dict[str, Any]:
        """Four headline numbers for the top of the dashboard"""
        if user.role == UserRole.SUPER_ADMIN:
            return {
                "total_users": await self.db.users.count_documents({"is_active": True, "deleted_at": None}),
                "total_businesses": await self.db.businesses.count_documents({"is_active": True, "deleted_at": None}),
                "total_appointments": await self.db.appointments.count_documents({"deleted_at": None}),
                "total_revenue": await self._revenue({}),
            }

        if user.role == UserRole.CLIENT:
            scope = {"client_id": user.user_id}
            return {
                "total_pets": await self.db.pets.count_documents({"owner_id": user.user_id, "deleted_at": None}),
                "total_appointments": await self.db.appointments.count_documents({**scope, "deleted_at": None}),
                "upcoming_appointments": await self.db.appointments.count_documents({
                    **scope, "deleted_at": None, "scheduled_date": {"$gte": date.today().isoformat()},
                    "status": {"$in": [s.value for s in ACTIVE_STATUSES]}
                }),
                "total_spent": await self._revenue(scope),
            }

        scope = {"business_id": user.business_id}
        return {
            "total_clients": await self.db.users.count_documents({
                "role": UserRole.CLIENT.value, "business_ids": user.business_id, "is_active": True, "deleted_at": None
            }),
            "total_appointments": await self.db.appointments.count_documents({**scope, "deleted_at": None}),
            "total_revenue": await self._revenue(scope),
            "appointments_today": await self.db.appointments.count_documents({
                **scope, "deleted_at": None, "scheduled_date": date.today().isoformat()
            }),
        }

    async def recent_activity(self, user: User, limit: int = 20) -> list[dict[str, Any]]:
        """Latest audit entries the caller may see"""
        audit = AuditService(self.db)
        if user.role == UserRole.SUPER_ADMIN:
            logs, _ = await audit.get_logs(limit=limit)
        elif user.role == UserRole.BUSINESS_ADMIN:
            logs, _ = await audit.get_logs(business_id=user.business_id, limit=limit)
        else:
            logs, _ = await audit.get_logs(user_id=user.user_id, limit=limit)

        return [
            {
                "log_id": log.log_id,
                "action": log.action,
                "resource": log.resource,
                "resource_id": log.resource_id,
                "user_id": log.user_id,
                "created_at": log.created_at,
                "age_minutes": int((utc_now() - as_utc(log.created_at)).total_seconds() // 60),
            }
            for log in logs
        ]
