"""
Reminder Service
Sends the email and SMS reminders each business has switched on
"""

import logging
from datetime import datetime, timedelta
from typing import Optional
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.models.appointment import Appointment, AppointmentStatus
from app.models.business import Business, ReminderChannel
from app.models.common import utc_now
from app.services.appointment_service import AppointmentService, local_now
from app.services.sms_service import SMSService, format_reminder_sms, get_sms_service

logger = logging.getLogger(__name__)


def is_due(appointment: Appointment, channel: ReminderChannel, now_local: datetime) -> bool:
    """Inside the reminder window and not yet started"""
    if not channel.enabled:
        return False
    starts = appointment.starts_at()
    return now_local < starts <= now_local + timedelta(hours=channel.hours_before)


class ReminderService:
    """Finds appointments inside their reminder window and notifies clients"""

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        appointment_service: Optional[AppointmentService] = None,
        sms_service: Optional[SMSService] = None
    ):
        self.db = db
        self.appointments = appointment_service or AppointmentService(db)
        self.sms = sms_service or get_sms_service()

    async def send_due_reminders(self, business_id: Optional[str] = None) -> dict[str, int]:
        """
        One pass over upcoming appointments

        Each channel is sent at most once per appointment, tracked in
        reminders_sent.
        """
        stats = {"email_sent": 0, "sms_sent": 0, "failed": 0, "skipped": 0}

        query = {"is_active": True, "deleted_at": None}
        if business_id:
            query["business_id"] = business_id
        businesses = await self.db.businesses.find(query).to_list(length=1000)

        for business_doc in businesses:
            business = Business(**business_doc)
            await self._process_business(business, stats)

        logger.info(f"Reminder run finished: {stats}")
        return stats

    async def _process_business(self, business: Business, stats: dict[str, int]) -> None:
        reminders = business.settings.auto_reminders
        if not (reminders.email.enabled or reminders.sms.enabled):
            return

        now_local = local_now(business.schedule.timezone)
        horizon = max(reminders.email.hours_before, reminders.sms.hours_before)
        last_day = (now_local + timedelta(hours=horizon)).date()

        docs = await self.db.appointments.find({
            "business_id": business.business_id,
            "status": {"$in": [AppointmentStatus.SCHEDULED.value, AppointmentStatus.CONFIRMED.value]},
            "scheduled_date": {"$gte": now_local.date().isoformat(), "$lte": last_day.isoformat()},
            "deleted_at": None
        }).to_list(length=1000)

        for doc in docs:
            appointment = Appointment(**doc)

            if "email" not in appointment.reminders_sent and is_due(appointment, reminders.email, now_local):
                await self.appointments.notify(appointment, "reminder")
                await self._mark_sent(appointment, "email")
                stats["email_sent"] += 1

            if "sms" not in appointment.reminders_sent and is_due(appointment, reminders.sms, now_local):
                sent = await self._send_sms(appointment, business)
                if sent is None:
                    stats["skipped"] += 1
                elif sent:
                    await self._mark_sent(appointment, "sms")
                    stats["sms_sent"] += 1
                else:
                    stats["failed"] += 1

    async def _send_sms(self, appointment: Appointment, business: Business) -> Optional[bool]:
        """None when the client has no phone or opted out of SMS"""
        client = await self.db.users.find_one({"user_id": appointment.client_id})
        if not client or not client.get("phone"):
            return None
        if not client.get("settings", {}).get("notifications", {}).get("sms", False):
            return None

        pet = await self.db.pets.find_one({"pet_id": appointment.pet_id})
        body = format_reminder_sms(
            client["first_name"],
            pet["name"] if pet else "your pet",
            appointment.service.name,
            appointment.scheduled_date.strftime("%b %d"),
            appointment.start_time,
            business.name
        )
        result = await self.sms.send_sms(client["phone"], body)
        return result.success

    async def _mark_sent(self, appointment: Appointment, channel: str) -> None:
        await self.db.appointments.update_one(
            {"appointment_id": appointment.appointment_id},
            {"$set": {f"reminders_sent.{channel}": utc_now()}}
        )
