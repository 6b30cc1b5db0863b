"""
Reminder Tests
Reminder windows, SMS formatting and the reminder run
"""

import pytest
from datetime import date, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock


def make_appointment(scheduled_date: date, start_time: str, **extra):
    from app.models.appointment import Appointment, ServiceSnapshot

    return Appointment(
        business_id="bus_test123",
        client_id="usr_client123",
        pet_id="pet_test123",
        service=ServiceSnapshot(service_id="svc_test123", name="Full Groom", duration_minutes=60, price=1500),
        scheduled_date=scheduled_date,
        start_time=start_time,
        end_time="23:59",
        **extra
    )


class TestReminderWindow:
    """Tests for is_due"""

    def test_inside_window(self):
        from app.models.business import ReminderChannel
        from app.services.reminder_service import is_due

        appointment = make_appointment(date(2024, 7, 2), "10:00")
        now = datetime(2024, 7, 1, 12, 0)

        assert is_due(appointment, ReminderChannel(hours_before=24), now)
        assert not is_due(appointment, ReminderChannel(hours_before=2), now)

    def test_disabled_channel_never_due(self):
        from app.models.business import ReminderChannel
        from app.services.reminder_service import is_due

        appointment = make_appointment(date(2024, 7, 1), "13:00")
        now = datetime(2024, 7, 1, 12, 0)

        assert not is_due(appointment, ReminderChannel(enabled=False), now)

    def test_started_appointment_not_due(self):
        from app.models.business import ReminderChannel
        from app.services.reminder_service import is_due

        appointment = make_appointment(date(2024, 7, 1), "11:30")
        assert not is_due(appointment, ReminderChannel(), datetime(2024, 7, 1, 12, 0))


class TestSMSService:
    """Tests for SMS text and delivery"""

    def test_reminder_text(self):
        from app.services.sms_service import format_reminder_sms

        body = format_reminder_sms("Meera", "Bruno", "Full Groom", "Jul 02", "10:00", "Happy Paws Grooming")

        assert body.startswith("Hi Meera, reminder: Bruno's Full Groom at Happy Paws Grooming")
        assert "Jul 02 at 10:00" in body

    @pytest.mark.asyncio
    async def test_unconfigured_service_reports_failure(self):
        from app.services.sms_service import SMSService

        service = SMSService()
        service.client = None

        result = await service.send_sms("+919876543210", "hello")
        assert result.success is False
        assert result.error == "SMS service not configured"


class TestReminderRun:
    """Tests for send_due_reminders"""

    @pytest.mark.asyncio
    async def test_email_reminder_sent_once(self, mock_db, sample_business):
        from app.services.appointment_service import local_now
        from app.services.reminder_service import ReminderService

        await mock_db.businesses.insert_one(sample_business.to_mongo())
        starts = (local_now(sample_business.schedule.timezone) + timedelta(hours=3)).replace(second=0, microsecond=0)
        appointment = make_appointment(starts.date(), starts.strftime("%H:%M"))
        await mock_db.appointments.insert_one(appointment.to_mongo())

        appointments = MagicMock()
        appointments.notify = AsyncMock()
        service = ReminderService(mock_db, appointment_service=appointments, sms_service=MagicMock())

        stats = await service.send_due_reminders("bus_test123")

        assert stats == {"email_sent": 1, "sms_sent": 0, "failed": 0, "skipped": 0}
        appointments.notify.assert_awaited_once()
        assert appointments.notify.await_args.args[1] == "reminder"

        stored = await mock_db.appointments.find_one({"appointment_id": appointment.appointment_id})
        assert "email" in stored["reminders_sent"]

        stats = await service.send_due_reminders("bus_test123")
        assert stats["email_sent"] == 0

    @pytest.mark.asyncio
    async def test_cancelled_appointment_skipped(self, mock_db, sample_business):
        from app.models.appointment import AppointmentStatus
        from app.services.appointment_service import local_now
        from app.services.reminder_service import ReminderService

        await mock_db.businesses.insert_one(sample_business.to_mongo())
        starts = (local_now(sample_business.schedule.timezone) + timedelta(hours=3)).replace(second=0, microsecond=0)
        appointment = make_appointment(starts.date(), starts.strftime("%H:%M"), status=AppointmentStatus.CANCELLED)
        await mock_db.appointments.insert_one(appointment.to_mongo())

        appointments = MagicMock()
        appointments.notify = AsyncMock()
        stats = await ReminderService(
            mock_db, appointment_service=appointments, sms_service=MagicMock()
        ).send_due_reminders()

        assert stats["email_sent"] == 0
        appointments.notify.assert_not_awaited()
