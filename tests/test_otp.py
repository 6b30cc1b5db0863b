"""
OTP Tests
Issuing, verifying and throttling one-time passcodes
"""

import pytest
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

from app.models.otp import OTPType


@pytest.fixture
def email_service():
    """Email service that always delivers"""
    service = MagicMock()
    service.send_otp = AsyncMock(return_value=MagicMock(success=True, message_id="msg_1", error=None))
    return service


@pytest.fixture
def otp_service(mock_db, email_service):
    from app.services.otp_service import OTPService

    return OTPService(mock_db, email_service=email_service)


class TestSendOTP:
    """Tests for issuing codes"""

    @pytest.mark.asyncio
    async def test_send_stores_and_emails_code(self, otp_service, email_service, mock_db):
        otp = await otp_service.send_otp("Owner@Example.com", OTPType.LOGIN, "Meera")

        assert len(otp.code) == 6 and otp.code.isdigit()
        assert await mock_db.otps.count_documents({"email": "owner@example.com"}) == 1
        email_service.send_otp.assert_awaited_once_with("owner@example.com", otp.code, "login", "Meera")

    @pytest.mark.asyncio
    async def test_resend_within_cooldown_rejected(self, otp_service):
        from app.services.otp_service import OTPError

        await otp_service.send_otp("owner@example.com", OTPType.LOGIN)

        with pytest.raises(OTPError) as exc:
            await otp_service.send_otp("owner@example.com", OTPType.LOGIN)
        assert exc.value.code == "OTP_COOLDOWN"
        assert exc.value.status_code == 429
        assert exc.value.retry_after > 0

    @pytest.mark.asyncio
    async def test_cooldown_is_per_type(self, otp_service, mock_db):
        await otp_service.send_otp("owner@example.com", OTPType.LOGIN)
        await otp_service.send_otp("owner@example.com", OTPType.PASSWORD_RESET)

        assert await mock_db.otps.count_documents({"email": "owner@example.com"}) == 2

    @pytest.mark.asyncio
    async def test_failed_delivery_discards_code(self, otp_service, email_service, mock_db):
        from app.services.otp_service import OTPError

        email_service.send_otp.return_value = MagicMock(success=False, error="Email service not configured")

        with pytest.raises(OTPError) as exc:
            await otp_service.send_otp("owner@example.com", OTPType.LOGIN)
        assert exc.value.code == "EMAIL_SEND_FAILED"
        assert await mock_db.otps.count_documents({}) == 0


class TestVerifyOTP:
    """Tests for checking codes"""

    @pytest.mark.asyncio
    async def test_correct_code_verifies_once(self, otp_service):
        from app.services.otp_service import OTPError

        otp = await otp_service.send_otp("owner@example.com", OTPType.LOGIN)

        assert await otp_service.verify_otp("owner@example.com", otp.code, OTPType.LOGIN) is True
        with pytest.raises(OTPError) as exc:
            await otp_service.verify_otp("owner@example.com", otp.code, OTPType.LOGIN)
        assert exc.value.code == "OTP_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_wrong_code_counts_down(self, otp_service):
        from app.services.otp_service import OTPError

        otp = await otp_service.send_otp("owner@example.com", OTPType.LOGIN)
        wrong = "000000" if otp.code != "000000" else "111111"

        with pytest.raises(OTPError) as exc:
            await otp_service.verify_otp("owner@example.com", wrong, OTPType.LOGIN)
        assert exc.value.code == "INVALID_OTP"
        assert "2 attempt(s) remaining" in exc.value.message

    @pytest.mark.asyncio
    async def test_fails_after_three_attempts(self, otp_service, mock_db):
        from app.services.otp_service import OTPError

        otp = await otp_service.send_otp("owner@example.com", OTPType.LOGIN)
        wrong = "000000" if otp.code != "000000" else "111111"

        codes = []
        for _ in range(3):
            with pytest.raises(OTPError) as exc:
                await otp_service.verify_otp("owner@example.com", wrong, OTPType.LOGIN)
            codes.append(exc.value.code)

        assert codes == ["INVALID_OTP", "INVALID_OTP", "OTP_MAX_ATTEMPTS"]
        assert await mock_db.otps.count_documents({}) == 0

        # The real code no longer works either
        with pytest.raises(OTPError):
            await otp_service.verify_otp("owner@example.com", otp.code, OTPType.LOGIN)

    @pytest.mark.asyncio
    async def test_expired_code_rejected(self, otp_service, mock_db):
        from app.models.common import utc_now
        from app.services.otp_service import OTPError

        otp = await otp_service.send_otp("owner@example.com", OTPType.LOGIN)
        await mock_db.otps.update_one(
            {"email": "owner@example.com"},
            {"$set": {"expires_at": utc_now() - timedelta(seconds=1)}}
        )

        with pytest.raises(OTPError) as exc:
            await otp_service.verify_otp("owner@example.com", otp.code, OTPType.LOGIN)
        assert exc.value.code == "OTP_EXPIRED"
        assert await mock_db.otps.count_documents({}) == 0

    @pytest.mark.asyncio
    async def test_code_is_bound_to_type(self, otp_service):
        from app.services.otp_service import OTPError

        otp = await otp_service.send_otp("owner@example.com", OTPType.LOGIN)

        with pytest.raises(OTPError) as exc:
            await otp_service.verify_otp("owner@example.com", otp.code, OTPType.PASSWORD_RESET)
        assert exc.value.code == "OTP_NOT_FOUND"
