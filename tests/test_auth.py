"""
Authentication Tests
Login lockout, rate limiting and role-scoped access
"""

import pytest

TEST_PASSWORD = "Secret123!"


class TestLoginLockout:
    """Tests for failed-login lockout"""

    @pytest.mark.asyncio
    async def test_successful_login_resets_failures(self, mock_db, client_user):
        from app.services.auth_service import AuthService

        client_user.failed_login_attempts = 3
        await mock_db.users.insert_one(client_user.to_mongo())

        user = await AuthService(mock_db).authenticate("OWNER@example.com", TEST_PASSWORD)

        assert user.user_id == client_user.user_id
        stored = await mock_db.users.find_one({"user_id": client_user.user_id})
        assert stored["failed_login_attempts"] == 0
        assert stored["last_login_at"] is not None

    @pytest.mark.asyncio
    async def test_account_locks_after_five_failures(self, mock_db, client_user):
        from app.services.auth_service import AuthError, AuthService

        await mock_db.users.insert_one(client_user.to_mongo())
        service = AuthService(mock_db)

        for _ in range(5):
            with pytest.raises(AuthError) as exc:
                await service.authenticate(client_user.email, "wrong-password")
            assert exc.value.code == "INVALID_CREDENTIALS"

        stored = await mock_db.users.find_one({"user_id": client_user.user_id})
        assert stored["failed_login_attempts"] == 5
        assert stored["locked_until"] is not None

        # Even the right password is refused while locked
        with pytest.raises(AuthError) as exc:
            await service.authenticate(client_user.email, TEST_PASSWORD)
        assert exc.value.code == "ACCOUNT_LOCKED"
        assert exc.value.status_code == 423

    @pytest.mark.asyncio
    async def test_four_failures_do_not_lock(self, mock_db, client_user):
        from app.services.auth_service import AuthError, AuthService

        await mock_db.users.insert_one(client_user.to_mongo())
        service = AuthService(mock_db)

        for _ in range(4):
            with pytest.raises(AuthError):
                await service.authenticate(client_user.email, "wrong-password")

        user = await service.authenticate(client_user.email, TEST_PASSWORD)
        assert user.failed_login_attempts == 0

    @pytest.mark.asyncio
    async def test_deactivated_account_rejected(self, mock_db, client_user):
        from app.services.auth_service import AuthError, AuthService

        client_user.is_active = False
        await mock_db.users.insert_one(client_user.to_mongo())

        with pytest.raises(AuthError) as exc:
            await AuthService(mock_db).authenticate(client_user.email, TEST_PASSWORD)
        assert exc.value.code == "ACCOUNT_DISABLED"


class TestRateLimiter:
    """Tests for the sliding-window limiter"""

    def test_blocks_after_limit(self):
        from app.middleware.rate_limit import RateLimiter

        limiter = RateLimiter(requests_per_minute=3)
        assert all(limiter.is_allowed("1.2.3.4", now=100.0 + i) for i in range(3))
        assert not limiter.is_allowed("1.2.3.4", now=104.0)
        assert limiter.is_allowed("5.6.7.8", now=104.0)

    def test_window_slides(self):
        from app.middleware.rate_limit import RateLimiter

        limiter = RateLimiter(requests_per_minute=2)
        limiter.is_allowed("ip", now=0.0)
        limiter.is_allowed("ip", now=30.0)
        assert not limiter.is_allowed("ip", now=59.0)
        assert limiter.get_retry_after("ip", now=59.0) == 2
        assert limiter.is_allowed("ip", now=61.0)

    @pytest.mark.asyncio
    async def test_login_endpoint_returns_429(self, api_client):
        from app.middleware.rate_limit import auth_rate_limiter

        auth_rate_limiter.reset()
        try:
            statuses = []
            for _ in range(auth_rate_limiter.requests_per_minute + 1):
                response = await api_client.post(
                    "/api/v1/auth/login",
                    json={"email": "nobody@example.com", "password": "nope"}
                )
                statuses.append(response.status_code)

            assert statuses[:-1] == [401] * auth_rate_limiter.requests_per_minute
            assert statuses[-1] == 429
            assert response.json()["error"]["code"] == "RATE_LIMITED"
            assert int(response.headers["Retry-After"]) > 0
        finally:
            auth_rate_limiter.reset()


class TestAccessControl:
    """Tests for token handling and role checks"""

    @pytest.mark.asyncio
    async def test_login_returns_tokens(self, api_client, admin_user):
        from app.middleware.rate_limit import auth_rate_limiter

        auth_rate_limiter.reset()
        response = await api_client.post(
            "/api/v1/auth/login",
            json={"email": admin_user.email, "password": TEST_PASSWORD}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["token_type"] == "bearer"
        assert body["data"]["user"]["role"] == "business_admin"

    @pytest.mark.asyncio
    async def test_missing_token_is_401(self, api_client):
        response = await api_client.get("/api/v1/auth/profile")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "NOT_AUTHENTICATED"

    @pytest.mark.asyncio
    async def test_profile_hides_password_hash(self, api_client, client_headers):
        response = await api_client.get("/api/v1/auth/profile", headers=client_headers)

        assert response.status_code == 200
        assert "password_hash" not in response.json()["data"]

    @pytest.mark.asyncio
    async def test_client_cannot_list_audit_logs(self, api_client, client_headers):
        response = await api_client.get("/api/v1/audit-logs", headers=client_headers)

        assert response.status_code == 403
