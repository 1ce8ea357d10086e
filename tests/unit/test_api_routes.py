"""
Unit tests for API v1 routes.

Tests endpoint responses with the domain services wired to in-memory
fakes, plus mocked services for the failure paths.
"""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from phone_identity.adapters.repository.postgres import PostgresOneTimeCodeStore
from phone_identity.api.dependencies import (
    get_code_store,
    get_login_service,
    get_password_reset_service,
    get_registration_service,
)
from phone_identity.api.errors import register_exception_handlers
from phone_identity.api.v1.routes import FORGOT_PASSWORD_MESSAGE, router
from phone_identity.config.settings import Settings, get_settings
from phone_identity.domain.exceptions import DeliveryFailed, InvalidCredentials
from phone_identity.domain.tokens import TokenIssuer
from phone_identity.domain.registration import RegistrationService

PHONE = "+963991234567"
PASSWORD = "s3cure-password"
TEST_SECRET = "test-secret-key"


@pytest.fixture
def app(registration, password_reset, login_service) -> FastAPI:
    """Create test FastAPI application wired to in-memory services."""
    test_app = FastAPI()
    register_exception_handlers(test_app)
    test_app.include_router(router, prefix="/v1")

    # Mock the app.state.pool for dependency injection
    test_app.state.pool = MagicMock()

    test_app.dependency_overrides[get_settings] = lambda: Settings(code_ttl_seconds=300)
    test_app.dependency_overrides[get_registration_service] = lambda: registration
    test_app.dependency_overrides[get_password_reset_service] = lambda: password_reset
    test_app.dependency_overrides[get_login_service] = lambda: login_service

    return test_app


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    """Create test client for the application."""
    return TestClient(app)


def _register_and_verify(client: TestClient, use_codes) -> None:
    use_codes("482913")
    client.post("/v1/register", json={"phone": PHONE, "full_name": "Lina Haddad"})
    client.post("/v1/register/verify", json={"phone": PHONE, "code": "482913"})


class TestRegisterEndpoint:
    """Tests for POST /v1/register."""

    def test_register_success_returns_201(self, client: TestClient, sms) -> None:
        response = client.post(
            "/v1/register", json={"phone": "+963 99 123 4567", "full_name": "Lina Haddad"}
        )

        assert response.status_code == 201
        assert response.json() == {
            "message": "Verification code sent",
            "phone": PHONE,
            "expires_in_seconds": 300,
        }
        assert sms.sent[0][0] == PHONE

    def test_register_completed_account_returns_409(self, client: TestClient, accounts) -> None:
        accounts.add(PHONE, PASSWORD)

        response = client.post("/v1/register", json={"phone": PHONE, "full_name": "Lina Haddad"})

        assert response.status_code == 409
        assert "already exists" in response.json()["detail"]

    def test_register_delivery_failure_returns_503(self, client: TestClient, sms) -> None:
        sms.accept = False

        response = client.post("/v1/register", json={"phone": PHONE, "full_name": "Lina Haddad"})

        assert response.status_code == 503
        assert response.json()["detail"] == DeliveryFailed.detail

    def test_register_invalid_phone_returns_422(self, client: TestClient) -> None:
        response = client.post("/v1/register", json={"phone": "12", "full_name": "Lina Haddad"})

        assert response.status_code == 422


class TestVerifyRegistrationEndpoint:
    """Tests for POST /v1/register/verify."""

    def test_verify_success(self, client: TestClient, use_codes) -> None:
        use_codes("482913")
        client.post("/v1/register", json={"phone": PHONE, "full_name": "Lina Haddad"})

        response = client.post("/v1/register/verify", json={"phone": PHONE, "code": "482913"})

        assert response.status_code == 200
        assert response.json() == {
            "message": "Phone number verified",
            "verified": True,
            "next": "/v1/register/complete",
        }

    def test_wrong_code_returns_remaining_attempts(self, client: TestClient, use_codes) -> None:
        use_codes("482913")
        client.post("/v1/register", json={"phone": PHONE, "full_name": "Lina Haddad"})

        response = client.post("/v1/register/verify", json={"phone": PHONE, "code": "482910"})

        assert response.status_code == 400
        assert response.json()["remaining_attempts"] == 2

    def test_exhausted_returns_429(self, client: TestClient, use_codes) -> None:
        use_codes("482913")
        client.post("/v1/register", json={"phone": PHONE, "full_name": "Lina Haddad"})
        for wrong in ("000000", "111111", "222222"):
            client.post("/v1/register/verify", json={"phone": PHONE, "code": wrong})

        response = client.post("/v1/register/verify", json={"phone": PHONE, "code": "482913"})

        assert response.status_code == 429

    def test_expired_returns_400(self, client: TestClient, clock, use_codes) -> None:
        use_codes("482913")
        client.post("/v1/register", json={"phone": PHONE, "full_name": "Lina Haddad"})
        clock.advance(minutes=6)

        response = client.post("/v1/register/verify", json={"phone": PHONE, "code": "482913"})

        assert response.status_code == 400
        assert "expired" in response.json()["detail"]
        assert "remaining_attempts" not in response.json()

    def test_no_code_returns_400(self, client: TestClient) -> None:
        response = client.post("/v1/register/verify", json={"phone": PHONE, "code": "482913"})

        assert response.status_code == 400


class TestCompleteRegistrationEndpoint:
    """Tests for POST /v1/register/complete."""

    def test_complete_returns_tokens(self, client: TestClient, use_codes) -> None:
        _register_and_verify(client, use_codes)

        response = client.post(
            "/v1/register/complete",
            json={"phone": PHONE, "password": PASSWORD, "email": "lina@example.com"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["role"] == "customer"
        assert body["message"] == "Account created"
        assert body["access_token"]
        assert body["refresh_token"]

    def test_complete_without_verification_returns_400(self, client: TestClient) -> None:
        client.post("/v1/register", json={"phone": PHONE, "full_name": "Lina Haddad"})

        response = client.post("/v1/register/complete", json={"phone": PHONE, "password": PASSWORD})

        assert response.status_code == 400
        assert "expired" in response.json()["detail"]

    def test_short_password_returns_422(self, client: TestClient) -> None:
        response = client.post("/v1/register/complete", json={"phone": PHONE, "password": "short"})

        assert response.status_code == 422

    @pytest.mark.parametrize("password", ["p" * 73, "\u00e9" * 37])
    def test_password_over_72_bytes_returns_422(self, client: TestClient, use_codes, password) -> None:
        _register_and_verify(client, use_codes)

        response = client.post("/v1/register/complete", json={"phone": PHONE, "password": password})

        assert response.status_code == 422


class TestLoginEndpoint:
    """Tests for POST /v1/login and POST /v1/token/refresh."""

    def test_login_success(self, client: TestClient, accounts) -> None:
        account = accounts.add(PHONE, PASSWORD)

        response = client.post("/v1/login", json={"phone": PHONE, "password": PASSWORD})

        assert response.status_code == 200
        assert response.json()["message"] == "Logged in"
        recorded = accounts.login_attempts[0]
        assert recorded[0] == account.id
        assert recorded[1] == "testclient"
        assert recorded[3] is True

    def test_unknown_phone_and_wrong_password_look_the_same(self, client: TestClient, accounts) -> None:
        accounts.add(PHONE, PASSWORD)

        unknown = client.post("/v1/login", json={"phone": "+963990000000", "password": PASSWORD})
        wrong = client.post("/v1/login", json={"phone": PHONE, "password": "wrong-password"})

        assert unknown.status_code == wrong.status_code == 401
        assert unknown.json() == wrong.json()

    def test_locked_returns_423(self, client: TestClient, accounts) -> None:
        account = accounts.add(PHONE, PASSWORD)
        accounts.locked.add(account.id)

        response = client.post("/v1/login", json={"phone": PHONE, "password": PASSWORD})

        assert response.status_code == 423

    def test_password_over_72_bytes_returns_401(self, client: TestClient, accounts) -> None:
        accounts.add(PHONE, PASSWORD)

        response = client.post("/v1/login", json={"phone": PHONE, "password": "p" * 100})

        assert response.status_code == 401
        assert response.json() == {"detail": InvalidCredentials.detail}

    def test_refresh_returns_access_token(self, client: TestClient, accounts) -> None:
        accounts.add(PHONE, PASSWORD)
        session = client.post("/v1/login", json={"phone": PHONE, "password": PASSWORD}).json()

        response = client.post("/v1/token/refresh", json={"refresh_token": session["refresh_token"]})

        assert response.status_code == 200
        assert response.json()["access_token"]

    def test_refresh_with_access_token_returns_401(self, client: TestClient, accounts) -> None:
        accounts.add(PHONE, PASSWORD)
        session = client.post("/v1/login", json={"phone": PHONE, "password": PASSWORD}).json()

        response = client.post("/v1/token/refresh", json={"refresh_token": session["access_token"]})

        assert response.status_code == 401
        assert response.json() == {"detail": "Invalid refresh token"}


class TestMeEndpoint:
    """Tests for GET /v1/me."""

    def _login(self, client: TestClient) -> dict:
        return client.post("/v1/login", json={"phone": PHONE, "password": PASSWORD}).json()

    def test_returns_account(self, client: TestClient, accounts) -> None:
        account = accounts.add(PHONE, PASSWORD, role="admin")
        session = self._login(client)

        response = client.get("/v1/me", headers={"Authorization": f"Bearer {session['access_token']}"})

        assert response.status_code == 200
        assert response.json() == {
            "id": account.id,
            "phone": PHONE,
            "full_name": "Test User",
            "email": None,
            "role": "admin",
            "phone_verified": True,
        }

    def test_missing_token_returns_401(self, client: TestClient) -> None:
        response = client.get("/v1/me")

        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"

    def test_refresh_token_returns_401(self, client: TestClient, accounts) -> None:
        accounts.add(PHONE, PASSWORD)
        session = self._login(client)

        response = client.get("/v1/me", headers={"Authorization": f"Bearer {session['refresh_token']}"})

        assert response.status_code == 401

    def test_expired_token_returns_401(self, client: TestClient, accounts, clock) -> None:
        account = accounts.add(PHONE, PASSWORD)
        past = type(clock)(clock.now() - timedelta(days=8))
        expired = TokenIssuer(secret_key=TEST_SECRET, clock=past).issue(account.id, PHONE, "customer")

        response = client.get("/v1/me", headers={"Authorization": f"Bearer {expired.access_token}"})

        assert response.status_code == 401

    def test_forged_token_returns_401(self, client: TestClient, accounts, clock) -> None:
        account = accounts.add(PHONE, PASSWORD)
        forged = TokenIssuer(secret_key="attacker-secret", clock=clock).issue(account.id, PHONE, "admin")

        response = client.get("/v1/me", headers={"Authorization": f"Bearer {forged.access_token}"})

        assert response.status_code == 401
        assert response.json() == {"detail": "Could not validate credentials"}

class TestPasswordResetEndpoints:
    """Tests for the /v1/password endpoints."""

    def test_forgot_response_is_identical_for_unknown_phone(self, client: TestClient, accounts, sms) -> None:
        accounts.add(PHONE, PASSWORD)

        known = client.post("/v1/password/forgot", json={"phone": PHONE})
        unknown = client.post("/v1/password/forgot", json={"phone": "+963990000000"})

        assert known.status_code == unknown.status_code == 202
        assert known.json() == unknown.json() == {"message": FORGOT_PASSWORD_MESSAGE}
        assert len(sms.sent) == 1

    def test_forgot_hides_delivery_failure(self, client: TestClient, accounts, sms) -> None:
        accounts.add(PHONE, PASSWORD)
        sms.accept = False

        response = client.post("/v1/password/forgot", json={"phone": PHONE})

        assert response.status_code == 202

    def test_full_reset_then_login(self, client: TestClient, accounts, use_codes) -> None:
        accounts.add(PHONE, PASSWORD)
        use_codes("482913")
        client.post("/v1/password/forgot", json={"phone": PHONE})

        verified = client.post("/v1/password/verify", json={"phone": PHONE, "code": "482913"})
        reset = client.post("/v1/password/reset", json={"phone": PHONE, "password": "brand-new-pass"})
        old_login = client.post("/v1/login", json={"phone": PHONE, "password": PASSWORD})
        new_login = client.post("/v1/login", json={"phone": PHONE, "password": "brand-new-pass"})

        assert verified.json()["next"] == "/v1/password/reset"
        assert reset.status_code == 200
        assert old_login.status_code == 401
        assert new_login.status_code == 200

    def test_reset_without_verification_returns_400(self, client: TestClient, accounts) -> None:
        accounts.add(PHONE, PASSWORD)

        response = client.post("/v1/password/reset", json={"phone": PHONE, "password": "brand-new-pass"})

        assert response.status_code == 400


class TestServiceFaults:
    """Unexpected errors never leak internals."""

    def test_unexpected_error_returns_generic_503(self, app: FastAPI) -> None:
        mock_service = MagicMock(spec=RegistrationService)
        mock_service.begin_registration.side_effect = RuntimeError("connection refused to 10.0.0.5")
        app.dependency_overrides[get_registration_service] = lambda: mock_service
        client = TestClient(app, raise_server_exceptions=False)

        response = client.post("/v1/register", json={"phone": PHONE, "full_name": "Lina Haddad"})

        assert response.status_code == 503
        assert response.json() == {"detail": "Service unavailable"}


class TestDependencies:
    """The API always persists codes in PostgreSQL."""

    def test_code_store_uses_app_pool(self) -> None:
        request = MagicMock()

        store = get_code_store(request)

        assert isinstance(store, PostgresOneTimeCodeStore)
        assert store._pool is request.app.state.pool
