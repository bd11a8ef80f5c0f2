"""
Unit tests for API routes.

Tests endpoint responses and error mapping with mocked dependencies.
"""

from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from enrollgate.adapters.repository.memory import InMemoryEnrollmentRepository
from enrollgate.api.dependencies import get_enrollment_service
from enrollgate.api.errors import register_error_handlers
from enrollgate.api.routes import CONFIRM_SUCCESS, ENROLL_SUCCESS, router
from enrollgate.config.settings import Settings
from enrollgate.domain.abuse import AbuseGate, RateBucket, RatePolicy
from enrollgate.domain.enrollment import EnrollmentService
from enrollgate.domain.exceptions import (
    AlreadySubscribed,
    BotSuspected,
    CodeExpired,
    DeliveryFailed,
    InvalidCode,
    InvalidEmail,
    InvalidInput,
    NoPendingVerification,
    RateLimited,
    StoreUnavailable,
)


@pytest.fixture
def app() -> FastAPI:
    """Create test FastAPI application."""
    test_app = FastAPI()
    register_error_handlers(test_app)
    test_app.include_router(router)

    test_app.state.settings = Settings(app_version="9.9.9")
    test_app.state.repository = InMemoryEnrollmentRepository()
    test_app.state.abuse_gate = AbuseGate({b: RatePolicy(100, 60) for b in RateBucket})
    test_app.state.notifier = MagicMock()

    return test_app


@pytest.fixture
def mock_service(app: FastAPI):
    service = MagicMock(spec=EnrollmentService)
    app.dependency_overrides[get_enrollment_service] = lambda: service
    yield service
    app.dependency_overrides.clear()


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    """Create test client for the application."""
    return TestClient(app, raise_server_exceptions=False)


class TestEnrollEndpoint:
    """Tests for POST /enroll endpoint."""

    def test_enroll_success_returns_200(self, client, mock_service) -> None:
        mock_service.issue.return_value = "user@example.com"

        response = client.post(
            "/enroll", json={"email": "user@example.com", "bot_token": "tok"}
        )

        assert response.status_code == 200
        assert response.json() == {"message": ENROLL_SUCCESS}
        mock_service.issue.assert_called_once_with("user@example.com", "tok", "testclient")

    def test_enroll_token_optional(self, client, mock_service) -> None:
        response = client.post("/enroll", json={"email": "user@example.com"})
        assert response.status_code == 200
        mock_service.issue.assert_called_once_with("user@example.com", None, "testclient")

    @pytest.mark.parametrize(
        ("exc", "status_code"),
        [
            (InvalidEmail(), 400),
            (AlreadySubscribed("user@example.com"), 400),
            (BotSuspected(), 403),
            (RateLimited(60), 429),
            (DeliveryFailed("provider down"), 500),
            (StoreUnavailable("pool exhausted"), 500),
        ],
    )
    def test_enroll_error_mapping(self, client, mock_service, exc, status_code) -> None:
        mock_service.issue.side_effect = exc

        response = client.post("/enroll", json={"email": "user@example.com"})

        assert response.status_code == status_code
        assert response.json() == {"error": exc.message}

    def test_rate_limited_sets_retry_after(self, client, mock_service) -> None:
        mock_service.issue.side_effect = RateLimited(123)

        response = client.post("/enroll", json={"email": "user@example.com"})

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "123"

    def test_internal_detail_not_leaked(self, client, mock_service) -> None:
        mock_service.issue.side_effect = DeliveryFailed("brevo 401 api-key=secret123")

        response = client.post("/enroll", json={"email": "user@example.com"})

        assert "secret123" not in response.text
        assert "brevo" not in response.text

    def test_unexpected_exception_is_opaque(self, client, mock_service) -> None:
        mock_service.issue.side_effect = RuntimeError("connection string postgres://x")

        response = client.post("/enroll", json={"email": "user@example.com"})

        assert response.status_code == 500
        assert "postgres" not in response.text
        assert "error" in response.json()

    def test_missing_email_returns_400(self, client, mock_service) -> None:
        response = client.post("/enroll", json={"bot_token": "tok"})
        assert response.status_code == 400
        assert "error" in response.json()
        mock_service.issue.assert_not_called()

    def test_non_json_body_returns_400(self, client, mock_service) -> None:
        response = client.post(
            "/enroll", content=b"not json", headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 400


class TestConfirmEndpoint:
    """Tests for POST /confirm endpoint."""

    def test_confirm_success_returns_200(self, client, mock_service) -> None:
        mock_service.confirm.return_value = "user@example.com"

        response = client.post("/confirm", json={"email": "user@example.com", "code": "482913"})

        assert response.status_code == 200
        assert response.json() == {"message": CONFIRM_SUCCESS}
        mock_service.confirm.assert_called_once_with("user@example.com", "482913", "testclient")

    @pytest.mark.parametrize(
        ("exc", "status_code"),
        [
            (InvalidInput(), 400),
            (NoPendingVerification(), 400),
            (CodeExpired(), 400),
            (InvalidCode(), 400),
            (RateLimited(30), 429),
            (StoreUnavailable(), 500),
        ],
    )
    def test_confirm_error_mapping(self, client, mock_service, exc, status_code) -> None:
        mock_service.confirm.side_effect = exc

        response = client.post("/confirm", json={"email": "user@example.com", "code": "482913"})

        assert response.status_code == status_code
        assert response.json() == {"error": exc.message}

    def test_missing_code_returns_400(self, client, mock_service) -> None:
        response = client.post("/confirm", json={"email": "user@example.com"})
        assert response.status_code == 400
        mock_service.confirm.assert_not_called()


class TestHealthEndpoint:
    """Tests for GET /health endpoint."""

    def test_health_returns_status_and_version(self, client) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "version": "9.9.9"}

    def test_health_subject_to_api_budget(self, app: FastAPI) -> None:
        policies = {b: RatePolicy(100, 60) for b in RateBucket}
        policies[RateBucket.API] = RatePolicy(2, 60)
        app.state.abuse_gate = AbuseGate(policies)
        client = TestClient(app)

        assert client.get("/health").status_code == 200
        assert client.get("/health").status_code == 200
        response = client.get("/health")

        assert response.status_code == 429
        assert "Retry-After" in response.headers

    def test_health_not_counted_against_issue_bucket(self, app: FastAPI) -> None:
        policies = {b: RatePolicy(1, 60) for b in RateBucket}
        policies[RateBucket.API] = RatePolicy(100, 60)
        app.state.abuse_gate = AbuseGate(policies)
        client = TestClient(app)

        for _ in range(5):
            assert client.get("/health").status_code == 200
        assert client.post("/enroll", json={"email": "a@b.com"}).status_code == 200

    def test_health_store_down_returns_opaque_500(self, app: FastAPI, client) -> None:
        repo = MagicMock()
        repo.ping.side_effect = StoreUnavailable("db down")
        app.state.repository = repo

        response = client.get("/health")

        assert response.status_code == 500
        assert "db down" not in response.text
