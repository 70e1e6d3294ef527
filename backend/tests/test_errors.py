"""
Tests for the error envelope and the contact form.
"""
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from storefront.core.config import settings
from storefront.core.errors import AppError, ErrorCode, validation_error
from storefront.main import create_app
from storefront.services.notification_service import notification_service


@pytest.fixture
def failing_client() -> TestClient:
    app = create_app()

    @app.get("/boom")
    async def boom() -> None:
        raise RuntimeError("database exploded")

    @app.get("/conflict")
    async def conflict() -> None:
        raise AppError(ErrorCode.CONFLICT, "Already there", 409, details={"id": "x"})

    return TestClient(app, raise_server_exceptions=False)


def test_unhandled_exception_is_hidden(failing_client):
    response = failing_client.get("/boom", headers={"x-request-id": "req-42"})

    assert response.status_code == 500
    assert response.json() == {
        "success": False,
        "error": {"code": "INTERNAL_SERVER_ERROR", "message": "An unexpected error occurred"},
        "requestId": "req-42",
    }


def test_app_error_envelope(failing_client):
    response = failing_client.get("/conflict")

    assert response.status_code == 409
    body = response.json()
    assert body["error"] == {"code": "CONFLICT", "message": "Already there", "details": {"id": "x"}}
    assert body["requestId"] == response.headers["x-request-id"]


def test_app_error_to_dict_omits_empty_details():
    assert validation_error("bad").to_dict() == {"code": "VALIDATION_ERROR", "message": "bad"}


def test_contact_without_admin_email(client):
    with patch.object(settings, "admin_email", None):
        response = client.post(
            "/api/contact",
            json={"name": "Jane", "email": "jane@example.com", "message": "Do you ship to Belgium?"},
        )

    assert response.status_code == 502
    assert response.json()["error"]["code"] == "EXTERNAL_SERVICE_ERROR"


def test_contact_forwards_message(client):
    send = AsyncMock(return_value=True)

    with patch.object(settings, "admin_email", "owner@example.com"), \
            patch.object(notification_service, "send_email", send):
        response = client.post(
            "/api/contact",
            json={
                "name": "Jane",
                "email": "jane@example.com",
                "subject": "Shipping",
                "message": "Do you ship to Belgium?",
            },
        )

    assert response.status_code == 200
    assert response.json() == {"success": True}
    to, subject, _, text = send.await_args.args
    assert to == "owner@example.com"
    assert "Shipping" in subject
    assert "jane@example.com" in text


def test_contact_validates_email(client):
    response = client.post(
        "/api/contact",
        json={"name": "Jane", "email": "not-an-email", "message": "Do you ship to Belgium?"},
    )

    assert response.status_code == 422
