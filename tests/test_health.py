"""Smoke tests for the uptime endpoint and the shared error body."""
from __future__ import annotations

from app import create_app


def test_health_endpoint() -> None:
    app = create_app({"TESTING": True, "SQLALCHEMY_DATABASE_URI": "sqlite://"})

    response = app.test_client().get("/health")

    assert response.status_code == 200
    assert response.json == {"status": "ok"}


def test_api_errors_share_one_shape(client) -> None:
    response = client.get("/bookings/customer")

    assert response.status_code == 401
    assert response.json == {"error": "unauthorized", "message": "authentication required"}


def test_cors_allows_bearer_header(client) -> None:
    response = client.options(
        "/bookings",
        headers={
            "Origin": "http://localhost:5173",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "Authorization",
        },
    )

    assert "authorization" in response.headers.get("Access-Control-Allow-Headers", "").lower()
