"""Tests for POST /bookings."""
from __future__ import annotations

from unittest.mock import patch

import pytest

from app.extensions import db
from app.models import Booking, Service

WEEKDAY_TIME = "2026-10-21T10:00:00"  # Wednesday
WEEKEND_TIME = "2026-10-24T10:00:00"  # Saturday


def _book(client, headers, service_id, when=WEEKDAY_TIME, **extra):
    body = {"service_id": service_id, "customer_contact": "973-555-0199", "preferred_time": when}
    body.update(extra)
    return client.post("/bookings", json=body, headers=headers)


def test_create_weekday_booking_201(app, client, make_user, make_service, auth_header, events) -> None:
    provider_id = make_user("Pat Provider", "pat@example.com", account_type="provider")
    customer_id = make_user()
    service_id = make_service(provider_id, weekday_price=30.0, weekday_slots=3, weekday_slots_used=1)

    response = _book(client, auth_header(customer_id), service_id, notes="Short on the sides")
    data = response.get_json()

    assert response.status_code == 201
    assert data["booking"]["status"] == "pending"
    assert data["booking"]["price"] == 30
    assert data["booking"]["is_weekend"] is False
    assert data["booking"]["provider_id"] == provider_id
    assert data["booking"]["notes"] == "Short on the sides"
    assert db.session.get(Service, service_id).weekday_slots_used == 2

    assert [name for name, _ in events] == ["booking.created"]
    payload = events[0][1]
    assert payload["customer"]["user_id"] == customer_id
    assert payload["service"]["id"] == service_id


def test_create_weekend_booking_uses_weekend_price(app, client, make_user, make_service, auth_header, events) -> None:
    customer_id = make_user()
    service_id = make_service(None, weekend_price=45.0, weekend_slots=2)

    response = _book(client, auth_header(customer_id), service_id, when=WEEKEND_TIME)
    data = response.get_json()

    assert response.status_code == 201
    assert data["booking"]["price"] == 45
    assert data["booking"]["is_weekend"] is True
    service = db.session.get(Service, service_id)
    assert service.weekend_slots_used == 1
    assert service.weekday_slots_used == 0


def test_weekday_pool_full_409(app, client, make_user, make_service, auth_header, events) -> None:
    customer_id = make_user()
    service_id = make_service(None, weekday_slots=2, weekday_slots_used=2)

    response = _book(client, auth_header(customer_id), service_id)
    data = response.get_json()

    assert response.status_code == 409
    assert data["error"] == "capacity_exceeded"
    assert Booking.query.count() == 0
    assert db.session.get(Service, service_id).weekday_slots_used == 2
    assert events == []


def test_full_weekday_pool_does_not_block_weekend(app, client, make_user, make_service, auth_header, events) -> None:
    customer_id = make_user()
    service_id = make_service(None, weekday_slots=1, weekday_slots_used=1, weekend_slots=1)

    response = _book(client, auth_header(customer_id), service_id, when=WEEKEND_TIME)

    assert response.status_code == 201


def test_unlimited_pool_never_counts(app, client, make_user, make_service, auth_header, events) -> None:
    customer_id = make_user()
    service_id = make_service(None, weekday_slots=None)

    for _ in range(4):
        assert _book(client, auth_header(customer_id), service_id).status_code == 201

    assert Booking.query.count() == 4
    assert db.session.get(Service, service_id).weekday_slots_used == 0


def test_inactive_deal_409(app, client, make_user, make_service, auth_header, events) -> None:
    customer_id = make_user()
    service_id = make_service(None, deal_active=False)

    response = _book(client, auth_header(customer_id), service_id)

    assert response.status_code == 409
    assert response.get_json()["error"] == "deal_inactive"


def test_missing_service_404(app, client, make_user, auth_header, events) -> None:
    customer_id = make_user()

    response = _book(client, auth_header(customer_id), 999)

    assert response.status_code == 404
    assert response.get_json()["error"] == "not_found"


def test_soft_deleted_service_404(app, client, make_user, make_service, auth_header, events) -> None:
    customer_id = make_user()
    service_id = make_service(None, is_active=False)

    assert _book(client, auth_header(customer_id), service_id).status_code == 404


def test_invalid_preferred_time_400(app, client, make_user, make_service, auth_header) -> None:
    customer_id = make_user()
    service_id = make_service(None)

    response = _book(client, auth_header(customer_id), service_id, when="next tuesday")

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_payload"


def test_missing_contact_400(app, client, make_user, make_service, auth_header) -> None:
    customer_id = make_user()
    service_id = make_service(None)

    response = client.post(
        "/bookings",
        json={"service_id": service_id, "preferred_time": WEEKDAY_TIME},
        headers=auth_header(customer_id),
    )

    assert response.status_code == 400


@pytest.mark.parametrize("service_id", [{"x": 1}, [1], "1", True])
def test_non_integer_service_id_400(app, client, make_user, make_service, auth_header, service_id) -> None:
    customer_id = make_user()
    make_service(None)

    response = _book(client, auth_header(customer_id), service_id)

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_payload"
    assert Booking.query.count() == 0


def test_requires_login_401(app, client, make_service) -> None:
    service_id = make_service(None)

    response = client.post("/bookings", json={"service_id": service_id})

    assert response.status_code == 401
    assert response.get_json()["error"] == "unauthorized"


def test_price_snapshot_survives_service_edit(app, client, make_user, make_service, auth_header, events) -> None:
    provider_id = make_user("Pat Provider", "pat@example.com", account_type="provider")
    customer_id = make_user()
    service_id = make_service(provider_id, weekday_price=30.0)

    booking_id = _book(client, auth_header(customer_id), service_id).get_json()["booking"]["id"]

    response = client.put(
        f"/services/{service_id}",
        json={"weekday_price": 55.0, "weekend_price": 70.0},
        headers=auth_header(provider_id),
    )
    assert response.status_code == 200

    booking = db.session.get(Booking, booking_id)
    assert booking.price == 30.0
    assert booking.is_weekend is False


def test_notification_failure_does_not_fail_booking(app, client, make_user, make_service, auth_header) -> None:
    customer_id = make_user()
    service_id = make_service(None)

    with patch("app.notifications.send_email", side_effect=RuntimeError("provider down")), patch(
        "app.notifications.send_sms", side_effect=RuntimeError("provider down")
    ):
        response = _book(client, auth_header(customer_id), service_id)

    assert response.status_code == 201
    assert Booking.query.count() == 1
