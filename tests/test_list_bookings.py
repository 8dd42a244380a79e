"""Tests for booking listings and provider analytics."""
from __future__ import annotations

from datetime import datetime, timezone

from app.bookings import provider_analytics
from app.extensions import db
from app.models import Booking


def _booking(customer_id, service_id, provider_id, status="pending", price=30.0, created_at=None):
    booking = Booking(
        customer_id=customer_id,
        service_id=service_id,
        provider_id=provider_id,
        customer_name="Casey Customer",
        customer_contact="973-555-0199",
        preferred_time=datetime(2026, 10, 21, 10, 0),
        price=price,
        is_weekend=False,
        status=status,
    )
    if created_at is not None:
        booking.created_at = created_at
    db.session.add(booking)
    db.session.commit()
    return booking.booking_id


def test_customer_sees_only_own_bookings(client, make_user, make_service, auth_header) -> None:
    provider_id = make_user("Pat Provider", "pat@example.com", account_type="provider")
    casey_id = make_user()
    other_id = make_user("Olive Other", "olive@example.com")
    service_id = make_service(provider_id)
    mine = _booking(casey_id, service_id, provider_id)
    _booking(other_id, service_id, provider_id)

    response = client.get("/bookings/customer", headers=auth_header(casey_id))
    data = response.get_json()

    assert response.status_code == 200
    assert data["count"] == 1
    assert data["bookings"][0]["id"] == mine


def test_provider_sees_stored_and_owned_bookings(client, make_user, make_service, auth_header) -> None:
    provider_id = make_user("Pat Provider", "pat@example.com", account_type="provider")
    customer_id = make_user()
    owned_service = make_service(provider_id)
    # Booking recorded before the provider reference was filled in
    via_service = _booking(customer_id, owned_service, None)
    direct = _booking(customer_id, owned_service, provider_id, status="confirmed")
    elsewhere = make_service(None, provider_name="Someone Else")
    _booking(customer_id, elsewhere, None)

    response = client.get("/bookings/provider", headers=auth_header(provider_id))
    data = response.get_json()

    assert response.status_code == 200
    assert {b["id"] for b in data["bookings"]} == {via_service, direct}

    response = client.get("/bookings/provider?status=confirmed", headers=auth_header(provider_id))
    assert [b["id"] for b in response.get_json()["bookings"]] == [direct]


def test_provider_list_rejects_unknown_status(client, make_user, auth_header) -> None:
    provider_id = make_user("Pat Provider", "pat@example.com", account_type="provider")

    response = client.get("/bookings/provider?status=archived", headers=auth_header(provider_id))

    assert response.status_code == 400


def test_get_booking_visible_to_parties_only(client, make_user, make_service, auth_header) -> None:
    provider_id = make_user("Pat Provider", "pat@example.com", account_type="provider")
    customer_id = make_user()
    stranger_id = make_user("Sam Stranger", "sam@example.com")
    booking_id = _booking(customer_id, make_service(provider_id), provider_id)

    assert client.get(f"/bookings/{booking_id}", headers=auth_header(customer_id)).status_code == 200
    assert client.get(f"/bookings/{booking_id}", headers=auth_header(provider_id)).status_code == 200
    assert client.get(f"/bookings/{booking_id}", headers=auth_header(stranger_id)).status_code == 403


def test_provider_analytics_counts_and_earnings(app, make_user, make_service) -> None:
    provider_id = make_user("Pat Provider", "pat@example.com", account_type="provider")
    customer_id = make_user()
    service_id = make_service(provider_id)
    now = datetime(2026, 10, 21, 12, 0, tzinfo=timezone.utc)  # Wednesday

    _booking(customer_id, service_id, provider_id, "confirmed", 30.0, datetime(2026, 10, 21, 9, 0))
    _booking(customer_id, service_id, provider_id, "pending", 45.0, datetime(2026, 10, 21, 10, 0))
    _booking(customer_id, service_id, provider_id, "completed", 30.0, datetime(2026, 10, 19, 9, 0))
    _booking(customer_id, service_id, provider_id, "cancelled", 30.0, datetime(2026, 10, 2, 9, 0))
    _booking(customer_id, service_id, provider_id, "completed", 20.0, datetime(2026, 9, 15, 9, 0))

    analytics = provider_analytics(provider_id, now)

    assert analytics["daily"] == {"count": 2, "earnings": 30.0}
    assert analytics["weekly"] == {"count": 3, "earnings": 60.0}
    assert analytics["monthly"] == {"count": 4, "earnings": 60.0}
    assert analytics["all_time"] == {"count": 5, "earnings": 80.0}
    assert analytics["by_status"] == {"confirmed": 1, "pending": 1, "completed": 2, "cancelled": 1}
    assert analytics["pending"] == 1

    series = analytics["last_7_days"]
    assert [day["date"] for day in series] == [f"2026-10-{d}" for d in range(15, 22)]
    assert series[-1] == {"date": "2026-10-21", "label": "Wed, Oct 21", "count": 2, "earnings": 30.0}
    assert series[4] == {"date": "2026-10-19", "label": "Mon, Oct 19", "count": 1, "earnings": 30.0}
    assert sum(day["count"] for day in series) == 3


def test_analytics_endpoint(client, make_user, auth_header) -> None:
    provider_id = make_user("Pat Provider", "pat@example.com", account_type="provider")

    response = client.get("/bookings/analytics", headers=auth_header(provider_id))

    assert response.status_code == 200
    assert response.get_json()["analytics"]["all_time"] == {"count": 0, "earnings": 0}
