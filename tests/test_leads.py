"""Tests for lead management and service-type mapping."""
from __future__ import annotations

import pytest

from app.leads import map_service_type
from app.models import Lead


@pytest.mark.parametrize(
    "label, expected",
    [
        ("Massage", "Massage"),
        ("personal training", "Personal Training"),
        ("Hair Salon", "Haircut"),
        ("Nail salon", "Nails"),
        ("Barbershop", "Barber"),
        ("House cleaning", "Cleaning"),
        ("Dry cleaning & alterations", "Laundry Service"),
        ("Day Spa", "Spa"),
        ("Auto detailing", "Car Detailing"),
        ("Dog walker", "Dog Walking"),
        ("Wedding photographer", "Photography"),
        ("Plumber", "Other"),
        ("", "Other"),
        (None, "Other"),
    ],
)
def test_map_service_type(label, expected) -> None:
    assert map_service_type(label) == expected


def test_create_and_list_leads(client, make_staff, staff_header) -> None:
    staff_id = make_staff()
    headers = staff_header(staff_id)

    response = client.post(
        "/admin/leads",
        json={
            "business_name": "Paws on Parade",
            "service_type": "Dog walking",
            "email": "Hello@Paws.example",
            "days": ["Sat", "Mon", "Sat"],
            "discount_price": "18.50",
            "assignee_id": staff_id,
        },
        headers=headers,
    )
    data = response.get_json()

    assert response.status_code == 201
    assert data["lead"]["status"] == "new"
    assert data["lead"]["email"] == "hello@paws.example"
    assert data["lead"]["days"] == ["Mon", "Sat"]
    assert data["lead"]["discount_price"] == 18.5
    assert data["lead"]["assignee"]["id"] == staff_id

    client.post("/admin/leads", json={"business_name": "Other Biz", "status": "contacted"}, headers=headers)

    assert client.get("/admin/leads", headers=headers).get_json()["count"] == 2
    contacted = client.get("/admin/leads?status=contacted", headers=headers).get_json()
    assert [lead["business_name"] for lead in contacted["leads"]] == ["Other Biz"]
    assigned = client.get(f"/admin/leads?assignee_id={staff_id}", headers=headers).get_json()
    assert [lead["business_name"] for lead in assigned["leads"]] == ["Paws on Parade"]


def test_create_lead_requires_business_name(client, make_staff, staff_header) -> None:
    staff_id = make_staff()

    response = client.post("/admin/leads", json={"city": "Newark"}, headers=staff_header(staff_id))

    assert response.status_code == 400
    assert Lead.query.count() == 0


def test_create_lead_rejects_bad_days(client, make_staff, staff_header) -> None:
    staff_id = make_staff()

    response = client.post(
        "/admin/leads",
        json={"business_name": "Paws", "days": ["Someday"]},
        headers=staff_header(staff_id),
    )

    assert response.status_code == 400


def test_update_lead(client, make_staff, staff_header) -> None:
    staff_id = make_staff()
    headers = staff_header(staff_id)
    lead_id = client.post("/admin/leads", json={"business_name": "Paws"}, headers=headers).get_json()["lead"]["id"]

    response = client.put(
        f"/admin/leads/{lead_id}",
        json={"status": "interested", "city": " Newark ", "price": 30},
        headers=headers,
    )
    data = response.get_json()

    assert response.status_code == 200
    assert data["lead"]["status"] == "interested"
    assert data["lead"]["city"] == "Newark"
    assert data["lead"]["price"] == 30


def test_update_lead_cannot_mark_onboarded(client, make_staff, staff_header) -> None:
    staff_id = make_staff()
    headers = staff_header(staff_id)
    lead_id = client.post("/admin/leads", json={"business_name": "Paws"}, headers=headers).get_json()["lead"]["id"]

    response = client.put(f"/admin/leads/{lead_id}", json={"status": "onboarded"}, headers=headers)

    assert response.status_code == 400
    assert client.get(f"/admin/leads/{lead_id}", headers=headers).get_json()["lead"]["status"] == "new"


def test_unknown_assignee_404(client, make_staff, staff_header) -> None:
    staff_id = make_staff()

    response = client.post(
        "/admin/leads",
        json={"business_name": "Paws", "assignee_id": 999},
        headers=staff_header(staff_id),
    )

    assert response.status_code == 404


def test_leads_require_staff_token(client) -> None:
    assert client.get("/admin/leads").status_code == 401
