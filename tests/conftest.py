"""pytest configuration: app, client, and data factories."""
from __future__ import annotations

import sys
from pathlib import Path

import pytest
from itsdangerous import URLSafeTimedSerializer

# Ensure the project root is available on sys.path so tests can import the app package.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app import create_app  # noqa: E402
from app.config import TestingConfig  # noqa: E402
from app.extensions import db, dispatcher  # noqa: E402
from app.models import Service, Staff, User  # noqa: E402


@pytest.fixture
def app():
    flask_app = create_app(TestingConfig)
    with flask_app.app_context():
        db.create_all()
        yield flask_app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def events(monkeypatch):
    """Record dispatched notification events instead of delivering them."""
    recorded: list[tuple[str, dict]] = []

    def record(event, **payload):
        recorded.append((event, payload))

    monkeypatch.setattr(dispatcher, "dispatch", record)
    return recorded


def token_for(app, user_id: int) -> str:
    serializer = URLSafeTimedSerializer(app.config["SECRET_KEY"], salt="auth-token")
    return serializer.dumps({"user_id": user_id})


def staff_token_for(app, staff_id: int) -> str:
    serializer = URLSafeTimedSerializer(app.config["SECRET_KEY"], salt="staff-token")
    return serializer.dumps({"staff_id": staff_id})


@pytest.fixture
def auth_header(app):
    def build(user_id: int) -> dict[str, str]:
        return {"Authorization": f"Bearer {token_for(app, user_id)}"}

    return build


@pytest.fixture
def staff_header(app):
    def build(staff_id: int) -> dict[str, str]:
        return {"Authorization": f"Bearer {staff_token_for(app, staff_id)}"}

    return build


@pytest.fixture
def make_user():
    def build(name: str = "Casey Customer", email: str | None = "casey@example.com", **fields) -> int:
        user = User(name=name, email=email, account_type=fields.pop("account_type", "customer"), **fields)
        db.session.add(user)
        db.session.commit()
        return user.user_id

    return build


@pytest.fixture
def make_service():
    def build(provider_id: int | None, **fields) -> int:
        values = {
            "provider_name": "Fresh Cuts",
            "service_type": "Haircut",
            "description": "Quick and tidy haircuts on quiet days.",
            "location": "Newark, NJ",
            "contact": "+1 973 555 0100",
            "email": "owner@freshcuts.example",
            "weekday_price": 30.0,
            "weekend_price": 45.0,
        }
        values.update(fields)
        service = Service(provider_id=provider_id, **values)
        db.session.add(service)
        db.session.commit()
        return service.service_id

    return build


@pytest.fixture
def make_staff():
    def build(role: str = "sales", email: str = "sam@slowday.example", **fields) -> int:
        staff = Staff(name=fields.pop("name", "Sam Sales"), email=email, role=role, **fields)
        db.session.add(staff)
        db.session.commit()
        return staff.staff_id

    return build
