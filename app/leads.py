"""Lead management and conversion of leads into live provider listings."""
from __future__ import annotations

import secrets
from datetime import timedelta

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from .errors import Conflict, InternalFailure, InvalidArgument, NotFound, ValidationFailed
from .extensions import db, dispatcher
from .models import LEAD_DAYS, LEAD_STATUSES, SERVICE_TYPES, Lead, Service, Staff, User, utc_now

WEEKEND_LEAD_DAYS = frozenset({"Sat", "Sun"})

# Free-text labels seen in lead sources, checked as substrings after exact matches
SERVICE_TYPE_KEYWORDS: tuple[tuple[str, str], ...] = (
    ("dry clean", "Laundry Service"),
    ("laundr", "Laundry Service"),
    ("barber", "Barber"),
    ("hair", "Haircut"),
    ("clean", "Cleaning"),
    ("maid", "Cleaning"),
    ("janitor", "Cleaning"),
    ("massage", "Massage"),
    ("nail", "Nails"),
    ("manicure", "Nails"),
    ("pedicure", "Nails"),
    ("spa", "Spa"),
    ("facial", "Spa"),
    ("trainer", "Personal Training"),
    ("training", "Personal Training"),
    ("fitness", "Personal Training"),
    ("gym", "Personal Training"),
    ("dog", "Dog Walking"),
    ("tutor", "Tutoring"),
    ("photo", "Photography"),
    ("detail", "Car Detailing"),
    ("car wash", "Car Detailing"),
    ("auto", "Car Detailing"),
    ("salon", "Haircut"),
)

EDITABLE_FIELDS = (
    "business_name",
    "contact_name",
    "phone",
    "email",
    "address",
    "website",
    "service_type",
    "city",
    "description",
    "notes",
)


def map_service_type(label: str | None) -> str:
    """Map a lead's free-text service label onto the Service categories."""
    text = (label or "").strip().lower()
    if not text:
        return "Other"
    for category in SERVICE_TYPES:
        if text == category.lower():
            return category
    for keyword, category in SERVICE_TYPE_KEYWORDS:
        if keyword in text:
            return category
    return "Other"


def missing_fields(lead: Lead) -> list[str]:
    missing = []
    if not (lead.business_name or "").strip():
        missing.append("Business name")
    if not (lead.service_type or "").strip():
        missing.append("Service type")
    if len((lead.description or "").strip()) < 10:
        missing.append("Description (min 10 chars)")
    if not (lead.city or "").strip():
        missing.append("City")
    if not (lead.phone or "").strip() and not (lead.email or "").strip():
        missing.append("Phone or email")
    if lead.discount_price is None:
        missing.append("Discount price")
    return missing


def create_provider_user(lead: Lead) -> User:
    """Step 1: a password-less provider account with a setup link."""
    email = (lead.email or "").strip().lower() or None
    user = User(
        name=(lead.contact_name or "").strip() or lead.business_name.strip(),
        email=email,
        phone=(lead.phone or "").strip() or None,
        account_type="provider",
        setup_token=secrets.token_urlsafe(32),
        setup_expires_at=utc_now() + timedelta(days=current_app.config["PROVIDER_SETUP_DAYS"]),
    )
    db.session.add(user)
    db.session.commit()
    return user


def create_service_for_lead(lead: Lead, user: User) -> Service:
    """Step 3: the listing, priced at the lead's discount price for both pools."""
    days = set(lead.days or [])
    current_app.logger.info(
        "Lead %s offers weekday=%s weekend=%s; both pools priced at %s",
        lead.lead_id,
        bool(days - WEEKEND_LEAD_DAYS),
        bool(days & WEEKEND_LEAD_DAYS),
        lead.discount_price,
    )
    city = lead.city.strip()
    address = (lead.address or "").strip()
    location = city
    if address:
        location = address if city.lower() in address.lower() else f"{address}, {city}"
    service = Service(
        provider_id=user.user_id,
        provider_name=lead.business_name.strip(),
        service_type=map_service_type(lead.service_type),
        description=lead.description.strip(),
        location=location,
        contact=(lead.phone or "").strip() or lead.email.strip(),
        email=(lead.email or "").strip().lower() or None,
        normal_price=lead.price,
        weekday_price=lead.discount_price,
        weekend_price=lead.discount_price,
        deal_active=False,
    )
    db.session.add(service)
    db.session.commit()
    return service


def convert_lead(lead_id: int) -> tuple[User, Service]:
    lead = db.session.get(Lead, lead_id)
    if lead is None:
        raise NotFound("Lead not found")
    if lead.status == "onboarded":
        raise Conflict("Lead has already been converted", code="already_converted")

    missing = missing_fields(lead)
    if missing:
        raise ValidationFailed(missing)

    email = (lead.email or "").strip().lower()
    if email and User.query.filter(func.lower(User.email) == email).first():
        raise Conflict("A user with this email already exists")

    try:
        user = create_provider_user(lead)
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to create provider for lead %s", lead_id, exc_info=exc)
        raise InternalFailure("Error creating provider account") from exc

    try:
        service = create_service_for_lead(lead, user)
    except Exception as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to create service for lead %s, removing user %s", lead_id, user.user_id, exc_info=exc)
        _delete_user(user.user_id)
        raise InternalFailure("Error creating service listing") from exc

    try:
        lead.status = "onboarded"
        lead.converted_user_id = user.user_id
        lead.converted_service_id = service.service_id
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Lead %s converted but status update failed", lead_id, exc_info=exc)
        raise InternalFailure("Provider created but lead status could not be updated") from exc

    current_app.logger.info("Lead %s converted to user %s / service %s", lead_id, user.user_id, service.service_id)

    if user.email:
        dispatcher.dispatch(
            "provider.setup_link",
            email=user.email,
            name=user.name,
            setup_url=setup_url(user.setup_token),
            expires_at=user.setup_expires_at.isoformat(),
        )
    return user, service


def _delete_user(user_id: int) -> None:
    try:
        User.query.filter(User.user_id == user_id).delete(synchronize_session=False)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Rollback of user %s failed", user_id, exc_info=exc)


def setup_url(token: str) -> str:
    return f"{current_app.config['FRONTEND_URL'].rstrip('/')}/?setupProvider={token}"


# --- Lead CRUD ---


def _clean_days(days) -> list[str]:
    if days is None:
        return []
    if not isinstance(days, list) or any(day not in LEAD_DAYS for day in days):
        raise InvalidArgument(f"days must be a list drawn from: {', '.join(LEAD_DAYS)}")
    # Keep calendar order, drop duplicates
    return [day for day in LEAD_DAYS if day in days]


def _clean_price(value, field: str) -> float | None:
    if value is None or value == "":
        return None
    try:
        price = float(value)
    except (TypeError, ValueError):
        raise InvalidArgument(f"{field} must be a number") from None
    if price < 0:
        raise InvalidArgument(f"{field} must be positive")
    return price


def _clean_assignee(value) -> int | None:
    if value is None:
        return None
    if db.session.get(Staff, value) is None:
        raise NotFound("Assignee not found")
    return value


def create_lead(payload: dict) -> Lead:
    business_name = (payload.get("business_name") or "").strip()
    if not business_name:
        raise InvalidArgument("business_name is required")

    status = payload.get("status") or "new"
    if status not in LEAD_STATUSES or status == "onboarded":
        raise InvalidArgument("Invalid lead status", code="invalid_status")

    lead = Lead(
        status=status,
        price=_clean_price(payload.get("price"), "price"),
        discount_price=_clean_price(payload.get("discount_price"), "discount_price"),
        days=_clean_days(payload.get("days")),
        assignee_id=_clean_assignee(payload.get("assignee_id")),
    )
    for field in EDITABLE_FIELDS:
        setattr(lead, field, (payload.get(field) or "").strip())
    lead.business_name = business_name
    lead.email = lead.email.lower()

    db.session.add(lead)
    db.session.commit()
    return lead


def update_lead(lead_id: int, payload: dict) -> Lead:
    lead = db.session.get(Lead, lead_id)
    if lead is None:
        raise NotFound("Lead not found")
    if lead.status == "onboarded":
        raise Conflict("Converted leads can no longer be edited", code="already_converted")

    if "status" in payload:
        status = payload["status"]
        # Only the conversion pipeline may onboard a lead
        if status not in LEAD_STATUSES or status == "onboarded":
            raise InvalidArgument("Invalid lead status", code="invalid_status")
        lead.status = status
    for field in EDITABLE_FIELDS:
        if field in payload:
            setattr(lead, field, (payload[field] or "").strip())
    if "email" in payload:
        lead.email = lead.email.lower()
    if "price" in payload:
        lead.price = _clean_price(payload["price"], "price")
    if "discount_price" in payload:
        lead.discount_price = _clean_price(payload["discount_price"], "discount_price")
    if "days" in payload:
        lead.days = _clean_days(payload["days"])
    if "assignee_id" in payload:
        lead.assignee_id = _clean_assignee(payload["assignee_id"])
    if not lead.business_name:
        raise InvalidArgument("business_name is required")

    db.session.commit()
    return lead


def list_leads(status: str | None = None, assignee_id: int | None = None) -> list[Lead]:
    query = Lead.query
    if status:
        if status not in LEAD_STATUSES:
            raise InvalidArgument("Invalid lead status", code="invalid_status")
        query = query.filter(Lead.status == status)
    if assignee_id is not None:
        query = query.filter(Lead.assignee_id == assignee_id)
    return query.order_by(Lead.created_at.desc(), Lead.lead_id.desc()).all()
