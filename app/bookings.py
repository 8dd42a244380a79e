"""Booking creation and status lifecycle."""
from __future__ import annotations

from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError

from . import pricing, slots
from .errors import Conflict, Forbidden, InternalFailure, InvalidArgument, NotFound
from .extensions import db, dispatcher
from .models import BOOKING_STATUSES, Booking, Service, User

TERMINAL_STATUSES = frozenset({"rejected", "cancelled", "completed"})

# Allowed target states per current state; terminal states have none
TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"confirmed", "rejected", "rescheduled", "cancelled"}),
    "confirmed": frozenset({"rescheduled", "cancelled", "completed"}),
    "rescheduled": frozenset({"confirmed", "rescheduled", "rejected", "cancelled", "completed"}),
    "rejected": frozenset(),
    "cancelled": frozenset(),
    "completed": frozenset(),
}

EARNING_STATUSES = ("confirmed", "completed")


def can_act_as_provider(booking: Booking, actor_id: int, service: Service | None = None) -> bool:
    """Stored provider reference OR the service's current owner."""
    if booking.provider_id is not None and booking.provider_id == actor_id:
        return True
    service = service if service is not None else booking.service
    return bool(service and service.provider_id is not None and service.provider_id == actor_id)


def create_booking(
    customer: User,
    service_id: int,
    preferred_time: datetime,
    customer_contact: str,
    notes: str | None = None,
) -> Booking:
    service = db.session.get(Service, service_id)
    if service is None or not service.is_active:
        raise NotFound("Service not found")
    if not service.deal_active:
        raise Conflict("Sorry, this deal is no longer available.", code="deal_inactive")

    quote = pricing.quote(service, preferred_time)

    try:
        slots.reserve(service.service_id, quote.is_weekend)
        booking = Booking(
            customer_id=customer.user_id,
            service_id=service.service_id,
            provider_id=service.provider_id,
            customer_name=customer.name,
            customer_contact=customer_contact,
            preferred_time=preferred_time,
            notes=notes or "",
            price=quote.price,
            is_weekend=quote.is_weekend,
            status="pending",
        )
        db.session.add(booking)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to create booking", exc_info=exc)
        raise InternalFailure("Error creating booking") from exc
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(
        "Booking %s created for service %s (weekend=%s, price=%s)",
        booking.booking_id,
        service.service_id,
        quote.is_weekend,
        quote.price,
    )
    dispatcher.dispatch(
        "booking.created",
        booking=booking.to_dict(),
        service=service.to_dict(),
        customer=customer.to_dict_basic(),
    )
    return booking


def update_status(
    booking_id: int,
    actor_id: int,
    status: str | None,
    new_time: datetime | None = None,
) -> Booking:
    if status not in BOOKING_STATUSES:
        raise InvalidArgument(
            f"Status must be one of: {', '.join(BOOKING_STATUSES)}", code="invalid_status"
        )

    booking = db.session.get(Booking, booking_id)
    if booking is None:
        raise NotFound("Booking not found")

    service = db.session.get(Service, booking.service_id)
    is_provider = can_act_as_provider(booking, actor_id, service)
    is_customer = booking.customer_id == actor_id

    if not is_provider and not is_customer:
        raise Forbidden("Not authorized")
    if is_customer and not is_provider and status != "cancelled":
        raise Forbidden("Customers can only cancel bookings")

    if status == "rescheduled" and new_time is None:
        raise InvalidArgument("new_time is required to reschedule a booking")

    previous = booking.status
    if previous in TERMINAL_STATUSES:
        raise Conflict(f"Booking is already {previous}", code="invalid_transition")
    if status not in TRANSITIONS[previous]:
        raise Conflict(f"Cannot change a {previous} booking to {status}", code="invalid_transition")

    booking.status = status
    if status == "rescheduled":
        # Day type and price stay as they were at creation
        booking.preferred_time = new_time

    released = False
    try:
        if status in ("rejected", "cancelled") and current_app.config["RELEASE_SLOTS_ON_CANCEL"]:
            released = slots.release(booking.service_id, booking.is_weekend)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update booking %s", booking_id, exc_info=exc)
        raise InternalFailure("Error updating booking") from exc

    current_app.logger.info(
        "Booking %s moved %s -> %s by user %s%s",
        booking.booking_id,
        previous,
        status,
        actor_id,
        " (slot released)" if released else "",
    )
    _notify_transition(booking, service, cancelled_by_customer=is_customer and not is_provider)
    return booking


def _notify_transition(booking: Booking, service: Service | None, cancelled_by_customer: bool) -> None:
    customer = db.session.get(User, booking.customer_id)
    if service is None or customer is None:
        return

    payload = {
        "booking": booking.to_dict(),
        "service": service.to_dict(),
        "customer": customer.to_dict_basic(),
    }
    if booking.status == "confirmed":
        dispatcher.dispatch("booking.confirmed", **payload)
    elif booking.status in ("rejected", "cancelled"):
        dispatcher.dispatch("booking.rejected", **payload)
        if booking.status == "cancelled" and cancelled_by_customer:
            dispatcher.dispatch("booking.cancelled_by_customer", **payload)
    elif booking.status == "rescheduled":
        dispatcher.dispatch("booking.rescheduled", new_time=booking.preferred_time.isoformat(), **payload)


def _provider_filter(provider_id: int):
    owned = db.session.query(Service.service_id).filter(Service.provider_id == provider_id)
    return or_(Booking.provider_id == provider_id, Booking.service_id.in_(owned))


def list_customer_bookings(customer_id: int) -> list[Booking]:
    return (
        Booking.query.filter(Booking.customer_id == customer_id)
        .order_by(Booking.created_at.desc(), Booking.booking_id.desc())
        .all()
    )


def list_provider_bookings(provider_id: int, status: str | None = None) -> list[Booking]:
    query = Booking.query.filter(_provider_filter(provider_id))
    if status:
        if status not in BOOKING_STATUSES:
            raise InvalidArgument(
                f"Status must be one of: {', '.join(BOOKING_STATUSES)}", code="invalid_status"
            )
        query = query.filter(Booking.status == status)
    return query.order_by(Booking.created_at.desc(), Booking.booking_id.desc()).all()


def provider_analytics(provider_id: int, now: datetime) -> dict[str, object]:
    """Booking counts and earnings for a provider over rolling calendar windows."""
    bookings = Booking.query.filter(_provider_filter(provider_id)).all()

    start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
    # Weeks start on Sunday
    start_of_week = start_of_day - timedelta(days=(start_of_day.weekday() + 1) % 7)
    start_of_month = start_of_day.replace(day=1)

    def created(booking: Booking) -> datetime:
        # SQLite hands back naive datetimes
        return booking.created_at.replace(tzinfo=None)

    def summary(items: list[Booking]) -> dict[str, object]:
        return {
            "count": len(items),
            "earnings": sum(b.price or 0 for b in items if b.status in EARNING_STATUSES),
        }

    naive = {
        "day": start_of_day.replace(tzinfo=None),
        "week": start_of_week.replace(tzinfo=None),
        "month": start_of_month.replace(tzinfo=None),
    }

    last_7_days = []
    for offset in range(6, -1, -1):
        day = naive["day"] - timedelta(days=offset)
        items = [b for b in bookings if day <= created(b) < day + timedelta(days=1)]
        last_7_days.append({"date": day.date().isoformat(), "label": f"{day:%a, %b} {day.day}", **summary(items)})

    by_status: dict[str, int] = {}
    for booking in bookings:
        by_status[booking.status] = by_status.get(booking.status, 0) + 1

    return {
        "daily": summary([b for b in bookings if created(b) >= naive["day"]]),
        "weekly": summary([b for b in bookings if created(b) >= naive["week"]]),
        "monthly": summary([b for b in bookings if created(b) >= naive["month"]]),
        "all_time": summary(bookings),
        "by_status": by_status,
        "last_7_days": last_7_days,
        "pending": by_status.get("pending", 0),
    }
