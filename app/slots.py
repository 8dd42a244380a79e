"""Slot ledger for the weekday/weekend capacity pools of a service.

Reservations are a single conditional UPDATE evaluated by the database, so two
requests racing for the last slot cannot both succeed::

    UPDATE services SET weekend_slots_used = weekend_slots_used + 1
    WHERE service_id = ? AND weekend_slots IS NOT NULL
      AND weekend_slots_used < weekend_slots

Callers run this inside the same transaction as the booking insert and commit
both together.
"""
from __future__ import annotations

from sqlalchemy import select, update

from .errors import CapacityExceeded, Conflict, NotFound
from .extensions import db
from .models import Service


def _pool(is_weekend: bool):
    if is_weekend:
        return Service.weekend_slots, Service.weekend_slots_used
    return Service.weekday_slots, Service.weekday_slots_used


def _label(is_weekend: bool) -> str:
    return "weekend" if is_weekend else "weekday"


def reserve(service_id: int, is_weekend: bool) -> bool:
    """Take one slot from the pool.

    Returns True when a capped pool was incremented and False when the pool is
    unlimited (nothing is tracked). Raises CapacityExceeded when the pool is
    full. Does not commit.
    """
    capacity_col, used_col = _pool(is_weekend)

    capacity = db.session.execute(
        select(capacity_col).where(Service.service_id == service_id)
    ).one_or_none()
    if capacity is None:
        raise NotFound("Service not found")
    if capacity[0] is None:
        return False

    result = db.session.execute(
        update(Service)
        .where(
            Service.service_id == service_id,
            capacity_col.is_not(None),
            used_col < capacity_col,
        )
        .values({used_col.key: used_col + 1})
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise CapacityExceeded(f"Sorry, all {_label(is_weekend)} slots for this deal are taken.")
    return True


def release(service_id: int, is_weekend: bool) -> bool:
    """Give one slot back to a capped pool. Never drops below zero. Does not commit."""
    capacity_col, used_col = _pool(is_weekend)
    result = db.session.execute(
        update(Service)
        .where(
            Service.service_id == service_id,
            capacity_col.is_not(None),
            used_col > 0,
        )
        .values({used_col.key: used_col - 1})
        .execution_options(synchronize_session=False)
    )
    return result.rowcount > 0


def set_capacity(service_id: int, is_weekend: bool, capacity: int | None) -> None:
    """Resize a pool. A cap below the slots already used is refused. Does not commit."""
    capacity_col, used_col = _pool(is_weekend)
    statement = update(Service).where(Service.service_id == service_id)
    if capacity is not None:
        statement = statement.where(used_col <= capacity)

    result = db.session.execute(
        statement.values({capacity_col.key: capacity}).execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise Conflict(
            f"{_label(is_weekend).capitalize()} slots cannot be set below the number already booked.",
            code="capacity_below_used",
        )


def remaining(service: Service) -> dict[str, int | None]:
    """Slots left per pool; None means unlimited."""

    def left(capacity, used):
        if capacity is None:
            return None
        return max(capacity - (used or 0), 0)

    return {
        "weekday": left(service.weekday_slots, service.weekday_slots_used),
        "weekend": left(service.weekend_slots, service.weekend_slots_used),
    }
