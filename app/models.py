"""Database models for the SlowDay Deals backend."""
from __future__ import annotations

from datetime import datetime, timezone

from .extensions import db

SERVICE_TYPES = (
    "Haircut",
    "Barber",
    "Cleaning",
    "Massage",
    "Nails",
    "Spa",
    "Personal Training",
    "Dog Walking",
    "Tutoring",
    "Photography",
    "Car Detailing",
    "Laundry Service",
    "Other",
)

BOOKING_STATUSES = ("pending", "confirmed", "rescheduled", "rejected", "completed", "cancelled")

LEAD_STATUSES = ("new", "contacted", "interested", "onboarded", "rejected")

LEAD_DAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

WEEK_DAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


def utc_now() -> datetime:
    """Return a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class User(db.Model):
    __tablename__ = "users"

    user_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    # Converted providers may only have a phone number
    email = db.Column(db.String(255), unique=True, nullable=True)
    password_hash = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(30))
    account_type = db.Column(
        db.Enum(
            "customer",
            "provider",
            name="account_type",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        server_default="customer",
    )
    is_verified = db.Column(db.Boolean, nullable=False, default=False)
    setup_token = db.Column(db.String(64), unique=True, nullable=True)
    setup_expires_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    services = db.relationship("Service", back_populates="provider", lazy="dynamic")

    def to_dict_basic(self) -> dict[str, object]:
        return {
            "id": self.user_id,
            "user_id": self.user_id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "account_type": self.account_type,
        }


class Staff(db.Model):
    """Back-office team member who works leads."""

    __tablename__ = "staff"

    staff_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=True)
    role = db.Column(
        db.Enum(
            "super_admin",
            "admin",
            "sales",
            "support",
            name="staff_role",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
    )
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    last_login_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.staff_id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "is_active": bool(self.is_active),
        }


class Service(db.Model):
    """A provider's deal listing with weekday/weekend price and slot pools."""

    __tablename__ = "services"

    service_id = db.Column(db.Integer, primary_key=True)
    provider_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=True)
    provider_name = db.Column(db.String(150), nullable=False)
    service_type = db.Column(
        db.Enum(*SERVICE_TYPES, name="service_type", native_enum=False, validate_strings=True),
        nullable=False,
    )
    description = db.Column(db.Text, nullable=False)
    location = db.Column(db.String(255), nullable=False)
    contact = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255))

    normal_price = db.Column(db.Float, nullable=True)
    weekday_price = db.Column(db.Float, nullable=False)
    weekend_price = db.Column(db.Float, nullable=False)

    # NULL capacity means the pool is unlimited and is not tracked
    weekday_slots = db.Column(db.Integer, nullable=True)
    weekend_slots = db.Column(db.Integer, nullable=True)
    weekday_slots_used = db.Column(db.Integer, nullable=False, default=0, server_default="0")
    weekend_slots_used = db.Column(db.Integer, nullable=False, default=0, server_default="0")

    deal_active = db.Column(db.Boolean, nullable=False, default=True)
    # [{"day": "Monday", "start_time": "13:00", "end_time": "17:00", "session_duration": 60}]
    availability_windows = db.Column(db.JSON, nullable=True, default=list)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    provider = db.relationship("User", back_populates="services")

    __table_args__ = (
        db.CheckConstraint("weekday_price >= 0", name="ck_services_weekday_price"),
        db.CheckConstraint("weekend_price >= 0", name="ck_services_weekend_price"),
        db.Index("ix_services_type_location_active", "service_type", "location", "is_active"),
    )

    def to_dict(self) -> dict[str, object]:
        from .pricing import split_windows
        from .slots import remaining

        return {
            "id": self.service_id,
            "provider_id": self.provider_id,
            "provider_name": self.provider_name,
            "service_type": self.service_type,
            "description": self.description,
            "location": self.location,
            "contact": self.contact,
            "email": self.email,
            "normal_price": self.normal_price,
            "weekday_price": self.weekday_price,
            "weekend_price": self.weekend_price,
            "weekday_slots": self.weekday_slots,
            "weekend_slots": self.weekend_slots,
            "weekday_slots_used": self.weekday_slots_used,
            "weekend_slots_used": self.weekend_slots_used,
            "slots_remaining": remaining(self),
            "deal_active": bool(self.deal_active),
            "availability_windows": self.availability_windows or [],
            "availability_by_pool": split_windows(self.availability_windows),
            "is_active": bool(self.is_active),
            "created_at": _iso(self.created_at),
        }


class Booking(db.Model):
    __tablename__ = "bookings"

    booking_id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False)
    service_id = db.Column(db.Integer, db.ForeignKey("services.service_id"), nullable=False)
    # Copied from the service owner at creation time; may drift if ownership changes
    provider_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=True)
    customer_name = db.Column(db.String(100), nullable=False)
    customer_contact = db.Column(db.String(255), nullable=False)
    preferred_time = db.Column(db.DateTime, nullable=False)
    notes = db.Column(db.Text, nullable=False, default="")
    status = db.Column(
        db.Enum(*BOOKING_STATUSES, name="booking_status", native_enum=False, validate_strings=True),
        nullable=False,
        server_default="pending",
    )
    # Snapshots taken when the booking is created; never recomputed
    price = db.Column(db.Float, nullable=False)
    is_weekend = db.Column(db.Boolean, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    customer = db.relationship("User", foreign_keys=[customer_id])
    provider = db.relationship("User", foreign_keys=[provider_id])
    service = db.relationship("Service")

    __table_args__ = (
        db.Index("ix_bookings_customer_status", "customer_id", "status"),
        db.Index("ix_bookings_provider_status", "provider_id", "status"),
        db.Index("ix_bookings_service", "service_id"),
    )

    def to_dict(self) -> dict[str, object]:
        service = self.service
        return {
            "id": self.booking_id,
            "customer_id": self.customer_id,
            "service_id": self.service_id,
            "provider_id": self.provider_id,
            "customer_name": self.customer_name,
            "customer_contact": self.customer_contact,
            "preferred_time": _iso(self.preferred_time),
            "notes": self.notes or "",
            "status": self.status,
            "price": self.price,
            "is_weekend": bool(self.is_weekend),
            "service": {
                "id": service.service_id,
                "service_type": service.service_type,
                "provider_name": service.provider_name,
                "location": service.location,
            }
            if service
            else None,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class Lead(db.Model):
    """Prospective provider business tracked through the sales funnel."""

    __tablename__ = "leads"

    lead_id = db.Column(db.Integer, primary_key=True)
    business_name = db.Column(db.String(200), nullable=False)
    contact_name = db.Column(db.String(100), nullable=False, default="")
    phone = db.Column(db.String(30), nullable=False, default="")
    email = db.Column(db.String(255), nullable=False, default="")
    address = db.Column(db.String(255), nullable=False, default="")
    website = db.Column(db.String(255), nullable=False, default="")
    service_type = db.Column(db.String(100), nullable=False, default="")
    city = db.Column(db.String(100), nullable=False, default="")
    description = db.Column(db.Text, nullable=False, default="")
    status = db.Column(
        db.Enum(*LEAD_STATUSES, name="lead_status", native_enum=False, validate_strings=True),
        nullable=False,
        server_default="new",
    )
    notes = db.Column(db.Text, nullable=False, default="")
    price = db.Column(db.Float, nullable=True)
    discount_price = db.Column(db.Float, nullable=True)
    days = db.Column(db.JSON, nullable=True, default=list)
    assignee_id = db.Column(db.Integer, db.ForeignKey("staff.staff_id"), nullable=True)
    converted_user_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=True)
    converted_service_id = db.Column(db.Integer, db.ForeignKey("services.service_id"), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    assignee = db.relationship("Staff")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.lead_id,
            "business_name": self.business_name,
            "contact_name": self.contact_name,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "website": self.website,
            "service_type": self.service_type,
            "city": self.city,
            "description": self.description,
            "status": self.status,
            "notes": self.notes,
            "price": self.price,
            "discount_price": self.discount_price,
            "days": self.days or [],
            "assignee": self.assignee.to_dict() if self.assignee else None,
            "converted_user_id": self.converted_user_id,
            "converted_service_id": self.converted_service_id,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
