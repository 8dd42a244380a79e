"""HTTP routes for the SlowDay Deals backend."""
from __future__ import annotations

from datetime import datetime, timezone

from flask import Blueprint, Flask, current_app, jsonify, request
from itsdangerous import BadSignature, URLSafeTimedSerializer
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from . import accounts, bookings, slots
from .errors import Forbidden, InvalidArgument, NotFound, Unauthorized
from .extensions import db
from .models import SERVICE_TYPES, WEEK_DAYS, Booking, Service, User

bp = Blueprint("api", __name__)

SESSION_DURATIONS = (15, 30, 45, 60, 90, 120)


@bp.get("/health")
def health_check() -> tuple[dict[str, str], int]:
    """
    Expose a simple uptime check endpoint.
    ---
    tags:
      - Health
    responses:
      200:
        description: Service is healthy and running.
    """
    return jsonify({"status": "ok"}), 200


@bp.get("/db-health")
def database_health() -> tuple[dict[str, str], int]:
    """Check connectivity to the configured database."""
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        current_app.logger.exception("Database connectivity check failed", exc_info=exc)
        return jsonify({"database": "unavailable"}), 500

    return jsonify({"database": "ok"}), 200


# --- Tokens ---


def _build_token(payload: dict[str, object]) -> str:
    serializer = URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt="auth-token")
    return serializer.dumps(payload)


def _token_payload() -> dict[str, object] | None:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None

    serializer = URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt="auth-token")
    try:
        return serializer.loads(auth_header[7:], max_age=current_app.config["AUTH_TOKEN_MAX_AGE"])
    except BadSignature:
        # Invalid or expired token
        return None


def get_jwt_identity() -> int | None:
    """Return the user_id carried by the bearer token, or None."""
    payload = _token_payload()
    return payload.get("user_id") if payload else None


def _current_user() -> User:
    user_id = get_jwt_identity()
    if user_id is None:
        raise Unauthorized("authentication required")
    user = db.session.get(User, user_id)
    if user is None:
        raise Unauthorized("authentication required")
    return user


# --- Request parsing helpers ---


def _parse_datetime(value, field: str) -> datetime:
    if not isinstance(value, str) or not value:
        raise InvalidArgument(f"{field} must be a valid ISO format datetime")
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise InvalidArgument(f"{field} must be a valid ISO format datetime") from None


def _parse_price(value, field: str, required: bool = True) -> float | None:
    if value is None or value == "":
        if required:
            raise InvalidArgument(f"Valid {field} is required")
        return None
    if isinstance(value, bool):
        raise InvalidArgument(f"Valid {field} is required")
    try:
        price = float(value)
    except (TypeError, ValueError):
        raise InvalidArgument(f"Valid {field} is required") from None
    if price < 0:
        raise InvalidArgument(f"{field} must be positive")
    return price


def _parse_slots(value, field: str) -> int | None:
    # 0 and empty are treated as unlimited
    if value in (None, "", 0):
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidArgument(f"{field} must be a positive integer or null")
    return value


def _parse_windows(value) -> list[dict[str, object]]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise InvalidArgument("availability_windows must be a list")

    windows = []
    for window in value:
        if not isinstance(window, dict):
            raise InvalidArgument("availability_windows entries must be objects")
        day = window.get("day")
        start, end = window.get("start_time"), window.get("end_time")
        duration = window.get("session_duration")
        if day not in WEEK_DAYS:
            raise InvalidArgument(f"day must be one of: {', '.join(WEEK_DAYS)}")
        if not start or not end:
            raise InvalidArgument("start_time and end_time are required")
        if duration not in SESSION_DURATIONS:
            raise InvalidArgument(
                f"session_duration must be one of: {', '.join(str(d) for d in SESSION_DURATIONS)}"
            )
        windows.append({"day": day, "start_time": start, "end_time": end, "session_duration": duration})
    return windows


def _service_fields(payload: dict, partial: bool = False) -> dict[str, object]:
    """Validate a service create/update body. Slot counters are never writable."""
    fields: dict[str, object] = {}

    for name in ("provider_name", "location", "contact"):
        if name in payload or not partial:
            value = (payload.get(name) or "").strip()
            if not value:
                raise InvalidArgument(f"{name} is required")
            fields[name] = value

    if "service_type" in payload or not partial:
        if payload.get("service_type") not in SERVICE_TYPES:
            raise InvalidArgument("service_type is invalid", code="invalid_service_type")
        fields["service_type"] = payload["service_type"]

    if "description" in payload or not partial:
        description = (payload.get("description") or "").strip()
        if len(description) < 10:
            raise InvalidArgument("Description must be at least 10 characters")
        fields["description"] = description

    for name in ("weekday_price", "weekend_price"):
        if name in payload or not partial:
            fields[name] = _parse_price(payload.get(name), name)

    if "normal_price" in payload:
        fields["normal_price"] = _parse_price(payload["normal_price"], "normal_price", required=False)
    for name in ("weekday_slots", "weekend_slots"):
        if name in payload:
            fields[name] = _parse_slots(payload[name], name)
    if "email" in payload:
        fields["email"] = (payload["email"] or "").strip().lower() or None
    if "deal_active" in payload:
        if not isinstance(payload["deal_active"], bool):
            raise InvalidArgument("deal_active must be true or false")
        fields["deal_active"] = payload["deal_active"]
    if "availability_windows" in payload:
        fields["availability_windows"] = _parse_windows(payload["availability_windows"])

    return fields


def _owned_service(service_id: int, user: User) -> Service:
    service = db.session.get(Service, service_id)
    if service is None or not service.is_active:
        raise NotFound("Service not found")
    if service.provider_id is not None and service.provider_id != user.user_id:
        raise Forbidden("Not authorized")
    return service


# --- Authentication ---


@bp.post("/auth/register")
def register_user() -> tuple[dict[str, object], int]:
    """Register a new customer or provider user.
    ---
    tags:
      - Authentication
    responses:
      201:
        description: User registered successfully
      400:
        description: Invalid payload
      409:
        description: Email already exists
    """
    payload = request.get_json(silent=True) or {}

    user = accounts.register_user(
        name=(payload.get("name") or "").strip(),
        email=(payload.get("email") or "").strip().lower(),
        password=payload.get("password") or "",
        phone=(payload.get("phone") or "").strip() or None,
        account_type=(payload.get("account_type") or "customer").strip().lower(),
    )

    token = _build_token({"user_id": user.user_id, "account_type": user.account_type})
    return jsonify({"token": token, "user": user.to_dict_basic()}), 201


@bp.post("/auth/login")
def login() -> tuple[dict[str, object], int]:
    payload = request.get_json(silent=True) or {}

    email = (payload.get("email") or "").strip().lower()
    password = payload.get("password") or ""
    if not email or not password:
        raise InvalidArgument("email and password are required")

    user = accounts.authenticate_user(email, password)
    token = _build_token({"user_id": user.user_id, "account_type": user.account_type})
    return jsonify({"token": token, "user": user.to_dict_basic()}), 200


@bp.get("/auth/verify-setup-token")
def verify_setup_token() -> tuple[dict[str, object], int]:
    """Check a provider setup link before showing the setup form."""
    user = accounts.find_setup_user(request.args.get("token"))
    return jsonify({"name": user.name, "email": user.email or ""}), 200


@bp.post("/auth/setup-provider")
def setup_provider() -> tuple[dict[str, object], int]:
    """Complete setup of a provider account created from a lead.
    ---
    tags:
      - Authentication
    responses:
      200:
        description: Setup complete, returns access token
      400:
        description: Invalid or expired setup link, or password too short
    """
    payload = request.get_json(silent=True) or {}
    user = accounts.complete_setup(payload.get("token"), payload.get("password"))

    token = _build_token({"user_id": user.user_id, "account_type": user.account_type})
    return jsonify({"token": token, "user": user.to_dict_basic()}), 200


# --- Services ---


@bp.get("/services")
def list_services() -> tuple[dict[str, object], int]:
    """List active deals, optionally filtered by service type or location."""
    query = Service.query.filter(Service.is_active.is_(True))

    service_type = request.args.get("service_type")
    if service_type:
        query = query.filter(Service.service_type == service_type)
    location = (request.args.get("location") or "").strip()
    if location:
        query = query.filter(Service.location.ilike(f"%{location}%"))

    services = query.order_by(Service.created_at.desc(), Service.service_id.desc()).all()
    return jsonify({"count": len(services), "services": [s.to_dict() for s in services]}), 200


@bp.get("/services/mine")
def list_my_services() -> tuple[dict[str, object], int]:
    user = _current_user()
    services = (
        Service.query.filter(Service.provider_id == user.user_id, Service.is_active.is_(True))
        .order_by(Service.created_at.desc(), Service.service_id.desc())
        .all()
    )
    return jsonify({"count": len(services), "services": [s.to_dict() for s in services]}), 200


@bp.get("/services/<int:service_id>")
def get_service(service_id: int) -> tuple[dict[str, object], int]:
    service = db.session.get(Service, service_id)
    if service is None or not service.is_active:
        return jsonify({"error": "not_found", "message": "Service not found"}), 404
    return jsonify({"service": service.to_dict()}), 200


@bp.post("/services")
def create_service() -> tuple[dict[str, object], int]:
    """Create a deal listing; the caller becomes its provider.
    ---
    tags:
      - Services
    responses:
      201:
        description: Service created successfully
      400:
        description: Invalid payload
      401:
        description: Not logged in
    """
    user = _current_user()
    payload = request.get_json(silent=True) or {}
    fields = _service_fields(payload)
    fields.setdefault("email", user.email)

    try:
        service = Service(provider_id=user.user_id, **fields)
        db.session.add(service)
        user.account_type = "provider"
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to create service", exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    current_app.logger.info("Service %s created by user %s", service.service_id, user.user_id)
    return jsonify({"message": "Service created successfully", "service": service.to_dict()}), 201


@bp.put("/services/<int:service_id>")
def update_service(service_id: int) -> tuple[dict[str, object], int]:
    """Update a listing. Prices changed here never touch existing bookings."""
    user = _current_user()
    service = _owned_service(service_id, user)
    fields = _service_fields(request.get_json(silent=True) or {}, partial=True)

    try:
        for name, is_weekend in (("weekday_slots", False), ("weekend_slots", True)):
            if name in fields:
                slots.set_capacity(service_id, is_weekend, fields.pop(name))
        for name, value in fields.items():
            setattr(service, name, value)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update service %s", service_id, exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"message": "Service updated", "service": service.to_dict()}), 200


@bp.delete("/services/<int:service_id>")
def delete_service(service_id: int) -> tuple[dict[str, str], int]:
    user = _current_user()
    service = _owned_service(service_id, user)

    try:
        service.is_active = False
        still_listed = (
            Service.query.filter(
                Service.provider_id == user.user_id,
                Service.is_active.is_(True),
                Service.service_id != service_id,
            ).count()
        )
        if not still_listed:
            user.account_type = "customer"
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to delete service %s", service_id, exc_info=exc)
        return jsonify({"error": "database_error"}), 500

    return jsonify({"message": "Service deleted"}), 200


# --- Bookings ---


@bp.post("/bookings")
def create_booking() -> tuple[dict[str, object], int]:
    """Book a deal at the weekday or weekend price for the requested time.
    ---
    tags:
      - Bookings
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            service_id:
              type: integer
            customer_contact:
              type: string
            preferred_time:
              type: string
              format: date-time
            notes:
              type: string
          required:
            - service_id
            - customer_contact
            - preferred_time
    responses:
      201:
        description: Booking created in pending state
      400:
        description: Invalid payload
      404:
        description: Service not found
      409:
        description: Deal inactive or no slots left
    """
    user = _current_user()
    payload = request.get_json(silent=True) or {}

    service_id = payload.get("service_id")
    customer_contact = (payload.get("customer_contact") or "").strip()
    if not service_id or not customer_contact:
        raise InvalidArgument("service_id, customer_contact, and preferred_time are required")
    if isinstance(service_id, bool) or not isinstance(service_id, int):
        raise InvalidArgument("service_id must be an integer")
    preferred_time = _parse_datetime(payload.get("preferred_time"), "preferred_time")

    booking = bookings.create_booking(
        customer=user,
        service_id=service_id,
        preferred_time=preferred_time,
        customer_contact=customer_contact,
        notes=(payload.get("notes") or "").strip(),
    )
    return (
        jsonify({"message": "Booking sent! The provider will confirm soon.", "booking": booking.to_dict()}),
        201,
    )


@bp.get("/bookings/customer")
def list_customer_bookings() -> tuple[dict[str, object], int]:
    user = _current_user()
    items = bookings.list_customer_bookings(user.user_id)
    return jsonify({"count": len(items), "bookings": [b.to_dict() for b in items]}), 200


@bp.get("/bookings/provider")
def list_provider_bookings() -> tuple[dict[str, object], int]:
    """Bookings on the caller's services, including ones recorded against them directly."""
    user = _current_user()
    items = bookings.list_provider_bookings(user.user_id, request.args.get("status"))
    return jsonify({"count": len(items), "bookings": [b.to_dict() for b in items]}), 200


@bp.get("/bookings/analytics")
def booking_analytics() -> tuple[dict[str, object], int]:
    user = _current_user()
    analytics = bookings.provider_analytics(user.user_id, datetime.now(timezone.utc))
    return jsonify({"analytics": analytics}), 200


@bp.get("/bookings/<int:booking_id>")
def get_booking(booking_id: int) -> tuple[dict[str, object], int]:
    user = _current_user()
    booking = db.session.get(Booking, booking_id)
    if booking is None:
        raise NotFound("Booking not found")
    if booking.customer_id != user.user_id and not bookings.can_act_as_provider(booking, user.user_id):
        raise Forbidden("Not authorized")
    return jsonify({"booking": booking.to_dict()}), 200


@bp.put("/bookings/<int:booking_id>/status")
def update_booking_status(booking_id: int) -> tuple[dict[str, object], int]:
    """Move a booking through its lifecycle.

    Customers may only cancel. The provider on the booking or the current owner
    of its service may set any status the transition table allows.
    ---
    tags:
      - Bookings
    parameters:
      - in: path
        name: booking_id
        required: true
        schema:
          type: integer
      - in: body
        name: body
        required: true
        schema:
          properties:
            status:
              type: string
              enum: [pending, confirmed, rescheduled, rejected, completed, cancelled]
            new_time:
              type: string
              format: date-time
    responses:
      200:
        description: Booking status updated
      400:
        description: Invalid status or missing new_time
      403:
        description: Not allowed for this user
      404:
        description: Booking not found
      409:
        description: Transition not allowed from the current status
    """
    user = _current_user()
    payload = request.get_json(silent=True) or {}

    new_time = None
    if payload.get("new_time"):
        new_time = _parse_datetime(payload["new_time"], "new_time")

    booking = bookings.update_status(booking_id, user.user_id, payload.get("status"), new_time)
    return jsonify({"message": f"Booking {booking.status}", "booking": booking.to_dict()}), 200


def register_routes(app: Flask) -> None:
    from .routes_admin import bp_admin

    app.register_blueprint(bp)
    app.register_blueprint(bp_admin)
