"""Customer/provider accounts, staff logins, and provider account setup."""
from __future__ import annotations

from datetime import datetime, timezone

from flask import current_app
from werkzeug.security import check_password_hash, generate_password_hash

from .errors import Conflict, InvalidArgument, Unauthorized
from .extensions import db
from .models import Staff, User, utc_now

MIN_PASSWORD_LENGTH = 6


def _aware(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way back out
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def register_user(name: str, email: str, password: str, phone: str | None, account_type: str) -> User:
    if not name or not email or not password:
        raise InvalidArgument("name, email, and password are required")
    if account_type not in ("customer", "provider"):
        raise InvalidArgument("account_type must be 'customer' or 'provider'", code="invalid_role")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise InvalidArgument(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if User.query.filter_by(email=email).first():
        raise Conflict("email address is already in use")

    user = User(
        name=name,
        email=email,
        phone=phone,
        account_type=account_type,
        password_hash=generate_password_hash(password),
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate_user(email: str, password: str) -> User:
    user = User.query.filter_by(email=email).first()
    # Providers created from leads have no password until setup is finished
    if user is None or not user.password_hash or not check_password_hash(user.password_hash, password):
        raise Unauthorized("invalid email or password")
    return user


def authenticate_staff(email: str, password: str) -> Staff:
    staff = Staff.query.filter_by(email=email).first()
    if staff is None or not staff.is_active or not staff.password_hash:
        raise Unauthorized("invalid email or password")
    if not check_password_hash(staff.password_hash, password):
        raise Unauthorized("invalid email or password")

    staff.last_login_at = utc_now()
    db.session.commit()
    return staff


def find_setup_user(token: str | None) -> User:
    if not token:
        raise InvalidArgument("Token required.")
    user = User.query.filter_by(setup_token=token).first()
    if user is None or user.setup_expires_at is None or _aware(user.setup_expires_at) <= utc_now():
        raise InvalidArgument("Invalid or expired setup link.", code="invalid_token")
    return user


def complete_setup(token: str | None, password: str | None = None) -> User:
    """Finish a lead-created provider account, optionally setting a password."""
    user = find_setup_user(token)
    if password:
        if len(password) < MIN_PASSWORD_LENGTH:
            raise InvalidArgument(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
        user.password_hash = generate_password_hash(password)

    user.setup_token = None
    user.setup_expires_at = None
    user.is_verified = True
    db.session.commit()
    current_app.logger.info("Provider %s completed account setup", user.user_id)
    return user
