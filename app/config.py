"""Configuration objects for the SlowDay Deals backend."""
from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root
load_dotenv(dotenv_path=Path(__file__).resolve().parent.parent / ".env")


def _env_flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-change-me")
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///slowday.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*").split(",")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Session tokens are signed with SECRET_KEY and expire after this many seconds
    AUTH_TOKEN_MAX_AGE = int(os.getenv("AUTH_TOKEN_MAX_AGE", "86400"))
    # Setup links for providers created from leads
    PROVIDER_SETUP_DAYS = 30

    # Cancelled/rejected bookings keep their slot unless this is switched on
    RELEASE_SLOTS_ON_CANCEL = _env_flag("RELEASE_SLOTS_ON_CANCEL")

    NOTIFICATIONS_ENABLED = _env_flag("NOTIFICATIONS_ENABLED", "1")
    NOTIFICATIONS_SYNC = False
    NOTIFICATION_WORKERS = int(os.getenv("NOTIFICATION_WORKERS", "4"))
    NOTIFICATION_TIMEOUT_SECONDS = int(os.getenv("NOTIFICATION_TIMEOUT_SECONDS", "10"))

    # Resend email
    RESEND_API_KEY = os.getenv("RESEND_API_KEY")
    EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "SlowDay Deals <noreply@slowdaydeals.com>")

    # Twilio SMS
    TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID")
    TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN")
    TWILIO_FROM_NUMBER = os.getenv("TWILIO_PHONE_NUMBER")


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    RELEASE_SLOTS_ON_CANCEL = False
    NOTIFICATIONS_ENABLED = True
    NOTIFICATIONS_SYNC = True
    RESEND_API_KEY = None
    TWILIO_ACCOUNT_SID = None
    TWILIO_AUTH_TOKEN = None
