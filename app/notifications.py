"""Email and SMS notifications for booking and onboarding events.

Workflows emit a tagged event with ``dispatcher.dispatch("booking.confirmed",
booking=..., service=..., customer=...)`` after their transaction commits.
Payloads are plain dicts (``to_dict()`` snapshots) so handlers never touch a
request-scoped session. Handlers run on a thread pool inside an app context;
anything they raise is logged and dropped so a provider outage can never fail
the request that triggered it.
"""
from __future__ import annotations

import re
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Callable

import resend
from flask import Flask, current_app
from resend.http_client_requests import RequestsClient
from twilio.http.http_client import TwilioHttpClient
from twilio.rest import Client

EVENT_HANDLERS: dict[str, Callable[..., None]] = {}

PHONE_PATTERN = re.compile(r"^\+?[\d\s\-()+]{7,}$")


def on(event: str):
    """Register the handler for an event name."""

    def decorator(func: Callable[..., None]) -> Callable[..., None]:
        EVENT_HANDLERS[event] = func
        return func

    return decorator


class NotificationDispatcher:
    def __init__(self, app: Flask | None = None) -> None:
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        app.extensions["notifications"] = ThreadPoolExecutor(
            max_workers=app.config["NOTIFICATION_WORKERS"],
            thread_name_prefix="notify",
        )

    def dispatch(self, event: str, **payload) -> None:
        app = current_app._get_current_object()
        handler = EVENT_HANDLERS.get(event)
        if handler is None:
            app.logger.warning("No notification handler for event %s", event)
            return
        if not app.config["NOTIFICATIONS_ENABLED"]:
            app.logger.debug("Notifications disabled, dropping %s", event)
            return

        if app.config["NOTIFICATIONS_SYNC"]:
            self._deliver(app, event, handler, payload)
        else:
            app.extensions["notifications"].submit(self._deliver, app, event, handler, payload)

    @staticmethod
    def _deliver(app: Flask, event: str, handler: Callable[..., None], payload: dict) -> None:
        with app.app_context():
            try:
                handler(**payload)
            except Exception:
                app.logger.exception("Notification handler for %s failed", event)


# --- Delivery channels ---


def send_email(to: str | None, subject: str, html: str) -> bool:
    config = current_app.config
    if not config.get("RESEND_API_KEY") or not to or "@" not in to:
        current_app.logger.info("[EMAIL SKIPPED] to=%s subject=%s", to, subject)
        return False

    resend.api_key = config["RESEND_API_KEY"]
    resend.default_http_client = RequestsClient(timeout=config["NOTIFICATION_TIMEOUT_SECONDS"])
    response = resend.Emails.send(
        {
            "from": config["EMAIL_FROM_ADDRESS"],
            "to": [to],
            "subject": subject,
            "html": html,
        }
    )
    current_app.logger.info("Email sent to %s: %s", to, response)
    return True


def _twilio_client() -> Client | None:
    config = current_app.config
    if not config.get("TWILIO_ACCOUNT_SID") or not config.get("TWILIO_AUTH_TOKEN"):
        return None
    return Client(
        config["TWILIO_ACCOUNT_SID"],
        config["TWILIO_AUTH_TOKEN"],
        http_client=TwilioHttpClient(timeout=config["NOTIFICATION_TIMEOUT_SECONDS"]),
    )


def normalize_phone(raw: str | None) -> str | None:
    """Return an E.164 number, assuming +1 when no country code is given."""
    if not raw:
        return None
    digits = re.sub(r"\D", "", raw)
    if len(digits) < 10:
        return None
    return f"+{digits}" if raw.strip().startswith("+") else f"+1{digits}"


def send_sms(to: str | None, body: str) -> bool:
    client = _twilio_client()
    phone = normalize_phone(to)
    from_number = current_app.config.get("TWILIO_FROM_NUMBER")
    if client is None or not from_number or phone is None:
        current_app.logger.info("[SMS SKIPPED] to=%s", to)
        return False

    message = client.messages.create(body=body, from_=from_number, to=phone)
    current_app.logger.info("SMS sent to %s (SID: %s)", phone, message.sid)
    return True


def _send_each(*sends: tuple[Callable[..., bool], tuple]) -> None:
    # One failed channel must not stop the other
    for func, args in sends:
        try:
            func(*args)
        except Exception:
            current_app.logger.exception("%s failed", func.__name__)


# --- Formatting ---


def format_when(value: str | datetime) -> str:
    moment = datetime.fromisoformat(value) if isinstance(value, str) else value
    return moment.strftime("%A, %B %d, %Y at %I:%M %p")


def _short_date(value: str | datetime) -> str:
    moment = datetime.fromisoformat(value) if isinstance(value, str) else value
    return moment.strftime("%m/%d/%Y")


def _table(rows: list[tuple[str, object]]) -> str:
    cells = "".join(f"<tr><td>{label}</td><td><strong>{value}</strong></td></tr>" for label, value in rows)
    return f"<table>{cells}</table>"


def _provider_email(service: dict) -> str | None:
    if service.get("email"):
        return service["email"]
    contact = service.get("contact") or ""
    return contact if "@" in contact else None


def _provider_phone(service: dict) -> str | None:
    contact = service.get("contact") or ""
    return contact if PHONE_PATTERN.match(contact) else None


# --- Event handlers ---


@on("booking.created")
def notify_provider_new_booking(booking: dict, service: dict, customer: dict) -> None:
    rows = [
        ("Service", service["service_type"]),
        ("Customer", customer["name"]),
        ("Contact", booking["customer_contact"]),
        ("Date & Time", format_when(booking["preferred_time"])),
        ("Price", f"${booking['price']:g}"),
    ]
    if booking.get("notes"):
        rows.append(("Notes", booking["notes"]))
    html = f"<h2>New Booking Request!</h2>{_table(rows)}<p>Open the app to confirm or reschedule.</p>"

    _send_each(
        (send_email, (_provider_email(service), f"New Booking - {service['service_type']}", html)),
        (
            send_sms,
            (
                _provider_phone(service),
                f"SlowDay Deals: New booking! {customer['name']} wants {service['service_type']} "
                f"on {_short_date(booking['preferred_time'])}. ${booking['price']:g}. Open app to confirm.",
            ),
        ),
    )


@on("booking.confirmed")
def notify_customer_confirmed(booking: dict, service: dict, customer: dict) -> None:
    html = "<h2>Booking Confirmed!</h2>" + _table(
        [
            ("Service", service["service_type"]),
            ("Provider", service["provider_name"]),
            ("Location", service["location"]),
            ("Date & Time", format_when(booking["preferred_time"])),
            ("Price", f"${booking['price']:g}"),
        ]
    )
    _send_each(
        (send_email, (customer.get("email"), f"Booking Confirmed - {service['service_type']}", html)),
        (
            send_sms,
            (
                customer.get("phone"),
                f"SlowDay Deals: Your {service['service_type']} with {service['provider_name']} is "
                f"CONFIRMED for {_short_date(booking['preferred_time'])}. See you then!",
            ),
        ),
    )


@on("booking.rejected")
def notify_customer_rejected(booking: dict, service: dict, customer: dict) -> None:
    html = (
        "<h2>Booking Unavailable</h2>"
        f"<p>The provider is unable to take your <strong>{service['service_type']}</strong> booking at this time.</p>"
        "<p>Please try a different time or browse other providers on the app.</p>"
    )
    _send_each(
        (send_email, (customer.get("email"), f"Booking Update - {service['service_type']}", html)),
        (
            send_sms,
            (
                customer.get("phone"),
                f"SlowDay Deals: Your {service['service_type']} booking was not available. "
                "Please try a different time or provider on the app.",
            ),
        ),
    )


@on("booking.rescheduled")
def notify_customer_rescheduled(booking: dict, service: dict, customer: dict, new_time: str) -> None:
    when = format_when(new_time)
    html = (
        "<h2>Booking Rescheduled</h2>"
        f"<p>Your <strong>{service['service_type']}</strong> has been moved to:</p><p><strong>{when}</strong></p>"
        "<p>Open the app to accept or decline this new time.</p>"
    )
    _send_each(
        (send_email, (customer.get("email"), f"Rescheduled - {service['service_type']}", html)),
        (
            send_sms,
            (
                customer.get("phone"),
                f"SlowDay Deals: Your {service['service_type']} has been rescheduled to {when}. "
                "Open the app to confirm.",
            ),
        ),
    )


@on("booking.cancelled_by_customer")
def notify_provider_cancelled(booking: dict, service: dict, customer: dict) -> None:
    html = "<h2>Booking Cancelled</h2>" + _table(
        [
            ("Service", service["service_type"]),
            ("Customer", customer["name"]),
            ("Date & Time", format_when(booking["preferred_time"])),
        ]
    )
    _send_each(
        (send_email, (_provider_email(service), f"Booking Cancelled - {service['service_type']}", html)),
        (
            send_sms,
            (
                _provider_phone(service),
                f"SlowDay Deals: {customer['name']} cancelled their {service['service_type']} "
                f"booking on {_short_date(booking['preferred_time'])}.",
            ),
        ),
    )


@on("provider.setup_link")
def notify_provider_setup_link(email: str, name: str, setup_url: str, expires_at: str) -> None:
    html = (
        f"<h2>Welcome to SlowDay Deals, {name}!</h2>"
        "<p>We created a provider profile for your business. "
        f'<a href="{setup_url}">Finish setting up your account</a> to activate your deal.</p>'
        f"<p>This link expires on {format_when(expires_at)}.</p>"
    )
    send_email(email, "Your SlowDay Deals provider profile is ready", html)
