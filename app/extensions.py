"""Shared Flask extensions for the application."""
from __future__ import annotations

from flask_sqlalchemy import SQLAlchemy

from .notifications import NotificationDispatcher

# SQLAlchemy database instance shared across the app.
db = SQLAlchemy()

# Background email/SMS dispatch; bound to the app in create_app().
dispatcher = NotificationDispatcher()
