"""Error types raised by the booking and lead workflows.

Each error knows the HTTP status and the short ``error`` code the API returns,
so the route layer can let them propagate and have a single handler render
``{"error": ..., "message": ...}`` bodies.
"""
from __future__ import annotations

from flask import Flask, jsonify
from sqlalchemy.exc import SQLAlchemyError

from .extensions import db


class ApiError(Exception):
    status_code = 500
    code = "internal_error"

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code:
            self.code = code

    def to_dict(self) -> dict[str, object]:
        return {"error": self.code, "message": self.message}


class NotFound(ApiError):
    status_code = 404
    code = "not_found"


class InvalidArgument(ApiError):
    status_code = 400
    code = "invalid_payload"


class ValidationFailed(InvalidArgument):
    code = "validation_failed"

    def __init__(self, missing: list[str]) -> None:
        super().__init__(f"Missing required fields: {', '.join(missing)}")
        self.missing = list(missing)

    def to_dict(self) -> dict[str, object]:
        data = super().to_dict()
        data["missing"] = self.missing
        return data


class Unauthorized(ApiError):
    status_code = 401
    code = "unauthorized"


class Forbidden(ApiError):
    status_code = 403
    code = "forbidden"


class Conflict(ApiError):
    status_code = 409
    code = "conflict"


class CapacityExceeded(Conflict):
    code = "capacity_exceeded"


class InternalFailure(ApiError):
    status_code = 500
    code = "database_error"


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ApiError)
    def handle_api_error(exc: ApiError):
        # Drop any half-applied changes from the failed request
        db.session.rollback()
        if exc.status_code >= 500:
            app.logger.error("Request failed: %s", exc.message)
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(exc: SQLAlchemyError):
        db.session.rollback()
        app.logger.exception("Unhandled database error", exc_info=exc)
        return jsonify({"error": "database_error"}), 500
