"""Back-office routes: staff login and lead management."""
from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from itsdangerous import BadSignature, URLSafeTimedSerializer

from . import accounts, leads
from .errors import Forbidden, InvalidArgument, NotFound, Unauthorized
from .extensions import db
from .models import Lead, Staff

bp_admin = Blueprint("admin", __name__, url_prefix="/admin")

CONVERTING_ROLES = ("super_admin", "admin", "sales")


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt="staff-token")


def get_staff_identity() -> int | None:
    """Return the staff_id carried by the bearer token, or None."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    try:
        payload = _serializer().loads(auth_header[7:], max_age=current_app.config["AUTH_TOKEN_MAX_AGE"])
    except BadSignature:
        return None
    return payload.get("staff_id")


def _current_staff() -> Staff:
    staff_id = get_staff_identity()
    staff = db.session.get(Staff, staff_id) if staff_id is not None else None
    if staff is None or not staff.is_active:
        raise Unauthorized("staff authentication required")
    return staff


@bp_admin.post("/auth/login")
def staff_login() -> tuple[dict[str, object], int]:
    payload = request.get_json(silent=True) or {}
    email = (payload.get("email") or "").strip().lower()
    password = payload.get("password") or ""
    if not email or not password:
        raise InvalidArgument("email and password are required")

    staff = accounts.authenticate_staff(email, password)
    token = _serializer().dumps({"staff_id": staff.staff_id, "role": staff.role})
    return jsonify({"token": token, "staff": staff.to_dict()}), 200


@bp_admin.get("/leads")
def list_leads() -> tuple[dict[str, object], int]:
    """List leads, newest first.
    ---
    tags:
      - Leads
    parameters:
      - name: status
        in: query
        type: string
      - name: assignee_id
        in: query
        type: integer
    responses:
      200:
        description: Matching leads
    """
    _current_staff()
    items = leads.list_leads(
        status=request.args.get("status"),
        assignee_id=request.args.get("assignee_id", type=int),
    )
    return jsonify({"count": len(items), "leads": [lead.to_dict() for lead in items]}), 200


@bp_admin.post("/leads")
def create_lead() -> tuple[dict[str, object], int]:
    staff = _current_staff()
    payload = request.get_json(silent=True) or {}
    lead = leads.create_lead(payload)
    current_app.logger.info("Lead %s created by staff %s", lead.lead_id, staff.staff_id)
    return jsonify({"lead": lead.to_dict()}), 201


@bp_admin.get("/leads/<int:lead_id>")
def get_lead(lead_id: int) -> tuple[dict[str, object], int]:
    _current_staff()
    lead = db.session.get(Lead, lead_id)
    if lead is None:
        raise NotFound("Lead not found")
    return jsonify({"lead": lead.to_dict()}), 200


@bp_admin.put("/leads/<int:lead_id>")
def update_lead(lead_id: int) -> tuple[dict[str, object], int]:
    _current_staff()
    lead = leads.update_lead(lead_id, request.get_json(silent=True) or {})
    return jsonify({"lead": lead.to_dict()}), 200


@bp_admin.post("/leads/<int:lead_id>/convert")
def convert_lead(lead_id: int) -> tuple[dict[str, object], int]:
    """Turn a lead into a provider account and an inactive deal listing.
    ---
    tags:
      - Leads
    responses:
      201:
        description: Provider and service created; setup link emailed when possible
      400:
        description: Lead is missing required fields (listed in "missing")
      404:
        description: Lead not found
      409:
        description: Email already registered or lead already converted
      500:
        description: Persistence failure; the provider account is rolled back
    """
    staff = _current_staff()
    if staff.role not in CONVERTING_ROLES:
        raise Forbidden("Your role cannot convert leads")

    user, service = leads.convert_lead(lead_id)
    current_app.logger.info("Lead %s converted by staff %s", lead_id, staff.staff_id)
    return (
        jsonify(
            {
                "message": "Provider profile created",
                "user": user.to_dict_basic(),
                "service": service.to_dict(),
                "setup_url": leads.setup_url(user.setup_token),
            }
        ),
        201,
    )
