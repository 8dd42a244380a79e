"""Create or update a back-office staff login for local development."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

from werkzeug.security import generate_password_hash

# Ensure the project root is on sys.path so ``app`` can be imported when the script is executed directly.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app import create_app  # noqa: E402
from app.extensions import db  # noqa: E402
from app.models import Staff  # noqa: E402

STAFF_ROLES = ("super_admin", "admin", "sales", "support")


def set_staff(email: str, password: str, role: str, name: str | None) -> None:
    app = create_app()

    with app.app_context():
        db.create_all()
        email = email.strip().lower()
        staff = Staff.query.filter_by(email=email).first()
        if staff is None:
            staff = Staff(name=name or email.split("@")[0], email=email, role=role)
            db.session.add(staff)
            print(f"Created new {role} staff member: {email}")
        elif staff.role != role:
            print(f"Updating staff role from '{staff.role}' to '{role}'")
            staff.role = role

        if name:
            staff.name = name
        staff.is_active = True
        staff.password_hash = generate_password_hash(password)
        db.session.commit()

        print(f"Password for {role} '{email}' has been set successfully.")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create a staff login for the lead back office.")
    parser.add_argument("email", help="Staff email address")
    parser.add_argument("password", help="Plain-text password to hash and store")
    parser.add_argument("--role", choices=STAFF_ROLES, default="sales", help="Staff role (default: sales)")
    parser.add_argument("--name", help="Display name")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    set_staff(args.email, args.password, args.role, args.name)


if __name__ == "__main__":
    main()
