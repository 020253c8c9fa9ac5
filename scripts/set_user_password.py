"""Utility to seed or update user account passwords for local development."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Ensure the project root is on sys.path so ``marketplace`` can be imported when the script is executed directly.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from marketplace import create_app
from marketplace.auth import hash_password
from marketplace.extensions import db
from marketplace.models import AuthAccount, Role, User

ROLES = [role.value for role in Role]


def set_password(email: str, password: str, role: str = "trainer") -> None:
    app = create_app()
    email = email.strip().lower()

    with app.app_context():
        user = User.query.filter_by(email=email).first()
        if user is None:
            user = User(first_name=role.capitalize(), last_name="User", email=email, role=role)
            db.session.add(user)
            db.session.flush()
            print(f"Created new {role} user: {email}")
        else:
            if user.role != role:
                print(f"Updating user role from '{user.role}' to '{role}'")
                user.role = role
            if user.is_deleted:
                print("Reactivating deleted account")
                user.is_deleted = False
                user.deleted_at = None

        account = db.session.get(AuthAccount, user.user_id)
        if account is None:
            account = AuthAccount(user_id=user.user_id)
            db.session.add(account)
            print(f"Created auth account for user: {email}")

        account.password_hash = hash_password(password)
        db.session.commit()

        print(f"Password for {role} user '{email}' has been set successfully.")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Set a user password for local testing.")
    parser.add_argument("email", help="User email address")
    parser.add_argument("password", help="Plain-text password to hash and store")
    parser.add_argument(
        "--role",
        choices=ROLES,
        default="trainer",
        help="User role (default: trainer)",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    set_password(args.email, args.password, args.role)


if __name__ == "__main__":
    main()
