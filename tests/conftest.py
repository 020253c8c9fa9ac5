"""Shared pytest fixtures: an app per test on a temporary SQLite database."""
from __future__ import annotations

import sys
from datetime import datetime, timedelta
from pathlib import Path
from types import SimpleNamespace

import pytest
from werkzeug.security import generate_password_hash

# Ensure the project root is available on sys.path so tests can import the package.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from marketplace import create_app
from marketplace.auth import build_token
from marketplace.extensions import db
from marketplace.models import AuthAccount, Category, Hire, Role, Service, User, Zone
from marketplace.policy import Actor

PASSWORD = "Secret123!"


@pytest.fixture
def app(tmp_path):
    app = create_app(
        {
            "TESTING": True,
            "SECRET_KEY": "test-secret",
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'test.db'}",
            "UPLOAD_FOLDER": str(tmp_path / "uploads"),
            "STRIPE_SECRET_KEY": "sk_test_123",
            "STRIPE_WEBHOOK_SECRET": "whsec_test_123",
            "FRONTEND_URL": "http://frontend.test",
            "SMTP_HOST": "smtp.test",
            "SMTP_PORT": 587,
            "SMTP_USER": "mailer",
            "SMTP_PASSWORD": "mailer-password",
            "MAIL_FROM": "no-reply@marketplace.test",
        }
    )

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers(app):
    """Return a factory building ``Authorization`` headers for a user id."""

    def _headers(user_id: int) -> dict[str, str]:
        with app.app_context():
            user = db.session.get(User, user_id)
            return {"Authorization": f"Bearer {build_token(user)}"}

    return _headers


def create_user(role: str, email: str, first_name: str = "Test", last_name: str = "User") -> int:
    user = User(first_name=first_name, last_name=last_name, email=email, role=role)
    db.session.add(user)
    db.session.flush()
    db.session.add(AuthAccount(user_id=user.user_id, password_hash=generate_password_hash(PASSWORD)))
    db.session.commit()
    return user.user_id


def create_service(trainer_id: int, category_id: int, zone_id: int, **overrides) -> int:
    starts_at = datetime(2030, 1, 1, 9, 0)
    values = {
        "description": "One hour of functional training",
        "price_cents": 150000,
        "duration_minutes": 60,
        "language": "spanish",
        "modality": "virtual",
        "starts_at": starts_at,
        "ends_at": starts_at + timedelta(hours=1),
        "is_active": True,
    }
    values.update(overrides)
    service = Service(trainer_id=trainer_id, category_id=category_id, zone_id=zone_id, **values)
    db.session.add(service)
    db.session.commit()
    return service.service_id


def create_hire_row(client_id: int, service_id: int, state: str = "pending", **overrides) -> int:
    """Insert a hire directly, bypassing the reservation logic."""
    hire = Hire(client_id=client_id, service_id=service_id, state=state, **overrides)
    db.session.add(hire)
    if state in ("pending", "accepted"):
        db.session.get(Service, service_id).is_active = False
    db.session.commit()
    return hire.hire_id


@pytest.fixture
def data(app):
    """Seed two clients, two trainers, an admin, lookups and one active service."""
    with app.app_context():
        category = Category(name="Fitness")
        zone = Zone(name="Palermo")
        db.session.add_all([category, zone])
        db.session.commit()

        ids = SimpleNamespace(
            admin=create_user("admin", "admin@example.com", "Ada", "Admin"),
            client=create_user("client", "client@example.com", "Carla", "Client"),
            other_client=create_user("client", "other.client@example.com", "Omar", "Client"),
            trainer=create_user("trainer", "trainer@example.com", "Tomas", "Trainer"),
            other_trainer=create_user("trainer", "other.trainer@example.com", "Tina", "Trainer"),
            category=category.category_id,
            zone=zone.zone_id,
        )
        ids.service = create_service(ids.trainer, ids.category, ids.zone)
        return ids


@pytest.fixture
def actor():
    """Build an ``Actor`` for a user id and role name."""

    def _actor(user_id: int, role: str) -> Actor:
        return Actor(user_id=user_id, role=Role(role))

    return _actor
