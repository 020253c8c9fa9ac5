"""Database models for the trainer marketplace backend."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import text

from .extensions import db


def utc_now() -> datetime:
    """Return a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class Role(str, Enum):
    ADMIN = "admin"
    CLIENT = "client"
    TRAINER = "trainer"


class HireState(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class PaymentState(str, Enum):
    UNPAID = "unpaid"
    PENDING = "pending"
    SUCCESSFUL = "successful"
    FAILED = "failed"


class ModerationState(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


# A hire in one of these states blocks its service from being hired again.
LIVE_HIRE_STATES = (HireState.PENDING.value, HireState.ACCEPTED.value)

SERVICE_DURATIONS = (15, 30, 60)
SERVICE_LANGUAGES = ("spanish", "english")
SERVICE_MODALITIES = ("virtual", "in_person")


def _enum_column(enum_cls: type[Enum], name: str) -> db.Enum:
    return db.Enum(
        *[member.value for member in enum_cls],
        name=name,
        native_enum=False,
        validate_strings=True,
    )


class User(db.Model):
    __tablename__ = "users"

    user_id = db.Column(db.Integer, primary_key=True)
    role = db.Column(_enum_column(Role, "user_role"), nullable=False, server_default="client")
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False, server_default="")
    email = db.Column(db.String(255), unique=True, nullable=False)
    birth_date = db.Column(db.Date)
    is_deleted = db.Column(db.Boolean, nullable=False, default=False, server_default="0")
    deleted_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    auth_account = db.relationship("AuthAccount", back_populates="user", uselist=False)
    services = db.relationship("Service", back_populates="trainer", lazy="dynamic")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def to_dict_basic(self) -> dict[str, object]:
        return {
            "id": self.user_id,
            "user_id": self.user_id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "name": self.full_name,
            "email": self.email,
            "role": self.role,
        }

    def to_dict(self) -> dict[str, object]:
        data = self.to_dict_basic()
        data.update(
            {
                "birth_date": self.birth_date.isoformat() if self.birth_date else None,
                "created_at": _isoformat(self.created_at),
                "updated_at": _isoformat(self.updated_at),
            }
        )
        return data


class AuthAccount(db.Model):
    __tablename__ = "auth_accounts"

    user_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), primary_key=True)
    password_hash = db.Column(db.String(255), nullable=False)
    last_login_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    user = db.relationship("User", back_populates="auth_account")


class Category(db.Model):
    __tablename__ = "categories"

    category_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)

    def to_dict(self) -> dict[str, object]:
        return {"id": self.category_id, "name": self.name}


class Zone(db.Model):
    __tablename__ = "zones"

    zone_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)

    def to_dict(self) -> dict[str, object]:
        return {"id": self.zone_id, "name": self.name}


class Service(db.Model):
    """A training offer published by a trainer."""

    __tablename__ = "services"

    service_id = db.Column(db.Integer, primary_key=True)
    trainer_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.category_id"), nullable=False)
    zone_id = db.Column(db.Integer, db.ForeignKey("zones.zone_id"), nullable=False)
    description = db.Column(db.Text, nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)
    duration_minutes = db.Column(db.Integer, nullable=False)
    language = db.Column(db.String(20), nullable=False)
    modality = db.Column(db.String(20), nullable=False)
    starts_at = db.Column(db.DateTime, nullable=False)
    ends_at = db.Column(db.DateTime, nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True, server_default="1")
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    trainer = db.relationship("User", back_populates="services")
    category = db.relationship("Category")
    zone = db.relationship("Zone")
    hires = db.relationship("Hire", back_populates="service", lazy="dynamic")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.service_id,
            "trainer_id": self.trainer_id,
            "trainer_name": self.trainer.full_name if self.trainer else None,
            "category_id": self.category_id,
            "category": self.category.name if self.category else None,
            "zone_id": self.zone_id,
            "zone": self.zone.name if self.zone else None,
            "description": self.description,
            "price_cents": self.price_cents,
            "price": self.price_cents / 100.0,
            "duration_minutes": self.duration_minutes,
            "language": self.language,
            "modality": self.modality,
            "starts_at": _isoformat(self.starts_at),
            "ends_at": _isoformat(self.ends_at),
            "is_active": bool(self.is_active),
            "created_at": _isoformat(self.created_at),
            "updated_at": _isoformat(self.updated_at),
        }


class ServiceView(db.Model):
    """One detail-page view of a service, used for conversion statistics."""

    __tablename__ = "service_views"

    view_id = db.Column(db.Integer, primary_key=True)
    service_id = db.Column(db.Integer, db.ForeignKey("services.service_id"), nullable=False)
    viewer_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=True)
    viewed_at = db.Column(db.DateTime, nullable=False, default=utc_now)


class Hire(db.Model):
    """A client's hire of a single service."""

    __tablename__ = "hires"
    __table_args__ = (
        # At most one live hire per service, enforced by the store itself.
        db.Index(
            "uq_hires_live_service",
            "service_id",
            unique=True,
            sqlite_where=text("state IN ('pending', 'accepted')"),
            postgresql_where=text("state IN ('pending', 'accepted')"),
        ),
    )

    hire_id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False)
    service_id = db.Column(db.Integer, db.ForeignKey("services.service_id"), nullable=False)
    state = db.Column(
        _enum_column(HireState, "hire_state"),
        nullable=False,
        default=HireState.PENDING.value,
        server_default=HireState.PENDING.value,
    )
    payment_state = db.Column(
        _enum_column(PaymentState, "payment_state"),
        nullable=False,
        default=PaymentState.UNPAID.value,
        server_default=PaymentState.UNPAID.value,
    )
    requested_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    accepted_at = db.Column(db.DateTime)
    completed_at = db.Column(db.DateTime)
    cancelled_at = db.Column(db.DateTime)
    payment_provider_id = db.Column(db.String(255))
    payment_method = db.Column(db.String(50))
    paid_at = db.Column(db.DateTime)

    client = db.relationship("User", foreign_keys=[client_id])
    service = db.relationship("Service", back_populates="hires")
    review = db.relationship("Review", back_populates="hire", uselist=False)

    def to_dict(self) -> dict[str, object]:
        service = self.service
        return {
            "id": self.hire_id,
            "client_id": self.client_id,
            "client_name": self.client.full_name if self.client else None,
            "service_id": self.service_id,
            "service": {
                "id": service.service_id,
                "description": service.description,
                "price_cents": service.price_cents,
                "price": service.price_cents / 100.0,
                "duration_minutes": service.duration_minutes,
                "category": service.category.name if service.category else None,
            } if service else None,
            "trainer_id": service.trainer_id if service else None,
            "trainer_name": service.trainer.full_name if service and service.trainer else None,
            "state": self.state,
            "payment_state": self.payment_state,
            "requested_at": _isoformat(self.requested_at),
            "accepted_at": _isoformat(self.accepted_at),
            "completed_at": _isoformat(self.completed_at),
            "cancelled_at": _isoformat(self.cancelled_at),
            "payment_provider_id": self.payment_provider_id,
            "payment_method": self.payment_method,
            "paid_at": _isoformat(self.paid_at),
        }


class Message(db.Model):
    __tablename__ = "messages"

    message_id = db.Column(db.Integer, primary_key=True)
    hire_id = db.Column(db.Integer, db.ForeignKey("hires.hire_id"), nullable=False, index=True)
    sender_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False)
    body = db.Column(db.Text, nullable=False)
    sent_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    sender = db.relationship("User")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.message_id,
            "hire_id": self.hire_id,
            "sender_id": self.sender_id,
            "sender_name": self.sender.full_name if self.sender else None,
            "sender_role": self.sender.role if self.sender else None,
            "text": self.body,
            "sent_at": _isoformat(self.sent_at),
        }


class SharedFile(db.Model):
    __tablename__ = "shared_files"

    file_id = db.Column(db.Integer, primary_key=True)
    hire_id = db.Column(db.Integer, db.ForeignKey("hires.hire_id"), nullable=False, index=True)
    uploader_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False)
    original_name = db.Column(db.String(255), nullable=False)
    storage_key = db.Column(db.String(500), nullable=False)
    mime_type = db.Column(db.String(150), nullable=False)
    uploaded_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    is_deleted = db.Column(db.Boolean, nullable=False, default=False, server_default="0")

    uploader = db.relationship("User")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.file_id,
            "hire_id": self.hire_id,
            "name": self.original_name,
            "mime_type": self.mime_type,
            "uploaded_at": _isoformat(self.uploaded_at),
            "uploader_id": self.uploader_id,
            "uploaded_by": self.uploader.full_name if self.uploader else None,
        }


class Review(db.Model):
    """A client's review of a completed hire, with an optional trainer response."""

    __tablename__ = "reviews"

    review_id = db.Column(db.Integer, primary_key=True)
    hire_id = db.Column(db.Integer, db.ForeignKey("hires.hire_id"), nullable=False, unique=True)
    rating = db.Column(db.Integer, nullable=False)  # 1-5 stars
    comment = db.Column(db.Text, nullable=False)
    moderation_state = db.Column(
        _enum_column(ModerationState, "moderation_state"),
        nullable=False,
        default=ModerationState.PENDING.value,
        server_default=ModerationState.PENDING.value,
    )
    response = db.Column(db.Text, nullable=True)
    response_at = db.Column(db.DateTime, nullable=True)
    responder_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    hire = db.relationship("Hire", back_populates="review")
    responder = db.relationship("User")

    def to_dict(self) -> dict[str, object]:
        hire = self.hire
        service = hire.service if hire else None
        return {
            "id": self.review_id,
            "hire_id": self.hire_id,
            "rating": self.rating,
            "comment": self.comment,
            "moderation_state": self.moderation_state,
            "client_id": hire.client_id if hire else None,
            "client_name": hire.client.full_name if hire and hire.client else None,
            "service_id": service.service_id if service else None,
            "service_description": service.description if service else None,
            "trainer_id": service.trainer_id if service else None,
            "trainer_name": service.trainer.full_name if service and service.trainer else None,
            "response": self.response,
            "response_at": _isoformat(self.response_at),
            "responder_name": self.responder.full_name if self.responder else None,
            "created_at": _isoformat(self.created_at),
            "updated_at": _isoformat(self.updated_at),
        }
