"""Hire lifecycle: creation with service reservation, transitions, payment state."""
from __future__ import annotations

from datetime import datetime
from typing import Callable

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload

from . import policy
from .errors import Conflict, InvalidTransition, NotFound, ServiceUnavailable, Unauthorized, ValidationError
from .extensions import db, transaction
from .models import LIVE_HIRE_STATES, Hire, HireState, PaymentState, Role, Service, User, utc_now
from .policy import Actor

TRANSITIONS: dict[HireState, frozenset[HireState]] = {
    HireState.PENDING: frozenset({HireState.ACCEPTED, HireState.CANCELLED}),
    HireState.ACCEPTED: frozenset({HireState.COMPLETED, HireState.CANCELLED}),
    HireState.CANCELLED: frozenset(),
    HireState.COMPLETED: frozenset(),
}

# Timestamp column stamped when a hire enters each state.
_STATE_TIMESTAMPS = {
    HireState.ACCEPTED: "accepted_at",
    HireState.COMPLETED: "completed_at",
    HireState.CANCELLED: "cancelled_at",
}


def parse_state(value: object) -> HireState:
    try:
        return HireState(value)
    except ValueError:
        allowed = ", ".join(state.value for state in HireState)
        raise ValidationError(f"state must be one of: {allowed}") from None


def parse_payment_state(value: object) -> PaymentState:
    try:
        return PaymentState(value)
    except ValueError:
        allowed = ", ".join(state.value for state in PaymentState)
        raise ValidationError(f"payment state must be one of: {allowed}") from None


def is_allowed(current: HireState, target: HireState) -> bool:
    return target in TRANSITIONS[current]


def _load_hire(hire_id: int, for_update: bool = False) -> Hire:
    hire = db.session.get(
        Hire,
        hire_id,
        options=[joinedload(Hire.service)],
        with_for_update=for_update or None,
    )
    if hire is None:
        raise NotFound("Hire not found")
    return hire


def create_hire(client_id: int, service_id: int) -> Hire:
    """Hire ``service_id`` on behalf of ``client_id``.

    The service is reserved with one conditional update that only matches an
    active service without a live hire, so two concurrent requests cannot both
    succeed. The partial unique index on live hires catches anything that slips
    past the update.
    """
    with transaction() as session:
        client = session.get(User, client_id)
        if client is None or client.is_deleted or client.role != Role.CLIENT.value:
            raise Unauthorized("Only clients can hire services")

        if session.get(Service, service_id) is None:
            raise NotFound("Service not found")

        live_hire = (
            select(Hire.hire_id)
            .where(Hire.service_id == service_id, Hire.state.in_(LIVE_HIRE_STATES))
            .exists()
        )
        reserved = session.execute(
            update(Service)
            .where(
                Service.service_id == service_id,
                Service.is_active.is_(True),
                ~live_hire,
            )
            .values(is_active=False, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        if reserved.rowcount != 1:
            raise ServiceUnavailable()

        hire = Hire(
            client_id=client_id,
            service_id=service_id,
            state=HireState.PENDING.value,
            payment_state=PaymentState.UNPAID.value,
        )
        session.add(hire)
        try:
            session.flush()
        except IntegrityError as exc:
            raise ServiceUnavailable() from exc
        hire_id = hire.hire_id

    return _load_hire(hire_id)


def update_state(hire_id: int, new_state: object, actor: Actor) -> None:
    """Move a hire to ``new_state`` if the actor may and the table allows it."""
    target = parse_state(new_state)

    with transaction():
        hire = _load_hire(hire_id, for_update=True)
        service = hire.service

        if not policy.can_act_on_hire(hire, actor):
            raise Unauthorized("You are not a participant of this hire")
        if target is HireState.COMPLETED and not policy.can_complete_hire(service, actor):
            raise Unauthorized("Only the trainer offering the service can complete the hire")

        current = HireState(hire.state)
        if not is_allowed(current, target):
            raise InvalidTransition(current.value, target.value)

        now = utc_now()
        hire.state = target.value
        setattr(hire, _STATE_TIMESTAMPS[target], now)

        if target is HireState.CANCELLED:
            service.is_active = True
            service.updated_at = now


def update_payment_state(
    hire_id: int,
    payment_state: object,
    provider_payment_id: str | None = None,
    method: str | None = None,
    paid_at: datetime | None = None,
) -> bool:
    """Record a verified payment outcome. Returns False when nothing changed.

    Lifecycle state is left alone. A successful payment is never downgraded by
    a late ``pending`` or ``failed`` notification.
    """
    target = parse_payment_state(payment_state)

    with transaction():
        hire = _load_hire(hire_id, for_update=True)

        if (
            hire.payment_state == PaymentState.SUCCESSFUL.value
            and target is not PaymentState.SUCCESSFUL
        ):
            return False

        changes = {"payment_state": target.value}
        if provider_payment_id:
            changes["payment_provider_id"] = provider_payment_id
        if method:
            changes["payment_method"] = method
        if paid_at is not None:
            changes["paid_at"] = paid_at
        elif target is PaymentState.SUCCESSFUL and hire.paid_at is None:
            changes["paid_at"] = utc_now()

        changed = False
        for column, value in changes.items():
            if getattr(hire, column) != value:
                setattr(hire, column, value)
                changed = True
        return changed


def get_hire(hire_id: int, actor: Actor) -> Hire:
    hire = _load_hire(hire_id)
    if not (policy.can_view_hire(hire, actor) or policy.is_admin(actor)):
        raise Unauthorized("You are not a participant of this hire")
    return hire


def list_for_actor(actor: Actor) -> list[Hire]:
    query = Hire.query.options(joinedload(Hire.service), joinedload(Hire.client))
    if actor.role is Role.CLIENT:
        query = query.filter(Hire.client_id == actor.user_id)
    elif actor.role is Role.TRAINER:
        query = query.join(Service, Service.service_id == Hire.service_id).filter(
            Service.trainer_id == actor.user_id
        )
    return query.order_by(Hire.requested_at.desc(), Hire.hire_id.desc()).all()


def start_payment(hire_id: int, actor: Actor, open_checkout: Callable[[Hire], dict]) -> dict:
    """Open a checkout for a hire and mark its payment as pending.

    ``open_checkout`` talks to the payment provider and must return a mapping
    with at least ``preference_id``. If it raises, nothing is persisted.
    """
    with transaction():
        hire = _load_hire(hire_id, for_update=True)
        if hire.client_id != actor.user_id:
            raise Unauthorized("Only the client of this hire can pay for it")
        if hire.state == HireState.CANCELLED.value:
            raise Conflict("Cancelled hires cannot be paid")
        if hire.payment_state == PaymentState.SUCCESSFUL.value:
            raise Conflict("This hire has already been paid")

        checkout = open_checkout(hire)
        hire.payment_state = PaymentState.PENDING.value
        hire.payment_provider_id = checkout.get("preference_id")

    return checkout
