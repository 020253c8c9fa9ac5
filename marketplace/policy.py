"""Authorization decisions over already-loaded facts.

Every function here is pure: it looks only at the rows and the acting identity
it is handed and returns a boolean. Callers decide which error to raise.
"""
from __future__ import annotations

from dataclasses import dataclass

from .models import LIVE_HIRE_STATES, Hire, HireState, Review, Role, Service


@dataclass(frozen=True)
class Actor:
    """The authenticated identity carried by a request token."""

    user_id: int
    role: Role
    email: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, object]) -> "Actor":
        return cls(
            user_id=int(payload["user_id"]),
            role=Role(payload["role"]),
            email=payload.get("email"),
        )


def is_admin(requester: Actor) -> bool:
    return requester.role is Role.ADMIN


def _is_client_of(hire: Hire, requester: Actor) -> bool:
    return hire.client_id == requester.user_id


def _is_trainer_of(service: Service | None, requester: Actor) -> bool:
    return service is not None and service.trainer_id == requester.user_id


def can_view_hire(hire: Hire, requester: Actor) -> bool:
    return _is_client_of(hire, requester) or _is_trainer_of(hire.service, requester)


def can_act_on_hire(hire: Hire, requester: Actor) -> bool:
    return can_view_hire(hire, requester)


def can_complete_hire(service: Service, requester: Actor) -> bool:
    """Only the trainer who owns the service may mark its hire completed."""
    return requester.role is Role.TRAINER and _is_trainer_of(service, requester)


def can_access_chat(hire: Hire, requester: Actor) -> bool:
    return can_view_hire(hire, requester)


def can_write_chat_or_file(hire: Hire, requester: Actor) -> bool:
    return can_access_chat(hire, requester) and hire.state in LIVE_HIRE_STATES


def can_review(hire: Hire, requester: Actor, already_reviewed: bool) -> bool:
    return (
        _is_client_of(hire, requester)
        and hire.state == HireState.COMPLETED.value
        and not already_reviewed
    )


def can_respond_to_review(review: Review, hire_service: Service, requester: Actor) -> bool:
    return _is_trainer_of(hire_service, requester) and review.response is None


def can_delete_review(review: Review, requester: Actor, admin: bool) -> bool:
    if admin:
        return True
    hire = review.hire
    if hire is None:
        return False
    return _is_client_of(hire, requester) or _is_trainer_of(hire.service, requester)


def can_manage_service(service: Service, requester: Actor) -> bool:
    return requester.role is Role.TRAINER and _is_trainer_of(service, requester)


def can_manage_user(user_id: int, requester: Actor) -> bool:
    return requester.user_id == user_id or is_admin(requester)
