"""Unit tests for the authorization decisions."""
from __future__ import annotations

from types import SimpleNamespace

import pytest

from marketplace import policy
from marketplace.models import Role
from marketplace.policy import Actor

CLIENT = Actor(user_id=1, role=Role.CLIENT)
TRAINER = Actor(user_id=2, role=Role.TRAINER)
STRANGER = Actor(user_id=3, role=Role.CLIENT)
OTHER_TRAINER = Actor(user_id=4, role=Role.TRAINER)
ADMIN = Actor(user_id=5, role=Role.ADMIN)


def _hire(state: str = "pending"):
    service = SimpleNamespace(service_id=10, trainer_id=TRAINER.user_id)
    return SimpleNamespace(hire_id=20, client_id=CLIENT.user_id, state=state, service=service)


def _review(response=None):
    return SimpleNamespace(review_id=30, hire=_hire("completed"), response=response)


def test_actor_from_token_payload() -> None:
    built = Actor.from_payload({"user_id": "7", "role": "trainer", "email": "t@example.com"})

    assert built == Actor(user_id=7, role=Role.TRAINER, email="t@example.com")


def test_participants_can_view_and_act() -> None:
    hire = _hire()

    assert policy.can_view_hire(hire, CLIENT)
    assert policy.can_view_hire(hire, TRAINER)
    assert policy.can_act_on_hire(hire, TRAINER)
    assert not policy.can_view_hire(hire, STRANGER)
    assert not policy.can_act_on_hire(hire, OTHER_TRAINER)


def test_only_owning_trainer_completes() -> None:
    service = _hire().service

    assert policy.can_complete_hire(service, TRAINER)
    assert not policy.can_complete_hire(service, OTHER_TRAINER)
    assert not policy.can_complete_hire(service, CLIENT)
    # A client id that happens to match the trainer id is still not a trainer.
    assert not policy.can_complete_hire(service, Actor(user_id=TRAINER.user_id, role=Role.CLIENT))


@pytest.mark.parametrize(
    "state, writable",
    [("pending", True), ("accepted", True), ("completed", False), ("cancelled", False)],
)
def test_chat_write_depends_on_state(state, writable) -> None:
    hire = _hire(state)

    assert policy.can_access_chat(hire, CLIENT)
    assert policy.can_write_chat_or_file(hire, CLIENT) is writable
    assert policy.can_write_chat_or_file(hire, TRAINER) is writable
    assert not policy.can_write_chat_or_file(hire, STRANGER)


def test_can_review_rules() -> None:
    assert policy.can_review(_hire("completed"), CLIENT, already_reviewed=False)
    assert not policy.can_review(_hire("completed"), CLIENT, already_reviewed=True)
    assert not policy.can_review(_hire("accepted"), CLIENT, already_reviewed=False)
    assert not policy.can_review(_hire("completed"), STRANGER, already_reviewed=False)
    assert not policy.can_review(_hire("completed"), TRAINER, already_reviewed=False)


def test_can_respond_to_review_once() -> None:
    review = _review()
    service = review.hire.service

    assert policy.can_respond_to_review(review, service, TRAINER)
    assert not policy.can_respond_to_review(review, service, OTHER_TRAINER)
    assert not policy.can_respond_to_review(_review(response="Thanks!"), service, TRAINER)


def test_can_delete_review() -> None:
    review = _review()

    assert policy.can_delete_review(review, ADMIN, admin=True)
    assert policy.can_delete_review(review, CLIENT, admin=False)
    assert policy.can_delete_review(review, TRAINER, admin=False)
    assert not policy.can_delete_review(review, STRANGER, admin=False)


def test_manage_rules() -> None:
    service = _hire().service

    assert policy.can_manage_service(service, TRAINER)
    assert not policy.can_manage_service(service, OTHER_TRAINER)
    assert policy.can_manage_user(CLIENT.user_id, CLIENT)
    assert policy.can_manage_user(CLIENT.user_id, ADMIN)
    assert not policy.can_manage_user(CLIENT.user_id, STRANGER)
    assert policy.is_admin(ADMIN)
    assert not policy.is_admin(TRAINER)
