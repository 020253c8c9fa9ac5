"""User profiles: listing, lookup, profile edits and soft deletion."""
from __future__ import annotations

from . import policy
from .errors import NotFound, Unauthorized
from .extensions import db, transaction
from .models import User, utc_now
from .policy import Actor
from .validation import USER_PROFILE_FIELDS, clean_payload


def _load_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None or user.is_deleted:
        raise NotFound("User not found")
    return user


def list_users(actor: Actor, role: str | None = None) -> list[User]:
    if not policy.is_admin(actor):
        raise Unauthorized("Only administrators can list users")
    query = User.query.filter(User.is_deleted.is_(False))
    if role:
        query = query.filter(User.role == role)
    return query.order_by(User.user_id.asc()).all()


def get_user(user_id: int) -> User:
    return _load_user(user_id)


def update_profile(user_id: int, actor: Actor, payload: dict[str, object] | None) -> User:
    if not policy.can_manage_user(user_id, actor):
        raise Unauthorized("You can only edit your own profile")
    user = _load_user(user_id)
    values = clean_payload(payload, USER_PROFILE_FIELDS, partial=True)

    with transaction():
        for column, value in values.items():
            setattr(user, column, value)

    return _load_user(user_id)


def delete_user(user_id: int, actor: Actor) -> None:
    """Deactivate an account. Rows are kept so hires and reviews stay intact."""
    if not policy.can_manage_user(user_id, actor):
        raise Unauthorized("You can only delete your own account")
    user = _load_user(user_id)

    with transaction():
        user.is_deleted = True
        user.deleted_at = utc_now()
