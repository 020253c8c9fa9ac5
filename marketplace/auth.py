"""Credentials, session tokens and password reset tokens."""
from __future__ import annotations

import hashlib
import re

from flask import current_app, request
from itsdangerous import BadData, SignatureExpired, URLSafeTimedSerializer
from sqlalchemy.exc import IntegrityError
from werkzeug.security import check_password_hash, generate_password_hash

from .errors import Conflict, Unauthenticated, Unauthorized, ValidationError
from .extensions import db, transaction
from .models import AuthAccount, Role, User, utc_now
from .policy import Actor
from .validation import parse_date

AUTH_TOKEN_SALT = "auth-token"
PASSWORD_RESET_SALT = "password-reset"

# At least 8 characters with an uppercase letter, a digit and a special character.
PASSWORD_PATTERN = re.compile(r"^(?=.*[A-Z])(?=.*\d)(?=.*[^A-Za-z0-9]).{8,}$")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

REGISTRABLE_ROLES = (Role.CLIENT.value, Role.TRAINER.value)


def _serializer(salt: str) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt=salt)


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password_hash: str, password: str) -> bool:
    return check_password_hash(password_hash, password)


def check_password_strength(password: object) -> str:
    if not isinstance(password, str) or not PASSWORD_PATTERN.match(password):
        raise ValidationError(
            "password must be at least 8 characters and include an uppercase letter, "
            "a number and a special character"
        )
    return password


def build_token(user: User) -> str:
    return _serializer(AUTH_TOKEN_SALT).dumps(
        {"user_id": user.user_id, "role": user.role, "email": user.email}
    )


def current_actor() -> Actor:
    """Resolve the ``Authorization: Bearer`` header into an ``Actor``.

    Raises ``Unauthenticated`` when the token is missing, tampered with, expired
    or belongs to an account that no longer exists.
    """
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        raise Unauthenticated()

    token = auth_header[7:].strip()
    try:
        payload = _serializer(AUTH_TOKEN_SALT).loads(
            token, max_age=current_app.config.get("TOKEN_MAX_AGE", 86400)
        )
    except SignatureExpired:
        raise Unauthenticated("Your session has expired. Please log in again.") from None
    except BadData:
        raise Unauthenticated("Invalid authentication token.") from None

    if not isinstance(payload, dict) or "user_id" not in payload:
        raise Unauthenticated("Invalid authentication token.")

    user = db.session.get(User, payload["user_id"])
    if user is None or user.is_deleted:
        raise Unauthenticated("This account is no longer active.")
    return Actor(user_id=user.user_id, role=Role(user.role), email=user.email)


def register(payload: dict[str, object]) -> User:
    first_name = str(payload.get("first_name") or "").strip()
    last_name = str(payload.get("last_name") or "").strip()
    email = str(payload.get("email") or "").strip().lower()
    password = payload.get("password")
    confirmation = payload.get("password_confirmation", password)
    role = str(payload.get("role") or Role.CLIENT.value).strip().lower()

    if not first_name or not last_name or not email or not password:
        raise ValidationError("first_name, last_name, email and password are required")
    if not EMAIL_PATTERN.match(email):
        raise ValidationError("email is not valid")
    if role not in REGISTRABLE_ROLES:
        raise ValidationError("role must be 'client' or 'trainer'")
    check_password_strength(password)
    if confirmation != password:
        raise ValidationError("passwords do not match")

    birth_date = None
    if payload.get("birth_date"):
        birth_date = parse_date(payload["birth_date"], "birth_date")

    if User.query.filter_by(email=email).first() is not None:
        raise Conflict("An account with that email already exists")

    with transaction() as session:
        user = User(
            first_name=first_name,
            last_name=last_name,
            email=email,
            role=role,
            birth_date=birth_date,
        )
        session.add(user)
        try:
            session.flush()
        except IntegrityError as exc:
            raise Conflict("An account with that email already exists") from exc
        session.add(AuthAccount(user_id=user.user_id, password_hash=hash_password(password)))
        user_id = user.user_id

    return db.session.get(User, user_id)


def login(email: object, password: object) -> tuple[User, str]:
    email = str(email or "").strip().lower()
    if not email or not password:
        raise ValidationError("email and password are required")

    record = (
        db.session.query(User, AuthAccount)
        .join(AuthAccount, AuthAccount.user_id == User.user_id)
        .filter(User.email == email)
        .first()
    )
    if record is None:
        raise Unauthenticated("invalid email or password")

    user, account = record
    if user.is_deleted:
        raise Unauthorized("This account has been deactivated")
    if not verify_password(account.password_hash, str(password)):
        raise Unauthenticated("invalid email or password")

    with transaction():
        account.last_login_at = utc_now()

    return user, build_token(user)


def change_password(actor: Actor, current_password: object, new_password: object) -> None:
    if not current_password or not new_password:
        raise ValidationError("current_password and new_password are required")

    account = db.session.get(AuthAccount, actor.user_id)
    if account is None or not verify_password(account.password_hash, str(current_password)):
        raise Unauthenticated("current password is incorrect")
    if current_password == new_password:
        raise ValidationError("the new password must be different from the current one")
    check_password_strength(new_password)

    with transaction():
        account.password_hash = hash_password(new_password)


def _hash_fingerprint(password_hash: str) -> str:
    return hashlib.sha256(password_hash.encode("utf-8")).hexdigest()[:16]


def build_password_reset_token(user: User) -> str:
    """Issue a reset token bound to the current password hash.

    Once the password changes, the fingerprint no longer matches and the token
    stops working.
    """
    return _serializer(PASSWORD_RESET_SALT).dumps(
        {"user_id": user.user_id, "fp": _hash_fingerprint(user.auth_account.password_hash)}
    )


def find_user_for_reset(email: object) -> User | None:
    email = str(email or "").strip().lower()
    if not email:
        raise ValidationError("email is required")
    user = User.query.filter_by(email=email, is_deleted=False).first()
    if user is None or user.auth_account is None:
        return None
    return user


def reset_password(token: object, new_password: object, confirmation: object = None) -> None:
    if not token or not new_password:
        raise ValidationError("token and password are required")
    check_password_strength(new_password)
    if confirmation is not None and confirmation != new_password:
        raise ValidationError("passwords do not match")

    try:
        payload = _serializer(PASSWORD_RESET_SALT).loads(
            str(token), max_age=current_app.config.get("PASSWORD_RESET_MAX_AGE", 3600)
        )
    except BadData:
        raise ValidationError("The reset link is invalid or has expired") from None

    with transaction() as session:
        account = session.get(AuthAccount, payload.get("user_id"))
        if account is None or _hash_fingerprint(account.password_hash) != payload.get("fp"):
            raise ValidationError("The reset link is invalid or has expired")
        if account.user.is_deleted:
            raise ValidationError("The reset link is invalid or has expired")
        account.password_hash = hash_password(str(new_password))
