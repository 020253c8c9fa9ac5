"""Tests for registration, login, tokens and password reset."""
from __future__ import annotations

import email
import smtplib
from unittest.mock import patch

import pytest

from conftest import PASSWORD
from marketplace import auth
from marketplace.extensions import db
from marketplace.models import AuthAccount, User

NEW_PASSWORD = "NewSecret456$"


def _register_payload(**overrides) -> dict:
    payload = {
        "first_name": "Lucia",
        "last_name": "Gomez",
        "email": "Lucia@Example.com",
        "password": PASSWORD,
        "password_confirmation": PASSWORD,
        "role": "trainer",
        "birth_date": "1990-05-17",
    }
    payload.update(overrides)
    return payload


def test_register_success_201(app, client) -> None:
    response = client.post("/auth/register", json=_register_payload())

    assert response.status_code == 201
    body = response.get_json()
    assert body["token"]
    assert body["user"]["email"] == "lucia@example.com"
    assert body["user"]["role"] == "trainer"

    with app.app_context():
        user = User.query.filter_by(email="lucia@example.com").one()
        assert user.birth_date.isoformat() == "1990-05-17"
        assert db.session.get(AuthAccount, user.user_id).password_hash != PASSWORD


@pytest.mark.parametrize(
    "overrides",
    [
        {"password": "short1!", "password_confirmation": "short1!"},
        {"password": "alllowercase1!", "password_confirmation": "alllowercase1!"},
        {"password": "NoDigitsHere!", "password_confirmation": "NoDigitsHere!"},
        {"password": "NoSpecial123", "password_confirmation": "NoSpecial123"},
        {"password_confirmation": "Different123!"},
        {"role": "admin"},
        {"email": "not-an-email"},
        {"first_name": ""},
    ],
)
def test_register_rejects_invalid_payload(client, overrides) -> None:
    response = client.post("/auth/register", json=_register_payload(**overrides))

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_payload"


def test_register_duplicate_email_409(client, data) -> None:
    response = client.post("/auth/register", json=_register_payload(email="CLIENT@example.com"))

    assert response.status_code == 409


def test_login_success_updates_last_login(app, client, data) -> None:
    response = client.post("/auth/login", json={"email": "client@example.com", "password": PASSWORD})

    assert response.status_code == 200
    body = response.get_json()
    assert body["token"]
    assert body["user"]["id"] == data.client

    with app.app_context():
        assert db.session.get(AuthAccount, data.client).last_login_at is not None


def test_login_wrong_password_401(client, data) -> None:
    response = client.post("/auth/login", json={"email": "client@example.com", "password": "Wrong123!"})

    assert response.status_code == 401
    assert response.get_json()["error"] == "unauthorized"


def test_login_missing_fields_400(client) -> None:
    response = client.post("/auth/login", json={"email": "client@example.com"})

    assert response.status_code == 400


def test_login_deleted_user_rejected(app, client, data) -> None:
    with app.app_context():
        db.session.get(User, data.client).is_deleted = True
        db.session.commit()

    response = client.post("/auth/login", json={"email": "client@example.com", "password": PASSWORD})

    assert response.status_code == 403


def test_token_from_login_authenticates(client, data) -> None:
    token = client.post(
        "/auth/login", json={"email": "trainer@example.com", "password": PASSWORD}
    ).get_json()["token"]

    response = client.get("/hires", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200


def test_expired_token_rejected(app, client, data, auth_headers) -> None:
    headers = auth_headers(data.client)
    app.config["TOKEN_MAX_AGE"] = -1

    response = client.get("/hires", headers=headers)

    assert response.status_code == 401


def test_password_reset_sends_email(app, client, data) -> None:
    with patch("marketplace.mailer.smtplib.SMTP") as smtp_cls:
        response = client.post("/auth/password-reset", json={"email": "client@example.com"})

    assert response.status_code == 200
    server = smtp_cls.return_value.__enter__.return_value
    server.login.assert_called_once_with("mailer", "mailer-password")
    from_addr, to_addrs, message = server.sendmail.call_args.args
    assert to_addrs == ["client@example.com"]
    parsed = email.message_from_string(message)
    bodies = [part.get_payload(decode=True).decode() for part in parsed.walk() if not part.is_multipart()]
    assert all("http://frontend.test/reset-password?token=" in body for body in bodies)


def test_password_reset_unknown_email_still_200(client, data) -> None:
    with patch("marketplace.mailer.smtplib.SMTP") as smtp_cls:
        response = client.post("/auth/password-reset", json={"email": "nobody@example.com"})

    assert response.status_code == 200
    smtp_cls.assert_not_called()


def test_password_reset_smtp_failure_502(client, data) -> None:
    with patch("marketplace.mailer.smtplib.SMTP", side_effect=smtplib.SMTPConnectError(421, "down")):
        response = client.post("/auth/password-reset", json={"email": "client@example.com"})

    assert response.status_code == 502
    assert response.get_json()["error"] == "email_delivery_failed"


def test_password_reset_confirm_token_works_once(app, client, data) -> None:
    with app.app_context():
        token = auth.build_password_reset_token(db.session.get(User, data.client))

    payload = {"token": token, "password": NEW_PASSWORD, "password_confirmation": NEW_PASSWORD}
    response = client.post("/auth/password-reset/confirm", json=payload)
    assert response.status_code == 200

    login = client.post("/auth/login", json={"email": "client@example.com", "password": NEW_PASSWORD})
    assert login.status_code == 200

    replay = client.post(
        "/auth/password-reset/confirm",
        json={"token": token, "password": "Another789%", "password_confirmation": "Another789%"},
    )
    assert replay.status_code == 400


def test_password_reset_confirm_bad_token(client, data) -> None:
    response = client.post(
        "/auth/password-reset/confirm",
        json={"token": "garbage", "password": NEW_PASSWORD, "password_confirmation": NEW_PASSWORD},
    )

    assert response.status_code == 400


def test_change_password(client, data, auth_headers) -> None:
    headers = auth_headers(data.trainer)

    wrong = client.post(
        "/users/change-password",
        json={"current_password": "Nope123!", "new_password": NEW_PASSWORD},
        headers=headers,
    )
    assert wrong.status_code == 401

    same = client.post(
        "/users/change-password",
        json={"current_password": PASSWORD, "new_password": PASSWORD},
        headers=headers,
    )
    assert same.status_code == 400

    ok = client.post(
        "/users/change-password",
        json={"current_password": PASSWORD, "new_password": NEW_PASSWORD},
        headers=headers,
    )
    assert ok.status_code == 200

    login = client.post("/auth/login", json={"email": "trainer@example.com", "password": NEW_PASSWORD})
    assert login.status_code == 200
