"""Outbound email over SMTP."""
from __future__ import annotations

import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from flask import current_app

from .errors import EmailDeliveryError


def send_email(to_email: str, subject: str, html_content: str, text_content: str) -> None:
    """Send a multipart email using the SMTP settings of the current app."""
    config = current_app.config
    smtp_host = config.get("SMTP_HOST")
    smtp_port = int(config.get("SMTP_PORT") or 587)
    smtp_user = config.get("SMTP_USER")
    smtp_password = config.get("SMTP_PASSWORD")
    from_email = config.get("MAIL_FROM") or smtp_user

    if not smtp_host:
        current_app.logger.error("SMTP is not configured; cannot send email to %s", to_email)
        raise EmailDeliveryError("Email delivery is not configured")

    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = from_email
    msg["To"] = to_email
    msg.attach(MIMEText(text_content, "plain", "utf-8"))
    msg.attach(MIMEText(html_content, "html", "utf-8"))

    try:
        with smtplib.SMTP(smtp_host, smtp_port, timeout=30) as server:
            server.starttls()
            if smtp_user and smtp_password:
                server.login(smtp_user, smtp_password)
            server.sendmail(from_email, [to_email], msg.as_string())
    except (smtplib.SMTPException, OSError) as exc:
        current_app.logger.exception("Failed to send email to %s", to_email, exc_info=exc)
        raise EmailDeliveryError() from exc

    current_app.logger.info("Email '%s' sent to %s", subject, to_email)


def send_password_reset_email(user, token: str) -> None:
    base_url = current_app.config.get("FRONTEND_URL", "").rstrip("/")
    reset_link = f"{base_url}/reset-password?token={token}"
    minutes = int(current_app.config.get("PASSWORD_RESET_MAX_AGE", 3600)) // 60

    text_content = (
        f"Hi {user.first_name},\n\n"
        "We received a request to reset your password. Open the link below to choose a new one:\n\n"
        f"{reset_link}\n\n"
        f"The link expires in {minutes} minutes. If you did not ask for this, ignore this email.\n"
    )
    html_content = f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
      <h2>Password reset</h2>
      <p>Hi {user.first_name},</p>
      <p>We received a request to reset your password. Click the button below to choose a new one.</p>
      <p style="text-align: center; margin: 30px 0;">
        <a href="{reset_link}" style="background-color: #2563eb; color: #ffffff; padding: 12px 24px;
           text-decoration: none; border-radius: 6px;">Reset password</a>
      </p>
      <p>The link expires in {minutes} minutes. If you did not ask for this, ignore this email.</p>
    </div>
    """
    send_email(user.email, "Reset your password", html_content, text_content)
