"""Stripe Checkout adapter: opening checkouts and reading webhook events."""
from __future__ import annotations

from datetime import datetime, timezone

import stripe
from flask import current_app

from .errors import MarketplaceError, PaymentProviderError
from .models import Hire, PaymentState

# Checkout session events we act on, mapped to the payment state they imply.
EVENT_PAYMENT_STATES = {
    "checkout.session.async_payment_succeeded": PaymentState.SUCCESSFUL,
    "checkout.session.async_payment_failed": PaymentState.FAILED,
    "checkout.session.expired": PaymentState.FAILED,
}


class WebhookRejected(MarketplaceError):
    """A webhook request that must not be processed."""

    status_code = 400
    error = "invalid_webhook"
    default_message = "The webhook request could not be verified."


class MissingSignature(WebhookRejected):
    status_code = 403
    error = "missing_signature"
    default_message = "The webhook request is not signed."


class WebhookNotConfigured(MarketplaceError):
    error = "webhook_not_configured"
    default_message = "Payment notifications are not configured."


def _configure() -> None:
    secret_key = current_app.config.get("STRIPE_SECRET_KEY")
    if not secret_key:
        current_app.logger.warning("Stripe secret key not configured")
        raise PaymentProviderError("Payments are not currently available. Please contact support.")
    stripe.api_key = secret_key


def create_checkout(hire: Hire, payer_email: str | None = None) -> dict[str, object]:
    """Open a Checkout Session for the hire's service and return its redirect URL."""
    _configure()
    service = hire.service
    frontend_url = current_app.config.get("FRONTEND_URL", "").rstrip("/")
    description = service.description if len(service.description) <= 120 else service.description[:117] + "..."

    params = {
        "mode": "payment",
        "line_items": [
            {
                "quantity": 1,
                "price_data": {
                    "currency": current_app.config.get("PAYMENT_CURRENCY", "ars"),
                    "unit_amount": int(service.price_cents),
                    "product_data": {
                        "name": f"{service.category.name if service.category else 'Training'} session",
                        "description": description,
                    },
                },
            }
        ],
        "client_reference_id": str(hire.hire_id),
        "metadata": {"hire_id": str(hire.hire_id)},
        "success_url": f"{frontend_url}/payments/success?hire_id={hire.hire_id}",
        "cancel_url": f"{frontend_url}/payments/failure?hire_id={hire.hire_id}",
    }
    if payer_email:
        params["customer_email"] = payer_email

    try:
        session = stripe.checkout.Session.create(**params)
    except stripe.StripeError as exc:
        current_app.logger.exception("Stripe API error while creating checkout session", exc_info=exc)
        raise PaymentProviderError() from exc

    return {"preference_id": session["id"], "payment_url": session["url"], "hire_id": hire.hire_id}


def parse_webhook(payload: bytes, signature: str | None) -> stripe.Event:
    """Verify a webhook request and return the Stripe event it carries."""
    if not signature:
        raise MissingSignature()

    webhook_secret = current_app.config.get("STRIPE_WEBHOOK_SECRET")
    if not webhook_secret:
        current_app.logger.error("Stripe webhook secret not configured - webhooks will not be processed")
        raise WebhookNotConfigured()

    try:
        return stripe.Webhook.construct_event(payload, signature, webhook_secret)
    except ValueError:
        raise WebhookRejected("Invalid webhook payload") from None
    except stripe.SignatureVerificationError:
        raise WebhookRejected("Invalid webhook signature") from None


def _field(obj, key: str):
    try:
        return obj[key]
    except KeyError:
        return None


def payment_update_for(event) -> dict[str, object] | None:
    """Translate a checkout event into ``update_payment_state`` arguments.

    Returns None for events that do not concern a hire.
    """
    event_type = event["type"]
    session = event["data"]["object"]

    if event_type == "checkout.session.completed":
        paid = _field(session, "payment_status") in ("paid", "no_payment_required")
        state = PaymentState.SUCCESSFUL if paid else PaymentState.PENDING
    elif event_type in EVENT_PAYMENT_STATES:
        state = EVENT_PAYMENT_STATES[event_type]
    else:
        return None

    reference = _field(session, "client_reference_id")
    if not reference or not str(reference).isdigit():
        return None

    methods = _field(session, "payment_method_types") or []
    provider_id = _field(session, "payment_intent") or session["id"]
    return {
        "hire_id": int(reference),
        "payment_state": state.value,
        "provider_payment_id": str(provider_id),
        "method": methods[0] if methods else None,
        "paid_at": datetime.fromtimestamp(event["created"], tz=timezone.utc)
        if state is PaymentState.SUCCESSFUL and _field(event, "created")
        else None,
    }
