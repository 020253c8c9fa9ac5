"""Typed failures raised by the domain layer and their HTTP mapping."""
from __future__ import annotations

from flask import Flask, current_app, jsonify
from werkzeug.exceptions import RequestEntityTooLarge


class MarketplaceError(Exception):
    """Base class for failures that map onto an HTTP response."""

    status_code = 500
    error = "server_error"
    default_message = "An unexpected error occurred."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict[str, str]:
        return {"error": self.error, "message": self.message}


class ValidationError(MarketplaceError):
    status_code = 400
    error = "invalid_payload"
    default_message = "The request payload is invalid."


class InvalidInput(ValidationError):
    error = "invalid_input"


class Unauthenticated(MarketplaceError):
    status_code = 401
    error = "unauthorized"
    default_message = "Authentication required. Please log in to continue."


class Unauthorized(MarketplaceError):
    status_code = 403
    error = "forbidden"
    default_message = "You are not allowed to perform this action."


class NotFound(MarketplaceError):
    status_code = 404
    error = "not_found"
    default_message = "Resource not found."


class Conflict(MarketplaceError):
    status_code = 409
    error = "conflict"
    default_message = "The request conflicts with the current state."


class ServiceUnavailable(Conflict):
    error = "service_unavailable"
    default_message = "The service is not available for hiring."


class NotEligible(Conflict):
    error = "not_eligible"
    default_message = "This hire cannot be reviewed."


class InvalidTransition(MarketplaceError):
    status_code = 400
    error = "invalid_transition"

    def __init__(self, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__(f"State transition not allowed: {current} -> {target}")


class PersistenceError(MarketplaceError):
    error = "database_error"
    default_message = "A database error occurred."


class PaymentProviderError(MarketplaceError):
    status_code = 502
    error = "payment_error"
    default_message = "An error occurred while processing the payment."


class EmailDeliveryError(MarketplaceError):
    status_code = 502
    error = "email_delivery_failed"
    default_message = "The email could not be sent."


def register_error_handlers(app: Flask) -> None:
    """Translate domain failures into JSON error responses."""

    @app.errorhandler(MarketplaceError)
    def handle_marketplace_error(exc: MarketplaceError):
        if exc.status_code >= 500:
            current_app.logger.exception("Request failed: %s", exc.message, exc_info=exc)
        else:
            current_app.logger.warning("Request rejected (%s): %s", exc.error, exc.message)
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(RequestEntityTooLarge)
    def handle_too_large(exc: RequestEntityTooLarge):
        current_app.logger.warning("Upload rejected: request body too large")
        return (
            jsonify({"error": "file_too_large", "message": "Uploads are limited to 15 MB"}),
            413,
        )
