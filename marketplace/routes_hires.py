"""HTTP routes for hires, their chat and shared files, and payments."""
from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request, send_file

from . import auth, chat, hires, payments
from .errors import NotFound, ValidationError
from .routes import json_body
from .storage import get_file_store
from .validation import parse_id

bp = Blueprint("hires", __name__)


@bp.post("/hires")
def create_hire() -> tuple[dict[str, object], int]:
    """Hire a service. The service is reserved until the hire is cancelled.
    ---
    tags:
      - Hires
    security:
      - Bearer: []
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            service_id:
              type: integer
          required:
            - service_id
    responses:
      201:
        description: Hire created in state pending
      400:
        description: Invalid payload
      403:
        description: Only clients can hire services
      404:
        description: Service not found
      409:
        description: Service not available
    """
    actor = auth.current_actor()
    service_id = parse_id(json_body().get("service_id"), "service_id")
    hire = hires.create_hire(actor.user_id, service_id)
    current_app.logger.info(
        "Client %s hired service %s (hire %s)", actor.user_id, service_id, hire.hire_id
    )
    return jsonify({"hire": hire.to_dict()}), 201


@bp.get("/hires")
def list_hires() -> tuple[dict[str, object], int]:
    """List the caller's hires, newest first.
    ---
    tags:
      - Hires
    security:
      - Bearer: []
    responses:
      200:
        description: Hires visible to the caller
      401:
        description: Unauthorized
    """
    actor = auth.current_actor()
    return jsonify({"hires": [hire.to_dict() for hire in hires.list_for_actor(actor)]}), 200


@bp.get("/hires/<int:hire_id>")
def get_hire(hire_id: int) -> tuple[dict[str, object], int]:
    """Return one hire.
    ---
    tags:
      - Hires
    security:
      - Bearer: []
    responses:
      200:
        description: Hire details
      403:
        description: Not a participant
      404:
        description: Hire not found
    """
    actor = auth.current_actor()
    return jsonify({"hire": hires.get_hire(hire_id, actor).to_dict()}), 200


def _change_state(hire_id: int, new_state: object):
    actor = auth.current_actor()
    hires.update_state(hire_id, new_state, actor)
    current_app.logger.info("Hire %s moved to %s by user %s", hire_id, new_state, actor.user_id)
    return jsonify({"hire": hires.get_hire(hire_id, actor).to_dict()}), 200


@bp.patch("/hires/<int:hire_id>/status")
def update_hire_status(hire_id: int) -> tuple[dict[str, object], int]:
    """Move a hire through its lifecycle.
    ---
    tags:
      - Hires
    security:
      - Bearer: []
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            state:
              type: string
              enum: [accepted, cancelled, completed]
    responses:
      200:
        description: Updated hire
      400:
        description: Unknown state or transition not allowed
      403:
        description: Not allowed to change this hire
      404:
        description: Hire not found
    """
    return _change_state(hire_id, json_body().get("state"))


@bp.patch("/hires/<int:hire_id>/complete")
def complete_hire(hire_id: int) -> tuple[dict[str, object], int]:
    """Mark an accepted hire as completed (service trainer only).
    ---
    tags:
      - Hires
    security:
      - Bearer: []
    responses:
      200:
        description: Completed hire
      400:
        description: Transition not allowed
      403:
        description: Only the service's trainer can complete it
    """
    return _change_state(hire_id, "completed")


# --- Chat ---

@bp.get("/hires/<int:hire_id>/messages")
def list_messages(hire_id: int) -> tuple[dict[str, object], int]:
    """Chat history of a hire, oldest first.
    ---
    tags:
      - Chat
    security:
      - Bearer: []
    responses:
      200:
        description: Messages
      403:
        description: Not a participant
      404:
        description: Hire not found
    """
    actor = auth.current_actor()
    messages = chat.list_messages(hire_id, actor)
    return jsonify({"messages": [message.to_dict() for message in messages]}), 200


@bp.post("/hires/<int:hire_id>/messages")
def post_message(hire_id: int) -> tuple[dict[str, object], int]:
    """Send a chat message on a pending or accepted hire.
    ---
    tags:
      - Chat
    security:
      - Bearer: []
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            text:
              type: string
    responses:
      201:
        description: Message stored
      400:
        description: Empty message
      403:
        description: Not a participant, or the hire is closed
    """
    actor = auth.current_actor()
    message_id = chat.post_message(hire_id, actor, json_body().get("text"))
    return jsonify({"id": message_id, "message": "Message sent"}), 201


# --- Files ---

@bp.get("/hires/<int:hire_id>/files")
def list_files(hire_id: int) -> tuple[dict[str, object], int]:
    """Files shared on a hire, newest first.
    ---
    tags:
      - Files
    security:
      - Bearer: []
    responses:
      200:
        description: File metadata
      403:
        description: Not a participant
    """
    actor = auth.current_actor()
    files = chat.list_files(hire_id, actor)
    return (
        jsonify({"files": [dict(shared.to_dict(), url=chat.file_url(shared)) for shared in files]}),
        200,
    )


@bp.post("/hires/<int:hire_id>/files")
def upload_file(hire_id: int) -> tuple[dict[str, object], int]:
    """Upload a PDF, JPEG, PNG, DOC or DOCX file (15 MB max).
    ---
    tags:
      - Files
    security:
      - Bearer: []
    consumes:
      - multipart/form-data
    parameters:
      - name: file
        in: formData
        type: file
        required: true
    responses:
      201:
        description: File stored
      400:
        description: Missing file or type not allowed
      403:
        description: Not a participant, or the hire is closed
      413:
        description: File too large
    """
    actor = auth.current_actor()
    upload = request.files.get("file")
    if upload is None:
        raise ValidationError("A file is required")

    stored = chat.upload_file(hire_id, actor, upload, get_file_store())
    current_app.logger.info("User %s uploaded file %s to hire %s", actor.user_id, stored["id"], hire_id)
    return jsonify({"file": stored}), 201


@bp.get("/hires/<int:hire_id>/files/<int:file_id>")
def download_file(hire_id: int, file_id: int):
    """Download a shared file.
    ---
    tags:
      - Files
    security:
      - Bearer: []
    responses:
      200:
        description: File contents
      403:
        description: Not a participant
      404:
        description: File not found
    """
    actor = auth.current_actor()
    shared, location = chat.open_file(hire_id, file_id, actor, get_file_store())
    return send_file(
        location,
        mimetype=shared.mime_type,
        as_attachment=True,
        download_name=shared.original_name,
    )


@bp.delete("/hires/<int:hire_id>/files/<int:file_id>")
def delete_file(hire_id: int, file_id: int) -> tuple[dict[str, object], int]:
    """Remove a shared file (uploader only).
    ---
    tags:
      - Files
    security:
      - Bearer: []
    responses:
      200:
        description: File removed
      403:
        description: Only the uploader can remove it
      404:
        description: File not found
    """
    actor = auth.current_actor()
    chat.delete_file(hire_id, file_id, actor)
    return jsonify({"message": "File deleted"}), 200


# --- Payments ---

@bp.post("/payments/preferences")
def create_payment_preference() -> tuple[dict[str, object], int]:
    """Open a checkout for a hire and return the payment URL.
    ---
    tags:
      - Payments
    security:
      - Bearer: []
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            hire_id:
              type: integer
    responses:
      201:
        description: Checkout created
      403:
        description: Only the hire's client can pay
      409:
        description: Hire cancelled or already paid
      502:
        description: Payment provider error
    """
    actor = auth.current_actor()
    hire_id = parse_id(json_body().get("hire_id"), "hire_id")
    checkout = hires.start_payment(
        hire_id, actor, lambda hire: payments.create_checkout(hire, actor.email)
    )
    current_app.logger.info("Checkout %s opened for hire %s", checkout["preference_id"], hire_id)
    return jsonify(checkout), 201


@bp.post("/payments/webhook")
def payment_webhook() -> tuple[dict[str, object], int]:
    """Receive payment notifications from Stripe.
    ---
    tags:
      - Payments
    parameters:
      - name: Stripe-Signature
        in: header
        required: true
        type: string
        description: Stripe signature for webhook verification
      - name: body
        in: body
        required: true
        description: Stripe webhook event payload
    responses:
      200:
        description: Event received
      400:
        description: Invalid payload or signature
      403:
        description: Missing signature
      500:
        description: Webhook not configured or processing failed
    """
    event = payments.parse_webhook(request.get_data(), request.headers.get("Stripe-Signature"))
    update = payments.payment_update_for(event)
    if update is None:
        return jsonify({"received": True}), 200

    hire_id = update.pop("hire_id")
    try:
        changed = hires.update_payment_state(hire_id, **update)
    except NotFound:
        current_app.logger.warning("Payment event %s references unknown hire %s", event["id"], hire_id)
        return jsonify({"received": True}), 200

    if changed:
        current_app.logger.info("Hire %s payment state is now %s", hire_id, update["payment_state"])
    return jsonify({"received": True}), 200
