"""HTTP routes for accounts, service listings and trainer statistics."""
from __future__ import annotations

from flask import Blueprint, Flask, current_app, jsonify, request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from . import auth, catalog, stats, users
from .errors import ValidationError
from .extensions import db
from .mailer import send_password_reset_email
from .policy import Actor

bp = Blueprint("api", __name__)


def json_body() -> dict[str, object]:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("request body must be a JSON object")
    return payload


def optional_actor() -> Actor | None:
    if not request.headers.get("Authorization"):
        return None
    return auth.current_actor()


def _int_arg(name: str, default: int) -> int:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer") from None


@bp.get("/health")
def health_check() -> tuple[dict[str, str], int]:
    """
    Expose a simple uptime check endpoint.
    ---
    tags:
      - Health
    responses:
      200:
        description: Service is healthy and running.
        schema:
          type: object
          properties:
            status:
              type: string
              example: ok
    """
    return jsonify({"status": "ok"}), 200


@bp.get("/db-health")
def database_health() -> tuple[dict[str, str], int]:
    """Check connectivity to the configured database.
    ---
    tags:
      - Health
    responses:
      200:
        description: Database connection is ok.
      500:
        description: Database connection failed.
    """
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        current_app.logger.exception("Database connectivity check failed", exc_info=exc)
        return jsonify({"database": "unavailable"}), 500

    return jsonify({"database": "ok"}), 200


# --- Authentication ---

@bp.post("/auth/register")
def register() -> tuple[dict[str, object], int]:
    """Create a client or trainer account and return an access token.
    ---
    tags:
      - Authentication
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            first_name:
              type: string
            last_name:
              type: string
            email:
              type: string
            password:
              type: string
            password_confirmation:
              type: string
            role:
              type: string
              enum: [client, trainer]
            birth_date:
              type: string
              format: date
          required:
            - first_name
            - last_name
            - email
            - password
    responses:
      201:
        description: Account created
      400:
        description: Invalid payload or weak password
      409:
        description: Email already registered
    """
    user = auth.register(json_body())
    current_app.logger.info("Registered %s account %s", user.role, user.user_id)
    return jsonify({"user": user.to_dict_basic(), "token": auth.build_token(user)}), 201


@bp.post("/auth/login")
def login() -> tuple[dict[str, object], int]:
    """Authenticate a user by email/password and return an access token.
    ---
    tags:
      - Authentication
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            email:
              type: string
            password:
              type: string
          required:
            - email
            - password
    responses:
      200:
        description: Login successful, returns access token
      400:
        description: Missing email or password
      401:
        description: Invalid email or password
      403:
        description: Account deactivated
    """
    payload = json_body()
    user, token = auth.login(payload.get("email"), payload.get("password"))
    return jsonify({"token": token, "user": user.to_dict_basic()}), 200


@bp.post("/auth/password-reset")
def request_password_reset() -> tuple[dict[str, object], int]:
    """Email a password reset link if the address belongs to an account.
    ---
    tags:
      - Authentication
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            email:
              type: string
    responses:
      200:
        description: Request accepted (also returned for unknown emails)
      502:
        description: The email could not be sent
    """
    user = auth.find_user_for_reset(json_body().get("email"))
    if user is None:
        current_app.logger.info("Password reset requested for an unknown email")
    else:
        send_password_reset_email(user, auth.build_password_reset_token(user))
        current_app.logger.info("Password reset email sent to user %s", user.user_id)

    return (
        jsonify({"message": "If the email is registered, a reset link has been sent."}),
        200,
    )


@bp.post("/auth/password-reset/confirm")
def confirm_password_reset() -> tuple[dict[str, object], int]:
    """Set a new password using a reset token.
    ---
    tags:
      - Authentication
    responses:
      200:
        description: Password updated
      400:
        description: Invalid or expired token, or weak password
    """
    payload = json_body()
    auth.reset_password(
        payload.get("token"), payload.get("password"), payload.get("password_confirmation")
    )
    return jsonify({"message": "Password updated successfully"}), 200


# --- Users ---

@bp.get("/users")
def list_users() -> tuple[dict[str, object], int]:
    """List active users (administrators only).
    ---
    tags:
      - Users
    security:
      - Bearer: []
    parameters:
      - name: role
        in: query
        type: string
        enum: [admin, client, trainer]
    responses:
      200:
        description: List of users
      401:
        description: Unauthorized
      403:
        description: Forbidden
    """
    actor = auth.current_actor()
    found = users.list_users(actor, request.args.get("role") or None)
    return jsonify({"users": [user.to_dict() for user in found]}), 200


@bp.get("/users/<int:user_id>")
def get_user(user_id: int) -> tuple[dict[str, object], int]:
    """Return a user's public profile.
    ---
    tags:
      - Users
    responses:
      200:
        description: Profile
      404:
        description: User not found
    """
    return jsonify({"user": users.get_user(user_id).to_dict_basic()}), 200


@bp.put("/users/<int:user_id>")
def update_user(user_id: int) -> tuple[dict[str, object], int]:
    """Update profile fields (first_name, last_name, birth_date).
    ---
    tags:
      - Users
    security:
      - Bearer: []
    responses:
      200:
        description: Updated profile
      400:
        description: Unknown or invalid fields
      403:
        description: Not your profile
    """
    actor = auth.current_actor()
    user = users.update_profile(user_id, actor, request.get_json(silent=True))
    return jsonify({"user": user.to_dict()}), 200


@bp.delete("/users/<int:user_id>")
def delete_user(user_id: int) -> tuple[dict[str, object], int]:
    """Deactivate an account.
    ---
    tags:
      - Users
    security:
      - Bearer: []
    responses:
      200:
        description: Account deactivated
      403:
        description: Not your account
      404:
        description: User not found
    """
    actor = auth.current_actor()
    users.delete_user(user_id, actor)
    current_app.logger.info("User %s deactivated by %s", user_id, actor.user_id)
    return jsonify({"message": "User deleted"}), 200


@bp.post("/users/change-password")
def change_password() -> tuple[dict[str, object], int]:
    """Change the caller's password.
    ---
    tags:
      - Users
    security:
      - Bearer: []
    responses:
      200:
        description: Password changed
      400:
        description: Weak or unchanged password
      401:
        description: Current password is incorrect
    """
    actor = auth.current_actor()
    payload = json_body()
    auth.change_password(actor, payload.get("current_password"), payload.get("new_password"))
    return jsonify({"message": "Password updated successfully"}), 200


# --- Services ---

@bp.get("/services")
def search_services() -> tuple[dict[str, object], int]:
    """Search hireable services.
    ---
    tags:
      - Services
    parameters:
      - name: category
        in: query
        type: string
      - name: zone
        in: query
        type: string
      - name: max_price
        in: query
        type: number
      - name: page
        in: query
        type: integer
        default: 1
      - name: limit
        in: query
        type: integer
        default: 12
        maximum: 50
    responses:
      200:
        description: Services with pagination metadata
      400:
        description: Invalid parameters
    """
    max_price = request.args.get("max_price")
    try:
        max_price_value = float(max_price) if max_price not in (None, "") else None
    except ValueError:
        raise ValidationError("max_price must be a number") from None

    page = max(1, _int_arg("page", 1))
    limit = min(catalog.MAX_PAGE_SIZE, max(1, _int_arg("limit", 12)))
    services, total = catalog.search_services(
        category=(request.args.get("category") or "").strip() or None,
        zone=(request.args.get("zone") or "").strip() or None,
        max_price=max_price_value,
        page=page,
        limit=limit,
    )
    return (
        jsonify(
            {
                "services": [service.to_dict() for service in services],
                "pagination": {"page": page, "limit": limit, "total": total},
            }
        ),
        200,
    )


@bp.get("/services/<int:service_id>")
def get_service(service_id: int) -> tuple[dict[str, object], int]:
    """Return a service and count the view.
    ---
    tags:
      - Services
    responses:
      200:
        description: Service details
      404:
        description: Service not found
    """
    actor = optional_actor()
    service = catalog.view_service(service_id, actor.user_id if actor else None)
    return jsonify({"service": service.to_dict()}), 200


@bp.post("/services")
def create_service() -> tuple[dict[str, object], int]:
    """Publish a new service (trainers only).
    ---
    tags:
      - Services
    security:
      - Bearer: []
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            category_id:
              type: integer
            zone_id:
              type: integer
            description:
              type: string
            price:
              type: number
            duration_minutes:
              type: integer
              enum: [15, 30, 60]
            language:
              type: string
              enum: [spanish, english]
            modality:
              type: string
              enum: [virtual, in_person]
            starts_at:
              type: string
              format: date-time
            ends_at:
              type: string
              format: date-time
    responses:
      201:
        description: Service created
      400:
        description: Invalid payload
      403:
        description: Only trainers can publish services
    """
    actor = auth.current_actor()
    service = catalog.create_service(actor, request.get_json(silent=True))
    current_app.logger.info("Trainer %s published service %s", actor.user_id, service.service_id)
    return jsonify({"service": service.to_dict()}), 201


@bp.put("/services/<int:service_id>")
def replace_service(service_id: int) -> tuple[dict[str, object], int]:
    """Replace every editable field of a service.
    ---
    tags:
      - Services
    security:
      - Bearer: []
    responses:
      200:
        description: Service updated
      400:
        description: Invalid or incomplete payload
      403:
        description: Not your service
    """
    actor = auth.current_actor()
    service = catalog.update_service(service_id, actor, request.get_json(silent=True), partial=False)
    return jsonify({"service": service.to_dict()}), 200


@bp.patch("/services/<int:service_id>")
def patch_service(service_id: int) -> tuple[dict[str, object], int]:
    """Update some fields of a service.
    ---
    tags:
      - Services
    security:
      - Bearer: []
    responses:
      200:
        description: Service updated
      400:
        description: Invalid payload
      403:
        description: Not your service
    """
    actor = auth.current_actor()
    service = catalog.update_service(service_id, actor, request.get_json(silent=True), partial=True)
    return jsonify({"service": service.to_dict()}), 200


@bp.delete("/services/<int:service_id>")
def delete_service(service_id: int) -> tuple[dict[str, object], int]:
    """Delete a service that has never been hired.
    ---
    tags:
      - Services
    security:
      - Bearer: []
    responses:
      200:
        description: Service deleted
      403:
        description: Not your service
      409:
        description: The service has hires
    """
    actor = auth.current_actor()
    catalog.delete_service(service_id, actor)
    current_app.logger.info("Trainer %s deleted service %s", actor.user_id, service_id)
    return jsonify({"message": "Service deleted"}), 200


@bp.get("/categories")
def list_categories() -> tuple[dict[str, object], int]:
    """List service categories.
    ---
    tags:
      - Services
    responses:
      200:
        description: Categories
    """
    return jsonify({"categories": [category.to_dict() for category in catalog.list_categories()]}), 200


@bp.get("/zones")
def list_zones() -> tuple[dict[str, object], int]:
    """List zones.
    ---
    tags:
      - Services
    responses:
      200:
        description: Zones
    """
    return jsonify({"zones": [zone.to_dict() for zone in catalog.list_zones()]}), 200


@bp.get("/trainers/me/stats")
def my_stats() -> tuple[dict[str, object], int]:
    """Dashboard statistics for the calling trainer.
    ---
    tags:
      - Statistics
    security:
      - Bearer: []
    responses:
      200:
        description: Views, conversion, ratings and popular services
      403:
        description: Only trainers have statistics
    """
    actor = auth.current_actor()
    return jsonify({"stats": stats.trainer_stats(actor)}), 200


def register_routes(app: Flask) -> None:
    from .routes_hires import bp as hires_bp
    from .routes_reviews import bp as reviews_bp

    app.register_blueprint(bp)
    app.register_blueprint(hires_bp)
    app.register_blueprint(reviews_bp)
