"""HTTP routes for reviews and trainer responses."""
from __future__ import annotations

from flask import Blueprint, current_app, jsonify

from . import auth, reviews
from .routes import json_body
from .validation import parse_id

bp = Blueprint("reviews", __name__)


@bp.post("/reviews")
def create_review() -> tuple[dict[str, object], int]:
    """Review a completed hire.
    ---
    tags:
      - Reviews
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
            rating:
              type: integer
              minimum: 1
              maximum: 5
            comment:
              type: string
          required:
            - hire_id
            - rating
            - comment
    responses:
      201:
        description: Review created, pending moderation
      400:
        description: Invalid rating or comment
      404:
        description: Hire not found
      409:
        description: Hire not completed, not yours, or already reviewed
    """
    actor = auth.current_actor()
    payload = json_body()
    review = reviews.create_review(
        parse_id(payload.get("hire_id"), "hire_id"),
        actor,
        payload.get("rating"),
        payload.get("comment"),
    )
    current_app.logger.info("Client %s reviewed hire %s", actor.user_id, review.hire_id)
    return jsonify({"review": review.to_dict()}), 201


@bp.post("/reviews/<int:review_id>/responses")
def respond_to_review(review_id: int) -> tuple[dict[str, object], int]:
    """Add the trainer's response to a review. Only one response is allowed.
    ---
    tags:
      - Reviews
    security:
      - Bearer: []
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            response:
              type: string
    responses:
      200:
        description: Review with its response
      400:
        description: Response too short
      403:
        description: Not the service's trainer, or already answered
      404:
        description: Review not found
    """
    actor = auth.current_actor()
    review = reviews.add_response(review_id, actor, json_body().get("response"))
    return jsonify({"review": review.to_dict()}), 200


@bp.delete("/reviews/<int:review_id>")
def delete_review(review_id: int) -> tuple[dict[str, object], int]:
    """Delete a review (admin, its author or the service's trainer).
    ---
    tags:
      - Reviews
    security:
      - Bearer: []
    responses:
      200:
        description: Review deleted
      403:
        description: Not allowed
      404:
        description: Review not found
    """
    actor = auth.current_actor()
    reviews.delete_review(review_id, actor)
    current_app.logger.info("Review %s deleted by user %s", review_id, actor.user_id)
    return jsonify({"message": "Review deleted"}), 200


@bp.patch("/reviews/<int:review_id>/moderation")
def moderate_review(review_id: int) -> tuple[dict[str, object], int]:
    """Approve or reject a review (administrators only).
    ---
    tags:
      - Reviews
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
              enum: [approved, rejected]
    responses:
      200:
        description: Moderated review
      400:
        description: Unknown moderation state
      403:
        description: Administrators only
    """
    actor = auth.current_actor()
    review = reviews.moderate_review(review_id, actor, json_body().get("state"))
    return jsonify({"review": review.to_dict()}), 200


@bp.get("/trainers/<int:trainer_id>/reviews")
def trainer_reviews(trainer_id: int) -> tuple[dict[str, object], int]:
    """Reviews received by a trainer, newest first.
    ---
    tags:
      - Reviews
    responses:
      200:
        description: Reviews
    """
    found = reviews.list_for_trainer(trainer_id)
    return jsonify({"reviews": [review.to_dict() for review in found]}), 200


@bp.get("/clients/<int:client_id>/reviews")
def client_reviews(client_id: int) -> tuple[dict[str, object], int]:
    """Reviews written by a client, newest first.
    ---
    tags:
      - Reviews
    responses:
      200:
        description: Reviews
    """
    found = reviews.list_for_client(client_id)
    return jsonify({"reviews": [review.to_dict() for review in found]}), 200
