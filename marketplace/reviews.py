"""Reviews of completed hires and trainer responses to them."""
from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload

from . import policy
from .errors import NotEligible, NotFound, Unauthorized, ValidationError
from .extensions import transaction
from .models import Hire, ModerationState, Review, Service, utc_now
from .policy import Actor

MIN_COMMENT_LENGTH = 10
MIN_RESPONSE_LENGTH = 5


def _parse_rating(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ValidationError("rating must be an integer between 1 and 5")
    try:
        rating = int(value)
    except ValueError:
        raise ValidationError("rating must be an integer between 1 and 5") from None
    if not 1 <= rating <= 5:
        raise ValidationError("rating must be an integer between 1 and 5")
    return rating


def _clean_text(value: object, minimum: int, field: str) -> str:
    text = value.strip() if isinstance(value, str) else ""
    if len(text) < minimum:
        raise ValidationError(f"{field} must be at least {minimum} characters")
    return text


def _review_query():
    return Review.query.options(
        joinedload(Review.hire).joinedload(Hire.service).joinedload(Service.trainer),
        joinedload(Review.hire).joinedload(Hire.client),
        joinedload(Review.responder),
    )


def _load_review(review_id: int) -> Review:
    review = _review_query().filter(Review.review_id == review_id).first()
    if review is None:
        raise NotFound("Review not found")
    return review


def create_review(hire_id: int, client: Actor, rating: object, comment: object) -> Review:
    """Review a completed hire. Each hire accepts a single review."""
    score = _parse_rating(rating)
    text = _clean_text(comment, MIN_COMMENT_LENGTH, "comment")

    with transaction() as session:
        hire = session.get(Hire, hire_id)
        if hire is None:
            raise NotFound("Hire not found")

        already_reviewed = (
            session.query(Review.review_id).filter(Review.hire_id == hire_id).first() is not None
        )
        if not policy.can_review(hire, client, already_reviewed):
            raise NotEligible("Only the client of a completed, unreviewed hire can review it")

        review = Review(
            hire_id=hire_id,
            rating=score,
            comment=text,
            moderation_state=ModerationState.PENDING.value,
        )
        session.add(review)
        try:
            session.flush()
        except IntegrityError as exc:
            raise NotEligible("This hire has already been reviewed") from exc
        review_id = review.review_id

    return _load_review(review_id)


def add_response(review_id: int, trainer: Actor, text: object) -> Review:
    """Attach the trainer's one and only response to a review."""
    body = _clean_text(text, MIN_RESPONSE_LENGTH, "response")

    with transaction() as session:
        review = _load_review(review_id)
        if not policy.can_respond_to_review(review, review.hire.service, trainer):
            raise Unauthorized("Only the trainer of this service can respond, and only once")

        answered = session.execute(
            update(Review)
            .where(Review.review_id == review_id, Review.response.is_(None))
            .values(response=body, response_at=utc_now(), responder_id=trainer.user_id)
            .execution_options(synchronize_session=False)
        )
        if answered.rowcount != 1:
            raise Unauthorized("This review already has a response")

    return _load_review(review_id)


def delete_review(review_id: int, requester: Actor) -> None:
    with transaction() as session:
        review = _load_review(review_id)
        if not policy.can_delete_review(review, requester, policy.is_admin(requester)):
            raise Unauthorized("You cannot delete this review")
        session.delete(review)


def moderate_review(review_id: int, admin: Actor, state: object) -> Review:
    if not policy.is_admin(admin):
        raise Unauthorized("Only administrators can moderate reviews")
    if state not in (ModerationState.APPROVED.value, ModerationState.REJECTED.value):
        raise ValidationError("state must be 'approved' or 'rejected'")

    with transaction():
        review = _load_review(review_id)
        review.moderation_state = state

    return _load_review(review_id)


def list_for_trainer(trainer_id: int) -> list[Review]:
    return (
        _review_query()
        .join(Hire, Hire.hire_id == Review.hire_id)
        .join(Service, Service.service_id == Hire.service_id)
        .filter(Service.trainer_id == trainer_id)
        .order_by(Review.created_at.desc(), Review.review_id.desc())
        .all()
    )


def list_for_client(client_id: int) -> list[Review]:
    return (
        _review_query()
        .join(Hire, Hire.hire_id == Review.hire_id)
        .filter(Hire.client_id == client_id)
        .order_by(Review.created_at.desc(), Review.review_id.desc())
        .all()
    )
