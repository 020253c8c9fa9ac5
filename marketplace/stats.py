"""Per-trainer statistics for the trainer dashboard."""
from __future__ import annotations

from sqlalchemy import func, select

from .errors import Unauthorized
from .extensions import db
from .models import Hire, HireState, ModerationState, Review, Role, Service, ServiceView
from .policy import Actor

POPULAR_SERVICES_LIMIT = 3


def trainer_stats(actor: Actor) -> dict[str, object]:
    """Views, conversion, approved-rating summary and the most popular services.

    Each aggregate runs as its own query so joins between views, hires and
    reviews cannot multiply each other's counts.
    """
    if actor.role is not Role.TRAINER:
        raise Unauthorized("Only trainers can view statistics")

    trainer_services = select(Service.service_id).where(Service.trainer_id == actor.user_id)

    total_views = (
        db.session.query(func.count(ServiceView.view_id))
        .filter(ServiceView.service_id.in_(trainer_services))
        .scalar()
    ) or 0

    completed_hires = (
        db.session.query(func.count(Hire.hire_id))
        .filter(
            Hire.service_id.in_(trainer_services),
            Hire.state == HireState.COMPLETED.value,
        )
        .scalar()
    ) or 0

    rating_rows = (
        db.session.query(Review.rating, func.count(Review.review_id))
        .join(Hire, Hire.hire_id == Review.hire_id)
        .filter(
            Hire.service_id.in_(trainer_services),
            Review.moderation_state == ModerationState.APPROVED.value,
        )
        .group_by(Review.rating)
        .all()
    )
    distribution = [0, 0, 0, 0, 0]
    for rating, count in rating_rows:
        if 1 <= rating <= 5:
            distribution[rating - 1] = count
    total_ratings = sum(distribution)
    average = (
        round(sum((index + 1) * count for index, count in enumerate(distribution)) / total_ratings, 1)
        if total_ratings
        else None
    )

    return {
        "total_views": total_views,
        "completed_hires": completed_hires,
        "conversion_rate": round(completed_hires * 100.0 / total_views, 2) if total_views else 0,
        "average_rating": average,
        "total_ratings": total_ratings,
        "rating_distribution": distribution,
        "popular_services": popular_services(actor.user_id),
    }


def popular_services(trainer_id: int, limit: int = POPULAR_SERVICES_LIMIT) -> list[dict[str, object]]:
    hires = (
        db.session.query(Hire.service_id, func.count(Hire.hire_id).label("completed"))
        .filter(Hire.state == HireState.COMPLETED.value)
        .group_by(Hire.service_id)
        .subquery()
    )
    views = (
        db.session.query(ServiceView.service_id, func.count(ServiceView.view_id).label("views"))
        .group_by(ServiceView.service_id)
        .subquery()
    )
    completed = func.coalesce(hires.c.completed, 0)
    viewed = func.coalesce(views.c.views, 0)

    rows = (
        db.session.query(Service.service_id, Service.description, completed, viewed)
        .outerjoin(hires, hires.c.service_id == Service.service_id)
        .outerjoin(views, views.c.service_id == Service.service_id)
        .filter(Service.trainer_id == trainer_id)
        .order_by(completed.desc(), viewed.desc(), Service.service_id.asc())
        .limit(limit)
        .all()
    )
    return [
        {
            "service_id": service_id,
            "description": description,
            "completed_hires": completed_count,
            "views": view_count,
        }
        for service_id, description, completed_count, view_count in rows
    ]
