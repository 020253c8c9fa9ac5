"""Service listings owned by trainers, plus category and zone lookups."""
from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.orm import joinedload

from . import policy
from .errors import Conflict, NotFound, Unauthorized, ValidationError
from .extensions import db, transaction
from .models import LIVE_HIRE_STATES, Category, Hire, Role, Service, ServiceView, Zone, utc_now
from .policy import Actor
from .validation import SERVICE_FIELDS, clean_payload

MAX_PAGE_SIZE = 50


def _service_query():
    return Service.query.options(
        joinedload(Service.trainer), joinedload(Service.category), joinedload(Service.zone)
    )


def _load_service(service_id: int) -> Service:
    service = _service_query().filter(Service.service_id == service_id).first()
    if service is None:
        raise NotFound("Service not found")
    return service


def _check_references(values: dict[str, object]) -> None:
    if "category_id" in values and db.session.get(Category, values["category_id"]) is None:
        raise ValidationError("category_id does not reference a known category")
    if "zone_id" in values and db.session.get(Zone, values["zone_id"]) is None:
        raise ValidationError("zone_id does not reference a known zone")


def _check_window(starts_at, ends_at) -> None:
    if starts_at.replace(tzinfo=None) >= ends_at.replace(tzinfo=None):
        raise ValidationError("starts_at must be earlier than ends_at")


def search_services(
    category: str | None = None,
    zone: str | None = None,
    max_price: float | None = None,
    page: int = 1,
    limit: int = 12,
) -> tuple[list[Service], int]:
    """Return hireable services (active, without a live hire), newest first."""
    live_hire = (
        select(Hire.hire_id)
        .where(Hire.service_id == Service.service_id, Hire.state.in_(LIVE_HIRE_STATES))
        .exists()
    )
    query = _service_query().filter(Service.is_active.is_(True), ~live_hire)

    if category:
        query = query.join(Category, Category.category_id == Service.category_id).filter(
            Category.name.ilike(category)
        )
    if zone:
        query = query.join(Zone, Zone.zone_id == Service.zone_id).filter(Zone.name.ilike(zone))
    if max_price is not None:
        query = query.filter(Service.price_cents <= int(round(max_price * 100)))

    page = max(1, page)
    limit = min(MAX_PAGE_SIZE, max(1, limit))
    total = query.count()
    services = (
        query.order_by(Service.created_at.desc(), Service.service_id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return services, total


def view_service(service_id: int, viewer_id: int | None = None) -> Service:
    """Fetch a service for its detail page and count the view."""
    _load_service(service_id)
    with transaction() as session:
        session.add(ServiceView(service_id=service_id, viewer_id=viewer_id))
    return _load_service(service_id)


def create_service(actor: Actor, payload: dict[str, object] | None) -> Service:
    if actor.role is not Role.TRAINER:
        raise Unauthorized("Only trainers can publish services")

    values = clean_payload(payload, SERVICE_FIELDS)
    _check_references(values)
    _check_window(values["starts_at"], values["ends_at"])

    with transaction() as session:
        service = Service(trainer_id=actor.user_id, **values)
        session.add(service)
        session.flush()
        service_id = service.service_id

    return _load_service(service_id)


def update_service(
    service_id: int, actor: Actor, payload: dict[str, object] | None, partial: bool
) -> Service:
    """Apply an owner's edit. ``partial`` distinguishes PATCH from PUT.

    The active flag cannot be changed while a pending or accepted hire holds
    the service.
    """
    service = _load_service(service_id)
    if not policy.can_manage_service(service, actor):
        raise Unauthorized("You can only edit your own services")

    values = clean_payload(payload, SERVICE_FIELDS, partial=partial)
    _check_references(values)
    _check_window(
        values.get("starts_at", service.starts_at), values.get("ends_at", service.ends_at)
    )
    is_active = values.pop("is_active", service.is_active)

    with transaction() as session:
        if is_active != service.is_active:
            live_hire = (
                select(Hire.hire_id)
                .where(Hire.service_id == service_id, Hire.state.in_(LIVE_HIRE_STATES))
                .exists()
            )
            toggled = session.execute(
                update(Service)
                .where(Service.service_id == service_id, ~live_hire)
                .values(is_active=is_active, updated_at=utc_now())
                .execution_options(synchronize_session=False)
            )
            if toggled.rowcount != 1:
                raise Conflict("The service is reserved by a pending or accepted hire")
        for column, value in values.items():
            setattr(service, column, value)

    return _load_service(service_id)


def delete_service(service_id: int, actor: Actor) -> None:
    service = _load_service(service_id)
    if not policy.can_manage_service(service, actor):
        raise Unauthorized("You can only delete your own services")
    if service.hires.count():
        raise Conflict("Services with hires cannot be deleted")

    with transaction() as session:
        ServiceView.query.filter_by(service_id=service_id).delete()
        session.delete(service)


def list_categories() -> list[Category]:
    return Category.query.order_by(Category.name.asc()).all()


def list_zones() -> list[Zone]:
    return Zone.query.order_by(Zone.name.asc()).all()
