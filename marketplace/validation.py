"""Typed allow-lists for request payloads that update rows."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Callable, Mapping

from .errors import ValidationError
from .models import SERVICE_DURATIONS, SERVICE_LANGUAGES, SERVICE_MODALITIES


def parse_date(value: object, field: str) -> date:
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            pass
    raise ValidationError(f"{field} must be a date in YYYY-MM-DD format")


def parse_datetime(value: object, field: str) -> datetime:
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            pass
    raise ValidationError(f"{field} must be an ISO 8601 datetime")


def parse_id(value: object, field: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a positive integer")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a positive integer") from None
    if number <= 0:
        raise ValidationError(f"{field} must be a positive integer")
    return number


def _name(value: object, field: str) -> str:
    text = value.strip() if isinstance(value, str) else ""
    if not text or len(text) > 100:
        raise ValidationError(f"{field} must be a non-empty string of at most 100 characters")
    return text


def _description(value: object, field: str) -> str:
    text = value.strip() if isinstance(value, str) else ""
    if len(text) < 10:
        raise ValidationError(f"{field} must be at least 10 characters")
    return text


def _price_cents(value: object, field: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a positive amount")
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f"{field} must be a positive amount") from None
    if not amount.is_finite() or amount <= 0:
        raise ValidationError(f"{field} must be a positive amount")
    return int((amount * 100).to_integral_value())


def _choice(options: tuple) -> Callable[[object, str], object]:
    def parse(value: object, field: str) -> object:
        if value not in options:
            allowed = ", ".join(str(option) for option in options)
            raise ValidationError(f"{field} must be one of: {allowed}")
        return value

    return parse


def _boolean(value: object, field: str) -> bool:
    if not isinstance(value, bool):
        raise ValidationError(f"{field} must be true or false")
    return value


@dataclass(frozen=True)
class Field:
    column: str
    parse: Callable[[object, str], object]
    required: bool = True


SERVICE_FIELDS: dict[str, Field] = {
    "category_id": Field("category_id", parse_id),
    "zone_id": Field("zone_id", parse_id),
    "description": Field("description", _description),
    "price": Field("price_cents", _price_cents),
    "duration_minutes": Field("duration_minutes", _choice(SERVICE_DURATIONS)),
    "language": Field("language", _choice(SERVICE_LANGUAGES)),
    "modality": Field("modality", _choice(SERVICE_MODALITIES)),
    "starts_at": Field("starts_at", parse_datetime),
    "ends_at": Field("ends_at", parse_datetime),
    "is_active": Field("is_active", _boolean, required=False),
}

USER_PROFILE_FIELDS: dict[str, Field] = {
    "first_name": Field("first_name", _name),
    "last_name": Field("last_name", _name),
    "birth_date": Field("birth_date", parse_date, required=False),
}


def clean_payload(
    payload: Mapping[str, object] | None,
    fields: Mapping[str, Field],
    partial: bool = False,
) -> dict[str, object]:
    """Validate ``payload`` against an allow-list and map it onto columns.

    Unknown keys are rejected. Unless ``partial`` is set, every required field
    must be present.
    """
    if not isinstance(payload, Mapping):
        raise ValidationError("request body must be a JSON object")

    unknown = sorted(set(payload) - set(fields))
    if unknown:
        raise ValidationError(f"unknown fields: {', '.join(unknown)}")

    if not partial:
        missing = [key for key, field in fields.items() if field.required and key not in payload]
        if missing:
            raise ValidationError(f"missing fields: {', '.join(missing)}")

    if partial and not payload:
        raise ValidationError("no fields to update")

    return {fields[key].column: fields[key].parse(value, key) for key, value in payload.items()}
