"""Tests for payload allow-lists and the local file store."""
from __future__ import annotations

import io
from datetime import date

import pytest
from werkzeug.datastructures import FileStorage

from marketplace import storage
from marketplace.errors import ValidationError
from marketplace.storage import LocalFileStore
from marketplace.validation import SERVICE_FIELDS, USER_PROFILE_FIELDS, clean_payload


def test_clean_payload_maps_columns() -> None:
    values = clean_payload({"price": "19.99", "duration_minutes": 15}, SERVICE_FIELDS, partial=True)

    assert values == {"price_cents": 1999, "duration_minutes": 15}


def test_clean_payload_rejects_unknown_keys() -> None:
    with pytest.raises(ValidationError) as excinfo:
        clean_payload({"first_name": "Ana", "is_deleted": False}, USER_PROFILE_FIELDS, partial=True)

    assert "is_deleted" in excinfo.value.message


def test_clean_payload_requires_fields_when_not_partial() -> None:
    with pytest.raises(ValidationError) as excinfo:
        clean_payload({"first_name": "Ana"}, USER_PROFILE_FIELDS)

    assert "last_name" in excinfo.value.message


def test_clean_payload_rejects_non_object_and_empty_patch() -> None:
    with pytest.raises(ValidationError):
        clean_payload(["first_name"], USER_PROFILE_FIELDS)
    with pytest.raises(ValidationError):
        clean_payload({}, USER_PROFILE_FIELDS, partial=True)


def test_profile_fields_are_typed() -> None:
    values = clean_payload({"birth_date": "2000-01-31"}, USER_PROFILE_FIELDS, partial=True)

    assert values == {"birth_date": date(2000, 1, 31)}
    with pytest.raises(ValidationError):
        clean_payload({"birth_date": "31/01/2000"}, USER_PROFILE_FIELDS, partial=True)
    with pytest.raises(ValidationError):
        clean_payload({"is_active": "yes"}, SERVICE_FIELDS, partial=True)


def test_file_store_sanitises_names(tmp_path) -> None:
    store = LocalFileStore(tmp_path)
    upload = FileStorage(stream=io.BytesIO(b"data"), filename="../../etc/passwd.pdf")

    key = store.save(7, upload, upload.filename)

    assert key.startswith("7/")
    assert ".." not in key
    assert store.path(key).read_bytes() == b"data"

    store.delete(key)
    assert not store.path(key).exists()


def test_file_store_refuses_escaping_keys(tmp_path) -> None:
    store = LocalFileStore(tmp_path / "uploads")

    with pytest.raises(ValueError):
        store.path("../outside.txt")


def test_file_store_keys_unique_within_one_millisecond(tmp_path, monkeypatch) -> None:
    store = LocalFileStore(tmp_path)
    monkeypatch.setattr(storage.time, "time", lambda: 1_700_000_000.0)

    first = store.save(3, FileStorage(stream=io.BytesIO(b"first"), filename="plan.pdf"), "plan.pdf")
    second = store.save(3, FileStorage(stream=io.BytesIO(b"second"), filename="plan.pdf"), "plan.pdf")

    assert first != second
    assert store.path(first).read_bytes() == b"first"
    assert store.path(second).read_bytes() == b"second"
