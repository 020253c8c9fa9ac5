"""Tests for service listings, categories and zones."""
from __future__ import annotations

from conftest import create_hire_row, create_service
from marketplace.extensions import db
from marketplace.models import Category, Service, ServiceView, Zone


def _service_payload(data, **overrides) -> dict:
    payload = {
        "category_id": data.category,
        "zone_id": data.zone,
        "description": "Outdoor running technique session",
        "price": 12500.50,
        "duration_minutes": 30,
        "language": "english",
        "modality": "in_person",
        "starts_at": "2030-03-01T08:00:00",
        "ends_at": "2030-03-01T08:30:00",
    }
    payload.update(overrides)
    return payload


def test_create_service_201(app, client, data, auth_headers) -> None:
    response = client.post("/services", json=_service_payload(data), headers=auth_headers(data.trainer))

    assert response.status_code == 201
    service = response.get_json()["service"]
    assert service["trainer_id"] == data.trainer
    assert service["price_cents"] == 1250050
    assert service["category"] == "Fitness"
    assert service["is_active"] is True


def test_create_service_client_forbidden(client, data, auth_headers) -> None:
    response = client.post("/services", json=_service_payload(data), headers=auth_headers(data.client))

    assert response.status_code == 403


def test_create_service_validation(client, data, auth_headers) -> None:
    headers = auth_headers(data.trainer)

    for overrides in (
        {"duration_minutes": 45},
        {"language": "french"},
        {"modality": "hybrid"},
        {"description": "short"},
        {"price": 0},
        {"category_id": 999},
        {"ends_at": "2030-03-01T07:00:00"},
        {"trainer_id": data.other_trainer},
    ):
        response = client.post("/services", json=_service_payload(data, **overrides), headers=headers)
        assert response.status_code == 400, overrides


def test_search_excludes_hired_and_inactive(app, client, data) -> None:
    with app.app_context():
        hired = create_service(data.trainer, data.category, data.zone, description="Already hired service")
        create_hire_row(data.client, hired)
        create_service(data.trainer, data.category, data.zone, is_active=False)

    response = client.get("/services")

    assert response.status_code == 200
    body = response.get_json()
    assert [s["id"] for s in body["services"]] == [data.service]
    assert body["pagination"]["total"] == 1


def test_search_filters(app, client, data) -> None:
    with app.app_context():
        yoga = Category(name="Yoga")
        belgrano = Zone(name="Belgrano")
        db.session.add_all([yoga, belgrano])
        db.session.commit()
        cheap_yoga = create_service(
            data.other_trainer, yoga.category_id, belgrano.zone_id, price_cents=5000
        )

    by_category = client.get("/services?category=yoga").get_json()["services"]
    assert [s["id"] for s in by_category] == [cheap_yoga]

    by_zone = client.get("/services?zone=Palermo").get_json()["services"]
    assert [s["id"] for s in by_zone] == [data.service]

    by_price = client.get("/services?max_price=100").get_json()["services"]
    assert [s["id"] for s in by_price] == [cheap_yoga]

    assert client.get("/services?max_price=abc").status_code == 400


def test_get_service_records_view(app, client, data, auth_headers) -> None:
    response = client.get(f"/services/{data.service}", headers=auth_headers(data.client))
    client.get(f"/services/{data.service}")

    assert response.status_code == 200
    assert response.get_json()["service"]["id"] == data.service
    with app.app_context():
        views = ServiceView.query.filter_by(service_id=data.service).all()
        assert len(views) == 2
        assert {view.viewer_id for view in views} == {data.client, None}


def test_patch_service_owner_only(client, data, auth_headers) -> None:
    response = client.patch(
        f"/services/{data.service}", json={"price": 2000}, headers=auth_headers(data.other_trainer)
    )
    assert response.status_code == 403

    response = client.patch(
        f"/services/{data.service}", json={"price": 2000}, headers=auth_headers(data.trainer)
    )
    assert response.status_code == 200
    assert response.get_json()["service"]["price_cents"] == 200000


def test_put_service_requires_all_fields(client, data, auth_headers) -> None:
    headers = auth_headers(data.trainer)

    partial = client.put(f"/services/{data.service}", json={"price": 2000}, headers=headers)
    assert partial.status_code == 400

    full = client.put(f"/services/{data.service}", json=_service_payload(data), headers=headers)
    assert full.status_code == 200
    assert full.get_json()["service"]["description"] == "Outdoor running technique session"


def test_patch_rejects_unknown_field(client, data, auth_headers) -> None:
    response = client.patch(
        f"/services/{data.service}", json={"trainer_id": data.other_trainer}, headers=auth_headers(data.trainer)
    )

    assert response.status_code == 400


def test_delete_service(app, client, data, auth_headers) -> None:
    client.get(f"/services/{data.service}")

    response = client.delete(f"/services/{data.service}", headers=auth_headers(data.trainer))

    assert response.status_code == 200
    with app.app_context():
        assert db.session.get(Service, data.service) is None


def test_delete_hired_service_conflict(app, client, data, auth_headers) -> None:
    with app.app_context():
        create_hire_row(data.client, data.service, state="cancelled")

    response = client.delete(f"/services/{data.service}", headers=auth_headers(data.trainer))

    assert response.status_code == 409


def test_categories_and_zones(client, data) -> None:
    assert client.get("/categories").get_json()["categories"] == [{"id": data.category, "name": "Fitness"}]
    assert client.get("/zones").get_json()["zones"] == [{"id": data.zone, "name": "Palermo"}]


def test_reserved_service_cannot_be_reactivated(app, client, data, auth_headers) -> None:
    trainer_headers = auth_headers(data.trainer)
    hire_id = client.post(
        "/hires", json={"service_id": data.service}, headers=auth_headers(data.client)
    ).get_json()["hire"]["id"]

    response = client.patch(f"/services/{data.service}", json={"is_active": True}, headers=trainer_headers)

    assert response.status_code == 409
    assert response.get_json()["error"] == "conflict"

    client.patch(f"/hires/{hire_id}/status", json={"state": "accepted"}, headers=trainer_headers)
    client.patch(f"/hires/{hire_id}/complete", headers=trainer_headers)
    with app.app_context():
        assert db.session.get(Service, data.service).is_active is False

    rehired = client.post("/hires", json={"service_id": data.service}, headers=auth_headers(data.other_client))
    assert rehired.status_code == 409


def test_reserved_service_accepts_other_edits(app, client, data, auth_headers) -> None:
    with app.app_context():
        create_hire_row(data.client, data.service)

    response = client.patch(
        f"/services/{data.service}",
        json={"price": 2000, "is_active": False},
        headers=auth_headers(data.trainer),
    )

    assert response.status_code == 200
    assert response.get_json()["service"]["price_cents"] == 200000
    assert response.get_json()["service"]["is_active"] is False


def test_owner_toggles_unreserved_service(app, client, data, auth_headers) -> None:
    headers = auth_headers(data.trainer)

    paused = client.patch(f"/services/{data.service}", json={"is_active": False}, headers=headers)
    assert paused.status_code == 200
    assert paused.get_json()["service"]["is_active"] is False

    resumed = client.patch(f"/services/{data.service}", json={"is_active": True}, headers=headers)
    assert resumed.status_code == 200
    with app.app_context():
        assert db.session.get(Service, data.service).is_active is True
