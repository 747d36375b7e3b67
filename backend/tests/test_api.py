from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient

from salon_booking.database import get_db
from salon_booking.dependencies import get_outbox
from salon_booking.main import app

TOMORROW = date.today() + timedelta(days=1)

CLIENT = {"X-Client-Id": "client-1", "X-Client-Email": "anna@example.com"}
OTHER = {"X-Client-Id": "client-2"}
OWNER = {"X-Client-Id": "owner-1", "X-Client-Role": "owner"}


def start(hh_mm):
    return f"{TOMORROW.isoformat()}T{hh_mm}:00"


@pytest.fixture
def salon(make_service, make_specialist, make_hours):
    service = make_service(duration_min=60)
    maria = make_specialist("Maria", services=[service])
    make_hours(maria, "09:00", "12:00", day=TOMORROW)
    return service.id, maria.id


def book(client, salon, hh_mm, headers=CLIENT):
    service_id, specialist_id = salon
    return client.post(
        "/bookings/",
        json={"service_id": service_id, "specialist_id": specialist_id, "start": start(hh_mm)},
        headers=headers,
    )


def test_slots_day(client, salon):
    service_id, specialist_id = salon

    r = client.get("/slots/day", params={"service_id": service_id, "date": TOMORROW.isoformat()})

    assert r.status_code == 200
    data = r.json()
    assert data["service_duration_min"] == 60
    assert data["slot_step_minutes"] == 30
    assert [c["time"] for c in data["candidates"]] == ["09:00", "09:30", "10:00", "10:30", "11:00"]
    assert all(c["specialist_id"] == specialist_id for c in data["candidates"])


def test_slots_day_rejects_past_and_far_dates(client, salon):
    service_id, _ = salon
    past = (date.today() - timedelta(days=1)).isoformat()
    far = (date.today() + timedelta(days=365)).isoformat()

    assert client.get("/slots/day", params={"service_id": service_id, "date": past}).status_code == 400
    assert client.get("/slots/day", params={"service_id": service_id, "date": far}).status_code == 400


def test_slots_day_unknown_service_is_empty(client, salon):
    r = client.get("/slots/day", params={"service_id": 9999, "date": TOMORROW.isoformat()})

    assert r.status_code == 200
    assert r.json()["candidates"] == []


def test_booking_requires_identity(client, salon):
    r = book(client, salon, "10:00", headers={})

    assert r.status_code == 401
    assert r.json()["code"] == "unauthenticated"


def test_create_and_read_booking(client, outbox, salon):
    r = book(client, salon, "10:00")

    assert r.status_code == 201
    body = r.json()
    assert body["status"] == "pending"
    assert body["contact_email"] == "anna@example.com"
    assert body["start_time"].startswith(start("10:00"))

    got = client.get(f"/bookings/{body['id']}", headers=CLIENT)
    assert got.status_code == 200
    assert got.json()["id"] == body["id"]
    assert client.get(f"/bookings/{body['id']}", headers=OTHER).status_code == 403
    assert len(outbox.events) == 2


def test_taken_slot_returns_alternatives(client, salon):
    assert book(client, salon, "10:00").status_code == 201

    r = book(client, salon, "10:30", headers=OTHER)

    assert r.status_code == 409
    body = r.json()
    assert body["code"] == "slot_unavailable"
    assert [c["time"] for c in body["alternatives"]] == ["09:00", "11:00"]


def test_unknown_service(client, salon):
    _, specialist_id = salon
    r = client.post(
        "/bookings/",
        json={"service_id": 9999, "specialist_id": specialist_id, "start": start("10:00")},
        headers=CLIENT,
    )
    assert r.status_code == 404


def test_cancel_confirm_reschedule_flow(client, salon):
    booking_id = book(client, salon, "09:00").json()["id"]

    assert client.post(f"/bookings/{booking_id}/confirm", headers=CLIENT).status_code == 403
    confirmed = client.post(f"/bookings/{booking_id}/confirm", headers=OWNER)
    assert confirmed.status_code == 200
    assert confirmed.json()["status"] == "confirmed"

    moved = client.post(
        f"/bookings/{booking_id}/reschedule", json={"start": start("11:00")}, headers=CLIENT
    )
    assert moved.status_code == 200
    assert moved.json()["status"] == "pending"
    assert moved.json()["start_time"].startswith(start("11:00"))

    cancelled = client.post(f"/bookings/{booking_id}/cancel", json={"reason": "plans changed"}, headers=CLIENT)
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"
    assert cancelled.json()["cancel_reason"] == "plans changed"

    again = client.post(f"/bookings/{booking_id}/cancel", headers=CLIENT)
    assert again.status_code == 200


def test_rebook_and_delete(client, salon):
    booking_id = book(client, salon, "09:00").json()["id"]

    assert client.delete(f"/bookings/{booking_id}", headers=CLIENT).status_code == 409
    client.post(f"/bookings/{booking_id}/cancel", headers=CLIENT)

    rebooked = client.post(f"/bookings/{booking_id}/rebook", json={"start": start("10:00")}, headers=CLIENT)
    assert rebooked.status_code == 201
    assert rebooked.json()["id"] != booking_id

    assert client.delete(f"/bookings/{booking_id}", headers=CLIENT).status_code == 204
    assert client.get(f"/bookings/{booking_id}", headers=CLIENT).status_code == 404


def test_list_my_bookings(client, salon):
    first = book(client, salon, "09:00").json()["id"]
    second = book(client, salon, "10:00").json()["id"]
    book(client, salon, "11:00", headers=OTHER)
    client.post(f"/bookings/{first}/cancel", headers=CLIENT)

    mine = client.get("/bookings/", headers=CLIENT).json()
    cancelled = client.get("/bookings/", params={"status": "cancelled"}, headers=CLIENT).json()

    assert [b["id"] for b in mine] == [second, first]
    assert [b["id"] for b in cancelled] == [first]


@pytest.fixture
def offline_client(unreachable_session, outbox):
    app.dependency_overrides[get_db] = lambda: unreachable_session
    app.dependency_overrides[get_outbox] = lambda: outbox
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def test_storage_down_returns_503(offline_client):
    listing = offline_client.get("/bookings/", headers=CLIENT)
    one = offline_client.get("/bookings/1", headers=CLIENT)
    slots = offline_client.get("/slots/day", params={"service_id": 1, "date": TOMORROW.isoformat()})
    created = offline_client.post(
        "/bookings/", json={"service_id": 1, "specialist_id": 1, "start": start("10:00")}, headers=CLIENT
    )

    for r in (listing, one, slots, created):
        assert r.status_code == 503
        assert r.json()["code"] == "storage_unavailable"
