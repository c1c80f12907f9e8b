from datetime import timedelta

import pytest

from app.core.config import settings
from app.models.booking import BookingStatus
from app.models.user import ROLE_OPERATOR

from conftest import NOW

API = "/api/v1"


def _slot_body(**overrides):
    body = {
        "chargingStationId": "st-1",
        "evOwnerNic": "200012345678",
        "chargingPointNumber": 1,
        "bookingDate": "2026-03-03",
        "timeSlot": 9,
    }
    body.update(overrides)
    return body


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_login_and_me(client, world):
    r = client.post(f"{API}/auth/login", json={"username": "Operator", "password": "secret123"})
    assert r.status_code == 200
    tokens = r.json()
    assert tokens["token_type"] == "bearer"

    me = client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {tokens['access_token']}"})
    assert me.status_code == 200
    assert me.json()["role"] == ROLE_OPERATOR

    # a refresh token is not an access token
    r = client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {tokens['refresh_token']}"})
    assert r.status_code == 401

    r = client.post(f"{API}/auth/refresh", params={"refresh_token": tokens["refresh_token"]})
    assert r.status_code == 200


def test_login_wrong_password(client, world):
    r = client.post(f"{API}/auth/login", json={"username": "operator", "password": "nope"})
    assert r.status_code == 401


def test_requires_authentication(client, world):
    assert client.get(f"{API}/timeslots/availability/st-1", params={"date": "2026-03-03"}).status_code == 401
    assert client.post(f"{API}/timeslots/book", json=_slot_body()).status_code == 401


def test_book_slot_then_conflict(client, world, auth):
    headers = auth(world["owner_user"])
    r = client.post(f"{API}/timeslots/book", json=_slot_body(), headers=headers)
    assert r.status_code == 201
    data = r.json()
    assert data["status"] == BookingStatus.APPROVED
    assert data["bookingReference"].startswith("EVB")

    r = client.post(f"{API}/timeslots/book", json=_slot_body(), headers=headers)
    assert r.status_code == 409
    assert r.json()["detail"] == "Time slot is not available."

    grid = client.get(f"{API}/timeslots/availability/st-1", params={"date": "2026-03-03"}, headers=headers).json()
    cell = grid["chargingPoints"][0]["timeSlots"][9]
    assert cell["isAvailable"] is False
    assert cell["bookingId"] == data["bookingId"]

    check = client.get(f"{API}/timeslots/station/st-1/point/1/check",
                       params={"date": "2026-03-03", "time_slot": 9}, headers=headers)
    assert check.json() == {"isAvailable": False}

    free = client.get(f"{API}/timeslots/station/st-1/available", params={"date": "2026-03-03"}, headers=headers).json()
    assert len(free[0]["timeSlots"]) == 23


def test_book_slot_errors_map_to_status_codes(client, world, auth):
    headers = auth(world["owner_user"])
    assert client.post(f"{API}/timeslots/book", json=_slot_body(chargingPointNumber=4), headers=headers).status_code == 400
    assert client.post(f"{API}/timeslots/book", json=_slot_body(timeSlot=24), headers=headers).status_code == 400
    assert client.post(f"{API}/timeslots/book", json=_slot_body(chargingStationId="nope"), headers=headers).status_code == 404
    # owners book only for themselves
    assert client.post(f"{API}/timeslots/book", json=_slot_body(evOwnerNic="199999999999"), headers=headers).status_code == 403


def test_availability_unknown_station(client, world, auth):
    r = client.get(f"{API}/timeslots/availability/nope", params={"date": "2026-03-03"}, headers=auth(world["admin"]))
    assert r.status_code == 404


def test_free_form_booking_window(client, world, auth):
    headers = auth(world["owner_user"])
    body = {"evOwnerNic": "200012345678", "chargingStationId": "st-1", "chargingPointNumber": 2}

    r = client.post(f"{API}/bookings", json={**body, "startTime": (NOW + timedelta(days=8)).isoformat()}, headers=headers)
    assert r.status_code == 409

    r = client.post(f"{API}/bookings", json={**body, "startTime": (NOW + timedelta(days=2)).isoformat()}, headers=headers)
    assert r.status_code == 201
    assert r.json()["status"] == BookingStatus.PENDING

    count = client.get(f"{API}/bookings/pending/count/200012345678", headers=headers)
    assert count.json() == {"count": 1}


def test_owner_cancel_inside_cutoff_then_operator_cancels(client, world, make_booking, auth):
    b = make_booking(status=BookingStatus.PENDING, start=NOW + timedelta(hours=1))

    r = client.delete(f"{API}/bookings/{b.id}", headers=auth(world["owner_user"]))
    assert r.status_code == 409

    r = client.patch(f"{API}/bookings/{b.id}/status", json={"status": "Cancelled"}, headers=auth(world["operator"]))
    assert r.status_code == 200
    assert r.json()["status"] == BookingStatus.CANCELLED


def test_owner_update_and_can_modify(client, world, make_booking, auth):
    b = make_booking()
    headers = auth(world["owner_user"])
    assert client.get(f"{API}/bookings/{b.id}/can-modify", headers=headers).json() == {"canModify": True}

    new_start = (NOW + timedelta(days=3)).replace(hour=11)
    r = client.put(f"{API}/bookings/{b.id}", json={"startTime": new_start.isoformat()}, headers=headers)
    assert r.status_code == 200
    assert r.json()["timeSlot"] == 11
    assert r.json()["bookingDate"] == new_start.date().isoformat()


def test_other_owner_cannot_see_booking(client, world, make_owner, make_user, make_booking, auth):
    stranger = make_owner("199011112222")
    stranger_user = make_user("stranger", "owner", nic=stranger.nic)
    b = make_booking()
    assert client.get(f"{API}/bookings/{b.id}", headers=auth(stranger_user)).status_code == 403
    assert client.get(f"{API}/bookings/{b.id}", headers=auth(world["owner_user"])).status_code == 200


def test_operator_of_another_station_is_forbidden(client, world, make_user, make_station, make_booking, auth):
    other_operator = make_user("other-op", ROLE_OPERATOR)
    b = make_booking(status=BookingStatus.PENDING)

    assert client.put(f"{API}/bookings/{b.id}/approve", headers=auth(other_operator)).status_code == 403
    assert client.put(f"{API}/bookings/{b.id}/approve", headers=auth(world["operator"])).status_code == 200


def test_owner_cannot_approve(client, world, make_booking, auth):
    b = make_booking(status=BookingStatus.PENDING)
    assert client.put(f"{API}/bookings/{b.id}/approve", headers=auth(world["owner_user"])).status_code == 403


def test_status_patch_cannot_skip_required_qr(client, world, make_booking, auth, monkeypatch):
    monkeypatch.setattr(settings, "REQUIRE_QR_FOR_COMPLETION", True)
    b = make_booking()
    r = client.patch(f"{API}/bookings/{b.id}/status", json={"status": "Completed"}, headers=auth(world["operator"]))
    assert r.status_code == 400
    assert client.get(f"{API}/bookings/{b.id}", headers=auth(world["operator"])).json()["status"] == BookingStatus.APPROVED


def test_terminal_booking_transition_is_409(client, world, make_booking, auth):
    b = make_booking(status=BookingStatus.COMPLETED)
    r = client.patch(f"{API}/bookings/{b.id}/status", json={"status": "Approved"}, headers=auth(world["admin"]))
    assert r.status_code == 409


def test_unknown_booking_is_404(client, world, auth):
    assert client.get(f"{API}/bookings/nope", headers=auth(world["admin"])).status_code == 404


def test_qr_issue_validate_and_complete(client, world, make_booking, auth):
    b = make_booking(start=NOW + timedelta(minutes=30))
    owner = auth(world["owner_user"])
    operator = auth(world["operator"])

    r = client.post(f"{API}/bookings/{b.id}/generate-qr", headers=owner)
    assert r.status_code == 200
    qr = r.json()["qrData"]

    r = client.post(f"{API}/bookings/validate-qr", json={"qrData": qr}, headers=operator)
    assert r.status_code == 200
    data = r.json()
    assert data["isValid"] is True
    assert data["bookingId"] == b.id
    assert data["status"] == BookingStatus.APPROVED

    r = client.post(f"{API}/bookings/{b.id}/complete", json={"qrData": "garbage"}, headers=operator)
    assert r.status_code == 400

    r = client.post(f"{API}/bookings/{b.id}/complete", json={"qrData": qr}, headers=operator)
    assert r.status_code == 200
    assert r.json()["status"] == BookingStatus.COMPLETED


def test_qr_for_pending_booking_is_409(client, world, make_booking, auth):
    b = make_booking(status=BookingStatus.PENDING)
    r = client.post(f"{API}/bookings/{b.id}/generate-qr", headers=auth(world["owner_user"]))
    assert r.status_code == 409


@pytest.mark.parametrize("qr", ["garbage", "abc.é"])
def test_validate_garbage_qr_reports_invalid(client, world, auth, qr):
    r = client.post(f"{API}/bookings/validate-qr", json={"qrData": qr}, headers=auth(world["operator"]))
    assert r.status_code == 200
    assert r.json()["isValid"] is False
    assert r.json()["errorMessage"]


def test_complete_with_non_ascii_qr_is_400(client, world, make_booking, auth):
    b = make_booking(start=NOW + timedelta(minutes=30))
    r = client.post(f"{API}/bookings/{b.id}/complete", json={"qrData": "abc.é"}, headers=auth(world["operator"]))
    assert r.status_code == 400


def test_station_and_operator_listings(client, world, make_booking, auth):
    make_booking(point=1)
    make_booking(point=2, status=BookingStatus.CANCELLED)
    operator = auth(world["operator"])

    assert len(client.get(f"{API}/bookings/station/st-1", headers=operator).json()) == 2
    assert len(client.get(f"{API}/bookings/station/st-1/active", headers=operator).json()) == 1
    assert len(client.get(f"{API}/bookings/operator/operator", headers=operator).json()) == 2
    assert client.get(f"{API}/bookings/operator/someone-else", headers=operator).status_code == 403
    assert client.get(f"{API}/bookings", headers=operator).status_code == 403
    assert len(client.get(f"{API}/bookings", headers=auth(world["admin"])).json()) == 2
