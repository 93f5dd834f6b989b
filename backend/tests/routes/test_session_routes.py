"""Booking and session lifecycle endpoints."""

from datetime import timedelta

from ..helpers import TUESDAY, as_user, at, events_for, iso, parse_instant

SLOT = at(TUESDAY, 10, 15)


def book_via_api(client, mentor_id, mentee_id, slot=SLOT, **extra):
    payload = {"mentor_id": mentor_id, "slot_start": iso(slot), "rate": "100.00", **extra}
    return client.post("/api/v1/sessions", json=payload, headers=as_user(mentee_id))


def test_book_session(client, schedule, mentor_id, mentee_id, notifications):
    resp = book_via_api(client, mentor_id, mentee_id, title="Career chat", meeting_type="video")

    assert resp.status_code == 201
    body = resp.json()
    assert body["status"] == "scheduled"
    assert body["mentee_id"] == mentee_id
    assert body["title"] == "Career chat"
    assert body["rate"] == "100.00"
    assert parse_instant(body["scheduled_at"]) == SLOT
    assert events_for(notifications, mentor_id) == ["session_booked"]


def test_double_booking_conflicts(client, schedule, mentor_id, mentee_id, outsider_id):
    assert book_via_api(client, mentor_id, mentee_id).status_code == 201

    resp = book_via_api(client, mentor_id, outsider_id)

    assert resp.status_code == 409
    body = resp.json()
    assert body["code"] == "SLOT_TAKEN"
    assert body["title"] == "Conflict"
    assert parse_instant(body["errors"]["slot_start"]) == SLOT


def test_booking_outside_window(client, schedule, mentor_id, mentee_id):
    resp = book_via_api(client, mentor_id, mentee_id, slot=at(TUESDAY, 9) - timedelta(days=1))

    assert resp.status_code == 422
    assert resp.json()["code"] == "POLICY_VIOLATION"
    assert resp.json()["errors"]["cutoff_hours"] == 24


def test_booking_requires_offset(client, schedule, mentor_id, mentee_id):
    resp = client.post(
        "/api/v1/sessions",
        json={"mentor_id": mentor_id, "slot_start": "2025-06-03T10:15:00", "rate": "10"},
        headers=as_user(mentee_id),
    )
    assert resp.status_code == 422


def test_participants_only(client, book, mentee_id, outsider_id):
    session = book(SLOT)

    assert client.get(f"/api/v1/sessions/{session.id}", headers=as_user(mentee_id)).status_code == 200
    resp = client.get(f"/api/v1/sessions/{session.id}", headers=as_user(outsider_id))
    assert resp.status_code == 403
    assert resp.json()["code"] == "NOT_A_PARTICIPANT"


def test_unknown_session(client, mentee_id):
    resp = client.get("/api/v1/sessions/01J00000000000000000000000", headers=as_user(mentee_id))
    assert resp.status_code == 404


def test_cancel_with_reason(client, book, mentee_id, payments):
    session = book(SLOT)

    resp = client.post(
        f"/api/v1/sessions/{session.id}/cancel",
        json={"reason_category": "schedule_conflict", "reason_details": "Exam moved"},
        headers=as_user(mentee_id),
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "cancelled"
    assert body["refund_percentage"] == 100
    assert body["cancellation_reason"] == "Exam moved"
    assert len(payments.refunds) == 1


def test_cancel_without_body(client, book, mentor_id):
    session = book(SLOT)

    resp = client.post(f"/api/v1/sessions/{session.id}/cancel", headers=as_user(mentor_id))

    assert resp.status_code == 200
    assert resp.json()["cancelled_by"] == "mentor"


def test_late_cancel_reports_cutoff(client, book, mentee_id, clock):
    session = book(SLOT)
    clock.set(SLOT - timedelta(hours=1))

    resp = client.post(f"/api/v1/sessions/{session.id}/cancel", headers=as_user(mentee_id))

    assert resp.status_code == 422
    body = resp.json()
    assert body["code"] == "POLICY_VIOLATION"
    assert body["errors"]["cutoff_hours"] == 2
    assert body["errors"]["hours_until"] == 1


def test_start_complete_and_audit(client, book, mentor_id, mentee_id, clock):
    session = book(SLOT)
    clock.set(SLOT)

    started = client.post(f"/api/v1/sessions/{session.id}/start", headers=as_user(mentor_id))
    assert started.status_code == 200
    assert started.json()["status"] == "in_progress"

    completed = client.post(f"/api/v1/sessions/{session.id}/complete", headers=as_user(mentee_id))
    assert completed.status_code == 200
    assert completed.json()["status"] == "completed"

    again = client.post(f"/api/v1/sessions/{session.id}/complete", headers=as_user(mentee_id))
    assert again.status_code == 409
    assert again.json()["code"] == "INVALID_TRANSITION"

    audit = client.get(f"/api/v1/sessions/{session.id}/audit", headers=as_user(mentee_id))
    assert audit.status_code == 200
    assert audit.json() == {"session_id": session.id, "entries": []}


def test_no_show(client, book, mentor_id, mentee_id, clock):
    session = book(SLOT)
    clock.set(SLOT + timedelta(minutes=15))

    denied = client.post(f"/api/v1/sessions/{session.id}/no-show", headers=as_user(mentee_id))
    assert denied.status_code == 422

    resp = client.post(f"/api/v1/sessions/{session.id}/no-show", headers=as_user(mentor_id))
    assert resp.status_code == 200
    assert resp.json()["status"] == "no_show"
