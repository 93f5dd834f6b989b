"""Reschedule negotiation endpoints."""

from datetime import timedelta

import pytest

from ..helpers import THURSDAY, TUESDAY, WEDNESDAY, as_user, at, iso, parse_instant

SLOT = at(TUESDAY, 10, 15)


@pytest.fixture
def session(book):
    return book(SLOT)


def initiate(client, session_id, actor_id, proposed):
    return client.post(
        f"/api/v1/sessions/{session_id}/reschedule",
        json={"proposed_time": iso(proposed)},
        headers=as_user(actor_id),
    )


def respond(client, request_id, actor_id, action, counter=None):
    payload = {"action": action}
    if counter is not None:
        payload["counter_proposed_time"] = iso(counter)
    return client.post(
        f"/api/v1/reschedule-requests/{request_id}/respond",
        json=payload,
        headers=as_user(actor_id),
    )


def test_initiate_and_accept(client, session, mentee_id, mentor_id):
    created = initiate(client, session.id, mentee_id, at(WEDNESDAY, 9))
    assert created.status_code == 201
    request_id = created.json()["id"]
    assert created.json()["status"] == "pending"

    accepted = respond(client, request_id, mentor_id, "accept")
    assert accepted.status_code == 200
    assert accepted.json()["status"] == "accepted"

    moved = client.get(f"/api/v1/sessions/{session.id}", headers=as_user(mentee_id)).json()
    assert parse_instant(moved["scheduled_at"]) == at(WEDNESDAY, 9)
    assert moved["mentee_reschedule_count"] == 1

    history = client.get(f"/api/v1/sessions/{session.id}/reschedule", headers=as_user(mentor_id))
    assert [r["status"] for r in history.json()] == ["accepted"]

    audit = client.get(f"/api/v1/sessions/{session.id}/audit", headers=as_user(mentor_id)).json()
    assert [e["action"] for e in audit["entries"]] == ["reschedule"]


def test_second_active_request_conflicts(client, session, mentee_id, mentor_id):
    assert initiate(client, session.id, mentee_id, at(WEDNESDAY, 9)).status_code == 201

    resp = initiate(client, session.id, mentor_id, at(WEDNESDAY, 14))

    assert resp.status_code == 409
    assert resp.json()["code"] == "REQUEST_ALREADY_ACTIVE"


def test_wrong_turn(client, session, mentee_id):
    request_id = initiate(client, session.id, mentee_id, at(WEDNESDAY, 9)).json()["id"]

    resp = respond(client, request_id, mentee_id, "accept")

    assert resp.status_code == 409
    assert resp.json()["code"] == "INVALID_TRANSITION"


def test_counter_proposal_cap(client, session, mentee_id, mentor_id):
    request_id = initiate(client, session.id, mentee_id, at(WEDNESDAY, 9)).json()["id"]
    rounds = [
        (mentor_id, at(WEDNESDAY, 10, 15)),
        (mentee_id, at(WEDNESDAY, 11, 30)),
        (mentor_id, at(WEDNESDAY, 12, 45)),
    ]
    for actor, proposed in rounds:
        resp = respond(client, request_id, actor, "counter_propose", counter=proposed)
        assert resp.status_code == 200
        assert resp.json()["status"] == "counter_proposed"

    capped = respond(client, request_id, mentee_id, "counter_propose", counter=at(WEDNESDAY, 14))
    assert capped.status_code == 422
    assert capped.json()["code"] == "ROUND_LIMIT_EXCEEDED"

    rejected = respond(client, request_id, mentee_id, "reject")
    assert rejected.status_code == 409

    accepted = respond(client, request_id, mentee_id, "accept")
    assert accepted.status_code == 200
    assert parse_instant(accepted.json()["proposed_time"]) == at(WEDNESDAY, 12, 45)


def test_counter_propose_requires_time(client, session, mentee_id, mentor_id):
    request_id = initiate(client, session.id, mentee_id, at(WEDNESDAY, 9)).json()["id"]

    resp = respond(client, request_id, mentor_id, "counter_propose")

    assert resp.status_code == 422
    assert resp.json()["code"] == "validation_error"


def test_cancel_session_response(client, session, mentee_id, mentor_id, clock):
    request_id = initiate(client, session.id, mentor_id, at(WEDNESDAY, 9)).json()["id"]
    clock.set(SLOT - timedelta(minutes=30))

    resp = respond(client, request_id, mentee_id, "cancel_session")

    assert resp.status_code == 200
    assert resp.json()["status"] == "cancelled"
    cancelled = client.get(f"/api/v1/sessions/{session.id}", headers=as_user(mentee_id)).json()
    assert cancelled["status"] == "cancelled"
    assert cancelled["refund_percentage"] == 100
    assert cancelled["cancellation_reason_category"] == "reschedule_response_cancel"


def test_expired_request(client, book, mentee_id, mentor_id, clock):
    session = book(at(THURSDAY, 10, 15))
    request_id = initiate(
        client, session.id, mentee_id, at(THURSDAY + timedelta(days=1), 9)
    ).json()["id"]
    clock.advance(hours=49)

    resp = respond(client, request_id, mentor_id, "accept")

    assert resp.status_code == 422
    assert resp.json()["code"] == "REQUEST_EXPIRED"
    fetched = client.get(f"/api/v1/reschedule-requests/{request_id}", headers=as_user(mentee_id))
    assert fetched.json()["status"] == "expired"


def test_withdraw(client, session, mentee_id, mentor_id):
    request_id = initiate(client, session.id, mentee_id, at(WEDNESDAY, 9)).json()["id"]

    denied = client.post(
        f"/api/v1/reschedule-requests/{request_id}/withdraw", headers=as_user(mentor_id)
    )
    assert denied.status_code == 422

    resp = client.post(
        f"/api/v1/reschedule-requests/{request_id}/withdraw", headers=as_user(mentee_id)
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "cancelled"
    assert resp.json()["cancellation_reason"] == "Withdrawn by initiator"


def test_outsider_cannot_read_request(client, session, mentee_id, outsider_id):
    request_id = initiate(client, session.id, mentee_id, at(WEDNESDAY, 9)).json()["id"]

    resp = client.get(f"/api/v1/reschedule-requests/{request_id}", headers=as_user(outsider_id))

    assert resp.status_code == 403
