from ..helpers import TUESDAY, as_user, at


def test_get_policies(client, db):
    resp = client.get("/api/v1/session-policies")

    assert resp.status_code == 200
    body = resp.json()
    assert body["mentee"]["reschedule_cutoff_hours"] == 4
    assert body["negotiation"]["max_counter_proposals"] == 3


def test_patch_policies(client, mentor_id):
    resp = client.patch(
        "/api/v1/session-policies",
        json={"negotiation": {"max_counter_proposals": 5}},
        headers=as_user(mentor_id),
    )

    assert resp.status_code == 200
    assert resp.json()["negotiation"]["max_counter_proposals"] == 5
    assert client.get("/api/v1/session-policies").json()["negotiation"]["max_counter_proposals"] == 5


def test_patch_requires_identity(client):
    resp = client.patch("/api/v1/session-policies", json={"lifecycle": {"no_show_window_hours": 12}})
    assert resp.status_code == 401


def test_patch_rejects_invalid_values(client, mentor_id):
    resp = client.patch(
        "/api/v1/session-policies",
        json={"refunds": {"partial_refund_percentage": 101}},
        headers=as_user(mentor_id),
    )

    assert resp.status_code == 400
    assert resp.json()["code"] == "INVALID_POLICY"


def test_health(client):
    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"
    assert resp.json()["database"] == "ok"


def test_metrics_exposes_domain_counters(client, book):
    book(at(TUESDAY, 10, 15))
    resp = client.get("/metrics")

    assert resp.status_code == 200
    assert "mentor_sessions_bookings_total" in resp.text
    assert "mentor_sessions_service_operation_duration_seconds" in resp.text
