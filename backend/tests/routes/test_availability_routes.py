"""Availability and slot endpoints."""

from ..helpers import TUESDAY, WEDNESDAY, as_user, at, parse_instant

WEEKDAY_SCHEDULE = {
    "timezone": "UTC",
    "default_session_duration": 60,
    "buffer_minutes": 15,
    "min_advance_booking_hours": 24,
    "max_advance_booking_days": 90,
    "weekly_patterns": [
        {"day_of_week": day, "time_blocks": [{"start": "09:00", "end": "17:00"}]}
        for day in range(1, 6)
    ],
}


def availability_url(mentor_id: str, suffix: str = "") -> str:
    return f"/api/v1/mentors/{mentor_id}/availability{suffix}"


def test_mentor_publishes_schedule(client, mentor_id):
    resp = client.put(availability_url(mentor_id), json=WEEKDAY_SCHEDULE, headers=as_user(mentor_id))

    assert resp.status_code == 200
    body = resp.json()
    assert body["mentor_id"] == mentor_id
    assert [p["day_of_week"] for p in body["weekly_patterns"]] == [1, 2, 3, 4, 5]

    public = client.get(availability_url(mentor_id))
    assert public.status_code == 200
    assert public.json()["buffer_minutes"] == 15


def test_only_the_mentor_can_write(client, mentor_id, mentee_id):
    resp = client.put(availability_url(mentor_id), json=WEEKDAY_SCHEDULE, headers=as_user(mentee_id))

    assert resp.status_code == 403
    assert resp.json()["code"] == "NOT_SCHEDULE_OWNER"


def test_writes_require_identity(client, mentor_id):
    missing = client.put(availability_url(mentor_id), json=WEEKDAY_SCHEDULE)
    malformed = client.put(
        availability_url(mentor_id), json=WEEKDAY_SCHEDULE, headers=as_user("not-a-ulid")
    )

    for resp in (missing, malformed):
        assert resp.status_code == 401
        assert resp.json()["code"] == "UNAUTHENTICATED"


def test_overlapping_blocks_conflict(client, schedule, mentor_id):
    resp = client.put(
        availability_url(mentor_id, "/weekly/2"),
        json={"time_blocks": [{"start": "09:00", "end": "12:00"}, {"start": "11:30", "end": "13:00"}]},
        headers=as_user(mentor_id),
    )

    assert resp.status_code == 409
    body = resp.json()
    assert body["code"] == "AVAILABILITY_OVERLAP"
    assert body["errors"]["day"] == "Tuesday"


def test_invalid_payload_uses_problem_envelope(client, mentor_id):
    resp = client.put(
        availability_url(mentor_id),
        json={**WEEKDAY_SCHEDULE, "timezone": "Mars/Olympus"},
        headers=as_user(mentor_id),
    )

    assert resp.status_code == 422
    body = resp.json()
    assert body["code"] == "validation_error"
    assert body["status"] == 422
    assert body["instance"] == availability_url(mentor_id)


def test_slots_listing(client, schedule, mentor_id):
    resp = client.get(
        f"/api/v1/mentors/{mentor_id}/slots",
        params={"start_date": TUESDAY.isoformat(), "end_date": TUESDAY.isoformat()},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["timezone"] == "UTC"
    starts = [parse_instant(slot["start"]) for slot in body["slots"]]
    assert starts == [
        at(TUESDAY, 9),
        at(TUESDAY, 10, 15),
        at(TUESDAY, 11, 30),
        at(TUESDAY, 12, 45),
        at(TUESDAY, 14),
        at(TUESDAY, 15, 15),
    ]
    assert body["slots"][0]["remaining"] == 1


def test_slots_in_viewer_timezone(client, schedule, mentor_id):
    resp = client.get(
        f"/api/v1/mentors/{mentor_id}/slots",
        params={
            "start_date": TUESDAY.isoformat(),
            "end_date": TUESDAY.isoformat(),
            "timezone": "America/New_York",
        },
    )

    body = resp.json()
    assert body["viewer_timezone"] == "America/New_York"
    assert body["slots"][0]["display_start"].startswith(f"{TUESDAY.isoformat()}T05:00:00")
    assert body["slots"][0]["display_start"].endswith("-04:00")


def test_slots_reject_reversed_range(client, schedule, mentor_id):
    resp = client.get(
        f"/api/v1/mentors/{mentor_id}/slots",
        params={"start_date": WEDNESDAY.isoformat(), "end_date": TUESDAY.isoformat()},
    )

    assert resp.status_code == 400
    assert resp.json()["code"] == "INVALID_DATE_RANGE"


def test_slots_for_unknown_mentor(client, outsider_id):
    resp = client.get(
        f"/api/v1/mentors/{outsider_id}/slots",
        params={"start_date": TUESDAY.isoformat(), "end_date": TUESDAY.isoformat()},
    )

    assert resp.status_code == 404
    assert resp.json()["code"] == "NOT_FOUND"


def test_exception_and_rule_lifecycle(client, schedule, mentor_id):
    headers = as_user(mentor_id)

    created = client.post(
        availability_url(mentor_id, "/exceptions"),
        json={"start_date": TUESDAY.isoformat(), "end_date": TUESDAY.isoformat(), "reason": "Offsite"},
        headers=headers,
    )
    assert created.status_code == 201
    exception_id = created.json()["id"]

    slots_url = f"/api/v1/mentors/{mentor_id}/slots"
    params = {"start_date": TUESDAY.isoformat(), "end_date": TUESDAY.isoformat()}
    assert client.get(slots_url, params=params).json()["slots"] == []

    removed = client.delete(availability_url(mentor_id, f"/exceptions/{exception_id}"), headers=headers)
    assert removed.status_code == 204
    assert len(client.get(slots_url, params=params).json()["slots"]) == 6

    rule = client.post(
        availability_url(mentor_id, "/rules"),
        json={
            "name": "Morning premium",
            "conditions": {"time_range": {"start": "09:00", "end": "12:00"}},
            "actions": {"price_multiplier": "1.5"},
        },
        headers=headers,
    )
    assert rule.status_code == 201
    rule_id = rule.json()["id"]
    assert rule.json()["priority"] == 0

    first = client.get(slots_url, params=params).json()["slots"][0]
    assert first["price_multiplier"] == "1.5"

    patched = client.patch(
        availability_url(mentor_id, f"/rules/{rule_id}"), json={"priority": 10}, headers=headers
    )
    assert patched.status_code == 200
    assert patched.json()["priority"] == 10

    deleted = client.delete(availability_url(mentor_id, f"/rules/{rule_id}"), headers=headers)
    assert deleted.status_code == 204
