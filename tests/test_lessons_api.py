from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from app.utils.time_utils import utcnow
from conftest import OTHER_STUDENT_ID, STUDENT_ID, TUTOR_ID, auth_headers, every_day, make_profile, save_profile

BASE_URL = "/api/v1/lessons"


def next_week(hour: int, minute: int = 0) -> datetime:
    day = utcnow().date() + timedelta(days=7)
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=timezone.utc)


def lesson_body(start: datetime, minutes: int = 60, tutor_id: str = TUTOR_ID) -> dict:
    return {
        "tutorId": tutor_id,
        "startTime": start.isoformat(),
        "endTime": (start + timedelta(minutes=minutes)).isoformat(),
        "subject": "Chemistry",
    }


@pytest_asyncio.fixture
async def tutor(mongo):
    return await save_profile(make_profile(weekly=every_day(("09:00", "12:00"))))


@pytest.mark.asyncio
async def test_book_then_conflict(client, tutor, student_headers):
    response = await client.post(BASE_URL, json=lesson_body(next_week(10)), headers=student_headers)
    assert response.status_code == 201
    lesson = response.json()
    assert lesson["studentId"] == STUDENT_ID
    assert lesson["status"] == "booked"
    assert lesson["subject"] == "Chemistry"

    response = await client.post(
        BASE_URL, json=lesson_body(next_week(10, 30)), headers=auth_headers(OTHER_STUDENT_ID, "student")
    )
    assert response.status_code == 409
    assert response.json()["detail"]["reason"] == "Conflict"


@pytest.mark.asyncio
@pytest.mark.parametrize("body, reason", [
    (lesson_body(next_week(15)), "NotInAvailability"),
    (lesson_body(next_week(9, 10)), "NotInAvailability"),
    (lesson_body(next_week(10), tutor_id="nobody"), "NoAvailabilityProfile"),
    (lesson_body(next_week(10), minutes=0), "InvalidTimeWindow"),
    (lesson_body(next_week(10), minutes=-30), "InvalidTimeWindow"),
])
async def test_rejected_bookings(client, tutor, student_headers, body, reason):
    response = await client.post(BASE_URL, json=body, headers=student_headers)
    assert response.status_code == 400
    assert response.json()["detail"]["reason"] == reason


@pytest.mark.asyncio
async def test_booking_requires_auth(client, tutor):
    response = await client.post(BASE_URL, json=lesson_body(next_week(10)))
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_malformed_booking_body(client, tutor, student_headers):
    response = await client.post(
        BASE_URL, json={"tutorId": TUTOR_ID, "startTime": "tomorrow"}, headers=student_headers
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_lesson_visibility(client, tutor, student_headers, tutor_headers):
    response = await client.post(BASE_URL, json=lesson_body(next_week(9)), headers=student_headers)
    lesson_id = response.json()["id"]

    response = await client.get(f"{BASE_URL}/{lesson_id}", headers=tutor_headers)
    assert response.status_code == 200

    response = await client.get(f"{BASE_URL}/{lesson_id}", headers=auth_headers(OTHER_STUDENT_ID, "student"))
    assert response.status_code == 403

    response = await client.get(f"{BASE_URL}/not-an-id", headers=student_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_cancel_frees_the_slot(client, tutor, student_headers, tutor_headers):
    response = await client.post(BASE_URL, json=lesson_body(next_week(11)), headers=student_headers)
    lesson_id = response.json()["id"]

    response = await client.patch(f"{BASE_URL}/{lesson_id}/cancel", headers=tutor_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"
    assert response.json()["cancelledBy"] == "tutor"

    response = await client.patch(
        f"{BASE_URL}/{lesson_id}/cancel", json={"reason": "again"}, headers=student_headers
    )
    assert response.status_code == 400

    response = await client.post(
        BASE_URL, json=lesson_body(next_week(11)), headers=auth_headers(OTHER_STUDENT_ID, "student")
    )
    assert response.status_code == 201


@pytest.mark.asyncio
async def test_reschedule(client, tutor, student_headers):
    response = await client.post(BASE_URL, json=lesson_body(next_week(9)), headers=student_headers)
    lesson_id = response.json()["id"]
    new_start = next_week(11)

    response = await client.patch(
        f"{BASE_URL}/{lesson_id}/reschedule",
        json={
            "newStartTime": new_start.isoformat(),
            "newEndTime": (new_start + timedelta(hours=1)).isoformat(),
            "reason": "exam moved",
        },
        headers=student_headers,
    )
    assert response.status_code == 200
    assert datetime.fromisoformat(response.json()["startTime"].replace("Z", "+00:00")) == new_start

    slots = await client.get(
        f"/api/v1/availability/{TUTOR_ID}/slots",
        params={"from": new_start.date().isoformat(), "to": new_start.date().isoformat()},
    )
    assert next_week(9).isoformat() in slots.json()
    assert new_start.isoformat() not in slots.json()

    response = await client.patch(
        f"{BASE_URL}/{lesson_id}/reschedule",
        json={
            "newStartTime": next_week(12).isoformat(),
            "newEndTime": next_week(13).isoformat(),
        },
        headers=student_headers,
    )
    assert response.status_code == 400
    assert response.json()["detail"]["reason"] == "NotInAvailability"
