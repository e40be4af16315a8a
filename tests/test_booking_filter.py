from datetime import datetime, timedelta, timezone

import pytest
from bson import ObjectId

from app.db.lessons import cancel_lesson, insert_lesson
from app.services.booking_filter import filter_booked, remove_overlapping
from app.services.slot_generator import CandidateSlot
from conftest import STUDENT_ID, TUTOR_ID

BASE = datetime(2025, 1, 6, 9, 0, tzinfo=timezone.utc)


def slot(offset_minutes: int, duration_minutes: int = 30) -> CandidateSlot:
    start = BASE + timedelta(minutes=offset_minutes)
    return CandidateSlot(start=start, end=start + timedelta(minutes=duration_minutes))


def lesson(offset_minutes: int, duration_minutes: int = 30) -> dict:
    start = BASE + timedelta(minutes=offset_minutes)
    return {"startTime": start, "endTime": start + timedelta(minutes=duration_minutes)}


class TestRemoveOverlapping:
    """Half-open interval overlap against booked lessons."""

    def test_touching_endpoints_do_not_overlap(self):
        candidates = [slot(0), slot(60)]

        assert remove_overlapping(candidates, [lesson(30)]) == candidates

    def test_partial_overlap_removes_candidate(self):
        assert remove_overlapping([slot(0), slot(30)], [lesson(15)]) == []

    def test_lesson_inside_candidate_removes_it(self):
        assert remove_overlapping([slot(0, 60)], [lesson(15, 15)]) == []

    def test_candidate_inside_lesson_is_removed(self):
        assert remove_overlapping([slot(30)], [lesson(0, 120)]) == []

    def test_no_lessons_keeps_everything(self):
        candidates = [slot(0), slot(30), slot(60)]

        assert remove_overlapping(candidates, []) == candidates


@pytest.mark.asyncio
async def test_filter_booked_ignores_cancelled_lessons(mongo):
    kept = ObjectId()
    dropped = ObjectId()
    await insert_lesson(kept, TUTOR_ID, STUDENT_ID, BASE, BASE + timedelta(minutes=30))
    await insert_lesson(dropped, TUTOR_ID, STUDENT_ID, BASE + timedelta(hours=1), BASE + timedelta(minutes=90))
    await cancel_lesson(str(dropped), "student", None)

    free = await filter_booked(
        TUTOR_ID,
        [slot(0), slot(60)],
        (BASE - timedelta(hours=9), BASE + timedelta(hours=15)),
    )

    assert free == [slot(60)]


@pytest.mark.asyncio
async def test_filter_booked_only_sees_its_tutor(mongo):
    await insert_lesson(ObjectId(), "someone-else", STUDENT_ID, BASE, BASE + timedelta(minutes=30))

    free = await filter_booked(TUTOR_ID, [slot(0)], (BASE, BASE + timedelta(hours=1)))

    assert free == [slot(0)]


@pytest.mark.asyncio
async def test_filter_booked_can_exclude_a_lesson(mongo):
    lesson_id = ObjectId()
    await insert_lesson(lesson_id, TUTOR_ID, STUDENT_ID, BASE, BASE + timedelta(minutes=30))

    window = (BASE, BASE + timedelta(hours=1))
    assert await filter_booked(TUTOR_ID, [slot(0)], window) == []
    assert await filter_booked(TUTOR_ID, [slot(0)], window, exclude_lesson_id=str(lesson_id)) == [slot(0)]
