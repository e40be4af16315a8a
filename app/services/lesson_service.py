from typing import Dict, Any, Optional
from datetime import datetime, timedelta
import asyncio
import logging

from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from app.core.config import settings
from app.core.errors import (
    BookingRejected,
    LessonAccessDenied,
    LessonNotFound,
    LessonStateError,
    RejectionReason,
    ReschedulePolicyViolation,
    StoreUnavailable,
)
from app.db import lessons as ledger
from app.db.booking_lock import tutor_booking_lock
from app.schemas.lesson import INACTIVE_STATUSES, LessonStatus
from app.services.booking_validator import validate
from app.utils.time_utils import ensure_utc, to_mongo, utcnow

logger = logging.getLogger(__name__)

def _duration_minutes(start: datetime, end: datetime) -> int:
    return int((ensure_utc(end) - ensure_utc(start)).total_seconds() // 60)

def can_reschedule(lesson: Dict[str, Any], now: Optional[datetime] = None) -> bool:
    """Lessons may be moved only with enough notice before they start."""
    now = now or utcnow()
    notice = timedelta(hours=settings.RESCHEDULE_MIN_NOTICE_HOURS)
    return ensure_utc(lesson["startTime"]) - now >= notice

async def _validate_or_reject(
    tutor_id: str,
    start: datetime,
    end: datetime,
    exclude_lesson_id: Optional[str] = None,
) -> None:
    result = await validate(tutor_id, start, end, _duration_minutes(start, end), exclude_lesson_id)
    if not result.ok:
        logger.warning(f"Booking rejected for tutor {tutor_id} at {start}: {result.reason.value}")
        raise BookingRejected(result.reason)

async def book_lesson(
    tutor_id: str,
    student_id: str,
    start: datetime,
    end: datetime,
    subject: str = "",
    notes: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Create a lesson after validating it against availability and existing lessons.

    Validation and insert run as one unit under the tutor's booking lock.
    A slot-key clash on insert is a Conflict. If the request runs out of time
    after the insert was issued, the lesson is deleted again.
    """
    lesson_id = ObjectId()
    insert_issued = False

    async def _book() -> Dict[str, Any]:
        nonlocal insert_issued
        async with tutor_booking_lock(tutor_id):
            await _validate_or_reject(tutor_id, start, end)
            insert_issued = True
            try:
                return await ledger.insert_lesson(
                    lesson_id, tutor_id, student_id, start, end, subject, notes
                )
            except DuplicateKeyError:
                logger.warning(f"Slot key clash for tutor {tutor_id} at {start}")
                raise BookingRejected(RejectionReason.CONFLICT)

    try:
        lesson = await asyncio.wait_for(_book(), timeout=settings.BOOKING_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        if insert_issued:
            await ledger.delete_lesson(lesson_id)
        logger.warning(f"Booking for tutor {tutor_id} at {start} timed out")
        raise StoreUnavailable("Booking timed out, please retry")

    logger.info(f"Lesson {lesson['id']} booked with tutor {tutor_id} at {lesson['startTime']}")
    return lesson

async def get_lesson_for_participant(lesson_id: str, user_id: str) -> Dict[str, Any]:
    """Fetch a lesson visible to `user_id` as its student or tutor."""
    lesson = await ledger.get_lesson_by_id(lesson_id)
    if not lesson:
        raise LessonNotFound("Lesson not found")
    if user_id not in (lesson["studentId"], lesson["tutorId"]):
        raise LessonAccessDenied("Not allowed")
    return lesson

async def _restore_times(
    lesson_id: str,
    tutor_id: str,
    previous_start: datetime,
    previous_end: datetime,
) -> None:
    """Move a lesson back after a timed-out reschedule.

    If another lesson has taken the old slot meanwhile, the lesson stays at its
    new (already validated) time.
    """
    async with tutor_booking_lock(tutor_id):
        try:
            await ledger.update_lesson_times(lesson_id, tutor_id, previous_start, previous_end)
        except DuplicateKeyError:
            logger.error(
                f"Could not move lesson {lesson_id} back to {previous_start}: slot was booked meanwhile"
            )

async def reschedule_lesson(
    lesson_id: str,
    user_id: str,
    new_start: datetime,
    new_end: datetime,
    reason: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Move a lesson to a new slot, re-validating it with itself excluded from
    the conflict check.
    """
    lesson = await get_lesson_for_participant(lesson_id, user_id)
    if lesson["status"] in INACTIVE_STATUSES or lesson["status"] == LessonStatus.COMPLETED.value:
        raise LessonStateError(f"Cannot reschedule a {lesson['status']} lesson")
    if not can_reschedule(lesson):
        raise ReschedulePolicyViolation(
            f"Cannot reschedule within {settings.RESCHEDULE_MIN_NOTICE_HOURS} hours."
        )

    tutor_id = lesson["tutorId"]
    previous_start, previous_end = lesson["startTime"], lesson["endTime"]
    update_issued = False

    async def _reschedule() -> Dict[str, Any]:
        nonlocal update_issued
        async with tutor_booking_lock(tutor_id):
            await _validate_or_reject(tutor_id, new_start, new_end, exclude_lesson_id=lesson_id)
            update_issued = True
            try:
                return await ledger.update_lesson_times(
                    lesson_id,
                    tutor_id,
                    new_start,
                    new_end,
                    extra={"rescheduledAt": to_mongo(utcnow()), "rescheduleReason": reason},
                )
            except DuplicateKeyError:
                raise BookingRejected(RejectionReason.CONFLICT)

    try:
        updated = await asyncio.wait_for(_reschedule(), timeout=settings.BOOKING_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        logger.warning(f"Reschedule of lesson {lesson_id} timed out")
        if update_issued:
            await _restore_times(lesson_id, tutor_id, previous_start, previous_end)
        raise StoreUnavailable("Reschedule timed out, please retry")

    logger.info(f"Lesson {lesson_id} rescheduled to {updated['startTime']}")
    return updated

async def cancel_lesson(lesson_id: str, user_id: str, reason: Optional[str] = None) -> Dict[str, Any]:
    """Cancel a lesson; its time becomes bookable again."""
    lesson = await get_lesson_for_participant(lesson_id, user_id)
    if lesson["status"] in INACTIVE_STATUSES or lesson["status"] == LessonStatus.COMPLETED.value:
        raise LessonStateError(f"Cannot cancel a {lesson['status']} lesson")

    cancelled_by = "student" if lesson["studentId"] == user_id else "tutor"
    cancelled = await ledger.cancel_lesson(lesson_id, cancelled_by, reason)
    logger.info(f"Lesson {lesson_id} cancelled by {cancelled_by}")
    return cancelled
