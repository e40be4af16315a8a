from fastapi import APIRouter, Depends, HTTPException, status, Body
from typing import Optional
import logging

from app.core.auth import get_current_user
from app.core.errors import (
    BookingRejected, LessonAccessDenied, LessonNotFound, LessonStateError, ReschedulePolicyViolation
)
from app.schemas.lesson import LessonCancel, LessonCreate, LessonReschedule, LessonResponse
from app.services.lesson_service import (
    book_lesson, cancel_lesson, get_lesson_for_participant, reschedule_lesson
)

router = APIRouter()
logger = logging.getLogger(__name__)

def _rejection(exc: BookingRejected) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.to_detail())

@router.post("", response_model=LessonResponse, status_code=status.HTTP_201_CREATED)
async def create_lesson(
    lesson_in: LessonCreate,
    current_user: dict = Depends(get_current_user)
):
    """
    Book a lesson with a tutor

    The requested start/end must match one of the tutor's generated slots exactly
    and must not overlap another lesson.
    """
    try:
        return await book_lesson(
            lesson_in.tutorId,
            current_user["id"],
            lesson_in.startTime,
            lesson_in.endTime,
            lesson_in.subject,
            lesson_in.notes,
        )
    except BookingRejected as e:
        raise _rejection(e)

@router.get("/{lesson_id}", response_model=LessonResponse)
async def get_lesson(
    lesson_id: str,
    current_user: dict = Depends(get_current_user)
):
    """
    Get lesson details (student or tutor of the lesson)
    """
    try:
        return await get_lesson_for_participant(lesson_id, current_user["id"])
    except LessonNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lesson not found")
    except LessonAccessDenied:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed")

@router.patch("/{lesson_id}/reschedule", response_model=LessonResponse)
async def reschedule_lesson_endpoint(
    lesson_id: str,
    reschedule_data: LessonReschedule,
    current_user: dict = Depends(get_current_user)
):
    """
    Move a lesson to another bookable slot

    - **newStartTime** / **newEndTime**: UTC instants of the new slot
    - **reason**: Optional reason for rescheduling
    """
    try:
        return await reschedule_lesson(
            lesson_id,
            current_user["id"],
            reschedule_data.newStartTime,
            reschedule_data.newEndTime,
            reschedule_data.reason,
        )
    except LessonNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lesson not found")
    except LessonAccessDenied:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed")
    except ReschedulePolicyViolation as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except LessonStateError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except BookingRejected as e:
        raise _rejection(e)

@router.patch("/{lesson_id}/cancel", response_model=LessonResponse)
async def cancel_lesson_endpoint(
    lesson_id: str,
    cancel_data: Optional[LessonCancel] = Body(None),
    current_user: dict = Depends(get_current_user)
):
    """
    Cancel a lesson (student or tutor)
    """
    try:
        reason = cancel_data.reason if cancel_data else None
        return await cancel_lesson(lesson_id, current_user["id"], reason)
    except LessonNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lesson not found")
    except LessonAccessDenied:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed")
    except LessonStateError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
