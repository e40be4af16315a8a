from typing import Any, Dict, Iterable, List, Optional, Tuple
from datetime import datetime

from app.db.lessons import find_active_lessons
from app.services.slot_generator import CandidateSlot


def remove_overlapping(
    candidates: Iterable[CandidateSlot],
    lessons: Iterable[Dict[str, Any]],
) -> List[CandidateSlot]:
    """Drop candidates that overlap any lesson's [startTime, endTime)."""
    booked = [(lesson["startTime"], lesson["endTime"]) for lesson in lessons]
    return [
        c for c in candidates
        if not any(c.overlaps(start, end) for start, end in booked)
    ]


async def filter_booked(
    tutor_id: str,
    candidates: List[CandidateSlot],
    window: Tuple[datetime, datetime],
    exclude_lesson_id: Optional[str] = None,
) -> List[CandidateSlot]:
    """
    Remove candidates that collide with the tutor's active lessons.

    `window` is the UTC day span whose lessons are fetched, widened if a
    candidate reaches past it. No side effects.
    """
    if not candidates:
        return []
    window_start, window_end = window
    window_start = min(window_start, min(c.start for c in candidates))
    window_end = max(window_end, max(c.end for c in candidates))

    lessons = await find_active_lessons(tutor_id, window_start, window_end, exclude_lesson_id)
    return remove_overlapping(candidates, lessons)
