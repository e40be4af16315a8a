"""
Write-time check for one proposed lesson.

Re-derives the tutor's allowed blocks for the single day containing the
proposed start (in the tutor's timezone) using the same `generate_day` as the
slot listing, requires an exact start/end match, then checks for lesson
overlap. Never cache the result: availability and lessons can change between
browsing and committing, so callers run this inside the booking lock right
before the write.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional
import logging

from app.core.errors import ProfileNotFound, RejectionReason
from app.db.availability import get_profile
from app.services.booking_filter import filter_booked
from app.services.slot_generator import CandidateSlot, day_bounds_utc, generate_day
from app.utils.time_utils import ensure_utc, resolve_timezone

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    reason: Optional[RejectionReason] = None

    @classmethod
    def accepted(cls) -> "ValidationResult":
        return cls(ok=True)

    @classmethod
    def rejected(cls, reason: RejectionReason) -> "ValidationResult":
        return cls(ok=False, reason=reason)


async def validate(
    tutor_id: str,
    proposed_start: datetime,
    proposed_end: datetime,
    duration_minutes: int,
    exclude_lesson_id: Optional[str] = None,
) -> ValidationResult:
    """Accept or reject one proposed booking.

    `exclude_lesson_id` leaves a lesson out of the conflict check (used when
    rescheduling that lesson).
    """
    if (
        not isinstance(proposed_start, datetime)
        or not isinstance(proposed_end, datetime)
        or duration_minutes is None
        or duration_minutes <= 0
    ):
        return ValidationResult.rejected(RejectionReason.INVALID_TIME_WINDOW)

    start = ensure_utc(proposed_start)
    end = ensure_utc(proposed_end)
    if end <= start:
        return ValidationResult.rejected(RejectionReason.INVALID_TIME_WINDOW)

    try:
        profile = await get_profile(tutor_id)
    except ProfileNotFound:
        return ValidationResult.rejected(RejectionReason.NO_AVAILABILITY_PROFILE)

    tz = resolve_timezone(profile.timezone)
    day = start.astimezone(tz).date()
    proposed = CandidateSlot(start=start, end=end)

    if proposed not in generate_day(profile, day, duration_minutes, tz):
        return ValidationResult.rejected(RejectionReason.NOT_IN_AVAILABILITY)

    free = await filter_booked(tutor_id, [proposed], day_bounds_utc(day, tz), exclude_lesson_id)
    if not free:
        return ValidationResult.rejected(RejectionReason.CONFLICT)

    return ValidationResult.accepted()
