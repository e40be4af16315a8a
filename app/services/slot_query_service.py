from datetime import date
from itertools import groupby
from typing import List
import logging

from app.core.config import settings
from app.core.errors import MalformedRequest, ProfileNotFound
from app.db.availability import get_profile
from app.services.booking_filter import filter_booked
from app.services.slot_generator import CandidateSlot, day_bounds_utc, generate
from app.utils.time_utils import resolve_timezone

logger = logging.getLogger(__name__)

def check_query_window(from_date: date, to_date: date, duration_minutes: int) -> None:
    if duration_minutes <= 0:
        raise MalformedRequest("durationMinutes must be positive")
    if from_date > to_date:
        raise MalformedRequest("from must not be after to")
    if (to_date - from_date).days + 1 > settings.MAX_SLOT_QUERY_DAYS:
        raise MalformedRequest(f"Date range may span at most {settings.MAX_SLOT_QUERY_DAYS} days")

def unique_starts(candidates: List[CandidateSlot]) -> List[CandidateSlot]:
    """Ascending by start, one candidate per start instant."""
    out: List[CandidateSlot] = []
    for candidate in sorted(candidates, key=lambda c: c.start):
        if out and out[-1].start == candidate.start:
            continue
        out.append(candidate)
    return out

async def find_open_slots(
    tutor_id: str,
    from_date: date,
    to_date: date,
    duration_minutes: int,
) -> List[CandidateSlot]:
    """Generated candidates minus those taken by existing lessons, deduplicated."""
    try:
        profile = await get_profile(tutor_id)
    except ProfileNotFound:
        # No configured availability means no slots
        return []

    tz = resolve_timezone(profile.timezone)
    candidates = generate(profile, from_date, to_date, duration_minutes)

    free: List[CandidateSlot] = []
    for day, day_candidates in groupby(candidates, key=lambda c: c.start.astimezone(tz).date()):
        free.extend(await filter_booked(tutor_id, list(day_candidates), day_bounds_utc(day, tz)))
    return unique_starts(free)

async def query_slots(
    tutor_id: str,
    from_date: date,
    to_date: date,
    duration_minutes: int,
    display_timezone: str = "UTC",
) -> List[str]:
    """
    Bookable lesson starts for a tutor as ISO-8601 instants in `display_timezone`.

    The end of each slot is implied by `duration_minutes`. Read only.
    """
    display_tz = resolve_timezone(display_timezone)
    check_query_window(from_date, to_date, duration_minutes)

    slots = await find_open_slots(tutor_id, from_date, to_date, duration_minutes)
    logger.debug(f"{len(slots)} open slots for tutor {tutor_id} between {from_date} and {to_date}")
    return [slot.start.astimezone(display_tz).isoformat() for slot in slots]
