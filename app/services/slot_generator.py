"""
Slot generation for tutor availability.

Pure logic only: no database and no I/O. Both the public slot listing and the
booking validator go through `generate_day`, so a slot that is shown as
bookable is exactly a slot the validator accepts.

Algorithm, per calendar day in the tutor's timezone:
1. Resolve the effective ranges (a date exception fully replaces the weekly rule)
2. Build each range's local start/end, snapping the start if the policy asks for it
3. Step by the slot interval while start + duration fits inside the range
4. Emit every candidate as a UTC start/end pair
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional, Tuple
from zoneinfo import ZoneInfo

from app.core.errors import MalformedRequest
from app.schemas.availability import AvailabilityProfile, SlotStartPolicy, TimeRange
from app.utils.time_utils import day_of_week, resolve_timezone


@dataclass(frozen=True)
class CandidateSlot:
    start: datetime  # aware, UTC
    end: datetime    # aware, UTC

    def overlaps(self, start: datetime, end: datetime) -> bool:
        """Half-open overlap; touching endpoints do not conflict."""
        return self.start < end and self.end > start


def effective_ranges(profile: AvailabilityProfile, day: date) -> List[TimeRange]:
    """Ranges that apply on `day`: the date exception if present, else the weekly rule."""
    exception = profile.exception_for(day)
    if exception is not None:
        return list(exception.ranges) if exception.open else []

    rule = profile.weekly_rule_for(day_of_week(day))
    return list(rule.ranges) if rule else []


def snap_to_half_hour(local: datetime) -> datetime:
    """Round forward to the next :00 or :30; values already on a boundary are kept."""
    local = local.replace(second=0, microsecond=0)
    remainder = local.minute % 30
    if remainder == 0:
        return local
    return local + timedelta(minutes=30 - remainder)


def _to_utc(local: datetime, tz: ZoneInfo) -> datetime:
    return local.replace(tzinfo=tz).astimezone(timezone.utc)


def slice_range(
    day: date,
    time_range: TimeRange,
    tz: ZoneInfo,
    duration_minutes: int,
    interval_minutes: int,
    policy: SlotStartPolicy,
) -> List[CandidateSlot]:
    """Slice one local range on `day` into candidates of `duration_minutes`."""
    local_start = datetime.combine(day, time_range.start_time)
    local_end = datetime.combine(day, time_range.end_time)

    if policy == SlotStartPolicy.SNAP_TO_HALF_HOUR:
        local_start = snap_to_half_hour(local_start)

    # Step in absolute time so end - start == duration even across DST shifts
    cursor = _to_utc(local_start, tz)
    range_end = _to_utc(local_end, tz)
    duration = timedelta(minutes=duration_minutes)
    step = timedelta(minutes=interval_minutes)

    out = []
    while cursor + duration <= range_end:
        out.append(CandidateSlot(start=cursor, end=cursor + duration))
        cursor += step
    return out


def generate_day(
    profile: AvailabilityProfile,
    day: date,
    duration_minutes: int,
    tz: Optional[ZoneInfo] = None,
) -> List[CandidateSlot]:
    """Candidates for a single day, ascending by start.

    Overlapping ranges are not merged, so repeated or overlapping candidates
    may appear; callers decide whether to deduplicate.
    """
    if duration_minutes <= 0:
        raise MalformedRequest("durationMinutes must be positive")
    tz = tz or resolve_timezone(profile.timezone)

    candidates = []
    for time_range in effective_ranges(profile, day):
        candidates.extend(
            slice_range(
                day,
                time_range,
                tz,
                duration_minutes,
                profile.slotInterval,
                profile.slotStartPolicy,
            )
        )
    candidates.sort(key=lambda c: c.start)
    return candidates


def generate(
    profile: AvailabilityProfile,
    from_date: date,
    to_date: date,
    duration_minutes: int,
) -> List[CandidateSlot]:
    """Candidates for every day in [from_date, to_date] (inclusive, profile timezone)."""
    if from_date > to_date:
        raise MalformedRequest("from must not be after to")
    if duration_minutes <= 0:
        raise MalformedRequest("durationMinutes must be positive")

    tz = resolve_timezone(profile.timezone)
    out: List[CandidateSlot] = []
    day = from_date
    while day <= to_date:
        out.extend(generate_day(profile, day, duration_minutes, tz))
        day += timedelta(days=1)
    return out


def day_bounds_utc(day: date, tz: ZoneInfo) -> Tuple[datetime, datetime]:
    """UTC instants of local midnight at the start and end of `day`."""
    start = datetime.combine(day, datetime.min.time())
    end = datetime.combine(day + timedelta(days=1), datetime.min.time())
    return _to_utc(start, tz), _to_utc(end, tz)
