from pydantic import BaseModel, Field, AliasChoices, field_validator, model_validator
from typing import Optional, List, Union, Literal
from datetime import date, datetime, time
from enum import Enum

from app.core.config import settings
from app.utils.time_utils import parse_hhmm, parse_iso_date, resolve_timezone

SLOT_INTERVALS = (15, 30, 45, 60)

class SlotStartPolicy(str, Enum):
    ANY_OFFSET = "anyOffset"
    SNAP_TO_HALF_HOUR = "snapToHalfHour"

# Spellings still present in older stored documents
LEGACY_POLICY_NAMES = {
    "any": SlotStartPolicy.ANY_OFFSET,
    "hourHalf": SlotStartPolicy.SNAP_TO_HALF_HOUR,
}

def _normalize_policy(value):
    if isinstance(value, str) and value in LEGACY_POLICY_NAMES:
        return LEGACY_POLICY_NAMES[value]
    return value

def _check_interval(value: int) -> int:
    if value not in SLOT_INTERVALS:
        raise ValueError(f"slotInterval must be one of {list(SLOT_INTERVALS)}")
    return value

def _check_timezone(value: str) -> str:
    resolve_timezone(value)
    return value

class TimeRange(BaseModel):
    start: str  # "HH:mm", local to the profile timezone
    end: str

    @field_validator("start", "end")
    @classmethod
    def check_clock(cls, value: str) -> str:
        parse_hhmm(value)
        return value

    @model_validator(mode="after")
    def check_order(self):
        if self.start_time >= self.end_time:
            raise ValueError(f"Range start {self.start} must be before end {self.end}")
        return self

    @property
    def start_time(self) -> time:
        return parse_hhmm(self.start)

    @property
    def end_time(self) -> time:
        return parse_hhmm(self.end)

class WeeklyRule(BaseModel):
    # 0 = Sunday ... 6 = Saturday
    dayOfWeek: int = Field(..., ge=0, le=6, validation_alias=AliasChoices("dayOfWeek", "dow"))
    ranges: List[TimeRange] = []

class _DateKeyed(BaseModel):
    date: str  # "YYYY-MM-DD" in the profile timezone

    @field_validator("date")
    @classmethod
    def check_date(cls, value: str) -> str:
        parse_iso_date(value)
        return value

    @property
    def day(self) -> date:
        return parse_iso_date(self.date)

class ClosedDay(_DateKeyed):
    """No availability at all on this date."""
    open: Literal[False]
    ranges: List[TimeRange] = []

    @field_validator("ranges", mode="before")
    @classmethod
    def drop_ranges(cls, value):
        return []

class OpenDay(_DateKeyed):
    """Only these ranges apply on this date; the weekly rule is ignored."""
    open: Literal[True]
    ranges: List[TimeRange] = []

DateException = Union[ClosedDay, OpenDay]

class _ProfileFields(BaseModel):
    slotInterval: int = Field(default_factory=lambda: settings.DEFAULT_SLOT_INTERVAL, validate_default=True)
    slotStartPolicy: SlotStartPolicy = Field(
        default_factory=lambda: settings.DEFAULT_SLOT_START_POLICY, validate_default=True
    )
    weekly: List[WeeklyRule] = []
    exceptions: List[DateException] = []

    @field_validator("slotInterval")
    @classmethod
    def check_interval(cls, value: int) -> int:
        return _check_interval(value)

    @field_validator("slotStartPolicy", mode="before")
    @classmethod
    def map_legacy_policy(cls, value):
        return _normalize_policy(value)

    @field_validator("weekly")
    @classmethod
    def one_rule_per_day(cls, rules: List[WeeklyRule]) -> List[WeeklyRule]:
        seen = set()
        for rule in rules:
            if rule.dayOfWeek in seen:
                raise ValueError(f"Duplicate weekly rule for dayOfWeek {rule.dayOfWeek}")
            seen.add(rule.dayOfWeek)
        return rules

    @field_validator("exceptions")
    @classmethod
    def one_exception_per_date(cls, exceptions: List[DateException]) -> List[DateException]:
        seen = set()
        for exc in exceptions:
            if exc.date in seen:
                raise ValueError(f"Duplicate exception for date {exc.date}")
            seen.add(exc.date)
        return exceptions

class AvailabilityProfile(_ProfileFields):
    tutorId: str
    timezone: str
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, value: str) -> str:
        return _check_timezone(value)

    def exception_for(self, day: date) -> Optional[DateException]:
        return self.exception_for_key(day.isoformat())

    def exception_for_key(self, key: str) -> Optional[DateException]:
        for exc in self.exceptions:
            if exc.date == key:
                return exc
        return None

    def weekly_rule_for(self, dow: int) -> Optional[WeeklyRule]:
        for rule in self.weekly:
            if rule.dayOfWeek == dow:
                return rule
        return None

# Mon..Sun index used by the availability editor -> dayOfWeek (0 = Sunday)
EDITOR_DAY_ORDER = [1, 2, 3, 4, 5, 6, 0]

def rules_to_weekly(rules: List[List[TimeRange]]) -> List[WeeklyRule]:
    """Convert the editor's seven Mon..Sun range lists into weekly rules."""
    weekly = []
    for idx, day_ranges in enumerate(rules):
        if day_ranges:
            weekly.append(WeeklyRule(dayOfWeek=EDITOR_DAY_ORDER[idx], ranges=day_ranges))
    return weekly

class AvailabilityUpdate(_ProfileFields):
    """Full profile replace body."""
    timezone: Optional[str] = None
    rules: Optional[List[List[TimeRange]]] = None

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        return _check_timezone(value)

    @field_validator("rules")
    @classmethod
    def seven_days(cls, value):
        if value is not None and len(value) != 7:
            raise ValueError("rules must contain exactly 7 day entries (Mon..Sun)")
        return value

    def effective_weekly(self) -> List[WeeklyRule]:
        if self.rules is not None:
            return rules_to_weekly(self.rules)
        return self.weekly

class ExceptionUpsert(BaseModel):
    date: str
    open: bool
    ranges: List[TimeRange] = []

    @field_validator("date")
    @classmethod
    def check_date(cls, value: str) -> str:
        parse_iso_date(value)
        return value

    def to_exception(self) -> DateException:
        if self.open:
            return OpenDay(date=self.date, open=True, ranges=self.ranges)
        return ClosedDay(date=self.date, open=False)
