from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime
from enum import Enum

class LessonStatus(str, Enum):
    BOOKED = "booked"
    PAID = "paid"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    RESCHEDULE_REQUESTED = "reschedule_requested"

# Lessons in these states no longer occupy the tutor's time
INACTIVE_STATUSES = [LessonStatus.CANCELLED.value, LessonStatus.EXPIRED.value]
ACTIVE_STATUSES = [s.value for s in LessonStatus if s.value not in INACTIVE_STATUSES]

class LessonCreate(BaseModel):
    tutorId: str
    startTime: datetime
    endTime: datetime
    subject: str = ""
    notes: Optional[str] = None

class LessonReschedule(BaseModel):
    newStartTime: datetime
    newEndTime: datetime
    reason: Optional[str] = None

class LessonCancel(BaseModel):
    reason: Optional[str] = None

class LessonResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    tutorId: str
    studentId: str
    startTime: datetime
    endTime: datetime
    durationMins: int
    subject: str = ""
    notes: Optional[str] = None
    status: LessonStatus
    createdAt: datetime
    updatedAt: Optional[datetime] = None
    rescheduledAt: Optional[datetime] = None
    rescheduleReason: Optional[str] = None
    cancelledAt: Optional[datetime] = None
    cancelledBy: Optional[str] = None
    cancelReason: Optional[str] = None
