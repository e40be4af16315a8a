from typing import Dict, Any, List, Optional
from datetime import datetime
import logging

from bson import ObjectId
from bson.errors import InvalidId

from app.db.mongodb import db
from app.schemas.lesson import INACTIVE_STATUSES, LessonStatus
from app.utils.time_utils import ensure_utc, to_mongo, utcnow

logger = logging.getLogger(__name__)

def slot_key(tutor_id: str, start: datetime) -> str:
    """Key unique among active lessons; cancelled or expired lessons drop out of the index."""
    return f"{tutor_id}|{ensure_utc(start).strftime('%Y-%m-%dT%H:%M:%SZ')}"

def _to_object_id(lesson_id: str) -> Optional[ObjectId]:
    try:
        return ObjectId(lesson_id)
    except (InvalidId, TypeError):
        return None

def _present(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Transform the _id field to string and attach UTC to stored datetimes."""
    doc["id"] = str(doc["_id"])
    for field in ("startTime", "endTime", "createdAt", "updatedAt", "rescheduledAt", "cancelledAt"):
        if doc.get(field) is not None:
            doc[field] = ensure_utc(doc[field])
    return doc

async def find_active_lessons(
    tutor_id: str,
    window_start: datetime,
    window_end: datetime,
    exclude_lesson_id: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """
    Lessons for a tutor whose [startTime, endTime) intersects [window_start, window_end)
    and whose status is not cancelled/expired.
    """
    query: Dict[str, Any] = {
        "tutorId": tutor_id,
        "status": {"$nin": INACTIVE_STATUSES},
        "startTime": {"$lt": to_mongo(window_end)},
        "endTime": {"$gt": to_mongo(window_start)},
    }
    if exclude_lesson_id:
        oid = _to_object_id(exclude_lesson_id)
        if oid is not None:
            query["_id"] = {"$ne": oid}

    cursor = db.db.lessons.find(query).sort("startTime", 1)
    lessons = await cursor.to_list(length=None)
    return [_present(lesson) for lesson in lessons]

async def get_lesson_by_id(lesson_id: str) -> Optional[Dict[str, Any]]:
    oid = _to_object_id(lesson_id)
    if oid is None:
        return None
    lesson = await db.db.lessons.find_one({"_id": oid})
    if lesson:
        _present(lesson)
    return lesson

async def insert_lesson(
    lesson_id: ObjectId,
    tutor_id: str,
    student_id: str,
    start: datetime,
    end: datetime,
    subject: str = "",
    notes: Optional[str] = None,
) -> Dict[str, Any]:
    """Insert a booked lesson under a pre-allocated id.

    Raises pymongo DuplicateKeyError if an active lesson already holds the slot key.
    """
    lesson_data = {
        "_id": lesson_id,
        "tutorId": tutor_id,
        "studentId": student_id,
        "startTime": to_mongo(start),
        "endTime": to_mongo(end),
        "durationMins": int((end - start).total_seconds() // 60),
        "subject": subject,
        "notes": notes,
        "status": LessonStatus.BOOKED.value,
        "slotKey": slot_key(tutor_id, start),
        "createdAt": to_mongo(utcnow()),
    }
    await db.db.lessons.insert_one(lesson_data)
    return await get_lesson_by_id(str(lesson_id))

async def update_lesson_times(
    lesson_id: str,
    tutor_id: str,
    start: datetime,
    end: datetime,
    extra: Optional[Dict[str, Any]] = None,
) -> Optional[Dict[str, Any]]:
    """Move a lesson to new times. Raises DuplicateKeyError on a slot key clash."""
    update_data = {
        "startTime": to_mongo(start),
        "endTime": to_mongo(end),
        "durationMins": int((end - start).total_seconds() // 60),
        "slotKey": slot_key(tutor_id, start),
        "updatedAt": to_mongo(utcnow()),
    }
    if extra:
        update_data.update(extra)

    await db.db.lessons.update_one({"_id": ObjectId(lesson_id)}, {"$set": update_data})
    return await get_lesson_by_id(lesson_id)

async def cancel_lesson(
    lesson_id: str,
    cancelled_by: str,
    reason: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """Mark a lesson cancelled. Its slot key stops counting once the status changes."""
    now = to_mongo(utcnow())
    await db.db.lessons.update_one(
        {"_id": ObjectId(lesson_id)},
        {"$set": {
            "status": LessonStatus.CANCELLED.value,
            "cancelledAt": now,
            "cancelledBy": cancelled_by,
            "cancelReason": reason or "cancel",
            "updatedAt": now,
        }},
    )
    return await get_lesson_by_id(lesson_id)

async def delete_lesson(lesson_id: ObjectId) -> bool:
    """Remove a lesson. Only used to roll back an insert whose request timed out."""
    result = await db.db.lessons.delete_one({"_id": lesson_id})
    return result.deleted_count > 0
