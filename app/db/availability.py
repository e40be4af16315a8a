from typing import Dict, Any, List, Optional
import logging

from pymongo import ReturnDocument

from app.core.errors import ProfileNotFound
from app.db.mongodb import db
from app.schemas.availability import AvailabilityProfile, DateException, WeeklyRule
from app.utils.time_utils import to_mongo, utcnow

logger = logging.getLogger(__name__)

def _clean(doc: Dict[str, Any]) -> Dict[str, Any]:
    doc = dict(doc)
    doc.pop("_id", None)
    return doc

async def get_profile_document(tutor_id: str) -> Optional[Dict[str, Any]]:
    """Raw stored profile for a tutor, or None."""
    doc = await db.db.availability.find_one({"tutorId": tutor_id})
    if not doc:
        return None
    return _clean(doc)

async def get_profile(tutor_id: str) -> AvailabilityProfile:
    """Load a tutor's availability profile. Raises ProfileNotFound if absent."""
    doc = await get_profile_document(tutor_id)
    if doc is None:
        raise ProfileNotFound(tutor_id)
    return AvailabilityProfile.model_validate(doc)

async def replace_profile(
    tutor_id: str,
    timezone: Optional[str],
    weekly: List[WeeklyRule],
    exceptions: List[DateException],
    slot_interval: int,
    slot_start_policy: str,
) -> AvailabilityProfile:
    """Full replace of weekly rules, exceptions and slot settings.

    Creates the profile on first save. A missing timezone keeps the stored one,
    or falls back to UTC for a new profile.
    """
    now = to_mongo(utcnow())
    update: Dict[str, Any] = {
        "weekly": [rule.model_dump() for rule in weekly],
        "exceptions": [exc.model_dump() for exc in exceptions],
        "slotInterval": slot_interval,
        "slotStartPolicy": slot_start_policy,
        "updatedAt": now,
    }
    set_on_insert: Dict[str, Any] = {"createdAt": now}
    if timezone:
        update["timezone"] = timezone
    else:
        set_on_insert["timezone"] = "UTC"

    doc = await db.db.availability.find_one_and_update(
        {"tutorId": tutor_id},
        {"$set": update, "$setOnInsert": set_on_insert},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    logger.info(f"Availability replaced for tutor {tutor_id}")
    return AvailabilityProfile.model_validate(_clean(doc))

async def upsert_exception(tutor_id: str, exception: DateException) -> AvailabilityProfile:
    """Replace any existing exception for the same date. Raises ProfileNotFound."""
    profile = await get_profile(tutor_id)
    exceptions = [e for e in profile.exceptions if e.date != exception.date]
    exceptions.append(exception)

    await db.db.availability.update_one(
        {"tutorId": tutor_id},
        {"$set": {
            "exceptions": [e.model_dump() for e in exceptions],
            "updatedAt": to_mongo(utcnow()),
        }},
    )
    logger.info(f"Exception {exception.date} (open={exception.open}) saved for tutor {tutor_id}")
    return await get_profile(tutor_id)

async def delete_exception(tutor_id: str, date: str) -> Optional[AvailabilityProfile]:
    """Remove the exception for `date`.

    Returns the updated profile, or None when no exception existed for that date.
    Raises ProfileNotFound when the tutor has no profile.
    """
    profile = await get_profile(tutor_id)
    if profile.exception_for_key(date) is None:
        return None

    await db.db.availability.update_one(
        {"tutorId": tutor_id},
        {
            "$pull": {"exceptions": {"date": date}},
            "$set": {"updatedAt": to_mongo(utcnow())},
        },
    )
    logger.info(f"Exception {date} removed for tutor {tutor_id}")
    return await get_profile(tutor_id)
