"""
Per-tutor booking lease.

Validation and the lesson write for one tutor run while holding this lease, so
two concurrent requests can never both see "no conflict" and both commit. The
lease is a single document per tutor under a unique index: acquiring it is one
atomic upsert, and a crashed holder's lease simply expires.
"""

from contextlib import asynccontextmanager
from datetime import timedelta
import asyncio
import logging

from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from app.core.config import settings
from app.core.errors import StoreUnavailable
from app.db.mongodb import db
from app.utils.time_utils import to_mongo, utcnow

logger = logging.getLogger(__name__)

async def try_acquire(tutor_id: str, owner: str) -> bool:
    now = utcnow()
    try:
        await db.db.booking_locks.update_one(
            {"tutorId": tutor_id, "expiresAt": {"$lt": to_mongo(now)}},
            {"$set": {
                "owner": owner,
                "acquiredAt": to_mongo(now),
                "expiresAt": to_mongo(now + timedelta(seconds=settings.BOOKING_LOCK_TTL_SECONDS)),
            }},
            upsert=True,
        )
    except DuplicateKeyError:
        # Live lease held by someone else
        return False
    return True

async def release(tutor_id: str, owner: str) -> None:
    await db.db.booking_locks.delete_one({"tutorId": tutor_id, "owner": owner})

@asynccontextmanager
async def tutor_booking_lock(tutor_id: str):
    """Hold the tutor's booking lease for the duration of the block.

    Raises StoreUnavailable if the lease cannot be obtained within
    BOOKING_LOCK_WAIT_SECONDS.
    """
    owner = str(ObjectId())
    loop = asyncio.get_running_loop()
    deadline = loop.time() + settings.BOOKING_LOCK_WAIT_SECONDS

    while not await try_acquire(tutor_id, owner):
        if loop.time() >= deadline:
            logger.warning(f"Timed out waiting for booking lock of tutor {tutor_id}")
            raise StoreUnavailable("Tutor is busy processing another booking, please retry")
        await asyncio.sleep(settings.BOOKING_LOCK_POLL_SECONDS)

    try:
        yield
    finally:
        await release(tutor_id, owner)
