from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING
from app.core.config import settings
from app.schemas.lesson import ACTIVE_STATUSES
import logging

logger = logging.getLogger(__name__)

class Database:
    client: AsyncIOMotorClient = None
    db = None

db = Database()

async def connect_to_mongo():
    """Open the shared client, check the server answers and ensure indexes."""
    try:
        logger.info(f"Connecting to MongoDB database {settings.DB_NAME}...")
        db.client = AsyncIOMotorClient(
            settings.MONGO_URI, serverSelectionTimeoutMS=settings.MONGO_SERVER_TIMEOUT_MS
        )
        db.db = db.client[settings.DB_NAME]
        await db.client.admin.command("ping")
        logger.info("Connected to MongoDB.")

        await create_indexes()

    except Exception as e:
        logger.error(f"Could not connect to MongoDB: {e}")
        raise

async def close_mongo_connection():
    if db.client:
        logger.info("Closing MongoDB connection...")
        db.client.close()
        db.client = None
        db.db = None
        logger.info("MongoDB connection closed.")

async def create_indexes():
    """Create indexes for collections.

    The unique indexes on `lessons.slotKey` and `booking_locks.tutorId` back the
    no-double-booking guarantee, so a failure here must stop startup.
    """
    # One availability profile per tutor
    await db.db.availability.create_index("tutorId", unique=True)

    # Lesson ledger: overlap lookups and the exclusive slot key.
    # Only active lessons hold their key, matching the statuses the conflict check reads.
    await db.db.lessons.create_index(
        [("tutorId", ASCENDING), ("status", ASCENDING), ("startTime", ASCENDING), ("endTime", ASCENDING)]
    )
    await db.db.lessons.create_index([("studentId", ASCENDING), ("startTime", ASCENDING)])
    await db.db.lessons.create_index(
        "slotKey",
        unique=True,
        partialFilterExpression={"status": {"$in": ACTIVE_STATUSES}},
    )

    # Per-tutor booking lease
    await db.db.booking_locks.create_index("tutorId", unique=True)

    logger.info("MongoDB indexes created successfully.")
