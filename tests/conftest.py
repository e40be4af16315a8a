from datetime import datetime, timedelta, timezone
import itertools

import mongomock
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from jose import jwt

from app.core.config import settings
from app.db.availability import replace_profile
from app.db.mongodb import db, create_indexes
from app.main import app
from app.schemas.availability import AvailabilityProfile, TimeRange, WeeklyRule

TUTOR_ID = "tutor-1"
STUDENT_ID = "student-1"
OTHER_STUDENT_ID = "student-2"


def ranges(*pairs):
    return [TimeRange(start=start, end=end) for start, end in pairs]


def weekly(day_of_week, *pairs):
    return WeeklyRule(dayOfWeek=day_of_week, ranges=ranges(*pairs))


def every_day(*pairs):
    return [weekly(dow, *pairs) for dow in range(7)]


def make_profile(**overrides) -> AvailabilityProfile:
    data = {
        "tutorId": TUTOR_ID,
        "timezone": "UTC",
        "slotInterval": 30,
        "slotStartPolicy": "anyOffset",
        "weekly": [],
        "exceptions": [],
    }
    data.update(overrides)
    return AvailabilityProfile(**data)


async def save_profile(profile: AvailabilityProfile) -> AvailabilityProfile:
    return await replace_profile(
        profile.tutorId,
        profile.timezone,
        profile.weekly,
        profile.exceptions,
        profile.slotInterval,
        profile.slotStartPolicy.value,
    )


def create_access_token(user_id: str, role: str, expires_delta: timedelta = None) -> str:
    """Mint a token shaped like the ones the auth service issues."""
    lifetime = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    claims = {"sub": user_id, "role": role, "exp": datetime.now(timezone.utc) + lifetime}
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def auth_headers(user_id: str, role: str) -> dict:
    token = create_access_token(user_id, role)
    return {"Authorization": f"Bearer {token}"}


class AsyncCursor:
    """Awaitable view over a mongomock cursor, covering the motor calls the app makes."""

    def __init__(self, cursor):
        self._cursor = cursor

    def sort(self, *args, **kwargs):
        self._cursor.sort(*args, **kwargs)
        return self

    async def to_list(self, length=None):
        if length is None:
            return list(self._cursor)
        return list(itertools.islice(self._cursor, length))


class AsyncCollection:
    def __init__(self, collection):
        self._collection = collection

    def find(self, *args, **kwargs):
        return AsyncCursor(self._collection.find(*args, **kwargs))

    def __getattr__(self, name):
        method = getattr(self._collection, name)

        async def call(*args, **kwargs):
            return method(*args, **kwargs)

        return call


class AsyncDatabase:
    def __init__(self, database):
        self._database = database

    def __getitem__(self, name):
        return AsyncCollection(self._database[name])

    def __getattr__(self, name):
        return self[name]


@pytest_asyncio.fixture
async def mongo():
    db.client = mongomock.MongoClient()
    db.db = AsyncDatabase(db.client["lessonbook_test"])
    await create_indexes()
    yield db.db
    db.client = None
    db.db = None


@pytest_asyncio.fixture
async def client(mongo):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def tutor_headers():
    return auth_headers(TUTOR_ID, "tutor")


@pytest.fixture
def student_headers():
    return auth_headers(STUDENT_ID, "student")
