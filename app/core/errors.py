from enum import Enum
from typing import Optional
import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

logger = logging.getLogger(__name__)


class RejectionReason(str, Enum):
    NO_AVAILABILITY_PROFILE = "NoAvailabilityProfile"
    INVALID_TIME_WINDOW = "InvalidTimeWindow"
    NOT_IN_AVAILABILITY = "NotInAvailability"
    CONFLICT = "Conflict"


REJECTION_MESSAGES = {
    RejectionReason.NO_AVAILABILITY_PROFILE: "Tutor has no availability configured",
    RejectionReason.INVALID_TIME_WINDOW: "Start and end must form a positive time window",
    RejectionReason.NOT_IN_AVAILABILITY: "Requested time is not one of the tutor's bookable slots",
    RejectionReason.CONFLICT: "Tutor already has a lesson at this time",
}


class MalformedRequest(ValueError):
    """Invalid dates, ranges, durations or timezone names. Rejected before any I/O."""


class ProfileNotFound(LookupError):
    def __init__(self, tutor_id: str):
        super().__init__(f"No availability profile for tutor {tutor_id}")
        self.tutor_id = tutor_id


class LessonNotFound(LookupError):
    pass


class LessonAccessDenied(Exception):
    pass


class LessonStateError(Exception):
    """The lesson's current status does not allow the requested change."""


class ReschedulePolicyViolation(Exception):
    pass


class StoreUnavailable(RuntimeError):
    """Transient store failure. Safe to retry; validation is side-effect free."""


class BookingRejected(Exception):
    def __init__(self, reason: RejectionReason, message: Optional[str] = None):
        self.reason = reason
        self.message = message or REJECTION_MESSAGES[reason]
        super().__init__(f"{reason.value}: {self.message}")

    @property
    def status_code(self) -> int:
        if self.reason == RejectionReason.CONFLICT:
            return status.HTTP_409_CONFLICT
        return status.HTTP_400_BAD_REQUEST

    def to_detail(self) -> dict:
        return {"reason": self.reason.value, "message": self.message}


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(MalformedRequest)
    async def malformed_request_handler(request: Request, exc: MalformedRequest) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": str(exc)},
        )

    @app.exception_handler(StoreUnavailable)
    async def store_unavailable_handler(request: Request, exc: StoreUnavailable) -> JSONResponse:
        logger.warning(f"Transient failure on {request.url.path}: {exc}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": str(exc) or "Service temporarily unavailable"},
        )

    @app.exception_handler(PyMongoError)
    async def mongo_error_handler(request: Request, exc: PyMongoError) -> JSONResponse:
        logger.error(f"Database error on {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": "Database temporarily unavailable"},
        )
