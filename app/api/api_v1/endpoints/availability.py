from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from typing import List, Dict, Any
from datetime import date
import logging

from app.core.auth import get_current_tutor
from app.core.errors import MalformedRequest, ProfileNotFound
from app.db.availability import (
    get_profile_document, replace_profile, upsert_exception, delete_exception
)
from app.schemas.availability import AvailabilityUpdate, ExceptionUpsert
from app.services.slot_query_service import query_slots
from app.utils.time_utils import parse_iso_date

router = APIRouter()
logger = logging.getLogger(__name__)

@router.get("/me", response_model=Dict[str, Any])
async def get_my_availability(current_tutor: dict = Depends(get_current_tutor)):
    """
    Get the current tutor's availability profile
    """
    profile = await get_profile_document(current_tutor["id"])
    return profile or {}

@router.put("", response_model=Dict[str, Any])
async def update_my_availability(
    availability_data: AvailabilityUpdate,
    current_tutor: dict = Depends(get_current_tutor)
):
    """
    Replace the current tutor's full availability profile

    - **timezone**: IANA name; weekly and exception times are local to it
    - **weekly**: `[{dayOfWeek, ranges}]` with 0 = Sunday
    - **rules**: optional editor shape, seven Mon..Sun range lists (wins over weekly)
    - **exceptions**: `[{date, open, ranges}]`, each fully replacing that date's weekly rule
    - **slotInterval**: 15, 30, 45 or 60 minutes
    - **slotStartPolicy**: `anyOffset` or `snapToHalfHour`
    """
    profile = await replace_profile(
        current_tutor["id"],
        availability_data.timezone,
        availability_data.effective_weekly(),
        availability_data.exceptions,
        availability_data.slotInterval,
        availability_data.slotStartPolicy.value,
    )
    return profile.model_dump()

@router.post("/exceptions", response_model=Dict[str, Any])
async def upsert_my_exception(
    exception_data: ExceptionUpsert,
    current_tutor: dict = Depends(get_current_tutor)
):
    """
    Add or replace the exception for one date
    """
    try:
        profile = await upsert_exception(current_tutor["id"], exception_data.to_exception())
    except ProfileNotFound:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Availability not found"
        )
    return {"ok": True, "availability": profile.model_dump()}

@router.delete("/exceptions/{date}", response_model=Dict[str, Any])
async def delete_my_exception(
    date: str = Path(..., title="Date in YYYY-MM-DD format"),
    current_tutor: dict = Depends(get_current_tutor)
):
    """
    Remove the exception for one date
    """
    try:
        parse_iso_date(date)
    except MalformedRequest as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e)
        )

    try:
        profile = await delete_exception(current_tutor["id"], date)
    except ProfileNotFound:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Availability not found"
        )
    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Exception not found"
        )
    return {"ok": True, "availability": profile.model_dump()}

@router.get("/{tutor_id}/slots", response_model=List[str])
async def get_tutor_slots(
    tutor_id: str,
    from_date: date = Query(..., alias="from", description="First day (YYYY-MM-DD, tutor timezone)"),
    to_date: date = Query(..., alias="to", description="Last day, inclusive"),
    duration_minutes: int = Query(60, alias="durationMinutes", description="Lesson length in minutes"),
    display_timezone: str = Query("UTC", alias="displayTimezone", description="IANA timezone for the result"),
):
    """
    Get bookable lesson start times for a tutor as ISO-8601 instants
    """
    try:
        return await query_slots(tutor_id, from_date, to_date, duration_minutes, display_timezone)
    except MalformedRequest as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e)
        )

@router.get("/{tutor_id}", response_model=Dict[str, Any])
async def get_tutor_availability(tutor_id: str):
    """
    Get a tutor's availability profile (empty object if none is configured)
    """
    profile = await get_profile_document(tutor_id)
    return profile or {}
