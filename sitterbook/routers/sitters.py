# sitterbook/routers/sitters.py
from fastapi import APIRouter, Depends, Query, HTTPException
from typing import Dict, List, Optional
from datetime import date, datetime

from ..deps import get_booking_service
from ..schemas.booking import Booking
from ..security import get_current_user_id
from ..services.bookings import BookingService
from ..utils import as_utc

router = APIRouter()

# Ventana máxima consultable de una vez
MAX_WINDOW_DAYS = 366

def _check_days(start: date, end: date) -> None:
    if end < start:
        raise HTTPException(status_code=400, detail="end debe ser igual o posterior a start")
    if (end - start).days > MAX_WINDOW_DAYS:
        raise HTTPException(status_code=400, detail=f"La ventana no puede superar {MAX_WINDOW_DAYS} días")

@router.get("/{sitter_id}/availability")
async def sitter_availability(
    sitter_id: str,
    start: datetime = Query(...),
    end: datetime = Query(...),
    service: BookingService = Depends(get_booking_service),
    user_id: str = Depends(get_current_user_id),
):
    """¿Está libre el cuidador en [start, end)?"""
    start, end = as_utc(start), as_utc(end)
    if end <= start:
        raise HTTPException(status_code=400, detail="end debe ser posterior a start")
    return {"sitter_id": sitter_id, "available": await service.is_available(sitter_id, start, end)}

@router.get("/{sitter_id}/available-dates", response_model=List[date])
async def sitter_available_dates(
    sitter_id: str,
    start: date = Query(...),
    end: date = Query(...),
    max_per_day: Optional[int] = Query(None, ge=1),
    service: BookingService = Depends(get_booking_service),
    user_id: str = Depends(get_current_user_id),
):
    _check_days(start, end)
    return await service.available_dates(sitter_id, start, end, max_per_day)

@router.get("/{sitter_id}/booking-counts", response_model=Dict[date, int])
async def sitter_booking_counts(
    sitter_id: str,
    start: date = Query(...),
    end: date = Query(...),
    service: BookingService = Depends(get_booking_service),
    user_id: str = Depends(get_current_user_id),
):
    _check_days(start, end)
    return await service.booking_counts_by_date(sitter_id, start, end)

@router.get("/{sitter_id}/schedule", response_model=List[Booking])
async def sitter_schedule(
    sitter_id: str,
    day: date = Query(...),
    service: BookingService = Depends(get_booking_service),
    user_id: str = Depends(get_current_user_id),
):
    """Reservas activas del cuidador ese día. Solo el propio cuidador las ve."""
    if sitter_id != user_id:
        raise HTTPException(status_code=403, detail="Solo el cuidador puede ver su agenda")
    return await service.bookings_for_date(sitter_id, day)
