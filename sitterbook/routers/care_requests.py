# sitterbook/routers/care_requests.py
from fastapi import APIRouter, Depends, HTTPException, status, Path, Request
from typing import List, Optional

from ..config import get_settings
from ..deps import get_booking_service
from ..errors import unwrap
from ..schemas.booking import Booking, BookingApply, BulkRejectOut, ReasonBody
from ..schemas.care_request import CareRequest, CareRequestCreate, RequestStatus
from ..security import get_current_user_id
from ..services.bookings import BookingService
from ..services.workflows import reject_other_applications
from ..middleware.rate_limit import apply_rate_limit
import logging

logger = logging.getLogger(__name__)

router = APIRouter()

ID_PATTERN = r"^[0-9a-fA-F]{24}$"

async def _owned_request(service: BookingService, request_id: str, user_id: str) -> CareRequest:
    req = await service.get_request(request_id)
    if not req:
        raise HTTPException(404, "Solicitud no encontrada")
    if req.owner_id != user_id:
        raise HTTPException(403, "Solo el dueño puede gestionar esta solicitud")
    return req

@router.post("", response_model=CareRequest, status_code=status.HTTP_201_CREATED)
async def create_care_request(
    payload: CareRequestCreate,
    service: BookingService = Depends(get_booking_service),
    user_id: str = Depends(get_current_user_id),
):
    return await service.create_request(user_id, payload)

@router.get("/{request_id}", response_model=CareRequest)
async def get_care_request(
    request_id: str = Path(..., pattern=ID_PATTERN),
    service: BookingService = Depends(get_booking_service),
    user_id: str = Depends(get_current_user_id),
):
    req = await service.get_request(request_id)
    if not req:
        raise HTTPException(404, "Solicitud no encontrada")
    return req

@router.get("/{request_id}/applications", response_model=List[Booking])
async def list_applications(
    request_id: str = Path(..., pattern=ID_PATTERN),
    service: BookingService = Depends(get_booking_service),
    user_id: str = Depends(get_current_user_id),
):
    await _owned_request(service, request_id, user_id)
    return await service.applications_for_request(request_id)

@router.post("/{request_id}/applications", response_model=Booking, status_code=status.HTTP_201_CREATED)
async def apply_for_request(
    request: Request,
    body: Optional[BookingApply] = None,
    request_id: str = Path(..., pattern=ID_PATTERN),
    service: BookingService = Depends(get_booking_service),
    user_id: str = Depends(get_current_user_id),
):
    apply_rate_limit(request, get_settings().apply_rate_limit)
    notes = body.notes if body else None
    return unwrap(await service.apply_for_request(request_id, user_id, notes))

@router.post("/{request_id}/reject-pending", response_model=BulkRejectOut)
async def reject_pending_applications(
    body: Optional[ReasonBody] = None,
    request_id: str = Path(..., pattern=ID_PATTERN),
    service: BookingService = Depends(get_booking_service),
    user_id: str = Depends(get_current_user_id),
):
    """
    Rechaza las candidaturas pendientes que queden tras aceptar una.
    Sirve también para reintentar los rechazos que fallaron al aceptar.
    """
    req = await _owned_request(service, request_id, user_id)
    if req.status != RequestStatus.in_progress:
        raise HTTPException(400, "La solicitud no tiene ninguna reserva aceptada")
    outcome = await reject_other_applications(
        service, request_id, None, user_id, body.reason if body else None
    )
    logger.info(f"Solicitud {request_id}: {len(outcome.rejected)} candidaturas rechazadas")
    return {"rejected": outcome.rejected, "failed": [e.as_dict() for e in outcome.failed]}
