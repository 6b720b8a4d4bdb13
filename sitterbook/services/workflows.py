# sitterbook/services/workflows.py
"""
Flujos que coordinan varios comandos.

Aceptar una candidatura y rechazar las demás son dos pasos independientes:
si un rechazo falla, el resto sigue y el llamador puede reintentar solo ese.
"""
from dataclasses import dataclass, field
from typing import Optional
import logging

from ..errors import BookingError, BookingResult, PersistenceFailure
from ..schemas.booking import Booking, BookingStatus
from .bookings import BookingService

logger = logging.getLogger(__name__)

DEFAULT_REJECT_REASON = "Se aceptó otra candidatura para esta solicitud"


@dataclass
class BulkRejectOutcome:
    rejected: list[Booking] = field(default_factory=list)
    failed: list[BookingError] = field(default_factory=list)


@dataclass
class AcceptOutcome:
    result: BookingResult
    rejections: BulkRejectOutcome = field(default_factory=BulkRejectOutcome)


async def reject_other_applications(
    service: BookingService,
    request_id: str,
    accepted_booking_id: Optional[str],
    actor_id: str,
    reason: Optional[str] = None,
) -> BulkRejectOutcome:
    outcome = BulkRejectOutcome()
    applications = await service.applications_for_request(request_id)
    for app in applications:
        if app.id == accepted_booking_id or app.status != BookingStatus.pending:
            continue
        try:
            res = await service.reject(app.id, actor_id, reason or DEFAULT_REJECT_REASON)
        except PersistenceFailure as e:
            # Un fallo de persistencia en un rechazo no frena los demás
            logger.error(f"Error rechazando la reserva {app.id}: {e}", exc_info=True)
            outcome.failed.append(BookingError(app.id))
            continue
        if res.ok:
            outcome.rejected.append(res.booking)
        else:
            outcome.failed.append(res.error)
    if outcome.failed:
        logger.warning(f"Solicitud {request_id}: {len(outcome.failed)} candidaturas sin rechazar")
    return outcome


async def accept_application(
    service: BookingService,
    booking_id: str,
    actor_id: str,
    reject_others: bool = True,
    reason: Optional[str] = None,
) -> AcceptOutcome:
    result = await service.accept(booking_id, actor_id)
    if not result.ok or not reject_others:
        return AcceptOutcome(result=result)
    rejections = await reject_other_applications(
        service, result.booking.request_id, result.booking.id, actor_id, reason
    )
    return AcceptOutcome(result=result, rejections=rejections)
