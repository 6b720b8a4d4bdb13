# sitterbook/services/bookings.py
"""
Ciclo de vida de las reservas: solicitud -> aceptación -> servicio -> fin.

Cada comando recibe explícitamente el id del usuario que actúa y devuelve un
BookingResult; los errores de negocio nunca se lanzan como excepción.
"""
from datetime import date, datetime, timedelta
from typing import Optional, Union
import logging

from ..config import Settings, get_settings
from ..errors import (
    BookingResult,
    Command,
    InvalidTransition,
    NotFound,
    NotPermitted,
    PersistenceFailure,
    SchedulingConflict,
)
from ..schemas.booking import Booking, BookingStatus
from ..schemas.care_request import CareRequest, CareRequestCreate, RequestStatus
from ..stores.base import BookingStore
from ..utils import new_id, utcnow
from . import notifications as events
from .availability import AvailabilityCalculator
from .conflicts import ConflictDetector
from .notifications import Notifier, dispatch
from .request_sync import expected_request_status, synced_request_status
from .state_machine import apply_transition, check_transition

logger = logging.getLogger(__name__)


class BookingService:
    def __init__(self, store: BookingStore, notifier: Notifier, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self.store = store
        self.notifier = notifier
        self.detector = ConflictDetector(store)
        self.availability = AvailabilityCalculator(store, self.detector, settings.max_bookings_per_day)
        self.reminder_lead = timedelta(hours=settings.reminder_lead_hours)

    # ---------- Solicitudes de cuidado ----------

    async def create_request(self, owner_id: str, payload: CareRequestCreate) -> CareRequest:
        now = utcnow()
        request = CareRequest(
            id=new_id(),
            owner_id=owner_id,
            status=RequestStatus.open,
            created_at=now,
            updated_at=now,
            **payload.model_dump(),
        )
        await self.store.insert_request(request)
        logger.info(f"Solicitud {request.id} publicada por {owner_id}")
        return request

    async def get_request(self, request_id: str) -> Optional[CareRequest]:
        return await self.store.get_request(request_id)

    async def apply_for_request(self, request_id: str, sitter_id: str, notes: Optional[str] = None) -> BookingResult:
        request = await self.store.get_request(request_id)
        if request is None:
            return BookingResult.failure(NotFound(None, "Solicitud", request_id))
        if request.owner_id == sitter_id:
            return BookingResult.failure(NotPermitted(None, sitter_id, Command.apply))
        if request.status != RequestStatus.open:
            return BookingResult.failure(
                InvalidTransition(None, None, Command.apply, detail=f"la solicitud está {request.status.value}")
            )

        existing = await self.store.find_bookings(request_id=request_id, sitter_id=sitter_id)
        live = next((b for b in existing if not b.status.is_terminal), None)
        if live is not None:
            return BookingResult.failure(
                InvalidTransition(live.id, live.status, Command.apply, detail="ya existe una solicitud de este cuidador")
            )

        now = utcnow()
        booking = Booking(
            id=new_id(),
            request_id=request.id,
            sitter_id=sitter_id,
            owner_id=request.owner_id,
            start_date=request.start_date,
            end_date=request.end_date,
            status=BookingStatus.pending,
            notes=notes,
            total_amount=request.budget,
            created_at=now,
            updated_at=now,
        )
        await self.store.insert_booking(booking)
        logger.info(f"Reserva {booking.id}: {sitter_id} solicita la solicitud {request.id}")
        await dispatch(self.notifier, events.BOOKING_APPLICATION, booking, request.owner_id)
        return BookingResult.success(booking)

    # ---------- Comandos ----------

    async def accept(self, booking_id: str, actor_id: str) -> BookingResult:
        loaded = await self._load(booking_id)
        if isinstance(loaded, NotFound):
            return BookingResult.failure(loaded)
        booking, request = loaded

        if actor_id != request.owner_id:
            return BookingResult.failure(NotPermitted(booking.id, actor_id, Command.accept))
        now = utcnow()
        error = check_transition(booking, Command.accept, request, now)
        if error is not None:
            return self._rejected(error)
        if request.status != RequestStatus.open:
            return self._rejected(InvalidTransition(
                booking.id, booking.status, Command.accept, detail=f"la solicitud está {request.status.value}"
            ))

        conflicting = await self.detector.get_conflicting_bookings(
            booking.sitter_id, booking.start_date, booking.end_date, exclude_booking_id=booking.id
        )
        if conflicting:
            return self._rejected(SchedulingConflict(booking.id, booking.sitter_id, [b.id for b in conflicting]))

        # La agenda del cuidador es la que serializa aceptaciones simultáneas
        if not await self.store.claim_slot(booking.sitter_id, booking.id, booking.start_date, booking.end_date):
            return self._rejected(SchedulingConflict(booking.id, booking.sitter_id))

        request_claimed = False
        try:
            if not await self.store.update_request_status(
                request.id, RequestStatus.open, RequestStatus.in_progress, now
            ):
                await self.store.release_slot(booking.sitter_id, booking.id)
                return self._rejected(InvalidTransition(
                    booking.id, booking.status, Command.accept, detail="la solicitud cambió de estado"
                ))
            request_claimed = True

            updated = apply_transition(booking, Command.accept, now)
            confirmed = await self.store.update_booking(updated, expected_status=BookingStatus.pending)
        except PersistenceFailure:
            logger.error(f"Aceptación de {booking.id} interrumpida; se deshacen la agenda y la solicitud")
            await self._undo_accept(booking, request, now, request_claimed)
            raise

        if not confirmed:
            await self._undo_accept(booking, request, now, request_claimed)
            return await self._lost_race(booking, Command.accept)

        logger.info(f"Reserva {booking.id} confirmada (cuidador {booking.sitter_id}, solicitud {request.id})")
        await dispatch(self.notifier, events.BOOKING_ACCEPTED, updated, request.owner_id)
        reminder_at = request.start_date - self.reminder_lead
        if reminder_at > now:
            await dispatch(self.notifier, events.BOOKING_REMINDER, updated, updated.sitter_id, at=reminder_at)
        return BookingResult.success(updated)

    async def _undo_accept(self, booking: Booking, request: CareRequest, now: datetime, request_claimed: bool) -> None:
        """Libera la agenda y reabre la solicitud si la aceptación no llegó a confirmarse."""
        try:
            if request_claimed:
                await self.store.update_request_status(request.id, RequestStatus.in_progress, RequestStatus.open, now)
            await self.store.release_slot(booking.sitter_id, booking.id)
        except PersistenceFailure:
            logger.error(
                f"No se pudo deshacer la aceptación de {booking.id} (cuidador {booking.sitter_id})", exc_info=True
            )

    async def reject(self, booking_id: str, actor_id: str, reason: Optional[str] = None) -> BookingResult:
        return await self._transition(Command.reject, booking_id, actor_id, reason)

    async def cancel(self, booking_id: str, actor_id: str, reason: Optional[str] = None) -> BookingResult:
        return await self._transition(Command.cancel, booking_id, actor_id, reason)

    async def start(self, booking_id: str, actor_id: str) -> BookingResult:
        return await self._transition(Command.start, booking_id, actor_id)

    async def complete(self, booking_id: str, actor_id: str) -> BookingResult:
        return await self._transition(Command.complete, booking_id, actor_id)

    async def _transition(
        self, command: Command, booking_id: str, actor_id: str, reason: Optional[str] = None
    ) -> BookingResult:
        loaded = await self._load(booking_id)
        if isinstance(loaded, NotFound):
            return BookingResult.failure(loaded)
        booking, request = loaded

        if actor_id not in _allowed_actors(command, booking):
            return BookingResult.failure(NotPermitted(booking.id, actor_id, command))
        now = utcnow()
        error = check_transition(booking, command, request, now)
        if error is not None:
            return self._rejected(error)

        previous = booking.status
        updated = apply_transition(booking, command, now, reason)
        if not await self.store.update_booking(updated, expected_status=previous):
            return await self._lost_race(booking, command)

        if previous.is_active and not updated.status.is_active:
            await self.store.release_slot(booking.sitter_id, booking.id)
        await self._sync_request(request, command, previous, now)

        logger.info(f"Reserva {booking.id}: {previous.value} -> {updated.status.value} por {actor_id}")
        await dispatch(self.notifier, _event_for(command), updated, _recipient(command, updated, actor_id))
        return BookingResult.success(updated)

    async def _sync_request(self, request: CareRequest, command: Command, previous: BookingStatus, now: datetime) -> None:
        target = synced_request_status(command, previous)
        if target is None:
            return
        expected = expected_request_status(command)
        if not await self.store.update_request_status(request.id, expected, target, now):
            logger.warning(
                f"Solicitud {request.id} no estaba en {expected.value}; no se pasa a {target.value}"
            )

    async def _load(self, booking_id: str) -> Union[tuple[Booking, CareRequest], NotFound]:
        booking = await self.store.get_booking(booking_id)
        if booking is None:
            return NotFound(booking_id, "Reserva", booking_id)
        request = await self.store.get_request(booking.request_id)
        if request is None:
            return NotFound(booking_id, "Solicitud", booking.request_id)
        return booking, request

    async def _lost_race(self, booking: Booking, command: Command) -> BookingResult:
        current = await self.store.get_booking(booking.id)
        status = current.status if current else booking.status
        return self._rejected(InvalidTransition(booking.id, status, command, detail="la reserva cambió de estado"))

    def _rejected(self, error) -> BookingResult:
        logger.info(f"Comando rechazado: {error.message}")
        return BookingResult.failure(error)

    # ---------- Agenda ----------

    async def has_conflict(
        self, sitter_id: str, start: datetime, end: datetime, exclude_booking_id: Optional[str] = None
    ) -> bool:
        return await self.detector.has_conflict(sitter_id, start, end, exclude_booking_id)

    async def is_available(self, sitter_id: str, start: datetime, end: datetime) -> bool:
        return await self.detector.is_available(sitter_id, start, end)

    async def available_dates(
        self, sitter_id: str, start: date, end: date, max_per_day: Optional[int] = None
    ) -> list[date]:
        return await self.availability.available_dates(sitter_id, start, end, max_per_day)

    async def booking_counts_by_date(self, sitter_id: str, start: date, end: date) -> dict[date, int]:
        return await self.availability.booking_counts_by_date(sitter_id, start, end)

    async def can_accept_booking(self, sitter_id: str, booking_id: str) -> bool:
        return await self.availability.can_accept_booking(sitter_id, booking_id)

    # ---------- Consultas ----------

    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        return await self.store.get_booking(booking_id)

    async def bookings_for_sitter(self, sitter_id: str) -> list[Booking]:
        return await self.store.find_bookings(sitter_id=sitter_id)

    async def bookings_for_owner(self, owner_id: str) -> list[Booking]:
        return await self.store.find_bookings(owner_id=owner_id)

    async def applications_for_request(self, request_id: str) -> list[Booking]:
        return await self.store.find_bookings(request_id=request_id)

    async def active_bookings(self, user_id: str) -> list[Booking]:
        return await self.availability.upcoming_bookings(user_id, date.min)

    async def upcoming_bookings(self, user_id: str, today: Optional[date] = None) -> list[Booking]:
        return await self.availability.upcoming_bookings(user_id, today or utcnow().date())

    async def bookings_for_date(self, user_id: str, day: date) -> list[Booking]:
        return await self.availability.bookings_for_date(user_id, day)

    async def booking_history(self, user_id: str) -> list[Booking]:
        finished = (BookingStatus.completed, BookingStatus.cancelled)
        bookings = await self.store.find_bookings(sitter_id=user_id, statuses=finished)
        bookings += [
            b for b in await self.store.find_bookings(owner_id=user_id, statuses=finished)
            if b.sitter_id != user_id
        ]
        return sorted(bookings, key=lambda b: b.updated_at, reverse=True)


def _allowed_actors(command: Command, booking: Booking) -> set[str]:
    match command:
        case Command.reject:
            return {booking.owner_id}
        case Command.cancel:
            return {booking.owner_id, booking.sitter_id}
        case Command.start | Command.complete:
            return {booking.sitter_id}
        case _:
            return set()

def _recipient(command: Command, booking: Booking, actor_id: str) -> str:
    if command == Command.reject:
        return booking.sitter_id
    if command == Command.cancel:
        return booking.sitter_id if actor_id == booking.owner_id else booking.owner_id
    return booking.owner_id

def _event_for(command: Command) -> str:
    return {
        Command.reject: events.BOOKING_REJECTED,
        Command.cancel: events.BOOKING_CANCELLED,
        Command.start: events.BOOKING_STARTED,
        Command.complete: events.BOOKING_COMPLETED,
    }[command]
