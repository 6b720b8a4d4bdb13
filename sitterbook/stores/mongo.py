# sitterbook/stores/mongo.py
from datetime import datetime
from typing import Any, Dict, Iterable, Optional
from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError
import logging

from ..errors import PersistenceFailure
from ..schemas.booking import ACTIVE_STATUSES, Booking, BookingStatus
from ..schemas.care_request import CareRequest, RequestStatus
from ..services.conflicts import ranges_overlap
from ..utils import as_utc, to_id, to_storage

logger = logging.getLogger(__name__)

_DATE_FIELDS = (
    "start_date", "end_date", "created_at", "updated_at",
    "accepted_at", "started_at", "completed_at", "cancelled_at",
)

def _oid(value: str) -> Optional[ObjectId]:
    return ObjectId(value) if ObjectId.is_valid(value) else None

def _to_doc(model) -> Dict[str, Any]:
    doc = model.model_dump(mode="python")
    doc["_id"] = ObjectId(doc.pop("id"))
    for key in _DATE_FIELDS:
        if doc.get(key) is not None:
            doc[key] = to_storage(doc[key])
    # Los enums se guardan como string
    for key in ("status", "care_type"):
        if key in doc and hasattr(doc[key], "value"):
            doc[key] = doc[key].value
    return doc


class MongoBookingStore:
    """
    Persistencia en MongoDB (Motor).
    Colecciones: care_requests, bookings, sitter_calendars.
    Las fechas se guardan naive en UTC y se devuelven con zona UTC.
    """

    def __init__(self, db: AsyncIOMotorDatabase, claim_attempts: int = 5):
        self.db = db
        self.claim_attempts = claim_attempts

    # ---------- Solicitudes de cuidado ----------

    async def get_request(self, request_id: str) -> Optional[CareRequest]:
        oid = _oid(request_id)
        if oid is None:
            return None
        try:
            doc = await self.db.care_requests.find_one({"_id": oid})
        except PyMongoError as e:
            raise PersistenceFailure(f"No se pudo leer la solicitud {request_id}") from e
        return CareRequest(**to_id(doc)) if doc else None

    async def insert_request(self, request: CareRequest) -> CareRequest:
        try:
            await self.db.care_requests.insert_one(_to_doc(request))
        except PyMongoError as e:
            raise PersistenceFailure("No se pudo guardar la solicitud") from e
        return request

    async def update_request_status(
        self, request_id: str, expected: RequestStatus, new: RequestStatus, now: datetime
    ) -> bool:
        try:
            res = await self.db.care_requests.update_one(
                {"_id": _oid(request_id), "status": expected.value},
                {"$set": {"status": new.value, "updated_at": to_storage(now)}},
            )
        except PyMongoError as e:
            raise PersistenceFailure(f"No se pudo actualizar la solicitud {request_id}") from e
        return res.modified_count == 1

    # ---------- Reservas ----------

    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        oid = _oid(booking_id)
        if oid is None:
            return None
        try:
            doc = await self.db.bookings.find_one({"_id": oid})
        except PyMongoError as e:
            raise PersistenceFailure(f"No se pudo leer la reserva {booking_id}") from e
        return Booking(**to_id(doc)) if doc else None

    async def insert_booking(self, booking: Booking) -> Booking:
        try:
            await self.db.bookings.insert_one(_to_doc(booking))
        except PyMongoError as e:
            raise PersistenceFailure("No se pudo guardar la reserva") from e
        return booking

    async def update_booking(self, booking: Booking, expected_status: BookingStatus) -> bool:
        doc = _to_doc(booking)
        oid = doc.pop("_id")
        try:
            # Escritura condicionada al estado leído (concurrencia optimista)
            res = await self.db.bookings.update_one(
                {"_id": oid, "status": expected_status.value},
                {"$set": doc},
            )
        except PyMongoError as e:
            raise PersistenceFailure(f"No se pudo actualizar la reserva {booking.id}") from e
        return res.modified_count == 1

    async def find_bookings(
        self,
        *,
        sitter_id: Optional[str] = None,
        owner_id: Optional[str] = None,
        request_id: Optional[str] = None,
        statuses: Optional[Iterable[BookingStatus]] = None,
    ) -> list[Booking]:
        q: Dict[str, Any] = {}
        if sitter_id is not None:
            q["sitter_id"] = sitter_id
        if owner_id is not None:
            q["owner_id"] = owner_id
        if request_id is not None:
            q["request_id"] = request_id
        if statuses is not None:
            q["status"] = {"$in": [s.value for s in statuses]}
        return await self._find(q, sort=("created_at", -1))

    async def find_active_bookings(
        self,
        sitter_id: str,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[str] = None,
        inclusive: bool = False,
    ) -> list[Booking]:
        lt, gt = ("$lte", "$gte") if inclusive else ("$lt", "$gt")
        q: Dict[str, Any] = {
            "sitter_id": sitter_id,
            "status": {"$in": [s.value for s in ACTIVE_STATUSES]},
            "start_date": {lt: to_storage(end)},
            "end_date": {gt: to_storage(start)},
        }
        if exclude_booking_id and ObjectId.is_valid(exclude_booking_id):
            q["_id"] = {"$ne": ObjectId(exclude_booking_id)}
        return await self._find(q, sort=("start_date", 1))

    async def _find(self, q: Dict[str, Any], sort: tuple[str, int]) -> list[Booking]:
        # length=None: el cursor se consume entero, sin tope de resultados
        try:
            docs = await self.db.bookings.find(q).sort(*sort).to_list(length=None)
        except PyMongoError as e:
            raise PersistenceFailure("No se pudieron consultar las reservas") from e
        return [Booking(**to_id(d)) for d in docs]

    # ---------- Agenda del cuidador ----------

    async def claim_slot(self, sitter_id: str, booking_id: str, start: datetime, end: datetime) -> bool:
        """
        Reserva el rango en el documento de agenda del cuidador.

        El documento guarda los rangos activos y un contador de versión; la
        escritura solo se aplica si la versión no cambió desde la lectura, así
        dos aceptaciones simultáneas del mismo cuidador no pueden solaparse
        aunque corran en instancias distintas.
        """
        calendars = self.db.sitter_calendars
        slot = {"booking_id": booking_id, "start": to_storage(start), "end": to_storage(end)}
        try:
            await calendars.update_one(
                {"_id": sitter_id},
                {"$setOnInsert": {"slots": [], "version": 0}},
                upsert=True,
            )
            for attempt in range(self.claim_attempts):
                cal = await calendars.find_one({"_id": sitter_id})
                slots = cal.get("slots", [])
                if any(s["booking_id"] == booking_id for s in slots):
                    return True
                for other in slots:
                    if ranges_overlap(as_utc(other["start"]), as_utc(other["end"]), start, end):
                        return False
                res = await calendars.update_one(
                    {"_id": sitter_id, "version": cal["version"]},
                    {"$push": {"slots": slot}, "$inc": {"version": 1}},
                )
                if res.modified_count == 1:
                    return True
                logger.info(f"Agenda de {sitter_id} modificada en paralelo (intento {attempt + 1})")
        except PyMongoError as e:
            raise PersistenceFailure(f"No se pudo reservar la agenda de {sitter_id}") from e
        raise PersistenceFailure(f"Contención en la agenda de {sitter_id}")

    async def release_slot(self, sitter_id: str, booking_id: str) -> None:
        try:
            await self.db.sitter_calendars.update_one(
                {"_id": sitter_id},
                {"$pull": {"slots": {"booking_id": booking_id}}, "$inc": {"version": 1}},
            )
        except PyMongoError as e:
            raise PersistenceFailure(f"No se pudo liberar la agenda de {sitter_id}") from e
