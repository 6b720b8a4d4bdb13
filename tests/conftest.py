"""
Configuración de pytest para tests
"""
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from sitterbook.config import Settings
from sitterbook.schemas.care_request import CareRequestCreate
from sitterbook.security import create_access_token
from sitterbook.services.bookings import BookingService
from sitterbook.stores.memory import InMemoryBookingStore

OWNER = "owner-1"
SITTER_A = "sitter-a"
SITTER_B = "sitter-b"
SITTER_C = "sitter-c"

# Fecha "actual" de los tests: antes de todas las solicitudes de junio
NOW = "2026-06-01 09:00:00"


def utc(year, month, day, hour=0):
    return datetime(year, month, day, hour, tzinfo=timezone.utc)


def june(day, hour=0):
    return utc(2026, 6, day, hour)


def auth(user_id: str) -> dict:
    # Caducidad larga: algunos tests congelan el reloj en el pasado
    token = create_access_token(user_id, expires_hours=24 * 365 * 5)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def store():
    return InMemoryBookingStore()


@pytest.fixture
def notifier():
    """Notificador falso: registra llamadas sin entregar nada"""
    n = AsyncMock()
    n.notify = AsyncMock(return_value=None)
    n.schedule = AsyncMock(return_value=None)
    return n


@pytest.fixture
def settings():
    return Settings(max_bookings_per_day=1, reminder_lead_hours=24)


@pytest.fixture
def service(store, notifier, settings):
    return BookingService(store, notifier, settings)


@pytest.fixture
def post_request(service):
    """Publica una solicitud de cuidado del dueño entre start y end"""
    async def _post(start, end, owner_id=OWNER, budget=100.0):
        return await service.create_request(owner_id, CareRequestCreate(
            pet_id="pet-1",
            title="Cuidar a Luna",
            start_date=start,
            end_date=end,
            budget=budget,
        ))
    return _post


@pytest.fixture
def confirmed_booking(service, post_request):
    """Crea solicitud + candidatura y la acepta; devuelve la reserva confirmada"""
    async def _confirm(start, end, sitter_id=SITTER_A):
        req = await post_request(start, end)
        applied = await service.apply_for_request(req.id, sitter_id, "Tengo experiencia")
        accepted = await service.accept(applied.booking.id, OWNER)
        assert accepted.ok, accepted.error
        return accepted.booking
    return _confirm


@pytest_asyncio.fixture
async def client(store, notifier):
    """Cliente HTTP contra la app con el almacén en memoria"""
    from sitterbook.deps import get_notifier, get_store
    from sitterbook.main import app

    # Sin rate limiting en tests
    app.state.limiter = None
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_notifier] = lambda: notifier
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
