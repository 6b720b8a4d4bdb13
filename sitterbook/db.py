from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from .config import get_settings

_settings = get_settings()
_client: AsyncIOMotorClient | None = None
_db: AsyncIOMotorDatabase | None = None

async def get_db() -> AsyncIOMotorDatabase:
    global _client, _db
    if _db is None:
        _client = AsyncIOMotorClient(_settings.mongodb_uri)
        _db = _client[_settings.db_name]
        await ensure_indexes(_db)
    return _db


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    await db.care_requests.create_index([("owner_id", 1)])
    await db.care_requests.create_index([("status", 1), ("start_date", 1)])
    await db.bookings.create_index([("request_id", 1), ("sitter_id", 1)])
    await db.bookings.create_index([("owner_id", 1)])
    # Consultas de agenda: cuidador + estado + rango
    await db.bookings.create_index([("sitter_id", 1), ("status", 1), ("start_date", 1), ("end_date", 1)])
    await db.notifications.create_index([("recipient_id", 1), ("created_at", -1)])
