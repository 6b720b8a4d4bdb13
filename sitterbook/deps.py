from fastapi import Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from .config import get_settings
from .db import get_db
from .services.bookings import BookingService
from .services.notifications import OutboxNotifier
from .stores.mongo import MongoBookingStore


async def get_store(db: AsyncIOMotorDatabase = Depends(get_db)):
    return MongoBookingStore(db, claim_attempts=get_settings().calendar_claim_attempts)


async def get_notifier(db: AsyncIOMotorDatabase = Depends(get_db)):
    return OutboxNotifier(db)


async def get_booking_service(store=Depends(get_store), notifier=Depends(get_notifier)) -> BookingService:
    return BookingService(store, notifier, get_settings())
