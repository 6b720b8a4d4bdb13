# sitterbook/utils.py
from typing import Any, Dict, Optional
from bson import ObjectId
from datetime import date, datetime, timedelta, timezone

def to_id(doc: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Convierte _id -> id (str) y los ObjectIds restantes a strings.
    Las fechas se devuelven como datetime UTC con zona horaria.
    Si doc es None, devuelve {}.
    """
    if doc is None:
        return {}
    d = dict(doc)

    if "_id" in d:
        d["id"] = str(d.pop("_id"))

    for key, value in d.items():
        if isinstance(value, ObjectId):
            d[key] = str(value)
        elif isinstance(value, datetime):
            d[key] = as_utc(value)
        elif isinstance(value, dict):
            d[key] = to_id(value)

    return d

# ==================== Fechas ====================

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def as_utc(value: datetime) -> datetime:
    """Mongo devuelve datetimes naive en UTC; les ponemos la zona explícita."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)

def to_storage(value: datetime) -> datetime:
    """Datetime naive en UTC, tal y como lo guarda Mongo."""
    return as_utc(value).replace(tzinfo=None)

def day_start(day: date) -> datetime:
    return datetime(day.year, day.month, day.day, tzinfo=timezone.utc)

def days_between_inclusive(start: date, end: date) -> list[date]:
    days = []
    cur = start
    while cur <= end:
        days.append(cur)
        cur += timedelta(days=1)
    return days

# ==================== Utilidades de Base de Datos ====================

def new_id() -> str:
    return str(ObjectId())
