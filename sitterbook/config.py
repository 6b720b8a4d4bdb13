from pydantic import BaseModel
import os
from dotenv import load_dotenv
load_dotenv()  # carga el archivo .env de la raíz

class Settings(BaseModel):
    app_name: str = os.getenv("APP_NAME", "SitterBook")
    env: str = os.getenv("APP_ENV", "dev")
    mongodb_uri: str = os.getenv("MONGODB_URI", "mongodb://localhost:27017")
    db_name: str = os.getenv("DB_NAME", "sitterbook")
    jwt_secret: str = os.getenv("JWT_SECRET", "change-me")
    jwt_expires_hours: int = int(os.getenv("JWT_EXPIRES_HOURS", "8"))
    frontend_base_url: str = os.getenv("FRONTEND_BASE_URL", "http://localhost:5173")

    # Agenda: un cuidador atiende una reserva por día salvo que se cambie aquí
    max_bookings_per_day: int = int(os.getenv("MAX_BOOKINGS_PER_DAY", "1"))
    reminder_lead_hours: int = int(os.getenv("REMINDER_LEAD_HOURS", "24"))
    apply_rate_limit: str = os.getenv("APPLY_RATE_LIMIT", "15/minute")
    calendar_claim_attempts: int = int(os.getenv("CALENDAR_CLAIM_ATTEMPTS", "5"))


_settings: Settings | None = None
def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
