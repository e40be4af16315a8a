from pydantic_settings import BaseSettings
from typing import List
import os
from dotenv import load_dotenv

load_dotenv()

class Settings(BaseSettings):
    # App Settings
    APP_NAME: str = os.getenv("APP_NAME", "LessonBook")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # MongoDB Settings
    MONGO_URI: str = os.getenv("MONGO_URI", "mongodb://localhost:27017")
    DB_NAME: str = os.getenv("DB_NAME", "lessonbook_db")
    MONGO_SERVER_TIMEOUT_MS: int = int(os.getenv("MONGO_SERVER_TIMEOUT_MS", "5000"))

    # JWT Auth
    SECRET_KEY: str = os.getenv("SECRET_KEY", "your_secret_key_here")
    ALGORITHM: str = os.getenv("ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))

    # CORS
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",  # React frontend
        "http://localhost:5173",  # Vite dev server
    ]

    # Availability defaults
    DEFAULT_SLOT_INTERVAL: int = int(os.getenv("DEFAULT_SLOT_INTERVAL", "30"))
    DEFAULT_SLOT_START_POLICY: str = os.getenv("DEFAULT_SLOT_START_POLICY", "snapToHalfHour")
    MAX_SLOT_QUERY_DAYS: int = int(os.getenv("MAX_SLOT_QUERY_DAYS", "62"))

    # Booking guard
    BOOKING_LOCK_TTL_SECONDS: int = int(os.getenv("BOOKING_LOCK_TTL_SECONDS", "30"))
    BOOKING_LOCK_WAIT_SECONDS: float = float(os.getenv("BOOKING_LOCK_WAIT_SECONDS", "5"))
    BOOKING_LOCK_POLL_SECONDS: float = float(os.getenv("BOOKING_LOCK_POLL_SECONDS", "0.05"))
    BOOKING_TIMEOUT_SECONDS: float = float(os.getenv("BOOKING_TIMEOUT_SECONDS", "10"))

    # Lesson policies
    RESCHEDULE_MIN_NOTICE_HOURS: int = int(os.getenv("RESCHEDULE_MIN_NOTICE_HOURS", "24"))

    class Config:
        env_file = ".env"
        case_sensitive = True

settings = Settings()
