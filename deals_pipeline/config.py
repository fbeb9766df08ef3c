"""
Application settings (Pydantic Settings).
"""
from pathlib import Path

from pydantic_settings import BaseSettings

# .env at the project root (parent of deals_pipeline/)
_env_path = Path(__file__).resolve().parent.parent / ".env"


class Settings(BaseSettings):
    database_url: str = "sqlite:///./deals_pipeline.db"
    log_level: str = "INFO"

    # Counsellor calendar. Only the safety window is enforced on bookings;
    # call + buffer describe the nominal interaction it covers.
    booking_call_minutes: int = 5
    booking_buffer_minutes: int = 5
    booking_safety_minutes: int = 15
    default_slot_minutes: int = 5

    class Config:
        env_file = _env_path
        extra = "ignore"


settings = Settings()
