from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve .env from project root so it loads regardless of cwd
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(str(_ENV_FILE), ".env", "../.env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str

    # CORS
    cors_origins: str = "http://localhost:3000"

    # Slot computation rules
    min_slot_duration_minutes: int = 15
    max_slot_duration_minutes: int = 240
    min_buffer_minutes: int = 0
    max_buffer_minutes: int = 60
    default_slot_duration_minutes: int = 30
    default_buffer_minutes: int = 15
    max_advance_days: int = 90
    weekly_max_days: int = 31
    next_slot_search_days: int = 30

    # Reservation holds
    hold_ttl_minutes: int = 10
    max_hold_ttl_minutes: int = 60

    # When true, pending and counter-offered requests block their slot too
    reserve_slots_during_negotiation: bool = False

    # Clinic-local wall clock; the engine does no per-request timezone conversion
    clinic_timezone: str = "UTC"

    # Env
    env: str = "development"

    # Branding used in notification text
    site_name: str = "Clinic Booking"

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    def local_now(self) -> datetime:
        """Naive datetime in the clinic's local zone."""
        return datetime.now(ZoneInfo(self.clinic_timezone)).replace(tzinfo=None)


settings = Settings()
