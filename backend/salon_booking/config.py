# backend/salon_booking/config.py

from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[2]  # repo root


class Settings(BaseSettings):
    database_url: str = "sqlite:///./data/booking.db"
    redis_url: str = "redis://localhost:6379/0"
    redis_socket_timeout: float = 2.0

    log_level: str = "INFO"
    owner_email: str = "owner@example.com"

    # Bounded wait for the (specialist, date) claim lock
    claim_lock_timeout_seconds: float = 5.0

    # Slot grid
    slot_step_minutes: int = 30
    horizon_days: int = 60
    min_advance_minutes: int = 0

    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        extra="ignore",
    )

    @property
    def resolved_database_url(self) -> str:
        url = self.database_url
        if url.startswith("sqlite:///./"):
            relative_path = url.replace("sqlite:///./", "")
            absolute_path = BASE_DIR / relative_path
            return f"sqlite:///{absolute_path}"
        return url


settings = Settings()
