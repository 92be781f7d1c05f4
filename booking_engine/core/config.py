from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve .env from the project root so it loads regardless of cwd
_BACKEND_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _BACKEND_ROOT / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(str(_ENV_FILE), ".env", "../.env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str

    # JWT (tokens are issued by the portal's auth provider; we only verify them)
    secret_key: str
    access_token_expire_minutes: int = 15
    algorithm: str = "HS256"

    # CORS
    cors_origins: str = "http://localhost:3000"

    # Booking sessions
    booking_session_ttl_minutes: int = 120
    booking_token_prefix: str = "booking_"
    booking_token_entropy_bytes: int = 32  # 256 bits
    booking_token_max_age_minutes: int = 120

    # Slot rules
    slot_buffer_minutes: int = 15
    min_duration_minutes: int = 15
    max_duration_minutes: int = 480

    # Reminder offsets before the appointment start
    reminder_24h_minutes: int = 24 * 60
    reminder_1h_minutes: int = 60

    # Env
    env: str = "development"

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def is_postgres(self) -> bool:
        return self.database_url.startswith(("postgresql", "postgres"))


settings = Settings()
