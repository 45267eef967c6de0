"""Application configuration via environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Recovery Office API
    api_base_url: str = "http://localhost:5000/api"
    api_timeout_seconds: float = 10.0

    # Redis
    redis_url: str = "redis://localhost:6379/0"

    # App
    log_level: str = "INFO"
    environment: str = "development"
    cors_origins: list[str] = ["http://localhost:3000"]

    # Session
    session_ttl_seconds: int = 7200  # 2 hours
    max_live_sessions: int = 1000

    # Booking
    verify_identifiers_remotely: bool = True
    booking_horizon_days: int = 90
    reference_prefix: str = "RO"
    business_timezone: str = "Europe/London"
    business_hours: list[str] = [
        "09:00-10:00",
        "10:00-11:00",
        "11:00-12:00",
        "14:00-15:00",
        "15:00-16:00",
        "16:00-17:00",
    ]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
