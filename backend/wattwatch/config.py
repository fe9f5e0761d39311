"""WattWatch configuration — Pydantic BaseSettings loaded from .env."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    app_name: str = "WattWatch"
    debug: bool = True
    environment: str = "development"
    log_level: str = "INFO"

    # Network
    host: str = "127.0.0.1"
    port: int = 8000
    api_prefix: str = "/api"
    cors_origins: list[str] = [
        "http://localhost:5173",
        "http://localhost:8000",
    ]

    # Auth
    secret_key: str = "change-me-in-prod"
    token_algorithm: str = "HS256"
    token_expire_minutes: int = 60 * 24 * 7  # 7 days
    password_hash_rounds: int = 12

    # Storage
    data_dir: str = "./data"
    database_path: str = "./data/wattwatch.db"
    max_db_connections: int = 5

    # Tariff defaults for new homes (currency per kWh)
    default_electricity_rate: float = 6.0
    default_fixed_charges: float = 50.0
    default_tariff_slabs: list[dict] = [
        {"min_units": 0, "max_units": 100, "rate": 3.00},
        {"min_units": 101, "max_units": 300, "rate": 5.50},
        {"min_units": 301, "max_units": 500, "rate": 7.00},
        {"min_units": 501, "max_units": None, "rate": 8.50},
    ]
    currency: str = "INR"

    # Electrical figures stamped on finalized session readings
    nominal_voltage: float = 230.0
    nominal_power_factor: float = 0.95

    # Background jobs
    alert_check_enabled: bool = True
    alert_check_minute: int = 0  # cron minute, every hour

    # Client polling cadence (seconds)
    consumption_poll_seconds: float = 5.0
    dashboard_refresh_seconds: float = 30.0

    uvicorn_workers: int = 1

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),
        env_file_encoding="utf-8",
        env_prefix="WATTWATCH_",
        extra="ignore",
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def assemble_cors_origins(cls, value: list[str] | str) -> list[str]:
        if isinstance(value, str) and not value.startswith("["):
            return [o.strip() for o in value.split(",") if o.strip()]
        if isinstance(value, list):
            return value
        return ["http://localhost:5173"]

    @model_validator(mode="after")
    def _resolve_paths(self) -> "Settings":
        """Ensure data paths are absolute."""
        base = Path(__file__).resolve().parent.parent  # backend/
        for field in ("data_dir", "database_path"):
            val = getattr(self, field)
            if val != ":memory:" and not Path(val).is_absolute():
                setattr(self, field, str(base / val))
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
