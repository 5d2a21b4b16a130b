from functools import lru_cache
import json
from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


BACKEND_ENV_FILE = Path(__file__).resolve().parents[2] / ".env"


class Settings(BaseSettings):
    # Resolve to backend/.env so `uvicorn --app-dir backend` works from any cwd.
    model_config = SettingsConfigDict(
        env_file=str(BACKEND_ENV_FILE),
        env_file_encoding="utf-8",
        env_prefix="SLOTGRID_",
    )

    project_name: str = "SlotGrid API"
    api_prefix: str = "/api"
    log_level: str = "INFO"

    database_url: str = "sqlite+pysqlite:///./slotgrid.db"

    grid_start_hour: int = 8
    grid_end_hour: int = 19
    pixels_per_minute: float = 1.0
    min_card_pixels: float = 30.0
    snap_minutes: int = 10
    cell_tolerance_minutes: int = 10
    lane_strategy: Literal["greedy", "input_order"] = "greedy"

    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    @field_validator("cors_origins", mode="before")
    @classmethod
    def split_cors_origins(cls, value: str | list[str]) -> list[str]:
        if isinstance(value, str):
            stripped = value.strip()
            if stripped.startswith("["):
                try:
                    parsed = json.loads(stripped)
                    if isinstance(parsed, list):
                        return [str(item).strip() for item in parsed if str(item).strip()]
                except json.JSONDecodeError:
                    pass
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        return value.strip().upper()

    @model_validator(mode="after")
    def validate_grid(self) -> "Settings":
        if not 0 <= self.grid_start_hour < self.grid_end_hour <= 24:
            raise ValueError("grid_end_hour must be after grid_start_hour within 0-24")
        if self.pixels_per_minute <= 0:
            raise ValueError("pixels_per_minute must be positive")
        if self.snap_minutes <= 0:
            raise ValueError("snap_minutes must be positive")
        if self.cell_tolerance_minutes < 0:
            raise ValueError("cell_tolerance_minutes cannot be negative")
        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()
