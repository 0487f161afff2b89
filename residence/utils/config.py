"""Runtime settings loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _env_floors(name: str, default: tuple[int, ...]) -> tuple[int, ...]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return tuple(sorted({int(item) for item in raw.split(",") if item.strip()}))


@dataclass(frozen=True)
class Settings:
    app_name: str
    app_version: str
    database_path: Path
    log_level: str
    seed_demo_data: bool
    room_floors: tuple[int, ...]
    room_min_beds: int
    room_max_beds: int


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings once per process; tests derive variants with replace()."""
    return Settings(
        app_name=os.getenv("RESIDENCE_APP_NAME", "Residence Allocation Service"),
        app_version=os.getenv("RESIDENCE_APP_VERSION", "1.0.0"),
        database_path=Path(
            os.getenv("RESIDENCE_DATABASE_PATH", "data/residence.db")
        ),
        log_level=os.getenv("RESIDENCE_LOG_LEVEL", "INFO"),
        seed_demo_data=_env_bool("RESIDENCE_SEED_DEMO_DATA", False),
        room_floors=_env_floors("RESIDENCE_FLOORS", (1, 2, 3)),
        room_min_beds=_env_int("RESIDENCE_MIN_BEDS", 1),
        room_max_beds=_env_int("RESIDENCE_MAX_BEDS", 10),
    )
