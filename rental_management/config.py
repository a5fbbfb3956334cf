from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

STORAGE_BACKENDS = {"json", "sql"}

_TRUTHY = {"1", "true", "yes", "on"}


def _env_str(name: str, default: str) -> str:
    return (os.environ.get(name) or default).strip()


def _env_int(name: str, default: str) -> int:
    raw = _env_str(name, default)
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


def _env_float(name: str, default: str) -> float:
    raw = _env_str(name, default)
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


def _env_bool(name: str, default: str) -> bool:
    return _env_str(name, default).lower() in _TRUTHY


@dataclass(frozen=True)
class RentalSettings:
    data_dir: Path = Path("data")
    storage_backend: str = "json"
    database_url: str = "sqlite:///rental.db"
    late_fee_per_day: float = 50.0
    max_failed_logins: int = 3
    max_rental_days: int = 365
    max_daily_rate: float = 10000.0
    equipment_id_floor: int = 100
    seed_defaults: bool = True
    password_iterations: int = 120000

    def __post_init__(self) -> None:
        if self.storage_backend not in STORAGE_BACKENDS:
            raise ValueError(f"Unknown storage backend: {self.storage_backend}")
        if self.late_fee_per_day < 0:
            raise ValueError("late_fee_per_day must be >= 0")
        if self.max_failed_logins < 1:
            raise ValueError("max_failed_logins must be >= 1")
        if self.max_rental_days < 1:
            raise ValueError("max_rental_days must be >= 1")
        if self.max_daily_rate <= 0:
            raise ValueError("max_daily_rate must be > 0")
        if self.equipment_id_floor < 0:
            raise ValueError("equipment_id_floor must be >= 0")
        if self.password_iterations < 1:
            raise ValueError("password_iterations must be >= 1")

    @classmethod
    def from_env(cls) -> "RentalSettings":
        load_dotenv()
        return cls(
            data_dir=Path(_env_str("RENTAL_DATA_DIR", "data")),
            storage_backend=_env_str("RENTAL_STORAGE_BACKEND", "json").lower(),
            database_url=_env_str("RENTAL_DB_URL", "sqlite:///rental.db"),
            late_fee_per_day=_env_float("RENTAL_LATE_FEE_PER_DAY", "50.0"),
            max_failed_logins=_env_int("RENTAL_MAX_FAILED_LOGINS", "3"),
            max_rental_days=_env_int("RENTAL_MAX_RENTAL_DAYS", "365"),
            max_daily_rate=_env_float("RENTAL_MAX_DAILY_RATE", "10000"),
            equipment_id_floor=_env_int("RENTAL_EQUIPMENT_ID_FLOOR", "100"),
            seed_defaults=_env_bool("RENTAL_SEED_DEFAULTS", "true"),
            password_iterations=_env_int("RENTAL_PASSWORD_ITERATIONS", "120000"),
        )
