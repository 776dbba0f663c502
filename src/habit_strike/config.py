# src/habit_strike/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- Nothing required at import time: every value has a default.
- Malformed numbers fall back to defaults instead of crashing startup.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

ENV_PREFIX = "HABIT"

DELETE_POLICIES = ("cascade", "orphan")


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv_if_available() -> None:
    """Load .env locally if python-dotenv is installed. Safe no-op otherwise."""
    try:
        from dotenv import load_dotenv  # type: ignore
    except Exception:
        return
    load_dotenv(override=False)


_load_dotenv_if_available()


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_optional_int(name: str) -> int | None:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    db_path: Path

    # ---- Backfill ----
    backfill_horizon_days: int | None
    backfill_workers: int
    store_timeout_seconds: float

    # ---- Trigger ----
    trigger_enabled: bool
    trigger_interval_seconds: float
    trigger_retry_seconds: float

    # ---- Store / scoring policy ----
    delete_policy: str
    score_orphans: bool

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "habit-strike").strip() or "habit-strike"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/habit"))
        db_path = _env_path(_k("DB_PATH"), data_dir / "habits.sqlite3")

        horizon = _env_optional_int(_k("BACKFILL_HORIZON_DAYS"))
        if horizon is not None and horizon < 0:
            horizon = None

        delete_policy = _env(_k("DELETE_POLICY"), "cascade").strip().lower()
        if delete_policy not in DELETE_POLICIES:
            delete_policy = "cascade"

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            db_path=db_path,
            backfill_horizon_days=horizon,
            backfill_workers=max(1, _env_int(_k("BACKFILL_WORKERS"), 1)),
            store_timeout_seconds=max(0.1, _env_float(_k("STORE_TIMEOUT_SECONDS"), 10.0)),
            trigger_enabled=_env_bool(_k("TRIGGER_ENABLED"), True),
            trigger_interval_seconds=_env_float(_k("TRIGGER_INTERVAL_SECONDS"), 900.0),
            trigger_retry_seconds=_env_float(_k("TRIGGER_RETRY_SECONDS"), 60.0),
            delete_policy=delete_policy,
            score_orphans=_env_bool(_k("SCORE_ORPHANS"), True),
        )


SETTINGS = Settings.from_env()

# ---- Optional local overrides (never committed) ----
try:
    import config_local as _config_local  # type: ignore

    if hasattr(_config_local, "BACKFILL_HORIZON_DAYS"):
        object.__setattr__(SETTINGS, "backfill_horizon_days", _config_local.BACKFILL_HORIZON_DAYS)  # type: ignore[misc]
    if hasattr(_config_local, "TRIGGER_ENABLED"):
        object.__setattr__(SETTINGS, "trigger_enabled", bool(_config_local.TRIGGER_ENABLED))  # type: ignore[misc]
except ImportError:
    pass


def get_settings() -> Settings:
    return SETTINGS
