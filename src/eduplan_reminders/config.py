# src/eduplan_reminders/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
- Empty API URL means "run against the local SQLite store".
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import tzinfo
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

ENV_PREFIX = "EDUPLAN"


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


def _resolve_timezone(name: str) -> ZoneInfo:
    """IANA zone for EDUPLAN_TIMEZONE; an unknown name is a configuration error."""
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"{_k('TIMEZONE')}={name!r} is not a known time zone") from e


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    console_enabled: bool

    # ---- Calendar backend ----
    api_base_url: str
    api_token: str | None
    http_timeout_seconds: float

    # ---- Session ----
    user_id: str | None
    timezone: str

    # ---- Scheduler tuning ----
    check_interval_seconds: float
    refetch_interval_seconds: float
    window_days: int

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    tasks_db_path: Path

    def tzinfo(self) -> tzinfo | None:
        """Configured zone, or None for the system local zone."""
        if not self.timezone:
            return None
        return _resolve_timezone(self.timezone)

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "eduplan-reminders") or "eduplan-reminders"
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)

        api_base_url = _env(_k("API_BASE_URL"), "").strip().rstrip("/")
        api_token = _env(_k("API_TOKEN"), "").strip() or None
        http_timeout_seconds = _env_float(_k("HTTP_TIMEOUT_SECONDS"), 10.0)

        user_id = _env(_k("USER_ID"), "").strip() or None
        timezone = _env(_k("TIMEZONE"), "").strip()
        if timezone:
            _resolve_timezone(timezone)

        check_interval_seconds = _env_float(_k("CHECK_INTERVAL_SECONDS"), 60.0)
        refetch_interval_seconds = _env_float(_k("REFETCH_INTERVAL_SECONDS"), 0.0)
        window_days = _env_int(_k("WINDOW_DAYS"), 7)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/eduplan"))
        tasks_db_path = _env_path(_k("TASKS_DB_PATH"), data_dir / "calendar.sqlite3")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            console_enabled=console_enabled,
            api_base_url=api_base_url,
            api_token=api_token,
            http_timeout_seconds=http_timeout_seconds,
            user_id=user_id,
            timezone=timezone,
            check_interval_seconds=check_interval_seconds,
            refetch_interval_seconds=refetch_interval_seconds,
            window_days=window_days,
            data_dir=data_dir,
            tasks_db_path=tasks_db_path,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
