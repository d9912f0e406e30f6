"""
Centralized configuration with environment variable overrides.

Business hours, booking-window thresholds and database settings are
configurable here. Nothing is hardcoded in scheduling or gateway logic.
"""

import logging
import os
from dataclasses import dataclass, field
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

from spa_booking.logging_context import RequestIdFilter
from spa_booking.utils import parse_hhmm

load_dotenv()

logger = logging.getLogger(__name__)


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


@dataclass(frozen=True)
class BusinessConfig:
    """Business identity, local timezone and opening hours."""

    name: str = os.getenv("BUSINESS_NAME", "Demo Spa & Wellness")
    timezone: str = os.getenv("BUSINESS_TIMEZONE", "Pacific/Guam")
    open_time: str = os.getenv("BUSINESS_OPEN", "09:00")
    close_time: str = os.getenv("BUSINESS_CLOSE", "20:00")


@dataclass(frozen=True)
class SchedulingConfig:
    """Booking-window rules and orchestrator retry bounds."""

    min_advance_minutes: int = _safe_int("MIN_ADVANCE_MINUTES", "120")
    max_advance_days: int = _safe_int("MAX_ADVANCE_DAYS", "30")
    slot_step_minutes: int = _safe_int("SLOT_STEP_MINUTES", "15")
    commit_retries: int = _safe_int("COMMIT_RETRIES", "1")
    abandoned_pending_minutes: int = _safe_int("ABANDONED_PENDING_MINUTES", "30")


@dataclass(frozen=True)
class DatabaseConfig:
    """Persistence gateway connection settings."""

    url: str = os.getenv("DATABASE_URL", "sqlite:///spa_booking.db")
    isolation_level: str = os.getenv("DB_ISOLATION_LEVEL", "SERIALIZABLE")
    pool_timeout_seconds: int = _safe_int("DB_POOL_TIMEOUT", "30")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    business: BusinessConfig = field(default_factory=BusinessConfig)
    scheduling: SchedulingConfig = field(default_factory=SchedulingConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    try:
        open_minute = parse_hhmm(config.business.open_time)
        close_minute = parse_hhmm(config.business.close_time)
    except ValueError as exc:
        raise ValueError(f"BUSINESS_OPEN/BUSINESS_CLOSE must be HH:MM: {exc}") from None
    if close_minute <= open_minute:
        raise ValueError(
            "BUSINESS_CLOSE must be after BUSINESS_OPEN, "
            f"got {config.business.open_time}-{config.business.close_time}"
        )
    try:
        ZoneInfo(config.business.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(
            f"BUSINESS_TIMEZONE is not a known timezone: {config.business.timezone!r}"
        ) from None

    sched = config.scheduling
    if sched.min_advance_minutes < 0:
        raise ValueError(
            f"MIN_ADVANCE_MINUTES must be >= 0, got {sched.min_advance_minutes}"
        )
    if sched.max_advance_days < 1:
        raise ValueError(f"MAX_ADVANCE_DAYS must be >= 1, got {sched.max_advance_days}")
    if not 1 <= sched.slot_step_minutes <= 60:
        raise ValueError(
            f"SLOT_STEP_MINUTES must be between 1 and 60, got {sched.slot_step_minutes}"
        )
    if not 0 <= sched.commit_retries <= 3:
        raise ValueError(f"COMMIT_RETRIES must be between 0 and 3, got {sched.commit_retries}")
    if sched.abandoned_pending_minutes < 1:
        raise ValueError(
            "ABANDONED_PENDING_MINUTES must be >= 1, "
            f"got {sched.abandoned_pending_minutes}"
        )

    if config.database.pool_timeout_seconds < 1:
        raise ValueError(
            f"DB_POOL_TIMEOUT must be >= 1, got {config.database.pool_timeout_seconds}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] [%(request_id)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, RequestIdFilter) for f in handler.filters):
            handler.addFilter(RequestIdFilter())
    logger.info("Configuration loaded for '%s'", config.business.name)
    return config


# Singleton instance
settings = load_config()
