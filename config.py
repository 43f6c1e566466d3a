import logging
import os
from dataclasses import dataclass


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw not in (None, "") else default


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    return float(raw) if raw not in (None, "") else default


@dataclass(frozen=True)
class Settings:
    mongo_url: str = "mongodb://localhost:27017"
    database_name: str = "book_rental"
    jwt_secret: str = "change-this-secret"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 7
    rental_limit: int = 3
    default_rental_days: int = 14
    default_late_fee_per_day: float = 20
    recommendation_limit: int = 6
    overdue_scan_interval_seconds: int = 60 * 60 * 24
    log_level: str = "INFO"
    port: int = 8000


def load_settings() -> Settings:
    """Build settings from the process environment."""
    return Settings(
        mongo_url=os.getenv("MONGO_URL", Settings.mongo_url),
        database_name=os.getenv("DATABASE_NAME", Settings.database_name),
        jwt_secret=os.getenv("JWT_SECRET", Settings.jwt_secret),
        access_token_expire_minutes=_int_env("ACCESS_TOKEN_EXPIRE_MINUTES", Settings.access_token_expire_minutes),
        rental_limit=_int_env("RENTAL_LIMIT", Settings.rental_limit),
        default_rental_days=_int_env("DEFAULT_RENTAL_DAYS", Settings.default_rental_days),
        default_late_fee_per_day=_float_env("DEFAULT_LATE_FEE_PER_DAY", Settings.default_late_fee_per_day),
        recommendation_limit=_int_env("RECOMMENDATION_LIMIT", Settings.recommendation_limit),
        overdue_scan_interval_seconds=_int_env("OVERDUE_SCAN_INTERVAL_SECONDS", Settings.overdue_scan_interval_seconds),
        log_level=os.getenv("LOG_LEVEL", Settings.log_level),
        port=_int_env("PORT", Settings.port),
    )


def configure_logging(level: str = "INFO") -> logging.Logger:
    logger = logging.getLogger("bookrental")
    logger.setLevel(level.upper())
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s"))
        logger.addHandler(handler)
    return logger
