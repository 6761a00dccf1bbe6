import os

from dotenv import load_dotenv


load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


APP_ENV = os.getenv("APP_ENV", "development")
SQL_ECHO = _get_bool(os.getenv("SQL_ECHO"), default=False)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./dietbook.db")
STORAGE_TIMEOUT_SECONDS = int(os.getenv("STORAGE_TIMEOUT_SECONDS", "10"))

DEFAULT_TIMEZONE = os.getenv("DEFAULT_TIMEZONE", "Africa/Lagos")
DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "NGN")

# Slots must start strictly after now + lead time.
SLOT_LEAD_TIME_MINUTES = int(os.getenv("SLOT_LEAD_TIME_MINUTES", "0"))
SLOT_RANGE_MAX_DAYS = int(os.getenv("SLOT_RANGE_MAX_DAYS", "62"))

STREAM_POLL_SECONDS = float(os.getenv("STREAM_POLL_SECONDS", "5"))
STREAM_KEEPALIVE_SECONDS = float(os.getenv("STREAM_KEEPALIVE_SECONDS", "30"))
STREAM_MAX_BACKOFF_SECONDS = float(os.getenv("STREAM_MAX_BACKOFF_SECONDS", "60"))

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))

CORS_ORIGINS = _get_list(os.getenv("CORS_ORIGINS"), default=["http://localhost:3000"])


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if SLOT_LEAD_TIME_MINUTES < 0:
        raise RuntimeError("SLOT_LEAD_TIME_MINUTES cannot be negative.")
    if SLOT_RANGE_MAX_DAYS < 1:
        raise RuntimeError("SLOT_RANGE_MAX_DAYS must be at least 1.")
