import os
from datetime import time

from dotenv import load_dotenv


load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_time(value: str | None, default: time) -> time:
    if not value:
        return default
    return time.fromisoformat(value.strip())


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./agenda.db")
DATABASE_ECHO = _get_bool(os.getenv("DATABASE_ECHO"), default=False)
REPOSITORY_TIMEOUT_SECONDS = float(os.getenv("REPOSITORY_TIMEOUT_SECONDS", "5"))

DEFAULT_TIMEZONE = os.getenv("DEFAULT_TIMEZONE", "America/Sao_Paulo")
DEFAULT_OPEN_TIME = _get_time(os.getenv("DEFAULT_OPEN_TIME"), time(9, 0))
DEFAULT_CLOSE_TIME = _get_time(os.getenv("DEFAULT_CLOSE_TIME"), time(19, 0))
DEFAULT_SLOT_GRANULARITY_MINUTES = int(os.getenv("DEFAULT_SLOT_GRANULARITY_MINUTES", "30"))
DEFAULT_SERVICE_DURATION_MINUTES = int(os.getenv("DEFAULT_SERVICE_DURATION_MINUTES", "30"))

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_TENANT_CLAIM = os.getenv("JWT_TENANT_CLAIM", "business_id")

CORS_ALLOW_ORIGINS = _get_list(os.getenv("CORS_ALLOW_ORIGINS"), ["http://localhost:3000"])


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if DEFAULT_OPEN_TIME >= DEFAULT_CLOSE_TIME:
        raise RuntimeError("DEFAULT_OPEN_TIME must be before DEFAULT_CLOSE_TIME.")
    if DEFAULT_SLOT_GRANULARITY_MINUTES <= 0:
        raise RuntimeError("DEFAULT_SLOT_GRANULARITY_MINUTES must be positive.")
