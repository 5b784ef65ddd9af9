import os



def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]

APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./marketplace.db")
DATABASE_ECHO = _get_bool(os.getenv("DATABASE_ECHO"), default=False)
SQLITE_BUSY_TIMEOUT_SECONDS = float(os.getenv("SQLITE_BUSY_TIMEOUT_SECONDS", "30"))

CORS_ORIGINS = _get_list(os.getenv("CORS_ORIGINS"), ["http://localhost:8081"])

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))

# Clients may cancel only while now < slot start - this many minutes.
CANCELLATION_WINDOW_MINUTES = int(os.getenv("CANCELLATION_WINDOW_MINUTES", "60"))

MAX_SLOTS_PER_REQUEST = 100
PROVIDER_NEXT_SLOTS_LIMIT = 20


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if CANCELLATION_WINDOW_MINUTES < 0:
        raise RuntimeError("CANCELLATION_WINDOW_MINUTES must not be negative.")
