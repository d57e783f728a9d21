# backend/messenger/core/config.py
import os
from pathlib import Path
from dotenv import load_dotenv

# backend/messenger/core/config.py -> project root .env
env_path = Path(__file__).resolve().parent.parent.parent.parent / ".env"
load_dotenv(dotenv_path=env_path)


def _get_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _get_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value else default


def _get_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value else default


# --- Database ---
POSTGRES_USER = os.getenv("POSTGRES_USER")
POSTGRES_PASSWORD = os.getenv("POSTGRES_PASSWORD")
POSTGRES_HOST = os.getenv("POSTGRES_HOST", "db")
POSTGRES_PORT = os.getenv("POSTGRES_PORT", "5432")
POSTGRES_DB = os.getenv("POSTGRES_DB")

DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql+asyncpg://{POSTGRES_USER}:{POSTGRES_PASSWORD}@{POSTGRES_HOST}:{POSTGRES_PORT}/{POSTGRES_DB}",
)
DB_ECHO = _get_bool("DB_ECHO")

# --- Redis ---
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")

# --- HTTP ---
ALLOWED_ORIGINS = [origin.strip() for origin in os.getenv("ALLOWED_ORIGINS", "*").split(",")]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# --- Identity provider (external JWT issuer) ---
AUTH_JWT_KEY = os.getenv("AUTH_JWT_KEY", "change-me-identity-provider-secret")
AUTH_JWT_ALGORITHMS = [alg.strip() for alg in os.getenv("AUTH_JWT_ALGORITHMS", "HS256").split(",")]
AUTH_JWT_AUDIENCE = os.getenv("AUTH_JWT_AUDIENCE") or None
AUTH_JWT_ISSUER = os.getenv("AUTH_JWT_ISSUER") or None

# --- Liveness windows (seconds) ---
# Presence is derived from last_seen against this threshold.
ONLINE_THRESHOLD_SECONDS = _get_float("ONLINE_THRESHOLD_SECONDS", 60)
# Storage-side typing liveness window used by get_active_typers.
TYPING_WINDOW_SECONDS = _get_float("TYPING_WINDOW_SECONDS", 3)
# Client-side values; published through /v1/config/client, never enforced here.
CLIENT_TYPING_WINDOW_SECONDS = _get_float("CLIENT_TYPING_WINDOW_SECONDS", 2)
TYPING_THROTTLE_SECONDS = _get_float("TYPING_THROTTLE_SECONDS", 2)
HEARTBEAT_INTERVAL_SECONDS = _get_float("HEARTBEAT_INTERVAL_SECONDS", 30)
# Typing rows older than this are deleted opportunistically.
TYPING_RETENTION_SECONDS = _get_float("TYPING_RETENTION_SECONDS", 60)

# --- Message paging ---
DEFAULT_PAGE_SIZE = _get_int("DEFAULT_PAGE_SIZE", 20)
MAX_PAGE_SIZE = _get_int("MAX_PAGE_SIZE", 100)

# --- Object storage (S3 compatible) ---
S3_ENDPOINT_URL = os.getenv("S3_ENDPOINT_URL") or None
S3_BUCKET = os.getenv("S3_BUCKET", "messenger-attachments")
S3_REGION = os.getenv("S3_REGION", "us-east-1")
S3_ACCESS_KEY_ID = os.getenv("S3_ACCESS_KEY_ID") or None
S3_SECRET_ACCESS_KEY = os.getenv("S3_SECRET_ACCESS_KEY") or None
S3_PRESIGNED_TTL_SECONDS = _get_int("S3_PRESIGNED_TTL_SECONDS", 3600)
S3_KEY_PREFIX = os.getenv("S3_KEY_PREFIX", "attachments/")
