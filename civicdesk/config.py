# Shared configuration, logging and helpers for the civic issue backend

import os
import uuid
import secrets
import logging
from pathlib import Path
from datetime import datetime, timezone

from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------
_package_dir = Path(__file__).resolve().parent
for _env_path in [_package_dir / ".env", _package_dir.parent / ".env", Path.cwd() / ".env"]:
    if _env_path.is_file():
        load_dotenv(_env_path)
        break
else:
    load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "4000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

TOKEN_SCHEME = os.getenv("TOKEN_SCHEME", "dev").lower()
JWT_SECRET = os.getenv("JWT_SECRET", "")
JWT_ALGORITHM = "HS256"
JWT_EXPIRE_HOURS = int(os.getenv("JWT_EXPIRE_HOURS", "0"))
PASSWORD_HASH_ROUNDS = int(os.getenv("PASSWORD_HASH_ROUNDS", "12"))

MIN_PHOTO_BYTES = int(os.getenv("MIN_PHOTO_BYTES", "10000"))
DEFAULT_CATEGORY = os.getenv("DEFAULT_CATEGORY", "Other")

ESCALATION_INTERVAL_SECONDS = float(os.getenv("ESCALATION_INTERVAL_SECONDS", "60"))
ESCALATION_STALE_DAYS = float(os.getenv("ESCALATION_STALE_DAYS", "7"))
ESCALATION_DEPARTMENT = os.getenv("ESCALATION_DEPARTMENT", "Commissioner")

MAX_BODY_BYTES = int(os.getenv("MAX_BODY_BYTES", str(25 * 1024 * 1024)))
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
RATE_LIMIT_SIGNUP = os.getenv("RATE_LIMIT_SIGNUP", "10/minute")
RATE_LIMIT_LOGIN = os.getenv("RATE_LIMIT_LOGIN", "20/minute")
SEED_DEMO_DATA = _env_bool("SEED_DEMO_DATA")

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def new_id() -> str:
    return uuid.uuid4().hex


def new_issue_id(now: datetime) -> str:
    """Millisecond timestamp in fixed-width hex plus a random suffix.

    Ids sort lexicographically in creation order across milliseconds.
    """
    millis = int(now.timestamp() * 1000)
    return f"{millis:012x}{secrets.token_hex(6)}"


def now_utc() -> datetime:
    return datetime.now(timezone.utc)
