from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv

log = logging.getLogger("uvicorn.error")

ROOT_DIR = Path(__file__).resolve().parents[1]
load_dotenv(ROOT_DIR / ".env")

PACKAGE_DIR = Path(__file__).resolve().parent
TEMPLATES_DIR = PACKAGE_DIR / "templates"


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        log.warning("Ignoring non-integer %s=%r; using %s", name, raw, default)
        return default


APP_ENV = (os.environ.get("APP_ENV") or "development").strip().lower()

MONGO_URL = os.environ.get("MONGO_URL", "mongodb://localhost:27017")
DB_NAME = os.environ.get("DB_NAME", "permitdesk")

JWT_ALGORITHM = os.environ.get("JWT_ALGORITHM", "HS256")
JWT_ACCESS_TTL = _env_int("JWT_ACCESS_TTL", 60 * 60 * 24)
JWT_REFRESH_TTL = _env_int("JWT_REFRESH_TTL", 60 * 60 * 24 * 30)

BCRYPT_ROUNDS = _env_int("BCRYPT_ROUNDS", 12)

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
PORT = _env_int("PORT", 8000)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
UNKNOWN_ADDRESS = "Unknown location"

if not os.environ.get("JWT_SECRET") and APP_ENV in {"production", "staging"}:
    raise RuntimeError(
        "JWT_SECRET is required when APP_ENV is set to production or staging."
    )
if not os.environ.get("JWT_SECRET"):
    log.warning("JWT_SECRET not set; using insecure default. Set JWT_SECRET in production.")


def jwt_secret() -> str:
    secret = os.environ.get("JWT_SECRET")
    if secret:
        return secret
    return "dev-secret-key"


def cors_origins() -> List[str]:
    raw = os.environ.get("CORS_ORIGINS", "*")
    origins = [value.strip() for value in raw.split(",") if value.strip()]
    return origins or ["*"]


def bootstrap_admin() -> dict:
    return {
        "email": (os.environ.get("BOOTSTRAP_ADMIN_EMAIL") or "").strip().lower(),
        "password": os.environ.get("BOOTSTRAP_ADMIN_PASSWORD") or "",
        "name": (os.environ.get("BOOTSTRAP_ADMIN_NAME") or "Administrator").strip(),
    }
