import os
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

BASE_DIR = Path(__file__).resolve().parents[1]

DB_PATH = Path(os.getenv("QRATTEND_DB_PATH", BASE_DIR / "database" / "qrattend.db"))
LOG_LEVEL = os.getenv("QRATTEND_LOG_LEVEL", "INFO").strip().upper() or "INFO"


def _parse_bool(value: str | None, fallback: bool) -> bool:
    if value is None:
        return fallback
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return fallback


def _parse_csv(value: str | None, fallback: list[str]) -> list[str]:
    if not value:
        return fallback
    parsed = [item.strip() for item in value.split(",") if item.strip()]
    return parsed or fallback


def _parse_int(value: str | None, fallback: int, minimum: int = 1) -> int:
    if not value:
        return fallback
    try:
        return max(minimum, int(value))
    except ValueError:
        return fallback


def _parse_timezone(value: str | None, fallback: str = "UTC") -> str:
    name = (value or "").strip()
    if not name or name.upper() == "UTC":
        return fallback
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return fallback
    return name


TIMEZONE = _parse_timezone(os.getenv("QRATTEND_TIMEZONE"))


CORS_ALLOW_ORIGINS = _parse_csv(
    os.getenv("QRATTEND_CORS_ALLOW_ORIGINS"),
    ["http://localhost:5173", "http://127.0.0.1:5173"],
)
CORS_ALLOW_METHODS = _parse_csv(
    os.getenv("QRATTEND_CORS_ALLOW_METHODS"),
    ["GET", "POST", "PUT", "DELETE", "OPTIONS"],
)
CORS_ALLOW_HEADERS = _parse_csv(
    os.getenv("QRATTEND_CORS_ALLOW_HEADERS"),
    ["Authorization", "Content-Type", "Accept"],
)
CORS_ALLOW_CREDENTIALS = _parse_bool(os.getenv("QRATTEND_CORS_ALLOW_CREDENTIALS"), True)
ENABLE_DEBUG_ENDPOINTS = _parse_bool(os.getenv("QRATTEND_ENABLE_DEBUG_ENDPOINTS"), False)
SEED_ON_STARTUP = _parse_bool(os.getenv("QRATTEND_SEED_ON_STARTUP"), False)

# QR rendering / decoding
QR_SCALE = _parse_int(os.getenv("QRATTEND_QR_SCALE"), 8)
QR_QUIET_ZONE_MODULES = 4
ACCEPTED_IMAGE_TYPES = ("image/jpeg", "image/png")
