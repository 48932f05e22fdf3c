import logging
from datetime import date, datetime, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from backend.config import TIMEZONE

logger = logging.getLogger(__name__)


def reference_zone() -> tzinfo:
    if TIMEZONE.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown time zone %r; comparing days in UTC", TIMEZONE)
        return timezone.utc


def now_utc() -> datetime:
    """Current time as an aware UTC datetime.

    Wrapped so tests can patch it.
    """
    return datetime.now(timezone.utc)


def to_iso(moment: datetime) -> str:
    """Format as `YYYY-MM-DDTHH:MM:SS.mmmZ`."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value) -> datetime | None:
    """Parse an ISO-8601 string; naive values are taken as UTC."""
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def calendar_day(moment: datetime) -> date:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(reference_zone()).date()


def same_calendar_day(timestamp, now: datetime) -> bool:
    parsed = parse_timestamp(timestamp)
    if parsed is None:
        return False
    return calendar_day(parsed) == calendar_day(now)
