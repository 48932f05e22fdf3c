import math
from datetime import datetime, timezone
from typing import Any

from backend.errors import ValidationError
from backend.timeutils import parse_timestamp, reference_zone, same_calendar_day

SORTABLE_FIELDS = ("name", "email", "studentNumber", "country", "createdAt")
SORT_DIRECTIONS = ("asc", "desc")
RECENT_LIMIT = 10
UNKNOWN_STUDENT = "Unknown Student"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def sort_students(students: list[dict], field: str = "name", direction: str = "asc") -> list[dict]:
    if field not in SORTABLE_FIELDS:
        raise ValidationError(f"Cannot sort by '{field}'.")
    if direction not in SORT_DIRECTIONS:
        raise ValidationError(f"Sort order must be one of: {', '.join(SORT_DIRECTIONS)}.")

    def key(student: dict):
        value = student.get(field)
        if field == "createdAt":
            return parse_timestamp(value) or _EPOCH
        return str(value or "").lower()

    return sorted(students, key=key, reverse=direction == "desc")


def format_date(timestamp: str) -> str:
    """`Oct 19, 2026` in the reference zone."""
    moment = parse_timestamp(timestamp)
    if moment is None:
        return ""
    local = moment.astimezone(reference_zone())
    return f"{local.strftime('%b')} {local.day}, {local.year}"


def format_time(timestamp: str) -> str:
    """`08:05 AM` in the reference zone."""
    moment = parse_timestamp(timestamp)
    if moment is None:
        return ""
    return moment.astimezone(reference_zone()).strftime("%I:%M %p")


def attendance_rate(present: int, total: int) -> int:
    if total <= 0:
        return 0
    # halves round up
    return math.floor(present * 100 / total + 0.5)


def attendance_summary(students: list[dict], records: list[dict], now: datetime) -> dict[str, Any]:
    """Dashboard figures. `records` must already be sorted newest first."""
    names = {s["id"]: s.get("name") for s in students}
    present_today = sum(1 for r in records if same_calendar_day(r.get("timestamp"), now))

    recent = [
        {
            **r,
            "studentName": names.get(r.get("studentId")) or UNKNOWN_STUDENT,
            "date": format_date(r.get("timestamp")),
            "time": format_time(r.get("timestamp")),
        }
        for r in records[:RECENT_LIMIT]
    ]

    return {
        "totalStudents": len(students),
        "presentToday": present_today,
        "attendanceRate": attendance_rate(present_today, len(students)),
        "totalRecords": len(records),
        "lastCheckIn": records[0]["timestamp"] if records else None,
        "recentRecords": recent,
    }
