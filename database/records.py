import logging
import threading
import time
from datetime import date, datetime
from typing import Any

from backend.errors import NotFound
from backend.timeutils import now_utc, parse_timestamp, same_calendar_day, to_iso
from database.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

STUDENT_PREFIX = "student:"
ATTENDANCE_PREFIX = "attendance:"
CHECKIN_PREFIX = "checkin:"

STUDENT_REQUIRED = ("id", "name", "email")
ATTENDANCE_REQUIRED = ("id", "studentId", "timestamp")
ATTENDANCE_STATUSES = ("present", "absent", "late")

Student = dict[str, Any]
AttendanceRecord = dict[str, Any]


class TimeBasedIds:
    """`<PREFIX><epoch-millis>` ids, strictly increasing within this process."""

    def __init__(self):
        self._lock = threading.Lock()
        self._last = 0

    def next(self, prefix: str) -> str:
        with self._lock:
            value = int(time.time() * 1000)
            if value <= self._last:
                value = self._last + 1
            self._last = value
        return f"{prefix}{value}"


ID_GENERATOR = TimeBasedIds()


def has_fields(entry: Any, fields: tuple[str, ...]) -> bool:
    return isinstance(entry, dict) and all(entry.get(f) for f in fields)


def _newest_first(records: list[AttendanceRecord]) -> list[AttendanceRecord]:
    def key(record: AttendanceRecord) -> float:
        parsed = parse_timestamp(record.get("timestamp"))
        return parsed.timestamp() if parsed else float("-inf")

    return sorted(records, key=key, reverse=True)


def checkin_key(student_id: str, day: date) -> str:
    return f"{CHECKIN_PREFIX}{student_id}:{day.isoformat()}"


class RecordRepository:
    """Typed access to `student:<id>` and `attendance:<id>` documents."""

    def __init__(self, store: KeyValueStore, ids: TimeBasedIds | None = None):
        self._store = store
        self._ids = ids or ID_GENERATOR

    # -----------------------------
    # Students
    # -----------------------------
    def all_student_entries(self) -> list[Any]:
        return [value for _, value in self._store.get_by_prefix(STUDENT_PREFIX)]

    def list_students(self) -> list[Student]:
        return [s for s in self.all_student_entries() if has_fields(s, STUDENT_REQUIRED)]

    def get_student(self, student_id: str) -> Student:
        student = self._store.get(f"{STUDENT_PREFIX}{student_id}")
        if not isinstance(student, dict):
            raise NotFound("Student not found")
        return student

    def create_student(self, fields: dict[str, Any], *, now: datetime | None = None) -> Student:
        student_id = self._ids.next("STU")
        student = {
            "id": student_id,
            "name": fields.get("name"),
            "email": fields.get("email"),
            "studentNumber": fields.get("studentNumber"),
            "country": fields.get("country") or "",
            "qrCode": student_id,
            "createdAt": to_iso(now or now_utc()),
        }
        self.save_student(student)
        logger.info("Created student %s (%s)", student_id, student["name"])
        return student

    def update_student(self, student_id: str, partial: dict[str, Any]) -> Student:
        existing = self.get_student(student_id)
        updated = {**existing, **partial, "id": existing.get("id", student_id)}
        self._store.set(f"{STUDENT_PREFIX}{student_id}", updated)
        return updated

    def delete_student(self, student_id: str) -> int:
        """Delete a student and its attendance records; returns the cascade count."""
        self.get_student(student_id)
        self._store.delete(f"{STUDENT_PREFIX}{student_id}")

        removed = 0
        for key, record in self._store.get_by_prefix(ATTENDANCE_PREFIX):
            if isinstance(record, dict) and record.get("studentId") == student_id:
                self._store.delete(key)
                removed += 1
        for key, _ in self._store.get_by_prefix(f"{CHECKIN_PREFIX}{student_id}:"):
            self._store.delete(key)

        logger.info("Deleted student %s with %d attendance record(s)", student_id, removed)
        return removed

    def save_student(self, student: Student) -> None:
        self._store.set(f"{STUDENT_PREFIX}{student['id']}", student)

    # -----------------------------
    # Attendance
    # -----------------------------
    def all_attendance_entries(self) -> list[Any]:
        return [value for _, value in self._store.get_by_prefix(ATTENDANCE_PREFIX)]

    def list_attendance(self) -> list[AttendanceRecord]:
        valid = [r for r in self.all_attendance_entries() if has_fields(r, ATTENDANCE_REQUIRED)]
        return _newest_first(valid)

    def list_attendance_today(self, *, now: datetime | None = None) -> list[AttendanceRecord]:
        now = now or now_utc()
        return [r for r in self.list_attendance() if same_calendar_day(r["timestamp"], now)]

    def new_attendance_id(self) -> str:
        return self._ids.next("ATT")

    def save_attendance(self, record: AttendanceRecord) -> None:
        self._store.set(f"{ATTENDANCE_PREFIX}{record['id']}", record)

    # -----------------------------
    # Day claims (one check-in per student per day)
    # -----------------------------
    def claim_check_in(self, student_id: str, day: date, record_id: str) -> bool:
        return self._store.set_if_absent(checkin_key(student_id, day), {"recordId": record_id})

    def release_check_in(self, student_id: str, day: date) -> None:
        self._store.delete(checkin_key(student_id, day))

    def prune_check_in_claims(self, student_id: str, keep_day: date) -> int:
        """Drop the student's claims for every day other than `keep_day`."""
        keep = checkin_key(student_id, keep_day)
        removed = 0
        for key, _ in self._store.get_by_prefix(f"{CHECKIN_PREFIX}{student_id}:"):
            if key != keep and self._store.delete(key):
                removed += 1
        return removed
