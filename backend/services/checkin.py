import logging
from dataclasses import dataclass
from datetime import datetime

from backend.errors import AlreadyCheckedIn, StudentNotFound
from backend.timeutils import calendar_day, now_utc, same_calendar_day, to_iso
from database.records import (
    ATTENDANCE_REQUIRED,
    AttendanceRecord,
    RecordRepository,
    Student,
    has_fields,
)

logger = logging.getLogger(__name__)

CHECKIN_STUDENT_REQUIRED = ("id", "name", "qrCode")


@dataclass(frozen=True)
class CheckInResult:
    student: Student
    record: AttendanceRecord

    @property
    def message(self) -> str:
        return f"{self.student['name']} checked in successfully!"


class CheckInService:
    def __init__(self, records: RecordRepository):
        self._records = records

    def resolve_student(self, code: str) -> Student:
        candidates = (
            s for s in self._records.all_student_entries() if has_fields(s, CHECKIN_STUDENT_REQUIRED)
        )
        student = next((s for s in candidates if s["qrCode"] == code), None)
        if student is None:
            raise StudentNotFound(code)
        return student

    def find_today_record(self, student_id: str, now: datetime) -> AttendanceRecord | None:
        for record in self._records.all_attendance_entries():
            if not has_fields(record, ATTENDANCE_REQUIRED):
                continue
            if record["studentId"] == student_id and same_calendar_day(record["timestamp"], now):
                return record
        return None

    def check_in(self, code: str, *, now: datetime | None = None) -> CheckInResult:
        now = now or now_utc()
        student = self.resolve_student(code)
        student_id = student["id"]

        if self.find_today_record(student_id, now) is not None:
            logger.info("Rejected duplicate check-in for %s", student_id)
            raise AlreadyCheckedIn(student)

        day = calendar_day(now)
        record = {
            "id": self._records.new_attendance_id(),
            "studentId": student_id,
            "timestamp": to_iso(now),
            "status": "present",
        }

        # Concurrent requests can both pass the scan above; only one wins the claim.
        if not self._records.claim_check_in(student_id, day, record["id"]):
            logger.info("Rejected concurrent check-in for %s", student_id)
            raise AlreadyCheckedIn(student)

        try:
            self._records.save_attendance(record)
        except Exception:
            self._records.release_check_in(student_id, day)
            raise

        # older claims can no longer block anything
        self._records.prune_check_in_claims(student_id, day)
        logger.info("Checked in %s as %s", student_id, record["id"])
        return CheckInResult(student=student, record=record)
