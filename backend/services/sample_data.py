import logging
from datetime import datetime, timedelta

from backend.timeutils import now_utc, to_iso
from database.records import RecordRepository

logger = logging.getLogger(__name__)

SAMPLE_STUDENTS = [
    ("STU001", "Alice Johnson", "alice.johnson@school.edu", "2021001", "United States"),
    ("STU002", "Bob Smith", "bob.smith@school.edu", "2021002", "Canada"),
    ("STU003", "Carol Davis", "carol.davis@school.edu", "2021003", "United Kingdom"),
    ("STU004", "David Wilson", "david.wilson@school.edu", "2021004", "Australia"),
    ("STU005", "Emma Brown", "emma.brown@school.edu", "2021005", "Germany"),
]

# (record id, student id, age of the check-in)
SAMPLE_ATTENDANCE = [
    ("ATT001", "STU001", timedelta(hours=2)),
    ("ATT002", "STU002", timedelta(hours=1)),
    ("ATT003", "STU003", timedelta(minutes=30)),
]


def seed_sample_data(
    records: RecordRepository,
    *,
    now: datetime | None = None,
    include_attendance: bool = True,
) -> bool:
    """Write the demo roster when the store has no students.

    Returns False (and writes nothing) if any student already exists.
    """
    if records.all_student_entries():
        return False

    now = now or now_utc()
    created_at = to_iso(now)
    for student_id, name, email, number, country in SAMPLE_STUDENTS:
        records.save_student({
            "id": student_id,
            "name": name,
            "email": email,
            "studentNumber": number,
            "country": country,
            "qrCode": student_id,
            "createdAt": created_at,
        })

    if include_attendance:
        for record_id, student_id, age in SAMPLE_ATTENDANCE:
            records.save_attendance({
                "id": record_id,
                "studentId": student_id,
                "timestamp": to_iso(now - age),
                "status": "present",
            })

    logger.info(
        "Seeded %d sample students%s",
        len(SAMPLE_STUDENTS),
        f" and {len(SAMPLE_ATTENDANCE)} attendance records" if include_attendance else "",
    )
    return True
