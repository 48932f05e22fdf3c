from datetime import datetime, timedelta, timezone

import pytest

from backend.errors import NotFound
from backend.timeutils import parse_timestamp
from database.records import RecordRepository, TimeBasedIds


def _attendance(record_id, student_id, timestamp):
    return {"id": record_id, "studentId": student_id, "timestamp": timestamp, "status": "present"}


def test_create_student_sets_qr_code_and_created_at(records):
    before = datetime.now(timezone.utc) - timedelta(seconds=1)
    student = records.create_student({"name": "X", "email": "x@y.com", "studentNumber": "1"})

    assert student["id"].startswith("STU")
    assert student["qrCode"] == student["id"]
    assert student["country"] == ""
    assert parse_timestamp(student["createdAt"]) >= before
    assert records.get_student(student["id"]) == student


def test_ids_are_unique_within_the_same_millisecond(monkeypatch):
    ids = TimeBasedIds()
    monkeypatch.setattr("database.records.time.time", lambda: 1700000000.0)

    issued = [ids.next("STU") for _ in range(5)]
    assert len(set(issued)) == 5
    assert issued[0] == "STU1700000000000"
    assert issued[-1] == "STU1700000000004"


def test_list_students_drops_malformed_entries(records, store):
    records.create_student({"name": "Good", "email": "g@x.com", "studentNumber": "1"})
    store.set("student:noemail", {"id": "noemail", "name": "No Email"})
    store.set("student:noname", {"id": "noname", "email": "n@x.com"})
    store.set("student:blank", {"id": "blank", "name": "", "email": "b@x.com"})
    store.set("student:scalar", "just a string")

    students = records.list_students()
    assert [s["name"] for s in students] == ["Good"]
    assert all(s.get("id") and s.get("name") and s.get("email") for s in students)


def test_update_student_merges_shallowly(records):
    student = records.create_student({"name": "A", "email": "a@x.com", "studentNumber": "1", "country": "PH"})

    updated = records.update_student(student["id"], {"name": "B", "notes": "transfer"})
    assert updated["name"] == "B"
    assert updated["email"] == "a@x.com"
    assert updated["country"] == "PH"
    assert updated["notes"] == "transfer"
    assert records.get_student(student["id"]) == updated


def test_update_student_keeps_id(records):
    student = records.create_student({"name": "A", "email": "a@x.com", "studentNumber": "1"})
    updated = records.update_student(student["id"], {"id": "HIJACK"})
    assert updated["id"] == student["id"]


def test_update_and_delete_unknown_student_raise_not_found(records):
    with pytest.raises(NotFound):
        records.update_student("STU404", {"name": "Nobody"})
    with pytest.raises(NotFound):
        records.delete_student("STU404")


def test_delete_student_cascades_attendance(records):
    keep = records.create_student({"name": "Keep", "email": "k@x.com", "studentNumber": "1"})
    gone = records.create_student({"name": "Gone", "email": "g@x.com", "studentNumber": "2"})
    records.save_attendance(_attendance("ATT1", gone["id"], "2026-02-10T08:00:00.000Z"))
    records.save_attendance(_attendance("ATT2", gone["id"], "2026-02-11T08:00:00.000Z"))
    records.save_attendance(_attendance("ATT3", keep["id"], "2026-02-11T09:00:00.000Z"))

    removed = records.delete_student(gone["id"])

    assert removed == 2
    remaining = records.list_attendance()
    assert [r["id"] for r in remaining] == ["ATT3"]
    assert all(r["studentId"] != gone["id"] for r in remaining)
    with pytest.raises(NotFound):
        records.get_student(gone["id"])


def test_delete_student_releases_day_claims(records, store):
    student = records.create_student({"name": "A", "email": "a@x.com", "studentNumber": "1"})
    day = datetime(2026, 2, 10, tzinfo=timezone.utc).date()
    assert records.claim_check_in(student["id"], day, "ATT1")

    records.delete_student(student["id"])
    assert store.get_by_prefix("checkin:") == []


def test_list_attendance_filters_and_sorts_newest_first(records, store):
    records.save_attendance(_attendance("ATT1", "STU1", "2026-02-10T08:00:00.000Z"))
    records.save_attendance(_attendance("ATT2", "STU1", "2026-02-12T08:00:00.000Z"))
    records.save_attendance(_attendance("ATT3", "STU2", "2026-02-11T08:00:00.000Z"))
    store.set("attendance:nots", {"id": "nots", "studentId": "STU1"})
    store.set("attendance:nostudent", {"id": "nostudent", "timestamp": "2026-02-10T08:00:00.000Z"})

    assert [r["id"] for r in records.list_attendance()] == ["ATT2", "ATT3", "ATT1"]


def test_list_attendance_today_is_todays_subset(records):
    now = datetime(2026, 2, 10, 15, 0, tzinfo=timezone.utc)
    records.save_attendance(_attendance("ATT1", "STU1", "2026-02-10T00:00:00.000Z"))
    records.save_attendance(_attendance("ATT2", "STU2", "2026-02-10T23:59:59.999Z"))
    records.save_attendance(_attendance("ATT3", "STU1", "2026-02-09T23:59:59.999Z"))
    records.save_attendance(_attendance("ATT4", "STU3", "2026-02-11T00:00:00.000Z"))

    today = records.list_attendance_today(now=now)

    assert [r["id"] for r in today] == ["ATT2", "ATT1"]
    expected = [r for r in records.list_attendance() if r["timestamp"].startswith("2026-02-10")]
    assert today == expected


def test_repository_accepts_custom_id_source(store):
    class FixedIds:
        def next(self, prefix):
            return f"{prefix}42"

    repo = RecordRepository(store, ids=FixedIds())
    student = repo.create_student({"name": "A", "email": "a@x.com", "studentNumber": "1"})
    assert student["id"] == "STU42"
    assert repo.new_attendance_id() == "ATT42"


def test_list_attendance_today_uses_reference_zone(records, monkeypatch):
    monkeypatch.setattr("backend.timeutils.TIMEZONE", "Asia/Manila")
    now = datetime(2026, 2, 10, 1, 0, tzinfo=timezone.utc)  # 09:00 in Manila
    records.save_attendance(_attendance("ATT1", "STU1", "2026-02-09T20:00:00.000Z"))
    records.save_attendance(_attendance("ATT2", "STU2", "2026-02-09T15:00:00.000Z"))

    assert [r["id"] for r in records.list_attendance_today(now=now)] == ["ATT1"]


def test_prune_check_in_claims_keeps_only_given_day(records, store):
    old = datetime(2026, 2, 8, tzinfo=timezone.utc).date()
    today = datetime(2026, 2, 10, tzinfo=timezone.utc).date()
    assert records.claim_check_in("STU1", old, "ATT1")
    assert records.claim_check_in("STU1", today, "ATT2")
    assert records.claim_check_in("STU2", old, "ATT3")

    assert records.prune_check_in_claims("STU1", today) == 1
    assert [k for k, _ in store.get_by_prefix("checkin:")] == [
        "checkin:STU1:2026-02-10",
        "checkin:STU2:2026-02-08",
    ]
