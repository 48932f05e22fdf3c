from fastapi import APIRouter, Depends, File, UploadFile
from pydantic import BaseModel

from backend.config import ACCEPTED_IMAGE_TYPES
from backend.deps import get_checkin_service, get_records
from backend.errors import ValidationError
from backend.scanner import decode_qr_from_bytes
from backend.services.checkin import CheckInResult, CheckInService
from backend.services.reports import attendance_summary
from backend.timeutils import now_utc
from database.records import RecordRepository

router = APIRouter()


class CheckInRequest(BaseModel):
    qrCode: str | None = None


def _checkin_payload(result: CheckInResult) -> dict:
    return {
        "success": True,
        "message": result.message,
        "student": result.student,
        "attendanceRecord": result.record,
    }


@router.get("/attendance")
def attendance(records: RecordRepository = Depends(get_records)):
    return {"attendanceRecords": records.list_attendance()}


@router.get("/attendance/today")
def attendance_today(records: RecordRepository = Depends(get_records)):
    return {"attendanceRecords": records.list_attendance_today()}


@router.get("/attendance/summary")
def summary(records: RecordRepository = Depends(get_records)):
    return attendance_summary(records.list_students(), records.list_attendance(), now_utc())


@router.post("/attendance/checkin")
def checkin(payload: CheckInRequest, service: CheckInService = Depends(get_checkin_service)):
    if not (payload.qrCode or "").strip():
        raise ValidationError("QR code is required")
    # matched exactly as sent; whitespace is part of the code
    return _checkin_payload(service.check_in(payload.qrCode))


@router.post("/attendance/scan")
def scan(
    file: UploadFile = File(...),
    service: CheckInService = Depends(get_checkin_service),
):
    if file.content_type not in ACCEPTED_IMAGE_TYPES:
        raise ValidationError("Upload JPG/PNG only.")

    code, reason = decode_qr_from_bytes(file.file.read())
    if code is None:
        return {"detected": False, "reason": reason}

    return {"detected": True, "code": code, **_checkin_payload(service.check_in(code))}
