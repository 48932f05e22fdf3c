from typing import Any

from fastapi import APIRouter, Body, Depends, Response
from pydantic import BaseModel

from backend.deps import get_records
from backend.errors import ValidationError
from backend.scanner import render_qr_png
from backend.services.reports import sort_students
from database.records import RecordRepository

router = APIRouter()


class StudentCreate(BaseModel):
    name: str | None = None
    email: str | None = None
    studentNumber: str | None = None
    country: str | None = None


@router.get("/students")
def list_students(
    sort: str | None = None,
    order: str = "asc",
    records: RecordRepository = Depends(get_records),
):
    students = records.list_students()
    if sort:
        students = sort_students(students, sort, order.lower())
    return {"students": students}


@router.post("/students")
def create_student(payload: StudentCreate, records: RecordRepository = Depends(get_records)):
    name = (payload.name or "").strip()
    email = (payload.email or "").strip()
    student_number = (payload.studentNumber or "").strip()

    if not name or not email or not student_number:
        raise ValidationError("Missing required fields")

    student = records.create_student({
        "name": name,
        "email": email,
        "studentNumber": student_number,
        "country": (payload.country or "").strip(),
    })
    return {"student": student}


@router.get("/students/{student_id}")
def student_detail(student_id: str, records: RecordRepository = Depends(get_records)):
    return {"student": records.get_student(student_id)}


@router.get("/students/{student_id}/qrcode")
def student_qrcode(student_id: str, records: RecordRepository = Depends(get_records)):
    student = records.get_student(student_id)
    png = render_qr_png(str(student.get("qrCode") or student_id))
    return Response(content=png, media_type="image/png")


@router.put("/students/{student_id}")
def update_student(
    student_id: str,
    updates: dict[str, Any] = Body(...),
    records: RecordRepository = Depends(get_records),
):
    # shallow merge: any field sent replaces the stored value, except the id
    updates = {k: v for k, v in updates.items() if k != "id"}
    return {"student": records.update_student(student_id, updates)}


@router.delete("/students/{student_id}")
def delete_student(student_id: str, records: RecordRepository = Depends(get_records)):
    records.delete_student(student_id)
    return {"message": "Student deleted successfully"}
