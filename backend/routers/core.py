from fastapi import APIRouter, Depends, HTTPException

from backend.config import ACCEPTED_IMAGE_TYPES, ENABLE_DEBUG_ENDPOINTS, QR_SCALE, TIMEZONE
from backend.deps import get_records, get_store
from backend.services.sample_data import seed_sample_data
from backend.timeutils import now_utc, to_iso
from database.kv_store import KeyValueStore
from database.records import RecordRepository

router = APIRouter()


@router.get("/health")
def health():
    return {"status": "ok", "timestamp": to_iso(now_utc())}


@router.get("/config")
def app_config():
    return {
        "timezone": TIMEZONE,
        "accepted_image_types": list(ACCEPTED_IMAGE_TYPES),
        "qr_scale": QR_SCALE,
    }


@router.get("/debug/dbpath")
def dbpath(store: KeyValueStore = Depends(get_store)):
    if not ENABLE_DEBUG_ENDPOINTS:
        raise HTTPException(status_code=404, detail="Not found.")
    return {"db_path": str(store.db_path)}


@router.post("/init-sample-data")
def init_sample_data(records: RecordRepository = Depends(get_records)):
    created = seed_sample_data(records)
    if not created:
        return {"message": "Sample data already exists", "created": False}
    return {"message": "Sample data initialized successfully", "created": True}
