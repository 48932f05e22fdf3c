from fastapi import Depends, Request

from backend.errors import StorageError
from backend.services.checkin import CheckInService
from database.kv_store import KeyValueStore
from database.records import RecordRepository


def get_store(request: Request) -> KeyValueStore:
    store = getattr(request.app.state, "store", None)
    if store is None or not store.is_open:
        raise StorageError("Key-value store is not open.")
    return store


def get_records(store: KeyValueStore = Depends(get_store)) -> RecordRepository:
    return RecordRepository(store)


def get_checkin_service(records: RecordRepository = Depends(get_records)) -> CheckInService:
    return CheckInService(records)
