import pytest
from fastapi.testclient import TestClient

import backend.main as main
from database.kv_store import KeyValueStore
from database.records import RecordRepository


@pytest.fixture()
def store(tmp_path):
    with KeyValueStore(tmp_path / "qrattend_test.db") as s:
        yield s


@pytest.fixture()
def records(store):
    return RecordRepository(store)


@pytest.fixture()
def client(tmp_path, monkeypatch):
    # Point the app's store to a temp file for isolation.
    monkeypatch.setattr(main, "DB_PATH", tmp_path / "qrattend_api.db")
    monkeypatch.setattr(main, "SEED_ON_STARTUP", False)

    with TestClient(main.app) as c:
        yield c
