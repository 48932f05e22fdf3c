import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from backend.config import (
    CORS_ALLOW_CREDENTIALS,
    CORS_ALLOW_HEADERS,
    CORS_ALLOW_METHODS,
    CORS_ALLOW_ORIGINS,
    DB_PATH,
    LOG_LEVEL,
    SEED_ON_STARTUP,
)
from backend.errors import AlreadyCheckedIn, DomainError, StorageError, StudentNotFound
from backend.routers.attendance import router as attendance_router
from backend.routers.core import router as core_router
from backend.routers.students import router as students_router
from backend.services.sample_data import seed_sample_data
from database.kv_store import KeyValueStore
from database.records import RecordRepository

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# -----------------------------
# Lifespan (store open/close)
# -----------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    store = KeyValueStore(DB_PATH).open()
    app.state.store = store
    if SEED_ON_STARTUP:
        seed_sample_data(RecordRepository(store))
    try:
        yield
    finally:
        store.close()
        app.state.store = None


app = FastAPI(title="QR Attendance API", lifespan=lifespan)


# -----------------------------
# CORS (React dev server)
# -----------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_credentials=CORS_ALLOW_CREDENTIALS,
    allow_methods=CORS_ALLOW_METHODS,
    allow_headers=CORS_ALLOW_HEADERS,
)


# -----------------------------
# Error mapping: every failure becomes {"error": message}
# -----------------------------
@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    body = {"error": exc.message}
    if isinstance(exc, StorageError):
        logger.error("Storage failure on %s %s", request.method, request.url.path, exc_info=exc)
        body = {"error": "Internal storage error"}
    elif isinstance(exc, AlreadyCheckedIn):
        body.update({"message": exc.message, "student": exc.student})
    elif isinstance(exc, StudentNotFound):
        body["qrCode"] = exc.code
    return JSONResponse(status_code=exc.status_code, content=body)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=400,
        content={"error": f"{field}: {message}" if field else message},
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


app.include_router(core_router)
app.include_router(students_router)
app.include_router(attendance_router)
