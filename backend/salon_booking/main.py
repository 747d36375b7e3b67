import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError

from .config import settings
from .database import SessionLocal
from .errors import BookingError, StorageUnavailable
from .redis_client import redis_client
from .routers import bookings, slots

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Salon Booking API")

app.include_router(slots.router)
app.include_router(bookings.router)


@app.exception_handler(BookingError)
def booking_error_handler(request: Request, exc: BookingError):
    content = {"detail": exc.message, "code": exc.code}
    alternatives = getattr(exc, "alternatives", None)
    if alternatives is not None:
        content["alternatives"] = alternatives
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(DBAPIError)
def storage_error_handler(request: Request, exc: DBAPIError):
    logger.warning(f"Unhandled storage error on {request.url.path}: {exc}")
    return booking_error_handler(request, StorageUnavailable())


@app.get("/health")
def health():
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        db_ok = True
    except Exception as e:
        logger.error(f"Health check: database unavailable: {e}")
        db_ok = False
    finally:
        db.close()

    try:
        redis_ok = bool(redis_client.ping())
    except Exception as e:
        logger.error(f"Health check: redis unavailable: {e}")
        redis_ok = False

    return {"database": db_ok, "redis": redis_ok}
