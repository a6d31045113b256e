import logging
import os

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from app.api import admin, appointments, availability, experts, reschedule, slot_locks
from app.core.errors import BookingError
from database import Base, engine
import models  # noqa: F401
from seed import seed_demo_data

logger = logging.getLogger(__name__)

default_origins = [
    "http://localhost:3000",
    "http://localhost:5173",
]
cors_origins = os.getenv("CORS_ORIGINS")
env_origins = [origin.strip() for origin in cors_origins.split(",") if origin.strip()] if cors_origins else []
origins = list({*default_origins, *env_origins})

app = FastAPI(title="Expert Booking API", version="0.1.0")


def _should_create_all() -> bool:
    env = (os.getenv("APP_ENV") or "").lower()
    enable_flag = os.getenv("ENABLE_CREATE_ALL", "").lower() in {"1", "true", "yes"}
    if engine.url.get_backend_name() == "sqlite":
        return True
    if env in {"local", "dev", "development"} or enable_flag:
        return True
    return False


@app.on_event("startup")
def on_startup() -> None:
    if _should_create_all():
        try:
            Base.metadata.create_all(bind=engine)
        except SQLAlchemyError as exc:
            logger.warning("Base.metadata.create_all failed; continuing without fatal error: %s", exc)
    else:
        logger.info(
            "Skipping Base.metadata.create_all on %s (APP_ENV=%s); run migrations or create tables separately.",
            engine.url.get_backend_name(),
            os.getenv("APP_ENV"),
        )
    seed_demo_data()


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})


def _error_items(errors) -> list:
    return [{"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")} for error in errors]


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=400,
        content={
            "detail": f"{field}: {message}" if field else message,
            "code": "validation_error",
            "errors": _error_items(errors),
        },
    )


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error", "code": "internal_error"})


app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# slot_locks first: "/appointments/lock/..." must not be captured by "/appointments/{appointment_id}".
app.include_router(slot_locks.router, prefix="/api", tags=["locks"])
app.include_router(appointments.router, prefix="/api", tags=["appointments"])
app.include_router(experts.router, prefix="/api", tags=["experts"])
app.include_router(availability.router, prefix="/api", tags=["availability"])
app.include_router(reschedule.router, prefix="/api", tags=["reschedule"])
app.include_router(admin.router, prefix="/api", tags=["admin"])


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}
