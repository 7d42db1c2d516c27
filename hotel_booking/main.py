import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .config import settings
from .db import SessionLocal, init_db
from .exceptions import HotelBookingError
from .limiter import limiter
from .models import User, UserRole
from .routers import auth_views, users_views, rooms_views, bookings_views, payments_views
from .security import hash_password

def configure_logging() -> int:
    level = logging.DEBUG if settings.DEBUG else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    # uvicorn installs its own handlers; keep their verbosity in step with ours
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).setLevel(level)
    return level

configure_logging()
logger = logging.getLogger("hotel_booking")
logger.info("%s %s starting (environment=%s, debug=%s)", settings.APP_NAME, __version__, settings.ENVIRONMENT, settings.DEBUG)

app = FastAPI(
    title=settings.APP_NAME,
    version=__version__,
    description=(
        f"{settings.APP_NAME}: rooms, bookings and payments.\n\n"
        f"Session-cookie based auth. Endpoints under {settings.API_PREFIX}."
    ),
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

HTTP_ERROR_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
}

@app.exception_handler(HotelBookingError)
async def hotel_booking_error_handler(request: Request, exc: HotelBookingError):
    logger.info("%s %s -> %s %s: %s", request.method, request.url.path, exc.status_code, exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    details = [
        {
            "field": ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")),
            "message": err.get("msg", "Invalid value"),
        }
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"message": "Validation failed", "error": {"code": "VALIDATION_ERROR", "details": details}},
    )

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": str(exc.detail), "error": {"code": HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR")}},
        headers=getattr(exc, "headers", None),
    )

@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    # Details stay in the server log
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"message": "Internal server error", "error": {"code": "INTERNAL_ERROR"}},
    )


def ensure_default_admin(db: Session) -> User:
    """Make sure at least one admin account exists, creating ADMIN_EMAIL if needed."""
    admin = db.query(User).filter(User.role == UserRole.ADMIN.value).first()
    if admin:
        return admin
    admin = db.query(User).filter(User.email == settings.ADMIN_EMAIL).first()
    if admin:
        admin.role = UserRole.ADMIN.value
        logger.info("Promoted %s to admin", admin.email)
    else:
        admin = User(
            name="Administrator",
            email=settings.ADMIN_EMAIL,
            hashed_password=hash_password(settings.ADMIN_PASSWORD),
            role=UserRole.ADMIN.value,
        )
        db.add(admin)
        logger.info("Created default admin %s", admin.email)
    db.commit()
    return admin

@app.on_event("startup")
def startup_event():
    init_db()
    db = SessionLocal()
    try:
        ensure_default_admin(db)
    finally:
        db.close()

for router_module in (auth_views, users_views, rooms_views, bookings_views, payments_views):
    app.include_router(router_module.router)

@app.get("/healthz")
@limiter.exempt
def healthz():
    return {"status": "ok", "version": __version__}
