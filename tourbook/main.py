import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tourbook.api.v1.api import api_router
from tourbook.core.config import settings
from tourbook.core.errors import (
    BookingError,
    BookingNumberUnavailable,
    CapacityError,
    InvalidTransition,
    NotAuthorized,
    NotFound,
    ValidationError,
)
from tourbook.core.log_config import configure_logging

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.APP_NAME)

# CORS: use CORS_ORIGINS from env in production; default to localhost for dev
_default_origins = ["http://127.0.0.1:3000", "http://localhost:3000"]
_origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()] if settings.CORS_ORIGINS else _default_origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Most specific first; anything else is a plain 400.
_STATUS_BY_ERROR = (
    (BookingNumberUnavailable, 503),
    (CapacityError, 409),
    (InvalidTransition, 409),
    (NotAuthorized, 403),
    (NotFound, 404),
    (ValidationError, 400),
)


def status_for(exc: BookingError) -> int:
    for cls, status in _STATUS_BY_ERROR:
        if isinstance(exc, cls):
            return status
    return 400


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    status = status_for(exc)
    logger.info("%s %s -> %s %s", request.method, request.url.path, status, exc.code)
    return JSONResponse(status_code=status, content=exc.to_dict())


app.include_router(api_router)


@app.get("/health")
def health():
    return {"status": "ok"}
