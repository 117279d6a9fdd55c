from __future__ import annotations

import logging
import sys
import time

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pythonjsonlogger import jsonlogger

from .config import settings
from .database import create_tables
from .errors import FacesmashError, ValidationFailed
from .rate_limit import SlidingWindowRateLimiter
from .api import routes_students

log = logging.getLogger("facesmash.http")

# ---------------------------------------------------------------------------
# Structured logging
# ---------------------------------------------------------------------------

def _configure_logging() -> None:
    """Configure structured JSON logging when log_format=json (default)."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stdout)
    if settings.log_format == "json":
        formatter = jsonlogger.JsonFormatter(
            "%(asctime)s %(name)s %(levelname)s %(message)s",
            rename_fields={"asctime": "timestamp", "levelname": "level"},
        )
    else:
        formatter = logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
    handler.setFormatter(formatter)
    root.addHandler(handler)

_configure_logging()

# Initialise database tables on startup
create_tables()

app = FastAPI(
    title="Facesmash",
    version="1.0.0",
    description=(
        "Pairwise comparison voting for student records: fetch two random "
        "students, vote for one, browse listings and statistics."
    ),
    docs_url="/docs",
    redoc_url="/redoc",
)

# One limiter per process, shared by every request
app.state.rate_limiter = SlidingWindowRateLimiter(
    window_ms=settings.rate_limit_window_ms,
    max_requests=settings.rate_limit_max_requests,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allow_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Error responses: {error, message, details?}
# ---------------------------------------------------------------------------

@app.exception_handler(FacesmashError)
async def facesmash_error_handler(request: Request, exc: FacesmashError) -> JSONResponse:
    headers = {}
    retry_after = getattr(exc, "retry_after", None)
    if retry_after is not None:
        headers["Retry-After"] = str(retry_after)
    return JSONResponse(status_code=exc.status_code, content=exc.to_body(), headers=headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', 'invalid')}"
        for err in exc.errors()
    ]
    body = ValidationFailed(details, message="Request could not be parsed").to_body()
    return JSONResponse(status_code=400, content=body)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "message": str(exc)},
    )


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    log.info(
        "%s %s -> %d",
        request.method,
        request.url.path,
        response.status_code,
        extra={"duration_ms": round((time.perf_counter() - start) * 1000, 2)},
    )
    return response


app.include_router(routes_students.router, prefix=settings.api_prefix)


@app.get("/", tags=["meta"])
def root() -> dict:
    return {"status": "ok", "service": "facesmash", "version": "1.0.0"}


@app.get("/health", tags=["meta"])
def health() -> dict:
    return {"status": "healthy"}
