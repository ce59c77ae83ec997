"""Loanflow origination API - FastAPI entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from loanflow.config import settings
from loanflow.database import init_db
from loanflow.middleware.error_capture import ErrorCaptureMiddleware
from loanflow.api import applications, corrections, staff
from loanflow.services.errors import (
    ConflictError,
    FieldNotVerifiable,
    IllegalTransitionError,
    IncompleteDataError,
    LoanflowError,
    NotFoundError,
    ValidationError,
)

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables on startup (dev only); other environments manage the schema."""
    if settings.environment == "development":
        await init_db()
        logger.info("Database tables ensured")
    yield


app = FastAPI(
    title=settings.app_name,
    description="Loan application lifecycle and data-correction workflow",
    version="0.1.0",
    lifespan=lifespan,
)

app.state.limiter = corrections.limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


# ── Domain error mapping ─────────────────────────────────────

_STATUS_BY_ERROR = (
    (IncompleteDataError, 422),
    (FieldNotVerifiable, 422),
    (ValidationError, 422),
    (NotFoundError, 404),
    (IllegalTransitionError, 409),
    (ConflictError, 409),
)


@app.exception_handler(LoanflowError)
async def loanflow_error_handler(request: Request, exc: LoanflowError):
    status_code = next(
        (code for error_type, code in _STATUS_BY_ERROR if isinstance(exc, error_type)),
        400,
    )
    logger.info("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    content = {"detail": exc.message}
    if exc.errors:
        content["errors"] = exc.errors
    return JSONResponse(status_code=status_code, content=content)


# Error capture middleware (outermost, catches everything)
app.add_middleware(ErrorCaptureMiddleware)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Accept", "X-Requested-With"],
)

# Routers
app.include_router(corrections.router, prefix="/api/corrections", tags=["Corrections"])
app.include_router(applications.router, prefix="/api/applications", tags=["Applications"])
app.include_router(staff.router, prefix="/api/staff", tags=["Staff Review"])


@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": "loanflow-api", "version": "0.1.0"}
