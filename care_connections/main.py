"""FastAPI application entry point."""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from care_connections.core.config import settings
from care_connections.db.session import engine
from care_connections.services.connection_errors import (
    AuthenticationRequired,
    AuthorizationDenied,
    ConflictError,
    ConnectionServiceError,
    InvalidState,
    NotFound,
    ValidationError,
)

logger = logging.getLogger(__name__)

# ============================================================================
# Sentry Integration (optional, for production error tracking)
# ============================================================================

if settings.SENTRY_DSN and settings.ENV != "dev":
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENV,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=0.1,
        send_default_pii=False,  # Intake text must never leave the service
    )
    logging.info("Sentry initialized for error tracking")

# ============================================================================
# Rate Limiting
# ============================================================================

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from care_connections.core.rate_limit import limiter


# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="Care Connections API",
    description="Connection lifecycle and negotiation engine for the care marketplace",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
)

# Add rate limiter (default limits apply to every route)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

# CORS middleware - must be added before routers
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,  # Required for cookies
    allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
    expose_headers=["Content-Disposition"],
)

# ============================================================================
# Error mapping
# ============================================================================

ERROR_STATUS_CODES: dict[type[ConnectionServiceError], int] = {
    AuthenticationRequired: 401,
    AuthorizationDenied: 403,
    NotFound: 404,
    InvalidState: 400,
    ValidationError: 422,
    ConflictError: 409,
}


@app.exception_handler(ConnectionServiceError)
async def connection_error_handler(request: Request, exc: ConnectionServiceError):
    """Translate engine errors to HTTP responses."""
    status_code = 400
    for error_class, code in ERROR_STATUS_CODES.items():
        if isinstance(exc, error_class):
            status_code = code
            break
    if status_code == 409:
        logger.info(f"Conflict on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


# ============================================================================
# Routers
# ============================================================================

from care_connections.routers import connections_router

app.include_router(connections_router)


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
def health():
    """
    Health check endpoint.

    Verifies database connectivity and returns environment info.
    """
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return {"status": "ok", "env": settings.ENV, "version": settings.VERSION}
