"""FastAPI dependencies for authentication and database access."""

from typing import Generator
from uuid import UUID

from fastapi import HTTPException, Request
from sqlalchemy.orm import Session

from care_connections.core.security import decode_session_token
from care_connections.db.session import SessionLocal
from care_connections.services.connection_errors import AuthenticationRequired


# Cookie and header names
COOKIE_NAME = "care_session"
CSRF_HEADER = "X-Requested-With"
CSRF_HEADER_VALUE = "XMLHttpRequest"


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _read_token(request: Request) -> str | None:
    token = request.cookies.get(COOKIE_NAME)
    if token:
        return token
    auth = request.headers.get("Authorization", "")
    if auth.lower().startswith("bearer "):
        return auth[7:].strip() or None
    return None


def get_acting_profile_id(request: Request) -> UUID:
    """
    Resolve the caller's active profile from the session token.

    Accepts the session cookie or an `Authorization: Bearer` header.

    Raises:
        AuthenticationRequired: no token, invalid token, or no profile claim
    """
    token = _read_token(request)
    if not token:
        raise AuthenticationRequired("Not authenticated")

    try:
        payload = decode_session_token(token)
    except Exception:
        raise AuthenticationRequired("Invalid session")

    try:
        return UUID(payload["profile_id"])
    except (KeyError, TypeError, ValueError):
        raise AuthenticationRequired("No active profile")


def require_csrf_header(request: Request) -> None:
    """
    Verify CSRF header on mutations.

    Apply to state-changing endpoints (POST, PATCH, DELETE).

    Raises:
        HTTPException 403: Missing or invalid CSRF header
    """
    if request.headers.get(CSRF_HEADER) != CSRF_HEADER_VALUE:
        raise HTTPException(
            status_code=403,
            detail=f"Missing CSRF header. Include '{CSRF_HEADER}: {CSRF_HEADER_VALUE}'"
        )
