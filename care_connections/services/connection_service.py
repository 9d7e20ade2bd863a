"""Connection store - creation, participant-scoped reads, and guarded writes.

Every mutation goes through `mutate_connection`, which reads the current
record, re-checks access, applies a transform to a typed copy of the
metadata overlay, and writes back under the `version` column. A write that
lost a race raises StaleDataError at flush time; the read/transform/write
cycle is then repeated on fresh state, up to CONNECTION_WRITE_ATTEMPTS times,
before surfacing ConflictError. Thread order therefore follows commit order.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.orm.exc import StaleDataError

from care_connections.core.config import settings
from care_connections.core.connection_access import Party, check_connection_access
from care_connections.core.structured_logging import build_log_context
from care_connections.db.enums import (
    ACTIVE_CONNECTION_STATUSES,
    ConnectionAction,
    ConnectionStatus,
    ConnectionType,
)
from care_connections.db.models import Connection, Profile
from care_connections.schemas.connection import CareIntake, ConnectionMetadata
from care_connections.services import intro_message
from care_connections.services.connection_errors import (
    ConflictError,
    ConnectionServiceError,
    InvalidState,
    NotFound,
    ValidationError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

Transform = Callable[[Connection, ConnectionMetadata, Party, datetime], T]


# =============================================================================
# Profiles (read-only collaborator)
# =============================================================================


def get_profile(db: Session, profile_id: UUID) -> Profile | None:
    return db.get(Profile, profile_id)


def get_profiles_by_ids(db: Session, profile_ids: set[UUID]) -> dict[UUID, Profile]:
    """Batch load profiles for display."""
    if not profile_ids:
        return {}
    profiles = db.execute(select(Profile).where(Profile.id.in_(profile_ids))).scalars().all()
    return {profile.id: profile for profile in profiles}


def get_display_name(db: Session, profile_id: UUID) -> str:
    profile = get_profile(db, profile_id)
    return profile.display_name if profile and profile.display_name else "Someone"


# =============================================================================
# Logical status
# =============================================================================


def resolve_logical_status(status: str, metadata: dict[str, Any] | None) -> str:
    """
    Status as consumers must display it.

    The overlay wins over the column: hidden, then archived, then `status`.
    """
    meta = metadata or {}
    if meta.get("hidden"):
        return "hidden"
    if meta.get("archived"):
        return "archived"
    return status


# =============================================================================
# Auto-intro (best effort)
# =============================================================================


def build_auto_intro(
    db: Session,
    from_profile_id: UUID,
    to_profile_id: UUID,
    intake: CareIntake | None,
    provider_initiated: bool = False,
) -> str | None:
    """
    Generate the intro for a connection from profiles and intake.

    A failure degrades to None; it never fails the surrounding operation.
    """
    try:
        profiles = get_profiles_by_ids(db, {from_profile_id, to_profile_id})
        if provider_initiated:
            provider = profiles.get(from_profile_id)
            seeker = profiles.get(to_profile_id)
            return intro_message.build_provider_outreach_intro(
                provider.display_name if provider else None,
                seeker.care_types if seeker else [],
                provider.care_types if provider else [],
            )

        seeker = profiles.get(from_profile_id)
        provider = profiles.get(to_profile_id)
        seeker_meta = (seeker.metadata_ if seeker else None) or {}
        intake = intake or CareIntake()
        return intro_message.build_intro_message(
            seeker.care_types if seeker else [],
            provider.care_types if provider else [],
            intake.care_type,
            intake.care_recipient,
            intake.urgency,
            relationship=seeker_meta.get("relationship_to_recipient"),
            timeline=seeker_meta.get("timeline"),
        )
    except Exception:
        logger.exception(
            "Auto-intro generation failed",
            extra=build_log_context(profile_id=from_profile_id),
        )
        return None


# =============================================================================
# Reads
# =============================================================================


def _load_connection(db: Session, connection_id: UUID) -> Connection | None:
    """Load the current committed row, bypassing the identity map."""
    return db.execute(
        select(Connection)
        .where(Connection.id == connection_id)
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()


def get_connection(
    db: Session,
    connection_id: UUID,
    acting_profile_id: UUID | None,
) -> Connection:
    """Fetch a connection visible only to its two participants."""
    connection = _load_connection(db, connection_id)
    if not connection:
        raise NotFound("Connection not found")
    check_connection_access(connection, acting_profile_id, ConnectionAction.READ)
    return connection


def get_active_duplicate(
    db: Session,
    from_profile_id: UUID,
    to_profile_id: UUID,
    connection_type: str,
) -> Connection | None:
    """Find a pending/accepted connection of the same type and direction."""
    return db.execute(
        select(Connection)
        .where(
            Connection.from_profile_id == from_profile_id,
            Connection.to_profile_id == to_profile_id,
            Connection.type == connection_type,
            Connection.status.in_(ACTIVE_CONNECTION_STATUSES),
        )
        .limit(1)
    ).scalar_one_or_none()


def list_connections(
    db: Session,
    acting_profile_id: UUID,
    direction: str | None = None,
    status_filter: str | None = None,
    include_hidden: bool = False,
) -> list[Connection]:
    """List the caller's connections, newest first."""
    query = select(Connection)
    if direction == "sent":
        query = query.where(Connection.from_profile_id == acting_profile_id)
    elif direction == "received":
        query = query.where(Connection.to_profile_id == acting_profile_id)
    elif direction is None:
        query = query.where(
            or_(
                Connection.from_profile_id == acting_profile_id,
                Connection.to_profile_id == acting_profile_id,
            )
        )
    else:
        raise ValidationError("direction must be 'sent' or 'received'")

    if status_filter:
        query = query.where(Connection.status == status_filter)

    connections = list(
        db.execute(query.order_by(Connection.created_at.desc(), Connection.id)).scalars().all()
    )
    if include_hidden:
        return connections
    return [c for c in connections if not (c.metadata_ or {}).get("hidden")]


# =============================================================================
# Create
# =============================================================================


def create_connection(
    db: Session,
    from_profile_id: UUID,
    to_profile_id: UUID,
    connection_type: str,
    message: CareIntake | dict[str, Any] | None = None,
    metadata: dict[str, Any] | None = None,
) -> tuple[Connection, bool]:
    """
    Create a connection, or return the existing active one.

    Returns (connection, created). A second pending/accepted connection of the
    same type and direction is never created.
    """
    if from_profile_id == to_profile_id:
        raise ValidationError("Cannot create a connection to yourself")
    if connection_type not in {t.value for t in ConnectionType}:
        raise ValidationError(f"Unknown connection type: {connection_type}")

    if not get_profile(db, from_profile_id):
        raise NotFound("Sender profile not found")
    if not get_profile(db, to_profile_id):
        raise NotFound("Recipient profile not found")

    existing = get_active_duplicate(db, from_profile_id, to_profile_id, connection_type)
    if existing:
        logger.info(
            f"Duplicate {connection_type} short-circuited to {existing.id}",
            extra=build_log_context(connection_id=existing.id, profile_id=from_profile_id),
        )
        return existing, False

    intake = message if isinstance(message, CareIntake) else CareIntake.model_validate(message or {})
    meta = ConnectionMetadata.from_raw(metadata)
    if connection_type == ConnectionType.INQUIRY.value and not meta.auto_intro:
        meta.auto_intro = build_auto_intro(db, from_profile_id, to_profile_id, intake)

    now = datetime.now(timezone.utc)
    connection = Connection(
        type=connection_type,
        status=ConnectionStatus.PENDING.value,
        from_profile_id=from_profile_id,
        to_profile_id=to_profile_id,
        message=intake.model_dump(exclude_none=True) if message is not None else None,
        metadata_=meta.to_raw(),
        created_at=now,
        updated_at=now,
    )
    try:
        db.add(connection)
        db.commit()
    except IntegrityError:
        # Race condition: another transaction created the same active pair
        db.rollback()
        existing = get_active_duplicate(db, from_profile_id, to_profile_id, connection_type)
        if existing:
            return existing, False
        raise

    logger.info(
        f"Created {connection_type} connection",
        extra=build_log_context(connection_id=connection.id, profile_id=from_profile_id),
    )
    return connection, True


# =============================================================================
# Guarded read-modify-write
# =============================================================================


def mutate_connection(
    db: Session,
    connection_id: UUID,
    acting_profile_id: UUID | None,
    action: ConnectionAction,
    transform: Transform[T],
    expected_version: int | None = None,
) -> tuple[Connection, T]:
    """
    Apply `transform` to a connection under optimistic concurrency.

    The transform receives the freshly loaded row, a typed metadata copy it
    may mutate, the caller's side, and the operation timestamp. It must be
    safe to run again: on a lost race it is re-applied to the winner's state.

    Raises:
        NotFound, AuthorizationDenied: unknown id / non-participant
        ConflictError: expected_version mismatch, or attempts exhausted
        anything the transform raises
    """
    attempts = max(1, settings.CONNECTION_WRITE_ATTEMPTS)
    for attempt in range(1, attempts + 1):
        connection = get_connection(db, connection_id, acting_profile_id)
        party = check_connection_access(connection, acting_profile_id, action)

        if expected_version is not None and connection.version != expected_version:
            raise ConflictError(expected_version, connection.version)

        meta = ConnectionMetadata.from_raw(connection.metadata_)
        now = datetime.now(timezone.utc)
        try:
            result = transform(connection, meta, party, now)
        except ConnectionServiceError:
            db.rollback()
            raise

        connection.metadata_ = meta.to_raw()
        flag_modified(connection, "metadata_")
        connection.updated_at = now

        try:
            db.commit()
        except StaleDataError:
            db.rollback()
            logger.info(
                f"Stale write on {action.value}, retrying",
                extra=build_log_context(
                    connection_id=connection_id, action=action.value, attempt=attempt
                ),
            )
            continue
        except IntegrityError:
            db.rollback()
            raise InvalidState(
                "Another active connection already exists between these profiles"
            )

        logger.info(
            f"Connection {action.value} committed",
            extra=build_log_context(
                connection_id=connection_id,
                profile_id=acting_profile_id,
                action=action.value,
                version=connection.version,
            ),
        )
        return connection, result

    logger.warning(
        f"Gave up on {action.value} after {attempts} conflicting writes",
        extra=build_log_context(connection_id=connection_id, action=action.value),
    )
    raise ConflictError(
        None,
        None,
        "Connection was modified concurrently, please retry",
    )
