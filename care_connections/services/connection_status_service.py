"""Connection status state machine.

    pending  --accept-->      accepted   (recipient; sets accepted_at, builds intro)
    pending  --decline-->     declined   (recipient; sets declined_at)
    declined --reconsider-->  pending    (recipient of provider interest only)
    any      --view-->        unchanged  (sets viewed; idempotent)

`expired` is terminal and set only by an external scheduled job.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session

from care_connections.core.connection_access import Party, get_origin
from care_connections.db.enums import ConnectionAction, ConnectionOrigin, ConnectionStatus
from care_connections.db.models import Connection
from care_connections.schemas.connection import CareIntake, ConnectionMetadata
from care_connections.services import connection_service
from care_connections.services.connection_errors import InvalidState, ValidationError

STATUS_ACTIONS = {
    ConnectionAction.ACCEPT,
    ConnectionAction.DECLINE,
    ConnectionAction.RECONSIDER,
    ConnectionAction.VIEW,
}


def _accept(
    db: Session,
    connection: Connection,
    meta: ConnectionMetadata,
    now: datetime,
) -> None:
    if connection.status != ConnectionStatus.PENDING.value:
        raise InvalidState(f"Cannot accept a {connection.status} connection")

    provider_initiated = get_origin(connection) == ConnectionOrigin.PROVIDER_INTEREST
    intro = connection_service.build_auto_intro(
        db,
        connection.from_profile_id,
        connection.to_profile_id,
        CareIntake.model_validate(connection.message or {}),
        provider_initiated=provider_initiated,
    )

    connection.status = ConnectionStatus.ACCEPTED.value
    meta.accepted_at = now
    meta.viewed = True
    if intro:
        meta.auto_intro = intro
    if provider_initiated:
        meta.provider_initiated = True


def _decline(connection: Connection, meta: ConnectionMetadata, now: datetime) -> None:
    if connection.status != ConnectionStatus.PENDING.value:
        raise InvalidState(f"Cannot decline a {connection.status} connection")
    connection.status = ConnectionStatus.DECLINED.value
    meta.declined_at = now
    meta.viewed = True


def _reconsider(connection: Connection, meta: ConnectionMetadata) -> None:
    if connection.status != ConnectionStatus.DECLINED.value:
        raise InvalidState("Only declined connections can be reconsidered")
    connection.status = ConnectionStatus.PENDING.value
    meta.declined_at = None
    meta.viewed = True


def set_status(
    db: Session,
    connection_id: UUID,
    acting_profile_id: UUID,
    action: str,
    expected_version: int | None = None,
) -> Connection:
    """Apply a status action for the acting profile."""
    try:
        status_action = ConnectionAction(action)
    except ValueError:
        status_action = None
    if status_action not in STATUS_ACTIONS:
        raise ValidationError("action must be one of: accept, decline, reconsider, view")

    def transform(
        connection: Connection,
        meta: ConnectionMetadata,
        party: Party,
        now: datetime,
    ) -> None:
        if status_action == ConnectionAction.ACCEPT:
            _accept(db, connection, meta, now)
        elif status_action == ConnectionAction.DECLINE:
            _decline(connection, meta, now)
        elif status_action == ConnectionAction.RECONSIDER:
            _reconsider(connection, meta)
        else:
            meta.viewed = True

    connection, _ = connection_service.mutate_connection(
        db,
        connection_id,
        acting_profile_id,
        status_action,
        transform,
        expected_version=expected_version,
    )
    return connection
