"""Overlay flags - archive, hide and report without touching `status`.

The status column is a closed enum guarded by a CHECK constraint, so UI and
moderation states are layered beside it in metadata. Consumers must compute
the displayed status with `connection_service.resolve_logical_status`.

The overlay is one blob per connection: archiving by one participant is also
what the other participant sees.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session

from care_connections.core.connection_access import Party
from care_connections.db.enums import ConnectionAction, ConnectionStatus, OverlayAction
from care_connections.db.models import Connection
from care_connections.schemas.connection import ConnectionMetadata
from care_connections.services import connection_service
from care_connections.services.connection_errors import ValidationError


def _snapshot_archive(connection: Connection, meta: ConnectionMetadata) -> None:
    meta.archived = True
    meta.archived_from_status = connection.status


def set_overlay_flag(
    db: Session,
    connection_id: UUID,
    acting_profile_id: UUID,
    action: str,
    report_reason: str | None = None,
    report_details: str | None = None,
    expected_version: int | None = None,
) -> tuple[Connection, str]:
    """
    Apply an overlay action.

    Returns the connection and the caller's logical status afterwards.
    """
    try:
        overlay_action = OverlayAction(action)
    except ValueError:
        raise ValidationError("action must be one of: archive, unarchive, hide, report")

    def transform(
        connection: Connection,
        meta: ConnectionMetadata,
        party: Party,
        now: datetime,
    ) -> str:
        if overlay_action == OverlayAction.ARCHIVE:
            _snapshot_archive(connection, meta)
            return "archived"

        if overlay_action == OverlayAction.UNARCHIVE:
            restored = meta.archived_from_status or ConnectionStatus.ACCEPTED.value
            meta.archived = None
            meta.archived_from_status = None
            return restored

        if overlay_action == OverlayAction.HIDE:
            meta.hidden = True
            return "hidden"

        # Reporting always archives for the reporter
        _snapshot_archive(connection, meta)
        meta.reported = True
        meta.reported_at = now
        meta.reported_by = str(acting_profile_id)
        meta.report_reason = report_reason or None
        meta.report_details = report_details or None
        return connection_service.resolve_logical_status(
            connection.status, {"archived": True, "hidden": meta.hidden}
        )

    return connection_service.mutate_connection(
        db,
        connection_id,
        acting_profile_id,
        ConnectionAction(overlay_action.value),
        transform,
        expected_version=expected_version,
    )
