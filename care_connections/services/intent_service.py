"""Care request (intake) edits on an open connection."""

from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from care_connections.core.connection_access import get_origin
from care_connections.db.enums import (
    ACTIVE_CONNECTION_STATUSES,
    ConnectionAction,
    ConnectionOrigin,
    ThreadMessageType,
)
from care_connections.db.models import Connection
from care_connections.services import connection_service, intro_message
from care_connections.services.connection_errors import InvalidState
from care_connections.services.thread_service import append_entry

INTENT_FIELDS = ("care_type", "care_recipient", "urgency", "additional_notes")


def update_intent(
    db: Session,
    connection_id: UUID,
    acting_profile_id: UUID,
    changes: dict[str, Any],
    expected_version: int | None = None,
) -> Connection:
    """
    Merge provided intake fields and rebuild the auto-intro.

    Only keys present in `changes` are touched. The intro is derived from the
    merged intake alone, so repeating an edit yields the same intro. On
    provider interest the intro speaks for the provider and is left as is.
    """
    updates = {key: value for key, value in changes.items() if key in INTENT_FIELDS}

    def transform(connection, meta, party, now):
        if connection.status not in ACTIVE_CONNECTION_STATUSES:
            raise InvalidState("Cannot edit this connection")

        message = {**(connection.message or {}), **updates}
        connection.message = message
        if get_origin(connection) == ConnectionOrigin.INQUIRY:
            meta.auto_intro = intro_message.build_intro_message(
                [],
                [],
                care_type=message.get("care_type") or None,
                care_recipient=message.get("care_recipient") or None,
                urgency=message.get("urgency") or None,
            )
        append_entry(
            meta,
            acting_profile_id,
            "Care request updated",
            now,
            ThreadMessageType.SYSTEM,
        )

    connection, _ = connection_service.mutate_connection(
        db,
        connection_id,
        acting_profile_id,
        ConnectionAction.UPDATE_INTENT,
        transform,
        expected_version=expected_version,
    )
    return connection
