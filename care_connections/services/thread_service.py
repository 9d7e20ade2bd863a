"""Thread log - append-only message history embedded in a connection."""

from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session

from care_connections.core.config import settings
from care_connections.db.enums import ConnectionAction, ThreadMessageType
from care_connections.db.models import Connection
from care_connections.schemas.connection import ConnectionMetadata, ThreadMessage
from care_connections.services import connection_service
from care_connections.services.connection_errors import ValidationError

SYSTEM_SENDER = "system"


def append_entry(
    meta: ConnectionMetadata,
    from_profile_id: UUID | str,
    text: str,
    created_at: datetime,
    message_type: ThreadMessageType = ThreadMessageType.MESSAGE,
    **extra: str,
) -> ThreadMessage:
    """Append one entry; existing entries are never rewritten."""
    entry = ThreadMessage(
        from_profile_id=str(from_profile_id),
        text=text,
        created_at=created_at,
        type=message_type.value,
        **extra,
    )
    meta.thread = [*meta.thread, entry]
    return entry


def post_message(
    db: Session,
    connection_id: UUID,
    acting_profile_id: UUID,
    text: str,
    expected_version: int | None = None,
) -> tuple[Connection, ThreadMessage]:
    """Post a participant message to the thread."""
    body = (text or "").strip()
    if not body:
        raise ValidationError("Message text is required")
    if len(body) > settings.MESSAGE_MAX_LENGTH:
        raise ValidationError(
            f"Message text must be at most {settings.MESSAGE_MAX_LENGTH} characters"
        )

    def transform(connection, meta, party, now):
        return append_entry(meta, acting_profile_id, body, now)

    return connection_service.mutate_connection(
        db,
        connection_id,
        acting_profile_id,
        ConnectionAction.POST_MESSAGE,
        transform,
        expected_version=expected_version,
    )
