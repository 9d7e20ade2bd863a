"""Connection access control - who may do what on a connection.

Rights depend on two things: which side of the directed edge the caller is
on, and how the connection originated. For ordinary inquiries either
participant may mark the record viewed; for provider-initiated interest the
provider who sent it has no accept/decline/reconsider/view rights at all and
the care seeker holds them exclusively.

Actions missing from an origin's table are not available for that flow.
"""

from enum import Enum
from uuid import UUID

from care_connections.db.enums import ConnectionAction, ConnectionOrigin, ConnectionType
from care_connections.db.models import Connection
from care_connections.services.connection_errors import AuthorizationDenied, InvalidState


class Party(str, Enum):
    SENDER = "sender"
    RECIPIENT = "recipient"


BOTH = frozenset({Party.SENDER, Party.RECIPIENT})
SENDER_ONLY = frozenset({Party.SENDER})
RECIPIENT_ONLY = frozenset({Party.RECIPIENT})

_SHARED = {
    ConnectionAction.READ: BOTH,
    ConnectionAction.ARCHIVE: BOTH,
    ConnectionAction.UNARCHIVE: BOTH,
    ConnectionAction.HIDE: BOTH,
    ConnectionAction.REPORT: BOTH,
    ConnectionAction.PROPOSE_TIMES: BOTH,
    ConnectionAction.RESPOND_TO_PROPOSAL: BOTH,
    ConnectionAction.REQUEST_NEXT_STEP: BOTH,
    ConnectionAction.CANCEL_CALL: BOTH,
    ConnectionAction.POST_MESSAGE: BOTH,
}

CAPABILITIES: dict[ConnectionOrigin, dict[ConnectionAction, frozenset[Party]]] = {
    ConnectionOrigin.INQUIRY: {
        **_SHARED,
        ConnectionAction.ACCEPT: RECIPIENT_ONLY,
        ConnectionAction.DECLINE: RECIPIENT_ONLY,
        ConnectionAction.VIEW: BOTH,
        # The care seeker owns the intake and sent the inquiry
        ConnectionAction.UPDATE_INTENT: SENDER_ONLY,
    },
    ConnectionOrigin.PROVIDER_INTEREST: {
        **_SHARED,
        ConnectionAction.ACCEPT: RECIPIENT_ONLY,
        ConnectionAction.DECLINE: RECIPIENT_ONLY,
        ConnectionAction.RECONSIDER: RECIPIENT_ONLY,
        ConnectionAction.VIEW: RECIPIENT_ONLY,
        # Here the care seeker is the recipient
        ConnectionAction.UPDATE_INTENT: RECIPIENT_ONLY,
    },
}


def get_origin(connection: Connection) -> ConnectionOrigin:
    """Derive the origin flow from the type column and the overlay tag."""
    meta = connection.metadata_ or {}
    if connection.type == ConnectionType.REQUEST.value and meta.get("provider_initiated"):
        return ConnectionOrigin.PROVIDER_INTEREST
    return ConnectionOrigin.INQUIRY


def party_of(connection: Connection, profile_id: UUID | None) -> Party | None:
    if profile_id is None:
        return None
    if connection.from_profile_id == profile_id:
        return Party.SENDER
    if connection.to_profile_id == profile_id:
        return Party.RECIPIENT
    return None


def is_supported(origin: ConnectionOrigin, action: ConnectionAction) -> bool:
    return action in CAPABILITIES[origin]


def can(
    acting_profile_id: UUID | None,
    connection: Connection,
    action: ConnectionAction,
) -> bool:
    """capability(acting party, origin flow, action) -> allow/deny."""
    party = party_of(connection, acting_profile_id)
    if party is None:
        return False
    allowed = CAPABILITIES[get_origin(connection)].get(action, frozenset())
    return party in allowed


def check_connection_access(
    connection: Connection,
    acting_profile_id: UUID | None,
    action: ConnectionAction = ConnectionAction.READ,
) -> Party:
    """
    Raise unless the caller may perform `action`.

    Non-participants and the wrong side get AuthorizationDenied; an action
    the origin flow does not offer at all is InvalidState.
    Returns the caller's side of the connection.
    """
    party = party_of(connection, acting_profile_id)
    if party is None:
        raise AuthorizationDenied("Not authorized")
    origin = get_origin(connection)
    if not is_supported(origin, action):
        raise InvalidState(
            f"Cannot {action.value.replace('_', ' ')} a connection of this kind"
        )
    if not can(acting_profile_id, connection, action):
        raise AuthorizationDenied(
            f"Not authorized to {action.value.replace('_', ' ')} this connection"
        )
    return party
