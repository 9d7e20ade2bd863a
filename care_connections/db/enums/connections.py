"""Connection-related enums."""

from enum import Enum


class ConnectionType(str, Enum):
    """How a connection was opened."""

    INQUIRY = "inquiry"  # Care seeker -> provider
    REQUEST = "request"  # Provider -> care seeker (interest)


class ConnectionStatus(str, Enum):
    """
    Status column of a connection.

    Closed set mirrored by a CHECK constraint. UI/admin states such as
    archived or hidden live in the metadata overlay, never here.
    EXPIRED is owned by an external scheduled job.
    """

    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    EXPIRED = "expired"


# Statuses that block a second connection of the same type/direction
ACTIVE_CONNECTION_STATUSES = (
    ConnectionStatus.PENDING.value,
    ConnectionStatus.ACCEPTED.value,
)


class ConnectionOrigin(str, Enum):
    """Flow a connection originated from; drives authorization."""

    INQUIRY = "inquiry"
    PROVIDER_INTEREST = "provider_initiated_interest"


class ConnectionAction(str, Enum):
    """Every action the access table knows about."""

    READ = "read"
    ACCEPT = "accept"
    DECLINE = "decline"
    RECONSIDER = "reconsider"
    VIEW = "view"
    ARCHIVE = "archive"
    UNARCHIVE = "unarchive"
    HIDE = "hide"
    REPORT = "report"
    PROPOSE_TIMES = "propose_times"
    RESPOND_TO_PROPOSAL = "respond_to_proposal"
    REQUEST_NEXT_STEP = "request_next_step"
    CANCEL_CALL = "cancel_call"
    POST_MESSAGE = "post_message"
    UPDATE_INTENT = "update_intent"


class OverlayAction(str, Enum):
    """Metadata-only flag actions."""

    ARCHIVE = "archive"
    UNARCHIVE = "unarchive"
    HIDE = "hide"
    REPORT = "report"


class ThreadMessageType(str, Enum):
    """Kinds of thread entries."""

    MESSAGE = "message"
    SYSTEM = "system"
    TIME_PROPOSAL = "time_proposal"
    TIME_ACCEPTED = "time_accepted"
    NEXT_STEP_REQUEST = "next_step_request"


class StepType(str, Enum):
    """What a time proposal is scheduling."""

    CALL = "call"
    CONSULTATION = "consultation"
    VISIT = "visit"


class TimeProposalStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"


class ProposalResponseAction(str, Enum):
    ACCEPT = "accept"
    DECLINE = "decline"


class ScheduledCallStatus(str, Enum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
