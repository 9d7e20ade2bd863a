"""Enum definitions for application constants."""

from care_connections.db.enums.connections import (
    ACTIVE_CONNECTION_STATUSES,
    ConnectionAction,
    ConnectionOrigin,
    ConnectionStatus,
    ConnectionType,
    OverlayAction,
    ProposalResponseAction,
    ScheduledCallStatus,
    StepType,
    ThreadMessageType,
    TimeProposalStatus,
)
from care_connections.db.enums.profiles import ProfileType

__all__ = [
    "ACTIVE_CONNECTION_STATUSES",
    "ConnectionAction",
    "ConnectionOrigin",
    "ConnectionStatus",
    "ConnectionType",
    "OverlayAction",
    "ProfileType",
    "ProposalResponseAction",
    "ScheduledCallStatus",
    "StepType",
    "ThreadMessageType",
    "TimeProposalStatus",
]
