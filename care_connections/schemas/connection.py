"""Connection schemas - overlay records and API request/response models."""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Embedded records (stored inside connections.metadata)
# =============================================================================

class ThreadMessage(BaseModel):
    """One immutable thread entry."""
    model_config = ConfigDict(frozen=True, extra="allow")

    from_profile_id: str
    text: str
    created_at: datetime
    type: str = "message"
    next_step: str | None = None


class TimeSlot(BaseModel):
    """A candidate meeting slot. Date is YYYY-MM-DD, time is 24h HH:MM, timezone IANA."""
    date: str
    time: str
    timezone: str


class TimeProposal(BaseModel):
    id: str
    from_profile_id: str
    type: str = "call"
    slots: list[TimeSlot]
    status: str = "pending"
    accepted_slot_index: int | None = None
    created_at: datetime
    resolved_at: datetime | None = None


class ScheduledCall(BaseModel):
    type: str
    date: str
    time: str
    timezone: str
    proposed_by: str
    confirmed_at: datetime
    status: str = "confirmed"
    cancelled_by: str | None = None
    cancelled_at: datetime | None = None


class NextStepRequest(BaseModel):
    type: str
    requested_by: str
    requested_at: datetime


class ConnectionMetadata(BaseModel):
    """
    Typed view of the metadata overlay.

    Unknown keys written by other tools are preserved (extra="allow") and
    unset keys are dropped on write, so clearing a field removes its key.
    """
    model_config = ConfigDict(extra="allow")

    # Archive / hide / report overlay
    archived: bool | None = None
    archived_from_status: str | None = None
    hidden: bool | None = None
    reported: bool | None = None
    reported_at: datetime | None = None
    reported_by: str | None = None
    report_reason: str | None = None
    report_details: str | None = None
    viewed: bool | None = None

    # Flow + intro
    provider_initiated: bool | None = None
    auto_intro: str | None = None
    match_reasons: list[str] | None = None
    accepted_at: datetime | None = None
    declined_at: datetime | None = None

    # Thread + scheduling
    thread: list[ThreadMessage] = Field(default_factory=list)
    time_proposal: TimeProposal | None = None
    scheduled_call: ScheduledCall | None = None
    next_step_request: NextStepRequest | None = None

    @classmethod
    def from_raw(cls, raw: dict[str, Any] | None) -> "ConnectionMetadata":
        return cls.model_validate(raw or {})

    def to_raw(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class CareIntake(BaseModel):
    """Structured intake captured when a care seeker reaches out."""
    model_config = ConfigDict(extra="allow")

    care_type: str | None = None
    care_recipient: str | None = None
    urgency: str | None = None
    additional_notes: str | None = Field(None, max_length=5000)


# =============================================================================
# Requests
# =============================================================================

class ConnectionCreate(BaseModel):
    """Request to open an inquiry (seeker -> provider) or request."""
    to_profile_id: UUID
    type: Literal["inquiry", "request"] = "inquiry"
    message: CareIntake | None = None


class ProviderInterestCreate(BaseModel):
    """Provider signals interest in a care seeker."""
    seeker_profile_id: UUID


class StatusActionRequest(BaseModel):
    action: Literal["accept", "decline", "reconsider", "view"]
    expected_version: int | None = None


class OverlayActionRequest(BaseModel):
    action: Literal["archive", "unarchive", "hide", "report"]
    report_reason: str | None = Field(None, max_length=200)
    report_details: str | None = Field(None, max_length=2000)
    expected_version: int | None = None


class TimeSlotInput(BaseModel):
    # Field-level checks happen in the service so malformed slots surface as
    # the engine's ValidationError rather than a shape error.
    date: str | None = None
    time: str | None = None
    timezone: str | None = None


class ProposeTimesRequest(BaseModel):
    slots: list[TimeSlotInput]
    step_type: Literal["call", "consultation", "visit"] | None = None
    expected_version: int | None = None


class RespondToProposalRequest(BaseModel):
    action: str | None = None
    accepted_slot_index: int | None = None
    expected_version: int | None = None


class NextStepCreate(BaseModel):
    step_type: Literal["call", "consultation", "visit"]
    expected_version: int | None = None


class CallCancelRequest(BaseModel):
    expected_version: int | None = None


class ThreadMessageCreate(BaseModel):
    text: str = Field(..., min_length=1)


class IntentUpdate(BaseModel):
    """Partial intake edit; only provided fields change."""
    care_type: str | None = None
    care_recipient: str | None = None
    urgency: str | None = None
    additional_notes: str | None = Field(None, max_length=5000)
    expected_version: int | None = None


# =============================================================================
# Responses
# =============================================================================

class ConnectionRead(BaseModel):
    id: UUID
    type: str
    status: str
    logical_status: str
    from_profile_id: UUID
    to_profile_id: UUID
    message: dict[str, Any] | None
    metadata: dict[str, Any]
    version: int
    created_at: datetime
    updated_at: datetime


class ConnectionCreateResponse(BaseModel):
    id: UUID
    status: Literal["created", "duplicate"]
    created_at: datetime


class OverlayResponse(BaseModel):
    logical_status: str


class ProposalResponse(BaseModel):
    thread: list[ThreadMessage]
    time_proposal: TimeProposal | None
    scheduled_call: ScheduledCall | None = None
    next_step_request: NextStepRequest | None = None


class IntentResponse(BaseModel):
    message: dict[str, Any]
    metadata: dict[str, Any]
