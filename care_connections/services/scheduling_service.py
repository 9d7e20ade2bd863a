"""Time-proposal negotiation on accepted connections.

One live proposal per connection: a participant offers 1-3 slots, the other
side accepts one (producing a confirmed scheduled call) or declines it.
A new proposal replaces the prior one outright. Every step appends exactly
one thread entry.
"""

import re
import uuid
from datetime import date, datetime, time, timedelta, timezone
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.orm import Session

from care_connections.core.config import settings
from care_connections.db.enums import (
    ConnectionAction,
    ConnectionStatus,
    ProposalResponseAction,
    ScheduledCallStatus,
    StepType,
    ThreadMessageType,
    TimeProposalStatus,
)
from care_connections.db.models import Connection
from care_connections.schemas.connection import (
    ConnectionMetadata,
    NextStepRequest,
    ScheduledCall,
    TimeProposal,
    TimeSlot,
    TimeSlotInput,
)
from care_connections.services import connection_service
from care_connections.services.connection_errors import (
    AuthorizationDenied,
    InvalidState,
    ValidationError,
)
from care_connections.services.thread_service import append_entry

DATE_RE = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")
TIME_RE = re.compile(r"[0-9]{2}:[0-9]{2}")

STEP_NOUNS = {
    StepType.CALL.value: "call",
    StepType.CONSULTATION.value: "consultation",
    StepType.VISIT.value: "home visit",
}

CALL_DURATION_MINUTES = 30


# =============================================================================
# Formatting helpers
# =============================================================================


def step_noun(step_type: str | None) -> str:
    return STEP_NOUNS.get(step_type or "", "call")


def _with_article(noun: str) -> str:
    return f"a {noun}"


def format_slot_label(slot: TimeSlot) -> str:
    """Human label such as 'Tue, Feb 17 at 2:00 PM'."""
    day = date.fromisoformat(slot.date)
    hour, minute = (int(part) for part in slot.time.split(":"))
    suffix = "AM" if hour < 12 else "PM"
    return (
        f"{day.strftime('%a, %b')} {day.day} at "
        f"{hour % 12 or 12}:{minute:02d} {suffix}"
    )


def _join_labels(labels: list[str]) -> str:
    if len(labels) <= 2:
        return " or ".join(labels)
    return ", ".join(labels[:-1]) + f", or {labels[-1]}"


def slot_start(slot: TimeSlot) -> datetime:
    """Aware start datetime of a slot in its own timezone."""
    hour, minute = (int(part) for part in slot.time.split(":"))
    return datetime.combine(
        date.fromisoformat(slot.date),
        time(hour, minute),
        tzinfo=ZoneInfo(slot.timezone),
    )


# =============================================================================
# Validation
# =============================================================================


def validate_slots(slots: list[TimeSlotInput | dict] | None) -> list[TimeSlot]:
    """
    Check slot count and fields.

    Raises:
        ValidationError: empty or over-long list, missing or malformed field
    """
    max_slots = settings.MAX_TIME_PROPOSAL_SLOTS
    if not slots or len(slots) > max_slots:
        raise ValidationError(f"Between 1 and {max_slots} time slots are required")

    validated: list[TimeSlot] = []
    for index, raw in enumerate(slots):
        slot = raw if isinstance(raw, TimeSlotInput) else TimeSlotInput.model_validate(raw)
        if not slot.date or not slot.time or not slot.timezone:
            raise ValidationError(f"Slot {index} requires date, time and timezone")
        if not DATE_RE.fullmatch(slot.date):
            raise ValidationError(f"Slot {index} date must be YYYY-MM-DD")
        if not TIME_RE.fullmatch(slot.time):
            raise ValidationError(f"Slot {index} time must be HH:MM")
        try:
            date.fromisoformat(slot.date)
            hour, minute = (int(part) for part in slot.time.split(":"))
            time(hour, minute)
        except ValueError:
            raise ValidationError(f"Slot {index} has an invalid date or time")
        try:
            ZoneInfo(slot.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValidationError(f"Slot {index} has an unknown timezone: {slot.timezone}")
        validated.append(TimeSlot(date=slot.date, time=slot.time, timezone=slot.timezone))
    return validated


def _require_accepted(connection: Connection) -> None:
    if connection.status != ConnectionStatus.ACCEPTED.value:
        raise InvalidState("Connection must be accepted")


# =============================================================================
# Propose / respond
# =============================================================================


def propose_times(
    db: Session,
    connection_id: UUID,
    acting_profile_id: UUID,
    slots: list[TimeSlotInput | dict] | None,
    step_type: str | None = None,
    expected_version: int | None = None,
) -> Connection:
    """Offer candidate slots, replacing any existing proposal."""
    validated = validate_slots(slots)
    if step_type is not None and step_type not in STEP_NOUNS:
        raise ValidationError("step_type must be one of: call, consultation, visit")
    display_name = connection_service.get_display_name(db, acting_profile_id)

    def transform(connection, meta: ConnectionMetadata, party, now):
        _require_accepted(connection)
        resolved_type = step_type or (
            meta.next_step_request.type if meta.next_step_request else StepType.CALL.value
        )
        meta.time_proposal = TimeProposal(
            id=f"tp_{uuid.uuid4().hex[:12]}",
            from_profile_id=str(acting_profile_id),
            type=resolved_type,
            slots=validated,
            status=TimeProposalStatus.PENDING.value,
            created_at=now,
        )
        labels = _join_labels([format_slot_label(slot) for slot in validated])
        append_entry(
            meta,
            acting_profile_id,
            f"{display_name} suggested {labels} for {_with_article(step_noun(resolved_type))}",
            now,
            ThreadMessageType.TIME_PROPOSAL,
        )

    connection, _ = connection_service.mutate_connection(
        db,
        connection_id,
        acting_profile_id,
        ConnectionAction.PROPOSE_TIMES,
        transform,
        expected_version=expected_version,
    )
    return connection


def respond_to_proposal(
    db: Session,
    connection_id: UUID,
    acting_profile_id: UUID,
    action: str | None,
    accepted_slot_index: int | None = None,
    expected_version: int | None = None,
) -> Connection:
    """Accept one slot of the live proposal, or decline the proposal."""
    if action not in {a.value for a in ProposalResponseAction}:
        raise ValidationError("action must be 'accept' or 'decline'")
    display_name = connection_service.get_display_name(db, acting_profile_id)

    def transform(connection, meta: ConnectionMetadata, party, now):
        _require_accepted(connection)
        proposal = meta.time_proposal
        if not proposal or proposal.status != TimeProposalStatus.PENDING.value:
            raise InvalidState("No active time proposal to respond to")
        if proposal.from_profile_id == str(acting_profile_id):
            raise AuthorizationDenied("Cannot respond to your own time proposal")

        noun = step_noun(proposal.type)

        if action == ProposalResponseAction.DECLINE.value:
            meta.time_proposal = None
            append_entry(
                meta,
                acting_profile_id,
                f"{display_name}: that time doesn't work for me",
                now,
                ThreadMessageType.SYSTEM,
            )
            return

        if accepted_slot_index is None or not (
            0 <= accepted_slot_index < len(proposal.slots)
        ):
            raise ValidationError("accepted_slot_index must select one of the proposed slots")
        slot = proposal.slots[accepted_slot_index]
        if settings.REJECT_PAST_SLOT_ACCEPTANCE and slot_start(slot) < now:
            raise InvalidState("Selected time slot is in the past")

        meta.time_proposal = proposal.model_copy(
            update={
                "status": TimeProposalStatus.ACCEPTED.value,
                "accepted_slot_index": accepted_slot_index,
                "resolved_at": now,
            }
        )
        meta.scheduled_call = ScheduledCall(
            type=proposal.type,
            date=slot.date,
            time=slot.time,
            timezone=slot.timezone,
            proposed_by=proposal.from_profile_id,
            confirmed_at=now,
            status=ScheduledCallStatus.CONFIRMED.value,
        )
        meta.next_step_request = None
        append_entry(
            meta,
            acting_profile_id,
            f"{display_name} confirmed the {noun} for {format_slot_label(slot)}",
            now,
            ThreadMessageType.TIME_ACCEPTED,
        )

    connection, _ = connection_service.mutate_connection(
        db,
        connection_id,
        acting_profile_id,
        ConnectionAction.RESPOND_TO_PROPOSAL,
        transform,
        expected_version=expected_version,
    )
    return connection


# =============================================================================
# Next-step requests and cancellation
# =============================================================================


def request_next_step(
    db: Session,
    connection_id: UUID,
    acting_profile_id: UUID,
    step_type: str,
    expected_version: int | None = None,
) -> Connection:
    """Ask the other side for a call, consultation or visit."""
    if step_type not in STEP_NOUNS:
        raise ValidationError("step_type must be one of: call, consultation, visit")
    display_name = connection_service.get_display_name(db, acting_profile_id)

    def transform(connection, meta: ConnectionMetadata, party, now):
        _require_accepted(connection)
        meta.next_step_request = NextStepRequest(
            type=step_type,
            requested_by=str(acting_profile_id),
            requested_at=now,
        )
        append_entry(
            meta,
            acting_profile_id,
            f"{display_name} requested {_with_article(step_noun(step_type))}",
            now,
            ThreadMessageType.NEXT_STEP_REQUEST,
            next_step=step_type,
        )

    connection, _ = connection_service.mutate_connection(
        db,
        connection_id,
        acting_profile_id,
        ConnectionAction.REQUEST_NEXT_STEP,
        transform,
        expected_version=expected_version,
    )
    return connection


def cancel_call(
    db: Session,
    connection_id: UUID,
    acting_profile_id: UUID,
    expected_version: int | None = None,
) -> Connection:
    """Cancel the confirmed call and clear pending scheduling state."""
    display_name = connection_service.get_display_name(db, acting_profile_id)

    def transform(connection, meta: ConnectionMetadata, party, now):
        call = meta.scheduled_call
        if not call or call.status != ScheduledCallStatus.CONFIRMED.value:
            raise InvalidState("No confirmed call to cancel")
        meta.scheduled_call = call.model_copy(
            update={
                "status": ScheduledCallStatus.CANCELLED.value,
                "cancelled_by": str(acting_profile_id),
                "cancelled_at": now,
            }
        )
        meta.next_step_request = None
        meta.time_proposal = None
        append_entry(
            meta,
            acting_profile_id,
            f"{display_name} cancelled the scheduled {step_noun(call.type)}",
            now,
            ThreadMessageType.SYSTEM,
        )

    connection, _ = connection_service.mutate_connection(
        db,
        connection_id,
        acting_profile_id,
        ConnectionAction.CANCEL_CALL,
        transform,
        expected_version=expected_version,
    )
    return connection


# =============================================================================
# Calendar invite
# =============================================================================


def _ics_escape(value: str) -> str:
    return (
        value.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\n", "\\n")
    )


def build_calendar_invite(
    scheduled_call: ScheduledCall | None,
    title: str,
    description: str | None = None,
    duration_minutes: int = CALL_DURATION_MINUTES,
) -> str:
    """
    Render a confirmed call as an iCalendar (RFC 5545) document.

    Start and end are local times tagged with the call's TZID.
    """
    if not scheduled_call or scheduled_call.status != ScheduledCallStatus.CONFIRMED.value:
        raise InvalidState("No confirmed call to add to a calendar")

    start = datetime.combine(
        date.fromisoformat(scheduled_call.date),
        time.fromisoformat(scheduled_call.time),
    )
    end = start + timedelta(minutes=duration_minutes)
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")

    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "PRODID:-//Care Connections//Care Scheduling//EN",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
        "BEGIN:VEVENT",
        f"UID:{uuid.uuid4().hex}@care-connections",
        f"DTSTAMP:{stamp}",
        f"DTSTART;TZID={scheduled_call.timezone}:{start.strftime('%Y%m%dT%H%M%S')}",
        f"DTEND;TZID={scheduled_call.timezone}:{end.strftime('%Y%m%dT%H%M%S')}",
        f"SUMMARY:{_ics_escape(title)}",
    ]
    if description:
        lines.append(f"DESCRIPTION:{_ics_escape(description)}")
    lines += ["STATUS:CONFIRMED", "END:VEVENT", "END:VCALENDAR"]
    return "\r\n".join(lines) + "\r\n"


def get_calendar_invite(db: Session, connection_id: UUID, acting_profile_id: UUID) -> str:
    """Calendar invite for the caller, titled with the other participant's name."""
    connection = connection_service.get_connection(db, connection_id, acting_profile_id)
    meta = ConnectionMetadata.from_raw(connection.metadata_)
    other_id = (
        connection.to_profile_id
        if connection.from_profile_id == acting_profile_id
        else connection.from_profile_id
    )
    other_name = connection_service.get_display_name(db, other_id)
    noun = step_noun(meta.scheduled_call.type if meta.scheduled_call else None)
    return build_calendar_invite(meta.scheduled_call, f"{noun.title()} with {other_name}")
