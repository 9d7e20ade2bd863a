"""Tests for time proposals, next-step requests, cancellation and calendar invites."""

import pytest

from care_connections.core.config import settings
from care_connections.db.models import Connection
from care_connections.schemas.connection import ConnectionMetadata, ScheduledCall, TimeSlot
from care_connections.services import scheduling_service
from care_connections.services.connection_errors import (
    AuthorizationDenied,
    InvalidState,
    ValidationError,
)

TUESDAY_2PM = {"date": "2026-02-17", "time": "14:00", "timezone": "America/Chicago"}
WEDNESDAY_930 = {"date": "2026-02-18", "time": "09:30", "timezone": "America/Chicago"}


def _meta(db, connection_id) -> ConnectionMetadata:
    return ConnectionMetadata.from_raw(db.get(Connection, connection_id).metadata_)


# =============================================================================
# Propose
# =============================================================================


def test_propose_requires_accepted(db, seeker, inquiry):
    with pytest.raises(InvalidState):
        scheduling_service.propose_times(db, inquiry.id, seeker.id, [TUESDAY_2PM])


@pytest.mark.parametrize(
    "slots",
    [
        [],
        None,
        [TUESDAY_2PM] * 4,
        [{"date": "2026-02-17", "time": "14:00"}],
        [{"date": "17/02/2026", "time": "14:00", "timezone": "America/Chicago"}],
        [{"date": "2026-02-17", "time": "2pm", "timezone": "America/Chicago"}],
        [{"date": "2026-02-30", "time": "14:00", "timezone": "America/Chicago"}],
        [{"date": "2026-02-17", "time": "25:00", "timezone": "America/Chicago"}],
        [{"date": "2026-02-17", "time": "14:00", "timezone": "Mars/Olympus"}],
        [{"date": "2026-02-17", "time": "10:00\n", "timezone": "America/Chicago"}],
        [{"date": "2026-02-17\n", "time": "10:00", "timezone": "America/Chicago"}],
        [{"date": "2026-02-17", "time": "١٠:00", "timezone": "America/Chicago"}],
    ],
)
def test_propose_validates_slots(db, seeker, accepted_inquiry, slots):
    with pytest.raises(ValidationError):
        scheduling_service.propose_times(db, accepted_inquiry.id, seeker.id, slots)


def test_propose_stores_pending_proposal_and_one_entry(db, seeker, accepted_inquiry):
    scheduling_service.propose_times(
        db, accepted_inquiry.id, seeker.id, [TUESDAY_2PM, WEDNESDAY_930], step_type="call"
    )

    meta = _meta(db, accepted_inquiry.id)
    proposal = meta.time_proposal
    assert proposal.status == "pending"
    assert proposal.type == "call"
    assert proposal.from_profile_id == str(seeker.id)
    assert proposal.id.startswith("tp_")
    assert [s.date for s in proposal.slots] == ["2026-02-17", "2026-02-18"]
    assert len(meta.thread) == 1
    assert meta.thread[0].type == "time_proposal"
    assert meta.thread[0].text == (
        "Maria Lopez suggested Tue, Feb 17 at 2:00 PM or Wed, Feb 18 at 9:30 AM for a call"
    )


def test_second_proposal_replaces_first(db, seeker, provider, accepted_inquiry):
    scheduling_service.propose_times(db, accepted_inquiry.id, seeker.id, [TUESDAY_2PM])
    first_id = _meta(db, accepted_inquiry.id).time_proposal.id

    scheduling_service.propose_times(
        db, accepted_inquiry.id, provider.id, [WEDNESDAY_930], step_type="visit"
    )

    meta = _meta(db, accepted_inquiry.id)
    assert meta.time_proposal.id != first_id
    assert meta.time_proposal.from_profile_id == str(provider.id)
    assert len(meta.time_proposal.slots) == 1
    assert len(meta.thread) == 2
    assert meta.thread[1].text.endswith("for a home visit")


def test_propose_defaults_to_requested_step(db, seeker, provider, accepted_inquiry):
    scheduling_service.request_next_step(db, accepted_inquiry.id, seeker.id, "consultation")
    scheduling_service.propose_times(db, accepted_inquiry.id, provider.id, [TUESDAY_2PM])

    meta = _meta(db, accepted_inquiry.id)
    assert meta.time_proposal.type == "consultation"
    assert meta.thread[-1].text.endswith("for a consultation")


# =============================================================================
# Respond
# =============================================================================


def test_accept_creates_confirmed_call(db, seeker, provider, accepted_inquiry):
    scheduling_service.propose_times(
        db, accepted_inquiry.id, seeker.id, [TUESDAY_2PM, WEDNESDAY_930], step_type="call"
    )
    scheduling_service.request_next_step(db, accepted_inquiry.id, provider.id, "call")

    connection = scheduling_service.respond_to_proposal(
        db, accepted_inquiry.id, provider.id, "accept", accepted_slot_index=1
    )

    meta = ConnectionMetadata.from_raw(connection.metadata_)
    assert connection.status == "accepted"
    assert meta.time_proposal.status == "accepted"
    assert meta.time_proposal.accepted_slot_index == 1
    assert meta.time_proposal.resolved_at is not None
    assert meta.scheduled_call.status == "confirmed"
    assert meta.scheduled_call.date == "2026-02-18"
    assert meta.scheduled_call.time == "09:30"
    assert meta.scheduled_call.proposed_by == str(seeker.id)
    assert meta.next_step_request is None
    assert meta.thread[-1].type == "time_accepted"
    assert meta.thread[-1].text == "Sunrise Home Care confirmed the call for Wed, Feb 18 at 9:30 AM"
    assert len(meta.thread) == 3


@pytest.mark.parametrize("index", [None, -1, 2])
def test_accept_requires_valid_slot_index(db, seeker, provider, accepted_inquiry, index):
    scheduling_service.propose_times(
        db, accepted_inquiry.id, seeker.id, [TUESDAY_2PM, WEDNESDAY_930]
    )

    with pytest.raises(ValidationError):
        scheduling_service.respond_to_proposal(
            db, accepted_inquiry.id, provider.id, "accept", accepted_slot_index=index
        )
    assert _meta(db, accepted_inquiry.id).time_proposal.status == "pending"


def test_decline_clears_proposal_but_keeps_status(db, seeker, provider, accepted_inquiry):
    scheduling_service.request_next_step(db, accepted_inquiry.id, seeker.id, "visit")
    scheduling_service.propose_times(db, accepted_inquiry.id, seeker.id, [TUESDAY_2PM])

    connection = scheduling_service.respond_to_proposal(
        db, accepted_inquiry.id, provider.id, "decline"
    )

    meta = ConnectionMetadata.from_raw(connection.metadata_)
    assert connection.status == "accepted"
    assert meta.time_proposal is None
    assert meta.next_step_request.type == "visit"
    assert meta.thread[-1].text == "Sunrise Home Care: that time doesn't work for me"


def test_respond_without_live_proposal(db, provider, accepted_inquiry):
    with pytest.raises(InvalidState, match="No active time proposal to respond to"):
        scheduling_service.respond_to_proposal(db, accepted_inquiry.id, provider.id, "decline")


def test_respond_after_acceptance_is_invalid(db, seeker, provider, accepted_inquiry):
    scheduling_service.propose_times(db, accepted_inquiry.id, seeker.id, [TUESDAY_2PM])
    scheduling_service.respond_to_proposal(
        db, accepted_inquiry.id, provider.id, "accept", accepted_slot_index=0
    )

    with pytest.raises(InvalidState):
        scheduling_service.respond_to_proposal(
            db, accepted_inquiry.id, provider.id, "accept", accepted_slot_index=0
        )


def test_proposer_cannot_respond(db, seeker, accepted_inquiry):
    scheduling_service.propose_times(db, accepted_inquiry.id, seeker.id, [TUESDAY_2PM])

    with pytest.raises(AuthorizationDenied):
        scheduling_service.respond_to_proposal(
            db, accepted_inquiry.id, seeker.id, "accept", accepted_slot_index=0
        )


@pytest.mark.parametrize("action", [None, "", "maybe"])
def test_respond_requires_action(db, provider, accepted_inquiry, action):
    with pytest.raises(ValidationError):
        scheduling_service.respond_to_proposal(db, accepted_inquiry.id, provider.id, action)


def test_past_slot_accepted_by_default(db, seeker, provider, accepted_inquiry):
    past = {"date": "2020-01-06", "time": "10:00", "timezone": "UTC"}
    scheduling_service.propose_times(db, accepted_inquiry.id, seeker.id, [past])

    connection = scheduling_service.respond_to_proposal(
        db, accepted_inquiry.id, provider.id, "accept", accepted_slot_index=0
    )
    assert connection.metadata_["scheduled_call"]["status"] == "confirmed"


def test_past_slot_rejected_when_configured(db, seeker, provider, accepted_inquiry, monkeypatch):
    monkeypatch.setattr(settings, "REJECT_PAST_SLOT_ACCEPTANCE", True)
    past = {"date": "2020-01-06", "time": "10:00", "timezone": "UTC"}
    future = {"date": "2099-01-06", "time": "10:00", "timezone": "UTC"}
    scheduling_service.propose_times(db, accepted_inquiry.id, seeker.id, [past, future])

    with pytest.raises(InvalidState, match="in the past"):
        scheduling_service.respond_to_proposal(
            db, accepted_inquiry.id, provider.id, "accept", accepted_slot_index=0
        )

    connection = scheduling_service.respond_to_proposal(
        db, accepted_inquiry.id, provider.id, "accept", accepted_slot_index=1
    )
    assert connection.metadata_["scheduled_call"]["date"] == "2099-01-06"


# =============================================================================
# Next step and cancellation
# =============================================================================


def test_request_next_step(db, provider, accepted_inquiry):
    scheduling_service.request_next_step(db, accepted_inquiry.id, provider.id, "visit")

    meta = _meta(db, accepted_inquiry.id)
    assert meta.next_step_request.type == "visit"
    assert meta.next_step_request.requested_by == str(provider.id)
    entry = meta.thread[-1]
    assert entry.type == "next_step_request"
    assert entry.next_step == "visit"
    assert entry.text == "Sunrise Home Care requested a home visit"


def test_request_next_step_validates(db, provider, inquiry, accepted_inquiry):
    with pytest.raises(ValidationError):
        scheduling_service.request_next_step(db, accepted_inquiry.id, provider.id, "lunch")


def test_request_next_step_requires_accepted(db, seeker, provider, inquiry):
    with pytest.raises(InvalidState):
        scheduling_service.request_next_step(db, inquiry.id, seeker.id, "call")


def test_cancel_call(db, seeker, provider, accepted_inquiry):
    scheduling_service.propose_times(db, accepted_inquiry.id, seeker.id, [TUESDAY_2PM])
    scheduling_service.respond_to_proposal(
        db, accepted_inquiry.id, provider.id, "accept", accepted_slot_index=0
    )

    scheduling_service.cancel_call(db, accepted_inquiry.id, seeker.id)

    meta = _meta(db, accepted_inquiry.id)
    assert meta.scheduled_call.status == "cancelled"
    assert meta.scheduled_call.cancelled_by == str(seeker.id)
    assert meta.scheduled_call.cancelled_at is not None
    assert meta.time_proposal is None
    assert meta.next_step_request is None
    assert meta.thread[-1].type == "system"
    assert meta.thread[-1].text == "Maria Lopez cancelled the scheduled call"

    with pytest.raises(InvalidState, match="No confirmed call to cancel"):
        scheduling_service.cancel_call(db, accepted_inquiry.id, provider.id)


# =============================================================================
# Calendar invite
# =============================================================================


def test_calendar_invite_uses_tzid_and_thirty_minutes():
    call = ScheduledCall(
        type="call",
        date="2026-02-17",
        time="23:45",
        timezone="America/Chicago",
        proposed_by="someone",
        confirmed_at="2026-02-10T12:00:00Z",
    )

    ics = scheduling_service.build_calendar_invite(call, "Call with Sunrise, Home Care")
    lines = ics.split("\r\n")

    assert lines[0] == "BEGIN:VCALENDAR"
    assert "DTSTART;TZID=America/Chicago:20260217T234500" in lines
    assert "DTEND;TZID=America/Chicago:20260218T001500" in lines
    assert "SUMMARY:Call with Sunrise\\, Home Care" in lines
    assert "STATUS:CONFIRMED" in lines
    assert ics.endswith("END:VCALENDAR\r\n")


def test_calendar_invite_requires_confirmed_call():
    with pytest.raises(InvalidState):
        scheduling_service.build_calendar_invite(None, "Call")


def test_slot_label_format():
    slot = TimeSlot(date="2026-02-17", time="00:05", timezone="UTC")
    assert scheduling_service.format_slot_label(slot) == "Tue, Feb 17 at 12:05 AM"
