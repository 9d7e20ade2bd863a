"""Tests for thread messages and care request edits."""

import pytest

from care_connections.core.config import settings
from care_connections.db.models import Connection
from care_connections.services import (
    connection_status_service,
    intent_service,
    provider_interest_service,
    thread_service,
)
from care_connections.services.connection_errors import (
    AuthorizationDenied,
    InvalidState,
    ValidationError,
)


# =============================================================================
# Thread
# =============================================================================


def test_post_message_appends_in_order(db, seeker, provider, inquiry):
    thread_service.post_message(db, inquiry.id, seeker.id, "  Hello there  ")
    _, entry = thread_service.post_message(db, inquiry.id, provider.id, "Hi Maria")

    thread = db.get(Connection, inquiry.id).metadata_["thread"]
    assert [m["text"] for m in thread] == ["Hello there", "Hi Maria"]
    assert [m["from_profile_id"] for m in thread] == [str(seeker.id), str(provider.id)]
    assert all(m["type"] == "message" for m in thread)
    assert entry.text == "Hi Maria"


def test_earlier_entries_are_untouched(db, seeker, provider, inquiry):
    thread_service.post_message(db, inquiry.id, seeker.id, "first")
    first = dict(db.get(Connection, inquiry.id).metadata_["thread"][0])

    thread_service.post_message(db, inquiry.id, provider.id, "second")

    assert db.get(Connection, inquiry.id).metadata_["thread"][0] == first


@pytest.mark.parametrize("text", ["", "   "])
def test_post_message_rejects_blank(db, seeker, inquiry, text):
    with pytest.raises(ValidationError):
        thread_service.post_message(db, inquiry.id, seeker.id, text)


def test_post_message_rejects_overlong(db, seeker, inquiry):
    with pytest.raises(ValidationError):
        thread_service.post_message(
            db, inquiry.id, seeker.id, "x" * (settings.MESSAGE_MAX_LENGTH + 1)
        )


def test_post_message_requires_participant(db, other_provider, inquiry):
    with pytest.raises(AuthorizationDenied):
        thread_service.post_message(db, inquiry.id, other_provider.id, "hello")


# =============================================================================
# Intent
# =============================================================================


def test_update_intent_merges_and_rebuilds_intro(db, seeker, inquiry):
    connection = intent_service.update_intent(
        db,
        inquiry.id,
        seeker.id,
        {"care_type": "memory_care", "care_recipient": "spouse"},
    )

    assert connection.message == {"care_type": "memory_care", "care_recipient": "spouse"}
    assert connection.metadata_["auto_intro"] == (
        "Hi, I'm looking for Memory Care for my spouse. "
        "I'd love to learn more about your services."
    )
    assert connection.metadata_["thread"][-1]["text"] == "Care request updated"
    assert connection.metadata_["thread"][-1]["type"] == "system"

    connection = intent_service.update_intent(db, inquiry.id, seeker.id, {"urgency": "asap"})
    assert connection.message == {
        "care_type": "memory_care",
        "care_recipient": "spouse",
        "urgency": "asap",
    }


def test_update_intent_is_idempotent(db, seeker, inquiry):
    changes = {"care_type": "home_care", "care_recipient": "parent", "urgency": "few_months"}

    first = intent_service.update_intent(db, inquiry.id, seeker.id, changes).metadata_["auto_intro"]
    second = intent_service.update_intent(db, inquiry.id, seeker.id, changes).metadata_["auto_intro"]

    assert first == second
    assert len(db.get(Connection, inquiry.id).metadata_["thread"]) == 2


def test_update_intent_ignores_unknown_fields(db, seeker, inquiry):
    connection = intent_service.update_intent(
        db, inquiry.id, seeker.id, {"status": "accepted", "urgency": "asap"}
    )
    assert connection.status == "pending"
    assert connection.message == {"urgency": "asap"}


def test_provider_cannot_edit_inquiry_intent(db, provider, inquiry):
    with pytest.raises(AuthorizationDenied):
        intent_service.update_intent(db, inquiry.id, provider.id, {"urgency": "asap"})


def test_seeker_edits_intent_on_provider_interest(db, seeker, provider):
    interest, _ = provider_interest_service.send_provider_interest(db, provider.id, seeker.id)

    with pytest.raises(AuthorizationDenied):
        intent_service.update_intent(db, interest.id, provider.id, {"urgency": "asap"})

    connection = intent_service.update_intent(db, interest.id, seeker.id, {"urgency": "asap"})
    assert connection.message == {"urgency": "asap"}


def test_intent_edit_keeps_provider_voice_on_interest(db, seeker, provider):
    interest, _ = provider_interest_service.send_provider_interest(db, provider.id, seeker.id)
    accepted = connection_status_service.set_status(db, interest.id, seeker.id, "accept")
    intro = accepted.metadata_["auto_intro"]
    assert intro.startswith("Sunrise Home Care is interested in connecting with you")

    connection = intent_service.update_intent(db, interest.id, seeker.id, {"urgency": "asap"})

    assert connection.message == {"urgency": "asap"}
    assert connection.metadata_["auto_intro"] == intro
    assert connection.metadata_["thread"][-1]["text"] == "Care request updated"


def test_update_intent_requires_open_connection(db, seeker, provider, inquiry):
    connection_status_service.set_status(db, inquiry.id, provider.id, "decline")

    with pytest.raises(InvalidState):
        intent_service.update_intent(db, inquiry.id, seeker.id, {"urgency": "asap"})
