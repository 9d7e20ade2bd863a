"""Connections router - lifecycle, overlay flags, scheduling and thread."""

from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from care_connections.core.deps import (
    get_acting_profile_id,
    get_db,
    require_csrf_header,
)
from care_connections.db.models import Connection
from care_connections.schemas.connection import (
    CallCancelRequest,
    ConnectionCreate,
    ConnectionCreateResponse,
    ConnectionMetadata,
    ConnectionRead,
    IntentResponse,
    IntentUpdate,
    NextStepCreate,
    OverlayActionRequest,
    OverlayResponse,
    ProposalResponse,
    ProposeTimesRequest,
    ProviderInterestCreate,
    RespondToProposalRequest,
    StatusActionRequest,
    ThreadMessage,
    ThreadMessageCreate,
)
from care_connections.services import (
    connection_service,
    connection_status_service,
    intent_service,
    overlay_service,
    provider_interest_service,
    scheduling_service,
    thread_service,
)

router = APIRouter(prefix="/connections", tags=["Connections"])


# =============================================================================
# Helpers
# =============================================================================


def _connection_to_read(connection: Connection) -> ConnectionRead:
    metadata = connection.metadata_ or {}
    return ConnectionRead(
        id=connection.id,
        type=connection.type,
        status=connection.status,
        logical_status=connection_service.resolve_logical_status(connection.status, metadata),
        from_profile_id=connection.from_profile_id,
        to_profile_id=connection.to_profile_id,
        message=connection.message,
        metadata=metadata,
        version=connection.version,
        created_at=connection.created_at,
        updated_at=connection.updated_at,
    )


def _proposal_response(connection: Connection) -> ProposalResponse:
    meta = ConnectionMetadata.from_raw(connection.metadata_)
    return ProposalResponse(
        thread=meta.thread,
        time_proposal=meta.time_proposal,
        scheduled_call=meta.scheduled_call,
        next_step_request=meta.next_step_request,
    )


def _created_response(
    connection: Connection, created: bool, response: Response
) -> ConnectionCreateResponse:
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return ConnectionCreateResponse(
        id=connection.id,
        status="created" if created else "duplicate",
        created_at=connection.created_at,
    )


# =============================================================================
# Create / read
# =============================================================================


@router.post(
    "",
    response_model=ConnectionCreateResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_csrf_header)],
)
def create_connection(
    data: ConnectionCreate,
    response: Response,
    profile_id: UUID = Depends(get_acting_profile_id),
    db: Session = Depends(get_db),
):
    """Open an inquiry (or plain request) from the caller's profile."""
    connection, created = connection_service.create_connection(
        db,
        from_profile_id=profile_id,
        to_profile_id=data.to_profile_id,
        connection_type=data.type,
        message=data.message,
    )
    return _created_response(connection, created, response)


@router.post(
    "/interest",
    response_model=ConnectionCreateResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_csrf_header)],
)
def send_interest(
    data: ProviderInterestCreate,
    response: Response,
    profile_id: UUID = Depends(get_acting_profile_id),
    db: Session = Depends(get_db),
):
    """Provider signals interest in a care seeker."""
    connection, created = provider_interest_service.send_provider_interest(
        db, provider_profile_id=profile_id, seeker_profile_id=data.seeker_profile_id
    )
    return _created_response(connection, created, response)


@router.get("", response_model=list[ConnectionRead])
def list_connections(
    direction: Literal["sent", "received"] | None = Query(None),
    status_filter: str | None = Query(None, alias="status"),
    include_hidden: bool = False,
    profile_id: UUID = Depends(get_acting_profile_id),
    db: Session = Depends(get_db),
):
    """List the caller's connections, newest first."""
    connections = connection_service.list_connections(
        db,
        profile_id,
        direction=direction,
        status_filter=status_filter,
        include_hidden=include_hidden,
    )
    return [_connection_to_read(c) for c in connections]


@router.get("/{connection_id}", response_model=ConnectionRead)
def get_connection(
    connection_id: UUID,
    profile_id: UUID = Depends(get_acting_profile_id),
    db: Session = Depends(get_db),
):
    connection = connection_service.get_connection(db, connection_id, profile_id)
    return _connection_to_read(connection)


# =============================================================================
# Status and overlay
# =============================================================================


@router.post(
    "/{connection_id}/status",
    response_model=ConnectionRead,
    dependencies=[Depends(require_csrf_header)],
)
def set_status(
    connection_id: UUID,
    data: StatusActionRequest,
    profile_id: UUID = Depends(get_acting_profile_id),
    db: Session = Depends(get_db),
):
    """Accept, decline, reconsider or mark viewed."""
    connection = connection_status_service.set_status(
        db,
        connection_id,
        profile_id,
        data.action,
        expected_version=data.expected_version,
    )
    return _connection_to_read(connection)


@router.post(
    "/{connection_id}/overlay",
    response_model=OverlayResponse,
    dependencies=[Depends(require_csrf_header)],
)
def set_overlay_flag(
    connection_id: UUID,
    data: OverlayActionRequest,
    profile_id: UUID = Depends(get_acting_profile_id),
    db: Session = Depends(get_db),
):
    """Archive, unarchive, hide or report."""
    _, logical_status = overlay_service.set_overlay_flag(
        db,
        connection_id,
        profile_id,
        data.action,
        report_reason=data.report_reason,
        report_details=data.report_details,
        expected_version=data.expected_version,
    )
    return OverlayResponse(logical_status=logical_status)


# =============================================================================
# Scheduling
# =============================================================================


@router.post(
    "/{connection_id}/time-proposals",
    response_model=ProposalResponse,
    dependencies=[Depends(require_csrf_header)],
)
def propose_times(
    connection_id: UUID,
    data: ProposeTimesRequest,
    profile_id: UUID = Depends(get_acting_profile_id),
    db: Session = Depends(get_db),
):
    connection = scheduling_service.propose_times(
        db,
        connection_id,
        profile_id,
        data.slots,
        step_type=data.step_type,
        expected_version=data.expected_version,
    )
    return _proposal_response(connection)


@router.post(
    "/{connection_id}/time-proposals/respond",
    response_model=ProposalResponse,
    dependencies=[Depends(require_csrf_header)],
)
def respond_to_proposal(
    connection_id: UUID,
    data: RespondToProposalRequest,
    profile_id: UUID = Depends(get_acting_profile_id),
    db: Session = Depends(get_db),
):
    connection = scheduling_service.respond_to_proposal(
        db,
        connection_id,
        profile_id,
        data.action,
        accepted_slot_index=data.accepted_slot_index,
        expected_version=data.expected_version,
    )
    return _proposal_response(connection)


@router.post(
    "/{connection_id}/next-step",
    response_model=ProposalResponse,
    dependencies=[Depends(require_csrf_header)],
)
def request_next_step(
    connection_id: UUID,
    data: NextStepCreate,
    profile_id: UUID = Depends(get_acting_profile_id),
    db: Session = Depends(get_db),
):
    connection = scheduling_service.request_next_step(
        db, connection_id, profile_id, data.step_type, expected_version=data.expected_version
    )
    return _proposal_response(connection)


@router.post(
    "/{connection_id}/scheduled-call/cancel",
    response_model=ProposalResponse,
    dependencies=[Depends(require_csrf_header)],
)
def cancel_call(
    connection_id: UUID,
    data: CallCancelRequest | None = None,
    profile_id: UUID = Depends(get_acting_profile_id),
    db: Session = Depends(get_db),
):
    expected_version = data.expected_version if data else None
    connection = scheduling_service.cancel_call(
        db, connection_id, profile_id, expected_version=expected_version
    )
    return _proposal_response(connection)


@router.get("/{connection_id}/scheduled-call.ics")
def download_calendar_invite(
    connection_id: UUID,
    profile_id: UUID = Depends(get_acting_profile_id),
    db: Session = Depends(get_db),
):
    """Confirmed call as an .ics attachment."""
    content = scheduling_service.get_calendar_invite(db, connection_id, profile_id)
    return Response(
        content=content,
        media_type="text/calendar; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="care-call.ics"'},
    )


# =============================================================================
# Thread and intake
# =============================================================================


@router.post(
    "/{connection_id}/messages",
    response_model=ThreadMessage,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_csrf_header)],
)
def post_message(
    connection_id: UUID,
    data: ThreadMessageCreate,
    profile_id: UUID = Depends(get_acting_profile_id),
    db: Session = Depends(get_db),
):
    _, entry = thread_service.post_message(db, connection_id, profile_id, data.text)
    return entry


@router.patch(
    "/{connection_id}/intent",
    response_model=IntentResponse,
    dependencies=[Depends(require_csrf_header)],
)
def update_intent(
    connection_id: UUID,
    data: IntentUpdate,
    profile_id: UUID = Depends(get_acting_profile_id),
    db: Session = Depends(get_db),
):
    """Edit the care request; only fields present in the body change."""
    changes = data.model_dump(exclude_unset=True, exclude={"expected_version"})
    connection = intent_service.update_intent(
        db,
        connection_id,
        profile_id,
        changes,
        expected_version=data.expected_version,
    )
    return IntentResponse(message=connection.message or {}, metadata=connection.metadata_ or {})
