"""Provider-initiated interest.

A provider signals interest in a care seeker by opening a `request` tagged
`provider_initiated`. From then on the care seeker (recipient) alone decides
whether to accept, decline, reconsider or mark it viewed.
"""

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from care_connections.core.structured_logging import build_log_context
from care_connections.db.enums import ConnectionType, ProfileType
from care_connections.db.models import Connection, Profile
from care_connections.services import connection_service
from care_connections.services.connection_errors import NotFound, ValidationError

logger = logging.getLogger(__name__)

MAX_MATCH_REASONS = 3


def build_match_reasons(seeker: Profile, provider: Profile) -> list[str]:
    """Short reasons shown on the interest card, most specific first."""
    reasons: list[str] = []
    seeker_meta = seeker.metadata_ or {}
    provider_meta = provider.metadata_ or {}

    provider_care_types = {ct.lower() for ct in provider.care_types or []}
    for care_type in seeker.care_types or []:
        if care_type.lower() in provider_care_types:
            reasons.append(f"Specializes in {care_type}")
            break

    if provider.city and seeker.city and provider.city.lower() == seeker.city.lower():
        reasons.append(f"Serves {seeker.city} area")

    payments = seeker_meta.get("payment_methods") or []
    if provider_meta.get("accepts_medicaid") is True and "Medicaid" in payments:
        reasons.append("Accepts Medicaid")
    if provider_meta.get("accepts_medicare") is True:
        reasons.append("Accepts Medicare")

    if not reasons and seeker.city:
        location = f"{seeker.city}, {seeker.state}" if seeker.state else seeker.city
        reasons.append(f"Serves {location}")

    return reasons[:MAX_MATCH_REASONS]


def send_provider_interest(
    db: Session,
    provider_profile_id: UUID,
    seeker_profile_id: UUID,
) -> tuple[Connection, bool]:
    """
    Open a provider-initiated request toward a care seeker.

    Returns (connection, created); an active interest toward the same seeker
    is returned as-is.
    """
    provider = connection_service.get_profile(db, provider_profile_id)
    if not provider:
        raise NotFound("Provider profile not found")
    seeker = connection_service.get_profile(db, seeker_profile_id)
    if not seeker:
        raise NotFound("Care seeker profile not found")
    if provider.type == ProfileType.FAMILY.value:
        raise ValidationError("Only provider profiles can send interest")
    if seeker.type != ProfileType.FAMILY.value:
        raise ValidationError("Interest can only be sent to a care seeker")

    connection, created = connection_service.create_connection(
        db,
        provider_profile_id,
        seeker_profile_id,
        ConnectionType.REQUEST.value,
        metadata={
            "provider_initiated": True,
            "viewed": False,
            "match_reasons": build_match_reasons(seeker, provider),
        },
    )
    if created:
        logger.info(
            "Provider interest sent",
            extra=build_log_context(connection_id=connection.id, profile_id=provider_profile_id),
        )
    return connection, created
