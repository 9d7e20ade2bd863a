"""Structured logging helpers (intake-safe)."""

from typing import Any
from uuid import UUID


def build_log_context(
    *,
    connection_id: UUID | str | None = None,
    profile_id: UUID | str | None = None,
    action: str | None = None,
    version: int | None = None,
    attempt: int | None = None,
) -> dict[str, Any]:
    """Return a log context dict carrying identifiers only.

    Intake fields (notes, recipient, thread text) never belong in logs.
    """
    context: dict[str, Any] = {}
    if connection_id:
        context["connection_id"] = str(connection_id)
    if profile_id:
        context["profile_id"] = str(profile_id)
    if action:
        context["action"] = action
    if version is not None:
        context["version"] = version
    if attempt is not None:
        context["attempt"] = attempt
    return context
