"""Auto-intro message builder.

Pure, deterministic helpers that turn structured intake plus profile care
types into the human-readable first line shown in the inbox. Re-running with
unchanged inputs must yield the identical string, since the intro is rebuilt
on every intake edit.
"""

from collections.abc import Sequence

CARE_TYPE_DISPLAY: dict[str, str] = {
    "home_care": "Home Care",
    "home_health": "Home Health Care",
    "assisted_living": "Assisted Living",
    "memory_care": "Memory Care",
}

RECIPIENT_DISPLAY: dict[str, str] = {
    "self": "myself",
    "Myself": "myself",
    "parent": "my parent",
    "My parent": "my parent",
    "spouse": "my spouse",
    "My spouse": "my spouse",
    "other": "my loved one",
    "Someone else": "my loved one",
    "A loved one": "my loved one",
}

TIMELINE_DISPLAY: dict[str, str] = {
    "asap": "I need care as soon as possible.",
    "immediate": "I need care as soon as possible.",
    "within_month": "I'm hoping to get started within a month.",
    "within_1_month": "I'm hoping to get started within a month.",
    "few_months": "I'm hoping to get started within a few months.",
    "within_3_months": "I'm hoping to get started within a few months.",
    "researching": "I'm currently researching options.",
    "exploring": "I'm currently researching options.",
}

SERVICES_SENTENCE = "I'd love to learn more about your services."
GENERIC_INTRO = f"Hi, {SERVICES_SENTENCE}"


def pick_care_type(
    seeker_care_types: Sequence[str],
    provider_care_types: Sequence[str],
) -> str | None:
    """First seeker care type the provider also offers (case-insensitive), else the seeker's first."""
    provider_lower = {ct.lower() for ct in provider_care_types}
    for care_type in seeker_care_types:
        if care_type.lower() in provider_lower:
            return care_type
    return seeker_care_types[0] if seeker_care_types else None


def build_intro_message(
    seeker_care_types: Sequence[str],
    provider_care_types: Sequence[str],
    care_type: str | None = None,
    care_recipient: str | None = None,
    urgency: str | None = None,
    *,
    relationship: str | None = None,
    timeline: str | None = None,
) -> str:
    """
    Build the seeker's intro for an inquiry.

    Priority for the care type: explicit intake > first intersection of the
    two care-type sets > first seeker type > none. Recipient and urgency fall
    back to the seeker profile's relationship/timeline.
    """
    resolved_care_type: str | None = None
    if care_type:
        resolved_care_type = CARE_TYPE_DISPLAY.get(care_type, care_type)
    else:
        resolved_care_type = pick_care_type(seeker_care_types, provider_care_types)

    recipient_phrase: str | None = None
    recipient_key = care_recipient or relationship
    if recipient_key:
        recipient_phrase = RECIPIENT_DISPLAY.get(recipient_key, recipient_key.lower())

    timeline_key = urgency or timeline
    timeline_phrase = TIMELINE_DISPLAY.get(timeline_key) if timeline_key else None

    if resolved_care_type and recipient_phrase:
        looking_for = f"I'm looking for {resolved_care_type} for {recipient_phrase}."
    elif resolved_care_type:
        looking_for = f"I'm looking for {resolved_care_type}."
    elif recipient_phrase:
        looking_for = f"I'm looking for care for {recipient_phrase}."
    else:
        looking_for = SERVICES_SENTENCE

    parts = [f"Hi, {looking_for}"]
    if timeline_phrase:
        parts.append(timeline_phrase)
    if resolved_care_type or recipient_phrase:
        parts.append(SERVICES_SENTENCE)
    return " ".join(parts)


def build_provider_outreach_intro(
    provider_name: str | None,
    seeker_care_types: Sequence[str],
    provider_care_types: Sequence[str],
) -> str:
    """Intro phrased from the provider's side, used when a seeker accepts provider interest."""
    name = provider_name or "The provider"
    care_type = pick_care_type(seeker_care_types, provider_care_types)
    care_phrase = f"{care_type.lower()} " if care_type else ""
    return f"{name} is interested in connecting with you about your {care_phrase}care needs."
