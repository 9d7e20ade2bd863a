"""Profile-related enums."""

from enum import Enum


class ProfileType(str, Enum):
    """Kind of party behind a profile."""

    FAMILY = "family"  # Care seeker
    ORGANIZATION = "organization"  # Provider
    CAREGIVER = "caregiver"  # Independent provider
