"""Enum definitions for the emergency access subsystem."""

from enum import Enum


class _ValueEnum(str, Enum):
    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid member value."""
        return value in cls._value2member_map_


class AlertStage(_ValueEnum):
    """Ordered escalation stages of the inactivity monitor."""

    USER_WARNING = "user_warning"  # Days 1-3: remind the owner
    NOMINEE_WARNING = "nominee_warning"  # Days 4-6: warn verified nominees
    EMERGENCY_GRANTED = "emergency_granted"  # Threshold reached: access is live


class RecipientType(_ValueEnum):
    USER = "user"
    NOMINEE = "nominee"


class NomineeStatus(_ValueEnum):
    PENDING = "pending"
    VERIFIED = "verified"


class ResourceType(_ValueEnum):
    """Containment hierarchy, outermost first: category > subcategory > document."""

    CATEGORY = "category"
    SUBCATEGORY = "subcategory"
    DOCUMENT = "document"


class AccessLevel(_ValueEnum):
    VIEW = "view"
    DOWNLOAD = "download"


class PushPlatform(_ValueEnum):
    ANDROID = "android"
    IOS = "ios"
    WEB = "web"


# Day windows for the two reminder stages (inclusive)
USER_WARNING_DAYS = (1, 3)
NOMINEE_WARNING_DAYS = (4, 6)
