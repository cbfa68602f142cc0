"""
Plain data records for user identities.

These are what the credential store hands out and accepts; they carry no
database behaviour. Field names are snake_case in Python and in storage,
camelCase on the wire (``by_alias`` serialization).
"""

import uuid
from datetime import datetime, timezone
from typing import Annotated, List, Literal, Optional

from pydantic import AfterValidator, AnyHttpUrl, BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

_http_url = TypeAdapter(AnyHttpUrl)


def _check_url(value: Optional[str]) -> Optional[str]:
    # Validated as a URL but kept exactly as supplied
    if value:
        _http_url.validate_python(value)
    return value


SocialUrl = Annotated[Optional[str], AfterValidator(_check_url)]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RecordModel(BaseModel):
    """Base for records: camelCase aliases, accepts either spelling."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class Location(RecordModel):
    country: str = ""
    city: str = ""


class Preferences(RecordModel):
    place_types: List[str] = Field(default_factory=list)
    travel_style: List[str] = Field(default_factory=list)
    activities: List[str] = Field(default_factory=list)
    accommodation: List[str] = Field(default_factory=list)


class SocialLinks(RecordModel):
    instagram: SocialUrl = None
    twitter: SocialUrl = None
    facebook: SocialUrl = None


class PrivacySettings(RecordModel):
    default_photo_privacy: bool = True
    profile_visibility: Literal["public", "private", "friends"] = "public"
    show_location: bool = True
    show_visited_places: bool = True


class UserSettings(RecordModel):
    email_notifications: bool = True
    language: str = "en"
    currency: str = "USD"
    privacy: PrivacySettings = Field(default_factory=PrivacySettings)


class UserStats(RecordModel):
    total_places: int = 0
    total_photos: int = 0
    total_public_places: int = 0
    total_private_places: int = 0
    joined_date: datetime = Field(default_factory=utcnow)
    last_active: datetime = Field(default_factory=utcnow)


class UserRecord(RecordModel):
    """
    A stored user identity.

    ``id``, ``created_at``, ``updated_at`` and ``version`` are assigned by
    the store on insert and are None on records that were never stored.
    """

    id: Optional[uuid.UUID] = None
    username: str
    email: str
    password_hash: str
    full_name: str
    is_verified: bool = False

    profile_photo: str = ""
    bio: str = Field(default="", max_length=250)
    location: Location = Field(default_factory=Location)
    preferences: Preferences = Field(default_factory=Preferences)
    social: SocialLinks = Field(default_factory=SocialLinks)
    settings: UserSettings = Field(default_factory=UserSettings)
    stats: UserStats = Field(default_factory=UserStats)

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version: Optional[int] = None


# Top-level record fields that hold a nested section
NESTED_SECTIONS = {
    "location": Location,
    "preferences": Preferences,
    "social": SocialLinks,
    "settings": UserSettings,
    "stats": UserStats,
}


class ProfilePatch(RecordModel):
    """
    The profile fields a user may change about themselves.

    Anything not declared here (credentials, username, verification flag,
    ids and timestamps) is silently dropped on validation.
    """

    model_config = ConfigDict(extra="ignore")

    full_name: Optional[str] = Field(None, min_length=1, max_length=255)
    profile_photo: Optional[str] = None
    bio: Optional[str] = Field(None, max_length=250)
    location: Optional[Location] = None
    preferences: Optional[Preferences] = None
    social: Optional[SocialLinks] = None
    settings: Optional[UserSettings] = None
    stats: Optional[UserStats] = None

    def changes(self) -> dict:
        """Supplied, non-null fields as record field -> value."""
        return {
            name: getattr(self, name)
            for name in self.model_fields_set
            if getattr(self, name) is not None
        }
